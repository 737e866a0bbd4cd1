#!/usr/bin/env python3
"""
ESP Relay Server

WebSocket relay between one device (an ESP32 timer) and any number of
controllers (the web page, scripts, the CLI).

Architecture:
    [Controller] --\
    [Controller] ----> [Relay Server] ----> [Device]
    [Controller] --/

Every peer connects to the same endpoint. A peer that sends "ESP32" or
"ESP32 connected" becomes the device; everything else a controller sends is
forwarded to it verbatim.

Usage:
    esp-relay serve --ws-port 8081 --http-port 8080
"""

import asyncio
import logging
import signal
from contextlib import suppress
from typing import Optional

from websockets.asyncio.server import ServerConnection, serve
from websockets.exceptions import ConnectionClosed

from .config import RelayConfig
from .router import MessageRouter

logger = logging.getLogger(__name__)


class RelayServer:
    """ESP Relay WebSocket server"""

    def __init__(self, host: str = "0.0.0.0", port: int = 8081,
                 router: Optional[MessageRouter] = None,
                 ping_interval: Optional[float] = 20.0,
                 ping_timeout: Optional[float] = 20.0):
        self.host = host
        self.port = port
        self.router = router if router is not None else MessageRouter()
        self.ping_interval = ping_interval
        self.ping_timeout = ping_timeout
        self._server = None
        self._running = False

    @classmethod
    def from_config(cls, config: RelayConfig) -> "RelayServer":
        return cls(
            host=config.host,
            port=config.ws_port,
            router=MessageRouter(outbox_size=config.outbox_size),
            ping_interval=config.ping_interval,
            ping_timeout=config.ping_timeout,
        )

    async def handle_connection(self, websocket: ServerConnection):
        """Handle a new WebSocket connection"""
        session = await self.router.register(websocket, websocket.remote_address)
        writer = asyncio.create_task(session.drain_outbox())

        try:
            async for message in websocket:
                if isinstance(message, bytes):
                    message = message.decode("utf-8", errors="replace")
                logger.debug(f"Received from {session.session_id.short}: {message!r}")
                try:
                    await self.router.route(session.session_id, message)
                except Exception as e:
                    logger.error(f"Error routing frame from "
                                 f"{session.session_id.short}: {e}", exc_info=True)
        except ConnectionClosed as e:
            logger.debug(f"Connection {session.session_id.short} closed: {e}")
        finally:
            await self.router.unregister(session.session_id)
            writer.cancel()
            with suppress(asyncio.CancelledError):
                await writer

    async def start(self):
        """Bind the listener and start accepting connections"""
        logger.info(f"Starting ESP relay on ws://{self.host}:{self.port}")

        self._server = await serve(
            self.handle_connection,
            self.host,
            self.port,
            ping_interval=self.ping_interval,
            ping_timeout=self.ping_timeout,
        )
        self._running = True

        logger.info(f"Relay server listening on port {self.bound_port}")

    async def wait_closed(self):
        if self._server:
            await self._server.wait_closed()

    async def stop(self):
        """Stop the relay server"""
        if self._server:
            self._running = False
            self._server.close()
            await self._server.wait_closed()
            logger.info("Relay server stopped")

    @property
    def bound_port(self) -> int:
        """Actual listening port (useful when started on port 0)"""
        if self._server is None:
            return self.port
        for sock in self._server.sockets:
            return sock.getsockname()[1]
        return self.port

    def get_status(self) -> dict:
        """Get server status"""
        return {
            "running": self._running,
            "host": self.host,
            "port": self.bound_port,
            **self.router.get_status()
        }


async def run(config: RelayConfig, with_http: bool = True):
    """Run the relay (and the control page) until SIGINT/SIGTERM"""
    from .api import RelayAPI

    server = RelayServer.from_config(config)

    loop = asyncio.get_running_loop()
    stop_event = asyncio.Event()

    def shutdown_handler():
        logger.info("Shutdown signal received")
        stop_event.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        with suppress(NotImplementedError):
            loop.add_signal_handler(sig, shutdown_handler)

    await server.start()

    api = None
    if with_http:
        api = RelayAPI(server, host=config.host, port=config.http_port,
                       public_host=config.public_host)
        await api.start()
        logger.info(f"Web UI running on http://localhost:{config.http_port}")

    await stop_event.wait()

    if api:
        await api.stop()
    await server.stop()
