#!/usr/bin/env python3
"""
ESP Relay - Clients

Helpers for talking to a running relay:

- send_command(): connect as a controller, send one frame, disconnect
- DeviceStub: connect, announce as the device, print or handle commands
- RelayAPIClient: read the HTTP status API
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

import aiohttp
from websockets.asyncio.client import connect
from websockets.exceptions import ConnectionClosed

logger = logging.getLogger(__name__)

DEFAULT_ANNOUNCEMENT = "ESP32 connected"

CommandHandler = Callable[[str], Awaitable[Optional[str]]]


async def send_command(relay_url: str, command: str):
    """Send one command frame as a controller."""
    async with connect(relay_url) as ws:
        await ws.send(command)
    logger.debug(f"Sent {command!r} to {relay_url}")


class DeviceStub:
    """
    Stand-in for the ESP32 device.

    Announces itself, then passes every command to ``handler``. A non-None
    return value is sent back over the same connection, which the relay
    treats as self-talk and drops; real devices do the same.
    """

    def __init__(self, relay_url: str, handler: CommandHandler,
                 announcement: str = DEFAULT_ANNOUNCEMENT):
        self.relay_url = relay_url
        self.handler = handler
        self.announcement = announcement
        self.commands_received = 0

    async def run(self, ready: Optional[asyncio.Event] = None):
        """Run until the relay closes the connection"""
        async with connect(self.relay_url) as ws:
            await ws.send(self.announcement)
            logger.info(f"Announced as device on {self.relay_url}")
            if ready is not None:
                ready.set()
            try:
                async for message in ws:
                    if isinstance(message, bytes):
                        message = message.decode("utf-8", errors="replace")
                    self.commands_received += 1
                    reply = await self.handler(message)
                    if reply is not None:
                        await ws.send(reply)
            except ConnectionClosed as e:
                logger.info(f"Relay closed the connection: {e}")


class RelayAPIError(Exception):
    """Error from the relay HTTP API."""
    def __init__(self, message: str, status_code: int = 0):
        super().__init__(message)
        self.status_code = status_code


class RelayAPIClient:
    """Client for the relay HTTP API."""

    def __init__(self, api_url: str, timeout: float = 10.0):
        self.api_url = api_url.rstrip('/')
        self.timeout = timeout
        self._session: Optional[aiohttp.ClientSession] = None

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout))
        return self._session

    async def close(self):
        """Close the HTTP session."""
        if self._session and not self._session.closed:
            await self._session.close()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        await self.close()

    async def _request(self, method: str, endpoint: str) -> Dict[str, Any]:
        """Make an API request."""
        session = await self._get_session()
        url = f"{self.api_url}{endpoint}"

        try:
            async with session.request(method, url) as resp:
                body = await resp.json()
                if resp.status >= 400:
                    raise RelayAPIError(
                        body.get('error', 'Unknown error'),
                        resp.status
                    )
                return body
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise RelayAPIError(f"Connection error: {e}")

    async def get_status(self) -> Dict[str, Any]:
        """Get relay status."""
        return await self._request('GET', '/api/v1/status')

    async def health_check(self) -> Dict[str, Any]:
        return await self._request('GET', '/api/v1/health')
