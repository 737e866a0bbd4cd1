#!/usr/bin/env python3
"""
ESP Relay - HTTP API

Serves:
- the timer control page (GET /)
- relay status for monitoring (GET /api/v1/status, GET /api/v1/health)
"""

import asyncio
import logging
from datetime import datetime

from aiohttp import web

from .netutil import get_local_ip_address
from .relay_server import RelayServer
from .ui import render_control_page

logger = logging.getLogger(__name__)


class RelayAPI:
    """HTTP front end for the ESP relay."""

    def __init__(self, relay: RelayServer, host: str = "0.0.0.0", port: int = 8080,
                 public_host: str = ""):
        self.relay = relay
        self.host = host
        self.port = port
        self.public_host = public_host
        self._advertised_host = public_host
        self.app = web.Application(middlewares=[self._error_middleware])
        self.app.on_startup.append(self._resolve_advertised_host)
        self._setup_routes()
        self._runner = None

    def _setup_routes(self):
        """Set up routes."""
        self.app.router.add_get('/', self.control_page)
        self.app.router.add_get('/api/v1/status', self.get_status)
        self.app.router.add_get('/api/v1/health', self.health_check)

    @web.middleware
    async def _error_middleware(self, request, handler):
        """Handle errors and return JSON responses."""
        try:
            return await handler(request)
        except web.HTTPException as e:
            return web.json_response({
                'error': e.reason,
                'status': e.status
            }, status=e.status)
        except Exception as e:
            logger.error(f"API error: {e}", exc_info=True)
            return web.json_response({
                'error': str(e),
                'status': 500
            }, status=500)

    async def _resolve_advertised_host(self, app: web.Application):
        """Look up the LAN address once, off the event loop"""
        if not self.public_host:
            loop = asyncio.get_running_loop()
            self._advertised_host = await loop.run_in_executor(None, get_local_ip_address)
        logger.info(f"Control page advertises {self.ws_url}")

    @property
    def ws_url(self) -> str:
        """WebSocket address advertised to browsers"""
        host = self._advertised_host or "localhost"
        return f"ws://{host}:{self.relay.bound_port}"

    # =========================================================================
    # Endpoints
    # =========================================================================

    async def control_page(self, request: web.Request) -> web.Response:
        """Timer control page."""
        return web.Response(text=render_control_page(self.ws_url),
                            content_type='text/html')

    async def health_check(self, request: web.Request) -> web.Response:
        """Health check endpoint."""
        return web.json_response({'status': 'healthy', 'timestamp': datetime.now().isoformat()})

    async def get_status(self, request: web.Request) -> web.Response:
        """Get overall relay status."""
        status = {
            'server': 'running',
            'timestamp': datetime.now().isoformat(),
            'ws_url': self.ws_url,
            **self.relay.get_status()
        }
        return web.json_response(status)

    # =========================================================================
    # Server Lifecycle
    # =========================================================================

    async def start(self):
        """Start the HTTP server."""
        self._runner = web.AppRunner(self.app)
        await self._runner.setup()

        site = web.TCPSite(self._runner, self.host, self.port)
        await site.start()

        logger.info(f"HTTP server started on http://{self.host}:{self.port}")

    async def stop(self):
        """Stop the HTTP server."""
        if self._runner:
            await self._runner.cleanup()
            self._runner = None
            logger.info("HTTP server stopped")
