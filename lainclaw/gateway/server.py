"""HTTP API server for transport integrations."""

import json

from aiohttp import web
from loguru import logger

from lainclaw.bus.events import InboundMessage
from lainclaw.gateway.core import GatewayCore


class GatewayServer:
    """
    HTTP API server in front of the gateway core.

    Provides endpoints for:
    - Inbound channel messages (POST /api/inbound)
    - Health check (GET /health)
    """

    def __init__(
        self,
        core: GatewayCore,
        host: str = "127.0.0.1",
        port: int = 18790,
    ):
        """
        Initialize the gateway server.

        Args:
            core: Gateway core that evaluates and answers inbound messages.
            host: Host to bind to.
            port: Port to listen on.
        """
        self.core = core
        self.host = host
        self.port = port
        self._app: web.Application | None = None
        self._runner: web.AppRunner | None = None
        self._site: web.TCPSite | None = None

    def create_app(self) -> web.Application:
        """Create the aiohttp application."""
        app = web.Application()
        app.router.add_get("/health", self._handle_health)
        app.router.add_post("/api/inbound", self._handle_inbound)
        return app

    async def _handle_health(self, request: web.Request) -> web.Response:
        """Health check endpoint."""
        return web.json_response({"status": "ok"})

    async def _handle_inbound(self, request: web.Request) -> web.Response:
        """
        Handle an inbound message from a channel transport.

        Expected JSON body:
        {
            "channel": "feishu",
            "actorId": "ou_123",
            "accountId": "bot-a",
            "requestId": "...",
            "text": "hello"
        }

        Returns:
        {
            "allowed": true,
            "reply": "Text to send back, or null"
        }
        """
        try:
            data = await request.json()
        except json.JSONDecodeError:
            return web.json_response({"error": "Invalid JSON"}, status=400)

        if not isinstance(data, dict) or not str(data.get("channel") or "").strip():
            return web.json_response({"error": "Missing channel"}, status=400)

        inbound = InboundMessage.from_dict(data)
        try:
            decision, outbound = await self.core.process(inbound)
            return web.json_response({
                "allowed": decision.allowed,
                "reply": outbound.text if outbound else None,
            })
        except ValueError as e:
            return web.json_response({"error": str(e)}, status=400)
        except Exception as e:
            logger.error(f"Error handling inbound message: {e}")
            return web.json_response({"error": "Internal error"}, status=500)

    async def start(self) -> None:
        """Start the HTTP server."""
        self._app = self.create_app()
        self._runner = web.AppRunner(self._app)
        await self._runner.setup()
        self._site = web.TCPSite(self._runner, self.host, self.port)
        await self._site.start()
        logger.info(f"Gateway API listening on http://{self.host}:{self.port}")

    async def stop(self) -> None:
        """Stop the HTTP server."""
        if self._site:
            await self._site.stop()
        if self._runner:
            await self._runner.cleanup()
        logger.info("Gateway API stopped")
