"""HTTP endpoint receiving updates pushed by Telegram."""

from __future__ import annotations

import asyncio
import hmac
import logging

from aiohttp import web
from telegram import Bot, Update

logger = logging.getLogger(__name__)

SECRET_HEADER = "X-Telegram-Bot-Api-Secret-Token"


class WebhookListener:
    """aiohttp server that queues every valid update and answers right away.

    Moderation happens after the response; Telegram only needs to know the
    update was received.
    """

    def __init__(
        self,
        bot: Bot | None,
        update_queue: asyncio.Queue,
        path: str,
        *,
        host: str = "0.0.0.0",
        port: int = 8080,
        secret_token: str | None = None,
    ) -> None:
        self.bot = bot
        self.update_queue = update_queue
        self.path = path
        self.host = host
        self.port = port
        self.secret_token = secret_token
        self.app = web.Application()
        self.app.router.add_post(path, self.handle_update)
        self.runner: web.AppRunner | None = None

    def _authorized(self, request: web.Request) -> bool:
        if self.secret_token is None:
            return True
        provided = request.headers.get(SECRET_HEADER, "")
        return hmac.compare_digest(provided.encode("utf-8"), self.secret_token.encode("utf-8"))

    async def handle_update(self, request: web.Request) -> web.Response:
        if not self._authorized(request):
            logger.warning("Rejected webhook request from %s: missing/invalid secret token", request.remote)
            return web.Response(status=401)

        try:
            payload = await request.json()
            if not isinstance(payload, dict):
                raise ValueError("update body is not a JSON object")
            update = Update.de_json(payload, self.bot)
        except (ValueError, TypeError, KeyError, AttributeError) as exc:
            logger.warning("Rejected undecodable webhook body: %s", exc)
            return web.Response(status=400)
        if update is None:
            return web.Response(status=400)

        await self.update_queue.put(update)
        return web.Response(status=200)

    async def start(self) -> None:
        """Bind and serve; a bind failure propagates to the caller."""
        self.runner = web.AppRunner(self.app)
        await self.runner.setup()
        site = web.TCPSite(self.runner, self.host, self.port)
        await site.start()
        logger.info("Webhook server listening on %s:%s%s", self.host, self.port, self.path)

    async def stop(self) -> None:
        if self.runner:
            await self.runner.cleanup()
            self.runner = None
            logger.info("Webhook server stopped")
