"""Main entry point for the AI anti-spam moderator."""

from __future__ import annotations

import asyncio
import logging
import signal

from telegram import Update
from telegram.ext import AIORateLimiter, ApplicationBuilder, TypeHandler
from telegram.request import HTTPXRequest

from . import __version__
from .cas import CasClient
from .classifier import OpenRouterClient
from .commands import COMMAND_TYPES, PermissionGate, build_command_registry
from .config import Settings, parse_args
from .database import Database
from .dispatcher import Dispatcher
from .handlers import BanListCheck, QuarantineCheck
from .messages import MessageRenderer
from .persistence import PersistenceBridge
from .prompts import PromptBuilder
from .service import POLL_TIMEOUT, ModerationService
from .telegram_client import TelegramClient

logger = logging.getLogger(__name__)


def build_service(settings: Settings) -> ModerationService:
    persistence = PersistenceBridge(Database(settings.database_path))
    chats, ban_list = persistence.load().restore()

    application = (
        ApplicationBuilder()
        .token(settings.bot_token)
        .request(HTTPXRequest(http_version="1.1", read_timeout=settings.http_timeout_seconds))
        .get_updates_request(
            HTTPXRequest(http_version="1.1", read_timeout=settings.http_timeout_seconds + POLL_TIMEOUT)
        )
        .rate_limiter(AIORateLimiter())
        .concurrent_updates(True)
        .updater(None)
        .build()
    )

    client = TelegramClient(application.bot)
    classifier = OpenRouterClient(
        settings.openrouter_api_key,
        settings.ai_model,
        timeout=settings.classifier_timeout_seconds,
    )
    cas_client = CasClient(settings.cas_export_url, timeout=settings.http_timeout_seconds)
    renderer = MessageRenderer()

    # order matters: the cheap ban list lookup runs before the classifier
    handlers = [
        BanListCheck(client, chats, ban_list, renderer),
        QuarantineCheck(
            client,
            classifier,
            chats,
            PromptBuilder(),
            renderer,
            threshold=settings.quarantine_messages,
            classifier_timeout=settings.classifier_timeout_seconds,
        ),
    ]
    commands = build_command_registry(
        command_type(client, chats, renderer) for command_type in COMMAND_TYPES
    )
    dispatcher = Dispatcher(handlers, commands, PermissionGate(client))

    service = ModerationService(
        settings,
        application,
        client,
        classifier,
        cas_client,
        persistence,
        chats,
        ban_list,
        dispatcher,
    )
    application.add_handler(TypeHandler(Update, service.handle_update))
    return service


async def _run(settings: Settings) -> None:
    service = build_service(settings)
    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except NotImplementedError:  # pragma: no cover - windows
            pass
    await service.run(stop_event)


def main(argv: list[str] | None = None) -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    args = parse_args(argv)
    settings = Settings.from_env(args)
    logging.getLogger().setLevel(settings.log_level_value)
    logging.getLogger("httpx").setLevel(logging.WARNING)

    logger.info("Starting tg-ai-moderator %s", __version__)
    mode = "webhook" if settings.webhook_enabled else "polling"
    logger.info("Database at %s, %s mode, model %s", settings.database_path, mode, settings.ai_model)
    asyncio.run(_run(settings))


if __name__ == "__main__":
    main()
