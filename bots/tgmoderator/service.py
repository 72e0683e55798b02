"""Long-running moderator service: ingestion, background jobs, shutdown."""

from __future__ import annotations

import asyncio
import logging

from telegram import Update
from telegram.error import TelegramError
from telegram.ext import Application, CallbackContext, ContextTypes

from .cas import CasClient
from .classifier import OpenRouterClient
from .config import Settings
from .dispatcher import Dispatcher
from .persistence import PersistenceBridge
from .state import BanListCache, ChatStateStore
from .telegram_client import TelegramClient
from .webhook import WebhookListener

logger = logging.getLogger(__name__)

# long-poll timeout passed to getUpdates, seconds
POLL_TIMEOUT = 1
ALLOWED_UPDATES = (Update.MESSAGE,)


class ModerationService:
    def __init__(
        self,
        settings: Settings,
        application: Application,
        client: TelegramClient,
        classifier: OpenRouterClient,
        cas: CasClient,
        persistence: PersistenceBridge,
        chats: ChatStateStore,
        ban_list: BanListCache,
        dispatcher: Dispatcher,
    ) -> None:
        self.settings = settings
        self.application = application
        self.client = client
        self.classifier = classifier
        self.cas = cas
        self.persistence = persistence
        self.chats = chats
        self.ban_list = ban_list
        self.dispatcher = dispatcher

    async def handle_update(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        await self.dispatcher.dispatch(update)

    async def refresh_ban_list(self) -> bool:
        logger.info("Fetching full CAS banned list...")
        banned_ids = await self.cas.fetch_banned_ids()
        if banned_ids is None:
            return False
        self.ban_list.store(banned_ids)
        logger.info("CAS ban list refreshed (%d ids)", len(banned_ids))
        return True

    async def save_state(self) -> None:
        await self.persistence.save(self.chats, self.ban_list)

    async def refresh_ban_list_job(self, context: CallbackContext) -> None:
        try:
            await self.refresh_ban_list()
        except Exception:
            logger.exception("Failed to update CAS list")

    async def save_state_job(self, context: CallbackContext) -> None:
        try:
            await self.save_state()
        except Exception:
            logger.exception("Failed to save state to DB")

    def schedule_jobs(self) -> None:
        job_queue = self.application.job_queue
        save_interval = self.settings.state_save_interval_seconds
        refresh_interval = self.settings.cas_refresh_minutes * 60
        job_queue.run_repeating(
            self.save_state_job,
            interval=save_interval,
            first=save_interval,
            name="save_state",
        )
        job_queue.run_repeating(
            self.refresh_ban_list_job,
            interval=refresh_interval,
            first=refresh_interval,
            name="refresh_cas",
        )

    async def poll_updates(self, stop_event: asyncio.Event) -> None:
        """Fetch updates until stopped, feeding them to the application queue."""
        offset = 0
        logger.info("Starting main polling loop...")
        while not stop_event.is_set():
            try:
                updates = await self.client.get_updates(offset, POLL_TIMEOUT)
            except TelegramError as exc:
                logger.error("Failed to get updates: %s", exc)
            else:
                for update in updates:
                    await self.application.update_queue.put(update)
                if updates:
                    offset = max(update.update_id for update in updates) + 1
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=self.settings.poll_interval_seconds)
            except asyncio.TimeoutError:
                pass

    async def run(self, stop_event: asyncio.Event) -> None:
        await self.application.initialize()
        self.dispatcher.bot_username = self.client.username
        logger.info("Running as @%s", self.client.username)

        try:
            await self.refresh_ban_list()
        except Exception:
            logger.exception("Initial CAS list fetch failed; starting with the saved list")

        self.schedule_jobs()
        await self.application.start()

        webhook: WebhookListener | None = None
        try:
            if self.settings.webhook_enabled:
                webhook = WebhookListener(
                    self.application.bot,
                    self.application.update_queue,
                    self.settings.webhook_path,
                    host=self.settings.webhook_listen_host,
                    port=self.settings.webhook_listen_port,
                    secret_token=self.settings.webhook_secret,
                )
                await webhook.start()
                await self.client.set_webhook(
                    self.settings.webhook_url,
                    ALLOWED_UPDATES,
                    self.settings.webhook_secret,
                )
                await stop_event.wait()
            else:
                await self.client.delete_webhook()
                await self.poll_updates(stop_event)
        finally:
            logger.info("Shutting down...")
            if webhook is not None:
                await webhook.stop()
            await self.application.stop()
            try:
                await self.save_state()
            except Exception:
                logger.exception("Final state save failed")
            await self.application.shutdown()
            await self.cas.close()
            await self.classifier.close()
            self.persistence.close()
