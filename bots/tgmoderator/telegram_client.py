"""Thin wrapper over the python-telegram-bot API used by the moderator."""

from __future__ import annotations

import logging
from typing import Sequence

from telegram import Bot, ChatMember, LinkPreviewOptions, Message, ReplyParameters, Update
from telegram.constants import ParseMode
from telegram.error import TelegramError

logger = logging.getLogger(__name__)

NO_PREVIEW = LinkPreviewOptions(is_disabled=True)


class TelegramClient:
    """The handful of Bot API calls the moderator needs.

    Every call is a fallible remote call and raises TelegramError, except
    delete_message which is best effort.
    """

    def __init__(self, bot: Bot) -> None:
        self.bot = bot

    @property
    def username(self) -> str:
        return self.bot.username

    async def get_updates(self, offset: int, timeout: int) -> tuple[Update, ...]:
        return await self.bot.get_updates(
            offset=offset,
            timeout=timeout,
            allowed_updates=[Update.MESSAGE],
        )

    async def send_message(self, chat_id: int, text: str) -> Message:
        return await self.bot.send_message(
            chat_id,
            text,
            parse_mode=ParseMode.HTML,
            link_preview_options=NO_PREVIEW,
        )

    async def reply(self, chat_id: int, message_id: int, text: str) -> Message:
        return await self.bot.send_message(
            chat_id,
            text,
            parse_mode=ParseMode.HTML,
            link_preview_options=NO_PREVIEW,
            reply_parameters=ReplyParameters(
                message_id=message_id,
                allow_sending_without_reply=True,
            ),
        )

    async def delete_message(self, chat_id: int, message_id: int) -> bool:
        try:
            return await self.bot.delete_message(chat_id, message_id)
        except TelegramError as exc:
            # the message may already be gone
            logger.debug("Delete of message %s in chat %s failed: %s", message_id, chat_id, exc)
            return False

    async def ban_user(self, chat_id: int, user_id: int) -> None:
        await self.bot.ban_chat_member(chat_id, user_id)

    async def get_chat_administrators(self, chat_id: int) -> tuple[ChatMember, ...]:
        return await self.bot.get_chat_administrators(chat_id)

    async def set_webhook(
        self,
        url: str,
        allowed_updates: Sequence[str],
        secret_token: str | None = None,
    ) -> None:
        await self.bot.set_webhook(
            url,
            allowed_updates=list(allowed_updates),
            secret_token=secret_token,
        )

    async def delete_webhook(self) -> None:
        # getUpdates is refused while a webhook is registered
        await self.bot.delete_webhook()
