"""Per-update coordinator: moderation chain first, then commands."""

from __future__ import annotations

import logging
from typing import Mapping, Sequence

from telegram import Message, Update

from .commands import Command, CommandContext, PermissionGate
from .handlers import HandlerResult, UpdateHandler

logger = logging.getLogger(__name__)

COMMAND_MARKER = "/"


def split_command(text: str) -> tuple[str, str]:
    """'/inject be strict' -> ('/inject', 'be strict')."""
    parts = text.split(None, 1)
    if not parts:
        return "", ""
    return parts[0], parts[1] if len(parts) > 1 else ""


class Dispatcher:
    def __init__(
        self,
        handlers: Sequence[UpdateHandler],
        commands: Mapping[str, Command],
        permissions: PermissionGate,
        bot_username: str | None = None,
    ) -> None:
        self.handlers = tuple(handlers)
        self.commands = dict(commands)
        self.permissions = permissions
        self.bot_username = bot_username

    async def dispatch(self, update: Update) -> None:
        """Handle one update; failures are logged and never escape."""
        try:
            await self._dispatch(update)
        except Exception:
            chat_id = update.effective_chat.id if update.effective_chat else None
            logger.exception("Error handling update %s (chat %s)", update.update_id, chat_id)

    async def _dispatch(self, update: Update) -> None:
        message = update.message
        if message is None:
            return
        user = message.from_user
        if user is None or user.is_bot:
            return

        if await self.run_handlers(message) is HandlerResult.BREAK:
            return

        text = message.text
        if not text or not text.startswith(COMMAND_MARKER):
            return
        resolved = self.resolve_command(text)
        if resolved is None:
            return
        command, args_raw = resolved

        if not await self.permissions.allows(command, message):
            logger.debug("Ignoring %s from %s in chat %s: not permitted", command.name, user.id, message.chat_id)
            return
        await command.execute(CommandContext(message=message, args_raw=args_raw))

    async def run_handlers(self, message: Message) -> HandlerResult:
        for handler in self.handlers:
            if await handler.handle(message) is HandlerResult.BREAK:
                return HandlerResult.BREAK
        return HandlerResult.CONTINUE

    def resolve_command(self, text: str) -> tuple[Command, str] | None:
        token, args_raw = split_command(text)
        name, addressed, target = token.partition("@")
        if addressed:
            # commands addressed to another bot in the same chat
            if not self.bot_username or target.lower() != self.bot_username.lower():
                return None
        command = self.commands.get(name)
        if command is None:
            return None
        return command, args_raw
