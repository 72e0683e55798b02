"""Chat commands and the permission gate in front of them."""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Iterable

from telegram import Message

from .messages import MessageRenderer
from .state import AdminDirective, ChatStateStore, Language, Mode
from .telegram_client import TelegramClient

logger = logging.getLogger(__name__)

ADMIN_STATUSES = ("administrator", "creator")


class PermissionLevel(Enum):
    PUBLIC = "public"
    ADMIN = "admin"


@dataclass(slots=True)
class CommandContext:
    message: Message
    args_raw: str

    @property
    def chat_id(self) -> int:
        return self.message.chat_id


class Command(ABC):
    name: str
    permission: PermissionLevel = PermissionLevel.ADMIN

    def __init__(self, client: TelegramClient, chats: ChatStateStore, renderer: MessageRenderer) -> None:
        self.client = client
        self.chats = chats
        self.renderer = renderer

    @abstractmethod
    async def execute(self, ctx: CommandContext) -> None: ...

    async def reply(self, ctx: CommandContext, text: str) -> None:
        await self.client.reply(ctx.chat_id, ctx.message.message_id, text)

    async def reply_usage(self, ctx: CommandContext, schema: str) -> None:
        language = self.chats.get(ctx.chat_id).language
        await self.reply(ctx, self.renderer.render("command_usage", language, command_schema=schema))


class HelpCommand(Command):
    name = "/help"
    permission = PermissionLevel.PUBLIC

    async def execute(self, ctx: CommandContext) -> None:
        language = self.chats.get(ctx.chat_id).language
        await self.reply(ctx, self.renderer.render("help", language))


class SetModeCommand(Command):
    name = "/set_mode"

    async def execute(self, ctx: CommandContext) -> None:
        try:
            mode = Mode.parse(ctx.args_raw)
        except ValueError:
            await self.reply_usage(ctx, "/set_mode [ban|notify]")
            return
        chat_state = self.chats.get(ctx.chat_id)
        chat_state.mode = mode
        logger.info("Chat %s switched to %s mode", ctx.chat_id, mode.value)
        await self.reply(ctx, self.renderer.render("set_mode", chat_state.language, new_mode=mode.label))


class SetLangCommand(Command):
    name = "/set_lang"

    async def execute(self, ctx: CommandContext) -> None:
        try:
            language = Language.parse(ctx.args_raw)
        except ValueError:
            await self.reply_usage(ctx, "/set_lang [en|ru]")
            return
        self.chats.get(ctx.chat_id).language = language
        await self.reply(ctx, self.renderer.render("set_lang", language, new_language=language.value))


class InjectCommand(Command):
    name = "/inject"

    async def execute(self, ctx: CommandContext) -> None:
        text = ctx.args_raw.strip()
        if not text:
            await self.reply_usage(ctx, "/inject <directive text>")
            return
        directive = AdminDirective(
            author=ctx.message.from_user.full_name,
            timestamp=datetime.now(timezone.utc).isoformat(timespec="seconds"),
            text=text,
        )
        chat_state = self.chats.get(ctx.chat_id)
        chat_state.add_injection(directive)
        await self.reply(ctx, self.renderer.render("inject", chat_state.language))


class ToggleInjectCommand(Command):
    name = "/toggle_inject"

    async def execute(self, ctx: CommandContext) -> None:
        chat_state = self.chats.get(ctx.chat_id)
        active = chat_state.toggle_injections()
        template = "toggle_inject_on" if active else "toggle_inject_off"
        await self.reply(ctx, self.renderer.render(template, chat_state.language))


class ClearInjectsCommand(Command):
    name = "/clear_injects"

    async def execute(self, ctx: CommandContext) -> None:
        chat_state = self.chats.get(ctx.chat_id)
        chat_state.clear_injections()
        await self.reply(ctx, self.renderer.render("clear_injects", chat_state.language))


class StatusCommand(Command):
    name = "/status"

    async def execute(self, ctx: CommandContext) -> None:
        chat_state = self.chats.get(ctx.chat_id)
        dump = json.dumps(chat_state.snapshot().summary(), ensure_ascii=False, indent=2)
        await self.reply(ctx, self.renderer.render("status", chat_state.language, state=dump))


COMMAND_TYPES: tuple[type[Command], ...] = (
    HelpCommand,
    SetModeCommand,
    SetLangCommand,
    InjectCommand,
    ToggleInjectCommand,
    ClearInjectsCommand,
    StatusCommand,
)


def build_command_registry(commands: Iterable[Command]) -> dict[str, Command]:
    registry: dict[str, Command] = {}
    for command in commands:
        if command.name in registry:
            raise ValueError(f"duplicate command {command.name}")
        registry[command.name] = command
    return registry


class PermissionGate:
    """Checks command permissions against a fresh administrator list."""

    def __init__(self, client: TelegramClient) -> None:
        self.client = client

    async def is_admin(self, chat_id: int, user_id: int) -> bool:
        admins = await self.client.get_chat_administrators(chat_id)
        return any(member.user.id == user_id and member.status in ADMIN_STATUSES for member in admins)

    async def allows(self, command: Command, message: Message) -> bool:
        if command.permission is PermissionLevel.PUBLIC:
            return True
        return await self.is_admin(message.chat_id, message.from_user.id)
