"""Shared fixtures for the moderator tests."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from telegram import Chat, Message, Update, User

from tgmoderator.commands import COMMAND_TYPES, PermissionGate, build_command_registry
from tgmoderator.dispatcher import Dispatcher
from tgmoderator.handlers import BanListCheck, QuarantineCheck
from tgmoderator.messages import MessageRenderer
from tgmoderator.prompts import PromptBuilder
from tgmoderator.state import BanListCache, ChatStateStore

CHAT_ID = -1001234567890
ADMIN_ID = 7
SPAMMER_ID = 42

PASS_VERDICT = json.dumps(
    {
        "assessmentOutcome": "PASS",
        "violatedPolicies": [],
        "confidenceScore": 0,
        "suggestedAction": "NO_ACTION",
    }
)
FLAG_VERDICT = json.dumps(
    {
        "assessmentOutcome": "FLAG",
        "primaryReason": "Scam",
        "detailedReasoning": "- promises guaranteed crypto returns",
        "violatedPolicies": ["x"],
        "confidenceScore": 90,
        "suggestedAction": "ADMIN_REVIEW_URGENT",
    }
)


def make_user(
    user_id: int = SPAMMER_ID,
    first_name: str = "Eve",
    *,
    last_name: str | None = None,
    username: str | None = None,
    is_bot: bool = False,
) -> User:
    return User(
        id=user_id,
        first_name=first_name,
        is_bot=is_bot,
        last_name=last_name,
        username=username,
    )


def make_message(
    text: str | None = "hello there",
    *,
    user: User | None = None,
    chat_id: int = CHAT_ID,
    message_id: int = 100,
    caption: str | None = None,
) -> Message:
    return Message(
        message_id=message_id,
        date=datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc),
        chat=Chat(id=chat_id, type=Chat.SUPERGROUP, title="Test group"),
        from_user=user if user is not None else make_user(),
        text=text,
        caption=caption,
    )


def make_update(message: Message | None = None, update_id: int = 1) -> Update:
    return Update(update_id=update_id, message=message)


def admin_member(user_id: int = ADMIN_ID, status: str = "administrator") -> SimpleNamespace:
    return SimpleNamespace(user=SimpleNamespace(id=user_id), status=status)


class FakeClassifier:
    """Returns canned answers in order (the last one repeats) and records prompts."""

    def __init__(self, *responses: str | Exception) -> None:
        self.responses = list(responses) or [PASS_VERDICT]
        self.calls: list[list] = []

    async def chat(self, messages):
        self.calls.append(list(messages))
        response = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(response, Exception):
            raise response
        return response


@pytest.fixture
def client() -> MagicMock:
    client = MagicMock()
    client.username = "modbot"
    client.send_message = AsyncMock()
    client.reply = AsyncMock()
    client.delete_message = AsyncMock(return_value=True)
    client.ban_user = AsyncMock()
    client.get_chat_administrators = AsyncMock(return_value=(admin_member(),))
    return client


@pytest.fixture
def chats() -> ChatStateStore:
    return ChatStateStore()


@pytest.fixture
def ban_list() -> BanListCache:
    return BanListCache()


@pytest.fixture
def renderer() -> MessageRenderer:
    return MessageRenderer()


@pytest.fixture
def classifier() -> FakeClassifier:
    return FakeClassifier(PASS_VERDICT)


@pytest.fixture
def quarantine(client, classifier, chats, renderer) -> QuarantineCheck:
    return QuarantineCheck(client, classifier, chats, PromptBuilder(), renderer, threshold=3)


@pytest.fixture
def dispatcher(client, classifier, chats, ban_list, renderer) -> Dispatcher:
    handlers = [
        BanListCheck(client, chats, ban_list, renderer),
        QuarantineCheck(client, classifier, chats, PromptBuilder(), renderer, threshold=3),
    ]
    commands = build_command_registry(cls(client, chats, renderer) for cls in COMMAND_TYPES)
    return Dispatcher(handlers, commands, PermissionGate(client), bot_username="modbot")


def no_side_effects(client: MagicMock) -> bool:
    return not (
        client.send_message.await_count
        or client.reply.await_count
        or client.delete_message.await_count
        or client.ban_user.await_count
    )
