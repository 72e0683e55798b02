"""Moderation checks run, in order, on every incoming message."""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from enum import Enum

from telegram import Message
from telegram.error import TelegramError

from .classifier import ChatProvider, ClassifierError
from .messages import MessageRenderer
from .prompts import MessageAnalysisContext, PromptBuilder
from .report import AnalysisReport, MalformedVerdict, parse_report
from .state import BanListCache, ChatState, ChatStateStore, Language, Mode
from .telegram_client import TelegramClient

logger = logging.getLogger(__name__)

QUARANTINED_MESSAGES = 3


class HandlerResult(Enum):
    CONTINUE = "continue"
    BREAK = "break"


class UpdateHandler(ABC):
    """One link of the moderation chain.

    BREAK means the message has been dealt with and nothing after this
    handler (including command dispatch) should see it.
    """

    @abstractmethod
    async def handle(self, message: Message) -> HandlerResult: ...


async def ban_sender(client: TelegramClient, chat_id: int, user_id: int) -> bool:
    try:
        await client.ban_user(chat_id, user_id)
    except TelegramError as exc:
        # usually the user already left or was removed by someone else
        logger.warning("Could not ban user %s in chat %s: %s", user_id, chat_id, exc)
        return False
    return True


class BanListCheck(UpdateHandler):
    """Removes senders found in the CAS ban list."""

    def __init__(
        self,
        client: TelegramClient,
        chats: ChatStateStore,
        ban_list: BanListCache,
        renderer: MessageRenderer,
    ) -> None:
        self.client = client
        self.chats = chats
        self.ban_list = ban_list
        self.renderer = renderer

    async def handle(self, message: Message) -> HandlerResult:
        user_id = message.from_user.id
        if user_id not in self.ban_list:
            return HandlerResult.CONTINUE

        chat_id = message.chat_id
        logger.info("CAS-banning user %s in chat %s", user_id, chat_id)
        chat_state = self.chats.get(chat_id)
        chat_state.forget_user(user_id)

        await ban_sender(self.client, chat_id, user_id)
        await self.client.delete_message(chat_id, message.message_id)

        language = chat_state.language
        text = self.renderer.render(
            "antispam",
            language,
            user_id=user_id,
            primary_reason="CAS Ban",
            reason_details=self.renderer.render("cas", language),
        )
        await self.client.send_message(chat_id, text)
        return HandlerResult.BREAK


class QuarantineCheck(UpdateHandler):
    """Sends the first messages of every member to the classifier.

    Classifier failures of any kind let the message through.
    """

    def __init__(
        self,
        client: TelegramClient,
        classifier: ChatProvider,
        chats: ChatStateStore,
        prompts: PromptBuilder,
        renderer: MessageRenderer,
        *,
        threshold: int = QUARANTINED_MESSAGES,
        classifier_timeout: float | None = None,
    ) -> None:
        self.client = client
        self.classifier = classifier
        self.chats = chats
        self.prompts = prompts
        self.renderer = renderer
        self.threshold = threshold
        self.classifier_timeout = classifier_timeout

    async def analyze(self, message: Message, chat_state: ChatState, language: Language) -> AnalysisReport:
        user = message.from_user
        context = MessageAnalysisContext(
            text=message.text or message.caption or "",
            account_name=user.full_name,
            account_username=user.username,
            output_language=language,
        )
        conversation = self.prompts.build(context, chat_state.active_injections())
        raw = await asyncio.wait_for(self.classifier.chat(conversation), self.classifier_timeout)
        return parse_report(raw)

    async def handle(self, message: Message) -> HandlerResult:
        user_id = message.from_user.id
        chat_id = message.chat_id
        chat_state = self.chats.get(chat_id)

        position = chat_state.admit_message(user_id, self.threshold)
        if position is None:
            return HandlerResult.CONTINUE
        logger.debug(
            "User %s in chat %s is in quarantine (message %d/%d)",
            user_id,
            chat_id,
            position,
            self.threshold,
        )
        if not (message.text or message.caption):
            return HandlerResult.CONTINUE

        language = chat_state.language
        try:
            report = await self.analyze(message, chat_state, language)
        except MalformedVerdict as exc:
            logger.warning("Ignoring malformed verdict for user %s in chat %s: %s", user_id, chat_id, exc)
            return HandlerResult.CONTINUE
        except ClassifierError as exc:
            logger.warning("Classifier failed for user %s in chat %s: %s", user_id, chat_id, exc)
            return HandlerResult.CONTINUE
        except asyncio.TimeoutError:
            logger.warning(
                "Classifier timed out after %ss for user %s in chat %s",
                self.classifier_timeout,
                user_id,
                chat_id,
            )
            return HandlerResult.CONTINUE

        if not report.flagged:
            return HandlerResult.CONTINUE

        logger.info(
            "AI flagged message from user %s in chat %s: %s (confidence %d, suggested %s)",
            user_id,
            chat_id,
            report.primary_reason,
            report.confidence_score,
            report.suggested_action.value,
        )
        if chat_state.mode is Mode.BAN:
            chat_state.forget_user(user_id)
            await ban_sender(self.client, chat_id, user_id)
        await self.client.delete_message(chat_id, message.message_id)

        text = self.renderer.render(
            "antispam",
            language,
            user_id=user_id,
            primary_reason=report.primary_reason,
            reason_details=report.detailed_reasoning,
        )
        await self.client.send_message(chat_id, text)
        return HandlerResult.BREAK
