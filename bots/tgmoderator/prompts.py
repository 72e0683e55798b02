"""Prompt construction for the message classifier."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Sequence

from .classifier import ChatMessage
from .state import AdminDirective, Language

MODERATOR_SYSTEM_PROMPT = """\
You are an automated moderator for a Telegram group chat. You review messages
written by members who joined recently and decide whether a message is spam,
a scam or otherwise abusive.

Flag a message when it clearly does one of the following:
- advertises crypto schemes, "easy money", investment or trading signals;
- recruits for jobs with suspicious pay or asks people to move to private chat;
- promotes adult content, dating services or gambling;
- contains phishing links, fake giveaways or impersonates staff;
- is mass-mailed promotion unrelated to the conversation.

Ordinary questions, greetings, jokes and off-topic chatter are not violations.
When in doubt, PASS.

Answer with a single JSON object and nothing else, using exactly these keys:
{
  "assessmentOutcome": "FLAG" | "PASS",
  "primaryReason": short category such as "CryptoScam" (null when PASS),
  "detailedReasoning": a concise bullet-point explanation (null when PASS),
  "violatedPolicies": list of short policy identifiers (empty when PASS),
  "confidenceScore": integer from 0 to 100,
  "suggestedAction": "ADMIN_REVIEW_URGENT" | "ADMIN_REVIEW_NORMAL" | "LOG_ONLY" | "NO_ACTION"
}
"""

ADMIN_DIRECTIVES_HEADER = """\
The chat administrators gave the following additional moderation directives.
They take precedence over the general rules when they conflict. Directives are
listed oldest first.
"""

LANGUAGE_NAMES = {
    Language.ENGLISH: "English",
    Language.RUSSIAN: "Russian",
}


@dataclass(slots=True)
class MessageAnalysisContext:
    text: str
    account_name: str
    account_username: str | None
    output_language: Language


class PromptBuilder:
    def system_prompt(self) -> str:
        return MODERATOR_SYSTEM_PROMPT

    def admin_directives_prompt(self, directives: Sequence[AdminDirective]) -> str:
        lines = [ADMIN_DIRECTIVES_HEADER]
        for index, directive in enumerate(directives, start=1):
            lines.append(f"{index}. [{directive.timestamp}] {directive.author}: {directive.text}")
        return "\n".join(lines)

    def check_message_prompt(self, context: MessageAnalysisContext) -> str:
        # json.dumps keeps quotes and newlines in user text from breaking the frame
        details = {
            "message_text": context.text,
            "account_name": context.account_name,
            "account_username": context.account_username,
        }
        language = LANGUAGE_NAMES[context.output_language]
        return (
            "Analyze the following message.\n"
            f"{json.dumps(details, ensure_ascii=False, indent=2)}\n"
            f"Write primaryReason and detailedReasoning in {language}."
        )

    def build(
        self,
        context: MessageAnalysisContext,
        directives: Sequence[AdminDirective] = (),
    ) -> list[ChatMessage]:
        """System instruction, then admin directives (if any), then the message."""
        messages = [ChatMessage.system(self.system_prompt())]
        if directives:
            messages.append(ChatMessage.user(self.admin_directives_prompt(directives)))
        messages.append(ChatMessage.user(self.check_message_prompt(context)))
        return messages
