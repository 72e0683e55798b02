"""Localized user-facing texts (Telegram HTML)."""

from __future__ import annotations

import html
from typing import Any

from . import __version__
from .state import Language

TEMPLATES: dict[Language, dict[str, str]] = {
    Language.ENGLISH: {
        "antispam": (
            "🚫 <b>Anti-spam</b>\n"
            'User <a href="tg://user?id={user_id}">{user_id}</a> was stopped.\n'
            "<b>Reason:</b> {primary_reason}\n\n"
            "{reason_details}"
        ),
        "cas": "The account is listed in the CAS (Combot Anti-Spam) database.",
        "help": (
            "<b>AI anti-spam moderator</b> v{version}\n\n"
            "The first messages of every member are checked by an AI classifier; "
            "accounts from the CAS ban list are removed right away.\n\n"
            "<b>Admin commands</b>\n"
            "/set_mode [ban|notify] - ban spammers or only delete and notify\n"
            "/set_lang [en|ru] - language of bot messages\n"
            "/inject &lt;text&gt; - add a moderation directive for the AI\n"
            "/toggle_inject - enable or disable directives\n"
            "/clear_injects - remove all directives\n"
            "/status - show the chat state\n"
            "/help - this message"
        ),
        "clear_injects": "All admin directives were removed.",
        "command_usage": "Usage: <code>{command_schema}</code>",
        "inject": "Directive saved. It is used while directives are enabled (/toggle_inject).",
        "set_lang": "Language set to <b>{new_language}</b>.",
        "set_mode": "Working mode set to <b>{new_mode}</b>.",
        "toggle_inject_on": "Admin directives are now <b>enabled</b>.",
        "toggle_inject_off": "Admin directives are now <b>disabled</b>.",
        "status": "<b>Chat state</b>\n<pre>{state}</pre>",
    },
    Language.RUSSIAN: {
        "antispam": (
            "🚫 <b>Антиспам</b>\n"
            'Пользователь <a href="tg://user?id={user_id}">{user_id}</a> остановлен.\n'
            "<b>Причина:</b> {primary_reason}\n\n"
            "{reason_details}"
        ),
        "cas": "Аккаунт находится в базе CAS (Combot Anti-Spam).",
        "help": (
            "<b>ИИ-модератор антиспама</b> v{version}\n\n"
            "Первые сообщения каждого участника проверяются ИИ-классификатором; "
            "аккаунты из бан-листа CAS удаляются сразу.\n\n"
            "<b>Команды администраторов</b>\n"
            "/set_mode [ban|notify] - банить спамеров или только удалять и уведомлять\n"
            "/set_lang [en|ru] - язык сообщений бота\n"
            "/inject &lt;текст&gt; - добавить директиву модерации для ИИ\n"
            "/toggle_inject - включить или выключить директивы\n"
            "/clear_injects - удалить все директивы\n"
            "/status - показать состояние чата\n"
            "/help - это сообщение"
        ),
        "clear_injects": "Все директивы администраторов удалены.",
        "command_usage": "Использование: <code>{command_schema}</code>",
        "inject": "Директива сохранена. Она применяется, пока директивы включены (/toggle_inject).",
        "set_lang": "Язык изменён на <b>{new_language}</b>.",
        "set_mode": "Режим работы изменён на <b>{new_mode}</b>.",
        "toggle_inject_on": "Директивы администраторов <b>включены</b>.",
        "toggle_inject_off": "Директивы администраторов <b>выключены</b>.",
        "status": "<b>Состояние чата</b>\n<pre>{state}</pre>",
    },
}


class MessageRenderer:
    """Renders a named template for a chat language; values are HTML-escaped."""

    def __init__(self, templates: dict[Language, dict[str, str]] | None = None) -> None:
        self.templates = templates or TEMPLATES

    def render(self, name: str, language: Language, **values: Any) -> str:
        template = self.templates[language][name]
        values.setdefault("version", __version__)
        escaped = {key: html.escape(str(value), quote=False) for key, value in values.items()}
        return template.format(**escaped)
