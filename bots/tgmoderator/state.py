"""In-memory moderation state shared by every update handler."""

from __future__ import annotations

import json
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable


class Mode(str, Enum):
    """What happens to the author of a flagged message."""

    BAN = "ban"
    NOTIFY = "notify"

    @property
    def label(self) -> str:
        return self.value.capitalize()

    @classmethod
    def parse(cls, value: str) -> "Mode":
        return cls(value.strip().lower())


class Language(str, Enum):
    ENGLISH = "en"
    RUSSIAN = "ru"

    @classmethod
    def parse(cls, value: str) -> "Language":
        normalized = value.strip().lower()
        aliases = {"english": cls.ENGLISH, "russian": cls.RUSSIAN}
        if normalized in aliases:
            return aliases[normalized]
        return cls(normalized)


@dataclass(slots=True, frozen=True)
class AdminDirective:
    """Free-text instruction an admin attached to the classifier prompt."""

    author: str
    timestamp: str
    text: str

    def to_dict(self) -> dict[str, str]:
        return {"author": self.author, "timestamp": self.timestamp, "text": self.text}

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "AdminDirective":
        return cls(
            author=str(payload["author"]),
            timestamp=str(payload["timestamp"]),
            text=str(payload["text"]),
        )


@dataclass(slots=True)
class ChatSnapshot:
    """Plain copy of a ChatState, safe to serialize while the live state moves on."""

    counters: dict[int, int] = field(default_factory=dict)
    released: frozenset[int] = frozenset()
    mode: Mode = Mode.BAN
    language: Language = Language.ENGLISH
    injections_active: bool = False
    injections: tuple[AdminDirective, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "counters": {str(user_id): count for user_id, count in self.counters.items()},
            "released": sorted(self.released),
            "mode": self.mode.value,
            "language": self.language.value,
            "injections_active": self.injections_active,
            "injections": [directive.to_dict() for directive in self.injections],
        }

    def summary(self) -> dict[str, Any]:
        """to_dict with released users counted instead of listed."""
        summary = self.to_dict()
        summary["released"] = len(self.released)
        return summary

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "ChatSnapshot":
        return cls(
            counters={int(user_id): int(count) for user_id, count in payload.get("counters", {}).items()},
            released=frozenset(int(user_id) for user_id in payload.get("released", [])),
            mode=Mode(payload.get("mode", Mode.BAN.value)),
            language=Language(payload.get("language", Language.ENGLISH.value)),
            injections_active=bool(payload.get("injections_active", False)),
            injections=tuple(AdminDirective.from_dict(item) for item in payload.get("injections", [])),
        )


class ChatState:
    """Per-chat settings and quarantine counters.

    Every field has its own lock so that, for example, an admin changing the
    language never waits on message counting in the same chat. Locks are only
    held for in-memory work, never across a network call.
    """

    def __init__(self, snapshot: ChatSnapshot | None = None) -> None:
        snapshot = snapshot or ChatSnapshot()
        self._counters: dict[int, int] = dict(snapshot.counters)
        self._released: set[int] = set(snapshot.released)
        self._counters_lock = threading.Lock()
        self._mode = snapshot.mode
        self._mode_lock = threading.Lock()
        self._language = snapshot.language
        self._language_lock = threading.Lock()
        self._injections_active = snapshot.injections_active
        self._injections_active_lock = threading.Lock()
        self._injections: list[AdminDirective] = list(snapshot.injections)
        self._injections_lock = threading.Lock()

    @property
    def mode(self) -> Mode:
        with self._mode_lock:
            return self._mode

    @mode.setter
    def mode(self, value: Mode) -> None:
        with self._mode_lock:
            self._mode = value

    @property
    def language(self) -> Language:
        with self._language_lock:
            return self._language

    @language.setter
    def language(self, value: Language) -> None:
        with self._language_lock:
            self._language = value

    @property
    def injections_active(self) -> bool:
        with self._injections_active_lock:
            return self._injections_active

    def toggle_injections(self) -> bool:
        """Flip the injection flag and return the new value."""
        with self._injections_active_lock:
            self._injections_active = not self._injections_active
            return self._injections_active

    def add_injection(self, directive: AdminDirective) -> None:
        with self._injections_lock:
            self._injections.append(directive)

    def clear_injections(self) -> None:
        with self._injections_lock:
            self._injections.clear()

    def injections(self) -> tuple[AdminDirective, ...]:
        with self._injections_lock:
            return tuple(self._injections)

    def active_injections(self) -> tuple[AdminDirective, ...]:
        """Directives to include in a classifier prompt; empty while disabled."""
        if not self.injections_active:
            return ()
        return self.injections()

    def admit_message(self, user_id: int, threshold: int) -> int | None:
        """Count a message against the user's quarantine window.

        Returns the message's position inside the window (1..threshold), or
        None when the user already left quarantine. The message that reaches
        the threshold drops the counter and releases the user for good.
        """
        with self._counters_lock:
            if user_id in self._released:
                return None
            count = self._counters.get(user_id, 0) + 1
            if count >= threshold:
                self._counters.pop(user_id, None)
                self._released.add(user_id)
            else:
                self._counters[user_id] = count
            return count

    def forget_user(self, user_id: int) -> None:
        """Drop the counter of a user who has been acted upon."""
        with self._counters_lock:
            self._counters.pop(user_id, None)

    def message_count(self, user_id: int) -> int | None:
        with self._counters_lock:
            return self._counters.get(user_id)

    def is_released(self, user_id: int) -> bool:
        with self._counters_lock:
            return user_id in self._released

    def snapshot(self) -> ChatSnapshot:
        with self._counters_lock:
            counters = dict(self._counters)
            released = frozenset(self._released)
        return ChatSnapshot(
            counters=counters,
            released=released,
            mode=self.mode,
            language=self.language,
            injections_active=self.injections_active,
            injections=self.injections(),
        )


class ChatStateStore:
    """Chat id -> ChatState mapping with atomic lookup-or-create."""

    def __init__(self, states: dict[int, ChatState] | None = None) -> None:
        self._states: dict[int, ChatState] = dict(states or {})
        self._lock = threading.Lock()

    def get(self, chat_id: int) -> ChatState:
        with self._lock:
            state = self._states.get(chat_id)
            if state is None:
                state = self._states[chat_id] = ChatState()
            return state

    def __contains__(self, chat_id: object) -> bool:
        with self._lock:
            return chat_id in self._states

    def __len__(self) -> int:
        with self._lock:
            return len(self._states)

    def snapshot(self) -> dict[int, ChatSnapshot]:
        with self._lock:
            states = list(self._states.items())
        # field locks are taken one chat at a time, outside the map lock
        return {chat_id: state.snapshot() for chat_id, state in states}

    @classmethod
    def from_snapshot(cls, chats: dict[int, ChatSnapshot]) -> "ChatStateStore":
        return cls({chat_id: ChatState(snapshot) for chat_id, snapshot in chats.items()})


class BanListCache:
    """Set of globally banned user ids, replaced only as a whole."""

    def __init__(self, user_ids: Iterable[int] = ()) -> None:
        self._ids: frozenset[int] = frozenset(user_ids)

    def load(self) -> frozenset[int]:
        return self._ids

    def store(self, user_ids: Iterable[int]) -> frozenset[int]:
        # build the full set before the single reference swap
        installed = user_ids if isinstance(user_ids, frozenset) else frozenset(user_ids)
        self._ids = installed
        return installed

    def __contains__(self, user_id: object) -> bool:
        return user_id in self._ids

    def __len__(self) -> int:
        return len(self._ids)


@dataclass(slots=True)
class StateSnapshot:
    """Serializable projection of every ChatState plus the ban list."""

    chats: dict[int, ChatSnapshot] = field(default_factory=dict)
    banned_ids: frozenset[int] = frozenset()

    @classmethod
    def capture(cls, store: ChatStateStore, ban_list: BanListCache) -> "StateSnapshot":
        return cls(chats=store.snapshot(), banned_ids=ban_list.load())

    def restore(self) -> tuple[ChatStateStore, BanListCache]:
        return ChatStateStore.from_snapshot(self.chats), BanListCache(self.banned_ids)

    def to_dict(self) -> dict[str, Any]:
        return {
            "chats": {str(chat_id): chat.to_dict() for chat_id, chat in self.chats.items()},
            "banned_ids": sorted(self.banned_ids),
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "StateSnapshot":
        return cls(
            chats={int(chat_id): ChatSnapshot.from_dict(chat) for chat_id, chat in payload.get("chats", {}).items()},
            banned_ids=frozenset(int(user_id) for user_id in payload.get("banned_ids", [])),
        )

    def serialize(self) -> bytes:
        return json.dumps(self.to_dict(), ensure_ascii=False, separators=(",", ":")).encode("utf-8")

    @classmethod
    def deserialize(cls, raw: bytes) -> "StateSnapshot":
        payload = json.loads(raw.decode("utf-8"))
        if not isinstance(payload, dict):
            raise ValueError("state snapshot must be a JSON object")
        return cls.from_dict(payload)
