"""Durable snapshots of the moderator state."""

from __future__ import annotations

import asyncio
import logging

from .database import Database
from .state import BanListCache, ChatStateStore, StateSnapshot

logger = logging.getLogger(__name__)

STATE_KEY = "service_state"


class PersistenceBridge:
    """Writes the whole state under one key and reads it back at startup."""

    def __init__(self, db: Database, key: str = STATE_KEY) -> None:
        self.db = db
        self.key = key

    def load(self) -> StateSnapshot:
        """Saved snapshot, or an empty one when nothing usable is stored."""
        raw = self.db.get(self.key)
        if raw is None:
            logger.info("No saved state found; starting with defaults")
            return StateSnapshot()
        try:
            snapshot = StateSnapshot.deserialize(raw)
        except (ValueError, KeyError, TypeError, AttributeError) as exc:
            logger.error("Failed to parse saved state: %s. Using defaults.", exc)
            return StateSnapshot()
        logger.info(
            "Loaded state for %d chats and %d banned ids",
            len(snapshot.chats),
            len(snapshot.banned_ids),
        )
        return snapshot

    async def save(self, chats: ChatStateStore, ban_list: BanListCache) -> StateSnapshot:
        # the copy is taken here; live state keeps changing while we write
        snapshot = StateSnapshot.capture(chats, ban_list)
        await asyncio.to_thread(self._write, snapshot)
        logger.debug("Service state saved (%d chats)", len(snapshot.chats))
        return snapshot

    def _write(self, snapshot: StateSnapshot) -> None:
        self.db.put(self.key, snapshot.serialize())
        self.db.flush()

    def close(self) -> None:
        self.db.close()
