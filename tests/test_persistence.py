import pytest

from tgmoderator.database import Database
from tgmoderator.persistence import STATE_KEY, PersistenceBridge
from tgmoderator.state import BanListCache, ChatStateStore, Language, StateSnapshot


@pytest.fixture
def db(tmp_path):
    database = Database(tmp_path / "state.sqlite3")
    yield database
    database.close()


def test_database_put_overwrites(db):
    db.put("k", b"one")
    db.put("k", b"two")
    db.flush()

    assert db.get("k") == b"two"
    assert db.get("missing") is None


def test_load_without_saved_state_gives_defaults(db):
    snapshot = PersistenceBridge(db).load()

    assert snapshot == StateSnapshot()


@pytest.mark.parametrize("raw", [b"\x00\xff garbage", b"[]", b'{"chats": {"x": {}}}', b'{"chats": 5}'])
def test_load_with_corrupt_state_gives_defaults(db, raw):
    db.put(STATE_KEY, raw)

    assert PersistenceBridge(db).load() == StateSnapshot()


@pytest.mark.asyncio
async def test_save_then_load_restores_state(db, tmp_path):
    chats = ChatStateStore()
    chats.get(-100).language = Language.RUSSIAN
    chats.get(-100).admit_message(5, 3)

    await PersistenceBridge(db).save(chats, BanListCache([1, 2, 3]))
    db.close()

    reopened = Database(tmp_path / "state.sqlite3")
    try:
        restored_chats, ban_list = PersistenceBridge(reopened).load().restore()
    finally:
        reopened.close()

    assert restored_chats.get(-100).language is Language.RUSSIAN
    assert restored_chats.get(-100).message_count(5) == 1
    assert len(ban_list) == 3
