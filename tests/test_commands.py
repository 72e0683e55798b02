import json

import pytest

from conftest import ADMIN_ID, CHAT_ID, admin_member, make_message, make_user
from tgmoderator.commands import (
    COMMAND_TYPES,
    ClearInjectsCommand,
    CommandContext,
    HelpCommand,
    InjectCommand,
    PermissionGate,
    PermissionLevel,
    SetLangCommand,
    SetModeCommand,
    StatusCommand,
    ToggleInjectCommand,
    build_command_registry,
)
from tgmoderator.state import AdminDirective, Language, Mode

ADMIN = make_user(ADMIN_ID, "Alice", last_name="Admin")


def _ctx(text, args_raw="", message_id=300):
    return CommandContext(message=make_message(text, user=ADMIN, message_id=message_id), args_raw=args_raw)


def _reply_text(client):
    chat_id, message_id, text = client.reply.await_args.args
    assert chat_id == CHAT_ID
    return text


def test_registry_contains_every_command(client, chats, renderer):
    registry = build_command_registry(cls(client, chats, renderer) for cls in COMMAND_TYPES)

    assert set(registry) == {
        "/help",
        "/set_mode",
        "/set_lang",
        "/inject",
        "/toggle_inject",
        "/clear_injects",
        "/status",
    }
    assert registry["/help"].permission is PermissionLevel.PUBLIC
    assert all(
        command.permission is PermissionLevel.ADMIN for name, command in registry.items() if name != "/help"
    )


def test_registry_rejects_duplicates(client, chats, renderer):
    with pytest.raises(ValueError):
        build_command_registry([HelpCommand(client, chats, renderer), HelpCommand(client, chats, renderer)])


@pytest.mark.asyncio
async def test_help_replies_to_the_command(client, chats, renderer):
    await HelpCommand(client, chats, renderer).execute(_ctx("/help", message_id=301))

    chat_id, message_id, text = client.reply.await_args.args
    assert message_id == 301
    assert "/set_mode" in text


@pytest.mark.asyncio
async def test_set_mode(client, chats, renderer):
    await SetModeCommand(client, chats, renderer).execute(_ctx("/set_mode notify", "notify"))

    assert chats.get(CHAT_ID).mode is Mode.NOTIFY
    assert "Notify" in _reply_text(client)


@pytest.mark.asyncio
@pytest.mark.parametrize("args_raw", ["", "kick", "ban now"])
async def test_set_mode_bad_argument_shows_usage(client, chats, renderer, args_raw):
    await SetModeCommand(client, chats, renderer).execute(_ctx("/set_mode", args_raw))

    assert chats.get(CHAT_ID).mode is Mode.BAN
    assert "/set_mode [ban|notify]" in _reply_text(client)


@pytest.mark.asyncio
async def test_set_lang_answers_in_the_new_language(client, chats, renderer):
    await SetLangCommand(client, chats, renderer).execute(_ctx("/set_lang ru", "ru"))

    assert chats.get(CHAT_ID).language is Language.RUSSIAN
    assert "Язык" in _reply_text(client)


@pytest.mark.asyncio
async def test_set_lang_bad_argument(client, chats, renderer):
    await SetLangCommand(client, chats, renderer).execute(_ctx("/set_lang de", "de"))

    assert chats.get(CHAT_ID).language is Language.ENGLISH
    assert "/set_lang [en|ru]" in _reply_text(client)


@pytest.mark.asyncio
async def test_inject_records_author_and_text(client, chats, renderer):
    await InjectCommand(client, chats, renderer).execute(_ctx("/inject no links", "  no links "))

    (directive,) = chats.get(CHAT_ID).injections()
    assert directive.text == "no links"
    assert directive.author == "Alice Admin"
    assert directive.timestamp.endswith("+00:00")
    client.reply.assert_awaited_once()


@pytest.mark.asyncio
async def test_inject_without_text_shows_usage(client, chats, renderer):
    await InjectCommand(client, chats, renderer).execute(_ctx("/inject", "   "))

    assert chats.get(CHAT_ID).injections() == ()
    assert "/inject" in _reply_text(client)


@pytest.mark.asyncio
async def test_toggle_inject_flips_flag(client, chats, renderer):
    command = ToggleInjectCommand(client, chats, renderer)

    await command.execute(_ctx("/toggle_inject"))
    assert chats.get(CHAT_ID).injections_active is True
    assert "enabled" in _reply_text(client)

    await command.execute(_ctx("/toggle_inject"))
    assert chats.get(CHAT_ID).injections_active is False
    assert "disabled" in _reply_text(client)


@pytest.mark.asyncio
async def test_clear_injects(client, chats, renderer):
    chats.get(CHAT_ID).add_injection(AdminDirective("Alice", "2024-05-01T12:00:00+00:00", "x"))

    await ClearInjectsCommand(client, chats, renderer).execute(_ctx("/clear_injects"))

    assert chats.get(CHAT_ID).injections() == ()
    client.reply.assert_awaited_once()


@pytest.mark.asyncio
async def test_status_dumps_chat_state(client, chats, renderer):
    chat_state = chats.get(CHAT_ID)
    chat_state.mode = Mode.NOTIFY
    chat_state.admit_message(42, 3)

    await StatusCommand(client, chats, renderer).execute(_ctx("/status"))

    text = _reply_text(client)
    body = text.split("<pre>", 1)[1].rsplit("</pre>", 1)[0]
    dumped = json.loads(body.replace("&lt;", "<").replace("&gt;", ">").replace("&amp;", "&"))
    assert dumped["mode"] == "notify"
    assert dumped["counters"] == {"42": 1}


@pytest.mark.asyncio
async def test_permission_gate(client):
    gate = PermissionGate(client)
    client.get_chat_administrators.return_value = (
        admin_member(ADMIN_ID, "administrator"),
        admin_member(8, "creator"),
        admin_member(9, "member"),
    )

    assert await gate.is_admin(CHAT_ID, ADMIN_ID)
    assert await gate.is_admin(CHAT_ID, 8)
    assert not await gate.is_admin(CHAT_ID, 9)
    assert not await gate.is_admin(CHAT_ID, 10)


@pytest.mark.asyncio
async def test_status_stays_short_with_many_released_users(client, chats, renderer):
    chat_state = chats.get(CHAT_ID)
    for user_id in range(1_000_000, 1_001_000):
        chat_state.admit_message(user_id, 1)

    await StatusCommand(client, chats, renderer).execute(_ctx("/status"))

    text = _reply_text(client)
    assert len(text) <= 4096
    assert '"released": 1000' in text
    assert len(chat_state.snapshot().released) == 1000
