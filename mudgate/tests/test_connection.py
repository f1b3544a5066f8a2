"""Tests for :mod:`mudgate.connection` against a fake MUD."""

from __future__ import annotations

# std imports
import io
import json
import asyncio

# 3rd party
import pytest

# local
from mudgate.query import replay
from mudgate.store import INCOMING, OUTGOING, EventLog
from mudgate.connection import (
    ERROR,
    LOGIN,
    CONNECTED,
    DISCONNECTED,
    LoginAutomaton,
    MudConnection,
)


class FakeWriter:
    def __init__(self):
        self.buffer = []
        self.closed = False

    def write(self, data):
        self.buffer.append(data)

    async def drain(self):
        pass

    def close(self):
        self.closed = True

    async def wait_closed(self):
        pass


def _connection(data_dir=None, **kwargs):
    kwargs.setdefault("login_delay", 0)
    event_log = EventLog("test", base_dir=data_dir) if data_dir else None
    return MudConnection("test", "127.0.0.1", 0, "bob", "secret", event_log=event_log, **kwargs)


class TestLoginAutomaton:

    def test_sequence(self) -> None:
        login = LoginAutomaton("bob", "secret")
        assert login.feed("Welcome!") is None
        assert login.state == LoginAutomaton.WAITING
        assert login.feed("What is your name: ") == "bob"
        assert login.feed("What is your name: ") is None
        assert login.feed("Password: ") == "secret"
        assert not login.logged_in
        assert login.feed("[Bob has entered the game.]") is None
        assert login.logged_in

    def test_password_before_name_ignored(self) -> None:
        login = LoginAutomaton("bob", "secret")
        assert login.feed("Password: ") is None
        assert login.feed("entered the game") is None
        assert login.state == LoginAutomaton.WAITING


def test_credentials_required() -> None:
    with pytest.raises(ValueError):
        MudConnection("s", "localhost", 2000, "", "secret")
    with pytest.raises(ValueError):
        MudConnection("s", "localhost", 2000, "bob", "")


def test_initial_status() -> None:
    status = _connection().status()
    assert status.session_id == "test"
    assert status.state == DISCONNECTED
    assert status.login_state == LoginAutomaton.WAITING
    assert status.is_connected is False
    assert status.message_count == 0


@pytest.mark.asyncio
async def test_send_command_inactive() -> None:
    with pytest.raises(ConnectionError):
        await _connection().send_command("look")


@pytest.mark.asyncio
async def test_data_received(data_dir) -> None:
    shown, events = [], []
    conn = _connection(
        data_dir,
        on_message=lambda sid, text, outgoing: shown.append((text, outgoing)),
        on_event=lambda sid, event: events.append(event),
    )
    result = await conn.data_received(b"\xff\xfb\x01You hop up and down.\r\n")
    assert [e.event_type for e in result] == ["player_action"]
    assert events == result
    assert shown == [("You hop up and down.\r\n", False)]
    assert conn.message_count == 1
    assert conn.last_activity is not None

    logged = conn.event_log.recent_messages()
    assert [(m["id"], m["direction"]) for m in logged] == [(1, INCOMING)]
    assert result[0].raw_message_ids == [1]
    assert conn.event_log.recent_events() == result


@pytest.mark.asyncio
async def test_data_received_negotiation_only() -> None:
    shown = []
    conn = _connection(on_message=lambda *args: shown.append(args))
    assert await conn.data_received(b"\xff\xfd\x18\xff\xfb\x01") == []
    assert shown == []
    assert conn.message_count == 1


@pytest.mark.asyncio
async def test_login_prompts_answered(data_dir) -> None:
    conn = _connection(data_dir)
    conn._writer = FakeWriter()
    conn.state = LOGIN

    await conn.data_received(b"What is your name: ")
    await conn.data_received(b"Password: ")
    assert conn._writer.buffer == [b"bob\n", b"secret\n"]

    await conn.data_received(b"[Bob has entered the game.]\r\n")
    assert conn.state == CONNECTED
    assert conn.is_connected

    outgoing = conn.event_log.recent_messages(direction=OUTGOING)
    assert [m["content"] for m in outgoing] == ["bob", "********"]


@pytest.mark.asyncio
async def test_send_command(data_dir) -> None:
    shown = []
    conn = _connection(data_dir, on_message=lambda sid, text, outgoing: shown.append(
        (text, outgoing)))
    conn._writer = FakeWriter()
    conn.state = CONNECTED

    event = await conn.send_command("say hello ")
    assert conn._writer.buffer == [b"say hello \n"]
    assert shown == [("say hello ", True)]
    assert event.event_type == "user_command"
    assert event.data == {"command": "say hello", "player": "bob"}
    assert event.raw_message_ids == [1]
    assert conn.event_log.recent_events() == [event]


@pytest.mark.asyncio
async def test_connect_refused() -> None:
    server = await asyncio.start_server(lambda r, w: None, "127.0.0.1", 0)
    port = server.sockets[0].getsockname()[1]
    server.close()
    await server.wait_closed()

    states = []
    conn = MudConnection("test", "127.0.0.1", port, "bob", "secret",
                         on_state_change=lambda sid, status: states.append(status.state))
    with pytest.raises(OSError):
        await conn.connect()
    assert conn.state == ERROR
    assert states[-2:] == ["connecting", ERROR]


@pytest.mark.asyncio
async def test_session_with_fake_mud(data_dir) -> None:
    received = []

    async def fake_mud(reader, writer):
        writer.write(b"\xff\xfb\x01WEEHOURS LPMUD\r\nWhat is your name: ")
        await writer.drain()
        received.append(await reader.readline())
        writer.write(b"Password: ")
        await writer.drain()
        received.append(await reader.readline())
        writer.write(b"[Bob has entered the game.]\r\n")
        await writer.drain()
        received.append(await reader.readline())
        writer.write(b"You are in a small pub.\r\nobvious exits: north, south\r\n")
        await writer.drain()
        writer.close()

    server = await asyncio.start_server(fake_mud, "127.0.0.1", 0)
    port = server.sockets[0].getsockname()[1]

    events = []
    logged_in = asyncio.get_running_loop().create_future()

    def on_state_change(session_id, status):
        if status.state == CONNECTED and not logged_in.done():
            logged_in.set_result(status)

    conn = MudConnection(
        "test", "127.0.0.1", port, "bob", "secret",
        event_log=EventLog("test", base_dir=data_dir),
        on_event=lambda sid, event: events.append(event),
        on_state_change=on_state_change,
        login_delay=0,
    )
    try:
        await conn.connect()
        with pytest.raises(ConnectionError):
            await conn.connect()
        status = await asyncio.wait_for(logged_in, 5)
        assert status.login_state == LoginAutomaton.LOGGED_IN
        assert status.connection_time is not None

        await conn.send_command("look")
        await asyncio.wait_for(conn.wait_closed(), 5)
    finally:
        await conn.disconnect()
        server.close()
        await server.wait_closed()

    assert received == [b"bob\n", b"secret\n", b"look\n"]
    types = [event.event_type for event in events]
    assert types[0] == "welcome_screen"
    assert "login_success" in types
    assert types.index("user_command") < types.index("room_description")
    room = events[types.index("room_description")]
    assert room.data["exits"] == ["north", "south"]
    assert conn.state == DISCONNECTED

    with open(conn.event_log.raw_messages_path, encoding="utf-8") as f:
        assert "secret" not in f.read()


@pytest.mark.asyncio
async def test_disconnect_idempotent() -> None:
    conn = _connection()
    await conn.disconnect()
    assert conn.state == DISCONNECTED


@pytest.mark.asyncio
async def test_read_loop_survives_callback_error(caplog) -> None:
    seen = []

    def on_event(sid, event):
        seen.append(event.event_type)
        if len(seen) == 1:
            raise RuntimeError("display gone")

    conn = _connection(on_event=on_event)
    conn._reader = asyncio.StreamReader()
    conn._writer = FakeWriter()
    conn.state = CONNECTED
    task = asyncio.ensure_future(conn._read_loop())

    conn._reader.feed_data(b"You hop.\r\n")
    while conn.message_count < 1:
        await asyncio.sleep(0)
    conn._reader.feed_data(b"What?\r\n")
    conn._reader.feed_eof()
    await asyncio.wait_for(task, 1)

    assert seen == ["player_action", "system_response"]
    assert "error processing MUD output" in caplog.text
    assert conn.state == DISCONNECTED
    assert conn._writer.closed


@pytest.mark.asyncio
async def test_replay_matches_live(data_dir) -> None:
    conn = _connection(data_dir)
    live = await conn.data_received("Bob says in common: caf\u00ff is ok\r\n".encode())
    assert live[0].data["message"] == "caf\u00ff is ok"

    out = io.StringIO()
    counts = replay(conn.event_log, verbose=True, file=out)
    assert counts == {"chat_message": 1}
    assert "  Data: " + json.dumps(live[0].data, indent=2) in out.getvalue()
