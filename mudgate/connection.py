"""
A logged, parsed connection from the gateway to the MUD on behalf of one user.

:class:`MudConnection` owns the socket, a :class:`~.LoginAutomaton` that
answers the MUD's login prompts, a :class:`~.MessageParser` and, optionally,
an :class:`~.EventLog`.  Every chunk read from the MUD is logged, parsed, and
handed to the connection's callbacks together with the resulting events.
"""

from __future__ import annotations

# std imports
import asyncio
import logging
import contextlib
from typing import Any, Callable, Optional, NamedTuple

# local
from .store import INCOMING, OUTGOING, EventLog, now_iso
from .events import USER_COMMAND, ParsedEvent
from .parser import DEFAULT_PLAYER_NAME, MessageParser
from .telopt import name_commands
from .cleaner import strip_telnet, telnet_commands

__all__ = (
    "DISCONNECTED",
    "CONNECTING",
    "LOGIN",
    "CONNECTED",
    "ERROR",
    "ConnectionStatus",
    "LoginAutomaton",
    "MudConnection",
)

# connection states
DISCONNECTED = "disconnected"
CONNECTING = "connecting"
LOGIN = "login"
CONNECTED = "connected"
ERROR = "error"


class ConnectionStatus(NamedTuple):
    """Snapshot of a :class:`MudConnection`, as given to state callbacks."""

    session_id: str
    state: str
    login_state: str
    is_connected: bool
    connection_time: Optional[str]
    last_activity: Optional[str]
    message_count: int


class LoginAutomaton:
    """
    Answers the MUD's login prompts with the session's credentials.

    The automaton moves through ``waiting``, ``username``, ``password`` and
    ``logged_in``.  :meth:`feed` is given each chunk of MUD output and
    returns the line to send in reply, if any.
    """

    WAITING = "waiting"
    USERNAME = "username"
    PASSWORD = "password"
    LOGGED_IN = "logged_in"

    NAME_PROMPT = "What is your name:"
    PASSWORD_PROMPT = "Password:"
    ENTERED = "entered the game"

    def __init__(self, username: str, password: str) -> None:
        self.username = username
        self.password = password
        self.state = self.WAITING

    @property
    def logged_in(self) -> bool:
        return self.state == self.LOGGED_IN

    def feed(self, text: str) -> Optional[str]:
        if self.state == self.WAITING and self.NAME_PROMPT in text:
            self.state = self.USERNAME
            return self.username
        if self.state == self.USERNAME and self.PASSWORD_PROMPT in text:
            self.state = self.PASSWORD
            return self.password
        if self.state == self.PASSWORD and self.ENTERED in text:
            self.state = self.LOGGED_IN
        return None


Callback = Optional[Callable[..., Any]]


class MudConnection:
    """
    Connection to the MUD for one user session.

    :param str session_id: Key of the owning session.
    :param str host: MUD host name.
    :param int port: MUD TCP port.
    :param str username: MUD character name, sent at the name prompt.
    :param str password: MUD password, sent at the password prompt.
    :param EventLog event_log: Where traffic and events are recorded.
    :param str player_name: Identity the parser credits with this player's
        own speech and actions.
    :param on_message: Called as ``on_message(session_id, text, outgoing)``
        for each chunk of display text received and each command sent.
    :param on_event: Called as ``on_event(session_id, event)`` for each
        :class:`~.ParsedEvent`.
    :param on_state_change: Called as ``on_state_change(session_id,
        status)`` with a :class:`ConnectionStatus`.
    :param float connect_timeout: Seconds to wait for the TCP connection.
    :param float login_delay: Seconds to wait before answering a login
        prompt.
    :raises ValueError: When *username* or *password* is empty.
    """

    def __init__(
        self,
        session_id: str,
        host: str,
        port: int,
        username: str,
        password: str,
        *,
        event_log: Optional[EventLog] = None,
        player_name: str = DEFAULT_PLAYER_NAME,
        on_message: Callback = None,
        on_event: Callback = None,
        on_state_change: Callback = None,
        encoding: str = "utf8",
        encoding_errors: str = "replace",
        strip_ansi: bool = False,
        connect_timeout: float = 10.0,
        login_delay: float = 0.5,
        read_size: int = 2**12,
    ) -> None:
        if not username or not password:
            raise ValueError("MUD credentials are required for connection")
        self.log = logging.getLogger("mudgate.connection")
        self.session_id = session_id
        self.host, self.port = host, port
        self.username = username
        self.event_log = event_log
        self.encoding = encoding
        self.encoding_errors = encoding_errors
        self.connect_timeout = connect_timeout
        self.login_delay = login_delay
        self.read_size = read_size
        self.on_message = on_message
        self.on_event = on_event
        self.on_state_change = on_state_change

        self.parser = MessageParser(
            player_name=player_name,
            encoding=encoding,
            encoding_errors=encoding_errors,
            strip_ansi=strip_ansi,
        )
        self.login = LoginAutomaton(username, password)
        self.state = DISCONNECTED
        self.message_count = 0
        self.connection_time: Optional[str] = None
        self.last_activity: Optional[str] = None
        self._reader: Optional[asyncio.StreamReader] = None
        self._writer: Optional[asyncio.StreamWriter] = None
        self._reader_task: Optional[asyncio.Task] = None

    def __repr__(self) -> str:
        return "<MudConnection {} {}:{} state={}>".format(
            self.session_id, self.host, self.port, self.state
        )

    @property
    def is_connected(self) -> bool:
        return self.state == CONNECTED

    def status(self) -> ConnectionStatus:
        """Return a :class:`ConnectionStatus` snapshot."""
        return ConnectionStatus(
            session_id=self.session_id,
            state=self.state,
            login_state=self.login.state,
            is_connected=self.is_connected,
            connection_time=self.connection_time,
            last_activity=self.last_activity,
            message_count=self.message_count,
        )

    def _set_state(self, state: str) -> None:
        if state != self.state:
            self.log.info("%s: %s -> %s", self.session_id, self.state, state)
        self.state = state
        self._notify_state()

    def _notify_state(self) -> None:
        if self.on_state_change is not None:
            self.on_state_change(self.session_id, self.status())

    async def connect(self) -> None:
        """
        Open the connection and start reading from the MUD.

        :raises ConnectionError: When already connecting or connected.
        :raises asyncio.TimeoutError: When the MUD does not answer within
            ``connect_timeout`` seconds.
        :raises OSError: When the connection is refused or fails.
        """
        if self.state not in (DISCONNECTED, ERROR):
            raise ConnectionError("Connection is already active or connecting")
        self._set_state(CONNECTING)
        self.log.info("%s: connecting to %s:%s", self.session_id, self.host, self.port)
        try:
            self._reader, self._writer = await asyncio.wait_for(
                asyncio.open_connection(self.host, self.port), self.connect_timeout
            )
        except (OSError, asyncio.TimeoutError) as err:
            self.log.warning("%s: connection to %s:%s failed: %r",
                             self.session_id, self.host, self.port, err)
            self._set_state(ERROR)
            raise
        self.connection_time = now_iso()
        self._set_state(LOGIN)
        self._reader_task = asyncio.ensure_future(self._read_loop())

    async def _read_loop(self) -> None:
        try:
            while True:
                data = await self._reader.read(self.read_size)
                if not data:
                    self.log.info("%s: EOF from MUD", self.session_id)
                    break
                try:
                    await self.data_received(data)
                except OSError:
                    raise
                except Exception:
                    # reading continues with the next chunk
                    self.log.exception("%s: error processing MUD output", self.session_id)
        except OSError as err:
            self.log.warning("%s: connection lost: %r", self.session_id, err)
            self._set_state(ERROR)
            return
        self._writer.close()
        self.connection_time = None
        self._set_state(DISCONNECTED)

    async def data_received(self, data: bytes) -> list[ParsedEvent]:
        """
        Process one chunk of MUD output.

        The chunk is shown to ``on_message`` without telnet commands, answered
        if it is a login prompt, logged, and parsed.

        :returns: Events parsed from *data*.
        """
        self.message_count += 1
        self.last_activity = now_iso()
        timestamp = self.last_activity

        commands = telnet_commands(data)
        if commands:
            self.log.debug("%s: telnet: %s", self.session_id,
                           ", ".join(name_commands(cmd) for cmd in commands))

        display = self._decode(bytes(strip_telnet(data)))
        if display and self.on_message is not None:
            self.on_message(self.session_id, display, False)

        await self._handle_login(display)

        message_id = self.message_count
        if self.event_log is not None:
            message_id = self.event_log.log_message(INCOMING, display, timestamp)

        events = self.parser.parse(message_id, data, timestamp)
        for event in events:
            self._record_event(event)
        self._notify_state()
        return events

    def _decode(self, data: bytes) -> str:
        try:
            return data.decode(self.encoding, self.encoding_errors)
        except UnicodeDecodeError:
            return data.decode(self.encoding, "replace")

    async def _handle_login(self, text: str) -> None:
        was_logged_in = self.login.logged_in
        reply = self.login.feed(text)
        if reply is not None:
            await asyncio.sleep(self.login_delay)
            masked = reply if self.login.state == LoginAutomaton.USERNAME else "********"
            self.log.debug("%s: login prompt answered: %s", self.session_id, masked)
            self._write_line(reply)
            if self.event_log is not None:
                self.event_log.log_message(OUTGOING, masked)
        elif self.login.logged_in and not was_logged_in:
            self._set_state(CONNECTED)

    def _record_event(self, event: ParsedEvent) -> None:
        if self.event_log is not None:
            self.event_log.log_event(event)
        if self.on_event is not None:
            self.on_event(self.session_id, event)

    def _write_line(self, line: str) -> None:
        self._writer.write((line + "\n").encode(self.encoding, self.encoding_errors))

    async def send_command(self, command: str) -> ParsedEvent:
        """
        Send a line of input to the MUD.

        :returns: The ``user_command`` event recorded for it.
        :raises ConnectionError: When the connection is not active.
        """
        if self.state in (DISCONNECTED, ERROR) or self._writer is None:
            raise ConnectionError("Connection is not active")
        self._write_line(command)
        await self._writer.drain()
        self.last_activity = now_iso()

        if self.on_message is not None:
            self.on_message(self.session_id, command, True)

        message_id = 0
        if self.event_log is not None:
            message_id = self.event_log.log_message(OUTGOING, command, self.last_activity)
        event = ParsedEvent(
            event_type=USER_COMMAND,
            data={"command": command.strip(), "player": self.username},
            raw_message_ids=[message_id] if message_id else [],
            timestamp=self.last_activity,
        )
        self._record_event(event)
        return event

    async def wait_closed(self) -> None:
        """Wait until the MUD closes the connection."""
        if self._reader_task is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await self._reader_task

    async def disconnect(self) -> None:
        """Close the connection, if open."""
        if self._reader_task is not None and not self._reader_task.done():
            self._reader_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._reader_task
        self._reader_task = None
        if self._writer is not None:
            self._writer.close()
            with contextlib.suppress(OSError):
                await self._writer.wait_closed()
            self._writer = self._reader = None
        self.connection_time = None
        if self.state != DISCONNECTED:
            self._set_state(DISCONNECTED)
