"""
User sessions and their MUD connections.

:class:`SessionManager` keeps the sessions of the gateway's users and at most
one :class:`~.MudConnection` per session.  Each connection has its own parser
and event log; nothing that holds per-connection state is shared between
sessions.
"""

from __future__ import annotations

# std imports
import time
import asyncio
import logging
import secrets
from typing import Any, Optional
from dataclasses import field, dataclass

# local
from .store import EventLog
from .events import ParsedEvent
from .parser import DEFAULT_PLAYER_NAME
from .connection import ERROR, DISCONNECTED, LoginAutomaton, MudConnection, ConnectionStatus

__all__ = ("UserSession", "SessionManager", "DEFAULT_SESSION_LIFETIME")

#: Sessions expire one day after creation.
DEFAULT_SESSION_LIFETIME = 24 * 60 * 60

logger = logging.getLogger("mudgate.sessions")


@dataclass
class UserSession:
    """A gateway user's session and the MUD account it plays."""

    id: str
    username: str
    password: str = field(repr=False)
    host: str
    port: int
    created_at: float = field(default_factory=time.time)
    expires_at: float = 0.0
    last_activity: float = field(default_factory=time.time)
    active: bool = True

    def is_expired(self, now: Optional[float] = None) -> bool:
        return not self.active or (now or time.time()) >= self.expires_at


class SessionManager:
    """
    Registry of user sessions and their MUD connections.

    Each connection's parser credits the player's own speech and actions to
    ``player_name`` (passed in *connection_kwargs*, default
    :data:`~.DEFAULT_PLAYER_NAME`), while ``user_command`` events name the
    session's MUD username.  Unless ``player_name`` is set to match, one
    session's log shows the same player under two names.

    :param str host: Default MUD host for new sessions.
    :param int port: Default MUD port for new sessions.
    :param str base_dir: Data directory for event logs, defaults to the XDG
        data directory.
    :param connection_kwargs: Passed to each :class:`~.MudConnection`.
    """

    def __init__(self, host: str, port: int, base_dir: Optional[str] = None,
                 **connection_kwargs: Any) -> None:
        self.host, self.port = host, port
        self.base_dir = base_dir
        self.connection_kwargs = connection_kwargs
        self._sessions: dict[str, UserSession] = {}
        self._connections: dict[str, MudConnection] = {}

    @staticmethod
    def generate_session_id() -> str:
        return secrets.token_hex(32)

    def create_session(
        self,
        username: str,
        password: str,
        host: Optional[str] = None,
        port: Optional[int] = None,
        lifetime: float = DEFAULT_SESSION_LIFETIME,
    ) -> str:
        """Create a session for a MUD account, returning its id."""
        if not username or not password:
            raise ValueError("MUD credentials are required for a session")
        session_id = self.generate_session_id()
        now = time.time()
        self._sessions[session_id] = UserSession(
            id=session_id,
            username=username,
            password=password,
            host=host or self.host,
            port=port or self.port,
            created_at=now,
            expires_at=now + lifetime,
            last_activity=now,
        )
        logger.info("session %s created for %s", session_id[:8], username)
        return session_id

    def get_session(self, session_id: str) -> Optional[UserSession]:
        """Return the live session *session_id*, updating its last activity."""
        session = self._sessions.get(session_id)
        if session is None or session.is_expired():
            return None
        session.last_activity = time.time()
        return session

    def get_session_by_username(self, username: str) -> Optional[UserSession]:
        for session in self._sessions.values():
            if session.username == username and not session.is_expired():
                session.last_activity = time.time()
                return session
        return None

    def is_valid_session(self, session_id: str) -> bool:
        return self.get_session(session_id) is not None

    async def invalidate_session(self, session_id: str) -> None:
        """Disconnect and deactivate session *session_id*."""
        await self.disconnect_mud(session_id)
        session = self._sessions.get(session_id)
        if session is not None:
            session.active = False

    def event_log(self, session_id: str) -> EventLog:
        return EventLog(session_id, base_dir=self.base_dir)

    async def connect_mud(self, session_id: str, on_message=None, on_event=None,
                          on_state_change=None) -> MudConnection:
        """
        Open the MUD connection of session *session_id*.

        :raises ValueError: For an unknown or expired session.
        :raises ConnectionError: When the session is already connected.
        """
        session = self.get_session(session_id)
        if session is None:
            raise ValueError("Invalid session ID")
        existing = self._connections.get(session_id)
        if existing is not None:
            if existing.state not in (DISCONNECTED, ERROR):
                raise ConnectionError("User already has an active MUD connection")
            # closed by the MUD; replace it
            await self.disconnect_mud(session_id)

        kwargs = dict(self.connection_kwargs)
        kwargs.setdefault("player_name", DEFAULT_PLAYER_NAME)
        connection = MudConnection(
            session_id,
            session.host,
            session.port,
            session.username,
            session.password,
            event_log=self.event_log(session_id),
            on_message=on_message,
            on_event=on_event,
            on_state_change=on_state_change,
            **kwargs,
        )
        await connection.connect()
        self._connections[session_id] = connection
        return connection

    async def disconnect_mud(self, session_id: str) -> None:
        connection = self._connections.pop(session_id, None)
        if connection is not None:
            await connection.disconnect()

    async def send_mud_command(self, session_id: str, command: str) -> ParsedEvent:
        """
        Send *command* on the MUD connection of *session_id*.

        :raises ConnectionError: When the session has no MUD connection.
        """
        connection = self._connections.get(session_id)
        if connection is None:
            raise ConnectionError("No active MUD connection for this session")
        return await connection.send_command(command)

    def get_mud_connection(self, session_id: str) -> Optional[MudConnection]:
        return self._connections.get(session_id)

    def active_connections(self) -> list[str]:
        return list(self._connections)

    def connection_status(self, session_id: str) -> ConnectionStatus:
        connection = self._connections.get(session_id)
        if connection is None:
            return ConnectionStatus(
                session_id=session_id,
                state=DISCONNECTED,
                login_state=LoginAutomaton.WAITING,
                is_connected=False,
                connection_time=None,
                last_activity=None,
                message_count=0,
            )
        return connection.status()

    def recent_messages(self, session_id: str, limit: int = 100) -> list[dict[str, Any]]:
        return self.event_log(session_id).recent_messages(limit)

    def recent_events(self, session_id: str, limit: int = 100) -> list[ParsedEvent]:
        return self.event_log(session_id).recent_events(limit)

    async def cleanup_expired_sessions(self) -> list[str]:
        """Disconnect and forget expired sessions, returning their ids."""
        now = time.time()
        expired = [sid for sid, s in self._sessions.items() if s.is_expired(now)]
        for session_id in expired:
            await self.disconnect_mud(session_id)
            del self._sessions[session_id]
        if expired:
            logger.info("cleaned up %d expired sessions", len(expired))
        return expired

    async def close(self) -> None:
        """Disconnect all MUD connections."""
        logger.info("closing %d active MUD connections", len(self._connections))
        connections = list(self._connections.values())
        self._connections.clear()
        await asyncio.gather(*(conn.disconnect() for conn in connections))
