"""Event types and records exchanged between the parser and its callers."""

from __future__ import annotations

# std imports
from typing import Any, Optional
from dataclasses import field, asdict, dataclass

__all__ = (
    "LOGIN_SUCCESS",
    "ROOM_DESCRIPTION",
    "CHAT_MESSAGE",
    "PLAYER_LIST",
    "PLAYER_ACTION",
    "HELP_TEXT",
    "SYSTEM_RESPONSE",
    "COMMAND_PROMPT",
    "WELCOME_SCREEN",
    "URL_SUBMISSION",
    "UNKNOWN",
    "USER_COMMAND",
    "EVENT_TYPES",
    "RawUnit",
    "ParsedEvent",
    "ParserContext",
)

LOGIN_SUCCESS = "login_success"
ROOM_DESCRIPTION = "room_description"
CHAT_MESSAGE = "chat_message"
PLAYER_LIST = "player_list"
PLAYER_ACTION = "player_action"
HELP_TEXT = "help_text"
SYSTEM_RESPONSE = "system_response"
COMMAND_PROMPT = "command_prompt"
WELCOME_SCREEN = "welcome_screen"
URL_SUBMISSION = "url_submission"
UNKNOWN = "unknown"

#: Not produced by the parser: recorded for commands sent by the user.
USER_COMMAND = "user_command"

#: Every type the parser may produce, in classification order.
EVENT_TYPES = (
    LOGIN_SUCCESS,
    ROOM_DESCRIPTION,
    CHAT_MESSAGE,
    PLAYER_LIST,
    PLAYER_ACTION,
    HELP_TEXT,
    SYSTEM_RESPONSE,
    COMMAND_PROMPT,
    WELCOME_SCREEN,
    URL_SUBMISSION,
    UNKNOWN,
)


@dataclass
class RawUnit:
    """
    One chunk of MUD output as delivered by the connection.

    :param id: Message number, increasing per connection.
    :param content: Raw text or bytes, not yet cleaned.
    :param timestamp: ISO-8601 time of arrival.
    """

    id: int
    content: Any
    timestamp: str


@dataclass
class ParsedEvent:
    """A classified unit of MUD output."""

    event_type: str
    data: dict[str, Any]
    raw_message_ids: list[int] = field(default_factory=list)
    timestamp: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-compatible mapping of this event."""
        return asdict(self)

    @classmethod
    def from_dict(cls, record: dict[str, Any]) -> "ParsedEvent":
        """Rebuild an event from a mapping made by :meth:`to_dict`."""
        return cls(
            event_type=record["event_type"],
            data=dict(record.get("data", {})),
            raw_message_ids=list(record.get("raw_message_ids", [])),
            timestamp=record.get("timestamp"),
        )


@dataclass
class ParserContext:
    """
    State a :class:`~.MessageParser` carries from one message to the next.

    :param last_event_type: Type of the most recently produced event.
    :param room_context: ``data`` of the most recent room description.
    """

    last_event_type: Optional[str] = None
    room_context: Optional[dict[str, Any]] = None
