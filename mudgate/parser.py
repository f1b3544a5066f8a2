"""
Classification of MUD output into structured events.

:class:`MessageParser` receives one chunk of MUD output at a time, cleans it
(see :mod:`mudgate.cleaner`) and tests it against :data:`RULES`, an ordered
table of ``(event_type, predicate, builder)`` rules.  The first predicate to
match selects the event type, and its builder extracts the event's ``data``.
Output matching no rule becomes an ``unknown`` event, so every chunk with
non-blank content yields exactly one event.

Rule order is significant.  Many triggers overlap: ``"You are in a hallway.
obvious exits: north"`` also begins with ``"You "``, and must be a room
description rather than a player action.
"""

from __future__ import annotations

# std imports
import re
import logging
from typing import Any, Union, Callable, Optional, NamedTuple

# local
from .events import (
    UNKNOWN,
    HELP_TEXT,
    PLAYER_LIST,
    CHAT_MESSAGE,
    LOGIN_SUCCESS,
    PLAYER_ACTION,
    COMMAND_PROMPT,
    URL_SUBMISSION,
    WELCOME_SCREEN,
    SYSTEM_RESPONSE,
    ROOM_DESCRIPTION,
    RawUnit,
    ParsedEvent,
    ParserContext,
)
from .cleaner import clean_content

__all__ = ("MessageParser", "Rule", "RULES", "DEFAULT_PLAYER_NAME", "classify")

#: Identity credited with "You ..." output when the parser is not told
#: which player is connected.
DEFAULT_PLAYER_NAME = "Awwaiid"

HELP_HEADER = "Commands      :"
HELP_SEPARATOR = "-" * 74
PLAYER_LIST_HEADER = "WeeHours LP ::"
PLAYER_LIST_MARKER = "players ::"
WELCOME_MARKERS = ("WEEHOURS LPMUD", "What is your name:", "EEEEEEEEEEE")
URL_ADDED = "URL added to http://weehours.net"

# Detection patterns; the extraction patterns below add capture groups.
_CHAT_TRIGGERS = (
    re.compile(r"You say in \w+:"),
    re.compile(r"\w+ says in \w+:"),
    re.compile(r"\w+ tells you:"),
    re.compile(r"You tell \w+:"),
)
_PLAYER_ACTION_RE = re.compile(r"^You \w+")

# (language, message)
_YOU_SAY_RE = re.compile(r"You say in (\w+): (.+)")
# (speaker, language, message)
_OTHER_SAYS_RE = re.compile(r"(\w+) says in (\w+): (.+)")
# (speaker, message)
_TELLS_YOU_RE = re.compile(r"(\w+) tells you: (.+)")
# (recipient, message)
_YOU_TELL_RE = re.compile(r"You tell (\w+): (.+)")

# (exit list)
_EXITS_RE = re.compile(r"exits:\s*(.+)$")

# (idle time, name, title or None, status)
_IDLE_PLAYER_RE = re.compile(r"^\(idle ([^)]+)\) (\S+)(?:\s+(\([^)]*\)))?\s*(.*)$")
_ACTIVE_PLAYER_RE = re.compile(r"^\w+")


class Rule(NamedTuple):
    """A classification rule: *predicate* selects *event_type*, *build* fills ``data``."""

    event_type: str
    predicate: Callable[[str], bool]
    build: Callable[[str, str], dict[str, Any]]


# Predicates.  Each receives cleaned, untrimmed content.

def is_login_success(content: str) -> bool:
    # also covers the "[<name> has entered the game.]" announcement
    return "entered the game" in content


def is_room_description(content: str) -> bool:
    return "You are in" in content and (
        "obvious exits:" in content or "There are" in content
    )


def is_chat_message(content: str) -> bool:
    return any(pattern.search(content) for pattern in _CHAT_TRIGGERS)


def is_player_list(content: str) -> bool:
    return PLAYER_LIST_HEADER in content and PLAYER_LIST_MARKER in content


def is_player_action(content: str) -> bool:
    return (
        _PLAYER_ACTION_RE.match(content.strip()) is not None
        and "You say" not in content
        and "You are" not in content
    )


def is_help_text(content: str) -> bool:
    return HELP_HEADER in content or HELP_SEPARATOR in content


def is_system_response(content: str) -> bool:
    return classify_system_response(content) != "general"


def is_command_prompt(content: str) -> bool:
    return content.strip() == ">"


def is_welcome_screen(content: str) -> bool:
    return any(marker in content for marker in WELCOME_MARKERS)


def is_url_submission(content: str) -> bool:
    return URL_ADDED in content


def classify_system_response(content: str) -> str:
    """Return the kind of system response *content* is, or ``"general"``."""
    if content.startswith("Syntax:"):
        return "syntax_error"
    if content.strip() == "What?":
        return "unknown_command"
    if "Sorry, no such help topic" in content:
        return "help_not_found"
    if "Changed 'idle' to" in content:
        return "setting_changed"
    return "general"


# Builders.  Each receives cleaned, untrimmed content and the player name.

def build_login_success(content: str, player_name: str) -> dict[str, Any]:
    return {"message": content.strip(), "player_name": player_name}


def build_room_description(content: str, player_name: str) -> dict[str, Any]:
    """
    Split a room description into its parts.

    Lines are read in order.  Until an exits or objects line is seen, lines
    other than the ``You are in ...`` heading are description.  The
    ``obvious exits:`` line gives the comma separated exits.  From a ``There
    is a`` / ``There are`` line on, lines containing a period are objects and
    the rest are NPCs.
    """
    lines = [line.strip() for line in content.split("\n") if line.strip()]
    description: list[str] = []
    exits: list[str] = []
    objects: list[str] = []
    npcs: list[str] = []

    section = "description"
    for line in lines:
        if "obvious exits:" in line:
            section = "exits"
            match = _EXITS_RE.search(line)
            if match:
                exits.extend(
                    name for name in (part.strip() for part in match.group(1).split(",")) if name
                )
            continue
        if "There is a" in line or "There are" in line:
            section = "objects"
        if section == "description":
            if "You are in" not in line:
                description.append(line)
        elif section == "objects":
            (objects if "." in line else npcs).append(line)

    return {
        "description": " ".join(description),
        "exits": exits,
        "objects": objects,
        "npcs": npcs,
        "raw_content": content,
    }


def build_chat_message(content: str, player_name: str) -> dict[str, Any]:
    speaker = message = language = chat_type = None
    you_say = _YOU_SAY_RE.search(content)
    other_says = _OTHER_SAYS_RE.search(content)
    tells_you = _TELLS_YOU_RE.search(content)
    you_tell = _YOU_TELL_RE.search(content)
    if you_say:
        speaker, chat_type = player_name, "say"
        language, message = you_say.groups()
    elif other_says:
        speaker, language, message = other_says.groups()
        chat_type = "say"
    elif tells_you:
        speaker, message = tells_you.groups()
        chat_type, language = "tell", "common"
    elif you_tell:
        message = you_tell.group(2)
        speaker, chat_type, language = player_name, "tell", "common"

    return {
        "speaker": speaker,
        "message": message,
        "language": language,
        "chat_type": chat_type,
        "raw_content": content.strip(),
    }


def parse_player_line(line: str) -> Optional[dict[str, str]]:
    """
    Return a player record for one line of the player list, if it is one.

    ``(idle 5m) Bob (wizard) away`` gives ``name='Bob'``,
    ``idle_time='5m'``, ``title='(wizard)'``, ``status='away'``.  A line of
    two or more words, without ``::`` or ``---``, is an active player: the
    first word is the name and the remainder the title.
    """
    match = _IDLE_PLAYER_RE.match(line)
    if match:
        idle_time, name, title, status = match.groups()
        return {
            "name": name.strip(),
            "idle_time": idle_time,
            "title": title or "",
            "status": (status or "").strip(),
        }
    if _ACTIVE_PLAYER_RE.match(line) and "::" not in line and "---" not in line:
        parts = line.split()
        if len(parts) >= 2:
            return {
                "name": parts[0],
                "idle_time": "active",
                "title": " ".join(parts[1:]),
                "status": "",
            }
    return None


def build_player_list(content: str, player_name: str) -> dict[str, Any]:
    players = [
        player for player in map(parse_player_line, content.split("\n")) if player is not None
    ]
    return {"players": players, "total_players": len(players), "raw_content": content}


def build_player_action(content: str, player_name: str) -> dict[str, Any]:
    return {"action": content.strip(), "player": player_name}


def build_help_text(content: str, player_name: str) -> dict[str, Any]:
    return {"content": content.strip(), "formatted": True}


def build_system_response(content: str, player_name: str) -> dict[str, Any]:
    return {"message": content.strip(), "response_type": classify_system_response(content)}


def build_command_prompt(content: str, player_name: str) -> dict[str, Any]:
    return {"ready_for_input": True}


def build_welcome_screen(content: str, player_name: str) -> dict[str, Any]:
    return {"content": content, "ascii_art": True}


def build_url_submission(content: str, player_name: str) -> dict[str, Any]:
    return {"message": content.strip(), "success": "URL added" in content}


def build_unknown(content: str, player_name: str) -> dict[str, Any]:
    return {"content": content.strip()}


#: Classification rules in priority order.
RULES: tuple[Rule, ...] = (
    Rule(LOGIN_SUCCESS, is_login_success, build_login_success),
    Rule(ROOM_DESCRIPTION, is_room_description, build_room_description),
    Rule(CHAT_MESSAGE, is_chat_message, build_chat_message),
    Rule(PLAYER_LIST, is_player_list, build_player_list),
    Rule(PLAYER_ACTION, is_player_action, build_player_action),
    Rule(HELP_TEXT, is_help_text, build_help_text),
    Rule(SYSTEM_RESPONSE, is_system_response, build_system_response),
    Rule(COMMAND_PROMPT, is_command_prompt, build_command_prompt),
    Rule(WELCOME_SCREEN, is_welcome_screen, build_welcome_screen),
    Rule(URL_SUBMISSION, is_url_submission, build_url_submission),
)
_FALLBACK = Rule(UNKNOWN, lambda content: True, build_unknown)


def classify(content: str) -> Rule:
    """Return the first rule of :data:`RULES` matching cleaned *content*."""
    for rule in RULES:
        if rule.predicate(content):
            return rule
    return _FALLBACK


class MessageParser:
    """
    Per-connection parser of MUD output.

    A parser keeps a :class:`~.ParserContext` between calls, and so must be
    owned by a single connection and called for one message at a time.

    :param str player_name: Identity credited with the connected player's
        own speech and actions.
    :param str encoding: Codec for content given as bytes.
    :param str encoding_errors: Same meaning as :meth:`bytes.decode`.
    :param bool strip_ansi: Remove terminal escape sequences before
        classification.
    :param bool telnet: Remove telnet command sequences.  Disable it to
        parse logged display text, which has had them removed already.
    """

    def __init__(
        self,
        player_name: str = DEFAULT_PLAYER_NAME,
        encoding: str = "utf8",
        encoding_errors: str = "replace",
        strip_ansi: bool = False,
        telnet: bool = True,
    ) -> None:
        self.log = logging.getLogger(__name__)
        self.player_name = player_name
        self.encoding = encoding
        self.encoding_errors = encoding_errors
        self.strip_ansi = strip_ansi
        self.telnet = telnet
        self.context = ParserContext()

    def __repr__(self) -> str:
        return "<{} player_name={!r} last_event_type={!r}>".format(
            type(self).__name__, self.player_name, self.context.last_event_type
        )

    def clean(self, content: Union[str, bytes]) -> str:
        """Return *content* cleaned with this parser's settings."""
        return clean_content(
            content,
            encoding=self.encoding,
            errors=self.encoding_errors,
            strip_ansi=self.strip_ansi,
            telnet=self.telnet,
        )

    def parse(self, id: int, content: Union[str, bytes], timestamp: str) -> list[ParsedEvent]:
        """
        Classify one chunk of MUD output.

        :param int id: Message number assigned by the caller.
        :param content: Raw chunk, as text or bytes.
        :param str timestamp: ISO-8601 arrival time, copied to the event.
        :returns: A list holding one :class:`~.ParsedEvent`, or an empty
            list when *content* is blank once cleaned.
        """
        cleaned = self.clean(content)
        if not cleaned.strip():
            return []

        rule = classify(cleaned)
        event = ParsedEvent(
            event_type=rule.event_type,
            data=rule.build(cleaned, self.player_name),
            raw_message_ids=[id],
            timestamp=timestamp,
        )
        self.log.debug("message %s: %s", id, event.event_type)

        events = [event]
        self._update_context(events)
        return events

    def parse_unit(self, unit: RawUnit) -> list[ParsedEvent]:
        """Same as :meth:`parse`, taking a :class:`~.RawUnit`."""
        return self.parse(unit.id, unit.content, unit.timestamp)

    def _update_context(self, events: list[ParsedEvent]) -> None:
        for event in events:
            self.context.last_event_type = event.event_type
            if event.event_type == ROOM_DESCRIPTION:
                self.context.room_context = event.data
