"""
Per-session persistence of raw MUD traffic and parsed events.

Each session writes two JSON-lines files below
``~/.local/share/mudgate/sessions/{session_key}/``: ``raw_messages.jsonl``
with every chunk received from or sent to the MUD, and
``parsed_events.jsonl`` with every event derived from them.  Files are
append-only; reads return the most recent records.
"""

from __future__ import annotations

# std imports
import os
import json
import logging
from collections import Counter, deque
from datetime import datetime, timezone
from typing import Any, Optional

# local
from .events import ParsedEvent
from .accessories import xdg_data_dir

__all__ = (
    "INCOMING",
    "OUTGOING",
    "EventLog",
    "session_dir",
    "list_sessions",
    "now_iso",
)

INCOMING = "incoming"
OUTGOING = "outgoing"

RAW_MESSAGES = "raw_messages.jsonl"
PARSED_EVENTS = "parsed_events.jsonl"

logger = logging.getLogger("mudgate.store")


def now_iso() -> str:
    """Return the current UTC time as an ISO-8601 string."""
    return datetime.now(timezone.utc).isoformat()


def _safe_key(session_key: str) -> str:
    return "".join(c if c.isalnum() or c in "-_." else "_" for c in session_key)


def session_dir(session_key: str, base_dir: Optional[str] = None) -> str:
    """Return the directory holding the logs of *session_key*."""
    return os.path.join(base_dir or xdg_data_dir(), "sessions", _safe_key(session_key))


def list_sessions(base_dir: Optional[str] = None) -> list[str]:
    """Return the directory names of all logged sessions, sorted."""
    root = os.path.join(base_dir or xdg_data_dir(), "sessions")
    try:
        return sorted(
            name for name in os.listdir(root) if os.path.isdir(os.path.join(root, name))
        )
    except FileNotFoundError:
        return []


def _read_records(path: str) -> list[dict[str, Any]]:
    records = []
    try:
        with open(path, "r", encoding="utf-8") as f:
            for lineno, line in enumerate(f, 1):
                if not line.strip():
                    continue
                try:
                    records.append(json.loads(line))
                except json.JSONDecodeError:
                    # a torn final line is expected after a crash
                    logger.warning("%s:%d: skipping unreadable record", path, lineno)
    except FileNotFoundError:
        pass
    return records


def _check_limit(limit: Optional[int]) -> None:
    if limit is not None and limit < 0:
        raise ValueError("limit must be zero or more, got {}".format(limit))


class EventLog:
    """
    Append-only log of one session's traffic and events.

    :param session_key: Name of the session, used for the directory name.
    :param base_dir: Data directory, defaults to the XDG data directory.
    """

    def __init__(self, session_key: str, base_dir: Optional[str] = None) -> None:
        self.session_key = session_key
        self.path = session_dir(session_key, base_dir)
        self.raw_messages_path = os.path.join(self.path, RAW_MESSAGES)
        self.parsed_events_path = os.path.join(self.path, PARSED_EVENTS)
        self._next_message_id = len(_read_records(self.raw_messages_path)) + 1
        self._next_event_id = len(_read_records(self.parsed_events_path)) + 1

    def __repr__(self) -> str:
        return "<EventLog {!r} path={!r}>".format(self.session_key, self.path)

    def _append(self, path: str, record: dict[str, Any]) -> None:
        os.makedirs(self.path, exist_ok=True)
        with open(path, "a", encoding="utf-8") as f:
            f.write(json.dumps(record, ensure_ascii=False, separators=(",", ":")) + "\n")

    def log_message(self, direction: str, content: str, timestamp: Optional[str] = None) -> int:
        """
        Record a chunk of traffic.

        :param direction: :data:`INCOMING` or :data:`OUTGOING`.
        :param content: Text as received or sent.
        :param timestamp: ISO-8601 time, defaults to now.
        :returns: Record number of the message within this log.
        :raises ValueError: For an unknown *direction*.
        """
        if direction not in (INCOMING, OUTGOING):
            raise ValueError("direction must be {!r} or {!r}: {!r}".format(
                INCOMING, OUTGOING, direction))
        message_id = self._next_message_id
        self._append(
            self.raw_messages_path,
            {
                "id": message_id,
                "session": self.session_key,
                "direction": direction,
                "content": content,
                "timestamp": timestamp or now_iso(),
            },
        )
        self._next_message_id += 1
        return message_id

    def log_event(self, event: ParsedEvent) -> int:
        """Record a parsed event, returning its record number."""
        event_id = self._next_event_id
        record = {"id": event_id, "session": self.session_key}
        record.update(event.to_dict())
        if record["timestamp"] is None:
            record["timestamp"] = now_iso()
        self._append(self.parsed_events_path, record)
        self._next_event_id += 1
        return event_id

    def recent_messages(
        self, limit: Optional[int] = 100, direction: Optional[str] = None
    ) -> list[dict[str, Any]]:
        """Return up to *limit* most recent messages, oldest first; all when *limit* is None."""
        _check_limit(limit)
        records = _read_records(self.raw_messages_path)
        if direction is not None:
            records = [r for r in records if r.get("direction") == direction]
        return list(deque(records, maxlen=limit))

    def recent_events(
        self, limit: Optional[int] = 100, event_type: Optional[str] = None
    ) -> list[ParsedEvent]:
        """Return up to *limit* most recent events, oldest first."""
        _check_limit(limit)
        records = _read_records(self.parsed_events_path)
        if event_type is not None:
            records = [r for r in records if r.get("event_type") == event_type]
        return [ParsedEvent.from_dict(r) for r in deque(records, maxlen=limit)]

    def event_type_counts(self) -> list[tuple[str, int]]:
        """Return ``(event_type, count)`` pairs, most frequent first."""
        counts = Counter(r.get("event_type") for r in _read_records(self.parsed_events_path))
        return counts.most_common()
