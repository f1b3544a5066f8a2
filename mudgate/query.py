#!/usr/bin/env python3
"""
The ``main`` function here is wired to the command line tool by name
mudgate-events, for reading the event logs written by mudgate-client::

    mudgate-events recent 20        # most recent parsed events
    mudgate-events chat             # chat messages
    mudgate-events types            # count of events by type
    mudgate-events commands         # commands sent by the user
    mudgate-events replay           # re-parse the logged MUD output
    mudgate-events sessions         # list logged sessions
"""
# std imports
import sys
import json
import argparse
from collections import Counter

# local
from . import accessories
from .store import INCOMING, EventLog, list_sessions
from .events import CHAT_MESSAGE, USER_COMMAND, ROOM_DESCRIPTION
from .parser import DEFAULT_PLAYER_NAME, MessageParser

__all__ = (
    "show_recent",
    "show_chat",
    "show_types",
    "show_commands",
    "replay",
    "main",
)


def _summary(event):
    data = event.data
    if event.event_type == CHAT_MESSAGE:
        return '  {}: "{}"'.format(data.get("speaker"), data.get("message"))
    if event.event_type == USER_COMMAND:
        return "  Command: {}".format(data.get("command"))
    if event.event_type == ROOM_DESCRIPTION:
        return "  Room: {}...\n  Exits: {}".format(
            (data.get("description") or "")[:50], ", ".join(data.get("exits") or [])
        )
    return "  {}...".format(json.dumps(data)[:100])


def show_recent(event_log, limit=10, file=None):
    file = file or sys.stdout
    print(f"=== Recent {limit} Parsed Events ===", file=file)
    for event in reversed(event_log.recent_events(limit)):
        print(f"[{event.timestamp}] {event.event_type}:", file=file)
        print(_summary(event), file=file)


def show_chat(event_log, limit=20, file=None):
    file = file or sys.stdout
    print("=== Chat Messages ===", file=file)
    for event in reversed(event_log.recent_events(limit, event_type=CHAT_MESSAGE)):
        data = event.data
        print("[{}] {} ({}): {}".format(event.timestamp, data.get("speaker"),
                                        data.get("chat_type"), data.get("message")), file=file)


def show_types(event_log, file=None):
    file = file or sys.stdout
    print("=== Event Type Counts ===", file=file)
    for event_type, count in event_log.event_type_counts():
        print(f"{event_type}: {count}", file=file)


def show_commands(event_log, limit=20, file=None):
    file = file or sys.stdout
    print("=== User Commands ===", file=file)
    for event in reversed(event_log.recent_events(limit, event_type=USER_COMMAND)):
        data = event.data
        print("[{}] {}: {}".format(event.timestamp, data.get("player"), data.get("command")),
              file=file)


def replay(event_log, player_name=DEFAULT_PLAYER_NAME, verbose=False, file=None):
    """
    Parse the logged MUD output again with a fresh parser.

    Logged incoming text has had telnet commands removed already, so it is
    parsed as is and gives the events the live connection gave.

    :returns: :class:`collections.Counter` of event types produced.
    """
    file = file or sys.stdout
    parser = MessageParser(player_name=player_name, telnet=False)
    counts = Counter()
    messages = event_log.recent_messages(limit=None, direction=INCOMING)
    for message in messages:
        for event in parser.parse(message["id"], message["content"], message["timestamp"]):
            counts[event.event_type] += 1
            if verbose:
                print(f"--- Message {message['id']} ---", file=file)
                print(f"  Event Type: {event.event_type}", file=file)
                print("  Data: " + json.dumps(event.data, indent=2), file=file)
    print("=== Parser Summary ===", file=file)
    print(f"Messages: {len(messages)}", file=file)
    print(f"Total Events Generated: {sum(counts.values())}", file=file)
    for event_type, count in counts.most_common():
        print(f"  {event_type}: {count}", file=file)
    return counts


def _get_argument_parser():
    parser = argparse.ArgumentParser(
        description="Query mudgate event logs",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument(
        "command",
        nargs="?",
        default="recent",
        choices=("recent", "chat", "types", "commands", "replay", "sessions"),
    )
    parser.add_argument("limit", nargs="?", default=None, type=int,
                        help="number of records shown")
    parser.add_argument("--session", help="event log name, default the only one logged")
    parser.add_argument("--data-dir", help="event log directory, default $XDG_DATA_HOME/mudgate")
    parser.add_argument("--player-name", default=DEFAULT_PLAYER_NAME,
                        help="identity credited with your own speech and actions, for replay")
    parser.add_argument("--verbose", action="store_true", help="show each replayed event")
    parser.add_argument("--loglevel", default="warn", help="log level")
    return parser


def run(argv=None, file=None):
    """Run mudgate-events with *argv*, returning the exit status."""
    args = _get_argument_parser().parse_args(argv)
    log = accessories.make_logger(name="mudgate.query", loglevel=args.loglevel)
    file = file or sys.stdout

    sessions = list_sessions(args.data_dir)
    if args.command == "sessions":
        for name in sessions:
            print(name, file=file)
        return 0

    session = args.session
    if session is None:
        if len(sessions) != 1:
            log.error("choose one of %d logged sessions with --session: %s",
                      len(sessions), ", ".join(sessions) or "(none)")
            return 2
        session = sessions[0]
    event_log = EventLog(session, base_dir=args.data_dir)

    if args.command == "recent":
        show_recent(event_log, args.limit or 10, file=file)
    elif args.command == "chat":
        show_chat(event_log, args.limit or 20, file=file)
    elif args.command == "types":
        show_types(event_log, file=file)
    elif args.command == "commands":
        show_commands(event_log, args.limit or 20, file=file)
    elif args.command == "replay":
        replay(event_log, player_name=args.player_name, verbose=args.verbose, file=file)
    return 0


def main():
    sys.exit(run())


if __name__ == "__main__":
    main()
