#!/usr/bin/env python3
"""
The ``main`` function here is wired to the command line tool by name
mudgate-client.  It connects one session to a MUD, answers the login
prompts, writes each parsed event to standard output as a line of JSON, and
sends each line read from standard input to the MUD as a command.
"""
# std imports
import os
import sys
import json
import asyncio
import argparse
import collections

# local
from . import accessories
from .store import EventLog
from .parser import DEFAULT_PLAYER_NAME
from .connection import MudConnection

__all__ = ("run_client", "main")

CONFIG = collections.namedtuple(
    "CONFIG",
    [
        "host",
        "port",
        "loglevel",
        "logfile",
        "logfmt",
        "encoding",
        "encoding_errors",
        "connect_timeout",
        "login_delay",
        "player_name",
        "data_dir",
    ],
)(
    host="weehours.net",
    port=2000,
    loglevel="warn",
    logfile=None,
    logfmt=accessories._DEFAULT_LOGFMT,
    encoding="utf8",
    encoding_errors="replace",
    connect_timeout=10.0,
    login_delay=0.5,
    player_name=DEFAULT_PLAYER_NAME,
    data_dir=None,
)


def print_event(session_id, event, file=None):
    """Write *event* to *file* (default stdout) as one line of JSON."""
    record = {"session": session_id}
    record.update(event.to_dict())
    print(json.dumps(record, ensure_ascii=False), file=file or sys.stdout, flush=True)


async def _open_stdin():
    loop = asyncio.get_running_loop()
    reader = asyncio.StreamReader()
    protocol = asyncio.StreamReaderProtocol(reader)
    await loop.connect_read_pipe(lambda: protocol, sys.stdin)
    return reader


async def relay_stdin(connection, stdin_reader):
    """Send lines of *stdin_reader* as commands until either side closes."""
    closed = asyncio.ensure_future(connection.wait_closed())
    stdin_line = asyncio.ensure_future(stdin_reader.readline())
    wait_for = {closed, stdin_line}
    while closed in wait_for:
        done, _ = await asyncio.wait(wait_for, return_when=asyncio.FIRST_COMPLETED)
        for task in done:
            wait_for.remove(task)
            if task is stdin_line:
                line = task.result()
                if not line:
                    await connection.disconnect()
                    continue
                await connection.send_command(line.decode(connection.encoding).rstrip("\r\n"))
                stdin_line = asyncio.ensure_future(stdin_reader.readline())
                wait_for.add(stdin_line)
    for task in wait_for:
        task.cancel()


async def run_client():
    """Command-line 'mudgate-client' entry point, via setuptools."""
    kwargs = _transform_args(_get_argument_parser().parse_args())
    log = accessories.make_logger(
        name="mudgate.client",
        loglevel=kwargs.pop("loglevel"),
        logfile=kwargs.pop("logfile"),
        logfmt=kwargs.pop("logfmt"),
    )
    shown = {k: v for k, v in kwargs.items() if k != "password"}
    log.debug("Client configuration: %s", accessories.repr_mapping(shown))

    if not kwargs["username"] or not kwargs["password"]:
        log.error("username and password are required "
                  "(--username/--password or MUDGATE_USERNAME/MUDGATE_PASSWORD)")
        return 2

    host, port = kwargs.pop("host"), kwargs.pop("port")
    username, password = kwargs.pop("username"), kwargs.pop("password")
    session_key = kwargs.pop("session") or f"{host}:{port}-{username}"
    event_log = EventLog(session_key, base_dir=kwargs.pop("data_dir"))
    connection = MudConnection(
        session_key, host, port, username, password,
        event_log=event_log, on_event=print_event, **kwargs,
    )
    try:
        await connection.connect()
    except (OSError, asyncio.TimeoutError) as err:
        log.error("could not connect to %s:%s: %s", host, port, err)
        return 1

    try:
        await relay_stdin(connection, await _open_stdin())
    finally:
        await connection.disconnect()
    return 0


def _get_argument_parser():
    parser = argparse.ArgumentParser(
        description="MUD gateway client: log and parse one MUD session",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("host", nargs="?", default=CONFIG.host, help="hostname")
    parser.add_argument("port", nargs="?", default=CONFIG.port, type=int, help="port number")
    parser.add_argument("--username", default=os.environ.get("MUDGATE_USERNAME"),
                        help="MUD character name")
    parser.add_argument("--password", default=os.environ.get("MUDGATE_PASSWORD"),
                        help="MUD password")
    parser.add_argument("--session", help="event log name, default host:port-username")
    parser.add_argument("--player-name", default=CONFIG.player_name,
                        help="identity credited with your own speech and actions")
    parser.add_argument("--data-dir", default=CONFIG.data_dir,
                        help="event log directory, default $XDG_DATA_HOME/mudgate")
    parser.add_argument("--loglevel", default=CONFIG.loglevel, help="log level")
    parser.add_argument("--logfmt", default=CONFIG.logfmt, help="log format")
    parser.add_argument("--logfile", default=CONFIG.logfile, help="filepath")
    parser.add_argument("--encoding", default=CONFIG.encoding, help="encoding name")
    parser.add_argument(
        "--encoding-errors",
        default=CONFIG.encoding_errors,
        help="handler for encoding errors",
        choices=("replace", "ignore", "strict"),
    )
    parser.add_argument("--strip-ansi", action="store_true",
                        help="remove terminal escape sequences before parsing")
    parser.add_argument("--connect-timeout", default=CONFIG.connect_timeout, type=float,
                        help="seconds to wait for the MUD to answer")
    parser.add_argument("--login-delay", default=CONFIG.login_delay, type=float,
                        help="seconds to wait before answering a login prompt")
    return parser


def _transform_args(args):
    return {
        "host": args.host,
        "port": args.port,
        "username": args.username,
        "password": args.password,
        "session": args.session,
        "player_name": args.player_name,
        "data_dir": args.data_dir,
        "loglevel": args.loglevel,
        "logfile": args.logfile,
        "logfmt": args.logfmt,
        "encoding": args.encoding,
        "encoding_errors": args.encoding_errors,
        "strip_ansi": args.strip_ansi,
        "connect_timeout": args.connect_timeout,
        "login_delay": args.login_delay,
    }


def main():
    sys.exit(asyncio.run(run_client()))


if __name__ == "__main__":
    main()
