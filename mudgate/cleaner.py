"""
Normalization of raw MUD output before it is classified.

A chunk read from the MUD socket may still carry telnet command sequences
(``IAC <command> <option>``), DOS or old Mac line endings, and, for servers
that colorize their output, ANSI escape sequences.  :func:`clean_content`
removes all of these and returns plain text with ``\\n`` line endings.
"""

from __future__ import annotations

# std imports
import logging
from typing import Union

# 3rd party
from wcwidth import strip_sequences

# local
from .telopt import IAC

__all__ = ("strip_telnet", "telnet_commands", "normalize_newlines", "clean_content")

# In decoded text, IAC arrives as code point U+00FF.
_IAC_CHR = IAC.decode("latin-1")

log = logging.getLogger(__name__)


def _scan_telnet(data):
    """Split *data* into ``(text_pieces, command_pieces)`` at IAC markers."""
    marker = IAC if isinstance(data, (bytes, bytearray)) else _IAC_CHR
    pieces, commands = [], []
    idx, length = 0, len(data)
    while idx < length:
        found = data.find(marker, idx)
        if found == -1:
            pieces.append(data[idx:])
            break
        pieces.append(data[idx:found])
        idx = found + 3 if found + 2 < length else found + 1
        commands.append(data[found:idx])
    return pieces, commands


def strip_telnet(data: Union[str, bytes, bytearray]) -> Union[str, bytes, bytearray]:
    """
    Remove telnet command sequences from *data*.

    Each IAC byte is removed together with the two bytes that follow it
    (command and option).  An IAC too close to the end of the buffer to be
    followed by both is dropped alone, leaving any trailing byte in place.

    :param data: Raw bytes, or text in which ``"\\xff"`` stands for IAC.
    :returns: *data* of the same type with command sequences removed.

    Example::

        >>> strip_telnet(b"\\xff\\xfb\\x01A")
        b'A'
    """
    pieces, _ = _scan_telnet(data)
    return data[:0].join(pieces)


def telnet_commands(data: Union[bytes, bytearray]) -> list[bytes]:
    """Return the command sequences :func:`strip_telnet` would remove from *data*."""
    _, commands = _scan_telnet(data)
    return [bytes(command) for command in commands]


def normalize_newlines(text: str) -> str:
    """Convert CRLF and lone CR line endings to LF."""
    return text.replace("\r\n", "\n").replace("\r", "\n")


def clean_content(
    content: Union[str, bytes, bytearray],
    encoding: str = "utf8",
    errors: str = "replace",
    strip_ansi: bool = False,
    telnet: bool = True,
) -> str:
    """
    Return *content* cleaned for classification.

    :param content: Raw chunk as received.  Bytes are stripped of telnet
        sequences byte-for-byte and then decoded.
    :param encoding: Codec used to decode *content* when it is bytes.
    :param errors: Codec error handler, same meaning as :meth:`bytes.decode`.
        When it is ``"strict"`` and *content* does not decode, undecodable
        bytes are replaced rather than raising.
    :param strip_ansi: Also remove terminal escape sequences.
    :param telnet: Remove telnet command sequences.  Pass ``False`` for
        text already cleaned of them, such as logged display text, in which
        ``"\\xff"`` is a literal character.
    :returns: Cleaned text, not trimmed.
    """
    if isinstance(content, (bytes, bytearray)):
        data = bytes(strip_telnet(content)) if telnet else bytes(content)
        try:
            text = data.decode(encoding, errors)
        except UnicodeDecodeError as err:
            log.debug("%s, decoding with replacement", err)
            text = data.decode(encoding, "replace")
    else:
        text = strip_telnet(content) if telnet else content
    text = normalize_newlines(text)
    if strip_ansi:
        text = strip_sequences(text)
    return text
