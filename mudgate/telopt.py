"""Telnet command and option bytes seen in MUD output."""
IAC = b"\xff"
DONT = b"\xfe"
DO = b"\xfd"
WONT = b"\xfc"
WILL = b"\xfb"
SB = b"\xfa"
GA = b"\xf9"
NOP = b"\xf1"
SE = b"\xf0"
ECHO = b"\x01"
SGA = b"\x03"
TTYPE = b"\x18"
NAWS = b"\x1f"
EOR = b"\x19"
CHARSET = b"*"
MSDP = b"E"
MSSP = b"F"
MCCP2 = b"V"
GMCP = b"\xc9"

__all__ = (
    "IAC",
    "DONT",
    "DO",
    "WONT",
    "WILL",
    "SB",
    "GA",
    "NOP",
    "SE",
    "ECHO",
    "SGA",
    "TTYPE",
    "NAWS",
    "EOR",
    "CHARSET",
    "MSDP",
    "MSSP",
    "MCCP2",
    "GMCP",
    "name_command",
    "name_commands",
)

#: List of globals that may match an iac command option bytes
_DEBUG_OPTS = dict(
    [
        (value, key)
        for key, value in globals().items()
        if key in __all__ and isinstance(value, bytes)
    ]
)


def name_command(byte):
    """Return string description for (maybe) telnet command byte."""
    return _DEBUG_OPTS.get(byte, repr(byte))


def name_commands(cmds, sep=" "):
    """Return string description for array of (maybe) telnet command bytes."""
    return sep.join([name_command(bytes([byte])) for byte in cmds])
