"""Tests for :mod:`mudgate.accessories` and :mod:`mudgate.telopt`."""

# std imports
import os
import logging

# local
from mudgate import accessories
from mudgate.telopt import IAC, WILL, ECHO, name_command, name_commands


def test_repr_mapping() -> None:
    assert accessories.repr_mapping({"host": "mud", "port": 2000}) == "host=mud port=2000"


def test_make_logger() -> None:
    log = accessories.make_logger("mudgate.test", loglevel="debug")
    assert isinstance(log, logging.Logger)
    assert logging.getLogger().level == logging.DEBUG


def test_get_version() -> None:
    assert isinstance(accessories.get_version(), str)


def test_xdg_data_dir(tmp_path, monkeypatch) -> None:
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path))
    assert accessories.xdg_data_dir() == os.path.join(str(tmp_path), "mudgate")
    monkeypatch.delenv("XDG_DATA_HOME")
    assert accessories.xdg_data_dir().endswith(os.path.join(".local", "share", "mudgate"))


def test_name_commands() -> None:
    assert name_command(WILL) == "WILL"
    assert name_command(b"\x99") == repr(b"\x99")
    assert name_commands(IAC + WILL + ECHO) == "IAC WILL ECHO"
