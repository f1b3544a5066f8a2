"""Accessory functions."""
# std imports
import os
import logging
import importlib.metadata

__all__ = ('get_version', 'make_logger', 'repr_mapping', 'xdg_data_dir')


def get_version():
    try:
        return importlib.metadata.version("mudgate")
    except importlib.metadata.PackageNotFoundError:
        # running from a source checkout
        return "0.0.0"


_DEFAULT_LOGFMT = ' '.join(('%(asctime)s',
                            '%(levelname)s',
                            '%(filename)s:%(lineno)d',
                            '%(message)s'))


def make_logger(name, loglevel='info', logfile=None, logfmt=_DEFAULT_LOGFMT):
    """Create and return simple logger for given arguments."""
    lvl = getattr(logging, loglevel.upper())
    logging.getLogger().setLevel(lvl)

    _cfg = {'format': logfmt}
    if logfile:
        _cfg['filename'] = logfile
    logging.basicConfig(**_cfg)
    return logging.getLogger(name)


def repr_mapping(mapping):
    """Return printable string, 'key=value [key=value ...]' for mapping."""
    return ' '.join('='.join(map(str, kv)) for kv in mapping.items())


def xdg_data_dir():
    """Return XDG data directory for mudgate."""
    xdg = os.environ.get(
        "XDG_DATA_HOME", os.path.join(os.path.expanduser("~"), ".local", "share")
    )
    return os.path.join(xdg, "mudgate")
