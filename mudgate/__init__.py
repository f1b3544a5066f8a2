"""mudgate: a logging, parsing gateway between users and a MUD."""
# pylint: disable=wildcard-import,undefined-variable
from .events import *           # noqa
from .cleaner import *          # noqa
from .parser import *           # noqa
from .store import *            # noqa
from .connection import *       # noqa
from .sessions import *         # noqa
from .accessories import get_version as __get_version

__all__ = (
    events.__all__ +
    cleaner.__all__ +
    parser.__all__ +
    store.__all__ +
    connection.__all__ +
    sessions.__all__
)  # noqa

__license__ = 'ISC'
__version__ = __get_version()
