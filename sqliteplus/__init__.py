"""sqliteplus: transactional SQLite connection wrapper with text result capture.

Single source of truth for the package version so that code, tests, and
scripts can import it without duplicating literals.
"""

PACKAGE_VERSION = "0.1.0"  # Keep in sync with pyproject version.

from .connection import Connection, ConnectionConfig, ConnectionState  # noqa: E402
from .errors import Result, Status  # noqa: E402
from .query import BindError, QueryBinder  # noqa: E402
from .row_store import NULL_TEXT, RowStore  # noqa: E402

__all__ = [
    "PACKAGE_VERSION",
    "Connection",
    "ConnectionConfig",
    "ConnectionState",
    "Result",
    "Status",
    "BindError",
    "QueryBinder",
    "NULL_TEXT",
    "RowStore",
]
