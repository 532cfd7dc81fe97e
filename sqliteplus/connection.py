"""SQLite connection with an always-open transaction.

Behaviour:
    - One Connection owns at most one sqlite3 handle for its whole life; a
      second open() is refused instead of re-binding
    - A transaction is begun right after open and again right after every
      successful commit(); statements accumulate until commit()
    - execute() runs raw SQL or a QueryBinder, capturing every result row as
      text into a RowStore that is cleared and refilled on each call
    - Every operation returns a Result; nothing is retried, nothing is rolled
      back automatically
    - Environment driven tuning (busy timeout, foreign keys, journal mode)
      with clamping + warning logs, applied before the first BEGIN

Not thread-safe: a Connection and its RowStore belong to the thread that
opened it.
"""
from __future__ import annotations
import sqlite3, os, sys, time
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, TextIO, Union

from .base import Bindable
from .errors import Result, Status, SUCCESS, failure
from .logging_util import info, warn, debug
from .query import BindError
from .row_store import RowStore, to_text

MAX_BUSY_TIMEOUT_MS = 10 * 60 * 1000   # 10 minutes upper clamp
DEFAULT_BUSY_TIMEOUT_MS = 5000
JOURNAL_MODES = ("DELETE", "TRUNCATE", "PERSIST", "MEMORY", "WAL", "OFF")

PathLike = Union[str, "os.PathLike[str]"]


@dataclass
class ConnectionConfig:
    busy_timeout_ms: int = DEFAULT_BUSY_TIMEOUT_MS
    foreign_keys: bool = True
    journal_mode: Optional[str] = None
    uri: bool = False

    @classmethod
    def from_env(cls) -> "ConnectionConfig":
        raw = os.environ.get("BUSY_TIMEOUT_MS")
        busy = DEFAULT_BUSY_TIMEOUT_MS
        if raw is not None:
            try:
                busy = int(raw)
            except ValueError:
                warn("invalid_env_int", key="BUSY_TIMEOUT_MS", value=raw, default=DEFAULT_BUSY_TIMEOUT_MS)
        if busy < 0 or busy > MAX_BUSY_TIMEOUT_MS:
            clamped = min(MAX_BUSY_TIMEOUT_MS, max(0, busy))
            warn("connection_config_clamped", key="BUSY_TIMEOUT_MS", original=busy, clamped=clamped)
            busy = clamped
        journal = os.environ.get("JOURNAL_MODE")
        if journal is not None:
            journal = journal.strip().upper() or None
            if journal is not None and journal not in JOURNAL_MODES:
                warn("invalid_journal_mode", value=journal, allowed=list(JOURNAL_MODES))
                journal = None
        return cls(
            busy_timeout_ms=busy,
            foreign_keys=os.environ.get("FOREIGN_KEYS", "1") != "0",
            journal_mode=journal,
            uri=os.environ.get("SQLITE_URI", "0") == "1",
        )


def _decode_text(raw: bytes) -> str:
    # TEXT that is not valid UTF-8 is still returned, as the engine would
    return raw.decode("utf-8", errors="replace")


class ConnectionState(Enum):
    UNOPENED = "unopened"
    OPEN = "open"
    CLOSED = "closed"


class _RowCapture:
    """Per-execute sink between the engine's row loop and the RowStore.

    Never raises: a failure to build a row is recorded in ``error`` and the
    caller stops feeding rows, the same way a non-zero callback return aborts
    an engine exec.
    """

    def __init__(self, store: RowStore):
        self.store = store
        self.error: Optional[str] = None

    def __call__(self, values) -> bool:
        try:
            self.store.append([to_text(v) for v in values])
        except Exception as e:
            self.error = f"query aborted: row capture failed ({type(e).__name__}: {e})"
            return False
        return True


def split_statements(sql: str) -> List[str]:
    """Split SQL text into complete statements, honouring quotes, comments and triggers."""
    statements: List[str] = []
    pending: List[str] = []
    for part in sql.split(";"):
        pending.append(part)
        candidate = ";".join(pending) + ";"
        if sqlite3.complete_statement(candidate):
            if candidate.strip(" \t\r\n;"):
                statements.append(candidate)
            pending = []
    rest = ";".join(pending)
    if rest.strip(" \t\r\n;"):
        statements.append(rest)
    return statements


class Connection:
    """Owner of one SQLite handle and its transaction.

    Construct with a path to open immediately (failure raises
    sqlite3.OperationalError), or with no path and call open() later.
    """

    def __init__(self, path: PathLike = "", config: Optional[ConnectionConfig] = None):
        self.path: str = ""
        self.config = config or ConnectionConfig.from_env()
        self._db: Optional[sqlite3.Connection] = None
        self._closed = False
        self._rows = RowStore()
        self._last_error: Result = SUCCESS
        path = os.fspath(path)
        if path:
            result = self.open(path)
            if not result:
                raise sqlite3.OperationalError(f"Unable to open database: {path} ({result.message})")

    # --- Public API -----------------------------------------------------------------
    @property
    def state(self) -> ConnectionState:
        if self._closed:
            return ConnectionState.CLOSED
        return ConnectionState.OPEN if self._db is not None else ConnectionState.UNOPENED

    @property
    def in_transaction(self) -> bool:
        return self._db is not None and self._db.in_transaction

    @property
    def last_error(self) -> Result:
        """Most recent failing Result; successes do not reset it."""
        return self._last_error

    def open(self, path: PathLike) -> Result:
        """Attach this instance to the database at path and begin a transaction.

        Refused with ALREADY_OPEN while a handle is attached. A failed open
        leaves the instance unopened, so open() may be called again.
        """
        if self._closed:
            return self._fail(Status.OPEN_FAILURE, "connection is closed")
        if self._db is not None:
            return self._fail(Status.ALREADY_OPEN, f"bound to {self.path}")
        path = os.fspath(path)
        if os.path.isdir(path):
            warn("connection_open_failed", path=path, error="is a directory")
            return self._fail(Status.OPEN_FAILURE, f"Path points to a directory, expected file: {path}")

        db: Optional[sqlite3.Connection] = None
        try:
            db = sqlite3.connect(
                path,
                timeout=self.config.busy_timeout_ms / 1000.0,
                isolation_level=None,  # BEGIN/COMMIT are issued explicitly
                uri=self.config.uri,
            )
            db.text_factory = _decode_text
            self._apply_pragmas(db, path)
            # Forces a header read so a non-database file fails here, not on first use
            db.execute("PRAGMA schema_version").fetchone()
            db.execute("BEGIN")
        except (sqlite3.Error, ValueError) as e:
            if db is not None:
                db.close()
            warn("connection_open_failed", path=path, error=str(e))
            return self._fail(Status.OPEN_FAILURE, str(e))

        self._db = db
        self.path = path
        info("connection_opened", path=path)
        return SUCCESS

    def execute(self, source: Union[str, Bindable]) -> Result:
        """Run SQL text (one or more statements) inside the current transaction.

        A Bindable is resolved first; if that fails nothing reaches the engine
        and the previous results are left as they were. On an engine error the
        rows captured before it stay in results().
        """
        if self._db is None:
            return self._fail(Status.NOT_CONNECTED)
        if isinstance(source, str):
            sql = source
        elif isinstance(source, Bindable):
            try:
                sql = source.bind()
            except BindError as e:
                warn("bind_failed", missing=list(e.missing))
                return self._fail(Status.BIND_FAILURE, str(e))
        else:
            raise TypeError(f"execute() expects str or a bindable query, got {type(source).__name__}")

        try:
            statements = split_statements(sql)
        except ValueError as e:
            # NUL characters and unencodable surrogates never reach the engine
            warn("statement_failed", error=str(e), rows_captured=len(self._rows))
            return self._fail(Status.ENGINE_FAILURE, str(e))

        self._rows.clear()
        capture = _RowCapture(self._rows)
        started = time.perf_counter()
        try:
            cursor = self._db.cursor()
            try:
                for statement in statements:
                    cursor.execute(statement)
                    if cursor.description is None:
                        continue
                    self._rows.columns = tuple(d[0] for d in cursor.description)
                    for values in cursor:
                        if not capture(values):
                            break
                    if capture.error:
                        break
            finally:
                cursor.close()
        except (sqlite3.Error, sqlite3.Warning, ValueError) as e:
            # ValueError: text the driver cannot hand to the engine
            warn("statement_failed", error=str(e), rows_captured=len(self._rows))
            return self._fail(Status.ENGINE_FAILURE, str(e))
        if capture.error:
            warn("row_capture_failed", error=capture.error, rows_captured=len(self._rows))
            return self._fail(Status.ENGINE_FAILURE, capture.error)
        debug("statement_executed", rows=len(self._rows), ms=int((time.perf_counter() - started) * 1000))
        return SUCCESS

    def commit(self) -> Result:
        """COMMIT the open transaction, then BEGIN the next one.

        If COMMIT fails no new transaction is begun; the engine's transaction
        (if any) is left as it is for the caller to retry or discard.
        """
        if self._db is None:
            return self._fail(Status.NOT_CONNECTED)
        try:
            self._db.execute("COMMIT")
        except sqlite3.Error as e:
            warn("commit_failed", path=self.path, error=str(e))
            return self._fail(Status.ENGINE_FAILURE, str(e))
        return self._begin()

    def row_count(self) -> int:
        return len(self._rows)

    def results(self) -> RowStore:
        """Rows of the last execute(). Reused in place: copy before the next call if needed."""
        return self._rows

    def raw_handle(self) -> Optional[sqlite3.Connection]:
        """Interoperability escape hatch: the underlying sqlite3 handle (or None).

        Anything done through it (COMMIT, ROLLBACK, closing it...) bypasses this
        wrapper; transaction state and last_error no longer track reality.
        """
        return self._db

    def perror(self, stream: Optional[TextIO] = None) -> None:
        """Write the diagnostic for last_error to stream (stderr by default)."""
        text = self._last_error.describe()
        if not text:
            return
        out = stream if stream is not None else sys.stderr
        out.write(text + "\n")

    def print_results(self, stream: Optional[TextIO] = None) -> None:
        out = stream if stream is not None else sys.stdout
        out.write(self._rows.format())

    def close(self) -> None:
        """Release the handle (uncommitted work is discarded). Safe to call repeatedly."""
        db, self._db = self._db, None
        self._closed = True
        if db is None:
            return
        try:
            db.close()
        finally:
            info("connection_closed", path=self.path)

    def __enter__(self) -> "Connection":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __copy__(self):
        raise TypeError("Connection objects own their handle and cannot be copied")

    def __deepcopy__(self, memo):
        raise TypeError("Connection objects own their handle and cannot be copied")

    def __reduce__(self):
        raise TypeError("Connection objects cannot be pickled")

    def __repr__(self) -> str:
        return f"Connection(path={self.path!r}, state={self.state.value})"

    # --- Internal -------------------------------------------------------------------
    def _fail(self, status: Status, message: str = "") -> Result:
        self._last_error = failure(status, message)
        return self._last_error

    def _begin(self) -> Result:
        try:
            self._db.execute("BEGIN")
        except sqlite3.Error as e:
            warn("begin_failed", path=self.path, error=str(e))
            return self._fail(Status.ENGINE_FAILURE, str(e))
        return SUCCESS

    def _apply_pragmas(self, db: sqlite3.Connection, path: str) -> None:
        pragmas = [
            f"busy_timeout={self.config.busy_timeout_ms}",
            f"foreign_keys={'ON' if self.config.foreign_keys else 'OFF'}",
        ]
        for p in pragmas:
            try:
                db.execute(f"PRAGMA {p}")
            except sqlite3.Error as e:
                warn("pragma_failed", pragma=p, path=path, error=str(e))
        if self.config.journal_mode:
            try:
                jm = db.execute(f"PRAGMA journal_mode={self.config.journal_mode}").fetchone()[0]
                if jm.upper() != self.config.journal_mode:
                    warn("journal_mode_unexpected", wanted=self.config.journal_mode, got=jm, path=path)
            except sqlite3.Error as e:
                warn("pragma_failed", pragma=f"journal_mode={self.config.journal_mode}", path=path, error=str(e))


def cli_run(argv: Optional[List[str]] = None) -> int:  # pragma: no cover - thin CLI wrapper
    """CLI helper: run SQL against a database and print the captured rows."""
    import argparse, json
    ap = argparse.ArgumentParser(description='Execute SQL through a sqliteplus Connection')
    ap.add_argument('db', help='Path to SQLite database')
    ap.add_argument('sql', help='SQL text (one or more statements)')
    ap.add_argument('--commit', action='store_true', help='Commit after executing')
    ap.add_argument('--json', action='store_true', help='Print config, columns and rows as JSON')
    args = ap.parse_args(argv)
    try:
        conn = Connection(args.db)
    except sqlite3.OperationalError as e:
        print(str(e), file=sys.stderr)
        return 1
    with conn:
        result = conn.execute(args.sql)
        if result and args.commit:
            result = conn.commit()
        if not result:
            conn.perror()
            return 1
        if args.json:
            out = {
                'config': conn.config.__dict__.copy(),
                'columns': list(conn.results().columns),
                'rows': [list(r) for r in conn.results()],
            }
            print(json.dumps(out, indent=2))
        else:
            conn.print_results()
    return 0
