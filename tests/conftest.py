import sqlite3, pytest
from sqliteplus import Connection, ConnectionConfig

@pytest.fixture()
def db_path(tmp_path):
    return str(tmp_path / 'test.db')

@pytest.fixture()
def config():
    # Explicit config so tests do not depend on the caller's environment
    return ConnectionConfig(busy_timeout_ms=1000)

@pytest.fixture()
def conn(db_path, config):
    c = Connection(db_path, config=config)
    yield c
    c.close()

@pytest.fixture()
def seeded_db(tmp_path):
    """Committed database with table t(id, name, score) holding three rows."""
    path = tmp_path / 'seeded.db'
    raw = sqlite3.connect(path)
    try:
        with raw:
            raw.execute("CREATE TABLE t (id INTEGER PRIMARY KEY, name TEXT, score REAL)")
            raw.executemany("INSERT INTO t (id, name, score) VALUES (?, ?, ?)",
                            [(1, 'alpha', 1.5), (2, 'beta', None), (3, "o'hara", 3.0)])
    finally:
        raw.close()
    return str(path)
