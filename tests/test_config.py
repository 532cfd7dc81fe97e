import sqlite3
import pytest
from sqliteplus import Connection, ConnectionConfig
from sqliteplus.connection import MAX_BUSY_TIMEOUT_MS, DEFAULT_BUSY_TIMEOUT_MS


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in ('BUSY_TIMEOUT_MS', 'FOREIGN_KEYS', 'JOURNAL_MODE', 'SQLITE_URI'):
        monkeypatch.delenv(key, raising=False)


def test_defaults():
    cfg = ConnectionConfig.from_env()
    assert cfg.busy_timeout_ms == DEFAULT_BUSY_TIMEOUT_MS
    assert cfg.foreign_keys is True
    assert cfg.journal_mode is None
    assert cfg.uri is False


def test_env_clamping(monkeypatch, capsys):
    monkeypatch.setenv('BUSY_TIMEOUT_MS', str(MAX_BUSY_TIMEOUT_MS * 10))
    cfg = ConnectionConfig.from_env()
    assert cfg.busy_timeout_ms == MAX_BUSY_TIMEOUT_MS
    assert 'connection_config_clamped' in capsys.readouterr().err
    monkeypatch.setenv('BUSY_TIMEOUT_MS', '-5')
    assert ConnectionConfig.from_env().busy_timeout_ms == 0


def test_invalid_env_values_warning(monkeypatch, capsys):
    """Invalid env values produce warnings and fall back to defaults"""
    monkeypatch.setenv('BUSY_TIMEOUT_MS', 'not-a-number')
    monkeypatch.setenv('JOURNAL_MODE', 'sideways')
    cfg = ConnectionConfig.from_env()
    err = capsys.readouterr().err
    assert 'invalid_env_int' in err
    assert 'not-a-number' in err
    assert 'invalid_journal_mode' in err
    assert cfg.busy_timeout_ms == DEFAULT_BUSY_TIMEOUT_MS
    assert cfg.journal_mode is None


def test_pragmas_applied(tmp_path, monkeypatch):
    monkeypatch.setenv('BUSY_TIMEOUT_MS', '1234')
    monkeypatch.setenv('JOURNAL_MODE', 'wal')
    with Connection(str(tmp_path / 'p.db')) as c:
        assert c.config.journal_mode == 'WAL'
        assert c.execute("PRAGMA busy_timeout; PRAGMA foreign_keys; PRAGMA journal_mode")
        assert list(c.results()) == [("1234",), ("1",), ("wal",)]


def test_foreign_keys_disabled(tmp_path, monkeypatch):
    monkeypatch.setenv('FOREIGN_KEYS', '0')
    with Connection(str(tmp_path / 'fk.db')) as c:
        c.execute("PRAGMA foreign_keys")
        assert list(c.results()) == [("0",)]


def test_uri_from_env(monkeypatch):
    monkeypatch.setenv('SQLITE_URI', '1')
    assert ConnectionConfig.from_env().uri is True
    monkeypatch.setenv('SQLITE_URI', '0')
    assert ConnectionConfig.from_env().uri is False


def test_foreign_keys_enforced(tmp_path):
    with Connection(str(tmp_path / 'fk.db'), config=ConnectionConfig()) as c:
        assert c.execute("CREATE TABLE p (id INTEGER PRIMARY KEY); "
                         "CREATE TABLE ch (pid INTEGER REFERENCES p(id))")
        result = c.execute("INSERT INTO ch VALUES (99)")
        assert not result
        assert 'FOREIGN KEY' in result.message


def test_uri_mode(tmp_path):
    path = tmp_path / 'u.db'
    sqlite3.connect(path).close()
    cfg = ConnectionConfig(uri=True)
    with Connection(f"file:{path}?mode=ro", config=cfg) as c:
        assert c.execute("SELECT 1")
        assert not c.execute("CREATE TABLE t (x)")


def test_log_level_filters(monkeypatch, capsys, tmp_path):
    monkeypatch.setenv('LOG_LEVEL', 'ERROR')
    with Connection(str(tmp_path / 'quiet.db'), config=ConnectionConfig()):
        pass
    assert capsys.readouterr().err == ''
    monkeypatch.setenv('LOG_LEVEL', 'DEBUG')
    with Connection(str(tmp_path / 'loud.db'), config=ConnectionConfig()) as c:
        c.execute("SELECT 1")
    err = capsys.readouterr().err
    assert '"event":"connection_opened"' in err
    assert '"event":"statement_executed"' in err
    assert '"event":"connection_closed"' in err
