import mysql.connector
import pytest
from mysql.connector.constants import ClientFlag

from opsdesk.database.connection import DatabaseConnection, DBConfig
from opsdesk.database.mysql_base import db_cursor


class FakeCursor:
    def __init__(self):
        self.closed = False

    def close(self):
        self.closed = True


class FakeConnection:
    def __init__(self):
        self.committed = False
        self.rolled_back = False
        self.closed = False
        self.cursor_obj = FakeCursor()

    def cursor(self, dictionary=True):
        return self.cursor_obj

    def commit(self):
        self.committed = True

    def rollback(self):
        self.rolled_back = True

    def close(self):
        self.closed = True


@pytest.fixture
def captured(monkeypatch):
    calls = []

    def fake_connect(**kwargs):
        calls.append(kwargs)
        return FakeConnection()

    monkeypatch.setattr(mysql.connector, "connect", fake_connect)
    return calls


def _factory():
    return DatabaseConnection(DBConfig.from_dict({"database": "opsdesk_test"}))


def test_connect_reports_matched_rows(captured):
    _factory().connect()

    assert ClientFlag.FOUND_ROWS in captured[0]["client_flags"]
    assert captured[0]["database"] == "opsdesk_test"


def test_connect_without_database(captured):
    _factory().connect(with_database=False)

    assert "database" not in captured[0]


def test_db_cursor_commits_or_rolls_back(monkeypatch):
    conns = []

    def fake_connect(**kwargs):
        conns.append(FakeConnection())
        return conns[-1]

    monkeypatch.setattr(mysql.connector, "connect", fake_connect)
    factory = _factory()

    with db_cursor(factory):
        pass
    with pytest.raises(RuntimeError):
        with db_cursor(factory):
            raise RuntimeError("boom")

    assert conns[0].committed and conns[0].closed
    assert conns[1].rolled_back and not conns[1].committed and conns[1].closed
