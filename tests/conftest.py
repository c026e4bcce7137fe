"""Shared fixtures: a SQLite-backed users table and a recording MySQL stand-in."""

from __future__ import annotations

import sqlite3
import types
from typing import Any

import pytest

from fluent_query import Connection, QueryBuilder

CITIES = ("Lisbon", "Porto", "Braga")

# 25 users: ids 1-25, ages 18-42, Porto x9, Lisbon x8, Braga x8
SAMPLE_USERS = [
    (i, f"user{i:02d}", 17 + i, CITIES[i % 3], 0) for i in range(1, 26)
]


class FakeDriverError(Exception):
    """Base error class of the fake driver."""


class FakeCursor:
    def __init__(self, conn: FakeRawConnection) -> None:
        self._conn = conn
        self.closed = False
        self.description: list[tuple] | None = None
        self.rowcount = -1
        self._rows: list[tuple] = []

    def execute(self, sql: str, params: Any = None) -> None:
        self._conn.executed.append((sql, params))
        if self._conn.fail_with is not None:
            raise self._conn.fail_with
        columns, rows = self._conn.results.pop(0) if self._conn.results else ((), [])
        if columns:
            self.description = [
                (c, None, None, None, None, None, None) for c in columns
            ]
            self.rowcount = len(rows)
        else:
            self.description = None
            self.rowcount = self._conn.write_rowcount
        self._rows = list(rows)

    def fetchall(self) -> list[tuple]:
        return self._rows

    def fetchone(self) -> tuple | None:
        return self._rows[0] if self._rows else None

    def close(self) -> None:
        self.closed = True


class FakeRawConnection:
    """DB-API connection that records statements and replays queued results.

    Queue results as ``(column_names, rows)`` tuples on ``results``;
    statements with nothing queued behave like writes.
    """

    def __init__(self) -> None:
        self.executed: list[tuple[str, Any]] = []
        self.results: list[tuple[tuple[str, ...], list[tuple]]] = []
        self.fail_with: Exception | None = None
        self.write_rowcount = 1
        self.closed = False
        self.cursors: list[FakeCursor] = []

    def cursor(self) -> FakeCursor:
        cursor = FakeCursor(self)
        self.cursors.append(cursor)
        return cursor

    def close(self) -> None:
        self.closed = True


FAKE_DRIVER = types.ModuleType("fakemysql")
FAKE_DRIVER.paramstyle = "pyformat"
FAKE_DRIVER.Error = FakeDriverError


@pytest.fixture
def fake_raw():
    return FakeRawConnection()


@pytest.fixture
def fake_conn(fake_raw):
    """Connection speaking ``%s`` placeholders, like PyMySQL."""
    return Connection(fake_raw, driver=FAKE_DRIVER)


@pytest.fixture
def fake_qb(fake_conn):
    return QueryBuilder.from_connection(fake_conn)


@pytest.fixture
def sqlite_conn():
    """In-memory SQLite with the sample users table, in autocommit mode."""
    raw = sqlite3.connect(":memory:", isolation_level=None)
    raw.execute(
        "CREATE TABLE users ("
        "id INTEGER PRIMARY KEY, name TEXT NOT NULL, age INTEGER, "
        "city TEXT, logins INTEGER DEFAULT 0)"
    )
    raw.executemany("INSERT INTO users VALUES (?, ?, ?, ?, ?)", SAMPLE_USERS)
    conn = Connection(raw, driver=sqlite3)
    yield conn
    conn.close()


@pytest.fixture
def qb(sqlite_conn):
    return QueryBuilder.from_connection(sqlite_conn)
