"""Tests for the QueryBuilder entry point."""

import pymysql
import pytest
from pydantic import ValidationError

from fluent_query import Query, QueryBuilder
from fluent_query._sql import ABSENT

ENV_VARS = (
    "HOST", "DB_NAME", "USER", "PASSWORD", "PORT", "CHARSET", "CONNECT_TIMEOUT"
)


@pytest.fixture
def captured_connect(monkeypatch, fake_raw):
    """Replace ``pymysql.connect`` and record the arguments it receives."""
    for name in ENV_VARS:
        monkeypatch.delenv(f"FLUENT_QUERY_{name}", raising=False)
    captured = {}

    def fake_connect(**kwargs):
        captured.update(kwargs)
        return fake_raw

    monkeypatch.setattr(pymysql, "connect", fake_connect)
    return captured


def test_repr_with_connection(fake_qb):
    assert repr(fake_qb) == (
        "QueryBuilder(connection=Connection(driver='fakemysql', open))"
    )


def test_connects_with_arguments(captured_connect):
    qb = QueryBuilder("db.example", "shop", "app", "secret", port=3307)
    assert captured_connect["host"] == "db.example"
    assert captured_connect["database"] == "shop"
    assert captured_connect["user"] == "app"
    assert captured_connect["password"] == "secret"
    assert captured_connect["port"] == 3307
    assert repr(qb) == "QueryBuilder(host='db.example', db_name='shop')"
    assert "secret" not in repr(qb)


def test_connects_from_environment(captured_connect, monkeypatch):
    monkeypatch.setenv("FLUENT_QUERY_HOST", "env-host")
    monkeypatch.setenv("FLUENT_QUERY_DB_NAME", "envdb")
    monkeypatch.setenv("FLUENT_QUERY_USER", "envuser")
    monkeypatch.setenv("FLUENT_QUERY_PORT", "3310")
    QueryBuilder()
    assert captured_connect["host"] == "env-host"
    assert captured_connect["database"] == "envdb"
    assert captured_connect["port"] == 3310
    assert captured_connect["password"] == ""


def test_arguments_beat_environment(captured_connect, monkeypatch):
    monkeypatch.setenv("FLUENT_QUERY_HOST", "env-host")
    QueryBuilder("arg-host", "shop", "app")
    assert captured_connect["host"] == "arg-host"


def test_missing_settings_rejected(captured_connect):
    with pytest.raises(ValidationError):
        QueryBuilder(host="db.example")


def test_context_manager(fake_conn, fake_raw):
    with QueryBuilder.from_connection(fake_conn) as qb:
        assert qb.connection is fake_conn
    assert fake_raw.closed


def test_each_starter_returns_fresh_query(fake_qb):
    first = fake_qb.table("users")
    second = fake_qb.table("users")
    assert isinstance(first, Query)
    assert first is not second
    first.where("id", 1)
    assert second.statement.get("where") is ABSENT


@pytest.mark.parametrize(
    ("start", "expected"),
    [
        (
            lambda qb: qb.select("id").table("users"),
            "SELECT id FROM users",
        ),
        (
            lambda qb: qb.where("id", 1).table("users").select(),
            "SELECT * FROM users WHERE id = %s",
        ),
        (
            lambda qb: qb.order("id").table("users").select(),
            "SELECT * FROM users ORDER BY id",
        ),
        (
            lambda qb: qb.group("city").table("users").select("city"),
            "SELECT city FROM users GROUP BY city",
        ),
        (
            lambda qb: qb.having("COUNT(*) > 1").table("users").select("city")
            .group("city"),
            "SELECT city FROM users GROUP BY city HAVING COUNT(*) > 1",
        ),
        (
            lambda qb: qb.query().table("users").select(),
            "SELECT * FROM users",
        ),
    ],
)
def test_statement_starters(fake_qb, start, expected):
    assert start(fake_qb).build()[0] == expected


def test_insert_starter(fake_qb, fake_raw):
    fake_qb.insert("name").table("users").values("Ann")
    assert fake_raw.executed == [("INSERT INTO users (name) VALUES (%s)", ("Ann",))]


def test_sql_escape_hatch(fake_qb, fake_raw):
    fake_raw.results.append((("cnt",), [(3,)]))
    rows = fake_qb.sql("SELECT COUNT(*) AS cnt FROM users WHERE age > %s", [18])
    assert rows == [{"cnt": 3}]
    assert fake_raw.executed == [
        ("SELECT COUNT(*) AS cnt FROM users WHERE age > %s", (18,))
    ]


def test_sql_as_dataframe(qb):
    pl = pytest.importorskip("polars")
    df = qb.sql("SELECT id FROM users WHERE id <= ?", [3], as_dataframe=True)
    assert isinstance(df, pl.DataFrame)
    assert df.height == 3


def test_primary_key_delegates(fake_qb, fake_raw):
    fake_raw.results.append((("Column_name",), [("sku",)]))
    assert fake_qb.primary_key("products") == "sku"


def test_close(fake_qb, fake_raw):
    fake_qb.close()
    assert fake_raw.closed
    assert fake_qb.connection.closed
