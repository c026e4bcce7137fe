"""QueryBuilder main entry point."""

from __future__ import annotations

from typing import Any

from .config import ConnectionSettings
from .connection import Connection
from .query import Query


class QueryBuilder:
    """Fluent SQL builder bound to one MySQL database.

    Every statement-starting method returns a fresh :class:`Query`, so two
    statements never share clause state. All of them share this builder's
    connection.

    Usage::

        qb = QueryBuilder("localhost", "shop", "app", "secret")

        # Select
        adults = qb.table("users").where("age", ">=", 18).all()
        page = qb.table("users").order("name ASC").paginate(20, page=2)

        # Write
        qb.table("users").insert("name", "age").values("Ann", 30)
        qb.table("users").where("id", 7).update({"name": "Bob"})
        qb.table("users").where("id", 7).increment("logins")

        # Aggregates and lookups
        total = qb.table("users").count()
        user = qb.table("users").find(7)

        qb.close()
    """

    def __init__(
        self,
        host: str | None = None,
        db_name: str | None = None,
        user: str | None = None,
        password: str | None = None,
        *,
        port: int | None = None,
        charset: str | None = None,
        exit_on_error: bool = False,
        connection: Connection | None = None,
    ) -> None:
        """Connect to the database.

        Arguments left as None fall back to the ``FLUENT_QUERY_*``
        environment variables, then to the defaults in
        :mod:`fluent_query.config` (port 3306, charset utf8mb4).

        Args:
            host: Server hostname.
            db_name: Schema every statement runs against.
            user: Database user.
            password: Password for *user*.
            port: Server port.
            charset: Connection character set.
            exit_on_error: Terminate the process on database errors instead
                of raising.
            connection: Use an already-open :class:`Connection` instead of
                connecting; every other argument is then ignored.

        Raises:
            DatabaseConnectionError: If the connection cannot be opened.
        """
        if connection is not None:
            self._settings: ConnectionSettings | None = None
            self._conn = connection
            return
        self._settings = ConnectionSettings.from_env(
            host=host,
            db_name=db_name,
            user=user,
            password=password,
            port=port,
            charset=charset,
        )
        self._conn = Connection.connect(self._settings, exit_on_error=exit_on_error)

    @classmethod
    def from_connection(cls, conn: Connection) -> QueryBuilder:
        """Build on top of an existing :class:`Connection`.

        Example::

            import sqlite3
            raw = sqlite3.connect(":memory:", isolation_level=None)
            qb = QueryBuilder.from_connection(Connection(raw, driver=sqlite3))
        """
        return cls(connection=conn)

    @property
    def connection(self) -> Connection:
        return self._conn

    # === Statement starters ===

    def query(self) -> Query:
        """Start an empty statement."""
        return Query(self._conn)

    def table(self, *tables: str) -> Query:
        """Start a statement against *tables*."""
        return self.query().table(*tables)

    def select(self, *columns: str) -> Query:
        """Start a SELECT of *columns*."""
        return self.query().select(*columns)

    def insert(self, *columns: str) -> Query:
        """Start an INSERT into *columns*."""
        return self.query().insert(*columns)

    def where(self, *args: Any) -> Query:
        """Start a statement with a WHERE clause. See :meth:`Query.where`."""
        return self.query().where(*args)

    def order(self, order: str = "") -> Query:
        return self.query().order(order)

    def group(self, *columns: str) -> Query:
        return self.query().group(*columns)

    def having(self, condition: str) -> Query:
        return self.query().having(condition)

    # === Direct access ===

    def sql(
        self,
        query: str,
        params: list[Any] | None = None,
        *,
        as_dataframe: bool = False,
    ) -> list[dict] | Any:
        """Execute raw SQL.

        Args:
            query: SQL string using the driver's placeholder style
                (``%s`` for PyMySQL).
            params: Optional positional parameters.
            as_dataframe: Return a Polars DataFrame instead of dicts.

        Example::

            rows = qb.sql("SELECT name FROM users WHERE age > %s", [18])
        """
        if as_dataframe:
            return self._conn.execute_df(query, params)
        return self._conn.execute(query, params)

    def primary_key(self, table: str) -> str:
        """Name of the primary-key column of *table*."""
        return self._conn.primary_key(table)

    def close(self) -> None:
        """Close the database connection.

        Called automatically when using the builder as a context manager.
        """
        self._conn.close()

    def __enter__(self) -> QueryBuilder:
        """Enter context manager.

        Example::

            with QueryBuilder("localhost", "shop", "app", "secret") as qb:
                users = qb.table("users").all()
        """
        return self

    def __exit__(self, *args: Any) -> None:
        """Exit context manager and close the connection."""
        self.close()

    def __repr__(self) -> str:
        if self._settings is None:
            return f"QueryBuilder(connection={self._conn!r})"
        return (
            f"QueryBuilder(host={self._settings.host!r}, "
            f"db_name={self._settings.db_name!r})"
        )

