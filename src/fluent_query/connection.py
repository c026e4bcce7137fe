"""DB-API connection wrapper with query execution and primary-key lookup."""

from __future__ import annotations

import logging
from types import ModuleType
from typing import Any, NoReturn

import pymysql

from ._sql import Paramstyle
from .config import ConnectionSettings
from .errors import DatabaseConnectionError, PrimaryKeyError, QueryError

logger = logging.getLogger("fluent_query")

#: Prefix of the message printed when ``exit_on_error`` terminates the process.
EXIT_MESSAGE = "QueryBuilder - Database Error:"

_PRIMARY_KEY_SQL = "SHOW KEYS FROM {table} WHERE Key_name = 'PRIMARY'"


class Connection:
    """Wraps a DB-API 2.0 connection and executes assembled statements.

    Every result set is fully materialized as a list of dicts before
    returning; there is no cursor streaming.

    Driver errors are re-raised as :class:`~fluent_query.errors.QueryError`.
    With ``exit_on_error=True`` they are logged and terminate the process
    through ``SystemExit`` instead.
    """

    def __init__(
        self,
        raw: Any,
        *,
        driver: ModuleType = pymysql,
        exit_on_error: bool = False,
    ) -> None:
        """Wrap an open DB-API connection.

        Args:
            raw: Connection object returned by the driver's ``connect()``.
                It should be in autocommit mode; statements are never
                committed explicitly.
            driver: The DB-API module that produced *raw*. Supplies
                ``paramstyle`` and the ``Error`` base class.
            exit_on_error: Terminate the process on driver errors.
        """
        self._conn = raw
        self.driver = driver
        self.paramstyle = Paramstyle.of(driver.paramstyle)
        self.exit_on_error = exit_on_error
        self._driver_error: type[BaseException] = getattr(driver, "Error", Exception)
        self._closed = False

    @classmethod
    def connect(
        cls,
        settings: ConnectionSettings,
        *,
        exit_on_error: bool = False,
    ) -> Connection:
        """Open a PyMySQL connection in autocommit mode.

        Raises:
            DatabaseConnectionError: If the server is unreachable or rejects
                the credentials.
        """
        try:
            raw = pymysql.connect(
                host=settings.host,
                port=settings.port,
                user=settings.user,
                password=settings.password,
                database=settings.db_name,
                charset=settings.charset,
                connect_timeout=settings.connect_timeout,
                autocommit=True,
            )
        except pymysql.Error as err:
            error = DatabaseConnectionError(
                f"cannot connect to {settings.host}:{settings.port}/"
                f"{settings.db_name}: {err}"
            )
            _fail(error, err, exit_on_error=exit_on_error)
        logger.debug(
            "Connected to %s:%d/%s", settings.host, settings.port, settings.db_name
        )
        return cls(raw, driver=pymysql, exit_on_error=exit_on_error)

    def close(self) -> None:
        """Close the underlying connection. Safe to call twice."""
        if not self._closed:
            self._conn.close()
            self._closed = True
            logger.debug("Connection closed")

    @property
    def closed(self) -> bool:
        return self._closed

    def _run(self, sql: str, params: Any, display: str | None) -> Any:
        logger.debug("Executing: %s", display or sql)
        cursor = self._conn.cursor()
        try:
            if params is None:
                cursor.execute(sql)
            else:
                # %s drivers only collapse %% when given an args tuple
                params = tuple(params)
                cursor.execute(sql, params)
        except self._driver_error as err:
            cursor.close()
            error = QueryError(
                str(err), sql=sql, params=tuple(params or ()), display=display
            )
            _fail(error, err, exit_on_error=self.exit_on_error)
        except BaseException:
            cursor.close()
            raise
        return cursor

    def execute(
        self,
        sql: str,
        params: Any = None,
        *,
        display: str | None = None,
    ) -> list[dict[str, Any]]:
        """Execute SQL and return every row as a dict.

        Args:
            sql: SQL string using the driver's placeholder style.
            params: Optional positional parameters.
            display: Human-readable form of the statement for logs and errors.

        Returns:
            List of row dicts keyed by column name, or ``[]`` for statements
            that produce no result set.

        Raises:
            QueryError: If the driver fails.
        """
        cursor = self._run(sql, params, display)
        try:
            if cursor.description is None:
                return []
            columns = [desc[0] for desc in cursor.description]
            return [dict(zip(columns, row)) for row in cursor.fetchall()]
        finally:
            cursor.close()

    def execute_write(
        self,
        sql: str,
        params: Any = None,
        *,
        display: str | None = None,
    ) -> int:
        """Execute an INSERT/UPDATE/DELETE and return the affected row count."""
        cursor = self._run(sql, params, display)
        try:
            return cursor.rowcount
        finally:
            cursor.close()

    def execute_scalar(
        self,
        sql: str,
        params: Any = None,
        *,
        display: str | None = None,
    ) -> Any:
        """Execute SQL and return a single scalar value.

        Returns:
            First column of the first row, or None if there are no rows.
        """
        cursor = self._run(sql, params, display)
        try:
            row = cursor.fetchone()
            return row[0] if row else None
        finally:
            cursor.close()

    def execute_df(
        self,
        sql: str,
        params: Any = None,
        *,
        display: str | None = None,
    ) -> Any:
        """Execute SQL and return a Polars DataFrame.

        Raises:
            ImportError: If ``polars`` is not installed.
        """
        try:
            import polars as pl
        except ImportError as err:
            raise ImportError(
                "polars is required for DataFrame output. "
                "Install with: pip install fluent-query[polars]"
            ) from err
        return pl.from_dicts(self.execute(sql, params, display=display))

    def primary_key(self, table: str) -> str:
        """Look up the primary-key column of *table* (``SHOW KEYS``).

        Raises:
            PrimaryKeyError: If the table has no primary key, or a composite
                one.
            QueryError: If the lookup itself fails (e.g. unknown table).
        """
        sql = _PRIMARY_KEY_SQL.format(table=self.paramstyle.escape(table))
        rows = self.execute(sql, (), display=_PRIMARY_KEY_SQL.format(table=table))
        columns = [row["Column_name"] for row in rows]
        if not columns:
            raise PrimaryKeyError(f"table {table!r} has no primary key")
        if len(columns) > 1:
            raise PrimaryKeyError(
                f"table {table!r} has a composite primary key "
                f"({', '.join(columns)}); find() needs a single column"
            )
        return columns[0]

    @property
    def raw(self) -> Any:
        """Access the underlying DB-API connection for advanced usage."""
        return self._conn

    def __enter__(self) -> Connection:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def __repr__(self) -> str:
        state = "closed" if self._closed else "open"
        return f"Connection(driver={self.driver.__name__!r}, {state})"


def _fail(error: Exception, cause: BaseException, *, exit_on_error: bool) -> NoReturn:
    logger.error("%s", error)
    if exit_on_error:
        raise SystemExit(f"{EXIT_MESSAGE} {error}") from cause
    raise error from cause
