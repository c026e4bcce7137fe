"""Fluent, per-statement query object."""

from __future__ import annotations

import numbers
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from functools import lru_cache
from typing import Any

from pydantic import TypeAdapter

from ._sql import (
    ABSENT,
    AssembledStatement,
    Fragment,
    QueryType,
    Statement,
    render_assignments,
    render_columns,
    render_group,
    render_having,
    render_insert_columns,
    render_limit,
    render_order,
    render_tables,
    render_values,
    render_where,
)
from .conditions import condition_from_args
from .connection import Connection
from .errors import RenderError
from .models.pagination import Pagination


@lru_cache(maxsize=64)
def _list_adapter(model: type) -> TypeAdapter:
    return TypeAdapter(list[model])  # type: ignore[valid-type]


class Query:
    """Accumulates clauses for one SQL statement, then executes it.

    Clause-setting methods (``table``, ``select``, ``insert``, ``where``,
    ``order``, ``group``, ``having``) return ``self`` and can be called in
    any order; the clause order in the SQL is fixed. Terminal methods
    assemble the statement, clear the buffer, execute and return a result.
    The buffer is cleared even when execution fails, so the same ``Query``
    can start a new statement right away.

    Example::

        rows = (
            qb.table("users")
            .select("id", "name")
            .where("age", ">", 18)
            .order("name ASC")
            .limit(10)
        )

    A ``Query`` is not safe to share between threads.
    """

    def __init__(self, conn: Connection) -> None:
        self._conn = conn
        self._statement = Statement(conn.paramstyle)

    @property
    def statement(self) -> Statement:
        """The clause buffer, for inspection."""
        return self._statement

    def __repr__(self) -> str:
        return f"Query({self._statement!r})"

    # === Chainable clauses ===

    def table(self, *tables: str) -> Query:
        """Set the table(s) the statement runs against.

        Args:
            *tables: One or more table names, joined with ``, ``.
        """
        self._statement.set("table", render_tables(tables, self._conn.paramstyle))
        return self

    def select(self, *columns: str) -> Query:
        """Make this a SELECT of *columns* (``*`` when none are given)."""
        self._statement.set("query_type", QueryType.SELECT)
        self._statement.set("columns", render_columns(columns, self._conn.paramstyle))
        return self

    def insert(self, *columns: str) -> Query:
        """Make this an INSERT into *columns*; finish with :meth:`values`.

        With no columns the statement is ``INSERT INTO t VALUES (...)`` and
        the values must cover every column of the table in order.
        """
        self._statement.set("query_type", QueryType.INSERT)
        self._statement.set(
            "insert_columns", render_insert_columns(columns, self._conn.paramstyle)
        )
        return self

    def where(self, *args: Any) -> Query:
        """Set the WHERE clause. A second call replaces the first.

        Accepts a :class:`~fluent_query.conditions.Condition`, a raw SQL
        expression, ``(column, value)``, ``(column, operator, value)``
        (``IN``/``NOT IN`` take a list) or ``(column, "BETWEEN", low, high)``.

        Raises:
            RenderError: For an unsupported argument count or operator.
        """
        condition = condition_from_args(*args)
        self._statement.set("where", render_where(condition, self._conn.paramstyle))
        return self

    def order(self, order: str = "") -> Query:
        """Set ORDER BY, e.g. ``"name ASC, id DESC"``. Empty text is a no-op."""
        fragment = render_order(order, self._conn.paramstyle)
        if fragment is not None:
            self._statement.set("order", fragment)
        return self

    def group(self, *columns: str) -> Query:
        """Set GROUP BY columns. No columns is a no-op."""
        fragment = render_group(columns, self._conn.paramstyle)
        if fragment is not None:
            self._statement.set("group", fragment)
        return self

    def having(self, condition: str) -> Query:
        """Set a raw HAVING condition. Empty text is a no-op."""
        fragment = render_having(condition, self._conn.paramstyle)
        if fragment is not None:
            self._statement.set("having", fragment)
        return self

    # === Preview ===

    def build(self) -> tuple[str, list[Any]]:
        """Assemble without executing or clearing.

        Returns:
            Tuple of ``(sql, params)`` as they would be sent to the driver.
        """
        stmt = self._preview()
        return stmt.sql, list(stmt.params)

    def to_sql(self) -> str:
        """Assemble without executing or clearing, with values inlined.

        For display only: the output is not safe to execute.
        """
        return self._preview().display

    def _preview(self) -> AssembledStatement:
        snapshot = self._statement.snapshot()
        try:
            return self._statement.assemble()
        finally:
            self._statement.restore(snapshot)

    # === Terminal operations ===

    @contextmanager
    def _consuming(self) -> Iterator[None]:
        try:
            yield
        finally:
            self._statement.clear()

    def _default_select(self) -> None:
        if self._statement.get("query_type") is ABSENT:
            self.select()

    def _rows(self, stmt: AssembledStatement) -> list[dict[str, Any]]:
        return self._conn.execute(stmt.sql, stmt.params, display=stmt.display)

    def _write(self, stmt: AssembledStatement) -> int:
        return self._conn.execute_write(stmt.sql, stmt.params, display=stmt.display)

    def _scalar(self, stmt: AssembledStatement) -> Any:
        return self._conn.execute_scalar(stmt.sql, stmt.params, display=stmt.display)

    def values(self, *values: Any) -> int:
        """Insert one row of *values* into the columns given to :meth:`insert`.

        Returns:
            Number of rows inserted.
        """
        with self._consuming():
            fragment = render_values(values, self._conn.paramstyle)
            self._statement.set("insert_values", fragment)
            return self._write(self._statement.assemble())

    def update(self, assignments: Mapping[str, Any]) -> int:
        """Update matching rows with a ``{column: value}`` mapping.

        Returns:
            Number of rows the server reports as affected.
        """
        with self._consuming():
            fragment = render_assignments(assignments, self._conn.paramstyle)
            self._statement.set("query_type", QueryType.UPDATE)
            self._statement.set("update", fragment)
            return self._write(self._statement.assemble())

    def delete(self, limit: int | None = None) -> int:
        """Delete matching rows, at most *limit* of them when given.

        Returns:
            Number of rows deleted.
        """
        with self._consuming():
            if limit is not None:
                self._statement.set(
                    "limit", render_limit((limit,), self._conn.paramstyle)
                )
            self._statement.set("query_type", QueryType.DELETE)
            return self._write(self._statement.assemble())

    def increment(self, column: str, amount: Any = 1) -> int:
        """Add *amount* to *column* on matching rows.

        Raises:
            RenderError: If *amount* is not a number.
        """
        return self._step(QueryType.INCREMENT, "increment_value", column, amount)

    def decrement(self, column: str, amount: Any = 1) -> int:
        """Subtract *amount* from *column* on matching rows."""
        return self._step(QueryType.DECREMENT, "decrement_value", column, amount)

    def _step(self, kind: QueryType, key: str, column: str, amount: Any) -> int:
        with self._consuming():
            if isinstance(amount, (bool, complex)) or not isinstance(
                amount, numbers.Number
            ):
                raise RenderError(
                    f"{kind.value} amount must be a number, got {amount!r}"
                )
            style = self._conn.paramstyle
            self._statement.set("query_type", kind)
            self._statement.set("column", Fragment.verbatim(column, style))
            self._statement.set(key, Fragment.value(amount, style, quoted=False))
            return self._write(self._statement.assemble())

    def all(
        self,
        *,
        model: type | None = None,
        as_dataframe: bool = False,
    ) -> list[dict[str, Any]] | list[Any] | Any:
        """Execute the SELECT and return every row.

        Args:
            model: Pydantic model (or any type ``TypeAdapter`` accepts) to
                validate each row into.
            as_dataframe: Return a Polars DataFrame.

        Returns:
            List of row dicts, list of *model* instances, or a DataFrame.
        """
        with self._consuming():
            self._default_select()
            stmt = self._statement.assemble()
            if as_dataframe:
                return self._conn.execute_df(
                    stmt.sql, stmt.params, display=stmt.display
                )
            rows = self._rows(stmt)
        if model is not None:
            return _list_adapter(model).validate_python(rows)
        return rows

    def first(self, *, model: type | None = None) -> dict[str, Any] | Any | None:
        """Execute the SELECT and return the first row, or None."""
        if self._statement.get("limit") is ABSENT:
            self._statement.set("limit", render_limit((1,), self._conn.paramstyle))
        rows = self.all(model=model)
        return rows[0] if rows else None

    def limit(self, *args: int, model: type | None = None) -> list[Any]:
        """Execute the SELECT with ``LIMIT n`` or ``LIMIT offset, n``.

        With no arguments this is the same as :meth:`all`.

        Raises:
            RenderError: If the arguments are not one or two non-negative
                integers.
        """
        if args:
            try:
                fragment = render_limit(args, self._conn.paramstyle)
            except RenderError:
                self._statement.clear()
                raise
            self._statement.set("limit", fragment)
        return self.all(model=model)

    def count(self, column: str | None = None) -> int:
        """``SELECT COUNT(column)``, counting every row when *column* is None."""
        value = self._aggregate(QueryType.COUNT, column)
        return int(value or 0)

    def max(self, column: str) -> Any:
        """``SELECT MAX(column)``; None when no rows match."""
        return self._aggregate(QueryType.MAX, column)

    def min(self, column: str) -> Any:
        """``SELECT MIN(column)``; None when no rows match."""
        return self._aggregate(QueryType.MIN, column)

    def avg(self, column: str) -> Any:
        """``SELECT AVG(column)``; None when no rows match."""
        return self._aggregate(QueryType.AVG, column)

    def sum(self, column: str) -> Any:
        """``SELECT SUM(column)``; None when no rows match."""
        return self._aggregate(QueryType.SUM, column)

    def _aggregate(self, kind: QueryType, column: str | None) -> Any:
        with self._consuming():
            self._statement.set("query_type", kind)
            if column is not None:
                self._statement.set(
                    kind.value, Fragment.verbatim(column, self._conn.paramstyle)
                )
            return self._scalar(self._statement.assemble())

    def find(
        self, search: Any, *, model: type | None = None
    ) -> dict[str, Any] | Any | None:
        """Fetch the row whose primary key equals *search*.

        The primary-key column is looked up on the server first.

        Returns:
            The row (as a dict or *model*), or None when nothing matches.

        Raises:
            RenderError: If no table was set.
            PrimaryKeyError: If the table has no single-column primary key.
        """
        with self._consuming():
            table = self._statement.get("table")
            if table is ABSENT:
                raise RenderError("find() needs a table, call table() first")
            style = self._conn.paramstyle
            primary = self._conn.primary_key(table.display)
            self._statement.set("query_type", QueryType.FIND)
            self._statement.set("primary_key", Fragment.verbatim(primary, style))
            self._statement.set("search", Fragment.value(search, style))
            rows = self._rows(self._statement.assemble())
        if not rows:
            return None
        if model is not None:
            return _list_adapter(model).validate_python(rows[:1])[0]
        return rows[0]

    def paginate(self, items_per_page: int, page: Any = 1) -> Pagination:
        """Execute the SELECT for one page and count every matching row.

        Runs the statement twice: once with ``LIMIT offset, items_per_page``
        for the page itself and once without a limit to count the total.

        Args:
            items_per_page: Positive page size.
            page: 1-based page number. Numeric strings and floats are
                accepted and truncated; values below 1 are clamped to 1.

        Raises:
            RenderError: If *items_per_page* is not a positive integer or
                *page* is not a number.
        """
        with self._consuming():
            if (
                isinstance(items_per_page, bool)
                or not isinstance(items_per_page, int)
                or items_per_page < 1
            ):
                raise RenderError(
                    "items_per_page must be a positive integer, "
                    f"got {items_per_page!r}"
                )
            try:
                page = max(1, int(float(str(page).strip())))
            except (ValueError, OverflowError) as err:
                raise RenderError(f"page must be a number, got {page!r}") from err

            self._default_select()
            offset = (page - 1) * items_per_page
            unpaginated = self._statement.snapshot()
            self._statement.set(
                "limit", render_limit((offset, items_per_page), self._conn.paramstyle)
            )
            paginated_stmt = self._statement.assemble()
            self._statement.restore(unpaginated)
            full_stmt = self._statement.assemble()

            items = self._rows(paginated_stmt)
            all_items = self._rows(full_stmt)
        return Pagination.from_page(
            items,
            total_items=len(all_items),
            items_per_page=items_per_page,
            page=page,
        )
