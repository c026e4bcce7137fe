"""Exception types raised by fluent-query."""

from __future__ import annotations

from typing import Any


class QueryBuilderError(Exception):
    """Base class for every error raised by this package."""


class DatabaseConnectionError(QueryBuilderError):
    """The database server could not be reached or refused the credentials."""


class QueryError(QueryBuilderError):
    """The driver rejected or failed to execute a statement.

    The driver exception is chained as ``__cause__``.

    Attributes:
        sql: The statement text sent to the driver.
        params: The bound parameters sent alongside it.
        display: Human-readable rendering with values inlined, if known.
    """

    def __init__(
        self,
        message: str,
        *,
        sql: str,
        params: tuple[Any, ...] = (),
        display: str | None = None,
    ) -> None:
        super().__init__(message)
        self.sql = sql
        self.params = params
        self.display = display

    def __str__(self) -> str:
        return f"{self.args[0]} [{self.display or self.sql}]"


class RenderError(QueryBuilderError, ValueError):
    """Caller input cannot be turned into a valid SQL clause."""


class PrimaryKeyError(QueryBuilderError):
    """A table has no primary key, or one spanning several columns."""
