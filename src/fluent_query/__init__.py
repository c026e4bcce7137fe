"""Fluent SQL statement builder for MySQL."""

from .client import QueryBuilder
from .conditions import Between, Compare, Condition, Equals, In, Raw
from .connection import Connection
from .errors import (
    DatabaseConnectionError,
    PrimaryKeyError,
    QueryBuilderError,
    QueryError,
    RenderError,
)
from .models.pagination import Pagination
from .query import Query

__all__ = [
    "Between",
    "Compare",
    "Condition",
    "Connection",
    "DatabaseConnectionError",
    "Equals",
    "In",
    "Pagination",
    "PrimaryKeyError",
    "Query",
    "QueryBuilder",
    "QueryBuilderError",
    "QueryError",
    "Raw",
    "RenderError",
]
__version__ = "0.1.0"
