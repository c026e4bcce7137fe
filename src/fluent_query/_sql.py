"""Statement buffer, clause renderers and the statement assembler.

Fluent calls render their input into :class:`Fragment` objects and store them
in a :class:`Statement` keyed by clause. A terminal call assembles the
fragments into one SQL string in fixed clause order, then clears the buffer.

Values are never interpolated into the executed SQL. They travel as bound
parameters; each fragment also carries a display rendering with the values
inlined, used for logs, error messages and :meth:`Query.to_sql`.
"""

from __future__ import annotations

import enum
import html
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from .errors import RenderError

if TYPE_CHECKING:
    from .conditions import Condition


class QueryType(str, enum.Enum):
    """Kind of statement a buffer assembles into."""

    SELECT = "select"
    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"
    INCREMENT = "increment"
    DECREMENT = "decrement"
    FIND = "find"
    COUNT = "count"
    MAX = "max"
    MIN = "min"
    AVG = "avg"
    SUM = "sum"


AGGREGATES = frozenset(
    {QueryType.COUNT, QueryType.MAX, QueryType.MIN, QueryType.AVG, QueryType.SUM}
)

#: Every key a Statement accepts.
CLAUSE_KEYS = frozenset(
    {
        "query_type",
        "table",
        "columns",
        "where",
        "order",
        "group",
        "having",
        "limit",
        "insert_columns",
        "insert_values",
        "update",
        "column",
        "increment_value",
        "decrement_value",
        "count",
        "max",
        "min",
        "avg",
        "sum",
        "primary_key",
        "search",
    }
)


class _Absent:
    """Marker for a clause key that was never written."""

    _instance: _Absent | None = None

    def __new__(cls) -> _Absent:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "ABSENT"


ABSENT = _Absent()


# === Values and placeholders ===

_SLASHES = str.maketrans({"\\": "\\\\", "'": "\\'", '"': '\\"', "\0": "\\0"})


def sanitize(value: Any) -> str:
    """Trim, HTML-escape and backslash-escape a value for display.

    This only feeds the human-readable rendering of a statement. Executed
    statements bind values as parameters and never go through here.
    """
    text = html.escape(str(value).strip())
    return text.translate(_SLASHES)


def quote(value: Any) -> str:
    """Display form of a bound value: sanitized and single-quoted."""
    if value is None:
        return "NULL"
    return f"'{sanitize(value)}'"


def bare(value: Any) -> str:
    """Display form of a bound value without quotes (numbers, bounds)."""
    if value is None:
        return "NULL"
    return sanitize(value)


@dataclass(frozen=True)
class Paramstyle:
    """Placeholder syntax of a DB-API driver.

    Only positional styles are supported: ``qmark`` (``?``, sqlite3) and
    ``format``/``pyformat`` (``%s``, PyMySQL). For the ``%s`` styles every
    literal ``%`` in caller text is doubled, and the connection always passes
    a parameter tuple so the driver collapses them back.
    """

    name: str

    SUPPORTED = ("qmark", "format", "pyformat")

    @classmethod
    def of(cls, name: str) -> Paramstyle:
        if name not in cls.SUPPORTED:
            raise ValueError(
                f"unsupported DB-API paramstyle {name!r}, "
                f"expected one of {', '.join(cls.SUPPORTED)}"
            )
        return cls(name)

    @property
    def placeholder(self) -> str:
        return "?" if self.name == "qmark" else "%s"

    def escape(self, text: str) -> str:
        """Protect caller-supplied SQL text from placeholder expansion."""
        if self.name == "qmark":
            return text
        return text.replace("%", "%%")


# === Fragments ===


@dataclass(frozen=True)
class Fragment:
    """Rendered SQL for one clause.

    Attributes:
        text: SQL with placeholders, as sent to the driver.
        params: Values bound to the placeholders, in order.
        display: The same SQL with values inlined, for humans only.
    """

    text: str
    params: tuple[Any, ...] = ()
    display: str = ""

    @classmethod
    def verbatim(cls, text: str, style: Paramstyle) -> Fragment:
        """Caller-supplied SQL taken as-is, with no bound values."""
        return cls(style.escape(text), (), text)

    @classmethod
    def value(cls, value: Any, style: Paramstyle, *, quoted: bool = True) -> Fragment:
        """A single bound value."""
        shown = quote(value) if quoted else bare(value)
        return cls(style.placeholder, (value,), shown)

    def wrap(self, prefix: str, suffix: str = "") -> Fragment:
        return Fragment(
            f"{prefix}{self.text}{suffix}",
            self.params,
            f"{prefix}{self.display}{suffix}",
        )


def join_fragments(parts: Iterable[Fragment], sep: str = ", ") -> Fragment:
    """Join fragments, concatenating their params in order."""
    parts = list(parts)
    params: list[Any] = []
    for part in parts:
        params.extend(part.params)
    return Fragment(
        sep.join(p.text for p in parts),
        tuple(params),
        sep.join(p.display for p in parts),
    )


# === Clause renderers ===


def render_tables(tables: Sequence[str], style: Paramstyle) -> Fragment:
    """``a, b`` table list."""
    if not tables:
        raise RenderError("table() needs at least one table name")
    return Fragment.verbatim(", ".join(tables), style)


def render_columns(columns: Sequence[str], style: Paramstyle) -> Fragment:
    """Select list. An empty list selects ``*``."""
    return Fragment.verbatim(", ".join(columns) if columns else "*", style)


def render_insert_columns(
    columns: Sequence[str], style: Paramstyle
) -> Fragment | None:
    """``(a, b)`` column list for INSERT. No columns means no list."""
    if not columns:
        return None
    return Fragment.verbatim(", ".join(columns), style).wrap("(", ")")


def render_group(columns: Sequence[str], style: Paramstyle) -> Fragment | None:
    if not columns:
        return None
    return Fragment.verbatim("GROUP BY " + ", ".join(columns), style)


def render_order(order: str, style: Paramstyle) -> Fragment | None:
    if not order:
        return None
    return Fragment.verbatim("ORDER BY " + order, style)


def render_having(condition: str, style: Paramstyle) -> Fragment | None:
    if not condition:
        return None
    return Fragment.verbatim("HAVING " + condition, style)


def render_where(condition: Condition, style: Paramstyle) -> Fragment:
    return condition.render(style).wrap("WHERE ")


def render_assignments(assignments: Mapping[str, Any], style: Paramstyle) -> Fragment:
    """``col = ?, col = ?`` for UPDATE ... SET."""
    if not assignments:
        raise RenderError("update() needs at least one column to set")
    return join_fragments(
        _assignment(column, value, style) for column, value in assignments.items()
    )


def _assignment(column: str, value: Any, style: Paramstyle) -> Fragment:
    rendered = Fragment.value(value, style)
    return Fragment(
        f"{style.escape(column)} = {rendered.text}",
        rendered.params,
        f"{column} = {rendered.display}",
    )


def render_values(values: Sequence[Any], style: Paramstyle) -> Fragment:
    """``?, ?, ?`` for INSERT ... VALUES."""
    if not values:
        raise RenderError("values() needs at least one value")
    return join_fragments(Fragment.value(v, style) for v in values)


def _check_count(name: str, n: Any) -> int:
    if isinstance(n, bool) or not isinstance(n, int) or n < 0:
        raise RenderError(f"{name} must be a non-negative integer, got {n!r}")
    return n


def render_limit(args: Sequence[Any], style: Paramstyle) -> Fragment:
    """``LIMIT n`` or MySQL-style ``LIMIT offset, count``."""
    if len(args) == 1:
        text = f"LIMIT {_check_count('limit', args[0])}"
    elif len(args) == 2:
        offset = _check_count("offset", args[0])
        count = _check_count("limit", args[1])
        text = f"LIMIT {offset}, {count}"
    else:
        raise RenderError(f"limit takes 1 or 2 arguments, got {len(args)}")
    return Fragment.verbatim(text, style)


# === Buffer and assembler ===


@dataclass(frozen=True)
class AssembledStatement:
    """One SQL statement ready for the driver."""

    query_type: QueryType
    sql: str
    params: tuple[Any, ...]
    display: str


class Statement:
    """Clause-keyed buffer of rendered fragments for a single statement.

    Writing a key twice overwrites it. Reading a key that was never written
    returns :data:`ABSENT`. :meth:`assemble` always empties the buffer, so
    the same instance can start a new, unrelated statement afterwards.
    """

    def __init__(self, style: Paramstyle) -> None:
        self.style = style
        self._buffer: dict[str, Any] = {}

    def set(self, key: str, value: Any) -> None:
        if key not in CLAUSE_KEYS:
            raise KeyError(f"unknown clause key {key!r}")
        self._buffer[key] = value

    def get(self, key: str) -> Any:
        return self._buffer.get(key, ABSENT)

    def clear(self) -> None:
        self._buffer = {}

    def snapshot(self) -> dict[str, Any]:
        return dict(self._buffer)

    def restore(self, snapshot: Mapping[str, Any]) -> None:
        self._buffer = dict(snapshot)

    @property
    def is_empty(self) -> bool:
        return not self._buffer

    def __repr__(self) -> str:
        return f"Statement({sorted(self._buffer)})"

    def assemble(self) -> AssembledStatement:
        """Render the buffered clauses into one statement and clear the buffer.

        Raises:
            RenderError: If no statement kind was recorded. The buffer is
                cleared regardless.
        """
        try:
            query_type = self.get("query_type")
            if query_type is ABSENT:
                raise RenderError(
                    "nothing to assemble: call select(), insert() or a "
                    "terminal operation first"
                )
            fragment = self._concat(self._template(query_type))
            return AssembledStatement(
                query_type, fragment.text, fragment.params, fragment.display
            )
        finally:
            self.clear()

    def _concat(self, parts: Iterable[Any]) -> Fragment:
        """Space-join the template, skipping absent and empty clauses."""
        fragments = []
        for part in parts:
            if part is ABSENT or part is None:
                continue
            if isinstance(part, str):
                part = Fragment(part, (), part)
            if part.text:
                fragments.append(part)
        return join_fragments(fragments, sep=" ")

    def _paren(self, key: str) -> Fragment:
        part = self.get(key)
        if part is ABSENT:
            return Fragment("()", (), "()")
        return part.wrap("(", ")")

    def _template(self, query_type: QueryType) -> list[Any]:
        g = self.get
        if query_type is QueryType.SELECT:
            return [
                "SELECT", g("columns"), "FROM", g("table"),
                g("where"), g("group"), g("having"), g("order"), g("limit"),
            ]
        if query_type is QueryType.INSERT:
            return [
                "INSERT INTO", g("table"), g("insert_columns"),
                "VALUES", self._paren("insert_values"),
            ]
        if query_type is QueryType.UPDATE:
            return ["UPDATE", g("table"), "SET", g("update"), g("where")]
        if query_type is QueryType.DELETE:
            return ["DELETE FROM", g("table"), g("where"), g("limit")]
        if query_type is QueryType.INCREMENT:
            column = g("column")
            return [
                "UPDATE", g("table"), "SET", column, "=", column,
                "+", g("increment_value"), g("where"),
            ]
        if query_type is QueryType.DECREMENT:
            column = g("column")
            return [
                "UPDATE", g("table"), "SET", column, "=", column,
                "-", g("decrement_value"), g("where"),
            ]
        if query_type is QueryType.FIND:
            return [
                "SELECT * FROM", g("table"), "WHERE", g("primary_key"), "=",
                g("search"),
            ]
        if query_type in AGGREGATES:
            target = g(query_type.value)
            if target is ABSENT:
                target = Fragment("*", (), "*")
            func = target.wrap(f"{query_type.value.upper()}(", ")")
            return ["SELECT", func, "FROM", g("table"), g("where")]
        raise RenderError(f"unknown statement kind {query_type!r}")
