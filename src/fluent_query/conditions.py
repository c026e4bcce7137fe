"""WHERE conditions.

Each condition is a small value object that renders itself into a
parameterized :class:`~fluent_query._sql.Fragment`. ``Query.where`` accepts
them directly, or builds one from positional arguments with
:func:`condition_from_args`::

    q.where("age > 18")                    # Raw
    q.where("name", "Ann")                 # Equals
    q.where("age", ">=", 18)               # Compare
    q.where("id", "IN", [1, 2, 3])         # In
    q.where("age", "BETWEEN", 18, 30)      # Between
    q.where(In("id", [1, 2, 3], negate=True))
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from ._sql import Fragment, Paramstyle, bare, join_fragments
from .errors import RenderError


class Condition:
    """Base class for WHERE conditions."""

    def render(self, style: Paramstyle) -> Fragment:
        raise NotImplementedError


@dataclass(frozen=True)
class Raw(Condition):
    """A boolean SQL expression used verbatim. Nothing is bound or escaped."""

    expression: str

    def render(self, style: Paramstyle) -> Fragment:
        return Fragment.verbatim(self.expression, style)


@dataclass(frozen=True)
class Equals(Condition):
    column: str
    value: Any

    def render(self, style: Paramstyle) -> Fragment:
        return Compare(self.column, "=", self.value).render(style)


@dataclass(frozen=True)
class Compare(Condition):
    """``column <operator> value``.

    Any operator text is accepted (``REGEXP``, ``<=>``, ``SOUNDS LIKE``, ...);
    only whitespace and case are normalized.
    """

    column: str
    operator: str
    value: Any

    def __post_init__(self) -> None:
        op = " ".join(str(self.operator).split()).upper()
        if op in ("IN", "NOT IN"):
            raise RenderError(f"use In() for {op} conditions")
        if not op:
            raise RenderError("comparison operator must be non-empty text")
        object.__setattr__(self, "operator", op)

    def render(self, style: Paramstyle) -> Fragment:
        value = Fragment.value(self.value, style)
        return Fragment(
            f"{style.escape(self.column)} {style.escape(self.operator)} {value.text}",
            value.params,
            f"{self.column} {self.operator} {value.display}",
        )


@dataclass(frozen=True)
class In(Condition):
    """``column IN (v1, v2, ...)``. An empty list matches nothing."""

    column: str
    values: tuple[Any, ...]
    negate: bool = False

    def __post_init__(self) -> None:
        if isinstance(self.values, (str, bytes)) or not isinstance(
            self.values, Iterable
        ):
            raise RenderError(
                f"IN needs a list of values, got {type(self.values).__name__}"
            )
        object.__setattr__(self, "values", tuple(self.values))

    def render(self, style: Paramstyle) -> Fragment:
        if not self.values:
            # NOT IN () would match everything
            literal = "TRUE" if self.negate else "FALSE"
            return Fragment(literal, (), literal)
        keyword = "NOT IN" if self.negate else "IN"
        items = join_fragments(Fragment.value(v, style) for v in self.values)
        return Fragment(
            f"{style.escape(self.column)} {keyword} ({items.text})",
            items.params,
            f"{self.column} {keyword} ({items.display})",
        )


@dataclass(frozen=True)
class Between(Condition):
    """``column BETWEEN low AND high`` (inclusive)."""

    column: str
    low: Any
    high: Any

    def render(self, style: Paramstyle) -> Fragment:
        ph = style.placeholder
        return Fragment(
            f"{style.escape(self.column)} BETWEEN {ph} AND {ph}",
            (self.low, self.high),
            f"{self.column} BETWEEN {bare(self.low)} AND {bare(self.high)}",
        )


def condition_from_args(*args: Any) -> Condition:
    """Pick a condition from the number of positional arguments.

    Args:
        *args: One of ``(condition)``, ``(expression)``, ``(column, value)``,
            ``(column, operator, value)`` or
            ``(column, "BETWEEN", low, high)``.

    Raises:
        RenderError: For any other arity, or an operator that does not match
            its form.
    """
    if len(args) == 1:
        (arg,) = args
        if isinstance(arg, Condition):
            return arg
        if not isinstance(arg, str) or not arg.strip():
            raise RenderError(
                f"raw WHERE expression must be a non-empty string, got {arg!r}"
            )
        return Raw(arg)
    if len(args) == 2:
        return Equals(args[0], args[1])
    if len(args) == 3:
        column, operator, value = args
        op = " ".join(str(operator).split()).upper()
        if op == "IN":
            return In(column, value)
        if op == "NOT IN":
            return In(column, value, negate=True)
        return Compare(column, operator, value)
    if len(args) == 4:
        column, operator, low, high = args
        if str(operator).strip().upper() != "BETWEEN":
            raise RenderError(
                f"four-argument where() expects 'BETWEEN', got {operator!r}"
            )
        return Between(column, low, high)
    raise RenderError(f"where() takes 1 to 4 arguments, got {len(args)}")
