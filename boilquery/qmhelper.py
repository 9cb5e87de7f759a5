"""Helpers for building where clause query mods."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol, Union, runtime_checkable

from boilquery.query import Query


@runtime_checkable
class Nullable(Protocol):
    """A value that can report whether it is NULL."""

    def is_zero(self) -> bool:  # pragma: no cover - protocol
        ...


@dataclass
class WhereQueryMod:
    """A query mod adding one where clause."""

    clause: str
    args: list = field(default_factory=list)

    def apply(self, query: Query) -> None:
        query.append_where(self.clause, *self.args)


class Operator(str, Enum):
    """Comparison operators supported by :func:`where`."""

    EQ = "="
    NEQ = "!="
    LT = "<"
    LTE = "<="
    GT = ">"
    GTE = ">="


def where_null_eq(name: str, negated: bool, value: Any) -> WhereQueryMod:
    """Compare a column with a possibly NULL value, using IS NULL when it is."""
    if isinstance(value, Nullable):
        is_null = bool(value.is_zero())
    else:
        is_null = value is None

    if is_null:
        not_ = "not " if negated else ""
        return WhereQueryMod(clause=f"{name} is {not_}null")

    op = "!=" if negated else "="
    return WhereQueryMod(clause=f"{name} {op} ?", args=[value])


def where_is_null(name: str) -> WhereQueryMod:
    """Make ``name is null``."""
    return WhereQueryMod(clause=f"{name} is null")


def where_is_not_null(name: str) -> WhereQueryMod:
    """Make ``name is not null``."""
    return WhereQueryMod(clause=f"{name} is not null")


def where(name: str, operator: Union[Operator, str], value: Any) -> WhereQueryMod:
    """Compare a column with a value using one of the supported operators."""
    op = Operator(operator)
    return WhereQueryMod(clause=f"{name} {op.value} ?", args=[value])