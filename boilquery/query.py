"""Query state and the primitives that modify it."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Optional, Pattern, Protocol, Sequence, Union, runtime_checkable

_remove_soft_delete_regex: Pattern[str] = re.compile(r"deleted_at[\"'`]? is null")


def set_remove_soft_delete_regex(pattern: Union[str, Pattern[str]]) -> None:
    """Replace the pattern that identifies the automatic soft-delete where clause."""
    global _remove_soft_delete_regex
    _remove_soft_delete_regex = re.compile(pattern) if isinstance(pattern, str) else pattern


@dataclass(frozen=True)
class Dialect:
    """Quoting and placeholder conventions of a SQL dialect."""

    lq: str = '"'
    rq: str = '"'
    use_index_placeholders: bool = False
    use_top_clause: bool = False


class JoinKind(Enum):
    INNER = auto()
    OUTER_LEFT = auto()
    OUTER_RIGHT = auto()
    NATURAL = auto()
    OUTER_FULL = auto()


class WhereKind(Enum):
    NORMAL = auto()
    LEFT_PAREN = auto()
    RIGHT_PAREN = auto()
    IN = auto()
    NOT_IN = auto()


@dataclass
class Where:
    """One expression (or parenthesis) of a WHERE clause."""

    clause: str = ""
    args: list = field(default_factory=list)
    kind: WhereKind = WhereKind.NORMAL
    or_separator: bool = False


@dataclass
class ArgClause:
    """A clause with its bound arguments."""

    clause: str
    args: list = field(default_factory=list)


@dataclass
class Join:
    """A join clause with its kind and bound arguments."""

    clause: str
    kind: JoinKind = JoinKind.INNER
    args: list = field(default_factory=list)


@runtime_checkable
class Applicator(Protocol):
    """Anything that can modify a query."""

    def apply(self, query: "Query") -> None:  # pragma: no cover - protocol
        ...


@dataclass
class Query:
    """The accumulated state of a query being built."""

    dialect: Dialect = field(default_factory=Dialect)
    raw_sql: str = ""
    raw_args: list = field(default_factory=list)

    load: list = field(default_factory=list)
    load_mods: dict = field(default_factory=dict)

    delete: bool = False
    update: dict = field(default_factory=dict)
    withs: list = field(default_factory=list)
    select_cols: list = field(default_factory=list)
    count: bool = False
    from_: list = field(default_factory=list)
    joins: list = field(default_factory=list)
    where: list = field(default_factory=list)
    group_by: list = field(default_factory=list)
    order_by: list = field(default_factory=list)
    having: list = field(default_factory=list)
    limit: Optional[int] = None
    offset: int = 0
    for_lock: str = ""
    distinct: str = ""
    comment: str = ""

    remove_soft_delete: bool = False

    def set_dialect(self, dialect: Dialect) -> None:
        self.dialect = dialect

    def set_sql(self, sql: str, *args: Any) -> None:
        self.raw_sql = sql
        self.raw_args = list(args)

    def set_args(self, *args: Any) -> None:
        """Replace the arguments of an already built or raw query."""
        self.raw_args = list(args)

    def set_load(self, *args: str) -> None:
        self.load = list(args)

    def append_load(self, relationship: str) -> None:
        self.load.append(relationship)

    def set_load_mods(self, relationship: str, applicator: Applicator) -> None:
        self.load_mods[relationship] = applicator

    def set_select(self, columns: Optional[Sequence[str]]) -> None:
        self.select_cols = list(columns) if columns else []

    def set_distinct(self, distinct: str) -> None:
        self.distinct = distinct

    def set_count(self) -> None:
        self.count = True

    def set_delete(self) -> None:
        self.delete = True

    def set_limit(self, limit: int) -> None:
        self.limit = limit

    def set_offset(self, offset: int) -> None:
        self.offset = offset

    def set_for(self, clause: str) -> None:
        self.for_lock = clause

    def set_comment(self, comment: str) -> None:
        self.comment = comment

    def set_update(self, columns: dict) -> None:
        self.update = columns

    def append_select(self, *args: str) -> None:
        self.select_cols.extend(args)

    def append_from(self, *args: str) -> None:
        self.from_.extend(args)

    def set_from(self, *args: str) -> None:
        self.from_ = list(args)

    def _append_join(self, kind: JoinKind, clause: str, args: tuple) -> None:
        self.joins.append(Join(clause=clause, kind=kind, args=list(args)))

    def append_inner_join(self, clause: str, *args: Any) -> None:
        self._append_join(JoinKind.INNER, clause, args)

    def append_left_outer_join(self, clause: str, *args: Any) -> None:
        self._append_join(JoinKind.OUTER_LEFT, clause, args)

    def append_right_outer_join(self, clause: str, *args: Any) -> None:
        self._append_join(JoinKind.OUTER_RIGHT, clause, args)

    def append_full_outer_join(self, clause: str, *args: Any) -> None:
        self._append_join(JoinKind.OUTER_FULL, clause, args)

    def append_having(self, clause: str, *args: Any) -> None:
        self.having.append(ArgClause(clause, list(args)))

    def append_where(self, clause: str, *args: Any) -> None:
        self.where.append(Where(clause=clause, args=list(args)))

    def append_in(self, clause: str, *args: Any) -> None:
        self.where.append(Where(clause=clause, args=list(args), kind=WhereKind.IN))

    def append_not_in(self, clause: str, *args: Any) -> None:
        self.where.append(Where(clause=clause, args=list(args), kind=WhereKind.NOT_IN))

    def set_last_where_as_or(self) -> None:
        """Mark the last where expression (or parenthesised group) as OR-separated."""
        if not self.where:
            return
        last = self.where[-1]
        if last.kind is not WhereKind.RIGHT_PAREN:
            last.or_separator = True
            return

        depth = 0
        for item in reversed(self.where[:-1]):
            if item.kind is WhereKind.LEFT_PAREN:
                if depth == 0:
                    item.or_separator = True
                    return
                depth -= 1
            elif item.kind is WhereKind.RIGHT_PAREN:
                depth += 1
        raise ValueError("could not find matching ( in where query expr")

    def set_last_in_as_or(self) -> None:
        self.set_last_where_as_or()

    def append_where_left_paren(self) -> None:
        self.where.append(Where(kind=WhereKind.LEFT_PAREN))

    def append_where_right_paren(self) -> None:
        self.where.append(Where(kind=WhereKind.RIGHT_PAREN))

    def append_group_by(self, clause: str) -> None:
        self.group_by.append(clause)

    def append_order_by(self, clause: str, *args: Any) -> None:
        self.order_by.append(ArgClause(clause, list(args)))

    def append_with(self, clause: str, *args: Any) -> None:
        self.withs.append(ArgClause(clause, list(args)))

    def remove_soft_delete_where(self) -> None:
        """Ask for the automatic soft-delete where clause to be dropped at build time."""
        self.remove_soft_delete = True

    def strip_soft_delete_where(self) -> None:
        """Drop the last plain where clause matching the soft-delete pattern, if requested."""
        if not self.remove_soft_delete:
            return
        for index in range(len(self.where) - 1, -1, -1):
            item = self.where[index]
            if item.kind is WhereKind.NORMAL and _remove_soft_delete_regex.search(item.clause):
                del self.where[index]
                return


def raw(sql: str, *args: Any) -> Query:
    """Make a query from raw SQL text and its arguments."""
    return Query(raw_sql=sql, raw_args=list(args))