"""Query mods: small objects that each change one aspect of a query."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, List

from boilquery.qmhelper import WhereQueryMod
from boilquery.query import Applicator, Query


class QueryMod:
    """A query modification backed by a function of the query."""

    __slots__ = ("_func",)

    def __init__(self, func: Callable[[Query], None]) -> None:
        self._func = func

    def apply(self, query: Query) -> None:
        """Apply the modification to ``query``."""
        self._func(query)

    def __call__(self, query: Query) -> None:
        self._func(query)


@dataclass
class QueryMods:
    """A sequence of query mods applied together, in order."""

    mods: List[Applicator] = field(default_factory=list)

    def apply(self, query: Query) -> None:
        apply(query, *self.mods)

    def __iter__(self):
        return iter(self.mods)

    def __len__(self) -> int:
        return len(self.mods)


def apply(query: Query, *args: Applicator) -> None:
    """Apply each query mod to ``query`` in the order given."""
    for mod in args:
        mod.apply(query)


def sql(statement: str, *args: Any) -> QueryMod:
    """Run a plain SQL statement instead of a built one."""
    return QueryMod(lambda query: query.set_sql(statement, *args))


def load(relationship: str, *args: Applicator) -> QueryMod:
    """Eager load a dotted relationship path, filtered by the given mods.

    The mods apply only to the last relationship of the path.
    """
    mods = list(args)

    def _apply(query: Query) -> None:
        query.append_load(relationship)
        if mods:
            query.set_load_mods(relationship, QueryMods(mods))

    return QueryMod(_apply)


def inner_join(clause: str, *args: Any) -> QueryMod:
    """Inner join another table."""
    return QueryMod(lambda query: query.append_inner_join(clause, *args))


def left_outer_join(clause: str, *args: Any) -> QueryMod:
    """Left outer join another table."""
    return QueryMod(lambda query: query.append_left_outer_join(clause, *args))


def right_outer_join(clause: str, *args: Any) -> QueryMod:
    """Right outer join another table."""
    return QueryMod(lambda query: query.append_right_outer_join(clause, *args))


def full_outer_join(clause: str, *args: Any) -> QueryMod:
    """Full outer join another table."""
    return QueryMod(lambda query: query.append_full_outer_join(clause, *args))


def distinct(clause: str) -> QueryMod:
    """Select distinct values of ``clause``."""
    return QueryMod(lambda query: query.set_distinct(clause))


def with_(clause: str, *args: Any) -> QueryMod:
    """Add a common table expression."""
    return QueryMod(lambda query: query.append_with(clause, *args))


def select(*args: str) -> QueryMod:
    """Select specific columns rather than all of them."""
    columns = list(args)
    return QueryMod(lambda query: query.append_select(*columns))


def where(clause: str, *args: Any) -> WhereQueryMod:
    """Add a where clause; several are joined with AND."""
    return WhereQueryMod(clause=clause, args=list(args))


def and_(clause: str, *args: Any) -> QueryMod:
    """Add a where clause joined with AND; the same as :func:`where`."""
    return QueryMod(lambda query: query.append_where(clause, *args))


def or_(clause: str, *args: Any) -> QueryMod:
    """Add a where clause joined with OR."""

    def _apply(query: Query) -> None:
        query.append_where(clause, *args)
        query.set_last_where_as_or()

    return QueryMod(_apply)


def or2(mod: Applicator) -> QueryMod:
    """Apply a where mod and turn its expression into an OR.

    Applied to anything else it still marks the last where expression as OR.
    """

    def _apply(query: Query) -> None:
        mod.apply(query)
        query.set_last_where_as_or()

    return QueryMod(_apply)


def where_in(clause: str, *args: Any) -> QueryMod:
    """Add an ``x IN (set)`` clause, e.g. ``"(a,b) in ?"``."""
    return QueryMod(lambda query: query.append_in(clause, *args))


def and_in(clause: str, *args: Any) -> QueryMod:
    """Add an IN clause joined with AND; the same as :func:`where_in`."""
    return QueryMod(lambda query: query.append_in(clause, *args))


def or_in(clause: str, *args: Any) -> QueryMod:
    """Add an IN clause joined with OR."""

    def _apply(query: Query) -> None:
        query.append_in(clause, *args)
        query.set_last_in_as_or()

    return QueryMod(_apply)


def where_not_in(clause: str, *args: Any) -> QueryMod:
    """Add an ``x NOT IN (set)`` clause."""
    return QueryMod(lambda query: query.append_not_in(clause, *args))


def and_not_in(clause: str, *args: Any) -> QueryMod:
    """Add a NOT IN clause joined with AND."""
    return QueryMod(lambda query: query.append_not_in(clause, *args))


def or_not_in(clause: str, *args: Any) -> QueryMod:
    """Add a NOT IN clause joined with OR."""

    def _apply(query: Query) -> None:
        query.append_not_in(clause, *args)
        query.set_last_in_as_or()

    return QueryMod(_apply)


def expr(*args: Applicator) -> QueryMod:
    """Group where mods in parentheses.

    Once used, the query no longer parenthesises where expressions on its own.
    """
    mods = list(args)

    def _apply(query: Query) -> None:
        query.append_where_left_paren()
        apply(query, *mods)
        query.append_where_right_paren()

    return QueryMod(_apply)


def group_by(clause: str) -> QueryMod:
    """Add a group by clause."""
    return QueryMod(lambda query: query.append_group_by(clause))


def order_by(clause: str, *args: Any) -> QueryMod:
    """Add an order by clause."""
    return QueryMod(lambda query: query.append_order_by(clause, *args))


def having(clause: str, *args: Any) -> QueryMod:
    """Add a having clause."""
    return QueryMod(lambda query: query.append_having(clause, *args))


def from_(table: str) -> QueryMod:
    """Add a table to select from."""
    return QueryMod(lambda query: query.append_from(table))


def limit(count: int) -> QueryMod:
    """Limit the number of returned rows."""
    return QueryMod(lambda query: query.set_limit(count))


def offset(count: int) -> QueryMod:
    """Skip rows at the start of the result."""
    return QueryMod(lambda query: query.set_offset(count))


def for_(clause: str) -> QueryMod:
    """Append a locking clause such as ``update``."""
    return QueryMod(lambda query: query.set_for(clause))


def comment(text: str) -> QueryMod:
    """Put a comment at the start of the query."""
    return QueryMod(lambda query: query.set_comment(text))


def rels(*args: str) -> str:
    """Join relationship names into a dotted path for :func:`load`."""
    return ".".join(args)


def with_deleted() -> QueryMod:
    """Drop the automatic soft-delete where clause from the query."""
    return QueryMod(lambda query: query.remove_soft_delete_where())


def _iter_mods(mods: Iterable[Applicator]) -> List[Applicator]:
    return list(mods)