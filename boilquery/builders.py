"""Turning a Query into SQL text with its arguments, and running it."""

from __future__ import annotations

import logging
import re
from typing import Any, Iterable, List, Optional, Sequence, Tuple

from boilquery.query import JoinKind, Query, WhereKind

logger = logging.getLogger(__name__)

_IDENTIFIER = re.compile(
    r'"?[a-z_][_a-z0-9]*"?(?:\."?[_a-z][_a-z0-9]*"?)*', re.IGNORECASE | re.ASCII
)
_IN_CLAUSE = re.compile(
    r"(.*[\s|\)|\?])IN([\s|\(|\?].*)", re.IGNORECASE | re.ASCII
)
_NOT_IN_CLAUSE = re.compile(
    r"(.*[\s|\)|\?])NOT\s+IN([\s|\(|\?].*)", re.IGNORECASE | re.ASCII
)
_SMART_QUOTE = re.compile(
    r'"?[a-z_][_a-z0-9\-]*"?(\."?[_a-z][_a-z0-9]*"?)*(\.\*)?', re.IGNORECASE | re.ASCII
)
_COMMENT_SPLIT = re.compile(r"[\n\r]+")

_JOIN_KEYWORDS = {
    JoinKind.INNER: "INNER JOIN",
    JoinKind.OUTER_LEFT: "LEFT JOIN",
    JoinKind.OUTER_RIGHT: "RIGHT JOIN",
    JoinKind.OUTER_FULL: "FULL JOIN",
}


def ident_quote(lq: str, rq: str, identifier: str) -> str:
    """Quote a simple, possibly dotted identifier; leave anything else untouched."""
    if identifier.lower() == "null" or identifier == "?":
        return identifier
    if not _SMART_QUOTE.fullmatch(identifier):
        return identifier

    pieces = []
    for piece in identifier.split("."):
        if not piece or piece[0] == lq or piece[-1] == rq or piece == "*":
            pieces.append(piece)
        else:
            pieces.append(f"{lq}{piece}{rq}")
    return ".".join(pieces)


def ident_quote_list(lq: str, rq: str, identifiers: Iterable[str]) -> List[str]:
    """Quote every identifier of a sequence."""
    return [ident_quote(lq, rq, ident) for ident in identifiers]


def placeholders(use_index_placeholders: bool, count: int, start: int, group: int) -> str:
    """Make ``count`` placeholders starting at ``start``, grouped ``group`` at a time."""
    if start == 0 or group == 0:
        raise ValueError("Invalid start or group numbers supplied.")

    out = ["("] if group > 1 else []
    for i in range(count):
        if i:
            out.append("),(" if group > 1 and i % group == 0 else ",")
        out.append(f"${start + i}" if use_index_placeholders else "?")
    if group > 1:
        out.append(")")
    return "".join(out)


def build_query(query: Query) -> Tuple[str, list]:
    """Build the SQL text and argument list of a query, caching the result on it."""
    query.strip_soft_delete_where()

    if query.raw_sql:
        return query.raw_sql, query.raw_args
    if query.delete:
        text, args = _build_delete_query(query)
    elif query.update:
        text, args = _build_update_query(query)
    else:
        text, args = _build_select_query(query)

    query.raw_sql = text
    query.raw_args = args
    return text, args


def _log(text: str, args: Sequence[Any]) -> None:
    logger.debug("%s", text)
    logger.debug("%s", list(args))


def exec_query(query: Query, executor: Any) -> Any:
    """Run a query that returns no rows; return whatever the executor returns."""
    text, args = build_query(query)
    _log(text, args)
    return executor.execute(text, tuple(args))


def query_rows(query: Query, executor: Any) -> Any:
    """Run a query and return the executor's cursor over all rows."""
    text, args = build_query(query)
    _log(text, args)
    return executor.execute(text, tuple(args))


def query_row(query: Query, executor: Any) -> Optional[Any]:
    """Run a query and return its first row, or None if there is none."""
    text, args = build_query(query)
    _log(text, args)
    return executor.execute(text, tuple(args)).fetchone()


def _convert_if_indexed(query: Query, text: str, start_at: int) -> str:
    if query.dialect.use_index_placeholders:
        return convert_question_marks(text, start_at)[0]
    return text


def _build_select_query(query: Query) -> Tuple[str, list]:
    dialect = query.dialect
    args: list = []
    out = [write_comment(query), _write_ctes(query, args), "SELECT "]

    if dialect.use_top_clause and query.limit is not None and query.offset == 0:
        out.append(f" TOP ({query.limit}) ")

    if query.count:
        out.append("COUNT(")

    has_select = bool(query.select_cols)
    has_joins = bool(query.joins)
    if query.distinct:
        out.append("DISTINCT ")
        out.append(f"({query.distinct})" if query.count else query.distinct)
    elif has_joins and has_select and not query.count:
        out.append(", ".join(write_as_statements(query)))
    elif has_select:
        out.append(", ".join(ident_quote_list(dialect.lq, dialect.rq, query.select_cols)))
    elif has_joins and not query.count:
        out.append(", ".join(write_stars(query)))
    else:
        out.append("*")

    if query.count:
        out.append(")")

    out.append(" FROM " + ", ".join(ident_quote_list(dialect.lq, dialect.rq, query.from_)))

    if query.joins:
        args_len = len(args)
        join_parts = []
        for join in query.joins:
            keyword = _JOIN_KEYWORDS.get(join.kind)
            if keyword is None:
                raise ValueError(f"Unsupported join of kind {join.kind}")
            join_parts.append(f" {keyword} {join.clause}")
            args.extend(join.args)
        out.append(_convert_if_indexed(query, "".join(join_parts), args_len + 1))

    where, where_args = where_clause(query, len(args) + 1)
    out.append(where)
    args.extend(where_args)

    out.append(_write_modifiers(query, args))
    out.append(";")
    return "".join(out), args


def _build_delete_query(query: Query) -> Tuple[str, list]:
    dialect = query.dialect
    args: list = []
    out = [write_comment(query), _write_ctes(query, args), "DELETE FROM "]
    out.append(", ".join(ident_quote_list(dialect.lq, dialect.rq, query.from_)))

    where, where_args = where_clause(query, 1)
    args.extend(where_args)
    out.append(where)

    out.append(_write_modifiers(query, args))
    out.append(";")
    return "".join(out), args


def _build_update_query(query: Query) -> Tuple[str, list]:
    dialect = query.dialect
    args: list = []
    out = [write_comment(query), _write_ctes(query, args), "UPDATE "]
    out.append(", ".join(ident_quote_list(dialect.lq, dialect.rq, query.from_)))

    columns = sorted(query.update)
    args.extend(query.update[name] for name in columns)
    assignments = [
        "{} = {}".format(
            ident_quote(dialect.lq, dialect.rq, name),
            placeholders(dialect.use_index_placeholders, 1, index, 1),
        )
        for index, name in enumerate(columns, start=1)
    ]
    out.append(" SET " + ", ".join(assignments))

    where, where_args = where_clause(query, len(args) + 1)
    args.extend(where_args)
    out.append(where)

    out.append(_write_modifiers(query, args))
    out.append(";")
    return "".join(out), args


def _write_parameterized(query: Query, args: list, keyword: str, delim: str, clauses) -> str:
    args_len = len(args)
    text = keyword + delim.join(item.clause for item in clauses)
    for item in clauses:
        args.extend(item.args)
    return _convert_if_indexed(query, text, args_len + 1)


def _write_modifiers(query: Query, args: list) -> str:
    out = []
    if query.group_by:
        out.append(" GROUP BY " + ", ".join(query.group_by))
    if query.having:
        out.append(_write_parameterized(query, args, " HAVING ", " AND ", query.having))
    if query.order_by:
        out.append(_write_parameterized(query, args, " ORDER BY ", ", ", query.order_by))

    if not query.dialect.use_top_clause:
        if query.limit is not None:
            out.append(f" LIMIT {query.limit}")
        if query.offset != 0:
            out.append(f" OFFSET {query.offset}")
    elif query.offset != 0:
        # OFFSET/FETCH requires an ORDER BY clause.
        if not query.order_by:
            out.append(" ORDER BY (SELECT NULL)")
        out.append(f" OFFSET {query.offset} ROWS")
        if query.limit is not None:
            out.append(f" FETCH NEXT {query.limit} ROWS ONLY")

    if query.for_lock:
        out.append(f" FOR {query.for_lock}")
    return "".join(out)


def write_stars(query: Query) -> List[str]:
    """Make a ``table.*`` selection for every FROM entry, honouring aliases."""
    dialect = query.dialect
    columns = []
    for entry in query.from_:
        tokens = entry.split(" ")
        if len(tokens) == 1:
            columns.append(f"{ident_quote(dialect.lq, dialect.rq, tokens[0])}.*")
            continue
        alias, name, ok = parse_from_clause(tokens)
        if not ok:
            return []
        columns.append(f"{ident_quote(dialect.lq, dialect.rq, alias or name)}.*")
    return columns


def write_as_statements(query: Query) -> List[str]:
    """Quote selected columns, aliasing dotted ones to their dotted name."""
    dialect = query.dialect
    columns = []
    for column in query.select_cols:
        if not _IDENTIFIER.fullmatch(column):
            columns.append(column)
            continue
        tokens = column.split(".")
        quoted = ident_quote(dialect.lq, dialect.rq, column)
        if len(tokens) == 1:
            columns.append(quoted)
            continue
        alias = ".".join(token.strip('"') for token in tokens)
        columns.append(f'{quoted} as "{alias}"')
    return columns


def where_clause(query: Query, start_at: int) -> Tuple[str, list]:
    """Render the query's where expressions, numbering placeholders from ``start_at``."""
    if not query.where:
        return "", []

    dialect = query.dialect
    manual_parens = any(
        item.kind in (WhereKind.LEFT_PAREN, WhereKind.RIGHT_PAREN) for item in query.where
    )

    def wrap(text: str) -> str:
        return text if manual_parens else f"({text})"

    out = [" WHERE "]
    args: list = []
    not_first = False
    for item in query.where:
        if not_first and item.kind is not WhereKind.RIGHT_PAREN:
            out.append(" OR " if item.or_separator else " AND ")
        else:
            not_first = True

        if item.kind is WhereKind.NORMAL:
            if dialect.use_index_placeholders:
                text, count = convert_question_marks(item.clause, start_at)
                start_at += count
            else:
                text = item.clause
            out.append(wrap(text))
            args.extend(item.args)
        elif item.kind is WhereKind.LEFT_PAREN:
            out.append("(")
            not_first = False
        elif item.kind is WhereKind.RIGHT_PAREN:
            out.append(")")
        elif item.kind in (WhereKind.IN, WhereKind.NOT_IN):
            is_in = item.kind is WhereKind.IN
            total = len(item.args)
            # An empty IN is invalid SQL, so substitute an always-false/true test.
            if total == 0:
                out.append("(1=0)" if is_in else "(1=1)")
                continue

            pattern = _IN_CLAUSE if is_in else _NOT_IN_CLAUSE
            match = pattern.fullmatch(item.clause)
            if match is None:
                text, count = convert_in_question_marks(
                    dialect.use_index_placeholders, item.clause, start_at, 1, total
                )
                out.append(wrap(text))
                args.extend(item.args)
                start_at += count
                continue

            left_side = match.group(1).strip()
            right_side = match.group(2).strip()
            columns = ident_quote_list(dialect.lq, dialect.rq, left_side.split(","))
            group_at = len(columns)

            if dialect.use_index_placeholders:
                left_clause, left_count = convert_question_marks(",".join(columns), start_at)
            else:
                left_count = sum(1 for column in columns if column == "?")
                left_clause = ",".join(columns)
            right_clause, right_count = convert_in_question_marks(
                dialect.use_index_placeholders,
                right_side,
                start_at + left_count,
                group_at,
                total - left_count,
            )
            keyword = " IN " if is_in else " NOT IN "
            out.append(wrap(left_clause + keyword + right_clause))
            start_at += left_count + right_count
            args.extend(item.args)
        else:
            raise ValueError("unknown where type")

    return "".join(out), args


def convert_in_question_marks(
    use_index_placeholders: bool, clause: str, start_at: int, group_at: int, total: int
) -> Tuple[str, int]:
    """Replace the first unescaped ``?`` with a parenthesised placeholder list."""
    if start_at == 0 or not clause:
        raise ValueError("Not a valid start number.")

    found_at = next(
        (
            i
            for i, char in enumerate(clause)
            if char == "?" and (i == 0 or clause[i - 1] != "\\")
        ),
        -1,
    )
    if found_at == -1:
        return clause.replace("\\?", "?"), 0

    replaced = "{}({}){}".format(
        clause[:found_at],
        placeholders(use_index_placeholders, total, start_at, group_at),
        clause[found_at + 1 :],
    )
    return replaced.replace("\\?", "?"), total


def convert_question_marks(clause: str, start_at: int) -> Tuple[str, int]:
    """Replace each unescaped ``?`` with ``$n`` counting from ``start_at``."""
    if start_at == 0:
        raise ValueError("Not a valid start number.")

    out = []
    index = 0
    total = 0
    while index < len(clause):
        clause = clause[index:]
        index = clause.find("?")
        if index == -1:
            out.append(clause)
            break

        escape_index = clause.find("\\?")
        if escape_index != -1 and index > escape_index:
            out.append(clause[:escape_index] + "?")
            index += 1
            continue

        out.append(f"{clause[:index]}${start_at}")
        total += 1
        start_at += 1
        index += 1

    return "".join(out), total


def parse_from_clause(tokens: Sequence[str]) -> Tuple[str, str, bool]:
    """Parse ``a``, ``a b`` or ``a as b`` into ``(alias, name, ok)``."""
    alias, name, ok = "", "", False
    saw_ident = saw_as = False
    for token in list(tokens)[:3]:
        lowered = token.lower()
        if saw_ident and lowered == "as":
            saw_as = True
            continue
        if saw_ident and lowered == "on":
            break
        if not _IDENTIFIER.fullmatch(token):
            break
        if saw_ident or saw_as:
            alias = token.strip('"')
            break
        name = token.strip('"')
        saw_ident = True
        ok = True
    return alias, name, ok


def write_comment(query: Query) -> str:
    """Render the query comment as SQL line comments."""
    if not query.comment:
        return ""
    return "".join(f"-- {line}\n" for line in _COMMENT_SPLIT.split(query.comment))


def _write_ctes(query: Query, args: list) -> str:
    if not query.withs:
        return ""
    args_len = len(args)
    body = ",".join(f" {item.clause}" for item in query.withs) + " "
    for item in query.withs:
        args.extend(item.args)
    return "WITH" + _convert_if_indexed(query, body, args_len + 1)