import re

import pytest

from boilquery.query import (
    ArgClause,
    Dialect,
    Join,
    JoinKind,
    Query,
    Where,
    WhereKind,
    raw,
    set_remove_soft_delete_regex,
)


class _Apple:
    def apply(self, query):
        pass


def test_set_limit():
    q = Query()
    q.set_limit(10)
    assert q.limit == 10


def test_limit_default_is_none():
    assert Query().limit is None


def test_set_offset():
    q = Query()
    q.set_offset(10)
    assert q.offset == 10


def test_set_sql():
    q = Query()
    q.set_sql("select * from thing", 5, 3)
    assert q.raw_args == [5, 3]
    assert q.raw_sql == "select * from thing"


def test_set_load():
    q = Query()
    q.set_load("one", "two")
    assert q.load == ["one", "two"]


def test_append_load():
    q = Query()
    q.append_load("a")
    q.append_load("b.c")
    assert q.load == ["a", "b.c"]


def test_set_load_mods():
    q = Query()
    q.set_load_mods("a", _Apple())
    q.set_load_mods("b", _Apple())
    assert len(q.load_mods) == 2
    assert set(q.load_mods) == {"a", "b"}


def test_append_where():
    q = Query()
    expect = "x > $1 AND y > $2"
    q.append_where(expect, 5, 3)
    q.append_where(expect, 5, 3)
    assert len(q.where) == 2
    assert q.where[0].clause == expect and q.where[1].clause == expect
    assert q.where[0].args == [5, 3]
    assert q.where[0].kind is WhereKind.NORMAL


def test_set_last_where_as_or():
    q = Query()
    q.append_where("")
    assert q.where[0].or_separator is False
    q.set_last_where_as_or()
    assert len(q.where) == 1
    assert q.where[0].or_separator is True
    q.append_where("")
    q.set_last_where_as_or()
    assert len(q.where) == 2
    assert q.where[0].or_separator is True
    assert q.where[1].or_separator is True


def test_set_last_where_as_or_empty_is_noop():
    q = Query()
    q.set_last_where_as_or()
    assert q.where == []


def test_set_last_where_as_or_marks_matching_left_paren():
    q = Query()
    q.append_where("a=?")
    q.append_where_left_paren()
    q.append_where_left_paren()
    q.append_where("b=?")
    q.append_where_right_paren()
    q.append_where_right_paren()
    q.set_last_where_as_or()
    assert [w.or_separator for w in q.where] == [False, True, False, False, False, False]


def test_set_last_where_as_or_unmatched_paren_raises():
    q = Query()
    q.append_where("a=?")
    q.append_where_right_paren()
    with pytest.raises(ValueError):
        q.set_last_where_as_or()


def test_append_in():
    q = Query()
    expect = "col IN ?"
    q.append_in(expect, 5, 3)
    q.append_in(expect, 5, 3)
    assert len(q.where) == 2
    assert q.where[0].clause == expect and q.where[1].clause == expect
    assert q.where[0].args == [5, 3]
    assert q.where[0].kind is WhereKind.IN


def test_append_not_in():
    q = Query()
    q.append_not_in("col NOT IN ?", 1)
    assert q.where == [Where(clause="col NOT IN ?", args=[1], kind=WhereKind.NOT_IN)]


def test_set_last_in_as_or():
    q = Query()
    q.append_in("")
    assert q.where[0].or_separator is False
    q.set_last_in_as_or()
    assert len(q.where) == 1
    assert q.where[0].or_separator is True
    q.append_in("")
    q.set_last_in_as_or()
    assert [w.or_separator for w in q.where] == [True, True]


def test_where_parens():
    q = Query()
    q.append_where_left_paren()
    q.append_where_right_paren()
    assert [w.kind for w in q.where] == [WhereKind.LEFT_PAREN, WhereKind.RIGHT_PAREN]


def test_append_group_by():
    q = Query()
    expect = "col1, col2"
    q.append_group_by(expect)
    q.append_group_by(expect)
    assert q.group_by == [expect, expect]


def test_append_order_by():
    q = Query()
    expect = "col1 desc, col2 asc"
    q.append_order_by(expect, 10)
    q.append_order_by(expect, 10)
    assert q.order_by == [ArgClause(expect, [10]), ArgClause(expect, [10])]


def test_append_having():
    q = Query()
    expect = "count(orders.order_id) > ?"
    q.append_having(expect, 10)
    q.append_having(expect, 10)
    assert len(q.having) == 2
    assert q.having[0].clause == expect and q.having[1].clause == expect
    assert q.having[0].args[0] == 10 and q.having[1].args[0] == 10


def test_from():
    q = Query()
    q.append_from("videos a", "orders b")
    q.append_from("videos a", "orders b")
    expect = ["videos a", "orders b", "videos a", "orders b"]
    assert q.from_ == expect
    q.set_from("videos a", "orders b")
    assert q.from_ == expect[:2]


def test_set_select():
    q = Query(select_cols=["hello"])
    q.set_select(None)
    assert q.select_cols == []
    q.set_select(["a", "b"])
    assert q.select_cols == ["a", "b"]


def test_set_count():
    q = Query()
    q.set_count()
    assert q.count is True


def test_set_distinct():
    q = Query()
    q.set_distinct("id")
    assert q.distinct == "id"


def test_set_update():
    q = Query()
    q.set_update({"test": 5})
    assert q.update["test"] == 5


def test_set_delete():
    q = Query()
    q.set_delete()
    assert q.delete is True


def test_set_args():
    q = Query()
    q.set_args(2)
    assert q.raw_args == [2]


def test_set_for():
    q = Query()
    q.set_for("update")
    assert q.for_lock == "update"


def test_set_dialect():
    q = Query()
    dialect = Dialect(lq="`", rq="`", use_index_placeholders=False)
    q.set_dialect(dialect)
    assert q.dialect == dialect


def test_append_select():
    q = Query()
    q.append_select("col1", "col2")
    q.append_select("col1", "col2")
    assert q.select_cols == ["col1", "col2", "col1", "col2"]


def test_raw():
    q = raw("thing", 5)
    assert q.raw_sql == "thing"
    assert q.raw_args == [5]


@pytest.mark.parametrize(
    "method, kind",
    [
        ("append_inner_join", JoinKind.INNER),
        ("append_left_outer_join", JoinKind.OUTER_LEFT),
        ("append_right_outer_join", JoinKind.OUTER_RIGHT),
        ("append_full_outer_join", JoinKind.OUTER_FULL),
    ],
)
def test_append_joins(method, kind):
    q = Query()
    getattr(q, method)("thing=$1 AND stuff=$2", 2, 5)
    getattr(q, method)("thing=$1 AND stuff=$2", 2, 5)
    assert len(q.joins) == 2
    assert q.joins[0] == Join(clause="thing=$1 AND stuff=$2", kind=kind, args=[2, 5])
    assert q.joins[1] == Join(clause="thing=$1 AND stuff=$2", kind=kind, args=[2, 5])


def test_append_with():
    q = Query()
    q.append_with("cte_0 AS (SELECT * FROM table_0 WHERE thing=$1 AND stuff=$2)", 5, 10)
    q.append_with("cte_1 AS (SELECT * FROM table_1 WHERE thing=$1 AND stuff=$2)", 5, 10)
    assert len(q.withs) == 2
    assert q.withs[0].clause == "cte_0 AS (SELECT * FROM table_0 WHERE thing=$1 AND stuff=$2)"
    assert q.withs[1].clause == "cte_1 AS (SELECT * FROM table_1 WHERE thing=$1 AND stuff=$2)"
    assert q.withs[0].args == [5, 10]
    assert q.withs[1].args == [5, 10]


def test_set_comment():
    q = Query()
    q.set_comment("my comment")
    assert q.comment == "my comment"


def test_remove_soft_delete_where_last():
    q = Query()
    q.append_where("a")
    q.append_where("b")
    q.append_where("deleted_at = false")
    q.append_where('"hello"."deleted_at" is null')
    q.remove_soft_delete_where()
    q.strip_soft_delete_where()
    assert [w.clause for w in q.where] == ["a", "b", "deleted_at = false"]


def test_remove_soft_delete_where_middle():
    q = Query()
    q.append_where("a")
    q.append_where("b")
    q.append_where('"hello"."deleted_at" is null')
    q.append_where("deleted_at = false")
    q.remove_soft_delete_where()
    q.strip_soft_delete_where()
    assert [w.clause for w in q.where] == ["a", "b", "deleted_at = false"]


def test_strip_soft_delete_without_request_keeps_clauses():
    q = Query()
    q.append_where("deleted_at is null")
    q.strip_soft_delete_where()
    assert [w.clause for w in q.where] == ["deleted_at is null"]


def test_strip_soft_delete_removes_only_one():
    q = Query()
    q.append_where("deleted_at is null")
    q.append_where("deleted_at is null")
    q.remove_soft_delete_where()
    q.strip_soft_delete_where()
    assert len(q.where) == 1


def test_set_remove_soft_delete_regex():
    try:
        set_remove_soft_delete_regex(r"removed_on is null")
        q = Query()
        q.append_where("deleted_at is null")
        q.append_where("removed_on is null")
        q.remove_soft_delete_where()
        q.strip_soft_delete_where()
        assert [w.clause for w in q.where] == ["deleted_at is null"]
    finally:
        set_remove_soft_delete_regex(re.compile(r"deleted_at[\"'`]? is null"))