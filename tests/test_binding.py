import dataclasses
import sqlite3
from dataclasses import dataclass
from typing import Any, Optional

import pytest

from boilquery.binding import (
    BindError,
    NoRowsError,
    assign_from_mapping,
    bind,
    bind_mapping,
    bind_query,
    boil_field,
    get_boil_tag,
    make_struct_mapping,
    un_title_case,
    values_from_mapping,
)
from boilquery.query import Query


@dataclass
class _Tagged:
    first_name: str = boil_field("test_one", bind=True, default="")
    last_name: str = boil_field("test_two", default="")
    middle_name: str = boil_field("middle_name", bind=True, default="")
    awesome_name: str = boil_field("awesome_name", default="")
    age: str = boil_field("", bind=True, default="")
    face: str = boil_field("-", default="")
    nose: str = ""


@dataclass
class _Inner2:
    nose: str = ""


@dataclass
class _Nested:
    last_name: str = boil_field("different", default="")
    awesome_name: str = boil_field("awesome_name", default="")
    face: str = boil_field("-", default="")
    nose: str = ""
    nested2: _Inner2 = boil_field(bind=True, default_factory=_Inner2)


@dataclass
class _Top:
    last_name: str = boil_field("different", default="")
    awesome_name: str = boil_field("awesome_name", default="")
    face: str = boil_field("-", default="")
    nose: str = ""
    nested: _Nested = boil_field(bind=True, default_factory=_Nested)


@dataclass
class _NestedPtrs:
    int_: int = 0
    int_p: Optional[int] = None
    nested_ptrs_p: Optional["_NestedPtrs"] = None


@dataclass
class _Result:
    id: int = 0
    name: str = boil_field("test", default="")


@dataclass
class _HappyIdent:
    id: int = boil_field("identifier", default=0)


@dataclass
class _IdOnly:
    id: int = 0


@dataclass
class _JoinResult:
    happy: _HappyIdent = boil_field(bind=True, default_factory=_HappyIdent)
    fun: _IdOnly = boil_field(bind=True, default_factory=_IdOnly)


@dataclass
class _JoinSelectResult:
    happy: _IdOnly = boil_field("h", bind=True, default_factory=_IdOnly)
    fun: _IdOnly = boil_field(bind=True, default_factory=_IdOnly)


class _Rel:
    def __init__(self, children):
        self.Children = children


class _Loader:
    calls = []

    def load_Children(self, executor, singular, obj, mods):
        _Loader.calls.append((executor, singular))
        targets = [obj] if singular else obj
        for target in targets:
            target.R = _Rel([f"child-of-{target.id}"])


@dataclass
class _Parent:
    id: int = 0
    R: Any = boil_field("-", default=None)
    L: Any = boil_field("-", default_factory=_Loader)


@pytest.fixture
def conn():
    connection = sqlite3.connect(":memory:")
    connection.execute("CREATE TABLE fun (id INTEGER, test TEXT)")
    connection.executemany(
        "INSERT INTO fun VALUES (?, ?)", [(35, "pat"), (12, "cat")]
    )
    yield connection
    connection.close()


def test_get_boil_tag():
    expected = [
        ("test_one", True),
        ("test_two", False),
        ("middle_name", True),
        ("awesome_name", False),
        ("", True),
        ("-", False),
        ("", False),
    ]
    got = [get_boil_tag(f) for f in dataclasses.fields(_Tagged)]
    assert got == expected


def test_boil_field_keeps_other_options():
    field = boil_field("x", bind=True, default=3, metadata={"other": 1})
    assert dict(field.metadata) == {"other": 1, "boil": "x,bind"}
    assert field.default == 3
    assert get_boil_tag(field) == ("x", True)


@pytest.mark.parametrize(
    "name, expected",
    [
        ("HelloThere", "hello_there"),
        ("", ""),
        ("AA", "aa"),
        ("FunID", "fun_id"),
        ("UID", "uid"),
        ("GUID", "guid"),
        ("UUID", "uuid"),
        ("SSN", "ssn"),
        ("TZ", "tz"),
        ("ThingGUID", "thing_guid"),
        ("GUIDThing", "guid_thing"),
        ("ThingGUIDThing", "thing_guid_thing"),
        ("ID", "id"),
        ("GVZXC", "gvzxc"),
        ("IDTRGBID", "id_trgb_id"),
        ("ThingZXCStuffVXZ", "thing_zxc_stuff_vxz"),
        ("ZXCThingVXZStuff", "zxc_thing_vxz_stuff"),
        ("ZXCVDF9C9Hello9", "zxcvdf9_c9_hello9"),
        ("ID9UID911GUID9E9", "id9_uid911_guid9_e9"),
        ("ZXCVDF0C0Hello0", "zxcvdf0_c0_hello0"),
        ("ID0UID000GUID0E0", "id0_uid000_guid0_e0"),
        ("Ab5ZXC5D5", "ab5_zxc5_d5"),
        ("Identifier", "identifier"),
        ("awesome_name", "awesome_name"),
    ],
)
def test_un_title_case(name, expected):
    assert un_title_case(name) == expected


def test_make_struct_mapping():
    got = make_struct_mapping(_Top)
    assert got == {
        "different": ("last_name",),
        "awesome_name": ("awesome_name",),
        "nose": ("nose",),
        "nested.different": ("nested", "last_name"),
        "nested.awesome_name": ("nested", "awesome_name"),
        "nested.nose": ("nested", "nose"),
        "nested.nested2.nose": ("nested", "nested2", "nose"),
    }


def test_make_struct_mapping_rejects_non_dataclass():
    with pytest.raises(BindError):
        make_struct_mapping(int)


def test_bind_mapping_exact_suffix_and_missing():
    mapping = make_struct_mapping(_Top)
    got = bind_mapping(mapping, ["nose", "nested2.nose", "unknown"])
    assert got == [("nose",), ("nested", "nested2", "nose"), None]


def _nested_ptrs():
    return _NestedPtrs(int_=5, int_p=0, nested_ptrs_p=_NestedPtrs(int_=6, int_p=0))


def test_values_from_mapping():
    mapping = [("int_",), ("int_p",), ("nested_ptrs_p", "int_"), ("nested_ptrs_p", "int_p"), None]
    assert values_from_mapping(_nested_ptrs(), mapping) == [5, 0, 6, 0, None]


def test_assign_from_mapping():
    obj = _nested_ptrs()
    mapping = [("int_",), ("int_p",), ("nested_ptrs_p", "int_"), None]
    assign_from_mapping(obj, mapping, [1, 2, 3, 4])
    assert (obj.int_, obj.int_p, obj.nested_ptrs_p.int_) == (1, 2, 3)
    assert obj.nested_ptrs_p.int_p == 0


def test_assign_from_mapping_creates_missing_nested():
    obj = _NestedPtrs()
    assign_from_mapping(obj, [("nested_ptrs_p", "int_")], [9])
    assert obj.nested_ptrs_p.int_ == 9


def test_assign_from_mapping_length_mismatch():
    with pytest.raises(BindError):
        assign_from_mapping(_NestedPtrs(), [("int_",)], [1, 2])


def test_bind_struct_takes_first_row(conn):
    cursor = conn.execute("SELECT id, test FROM fun")
    result = bind(cursor, _Result)
    assert result == _Result(id=35, name="pat")


def test_bind_many(conn):
    cursor = conn.execute("SELECT id, test FROM fun")
    assert bind(cursor, _Result, many=True) == [_Result(35, "pat"), _Result(12, "cat")]


def test_bind_no_rows(conn):
    cursor = conn.execute("SELECT id, test FROM fun WHERE id = 0")
    with pytest.raises(NoRowsError):
        bind(cursor, _Result)


def test_bind_many_empty(conn):
    cursor = conn.execute("SELECT id, test FROM fun WHERE id = 0")
    assert bind(cursor, _Result, many=True) == []


def test_bind_rejects_non_dataclass(conn):
    cursor = conn.execute("SELECT id, test FROM fun")
    with pytest.raises(BindError):
        bind(cursor, int)


def test_bind_query_struct(conn):
    query = Query(from_=["fun"])
    result = bind_query(query, conn, _Result)
    assert query.raw_sql == 'SELECT * FROM "fun";'
    assert (result.id, result.name) == (35, "pat")


def test_bind_query_slice(conn):
    results = bind_query(Query(from_=["fun"]), conn, _Result, many=True)
    assert [(r.id, r.name) for r in results] == [(35, "pat"), (12, "cat")]


def test_bind_query_execution_failure(conn):
    with pytest.raises(BindError):
        bind_query(Query(from_=["missing_table"]), conn, _Result)


def test_bind_query_inner_join():
    connection = sqlite3.connect(":memory:")
    connection.execute("CREATE TABLE fun (id INTEGER)")
    connection.execute("CREATE TABLE happy (id INTEGER, fun_id INTEGER)")
    connection.executemany("INSERT INTO fun VALUES (?)", [(10,), (11,)])
    connection.executemany("INSERT INTO happy VALUES (?, ?)", [(1, 10), (2, 11)])
    query = Query(from_=["fun"])
    query.append_inner_join("happy as h on fun.id = h.fun_id")
    query.append_order_by("fun.id")
    results = bind_query(query, connection, _JoinResult, many=True)
    connection.close()
    assert query.raw_sql.startswith('SELECT "fun".* FROM "fun" INNER JOIN happy as h')
    assert [(r.happy.id, r.fun.id) for r in results] == [(0, 10), (0, 11)]


def test_bind_query_inner_join_select():
    connection = sqlite3.connect(":memory:")
    connection.execute("CREATE TABLE fun (id INTEGER, happy_id INTEGER)")
    connection.execute("CREATE TABLE happy (id INTEGER)")
    connection.executemany("INSERT INTO fun VALUES (?, ?)", [(10, 11), (12, 13)])
    connection.executemany("INSERT INTO happy VALUES (?)", [(11,), (13,)])
    query = Query(from_=["fun"], select_cols=["fun.id", "h.id"])
    query.append_inner_join("happy as h on fun.happy_id = h.id")
    query.append_order_by("fun.id")
    results = bind_query(query, connection, _JoinSelectResult, many=True)
    connection.close()
    assert query.raw_sql.startswith(
        'SELECT "fun"."id" as "fun.id", "h"."id" as "h.id" FROM "fun"'
    )
    assert [(r.happy.id, r.fun.id) for r in results] == [(11, 10), (13, 12)]


def test_bind_query_eager_loads_many(conn):
    _Loader.calls.clear()
    query = Query(from_=["fun"], select_cols=["id"])
    query.set_load("Children")
    results = bind_query(query, conn, _Parent, many=True)
    assert [r.R.Children for r in results] == [["child-of-35"], ["child-of-12"]]
    assert _Loader.calls == [(conn, False)]


def test_bind_query_eager_loads_single(conn):
    _Loader.calls.clear()
    query = Query(from_=["fun"], select_cols=["id"])
    query.set_load("Children")
    result = bind_query(query, conn, _Parent)
    assert result.R.Children == ["child-of-35"]
    assert _Loader.calls == [(conn, True)]