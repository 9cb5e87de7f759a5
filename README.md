# boilquery

Build SQL statements out of small, composable query mods. Bind the rows that
come back onto dataclasses, and eager load relationships between model
objects.

## Installing

```
pip install boilquery
```

The package has no runtime dependencies. To run the test suite, install the
`test` extra and run `pytest`:

```
pip install "boilquery[test]"
pytest
```

## Building a query

A `boilquery.query.Query` holds the parts of a statement. The query mods in
`boilquery.qm` add those parts to it. `boilquery.builders.build_query`
returns the SQL text together with the list of arguments that goes with it.

```python
from boilquery import qm
from boilquery.builders import build_query
from boilquery.query import Dialect, Query

query = Query()
query.set_dialect(Dialect(lq='"', rq='"', use_index_placeholders=True))

qm.apply(
    query,
    qm.select("id", "name"),
    qm.from_("users"),
    qm.where("age > ?", 18),
    qm.or_("admin = ?", True),
    qm.order_by("name ASC"),
    qm.limit(10),
)

sql, args = build_query(query)
# SELECT "id", "name" FROM "users" WHERE (age > $1) OR (admin = $2) ORDER BY name ASC LIMIT 10;
# [18, True]
```

A `Dialect` sets the identifier quote characters (`lq`, `rq`) and the
placeholder style. With `use_index_placeholders` switched on, each `?`
becomes `$1`, `$2`, and so on, numbered across the whole statement. A `\?`
stays in the text as a literal `?`. With it switched off, which is the
default, the placeholders stay as `?`. `use_top_clause` turns on the
`TOP (n)` and `OFFSET … ROWS FETCH NEXT … ROWS ONLY` style of limiting.

`build_query` stores the text and arguments it built on the query. Building
the same query again returns them unchanged, and `Query.set_args` swaps in
new arguments for the next run.

### Query mods

- columns and tables: `select`, `from_`, `distinct`
- filters: `where`, `and_`, `or_`, `or2`, and parenthesised groups with
  `expr`. Once `expr` is used, the where expressions are no longer put in
  parentheses automatically.
- sets: `where_in`, `and_in`, `or_in`, `where_not_in`, `and_not_in`,
  `or_not_in`. A clause such as `"(a,b) in ?"` expands into grouped
  placeholders. An empty `IN` list becomes `(1=0)` and an empty `NOT IN`
  list becomes `(1=1)`.
- joins: `inner_join`, `left_outer_join`, `right_outer_join`, `full_outer_join`
- shaping: `group_by`, `having`, `order_by`, `limit`, `offset`, `for_`
- extras: `with_` for common table expressions, `comment` for a leading
  `-- ` comment, `sql` for a raw statement, `load` and `rels` for eager
  loading, and `with_deleted` to drop the automatic soft-delete filter

Every mod has an `apply(query)` method. `qm.QueryMods` bundles several mods
into one. The same changes are also available as methods on `Query`, for
example `append_where`, `append_in`, `set_limit` and `set_last_where_as_or`.

`boilquery.qmhelper` builds `WhereQueryMod` objects for the usual
comparisons: `where(name, operator, value)` with an `Operator`,
`where_null_eq`, `where_is_null` and `where_is_not_null`.

`Query.set_delete` turns the statement into a `DELETE`. `Query.set_update`
with a mapping of columns to values turns it into an `UPDATE`, with the
columns in sorted order. A raw statement from `boilquery.query.raw` or
`Query.set_sql` is returned as it is.

`Query.remove_soft_delete_where` asks the build to remove the last plain
where clause matching `deleted_at is null`. Use
`boilquery.query.set_remove_soft_delete_regex` to change that pattern.

## Running queries

The functions in `boilquery.builders` take any executor with a DB-API style
`execute(sql, params)` method, such as a `sqlite3` connection or cursor:

- `exec_query(query, executor)` returns what `execute` returns.
- `query_rows(query, executor)` returns the cursor.
- `query_row(query, executor)` returns the first row, or `None` if there is none.

The statement and its arguments are logged at debug level on the
`boilquery.builders` logger.

## Binding rows

`boilquery.binding` maps result columns onto dataclass fields.

- By default, a field's column name is its attribute name with any title
  casing undone (`un_title_case("FunID")` gives `fun_id`).
- `boil_field(name=...)` gives a field an explicit column name.
- `boil_field(name="-")` excludes a field from binding.
- `boil_field(name=..., bind=True)` on a dataclass-typed field makes the
  fields of that dataclass bindable under the prefix `name.`, for example
  `h.id` from a join.

A column that matches no name exactly is matched against the names that end
in `.<column>`. Columns that match nothing are discarded.

```python
import sqlite3
from dataclasses import dataclass

from boilquery import qm
from boilquery.binding import bind_query, boil_field
from boilquery.query import Query


@dataclass
class User:
    id: int
    name: str = boil_field("username")


conn = sqlite3.connect(":memory:")
conn.execute("CREATE TABLE users (id INTEGER, username TEXT)")
conn.execute("INSERT INTO users VALUES (1, 'ann')")

query = Query()
qm.apply(query, qm.from_("users"), qm.where("id = ?", 1))
users = bind_query(query, conn, User, many=True)
```

- `bind(rows, cls, many)` binds an existing cursor. It needs the cursor's
  `description` to know the column names.
- `bind_query(query, executor, cls, many)` runs the query, binds the
  result, closes the cursor, and eager loads any relationships the query
  asks for.
- With `many=False`, the first row's object is returned. `NoRowsError` is
  raised when there are no rows.
- Other failures raise `BindError`.

`make_struct_mapping`, `bind_mapping`, `values_from_mapping` and
`assign_from_mapping` are the lower-level pieces. They map column names to
attribute paths and read or write values along those paths.

## Comparing and assigning values

`boilquery.values` works on plain values and on objects that follow the
`Valuer` protocol (a `value()` method) and the `Scanner` protocol (a
`scan(value)` method):

- `equal(a, b)` compares two key-like values. It looks through valuers and
  parses a string as a number when the other side is one. It raises
  `TypeError` when the primitive types differ.
- `assign(dst, src)` loads a scanner destination in place, or returns a
  valuer's value converted to the type of `dst`.
- `must_time`, `is_valuer_nil`, `is_nil` and `set_scanner` cover the
  remaining cases.

`boilquery.helpers.non_zero_default_set(defaults, obj)` returns the column
names in `defaults` whose tagged fields on `obj` are not zero. It raises
`KeyError` for a name that matches no field.

## Eager loading

`boilquery.eager_load.eager_load(executor, to_load, mods, obj, singular)`
walks dotted relationship paths such as `"Videos.Tags"` through one model
object or a list of them. It relies on two attributes of each model:

- `R` holds the loaded relationships, one attribute per relationship, and
  is `None` until something is loaded.
- `L` offers a `load_<Relationship>(executor, singular, obj, mods)` method
  for each relationship.

Each level of a path is loaded once for all objects at that level. The
loaded children are gathered with `collect_loaded` before the walk descends
to the next level. `mods` maps a dotted path to the applicator passed to
that level's loader, which is what `qm.load(relationship, *mods)` records on
a query. Failures raise `EagerLoadError`.

`extract_embedded(target_cls, source)` returns the field of type
`target_cls` embedded in an object, or in each object of a list.

## What it does not do

boilquery does not read database schemas or generate model classes. It does
not open or pool connections either. You write the dataclasses and loaders
yourself and pass in a DB-API connection or cursor.