"""Binding result rows onto dataclass model objects.

Columns are matched to dataclass fields by name. A field's column name comes
from its ``boil`` tag (see :func:`boil_field`) or, without one, from its
attribute name run through :func:`un_title_case`. A tag of ``-`` excludes the
field. A ``,bind`` tag on a field whose type is itself a dataclass makes its
fields bindable under the prefix ``<name>.``.
"""

from __future__ import annotations

import dataclasses
import inspect
import re
import types
import typing
from functools import lru_cache
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from boilquery.builders import query_rows
from boilquery.eager_load import eager_load
from boilquery.query import Query

TAG_KEY = "boil"

Path = Tuple[str, ...]


class BindError(Exception):
    """Raised when rows cannot be bound onto the requested type."""


class NoRowsError(BindError):
    """Raised when a single object was requested but the query returned no rows."""


def boil_field(name: str = "", bind: bool = False, **kwargs: Any) -> Any:
    """Declare a dataclass field with a ``boil`` tag.

    ``name`` overrides the column name; ``"-"`` keeps the field from being
    bound. ``bind`` makes a nested dataclass field searched for columns.
    Remaining keyword arguments go to :func:`dataclasses.field`.
    """
    tag = f"{name},bind" if bind else name
    metadata = dict(kwargs.pop("metadata", None) or {})
    metadata[TAG_KEY] = tag
    return dataclasses.field(metadata=metadata, **kwargs)


def get_boil_tag(field: dataclasses.Field) -> Tuple[str, bool]:
    """Return the tag name of a field and whether it is to be recursed into."""
    tag = field.metadata.get(TAG_KEY, "") if field.metadata else ""
    if not tag:
        return "", False
    comma = tag.find(",")
    if comma == -1:
        return tag, False
    if comma == 0:
        return "", True
    return tag[:comma], True


# Longest words first, so that e.g. GUID wins over UID and ID.
_SPECIAL_WORDS = (
    "ASCII", "GUID", "JSON", "UUID", "UTF8",
    "ACL", "API", "CPU", "EOF", "RAM", "SLA", "UDP", "UID", "URI", "URL",
    "ID", "IP", "UI",
)
_SPECIAL_WORD_RE = re.compile("|".join(_SPECIAL_WORDS))


def un_title_case(name: str) -> str:
    """Turn a TitleCased name into snake_case, keeping acronyms together."""
    if not name:
        return ""

    text = _SPECIAL_WORD_RE.sub(lambda match: match.group(0).capitalize(), name)

    parts: List[str] = []
    last_up = True
    start = 0
    for index, char in enumerate(text):
        current_up = char.isupper()
        is_digit = char.isdecimal()

        if not is_digit and not last_up and current_up:
            parts.append(text[start:index])
            start = index

        if not is_digit and last_up and not current_up and index - 1 - start > 1:
            parts.append(text[start : index - 1])
            start = index - 1

        last_up = current_up

    if text[start:]:
        parts.append(text[start:])

    return "_".join(part.lower() for part in parts)


def _is_dataclass_type(obj: Any) -> bool:
    return isinstance(obj, type) and dataclasses.is_dataclass(obj)


def _require_dataclass(cls: Any) -> None:
    if not _is_dataclass_type(cls):
        raise BindError(f"bind target should be a dataclass type but was {cls!r}")


def _resolve_name(cls: type, name: str) -> Any:
    name = name.strip().strip("'\"")
    if name == cls.__name__:
        return cls
    module = inspect.getmodule(cls)
    if module is None:
        return name
    return getattr(module, name, name)


_OPTIONAL_PREFIXES = ("typing.Optional[", "Optional[")


def _resolve_hint(cls: type, hint: Any) -> Any:
    """Resolve a field annotation to a type, dropping an Optional wrapper."""
    if isinstance(hint, typing.ForwardRef):
        hint = hint.__forward_arg__
    if isinstance(hint, str):
        text = hint.strip()
        for prefix in _OPTIONAL_PREFIXES:
            if text.startswith(prefix) and text.endswith("]"):
                text = text[len(prefix) : -1]
                break
        parts = [part.strip() for part in text.split("|") if part.strip() != "None"]
        if len(parts) == 1 and parts[0].strip("'\"").isidentifier():
            return _resolve_name(cls, parts[0])
        return hint
    origin = typing.get_origin(hint)
    if origin is Union or origin is types.UnionType:
        members = [arg for arg in typing.get_args(hint) if arg is not type(None)]
        if len(members) == 1:
            return _resolve_hint(cls, members[0])
    return hint


@lru_cache(maxsize=None)
def _field_types(cls: type) -> Dict[str, Any]:
    return {f.name: _resolve_hint(cls, f.type) for f in dataclasses.fields(cls)}


def _mapping_helper(cls: type, prefix: str, path: Path, out: Dict[str, Path]) -> None:
    field_types = _field_types(cls)
    for f in dataclasses.fields(cls):
        tag, recurse = get_boil_tag(f)
        if not tag:
            tag = un_title_case(f.name)
        elif tag.startswith("-"):
            continue

        if prefix:
            tag = f"{prefix}.{tag}"

        if recurse:
            nested = field_types[f.name]
            if not _is_dataclass_type(nested):
                raise BindError(
                    f"field {f.name} of {cls.__name__} is marked bind but is not a dataclass"
                )
            _mapping_helper(nested, tag, path + (f.name,), out)
            continue

        out[tag] = path + (f.name,)


@lru_cache(maxsize=None)
def _struct_mapping(cls: type) -> Dict[str, Path]:
    out: Dict[str, Path] = {}
    _mapping_helper(cls, "", (), out)
    return out


def make_struct_mapping(cls: type) -> Dict[str, Path]:
    """Map every bindable column name of ``cls`` to the attribute path reaching it."""
    _require_dataclass(cls)
    return dict(_struct_mapping(cls))


def bind_mapping(mapping: Dict[str, Path], columns: Iterable[str]) -> List[Optional[Path]]:
    """Resolve each column to an attribute path, or None when nothing matches.

    A column matches a name exactly, or failing that, the first name ending
    in ``.<column>``.
    """
    resolved: List[Optional[Path]] = []
    for column in columns:
        path = mapping.get(column)
        if path is None:
            suffix = "." + column
            path = next(
                (value for name, value in mapping.items() if name.endswith(suffix)), None
            )
        resolved.append(path)
    return resolved


@lru_cache(maxsize=None)
def _column_mapping(cls: type, columns: Tuple[str, ...]) -> Tuple[Optional[Path], ...]:
    return tuple(bind_mapping(_struct_mapping(cls), columns))


def _zero_instance(cls: type) -> Any:
    """Make an instance with defaults, nested bind fields built, others None."""
    field_types = _field_types(cls)
    kwargs: Dict[str, Any] = {}
    for f in dataclasses.fields(cls):
        if not f.init:
            continue
        _, recurse = get_boil_tag(f)
        hint = field_types[f.name]
        if recurse and _is_dataclass_type(hint):
            kwargs[f.name] = _zero_instance(hint)
        elif f.default is dataclasses.MISSING and f.default_factory is dataclasses.MISSING:
            kwargs[f.name] = None
    return cls(**kwargs)


def _value_at(obj: Any, path: Optional[Path]) -> Any:
    if path is None:
        return None
    target = obj
    for name in path:
        if target is None:
            return None
        target = getattr(target, name)
    return target


def values_from_mapping(obj: Any, mapping: Sequence[Optional[Path]]) -> List[Any]:
    """Read the value at each attribute path; None for unmapped entries."""
    return [_value_at(obj, path) for path in mapping]


def assign_from_mapping(
    obj: Any, mapping: Sequence[Optional[Path]], values: Iterable[Any]
) -> None:
    """Write each value to its attribute path, discarding unmapped ones.

    Missing nested dataclass objects along a path are created.
    """
    values = list(values)
    if len(values) != len(mapping):
        raise BindError(
            f"got {len(values)} values for a mapping of {len(mapping)} columns"
        )
    for path, value in zip(mapping, values):
        if path is None:
            continue
        target = obj
        for name in path[:-1]:
            child = getattr(target, name)
            if child is None:
                nested_type = _field_types(type(target))[name]
                if not _is_dataclass_type(nested_type):
                    raise BindError(
                        f"cannot create field {name} of {type(target).__name__}: "
                        "its type is not a dataclass"
                    )
                child = _zero_instance(nested_type)
                setattr(target, name, child)
            target = child
        setattr(target, path[-1], value)


def bind(rows: Any, cls: type, many: bool = False) -> Any:
    """Bind the rows of a DB-API cursor onto instances of ``cls``.

    With ``many`` a list of every row's object is returned, otherwise the
    object of the first row; NoRowsError is raised when there is none.
    """
    _require_dataclass(cls)
    description = getattr(rows, "description", None)
    if description is None:
        raise BindError("bind failed to get column names")
    columns = tuple(entry[0] for entry in description)
    mapping = _column_mapping(cls, columns)

    if many:
        results = []
        for row in rows:
            obj = _zero_instance(cls)
            assign_from_mapping(obj, mapping, row)
            results.append(obj)
        return results

    for row in rows:
        obj = _zero_instance(cls)
        assign_from_mapping(obj, mapping, row)
        return obj
    raise NoRowsError("no rows in result set")


def bind_query(query: Query, executor: Any, cls: type, many: bool = False) -> Any:
    """Run ``query`` on ``executor``, bind the rows, then eager load its relationships."""
    _require_dataclass(cls)
    try:
        cursor = query_rows(query, executor)
    except Exception as exc:
        raise BindError(f"bind failed to execute query: {exc}") from exc

    try:
        result = bind(cursor, cls, many)
    finally:
        close = getattr(cursor, "close", None)
        if callable(close):
            close()

    if query.load:
        eager_load(executor, query.load, query.load_mods, result, not many)
    return result