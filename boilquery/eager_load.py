"""Eager loading of relationships onto already fetched model objects.

A model object carries two attributes: ``R``, holding the loaded relationships
(``None`` until something is loaded), and ``L``, a loader offering one
``load_<relationship>(executor, singular, obj, mods)`` method per relationship.
"""

from __future__ import annotations

import dataclasses
from typing import Any, Iterable, List, Mapping, Optional

from boilquery.query import Applicator

LOAD_METHOD_PREFIX = "load_"
RELATIONSHIP_ATTR = "R"
LOADER_ATTR = "L"

_MISSING = object()


class EagerLoadError(Exception):
    """Raised when a relationship cannot be eager loaded."""


def _is_many(value: Any) -> bool:
    return isinstance(value, (list, tuple))


class _LoadState:
    """Walks one relationship path, remembering which prefixes were loaded."""

    def __init__(self, executor: Any, mods: Optional[Mapping[str, Applicator]]) -> None:
        self.executor = executor
        self.mods = dict(mods or {})
        self.loaded: set = set()
        self.path: List[str] = []

    def _key(self, depth: int) -> str:
        return ".".join(self.path[: depth + 1])

    def load(self, depth: int, obj: Any, singular: bool) -> None:
        if obj is None:
            return

        if self._key(depth) not in self.loaded:
            self._call_loader(depth, obj, singular)

        if depth + 1 >= len(self.path):
            return

        if singular:
            self._recurse(depth, obj)
            return

        if not obj:
            return

        children = collect_loaded(self.path[depth], obj)
        if not children:
            return
        self.load(depth + 1, children, False)

    def _call_loader(self, depth: int, obj: Any, singular: bool) -> None:
        current = self.path[depth]

        if singular:
            sample = obj
        else:
            if not obj:
                return
            sample = obj[0]
            if sample is None:
                return

        loader = getattr(sample, LOADER_ATTR, None)
        if loader is None:
            raise EagerLoadError(f"attempted to load {current} but no L struct was found")

        method = getattr(loader, LOAD_METHOD_PREFIX + current, None)
        if not callable(method):
            raise EagerLoadError(
                f"could not find {LOAD_METHOD_PREFIX}{current} method for eager loading"
            )

        mods = self.mods.get(self._key(depth))
        try:
            method(self.executor, singular, obj, mods)
        except EagerLoadError:
            raise
        except Exception as exc:
            raise EagerLoadError(f"failed to eager load {current}: {exc}") from exc

        self.loaded.add(self._key(depth))

    def _recurse(self, depth: int, obj: Any) -> None:
        key = self.path[depth]
        try:
            relationships = _find_relationship_struct(obj)
        except EagerLoadError as exc:
            raise EagerLoadError(f"failed to append loaded {key}: {exc}") from exc

        loaded = _relationship_value(relationships, key)
        if loaded is None:
            return
        if _is_many(loaded):
            self.load(depth + 1, loaded, False)
        else:
            self.load(depth + 1, loaded, True)


def eager_load(
    executor: Any,
    to_load: Iterable[str],
    mods: Optional[Mapping[str, Applicator]],
    obj: Any,
    singular: bool,
) -> None:
    """Load every dotted relationship path in ``to_load`` onto ``obj``.

    ``obj`` is a single model object when ``singular`` is true, otherwise a
    list of them. ``mods`` maps dotted relationship paths to the applicator
    handed to the loader for that level.
    """
    state = _LoadState(executor, mods)
    for path in to_load:
        state.path = path.split(".")
        state.load(0, obj, singular)


def _find_relationship_struct(obj: Any) -> Any:
    relationships = getattr(obj, RELATIONSHIP_ATTR, _MISSING)
    if relationships is _MISSING:
        raise EagerLoadError("relationship struct was invalid")
    if relationships is None:
        raise EagerLoadError("relationship struct was nil")
    return relationships


def _relationship_value(relationships: Any, key: str) -> Any:
    value = getattr(relationships, key, _MISSING)
    if value is _MISSING:
        raise EagerLoadError(f"relationship {key} does not exist")
    return value


def collect_loaded(key: str, loading_from: Iterable[Any]) -> list:
    """Gather the objects loaded under relationship ``key`` of every parent.

    Single relationships contribute their object when set; many
    relationships contribute all their members. Unset relationships
    contribute nothing, so the result never holds ``None``.
    """
    collection: list = []
    for parent in loading_from:
        try:
            relationships = _find_relationship_struct(parent)
        except EagerLoadError as exc:
            raise EagerLoadError(f"failed to collect loaded {key}: {exc}") from exc

        loaded = _relationship_value(relationships, key)
        if loaded is None:
            continue
        if _is_many(loaded):
            collection.extend(loaded)
        else:
            collection.append(loaded)
    return collection


def _attribute_items(obj: Any):
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return [(f.name, getattr(obj, f.name)) for f in dataclasses.fields(obj)]
    attributes = getattr(obj, "__dict__", None)
    if attributes is None:
        raise TypeError(f"{type(obj).__name__} has no fields to search")
    return list(attributes.items())


def _embedded_field_name(obj: Any, target_cls: type) -> str:
    if _is_many(obj):
        raise TypeError("sequences inside other sequences are not supported")
    for name, value in _attribute_items(obj):
        if type(value) is target_cls:
            return name
    raise TypeError(
        f"{type(obj).__name__} has no embedded field of type {target_cls.__name__}"
    )


def extract_embedded(target_cls: type, source: Any) -> Any:
    """Return the embedded ``target_cls`` object of ``source``.

    ``source`` is one object or a list of objects; for a list, a list of the
    embedded objects is returned. The embedded objects are shared, not copied.
    Raises TypeError when no field of that exact type exists.
    """
    if _is_many(source):
        if not source:
            return []
        name = _embedded_field_name(source[0], target_cls)
        return [getattr(item, name) for item in source]
    name = _embedded_field_name(source, target_cls)
    return getattr(source, name)