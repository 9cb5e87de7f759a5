"""Small helpers working on model dataclasses."""

from __future__ import annotations

import dataclasses
from typing import Any, List, Sequence

from boilquery.binding import get_boil_tag


def _is_zero(value: Any) -> bool:
    if value is None:
        return True
    is_zero = getattr(value, "is_zero", None)
    if callable(is_zero):
        return bool(is_zero())
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return all(_is_zero(getattr(value, f.name)) for f in dataclasses.fields(value))
    if isinstance(value, (bool, int, float, complex, str, bytes, bytearray, list, tuple, dict, set)):
        return not value
    return False


def non_zero_default_set(defaults: Sequence[str], obj: Any) -> List[str]:
    """Return those of ``defaults`` whose tagged fields on ``obj`` are not zero.

    Raises KeyError when a default names no field of ``obj``.
    """
    if not dataclasses.is_dataclass(obj) or isinstance(obj, type):
        raise TypeError(f"expected a dataclass instance, got {type(obj).__name__}")

    by_tag = {}
    for f in dataclasses.fields(obj):
        name, _ = get_boil_tag(f)
        by_tag.setdefault(name, f.name)

    result = []
    for default in defaults:
        attr = by_tag.get(default)
        if attr is None:
            raise KeyError(
                f"could not find field name {default} in type {type(obj).__name__}"
            )
        if not _is_zero(getattr(obj, attr)):
            result.append(default)
    return result