"""Comparing, copying and inspecting values of database columns.

A *valuer* is an object with a ``value()`` method that returns its primitive
database value, or None for NULL. A *scanner* is a mutable object with a
``scan(value)`` method that loads a primitive value into it.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional, Protocol, runtime_checkable

ZERO_TIME = datetime.min


@runtime_checkable
class Valuer(Protocol):
    """An object that yields a primitive database value."""

    def value(self) -> Any:  # pragma: no cover - protocol
        ...


@runtime_checkable
class Scanner(Protocol):
    """An object that can be loaded from a primitive database value."""

    def scan(self, value: Any) -> None:  # pragma: no cover - protocol
        ...


def _is_numeric(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _parse_numeric(text: str, like: Any) -> Any:
    try:
        if isinstance(like, int):
            return int(text.strip(), 0)
        return float(text)
    except ValueError as exc:
        raise ValueError(
            f"tried to parse {text!r} as {type(like).__name__} but got error: {exc}"
        ) from exc


def _category(value: Any) -> Optional[str]:
    if isinstance(value, bool):
        return "bool"
    if isinstance(value, int):
        return "int"
    if isinstance(value, float):
        return "float"
    if isinstance(value, str):
        return "str"
    if isinstance(value, (bytes, bytearray, memoryview)):
        return "bytes"
    if isinstance(value, datetime):
        return "datetime"
    return None


def equal(a: Any, b: Any) -> bool:
    """Compare two primary-key-like values, looking through valuers.

    Strings compared with numbers are parsed as the number's type. Raises
    TypeError when the primitive types of the two values differ.
    """
    if (a is None) != (b is None):
        return False

    if isinstance(a, (bytes, bytearray)) and isinstance(b, (bytes, bytearray)):
        return bytes(a) == bytes(b)

    if isinstance(a, Valuer):
        a = a.value()
    if isinstance(b, Valuer):
        b = b.value()

    # A NULL-able value may have produced None.
    if (a is None) != (b is None):
        return False
    if a is None:
        return False

    if isinstance(a, str) and _is_numeric(b):
        a = _parse_numeric(a, b)
    if isinstance(b, str) and _is_numeric(a):
        b = _parse_numeric(b, a)

    cat_a = _category(a) or type(a)
    cat_b = _category(b) or type(b)
    if cat_a != cat_b:
        raise TypeError(
            f"primitive type of a ({type(a).__name__}) was not the same "
            f"primitive type as b ({type(b).__name__})"
        )

    if cat_a == "bytes":
        return bytes(a) == bytes(b)
    if isinstance(cat_a, str):
        return a == b
    return False


def _zero_like(dst: Any) -> Any:
    if isinstance(dst, datetime):
        return ZERO_TIME
    if isinstance(dst, bytearray):
        return bytearray()
    return type(dst)()


def _convert_like(dst: Any, value: Any) -> Any:
    """Convert a primitive value to the type of ``dst``."""
    if value is None:
        return _zero_like(dst)

    if isinstance(dst, bool):
        if not isinstance(value, bool):
            raise TypeError(f"cannot assign {type(value).__name__} to bool")
        return value
    if isinstance(dst, int):
        if isinstance(value, bool) or not isinstance(value, int):
            raise TypeError(f"cannot assign {type(value).__name__} to int")
        return int(value)
    if isinstance(dst, float):
        if not _is_numeric(value):
            raise TypeError(f"cannot assign {type(value).__name__} to float")
        return float(value)
    if isinstance(dst, str):
        if not isinstance(value, str):
            raise TypeError(f"cannot assign {type(value).__name__} to str")
        return value
    if isinstance(dst, bytearray):
        dst[:] = bytes(value)
        return dst
    if isinstance(dst, bytes):
        return bytes(value)
    if isinstance(dst, datetime):
        if not isinstance(value, datetime):
            raise TypeError(f"cannot assign {type(value).__name__} to datetime")
        return value
    raise TypeError(f"cannot assign to a destination of type {type(dst).__name__}")


def assign(dst: Any, src: Any) -> Any:
    """Assign ``src`` to ``dst`` and return the resulting destination value.

    A scanner destination is loaded in place and returned. Otherwise ``src``
    must be a valuer (or bytes for a bytes destination) and its value is
    returned converted to the type of ``dst``.
    """
    if isinstance(dst, (bytes, bytearray)) and isinstance(src, (bytes, bytearray)):
        if isinstance(dst, bytearray):
            dst[:] = src
            return dst
        return bytes(src)

    dst_is_scanner = isinstance(dst, Scanner)
    src_is_valuer = isinstance(src, Valuer)

    if dst_is_scanner:
        value = src.value() if src_is_valuer else src
        try:
            dst.scan(value)
        except Exception as exc:
            raise ValueError(
                f"tried to call scan on {type(dst).__name__} with {value!r} but got err: {exc}"
            ) from exc
        return dst

    if src_is_valuer:
        return _convert_like(dst, src.value())

    # Plain primitives are compared and assigned directly, never through here.
    raise TypeError("this case should have been handled by something other than this method")


def must_time(valuer: Valuer) -> datetime:
    """Return the time held by a valuer, or the zero time when it is NULL."""
    value = valuer.value()
    if value is None:
        return ZERO_TIME
    if not isinstance(value, datetime):
        raise TypeError(
            f"attempted to get a time from {type(valuer).__name__} "
            f"but its value was {type(value).__name__}"
        )
    return value


def is_valuer_nil(valuer: Valuer) -> bool:
    """Return whether the valuer's value is NULL."""
    return valuer.value() is None


def is_nil(value: Any) -> bool:
    """Return whether a value is None or a valuer whose value is NULL."""
    if value is None:
        return True
    if isinstance(value, Valuer):
        return is_valuer_nil(value)
    return False


def set_scanner(scanner: Scanner, value: Any) -> None:
    """Load a primitive value into a scanner, raising ValueError on failure."""
    try:
        scanner.scan(value)
    except Exception as exc:
        raise ValueError(
            f"attempted to call scan on {type(scanner).__name__} with {value!r} "
            f"but got an error: {exc}"
        ) from exc