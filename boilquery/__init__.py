"""Composable SQL query building, row binding onto dataclasses and eager loading."""

__version__ = "0.1.0"

__all__ = [
    "binding",
    "builders",
    "eager_load",
    "helpers",
    "qm",
    "qmhelper",
    "query",
    "values",
]