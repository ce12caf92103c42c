"""Helpers for joined relations returned by PostgREST.

A joined relation arrives as a single object for to-one joins and as a list
for to-many joins, and either may be null. Every call site that reads a join
goes through ``unwrap_one`` instead of checking the shape itself.
"""

from __future__ import annotations

from typing import Any, TypeVar

T = TypeVar("T")


def unwrap_one(relation: T | list[T] | tuple[T, ...] | None) -> T | None:
    """Return the single related record, the first of a list, or None."""

    if relation is None:
        return None
    if isinstance(relation, (list, tuple)):
        return relation[0] if relation else None
    return relation


def unwrap_dict(relation: Any) -> dict | None:
    """``unwrap_one`` that also drops anything that is not a mapping."""

    value = unwrap_one(relation)
    return value if isinstance(value, dict) else None
