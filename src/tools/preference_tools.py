"""Saved activity filter preferences."""

from __future__ import annotations

from math import isfinite

from src.records import ActivityFilterPreferences

ACTIVITY_FILTERS_KEY = "activity_filters"


def default_activity_filter_preferences() -> ActivityFilterPreferences:
    return {
        "radius": 10,
        "price_range": [0, 100],
        "categories": [],
        "time_of_day": [],
    }


def _finite(value: object) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value) if isfinite(value) else None


def _sort_unique(values: object) -> list[str]:
    if not isinstance(values, (list, tuple)):
        return []
    cleaned = {v.strip() for v in values if isinstance(v, str) and v.strip()}
    return sorted(cleaned)


def normalise_activity_filter_preferences(
    stored: dict | None,
) -> ActivityFilterPreferences:
    """Coerce a stored preference blob into a well-formed preference record.

    Accepts both the snake_case keys used here and the camelCase keys the
    clients persist (``priceRange``, ``timeOfDay``).
    """

    defaults = default_activity_filter_preferences()
    if not isinstance(stored, dict):
        return defaults

    radius = _finite(stored.get("radius"))
    radius = max(1, round(radius)) if radius is not None else defaults["radius"]

    price_range = stored.get("price_range", stored.get("priceRange"))
    if not isinstance(price_range, (list, tuple)):
        price_range = []
    lower = _finite(price_range[0]) if len(price_range) > 0 else None
    upper = _finite(price_range[1]) if len(price_range) > 1 else None
    lower = max(0, round(lower)) if lower is not None else defaults["price_range"][0]
    upper = max(lower, round(upper)) if upper is not None else defaults["price_range"][1]

    return {
        "radius": radius,
        "price_range": [lower, upper],
        "categories": _sort_unique(stored.get("categories")),
        "time_of_day": _sort_unique(stored.get("time_of_day", stored.get("timeOfDay"))),
    }
