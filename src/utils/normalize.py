"""Small value-normalisation helpers shared by the scorers."""

from __future__ import annotations

from datetime import datetime, timezone


def clamp(value: float, low: float, high: float) -> float:
    return min(high, max(low, value))


def clamp01(value: float) -> float:
    return clamp(value, 0.0, 1.0)


def normalise_token(value: object) -> str:
    """Trim and lowercase a label; anything that is not a string becomes ''."""

    return value.strip().lower() if isinstance(value, str) else ""


def normalise_list(values: list | tuple | None) -> list[str]:
    """Normalise every label and drop the empty ones."""

    if not values:
        return []
    return [token for token in (normalise_token(v) for v in values) if token]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value: object) -> datetime | None:
    """Parse an ISO string, datetime or epoch seconds into an aware UTC datetime.

    Returns None for anything unparseable. Naive values are taken as UTC.
    """

    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        try:
            return datetime.fromtimestamp(value, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    elif isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def to_iso(value: datetime) -> str:
    """Serialise a datetime the way the database returns timestamps."""

    return value.astimezone(timezone.utc).isoformat()
