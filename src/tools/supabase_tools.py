"""Supabase wrappers used by the scorers and graph nodes.

These helpers centralize query shapes, error handling, and logging so the
ranking and reliability code stays focused on scoring. Every failed query is
re-raised as ``SupabaseQueryError`` prefixed with the table name.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Callable

from supabase import Client, create_client

from src.config import config
from src.utils.errors import SupabaseQueryError, SupabaseUnavailableError
from src.utils.logging_config import logger
from src.utils.normalize import to_iso

TRAIT_SIGNAL_LIMIT = 24
ENGAGEMENT_ROW_LIMIT = 200

CANDIDATE_SESSION_COLUMNS = """
    id,
    activity_id,
    host_user_id,
    price_cents,
    starts_at,
    ends_at,
    venue_id,
    visibility,
    activities(
        id,
        name,
        description,
        activity_types,
        tags,
        traits,
        participant_preferences:activity_participant_preferences(preferred_traits)
    ),
    venues(id, name, address, lat, lng)
"""

ENGAGEMENT_COLUMNS = """
    status,
    sessions!inner(
        id,
        host_user_id,
        activity_id,
        starts_at,
        activities(id, activity_types)
    )
"""

ATTENDANCE_COLUMNS = (
    "status, checked_in, attended_at, sessions(id, starts_at, ends_at, host_user_id)"
)

_client: Client | None = None


def get_client() -> Client:
    """Get the service-role Supabase client, creating it lazily."""
    global _client

    if _client is not None:
        return _client

    try:
        if not config.SUPABASE_URL or not config.SUPABASE_SERVICE_KEY:
            raise RuntimeError("SUPABASE_URL and SUPABASE_SERVICE_KEY must be set")
        _client = create_client(config.SUPABASE_URL, config.SUPABASE_SERVICE_KEY)
        return _client
    except Exception as exc:
        logger.error("Failed to create Supabase client: %s", exc)
        raise SupabaseUnavailableError(str(exc)) from exc


def _run_query(client: Client, table: str, build: Callable[[Any], Any]) -> Any:
    """Build a query against ``table``, execute it and return its data."""

    try:
        response = build(client.table(table)).execute()
    except Exception as exc:
        message = getattr(exc, "message", None) or str(exc)
        logger.error("Supabase query on %s failed: %s", table, message)
        raise SupabaseQueryError(table, message) from exc

    # maybe_single() yields no response at all when nothing matched.
    if response is None:
        return None
    return response.data


# ============================================================
# RECOMMENDATION INPUTS
# ============================================================
def fetch_user_trait_rows(client: Client, user_id: str) -> list[dict]:
    """Strongest trait scores for a user, joined to the trait catalog name."""

    rows = _run_query(
        client,
        "user_traits",
        lambda q: q.select("score_float, traits_catalog:trait_id(name)")
        .eq("user_id", user_id)
        .order("score_float", desc=True)
        .limit(TRAIT_SIGNAL_LIMIT),
    )
    return rows or []


def load_user_preference(client: Client, user_id: str, key: str) -> Any:
    """Stored JSON value of one user preference, or None if never saved."""

    row = _run_query(
        client,
        "user_preferences",
        lambda q: q.select("value").eq("user_id", user_id).eq("key", key).maybe_single(),
    )
    if not row:
        return None
    return row.get("value")


def fetch_recent_engagement_rows(
    client: Client, user_id: str, since: datetime
) -> list[dict]:
    """Attendance rows (not declined) for sessions starting after ``since``."""

    rows = _run_query(
        client,
        "session_attendees",
        lambda q: q.select(ENGAGEMENT_COLUMNS)
        .eq("user_id", user_id)
        .neq("status", "declined")
        .gte("sessions.starts_at", to_iso(since))
        .limit(ENGAGEMENT_ROW_LIMIT),
    )
    return rows or []


def fetch_candidate_sessions(
    client: Client, starts_after: datetime, starts_before: datetime, limit: int
) -> list[dict]:
    """Upcoming sessions with their activity and venue, soonest first."""

    rows = _run_query(
        client,
        "sessions",
        lambda q: q.select(CANDIDATE_SESSION_COLUMNS)
        .gte("starts_at", to_iso(starts_after))
        .lte("starts_at", to_iso(starts_before))
        .order("starts_at", desc=False)
        .limit(limit),
    )
    return rows or []


# ============================================================
# RELIABILITY INPUTS
# ============================================================
def fetch_attendance_rows(client: Client, user_id: str) -> list[dict]:
    """Every attendance row for the user with its parent session."""

    rows = _run_query(
        client,
        "session_attendees",
        lambda q: q.select(ATTENDANCE_COLUMNS).eq("user_id", user_id),
    )
    return rows or []


def fetch_reviews_received(
    client: Client, user_id: str, since: datetime
) -> list[dict]:
    rows = _run_query(
        client,
        "reviews",
        lambda q: q.select("stars, reviewer_id, created_at")
        .eq("reviewee_id", user_id)
        .gte("created_at", to_iso(since)),
    )
    return rows or []


def fetch_reviewer_reputations(
    client: Client, reviewer_ids: list[str]
) -> list[dict]:
    """Reputation rows for the given reviewers; no query when the list is empty."""

    if not reviewer_ids:
        return []
    rows = _run_query(
        client,
        "user_reputation",
        lambda q: q.select("user_id, rep").in_("user_id", reviewer_ids),
    )
    return rows or []


def fetch_attendance_activity(
    client: Client, since: datetime, limit: int, offset: int
) -> list[dict]:
    """One page of attendance rows updated after ``since``."""

    rows = _run_query(
        client,
        "session_attendees",
        lambda q: q.select("user_id, updated_at")
        .gte("updated_at", to_iso(since))
        .range(offset, offset + limit - 1),
    )
    return rows or []


def fetch_reliability_snapshot(
    client: Client, user_id: str
) -> tuple[dict | None, dict | None]:
    """Persisted index and metrics rows for one user."""

    index_row = _run_query(
        client,
        "reliability_index",
        lambda q: q.select("score, confidence, components_json")
        .eq("user_id", user_id)
        .maybe_single(),
    )
    metrics_row = _run_query(
        client,
        "reliability_metrics",
        lambda q: q.select("window_30d_json, window_90d_json")
        .eq("user_id", user_id)
        .maybe_single(),
    )
    return index_row, metrics_row


# ============================================================
# PERSISTENCE
# ============================================================
def upsert_reliability_metrics(client: Client, payload: dict) -> None:
    _run_query(
        client,
        "reliability_metrics",
        lambda q: q.upsert(payload, on_conflict="user_id"),
    )


def upsert_reliability_index(client: Client, payload: dict) -> None:
    _run_query(
        client,
        "reliability_index",
        lambda q: q.upsert(payload, on_conflict="user_id"),
    )
