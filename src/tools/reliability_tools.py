"""Reliability aggregation from raw attendance and review rows.

Counters are rebuilt from source rows on every run; nothing is updated
incrementally, so re-running for the same user and ``now`` is idempotent.
All reads finish before the first write.
"""

from __future__ import annotations

from datetime import datetime, timedelta

from supabase import Client

from src.records import (
    AttendanceWindows,
    ParticipationRecord,
    ReliabilityCounter,
    ReliabilityScoreResult,
    ReviewSummary,
)
from src.tools import supabase_tools
from src.tools.reliability_index import compute_reliability_index
from src.utils.logging_config import logger
from src.utils.normalize import normalise_token, parse_timestamp, to_iso, utcnow
from src.utils.relations import unwrap_dict

WINDOW_30_DAYS = 30
WINDOW_90_DAYS = 90
PUNCTUALITY_GRACE = timedelta(minutes=10)

# Reviewers without a recorded reputation count at half weight.
DEFAULT_REVIEWER_REPUTATION = 0.5

STATUS_COUNTER_FIELDS = {
    "attended": "attended",
    "no_show": "no_shows",
    "cancelled": "late_cancels",
    "excused": "excused",
}
PUNCTUALITY_COUNTER_FIELDS = {"on_time": "on_time", "late": "late"}


def create_counter() -> ReliabilityCounter:
    return {
        "attended": 0,
        "no_shows": 0,
        "late_cancels": 0,
        "excused": 0,
        "on_time": 0,
        "late": 0,
        "reviews": 0,
    }


def derive_participation_record(
    row: dict, user_id: str, now: datetime
) -> ParticipationRecord | None:
    """Classify one ``session_attendees`` row.

    Returns None when the row says nothing yet about reliability, e.g. a
    "going" RSVP for a session that has not ended.
    """

    session = unwrap_dict(row.get("sessions"))
    if not session:
        return None
    starts_at = parse_timestamp(session.get("starts_at"))
    if starts_at is None:
        return None

    ends_at = parse_timestamp(session.get("ends_at")) or starts_at
    completed = ends_at <= now
    raw_status = normalise_token(row.get("status"))

    punctuality = None
    if row.get("checked_in") or row.get("attended_at"):
        status = "attended"
        attended_at = parse_timestamp(row.get("attended_at"))
        if attended_at is None or attended_at - starts_at <= PUNCTUALITY_GRACE:
            punctuality = "on_time"
        else:
            punctuality = "late"
    elif raw_status == "declined":
        status = "cancelled"
    elif raw_status == "interested":
        status = "excused"
    elif raw_status == "going" and completed:
        status = "no_show"
    else:
        return None

    return {
        "reference_id": str(session.get("id") or ""),
        "starts_at": starts_at,
        "status": status,
        "punctuality": punctuality,
        "role": "host" if session.get("host_user_id") == user_id else "guest",
        "completed": completed,
    }


def accumulate_attendance_windows(
    records: list[ParticipationRecord], now: datetime
) -> AttendanceWindows:
    """Bucket records into lifetime, 90-day and 30-day counters by start time."""

    since_30 = now - timedelta(days=WINDOW_30_DAYS)
    since_90 = now - timedelta(days=WINDOW_90_DAYS)

    lifetime = create_counter()
    window_90 = create_counter()
    window_30 = create_counter()
    last_event_at: datetime | None = None
    seen_host_events: set[str] = set()

    for record in records:
        starts_at = record["starts_at"]
        if last_event_at is None or starts_at > last_event_at:
            last_event_at = starts_at

        counters = [lifetime]
        if starts_at >= since_90:
            counters.append(window_90)
        if starts_at >= since_30:
            counters.append(window_30)

        status_field = STATUS_COUNTER_FIELDS.get(record["status"] or "")
        punctuality_field = PUNCTUALITY_COUNTER_FIELDS.get(record["punctuality"] or "")
        for counter in counters:
            if status_field:
                counter[status_field] += 1
            if punctuality_field:
                counter[punctuality_field] += 1

        if record["role"] == "host" and record["completed"] and starts_at >= since_90:
            seen_host_events.add(f"{record['reference_id']}:{record['role']}")

    return {
        "window_30d": window_30,
        "window_90d": window_90,
        "lifetime": lifetime,
        "last_event_at": last_event_at,
        "safe_host_events": len(seen_host_events),
    }


def summarize_reviews(
    reviews: list[dict], reputations: list[dict], now: datetime
) -> ReviewSummary:
    """Reputation-weighted star averages over the last 30 and 90 days."""

    since_30 = now - timedelta(days=WINDOW_30_DAYS)
    since_90 = now - timedelta(days=WINDOW_90_DAYS)
    reputation_by_user = {
        row.get("user_id"): float(row["rep"])
        for row in reputations
        if row.get("rep") is not None
    }

    weighted_sum_30 = weight_total_30 = 0.0
    weighted_sum_90 = weight_total_90 = 0.0
    reviews_30 = reviews_90 = 0
    distinct_reviewers: set[str] = set()

    for review in reviews:
        created_at = parse_timestamp(review.get("created_at"))
        if created_at is None:
            continue
        stars = float(review.get("stars") or 0)
        reviewer_id = review.get("reviewer_id")
        rep = reputation_by_user.get(reviewer_id, DEFAULT_REVIEWER_REPUTATION)

        if created_at >= since_90:
            reviews_90 += 1
            weighted_sum_90 += stars * rep
            weight_total_90 += rep
            if reviewer_id:
                distinct_reviewers.add(reviewer_id)
        if created_at >= since_30:
            reviews_30 += 1
            weighted_sum_30 += stars * rep
            weight_total_30 += rep

    return {
        "weighted_review_30d": weighted_sum_30 / weight_total_30 if weight_total_30 else None,
        "weighted_review_90d": weighted_sum_90 / weight_total_90 if weight_total_90 else None,
        "reviews_30d": reviews_30,
        "reviews_90d": reviews_90,
        "distinct_reviewers_90d": len(distinct_reviewers),
    }


def apply_review_summary(windows: AttendanceWindows, summary: ReviewSummary) -> None:
    """Copy review counts, weighted averages and last event onto the windows."""

    window_30 = windows["window_30d"]
    window_90 = windows["window_90d"]
    window_30["reviews"] = summary["reviews_30d"]
    window_90["reviews"] = summary["reviews_90d"]
    if summary["weighted_review_30d"] is not None:
        window_30["weighted_review"] = summary["weighted_review_30d"]
    if summary["weighted_review_90d"] is not None:
        window_90["weighted_review"] = summary["weighted_review_90d"]

    if windows["last_event_at"] is not None:
        last_event_iso = to_iso(windows["last_event_at"])
        window_30["last_event_at"] = last_event_iso
        window_90["last_event_at"] = last_event_iso


def days_since(moment: datetime | None, now: datetime) -> int | None:
    if moment is None:
        return None
    return max(0, (now - moment).days)


def aggregate_metrics_for_user(
    client: Client, user_id: str, now: datetime | None = None
) -> ReliabilityScoreResult:
    """Recompute and persist reliability counters and index for one user.

    Raises:
        SupabaseQueryError: If any read or write fails; nothing is written
            when a read fails.
    """

    now = now or utcnow()

    attendance_rows = supabase_tools.fetch_attendance_rows(client, user_id)
    reviews = supabase_tools.fetch_reviews_received(
        client, user_id, now - timedelta(days=WINDOW_90_DAYS)
    )
    reviewer_ids = sorted(
        {r["reviewer_id"] for r in reviews if r.get("reviewer_id")}
    )
    reputations = supabase_tools.fetch_reviewer_reputations(client, reviewer_ids)

    records = [
        record
        for record in (
            derive_participation_record(row, user_id, now) for row in attendance_rows
        )
        if record is not None
    ]
    windows = accumulate_attendance_windows(records, now)
    review_summary = summarize_reviews(reviews, reputations, now)
    apply_review_summary(windows, review_summary)

    now_iso = to_iso(now)
    supabase_tools.upsert_reliability_metrics(
        client,
        {
            "user_id": user_id,
            "window_30d_json": windows["window_30d"],
            "window_90d_json": windows["window_90d"],
            "lifetime_json": windows["lifetime"],
            "updated_at": now_iso,
        },
    )

    result = compute_reliability_index(
        windows["window_30d"],
        windows["window_90d"],
        review_summary["weighted_review_90d"],
        review_summary["reviews_90d"],
        windows["safe_host_events"],
        review_summary["distinct_reviewers_90d"],
        days_since(windows["last_event_at"], now),
    )
    supabase_tools.upsert_reliability_index(
        client,
        {
            "user_id": user_id,
            "score": round(result["score"], 2),
            "confidence": round(result["confidence"], 2),
            "components_json": result["components"],
            "last_recomputed": now_iso,
        },
    )

    logger.info(
        "Reliability recomputed user=%s records=%s score=%.2f confidence=%.2f",
        user_id,
        len(records),
        result["score"],
        result["confidence"],
    )
    return result


def list_active_user_ids(
    client: Client,
    days: int = WINDOW_90_DAYS,
    limit: int = 100,
    offset: int = 0,
    now: datetime | None = None,
) -> list[str]:
    """Distinct users with attendance activity in the last ``days``, one page."""

    now = now or utcnow()
    rows = supabase_tools.fetch_attendance_activity(
        client, now - timedelta(days=days), limit, offset
    )
    return list(dict.fromkeys(row["user_id"] for row in rows if row.get("user_id")))


def recompute_reliability_batch(
    client: Client, user_ids: list[str], now: datetime | None = None
) -> dict:
    """Recompute users one at a time; a failing user does not stop the batch."""

    results: list[dict] = []
    for user_id in user_ids:
        try:
            result = aggregate_metrics_for_user(client, user_id, now)
            results.append(
                {
                    "user_id": user_id,
                    "score": result["score"],
                    "confidence": result["confidence"],
                }
            )
        except Exception as exc:
            logger.warning("Reliability recompute failed for user=%s: %s", user_id, exc)
            results.append({"user_id": user_id, "error": str(exc)})

    return {"count": len(results), "results": results}
