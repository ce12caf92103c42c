"""Reliability index: windowed attendance counters -> bounded trust score.

The score (0-100) blends an attendance score over the last 30 and 90 days with
a reputation-weighted review score and a small bonus for hosting. Confidence
(0-1) grows with volume, review count, reviewer diversity and recency.
"""

from __future__ import annotations

from math import exp

from src.records import ReliabilityCounter, ReliabilityScoreResult
from src.utils.normalize import clamp

RELIABILITY_DEFAULT_WEIGHTS = {
    "NO_SHOW_WEIGHT": 0.70,
    "LATE_CANCEL_WEIGHT": 0.30,
    "RECENCY_BLEND_30": 0.6,
    "RECENCY_BLEND_90": 0.4,
}

REVIEW_SHARE = 0.25
MIN_REVIEWS_FOR_SCORE = 2
MAX_HOST_BONUS = 5
HOST_BONUS_PER_EVENT = 2
RECENCY_DECAY_DAYS = 21


def _window_attendance_score(window: dict) -> float:
    attended = window.get("attended") or 0
    no_shows = window.get("no_shows") or 0
    late_cancels = window.get("late_cancels") or 0
    excused = window.get("excused") or 0
    on_time = window.get("on_time") or 0
    late = window.get("late") or 0

    total = attended + no_shows + late_cancels + excused
    attendance_rate = attended / total if total else 0
    no_show_rate = no_shows / (attended + no_shows) if attended + no_shows else 0
    late_cancel_rate = late_cancels / total if total else 0
    punctuality = on_time / (on_time + late) if on_time + late else 0

    base = 100 * attendance_rate
    penalty = 100 * (
        RELIABILITY_DEFAULT_WEIGHTS["NO_SHOW_WEIGHT"] * no_show_rate
        + RELIABILITY_DEFAULT_WEIGHTS["LATE_CANCEL_WEIGHT"] * late_cancel_rate
    )
    # -5..+5 around neutral punctuality.
    punctuality_adjustment = 10 * (punctuality - 0.5)
    return clamp(base - penalty + punctuality_adjustment, 0, 100)


def compute_attendance_score(w30: dict, w90: dict) -> dict:
    as_30 = _window_attendance_score(w30)
    as_90 = _window_attendance_score(w90)
    blended = (
        RELIABILITY_DEFAULT_WEIGHTS["RECENCY_BLEND_30"] * as_30
        + RELIABILITY_DEFAULT_WEIGHTS["RECENCY_BLEND_90"] * as_90
    )
    return {"AS": blended, "AS_30": as_30, "AS_90": as_90}


def compute_review_score(
    weighted_review: float | None, review_count: int | None
) -> float | None:
    """Map a 1-5 weighted star average onto 0-100; None below two reviews."""

    if not weighted_review or not review_count or review_count < MIN_REVIEWS_FOR_SCORE:
        return None
    return clamp(25 * (weighted_review - 1), 0, 100)


def fuse_reliability(
    attendance: dict, review_score: float | None, safe_host_events: int
) -> dict:
    if review_score is None:
        score = attendance["AS"]
    else:
        score = (1 - REVIEW_SHARE) * attendance["AS"] + REVIEW_SHARE * review_score

    host_bonus = min(MAX_HOST_BONUS, HOST_BONUS_PER_EVENT * safe_host_events)
    return {
        "score": clamp(score + host_bonus, 0, 100),
        "components": {
            "AS_30": attendance["AS_30"],
            "AS_90": attendance["AS_90"],
            "RS": review_score,
            "host_bonus": host_bonus,
        },
    }


def compute_confidence(
    w90: dict, distinct_reviewers: int, days_since_last_event: int | None
) -> float:
    volume = clamp(
        (
            (w90.get("attended") or 0)
            + (w90.get("no_shows") or 0)
            + (w90.get("late_cancels") or 0)
            + (w90.get("excused") or 0)
        )
        / 10,
        0,
        1,
    )
    reviews = clamp((w90.get("reviews") or 0) / 5, 0, 1)
    diversity = clamp(distinct_reviewers / 3, 0, 1)
    recency = (
        0
        if days_since_last_event is None
        else exp(-days_since_last_event / RECENCY_DECAY_DAYS)
    )
    return clamp(
        0.25 + 0.35 * volume + 0.20 * reviews + 0.10 * diversity + 0.10 * recency,
        0,
        1,
    )


def compute_reliability_index(
    w30: ReliabilityCounter,
    w90: ReliabilityCounter,
    weighted_review: float | None,
    review_count: int | None,
    safe_host_events: int,
    distinct_reviewers: int,
    days_since_last_event: int | None,
) -> ReliabilityScoreResult:
    attendance = compute_attendance_score(w30, w90)
    review_score = compute_review_score(weighted_review, review_count)
    fused = fuse_reliability(attendance, review_score, safe_host_events)
    return {
        "score": fused["score"],
        "confidence": compute_confidence(w90, distinct_reviewers, days_since_last_event),
        "components": fused["components"],
    }


def summarize_reliability(index_row: dict | None, metrics_row: dict | None) -> dict:
    """Profile-facing view of the persisted reliability rows.

    Missing rows read as zeros so new users render an empty state.
    """

    index_row = index_row or {}
    metrics_row = metrics_row or {}
    w30 = metrics_row.get("window_30d_json") or {}
    w90 = metrics_row.get("window_90d_json") or {}
    components = index_row.get("components_json") or {}

    return {
        "reliability": {
            "score": float(index_row.get("score") or 0),
            "confidence": float(index_row.get("confidence") or 0),
            "components": {
                "AS30": components.get("AS_30") or 0,
                "AS90": components.get("AS_90") or 0,
                "reviewScore": components.get("RS"),
                "hostBonus": components.get("host_bonus"),
            },
        },
        "attendance": {
            "attended30": w30.get("attended") or 0,
            "noShow30": w30.get("no_shows") or 0,
            "lateCancel30": w30.get("late_cancels") or 0,
            "excused30": w30.get("excused") or 0,
            "attended90": w90.get("attended") or 0,
            "noShow90": w90.get("no_shows") or 0,
            "lateCancel90": w90.get("late_cancels") or 0,
            "excused90": w90.get("excused") or 0,
        },
    }
