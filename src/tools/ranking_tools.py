"""Deterministic session ranking for the "find a session" surfaces.

Three independently bounded components are summed per session: distance to
the user (0-40), skill alignment for the session's sport (0-35) and urgency of
the start time (0-30). Missing data never raises; it scores neutral.
"""

from __future__ import annotations

from datetime import datetime
from math import floor, isfinite

from src.records import (
    RankableProfile,
    RankedSession,
    RankingBreakdown,
    SessionWithSlots,
)
from src.utils.geo import distance_between_km
from src.utils.logging_config import logger
from src.utils.normalize import parse_timestamp, utcnow

DISTANCE_SCORE_MAX = 40
SKILL_SCORE_MAX = 35
URGENCY_SCORE_MAX = 30

MAX_RANKING_SCORE = DISTANCE_SCORE_MAX + SKILL_SCORE_MAX + URGENCY_SCORE_MAX

# (max km, score), checked in order.
DISTANCE_TIERS = ((1, DISTANCE_SCORE_MAX), (3, 30), (5, 20), (10, 10))
# (max hours until start, score), checked in order.
URGENCY_TIERS = ((6, URGENCY_SCORE_MAX), (24, 20), (48, 10))


def distance_score(profile: RankableProfile, session: SessionWithSlots) -> float:
    """Step-function proximity score; 0 when either side has no location."""

    distance_km = distance_between_km(
        profile.get("latitude"),
        profile.get("longitude"),
        session.get("latitude"),
        session.get("longitude"),
    )
    if distance_km is None:
        return 0

    for max_km, score in DISTANCE_TIERS:
        if distance_km <= max_km:
            return score
    return 0


def resolve_user_skill(profile: RankableProfile, sport: str | None) -> str | None:
    """Per-sport skill override, falling back to the default skill level."""

    default = profile.get("default_skill_level")
    if not sport:
        return default

    for sport_profile in profile.get("sport_profiles") or []:
        if sport_profile.get("sport") == sport:
            skill = sport_profile.get("skill_level")
            return default if skill is None else skill
    return default


def normalize_skill(skill: str | None) -> str | None:
    if not isinstance(skill, str):
        return None
    return skill.strip().lower()


def skill_score(profile: RankableProfile, session: SessionWithSlots) -> float:
    """Coarse three-tier skill match.

    No requirement: 15 with any user skill on record, else 10.
    Requirement but no user skill: 5. Exact match: 35. Mismatch: 15.
    """

    user_skill = normalize_skill(resolve_user_skill(profile, session.get("sport")))
    required_skill = normalize_skill(session.get("required_skill_level"))

    if not required_skill:
        return 15 if user_skill else 10
    if not user_skill:
        return 5
    if user_skill == required_skill:
        return SKILL_SCORE_MAX
    return 15


def urgency_score(session: SessionWithSlots, now: datetime | None = None) -> float:
    """Tiered preference for sessions starting soon; past sessions score 0."""

    starts_at = parse_timestamp(session.get("starts_at"))
    if starts_at is None:
        return 0

    now = now or utcnow()
    hours_until = (starts_at - now).total_seconds() / 3600
    if hours_until <= 0:
        return 0

    for max_hours, score in URGENCY_TIERS:
        if hours_until <= max_hours:
            return score
    return 0


def normalize_ranking_score(score: float) -> int:
    """Map a raw ranking score onto a 0-100 percentage."""

    if not isinstance(score, (int, float)) or not isfinite(score) or score <= 0:
        return 0
    percent = score / MAX_RANKING_SCORE * 100
    return max(0, min(100, floor(percent + 0.5)))


def score_session(
    profile: RankableProfile,
    session: SessionWithSlots,
    now: datetime | None = None,
) -> RankedSession:
    breakdown: RankingBreakdown = {
        "distance": distance_score(profile, session),
        "skill": skill_score(profile, session),
        "urgency": urgency_score(session, now),
    }
    return {
        "session": session,
        "breakdown": breakdown,
        "score": breakdown["distance"] + breakdown["skill"] + breakdown["urgency"],
    }


def rank_sessions_for_user(
    profile: RankableProfile,
    sessions: list[SessionWithSlots],
    now: datetime | None = None,
) -> list[RankedSession]:
    """Score every session and sort by total score, highest first.

    Equal scores keep their input order; there is no further tie-break.
    """

    if not sessions:
        return []

    now = now or utcnow()
    ranked = [score_session(profile, session, now) for session in sessions]
    ranked = sorted(ranked, key=lambda item: item["score"], reverse=True)

    logger.debug(
        "rank_sessions_for_user profile=%s sessions=%s",
        profile.get("id"),
        len(ranked),
    )
    return ranked
