"""Session recommendations for a single user.

Each upcoming session is scored against four signals and the sum (0-100) is
used to order the feed:

- traits (45): how much of the activity's preferred-trait list the user's
  peer-voted trait strengths cover
- categories (25): overlap between activity categories and the user's saved
  category filters merged with categories they engaged with recently
- proximity (20): linear decay from the requested location to the venue over
  ``MAX_DISTANCE_KM``
- engagement (10): familiarity with the host and the activity from recent
  attendance
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta
from functools import cmp_to_key

from supabase import Client

from src.records import (
    ActivityFilterPreferences,
    RecentEngagementSignals,
    RecommendationActivityRef,
    RecommendationRecord,
    RecommendationResponse,
    RecommendationSession,
    RecommendationVenueRef,
    TraitSignalMap,
)
from src.tools import supabase_tools
from src.tools.preference_tools import (
    ACTIVITY_FILTERS_KEY,
    default_activity_filter_preferences,
    normalise_activity_filter_preferences,
)
from src.utils.geo import distance_between_km
from src.utils.logging_config import logger
from src.utils.normalize import (
    clamp01,
    normalise_list,
    normalise_token,
    parse_timestamp,
    to_iso,
    utcnow,
)
from src.utils.relations import unwrap_dict

TRAIT_WEIGHT = 45
CATEGORY_WEIGHT = 25
PROXIMITY_WEIGHT = 20
ENGAGEMENT_WEIGHT = 10
TOTAL_WEIGHT = TRAIT_WEIGHT + CATEGORY_WEIGHT + PROXIMITY_WEIGHT + ENGAGEMENT_WEIGHT

HOST_ENGAGEMENT_SHARE = 0.6
ACTIVITY_ENGAGEMENT_SHARE = 0.4

RECENT_WINDOW_DAYS = 45
LOOKAHEAD_DAYS = 21
MAX_DISTANCE_KM = 30
CANDIDATE_LIMIT = 80
DEFAULT_LIMIT = 12

STATUS_ENGAGEMENT_WEIGHTS = {"going": 1.0, "interested": 0.7}
DEFAULT_STATUS_ENGAGEMENT_WEIGHT = 0.5

SEED_MARKERS = {"seed", "demo-seed", "dev-seed"}


# ============================================================
# INPUT DERIVATION
# ============================================================
def has_seed_marker(candidate: dict | None) -> bool:
    """True for synthetic activities created by seed scripts."""

    if not candidate:
        return False
    if SEED_MARKERS.intersection(normalise_list(candidate.get("tags"))):
        return True
    venue = normalise_token(candidate.get("venue"))
    return bool(venue) and (venue == "seeded spot" or venue.endswith("(seeded)"))


def trait_signals_from_rows(rows: list[dict]) -> TraitSignalMap:
    """Map trait scores (0-100) onto 0-1 weights keyed by normalised name."""

    signals: TraitSignalMap = {}
    for row in rows:
        catalog = unwrap_dict(row.get("traits_catalog"))
        name = catalog.get("name") if catalog else None
        key = normalise_token(name)
        if not key:
            continue
        weight = clamp01((row.get("score_float") or 0) / 100)
        signals[key] = {"label": name, "weight": weight}
    return signals


def engagement_signals_from_rows(
    rows: list[dict], now: datetime | None = None
) -> RecentEngagementSignals:
    """Recency-decayed familiarity weights per host, activity and category.

    A session that started ``RECENT_WINDOW_DAYS`` ago or earlier decays to 0.
    The strongest weight wins when the same key appears more than once.
    """

    now = now or utcnow()
    window_seconds = RECENT_WINDOW_DAYS * 86400
    host_weights: dict[str, float] = {}
    activity_weights: dict[str, float] = {}
    category_weights: dict[str, float] = {}

    for row in rows:
        session = unwrap_dict(row.get("sessions"))
        if not session:
            continue
        starts_at = parse_timestamp(session.get("starts_at"))
        if starts_at is None:
            continue

        recency = clamp01(1 - (now - starts_at).total_seconds() / window_seconds)
        status = normalise_token(row.get("status"))
        status_weight = STATUS_ENGAGEMENT_WEIGHTS.get(
            status, DEFAULT_STATUS_ENGAGEMENT_WEIGHT
        )
        weight = clamp01(recency * status_weight)

        host_id = session.get("host_user_id")
        if host_id:
            host_weights[host_id] = max(host_weights.get(host_id, 0), weight)
        activity_id = session.get("activity_id")
        if activity_id:
            activity_weights[activity_id] = max(
                activity_weights.get(activity_id, 0), weight
            )
        activity = unwrap_dict(session.get("activities"))
        for category in normalise_list(activity.get("activity_types") if activity else None):
            category_weights[category] = max(category_weights.get(category, 0), weight)

    return {
        "host_weights": host_weights,
        "activity_weights": activity_weights,
        "category_weights": category_weights,
    }


def build_category_targets(
    prefs: ActivityFilterPreferences, recent: dict[str, float]
) -> dict[str, float]:
    """Explicit category filters weigh 1; recent categories their decayed weight."""

    targets: dict[str, float] = {}
    for category in prefs.get("categories") or []:
        key = normalise_token(category)
        if key:
            targets[key] = 1.0
    for category, weight in recent.items():
        if not category:
            continue
        targets[category] = max(targets.get(category, 0), clamp01(weight))
    return targets


# ============================================================
# COMPONENT SCORERS
# ============================================================
def _preferred_traits(activity: RecommendationActivityRef) -> list[str]:
    participant_pref = unwrap_dict(activity.get("participant_preferences"))
    preferred = participant_pref.get("preferred_traits") if participant_pref else None
    if preferred:
        return preferred
    return activity.get("traits") or []


def score_trait_match(
    traits: TraitSignalMap, activity: RecommendationActivityRef | None
) -> dict:
    """Trait affinity: summed signal weight over the number of target traits."""

    if not activity or not traits:
        return {"value": 0, "matched_traits": []}

    tokens = normalise_list(_preferred_traits(activity))
    if not tokens:
        return {"value": 0, "matched_traits": []}

    numerator = 0.0
    matched: list[str] = []
    for key in tokens:
        signal = traits.get(key)
        if not signal:
            continue
        numerator += signal["weight"]
        matched.append(signal["label"])

    ratio = clamp01(numerator / len(tokens))
    return {"value": TRAIT_WEIGHT * ratio, "matched_traits": matched}


def score_category_match(
    targets: dict[str, float], activity: RecommendationActivityRef | None
) -> dict:
    """Category affinity: matched target weight over total target weight."""

    if not targets or not activity:
        return {"value": 0, "matched_categories": []}

    labels = activity.get("activity_types")
    if labels is None:
        labels = activity.get("tags")
    labels = labels or []
    categories = [(label, normalise_token(label)) for label in labels]
    categories = [(label, key) for label, key in categories if key]
    if not categories:
        return {"value": 0, "matched_categories": []}

    denominator = sum(targets.values())
    numerator = 0.0
    matched: list[str] = []
    seen: set[str] = set()
    for label, key in categories:
        target_weight = targets.get(key)
        if not target_weight:
            continue
        numerator += target_weight
        if key not in seen:
            matched.append(label)
            seen.add(key)

    ratio = clamp01(numerator / denominator) if denominator else 0
    return {"value": CATEGORY_WEIGHT * ratio, "matched_categories": matched}


def score_proximity(
    lat: float | None, lng: float | None, venue: RecommendationVenueRef | None
) -> dict:
    """Linear proximity decay; distance is None when it cannot be computed."""

    distance_km = distance_between_km(
        lat, lng, venue.get("lat") if venue else None, venue.get("lng") if venue else None
    )
    if distance_km is None:
        return {"value": 0, "distance_km": None}

    ratio = clamp01(1 - distance_km / MAX_DISTANCE_KM)
    return {"value": PROXIMITY_WEIGHT * ratio, "distance_km": distance_km}


def score_engagement(
    session: RecommendationSession,
    host_weights: dict[str, float],
    activity_weights: dict[str, float],
) -> dict:
    """Host and activity familiarity, additive and capped at ENGAGEMENT_WEIGHT."""

    value = 0.0
    matches: list[str] = []

    host_id = session.get("host_user_id")
    if host_id and host_id in host_weights:
        value += ENGAGEMENT_WEIGHT * HOST_ENGAGEMENT_SHARE * clamp01(host_weights[host_id])
        matches.append("host")

    activity_id = session.get("activity_id")
    if activity_id and activity_id in activity_weights:
        value += (
            ENGAGEMENT_WEIGHT
            * ACTIVITY_ENGAGEMENT_SHARE
            * clamp01(activity_weights[activity_id])
        )
        matches.append("activity")

    return {"value": min(ENGAGEMENT_WEIGHT, value), "matches": matches}


def to_recommendation_record(
    session: RecommendationSession,
    trait_score: dict,
    category_score: dict,
    proximity_score: dict,
    engagement_score: dict,
) -> RecommendationRecord:
    score = (
        trait_score["value"]
        + category_score["value"]
        + proximity_score["value"]
        + engagement_score["value"]
    )
    return {
        "session": session,
        "score": score,
        "normalizedScore": clamp01(score / TOTAL_WEIGHT) if TOTAL_WEIGHT else 0,
        "breakdown": {
            "components": {
                "traits": trait_score["value"],
                "categories": category_score["value"],
                "proximity": proximity_score["value"],
                "engagement": engagement_score["value"],
            },
            "matchedTraits": trait_score["matched_traits"],
            "matchedCategories": category_score["matched_categories"],
            "distanceKm": proximity_score["distance_km"],
            "engagementMatches": engagement_score["matches"],
        },
    }


# ============================================================
# RANKING
# ============================================================
def _compare_records(a: RecommendationRecord, b: RecommendationRecord) -> int:
    if a["score"] != b["score"]:
        return -1 if a["score"] > b["score"] else 1

    a_start = parse_timestamp(a["session"].get("starts_at"))
    b_start = parse_timestamp(b["session"].get("starts_at"))
    if a_start is None or b_start is None:
        return 0
    if a_start == b_start:
        return 0
    return -1 if a_start < b_start else 1


def sort_recommendations(
    records: list[RecommendationRecord],
) -> list[RecommendationRecord]:
    """Highest score first; equal scores go soonest first.

    When either start time is unparseable the pair is left in input order.
    """

    return sorted(records, key=cmp_to_key(_compare_records))


def score_candidates(
    user_id: str,
    candidates: list[RecommendationSession],
    trait_signals: TraitSignalMap,
    prefs: ActivityFilterPreferences,
    engagement: RecentEngagementSignals,
    lat: float | None = None,
    lng: float | None = None,
) -> list[RecommendationRecord]:
    """Score materialized candidates; pure and free of I/O.

    Sessions hosted by ``user_id``, sessions without an activity and seeded
    activities are dropped before scoring.
    """

    category_targets = build_category_targets(prefs, engagement["category_weights"])

    scored: list[RecommendationRecord] = []
    for session in candidates:
        if not session:
            continue
        if session.get("host_user_id") == user_id:
            continue
        activity = unwrap_dict(session.get("activities"))
        if not activity or has_seed_marker(activity):
            continue

        venue = unwrap_dict(session.get("venues"))
        scored.append(
            to_recommendation_record(
                session,
                score_trait_match(trait_signals, activity),
                score_category_match(category_targets, activity),
                score_proximity(lat, lng, venue),
                score_engagement(
                    session,
                    engagement["host_weights"],
                    engagement["activity_weights"],
                ),
            )
        )
    return scored


# ============================================================
# DATA FETCHING
# ============================================================
def fetch_user_trait_signals(client: Client, user_id: str) -> TraitSignalMap:
    return trait_signals_from_rows(supabase_tools.fetch_user_trait_rows(client, user_id))


def fetch_activity_preferences(
    client: Client, user_id: str
) -> ActivityFilterPreferences:
    """Saved activity filters; defaults when missing or unreadable."""

    try:
        stored = supabase_tools.load_user_preference(
            client, user_id, ACTIVITY_FILTERS_KEY
        )
    except Exception as exc:
        logger.warning(
            "Failed to fetch activity preferences; using defaults: %s", str(exc)
        )
        return default_activity_filter_preferences()

    if not stored:
        return default_activity_filter_preferences()
    return normalise_activity_filter_preferences(stored)


def fetch_recent_engagement_signals(
    client: Client, user_id: str, now: datetime | None = None
) -> RecentEngagementSignals:
    now = now or utcnow()
    rows = supabase_tools.fetch_recent_engagement_rows(
        client, user_id, now - timedelta(days=RECENT_WINDOW_DAYS)
    )
    return engagement_signals_from_rows(rows, now)


def fetch_candidate_sessions(
    client: Client, now: datetime | None = None
) -> list[RecommendationSession]:
    now = now or utcnow()
    return supabase_tools.fetch_candidate_sessions(
        client, now, now + timedelta(days=LOOKAHEAD_DAYS), CANDIDATE_LIMIT
    )


def fetch_recommendation_inputs(
    client: Client, user_id: str, now: datetime | None = None
) -> dict:
    """Fetch the four scoring inputs concurrently.

    They are independent reads. A failure in any of them re-raises from
    ``result()`` after the pool has drained.
    """

    now = now or utcnow()
    with ThreadPoolExecutor(max_workers=4) as executor:
        future_traits = executor.submit(fetch_user_trait_signals, client, user_id)
        future_prefs = executor.submit(fetch_activity_preferences, client, user_id)
        future_engagement = executor.submit(
            fetch_recent_engagement_signals, client, user_id, now
        )
        future_candidates = executor.submit(fetch_candidate_sessions, client, now)

        return {
            "trait_signals": future_traits.result(),
            "preferences": future_prefs.result(),
            "engagement": future_engagement.result(),
            "candidates": future_candidates.result(),
        }


def build_recommendation_response(
    user_id: str,
    records: list[RecommendationRecord],
    limit: int = DEFAULT_LIMIT,
    now: datetime | None = None,
) -> RecommendationResponse:
    return {
        "userId": user_id,
        "generatedAt": to_iso(now or utcnow()),
        "limit": limit,
        "recommendations": sort_recommendations(records)[:limit],
    }


def build_activity_recommendations(
    client: Client,
    user_id: str,
    lat: float | None = None,
    lng: float | None = None,
    limit: int = DEFAULT_LIMIT,
    now: datetime | None = None,
) -> RecommendationResponse:
    """Fetch inputs, score every candidate and return the top ``limit``."""

    now = now or utcnow()
    inputs = fetch_recommendation_inputs(client, user_id, now)
    records = score_candidates(
        user_id,
        inputs["candidates"],
        inputs["trait_signals"],
        inputs["preferences"],
        inputs["engagement"],
        lat=lat,
        lng=lng,
    )
    logger.info(
        "Scored %s of %s candidate sessions for user=%s",
        len(records),
        len(inputs["candidates"]),
        user_id,
    )
    return build_recommendation_response(user_id, records, limit, now)
