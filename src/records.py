"""Record shapes consumed and produced by the scorers.

Inputs mirror the Supabase rows they are read from, so their keys are
snake_case. The recommendation payload keeps the camelCase keys the web and
mobile clients already consume.
"""

from __future__ import annotations

from datetime import datetime
from typing import NotRequired, TypedDict


# ============================================================
# SESSION RANKING
# ============================================================
class SportProfile(TypedDict, total=False):
    sport: str | None
    skill_level: str | None


class RankableProfile(TypedDict, total=False):
    id: str
    latitude: float | None
    longitude: float | None
    primary_sport: str | None
    default_skill_level: str | None
    # Per-sport overrides of the default skill level.
    sport_profiles: list[SportProfile]


class SessionOpenSlots(TypedDict):
    slots_total: int
    slots_taken: int


class SessionWithSlots(TypedDict, total=False):
    id: str
    sport: str | None
    required_skill_level: str | None
    starts_at: str | datetime
    latitude: float | None
    longitude: float | None
    open_slots: SessionOpenSlots | None


class RankingBreakdown(TypedDict):
    distance: float
    skill: float
    urgency: float


class RankedSession(TypedDict):
    session: SessionWithSlots
    score: float
    breakdown: RankingBreakdown


# ============================================================
# RECOMMENDATIONS
# ============================================================
class RecommendationTraitPreferenceRow(TypedDict, total=False):
    preferred_traits: list[str] | None


class RecommendationActivityRef(TypedDict, total=False):
    id: str
    name: str
    description: str | None
    activity_types: list[str] | None
    tags: list[str] | None
    traits: list[str] | None
    participant_preferences: (
        RecommendationTraitPreferenceRow
        | list[RecommendationTraitPreferenceRow]
        | None
    )


class RecommendationVenueRef(TypedDict, total=False):
    id: str | None
    name: str
    address: str | None
    lat: float | None
    lng: float | None


class RecommendationSession(TypedDict, total=False):
    id: str
    activity_id: str | None
    host_user_id: str | None
    price_cents: int
    starts_at: str
    ends_at: str
    venue_id: str | None
    visibility: str | None
    activities: RecommendationActivityRef | list[RecommendationActivityRef] | None
    venues: RecommendationVenueRef | list[RecommendationVenueRef] | None
    session_attendees: list[dict] | None


class UserTraitSignal(TypedDict):
    label: str
    weight: float


# Normalised trait name -> signal.
TraitSignalMap = dict[str, UserTraitSignal]


class RecentEngagementSignals(TypedDict):
    host_weights: dict[str, float]
    activity_weights: dict[str, float]
    category_weights: dict[str, float]


class ActivityFilterPreferences(TypedDict):
    radius: int
    price_range: list[int]
    categories: list[str]
    time_of_day: list[str]


class RecommendationComponents(TypedDict):
    traits: float
    categories: float
    proximity: float
    engagement: float


class RecommendationBreakdown(TypedDict):
    components: RecommendationComponents
    matchedTraits: list[str]
    matchedCategories: list[str]
    distanceKm: NotRequired[float | None]
    engagementMatches: NotRequired[list[str]]


class RecommendationRecord(TypedDict):
    session: RecommendationSession
    score: float
    normalizedScore: float
    breakdown: RecommendationBreakdown


class RecommendationResponse(TypedDict):
    userId: str
    generatedAt: str
    limit: int
    recommendations: list[RecommendationRecord]


# ============================================================
# RELIABILITY
# ============================================================
class ReliabilityCounter(TypedDict):
    attended: int
    no_shows: int
    late_cancels: int
    excused: int
    on_time: int
    late: int
    reviews: int
    weighted_review: NotRequired[float]
    last_event_at: NotRequired[str]


class ParticipationRecord(TypedDict):
    reference_id: str
    starts_at: datetime
    # attended | no_show | cancelled | excused
    status: str | None
    # on_time | late
    punctuality: str | None
    # host | guest
    role: str
    completed: bool


class AttendanceWindows(TypedDict):
    window_30d: ReliabilityCounter
    window_90d: ReliabilityCounter
    lifetime: ReliabilityCounter
    last_event_at: datetime | None
    safe_host_events: int


class ReviewSummary(TypedDict):
    weighted_review_30d: float | None
    weighted_review_90d: float | None
    reviews_30d: int
    reviews_90d: int
    distinct_reviewers_90d: int


class ReliabilityScoreResult(TypedDict):
    score: float
    confidence: float
    components: dict
