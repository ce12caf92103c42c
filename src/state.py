"""Shared LangGraph state definitions.

All graph states are TypedDicts so state is explicit, serializable, and
consistent across graph nodes.
"""

from __future__ import annotations

from typing import TypedDict

JsonDict = dict[str, object]
JsonList = list[JsonDict]


class RecommendationsState(TypedDict, total=False):
    """State for the session recommendations graph.

    Fields are optional at runtime because nodes populate them progressively.
    """

    # Identifies the requesting user.
    user_id: str
    # Optional search origin; ignored when not numeric.
    lat: object
    lng: object
    # Requested page size, clamped by validate_request.
    limit: object
    # Trait name -> {label, weight}.
    trait_signals: JsonDict
    # Saved activity filter preferences.
    preferences: JsonDict
    # Host/activity/category familiarity weights.
    engagement: JsonDict
    # Upcoming sessions before exclusions.
    candidates: JsonList
    # Recommendation records before ordering.
    scored: JsonList
    # Caller-facing payload {userId, generatedAt, limit, recommendations}.
    response: JsonDict
    # Error string if any node fails.
    error: str
    # Response metadata for observability.
    response_metadata: JsonDict


class SessionRankingState(TypedDict, total=False):
    """State for ranking an already-materialized list of sessions."""

    # RankableProfile of the viewer.
    profile: JsonDict
    # SessionWithSlots candidates.
    sessions: JsonList
    # Optional cap on returned sessions.
    limit: object
    # Ranked sessions with a 0-100 percent for display.
    ranked_sessions: JsonList
    # Error message if input is unusable.
    error: str


class ReliabilityState(TypedDict, total=False):
    """State for reliability recompute (single user or batch)."""

    # Single-user mode.
    user_id: str
    # Explicit batch.
    user_ids: list[str]
    # Active-user paging when no ids are given.
    limit: object
    offset: object
    days: object
    # Users the recompute node will process.
    resolved_user_ids: list[str]
    # One entry per user: score/confidence or error.
    results: JsonList
    count: int
    # Error message if the run aborted.
    error: str
