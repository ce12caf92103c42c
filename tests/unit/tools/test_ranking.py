"""
Unit tests for deterministic session ranking.

Ranking sums three bounded components:
  1. Distance (0-40), step function over Haversine km
  2. Skill alignment (0-35), per-sport override or default skill
  3. Urgency (0-30), hours until start

Edge cases tested include:
  - Missing or non-numeric coordinates
  - Missing skill on either side
  - Past and unparseable start times
  - Ties keeping input order
"""

import math
from datetime import timedelta

import pytest
from src.tools.ranking_tools import (
    MAX_RANKING_SCORE,
    distance_score,
    normalize_ranking_score,
    rank_sessions_for_user,
    resolve_user_skill,
    score_session,
    skill_score,
    urgency_score,
)


BANGKOK = {"id": "user-1", "latitude": 13.75, "longitude": 100.5}


def make_session(session_id, lat=13.75, lng=100.5, **extra):
    session = {
        "id": session_id,
        "sport": "tennis",
        "required_skill_level": None,
        "starts_at": None,
        "latitude": lat,
        "longitude": lng,
        "open_slots": None,
    }
    session.update(extra)
    return session


class TestDistanceScore:
    """Test the step-function proximity score."""

    @pytest.mark.parametrize(
        "profile,session",
        [
            ({"latitude": None, "longitude": 100.5}, make_session("s")),
            (BANGKOK, make_session("s", lat=None)),
            (BANGKOK, make_session("s", lng="not-a-number")),
            ({}, {}),
        ],
    )
    def test_missing_coordinates_score_zero(self, profile, session):
        """Missing coordinates on either side give exactly 0."""
        assert distance_score(profile, session) == 0

    def test_same_location_scores_max(self):
        assert distance_score(BANGKOK, make_session("s")) == 40

    def test_tiers(self):
        """Roughly 0.01 degrees of latitude is 1.1 km."""
        assert distance_score(BANGKOK, make_session("s", lat=13.77)) == 30  # ~2.2 km
        assert distance_score(BANGKOK, make_session("s", lat=13.786)) == 20  # ~4 km
        assert distance_score(BANGKOK, make_session("s", lat=13.82)) == 10  # ~7.8 km
        assert distance_score(BANGKOK, make_session("s", lat=13.95)) == 0  # ~22 km

    def test_string_coordinates_are_accepted(self):
        profile = {"latitude": "13.75", "longitude": "100.5"}
        assert distance_score(profile, make_session("s")) == 40


class TestSkillScore:
    """Test skill alignment tiers."""

    def test_case_insensitive_match(self):
        profile = {"default_skill_level": " Intermediate "}
        session = make_session("s", required_skill_level="intermediate")
        assert skill_score(profile, session) == 35

    def test_mismatch(self):
        profile = {"default_skill_level": "beginner"}
        session = make_session("s", required_skill_level="advanced")
        assert skill_score(profile, session) == 15

    def test_required_but_user_has_none(self):
        session = make_session("s", required_skill_level="advanced")
        assert skill_score({}, session) == 5

    def test_no_requirement_with_user_skill(self):
        assert skill_score({"default_skill_level": "beginner"}, make_session("s")) == 15

    def test_no_requirement_no_user_skill(self):
        assert skill_score({}, make_session("s")) == 10

    def test_sport_override_beats_default(self):
        profile = {
            "default_skill_level": "beginner",
            "sport_profiles": [{"sport": "tennis", "skill_level": "advanced"}],
        }
        session = make_session("s", required_skill_level="advanced")
        assert skill_score(profile, session) == 35

    def test_override_without_skill_falls_back_to_default(self):
        profile = {
            "default_skill_level": "beginner",
            "sport_profiles": [{"sport": "tennis", "skill_level": None}],
        }
        assert resolve_user_skill(profile, "tennis") == "beginner"

    def test_no_sport_uses_default(self):
        profile = {
            "default_skill_level": "beginner",
            "sport_profiles": [{"sport": "tennis", "skill_level": "advanced"}],
        }
        assert resolve_user_skill(profile, None) == "beginner"


class TestUrgencyScore:
    """Test start-time urgency tiers."""

    def test_sooner_scores_higher(self, fixed_now, iso_from_now):
        soon = urgency_score(make_session("a", starts_at=iso_from_now(hours=1)), fixed_now)
        later = urgency_score(make_session("b", starts_at=iso_from_now(hours=72)), fixed_now)
        assert soon > later
        assert soon == 30
        assert later == 0

    def test_tiers(self, fixed_now, iso_from_now):
        assert urgency_score(make_session("a", starts_at=iso_from_now(hours=12)), fixed_now) == 20
        assert urgency_score(make_session("a", starts_at=iso_from_now(hours=30)), fixed_now) == 10

    def test_past_session_scores_zero(self, fixed_now, iso_from_now):
        session = make_session("a", starts_at=iso_from_now(hours=-2))
        assert urgency_score(session, fixed_now) == 0

    def test_unparseable_start_scores_zero(self, fixed_now):
        assert urgency_score(make_session("a", starts_at="next tuesday"), fixed_now) == 0
        assert urgency_score(make_session("a"), fixed_now) == 0

    def test_datetime_and_epoch_starts(self, fixed_now):
        starts = fixed_now + timedelta(hours=3)
        assert urgency_score(make_session("a", starts_at=starts), fixed_now) == 30
        assert urgency_score(make_session("a", starts_at=starts.timestamp()), fixed_now) == 30


class TestScoreSession:
    """Test component bounds and the total."""

    def test_components_within_bounds_and_summed(self, fixed_now, iso_from_now):
        sessions = [
            make_session("a", starts_at=iso_from_now(hours=2), required_skill_level="beginner"),
            make_session("b", lat=None, starts_at="bad"),
            make_session("c", lat=13.8, starts_at=iso_from_now(hours=40)),
        ]
        profile = {**BANGKOK, "default_skill_level": "beginner"}
        for session in sessions:
            ranked = score_session(profile, session, fixed_now)
            breakdown = ranked["breakdown"]
            assert 0 <= breakdown["distance"] <= 40
            assert 0 <= breakdown["skill"] <= 35
            assert 0 <= breakdown["urgency"] <= 30
            assert ranked["score"] == (
                breakdown["distance"] + breakdown["skill"] + breakdown["urgency"]
            )
            assert ranked["session"] is session


class TestRankSessions:
    """Test ordering of ranked sessions."""

    def test_empty_input(self):
        assert rank_sessions_for_user(BANGKOK, []) == []

    def test_closer_session_ranks_first(self, fixed_now, iso_from_now):
        starts = iso_from_now(hours=5)
        far = make_session("far", lat=13.93, starts_at=starts)  # ~20 km
        near = make_session("near", lat=13.7545, starts_at=starts)  # ~0.5 km
        ranked = rank_sessions_for_user(BANGKOK, [far, near], fixed_now)
        assert [r["session"]["id"] for r in ranked] == ["near", "far"]

    def test_output_sorted_descending(self, fixed_now, iso_from_now):
        sessions = [
            make_session("a", lat=13.9, starts_at=iso_from_now(hours=100)),
            make_session("b", starts_at=iso_from_now(hours=1)),
            make_session("c", lat=13.78, starts_at=iso_from_now(hours=20)),
        ]
        ranked = rank_sessions_for_user(BANGKOK, sessions, fixed_now)
        scores = [r["score"] for r in ranked]
        assert scores == sorted(scores, reverse=True)

    def test_ties_keep_input_order(self, fixed_now):
        sessions = [make_session(str(i)) for i in range(5)]
        ranked = rank_sessions_for_user(BANGKOK, sessions, fixed_now)
        assert [r["session"]["id"] for r in ranked] == ["0", "1", "2", "3", "4"]

    def test_bangkok_near_session_beats_far_one(self, fixed_now, iso_from_now):
        """Identical sport, skill and urgency; only distance differs."""
        profile = {
            "id": "user-1",
            "latitude": 13.75,
            "longitude": 100.5,
            "default_skill_level": "intermediate",
        }
        starts = iso_from_now(hours=4)
        far = make_session("far", lat=13.9, required_skill_level="intermediate", starts_at=starts)
        near = make_session("near", lat=13.751, required_skill_level="intermediate", starts_at=starts)

        ranked = rank_sessions_for_user(profile, [far, near], fixed_now)

        assert ranked[0]["session"]["id"] == "near"
        assert ranked[0]["score"] > ranked[1]["score"]
        assert ranked[0]["breakdown"]["skill"] == ranked[1]["breakdown"]["skill"]
        assert ranked[0]["breakdown"]["urgency"] == ranked[1]["breakdown"]["urgency"]


class TestNormalizeRankingScore:
    """Test mapping raw scores onto a percentage."""

    def test_negative_is_zero(self):
        assert normalize_ranking_score(-5) == 0

    def test_nan_is_zero(self):
        assert normalize_ranking_score(math.nan) == 0

    def test_max_is_hundred(self):
        assert normalize_ranking_score(MAX_RANKING_SCORE) == 100

    def test_midpoint_is_rounded(self):
        assert normalize_ranking_score(52.5) == 50

    def test_halves_round_up(self):
        assert normalize_ranking_score(13.125) == 13
        assert normalize_ranking_score(65.625) == 63
