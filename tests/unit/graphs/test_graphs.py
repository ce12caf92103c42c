"""
Unit tests for the LangGraph graphs.

Each graph is compiled and invoked with the in-memory Supabase client, or with
the tool functions patched where the graph only orchestrates them.
"""

import pytest
from src.graphs.base_graph import clamp_int, parse_number
from src.graphs.recommendations import create_recommendations_graph
from src.graphs.reliability import create_reliability_graph
from src.graphs.session_ranking import create_session_ranking_graph


class TestRequestParameters:
    @pytest.mark.parametrize(
        "value,expected",
        [(None, None), ("", None), ("12.5", 12.5), ("abc", None), (True, None), (float("nan"), None)],
    )
    def test_parse_number(self, value, expected):
        assert parse_number(value) == expected

    @pytest.mark.parametrize(
        "value,expected",
        [(None, 12), ("abc", 12), (0, 12), (1, 3), (100, 24), (7.6, 8), ("5", 5)],
    )
    def test_limit_clamp(self, value, expected):
        assert clamp_int(value, 12, 3, 24) == expected


class TestSessionRankingGraph:
    def test_ranks_and_adds_percent(self):
        graph = create_session_ranking_graph()
        result = graph.invoke(
            {
                "profile": {"id": "u", "latitude": 13.75, "longitude": 100.5},
                "sessions": [
                    {"id": "far", "latitude": 13.9, "longitude": 100.5},
                    {"id": "near", "latitude": 13.751, "longitude": 100.5},
                    "not-a-session",
                ],
                "limit": 1,
            }
        )
        assert not result.get("error")
        [top] = result["ranked_sessions"]
        assert top["session"]["id"] == "near"
        assert top["percent"] == round(top["score"] / 105 * 100)

    def test_missing_profile_is_an_error(self):
        result = create_session_ranking_graph().invoke({"sessions": []})
        assert result["error"] == "profile must be an object"
        assert result["ranked_sessions"] == []


class TestRecommendationsGraph:
    def test_requires_user_id(self):
        result = create_recommendations_graph().invoke({})
        assert result["error"] == "user_id is required"
        assert result["response_metadata"]["success"] is False

    def test_returns_feed(self, fake_supabase):
        fake_supabase.tables["sessions"] = [
            {
                "id": "s1",
                "activity_id": "a1",
                "host_user_id": "host",
                "starts_at": "2099-01-01T10:00:00+00:00",
                "activities": {"id": "a1", "activity_types": ["yoga"]},
                "venues": None,
            }
        ]
        result = create_recommendations_graph().invoke(
            {"user_id": "user-1", "lat": "13.75", "lng": "bad", "limit": 100}
        )
        assert not result.get("error")
        assert result["lat"] == 13.75
        assert result["lng"] is None
        assert result["response"]["limit"] == 24
        assert [r["session"]["id"] for r in result["response"]["recommendations"]] == ["s1"]
        assert result["response_metadata"]["total_candidates"] == 1

    def test_fetch_failure_becomes_state_error(self, fake_supabase):
        fake_supabase.tables["user_traits"] = RuntimeError("boom")
        result = create_recommendations_graph().invoke({"user_id": "user-1"})
        assert result["error"] == "user_traits: boom"
        assert result["response_metadata"]["success"] is False


class TestReliabilityGraph:
    def test_single_user(self, fake_supabase):
        result = create_reliability_graph().invoke({"user_id": "user-1"})
        assert not result.get("error")
        assert result["count"] == 1
        assert result["results"][0]["user_id"] == "user-1"
        assert len(fake_supabase.upserts["reliability_index"]) == 1

    def test_single_user_failure_fails_the_run(self, fake_supabase):
        fake_supabase.tables["reviews"] = RuntimeError("timeout")
        result = create_reliability_graph().invoke({"user_id": "user-1"})
        assert result["error"] == "reviews: timeout"
        assert result["count"] == 0

    def test_batch_of_active_users(self, fake_supabase):
        fake_supabase.tables["session_attendees"] = [{"user_id": "a"}, {"user_id": "b"}]
        result = create_reliability_graph().invoke({"limit": 500, "days": 0})
        assert result["resolved_user_ids"] == ["a", "b"]
        assert result["count"] == 2
        _, ops = fake_supabase.calls[0]
        assert ("range", (0, 199), {}) in ops

    def test_explicit_user_ids(self, fake_supabase):
        result = create_reliability_graph().invoke({"user_ids": ["a", "", 7, "b"]})
        assert result["resolved_user_ids"] == ["a", "b"]
        assert result["count"] == 2
