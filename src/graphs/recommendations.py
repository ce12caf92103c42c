"""Session recommendations graph."""

from __future__ import annotations

from langgraph.graph import StateGraph

from src.config import config
from src.graphs.base_graph import BaseGraph, clamp_int, parse_number, with_state
from src.state import RecommendationsState
from src.tools.recommendation_tools import (
    build_recommendation_response,
    fetch_recommendation_inputs,
    score_candidates,
)
from src.tools.supabase_tools import get_client
from src.utils.errors import SupabaseQueryError, SupabaseUnavailableError


class RecommendationsGraph(BaseGraph):
    """Fetch a user's signals, score upcoming sessions and return the top N."""

    def build_graph(self) -> StateGraph:
        graph = StateGraph(RecommendationsState)
        graph.add_node("validate_request", self.node_validate_request)
        graph.add_node("load_inputs", self.node_load_inputs)
        graph.add_node("score_candidates", self.node_score_candidates)
        graph.add_node("rank_recommendations", self.node_rank_recommendations)
        graph.add_node("finalize_response", self.node_finalize_response)

        graph.set_entry_point("validate_request")
        graph.add_edge("validate_request", "load_inputs")
        graph.add_edge("load_inputs", "score_candidates")
        graph.add_edge("score_candidates", "rank_recommendations")
        graph.add_edge("rank_recommendations", "finalize_response")
        graph.set_finish_point("finalize_response")
        return graph

    def node_validate_request(self, state: RecommendationsState) -> RecommendationsState:
        """Normalise lat/lng/limit the way the web route does."""

        self._log_node_execution("validate_request", state)
        if not state.get("user_id"):
            return with_state(state, error="user_id is required")

        return with_state(
            state,
            lat=parse_number(state.get("lat")),
            lng=parse_number(state.get("lng")),
            limit=clamp_int(
                state.get("limit"),
                config.RECOMMENDATION_DEFAULT_LIMIT,
                config.RECOMMENDATION_MIN_LIMIT,
                config.RECOMMENDATION_MAX_LIMIT,
            ),
        )

    def node_load_inputs(self, state: RecommendationsState) -> RecommendationsState:
        """Fetch trait signals, preferences, engagement and candidates."""

        if state.get("error"):
            return state

        try:
            self._log_node_execution("load_inputs", state)
            inputs = fetch_recommendation_inputs(get_client(), state["user_id"])
            return with_state(state, **inputs)
        except (SupabaseQueryError, SupabaseUnavailableError) as exc:
            self._log_node_error("load_inputs", exc)
            return with_state(state, error=str(exc), candidates=[])

    def node_score_candidates(self, state: RecommendationsState) -> RecommendationsState:
        if state.get("error"):
            return state

        self._log_node_execution("score_candidates", state)
        scored = score_candidates(
            state["user_id"],
            state.get("candidates", []),
            state.get("trait_signals", {}),
            state.get("preferences", {}),
            state.get("engagement", {}),
            lat=state.get("lat"),
            lng=state.get("lng"),
        )
        return with_state(state, scored=scored)

    def node_rank_recommendations(
        self, state: RecommendationsState
    ) -> RecommendationsState:
        """Order by score (soonest first on ties) and truncate to the limit."""

        if state.get("error"):
            return state

        self._log_node_execution("rank_recommendations", state)
        response = build_recommendation_response(
            state["user_id"], state.get("scored", []), state["limit"]
        )
        return with_state(state, response=response)

    def node_finalize_response(self, state: RecommendationsState) -> RecommendationsState:
        self._log_node_execution("finalize_response", state)
        metadata = {
            "success": not state.get("error"),
            "error": state.get("error"),
            "total_candidates": len(state.get("candidates", [])),
            "scored_count": len(state.get("scored", [])),
        }
        return with_state(state, response_metadata=metadata)


def create_recommendations_graph():
    """Build and compile the recommendations graph."""

    graph_builder = RecommendationsGraph(timeout=config.GRAPH_TIMEOUT)
    return graph_builder.compile()
