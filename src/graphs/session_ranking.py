"""Ranking graph for sessions the caller has already loaded."""

from __future__ import annotations

from langgraph.graph import StateGraph

from src.config import config
from src.graphs.base_graph import BaseGraph, parse_number, with_state
from src.state import SessionRankingState
from src.tools.ranking_tools import normalize_ranking_score, rank_sessions_for_user


class SessionRankingGraph(BaseGraph):
    """Score sessions by distance, skill and urgency for one profile."""

    def build_graph(self) -> StateGraph:
        graph = StateGraph(SessionRankingState)
        graph.add_node("validate_input", self.node_validate_input)
        graph.add_node("rank_sessions", self.node_rank_sessions)
        graph.add_node("finalize_response", self.node_finalize_response)

        graph.set_entry_point("validate_input")
        graph.add_edge("validate_input", "rank_sessions")
        graph.add_edge("rank_sessions", "finalize_response")
        graph.set_finish_point("finalize_response")
        return graph

    def node_validate_input(self, state: SessionRankingState) -> SessionRankingState:
        self._log_node_execution("validate_input", state)
        if not isinstance(state.get("profile"), dict):
            return with_state(state, error="profile must be an object")
        sessions = state.get("sessions", [])
        if not isinstance(sessions, list):
            return with_state(state, error="sessions must be a list")
        return with_state(
            state, sessions=[s for s in sessions if isinstance(s, dict)]
        )

    def node_rank_sessions(self, state: SessionRankingState) -> SessionRankingState:
        if state.get("error"):
            return with_state(state, ranked_sessions=[])

        self._log_node_execution("rank_sessions", state)
        ranked = rank_sessions_for_user(state["profile"], state.get("sessions", []))
        return with_state(state, ranked_sessions=ranked)

    def node_finalize_response(self, state: SessionRankingState) -> SessionRankingState:
        """Attach a display percentage and apply the optional limit."""

        self._log_node_execution("finalize_response", state)
        ranked = [
            {**item, "percent": normalize_ranking_score(item["score"])}
            for item in state.get("ranked_sessions", [])
        ]
        limit = parse_number(state.get("limit"))
        if limit is not None and limit >= 0:
            ranked = ranked[: int(limit)]
        return with_state(state, ranked_sessions=ranked)


def create_session_ranking_graph():
    """Build and compile the session ranking graph."""

    graph_builder = SessionRankingGraph(timeout=config.GRAPH_TIMEOUT)
    return graph_builder.compile()
