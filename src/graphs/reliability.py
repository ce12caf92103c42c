"""Reliability recompute graph (single user or active-user batch)."""

from __future__ import annotations

from langgraph.graph import StateGraph

from src.config import config
from src.graphs.base_graph import BaseGraph, clamp_int, parse_number, with_state
from src.state import ReliabilityState
from src.tools.reliability_tools import (
    aggregate_metrics_for_user,
    list_active_user_ids,
    recompute_reliability_batch,
)
from src.tools.supabase_tools import get_client
from src.utils.errors import SupabaseQueryError, SupabaseUnavailableError


class ReliabilityGraph(BaseGraph):
    """Recompute reliability metrics and index rows.

    ``user_id`` recomputes one user and fails the run on any query error.
    ``user_ids`` or paging parameters run a batch where each user's failure is
    reported in its own result entry.
    """

    def build_graph(self) -> StateGraph:
        graph = StateGraph(ReliabilityState)
        graph.add_node("resolve_users", self.node_resolve_users)
        graph.add_node("recompute_users", self.node_recompute_users)
        graph.add_node("finalize_response", self.node_finalize_response)

        graph.set_entry_point("resolve_users")
        graph.add_edge("resolve_users", "recompute_users")
        graph.add_edge("recompute_users", "finalize_response")
        graph.set_finish_point("finalize_response")
        return graph

    def node_resolve_users(self, state: ReliabilityState) -> ReliabilityState:
        """Pick explicit ids, or page through recently active users."""

        self._log_node_execution("resolve_users", state)
        if state.get("user_id"):
            return with_state(state, resolved_user_ids=[state["user_id"]])

        user_ids = state.get("user_ids")
        if isinstance(user_ids, list):
            return with_state(
                state,
                resolved_user_ids=[uid for uid in user_ids if isinstance(uid, str) and uid],
            )

        limit = clamp_int(
            state.get("limit"),
            config.RELIABILITY_BATCH_LIMIT,
            1,
            config.RELIABILITY_BATCH_MAX_LIMIT,
        )
        days = clamp_int(
            state.get("days"),
            config.RELIABILITY_ACTIVE_DAYS,
            1,
            config.RELIABILITY_MAX_ACTIVE_DAYS,
        )
        offset = max(0, int(parse_number(state.get("offset")) or 0))

        try:
            active = list_active_user_ids(get_client(), days=days, limit=limit, offset=offset)
            return with_state(state, resolved_user_ids=active)
        except (SupabaseQueryError, SupabaseUnavailableError) as exc:
            self._log_node_error("resolve_users", exc)
            return with_state(state, error=str(exc), resolved_user_ids=[])

    def node_recompute_users(self, state: ReliabilityState) -> ReliabilityState:
        if state.get("error"):
            return with_state(state, results=[])

        self._log_node_execution("recompute_users", state)
        try:
            client = get_client()
            if state.get("user_id"):
                result = aggregate_metrics_for_user(client, state["user_id"])
                return with_state(
                    state, results=[{"user_id": state["user_id"], **result}]
                )

            batch = recompute_reliability_batch(
                client, state.get("resolved_user_ids", [])
            )
            return with_state(state, results=batch["results"])
        except (SupabaseQueryError, SupabaseUnavailableError) as exc:
            self._log_node_error("recompute_users", exc)
            return with_state(state, error=str(exc), results=[])

    def node_finalize_response(self, state: ReliabilityState) -> ReliabilityState:
        self._log_node_execution("finalize_response", state)
        return with_state(state, count=len(state.get("results", [])))


def create_reliability_graph():
    """Build and compile the reliability recompute graph."""

    graph_builder = ReliabilityGraph(timeout=config.GRAPH_TIMEOUT)
    return graph_builder.compile()
