"""Base class for LangGraph graphs to share common behavior."""

from __future__ import annotations

from abc import ABC, abstractmethod
from math import isfinite

from langgraph.graph import StateGraph

from src.utils.logging_config import logger


def with_state(state: dict, **updates) -> dict:
    """Return a new state dict with updates applied."""

    return {**state, **updates}


def parse_number(value: object) -> float | None:
    """Numeric request parameter, or None when absent or not a finite number."""

    if value is None or isinstance(value, bool) or value == "":
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if isfinite(number) else None


def clamp_int(value: object, fallback: int, low: int, high: int) -> int:
    """Round a numeric parameter into [low, high]; fallback when missing or zero."""

    number = parse_number(value)
    if not number:
        return fallback
    return max(low, min(high, round(number)))


class BaseGraph(ABC):
    """Abstract base class for all LangGraph implementations.

    Centralizes logging and provides a consistent compile pattern so graph
    subclasses focus on node logic rather than boilerplate.
    """

    def __init__(self, timeout: int = 30):
        self.timeout = timeout
        self.logger = logger

    @abstractmethod
    def build_graph(self) -> StateGraph:
        """Build and return the StateGraph instance."""

    def _log_node_execution(self, node_name: str, state: dict) -> None:
        """Log node execution start with the state keys present so far."""

        self.logger.debug("Executing node: %s keys=%s", node_name, sorted(state.keys()))

    def _log_node_error(self, node_name: str, error: Exception) -> None:
        """Log node execution error without leaking user data."""

        self.logger.error("Node %s failed: %s", node_name, str(error))

    def compile(self):
        """Build and compile the graph for execution."""

        graph = self.build_graph()
        return graph.compile()
