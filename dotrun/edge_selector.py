"""TransitionSelector — picks the next state from (current state, signal).

Only edges leaving the current state whose label equals the signal exactly
(case-sensitive) are candidates.  An empty signal selects unlabeled edges.

    zero candidates      -> UnresolvedTransitionError
    one candidate        -> that edge
    several candidates   -> policy "first": first declared edge
                            policy "error": AmbiguousTransitionError
"""
from __future__ import annotations

import logging
from typing import Literal

from dotrun.exceptions import AmbiguousTransitionError, UnresolvedTransitionError
from dotrun.graph import Edge, Graph

logger = logging.getLogger(__name__)

TransitionPolicy = Literal["first", "error"]


class TransitionSelector:
    """Resolves the outgoing edge for a completed step.

    Args:
        policy: What to do when several edges match; see module docstring.
    """

    def __init__(self, policy: TransitionPolicy = "first") -> None:
        if policy not in ("first", "error"):
            raise ValueError(f"Unknown ambiguous transition policy: {policy!r}")
        self.policy = policy

    def candidates(self, graph: Graph, state: str, signal: str) -> list[Edge]:
        """All edges leaving *state* labeled exactly *signal*, in declaration order."""
        return [e for e in graph.edges_from(state) if e.signal == signal]

    def select(self, graph: Graph, state: str, signal: str = "") -> Edge:
        """Return the edge to follow after *state* produced *signal*.

        Raises:
            UnresolvedTransitionError: No edge matches.
            AmbiguousTransitionError:  Several edges match under policy ``"error"``.
        """
        matching = self.candidates(graph, state, signal)
        if not matching:
            raise UnresolvedTransitionError(state, signal)
        if len(matching) > 1:
            if self.policy == "error":
                raise AmbiguousTransitionError(state, signal, [e.target for e in matching])
            logger.debug(
                "%d edges match from '%s' for '%s'; taking first (%s)",
                len(matching), state, signal, matching[0].id,
            )
        return matching[0]
