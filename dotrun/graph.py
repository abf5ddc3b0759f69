"""Edge model and topology resolution for workflow graphs.

The engine never parses graph text.  It consumes the edge statements an
external DOT parser produces, e.g.::

    {"type": "edge_stmt",
     "edge_list": [{"id": "start"}, {"id": "good"}],
     "attr_list": [{"id": "label", "eq": "foo"}]}

Design notes:
- Statements are validated with Pydantic because they arrive from a foreign
  parser; the normalised ``Edge`` and ``Graph`` are plain dataclasses since
  they are read-only after construction.
- States are implicit: every edge endpoint is a state, in order of first
  appearance.
- Adjacency indices are built once in ``__post_init__`` so lookups during
  traversal do not rescan the edge list.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Literal, Mapping

from pydantic import BaseModel, ConfigDict, Field, field_validator

from dotrun.exceptions import MalformedGraphError

logger = logging.getLogger(__name__)

TopologyPolicy = Literal["error", "first"]

EDGE_STATEMENT = "edge_stmt"


# ---------------------------------------------------------------------------
# Parser-facing statement models
# ---------------------------------------------------------------------------

class Attribute(BaseModel):
    """A single ``key=value`` pair from an edge statement's attribute list."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    name: str = Field(..., alias="id")
    value: str = Field(default="", alias="eq")

    @field_validator("name", "value", mode="before")
    @classmethod
    def _stringify(cls, value: Any) -> Any:
        return str(value) if isinstance(value, (int, float)) else value


class Endpoint(BaseModel):
    """One end of an edge statement.  DOT numeric ids are kept as strings."""

    model_config = ConfigDict(frozen=True)

    id: str

    @field_validator("id", mode="before")
    @classmethod
    def _stringify(cls, value: Any) -> Any:
        return str(value) if isinstance(value, (int, float)) else value


class EdgeStatement(BaseModel):
    """A parsed ``a -> b [label=x]`` statement (possibly chained ``a -> b -> c``)."""

    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="ignore")

    type: str = EDGE_STATEMENT
    endpoints: list[Endpoint] = Field(..., alias="edge_list", min_length=2)
    attributes: list[Attribute] = Field(default_factory=list, alias="attr_list")

    @property
    def label(self) -> str:
        """First ``label`` attribute value, or ``""`` when the edge is unconditional."""
        for attr in self.attributes:
            if attr.name == "label":
                return attr.value
        return ""


# ---------------------------------------------------------------------------
# Edge
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Edge:
    """A directed transition between two states.

    Attributes:
        source: State the transition leaves.
        target: State the transition enters.
        signal: Label the source's action must produce to take this edge.
                Empty string means "unconditional".
    """

    source: str
    target: str
    signal: str = ""

    @property
    def id(self) -> str:
        """Stable identifier used in logs."""
        return f"{self.source}->{self.target}"


def normalize_statements(statements: Iterable[EdgeStatement | Mapping[str, Any]]) -> list[Edge]:
    """Turn parser output into a flat list of edges in declaration order.

    Non-edge statements (node and attribute statements) are skipped.  A
    chained statement yields one edge per consecutive endpoint pair.

    Raises:
        pydantic.ValidationError: If an edge statement is malformed.
    """
    edges: list[Edge] = []
    for raw in statements:
        if isinstance(raw, Mapping) and raw.get("type", EDGE_STATEMENT) != EDGE_STATEMENT:
            continue
        stmt = raw if isinstance(raw, EdgeStatement) else EdgeStatement.model_validate(raw)
        if stmt.type != EDGE_STATEMENT:
            continue
        ids = [endpoint.id for endpoint in stmt.endpoints]
        for source, target in zip(ids, ids[1:]):
            edges.append(Edge(source=source, target=target, signal=stmt.label))
    return edges


# ---------------------------------------------------------------------------
# Graph
# ---------------------------------------------------------------------------

@dataclass
class Graph:
    """Read-only edge relation plus the derived state set.

    Attributes:
        edges:  All edges in declaration order.
        states: Every state referenced by an edge, in first-appearance order.
    """

    edges: tuple[Edge, ...] = ()
    states: tuple[str, ...] = field(default=(), init=False)

    _edges_from: dict[str, list[Edge]] = field(
        default_factory=dict, init=False, repr=False, compare=False
    )
    _edges_to: dict[str, list[Edge]] = field(
        default_factory=dict, init=False, repr=False, compare=False
    )

    def __post_init__(self) -> None:
        self.edges = tuple(self.edges)
        seen: dict[str, None] = {}
        for edge in self.edges:
            seen.setdefault(edge.source)
            seen.setdefault(edge.target)
            self._edges_from.setdefault(edge.source, []).append(edge)
            self._edges_to.setdefault(edge.target, []).append(edge)
        self.states = tuple(seen)

    @classmethod
    def from_statements(cls, statements: Iterable[EdgeStatement | Mapping[str, Any]]) -> Graph:
        """Build a graph from external parser output."""
        return cls(edges=tuple(normalize_statements(statements)))

    def edges_from(self, state: str) -> list[Edge]:
        """Return all outgoing edges from *state* in declaration order."""
        return list(self._edges_from.get(state, []))

    def edges_to(self, state: str) -> list[Edge]:
        """Return all incoming edges to *state* in declaration order."""
        return list(self._edges_to.get(state, []))

    def __len__(self) -> int:
        return len(self.states)

    def __contains__(self, state: object) -> bool:
        return state in self._edges_from or state in self._edges_to


# ---------------------------------------------------------------------------
# Topology
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Topology:
    """The unique entry (in-degree zero) and exit (out-degree zero) states."""

    entry: str
    exit: str


def resolve_topology(graph: Graph, policy: TopologyPolicy = "error") -> Topology:
    """Find the entry and exit states of *graph*.

    Args:
        graph:  Graph to inspect.
        policy: ``"error"`` rejects graphs with several candidates for either
                role; ``"first"`` takes the first candidate in state order.

    Raises:
        MalformedGraphError: If no candidate exists, or several exist and
                             *policy* is ``"error"``.
    """
    entries = [s for s in graph.states if not graph.edges_to(s)]
    exits = [s for s in graph.states if not graph.edges_from(s)]
    return Topology(
        entry=_pick("entry", "no incoming edges", entries, policy),
        exit=_pick("exit", "no outgoing edges", exits, policy),
    )


def _pick(kind: str, rule: str, candidates: list[str], policy: TopologyPolicy) -> str:
    if not candidates:
        raise MalformedGraphError(
            f"Graph has no {kind} state (no state with {rule})", kind=kind
        )
    if len(candidates) > 1:
        listed = ", ".join(f'"{c}"' for c in candidates)
        if policy == "error":
            raise MalformedGraphError(
                f"Graph has {len(candidates)} {kind} states ({rule}): {listed}",
                kind=kind,
                candidates=candidates,
            )
        logger.warning(
            "Graph has %d %s states (%s); using \"%s\"", len(candidates), kind, listed, candidates[0]
        )
    return candidates[0]
