"""Run lifecycle event definitions and factory class.

This module is the canonical source for ``RunEvent`` types.  It has no
runtime dependencies beyond the standard library; everything else in the
event package imports from here.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Literal

# ---------------------------------------------------------------------------
# Event type alias — exactly 6 string literals
# ---------------------------------------------------------------------------

EventType = Literal[
    "started",
    "performing",
    "performed",
    "warning",
    "error",
    "finished",
]

ALL_EVENT_TYPES: frozenset[str] = frozenset([
    "started",
    "performing",
    "performed",
    "warning",
    "error",
    "finished",
])


# ---------------------------------------------------------------------------
# RunEvent — immutable, slotted for minimal overhead
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class RunEvent:
    """An immutable record of a single lifecycle event in a run.

    ``payload`` is exactly what in-process listeners receive: ``None`` for
    ``started``, the state name for ``performing``/``performed``, the message
    for ``warning``, the structured dict or the action's exception for
    ``error`` and ``{}`` for ``finished``.  ``sequence`` is a process-global
    monotonic counter assigned by ``EventBuilder._build()``.
    """

    type: EventType
    timestamp: datetime        # Always timezone-aware UTC
    run_id: str
    state: str | None          # None for run-level events
    payload: Any = None
    sequence: int = 0

    def to_record(self) -> dict[str, Any]:
        """JSON-friendly representation; exceptions become type + message."""
        payload = self.payload
        if isinstance(payload, BaseException):
            payload = {"error_type": type(payload).__name__, "message": str(payload)}
        return {
            "type": self.type,
            "timestamp": self.timestamp.isoformat(),
            "run_id": self.run_id,
            "state": self.state,
            "payload": payload,
            "sequence": self.sequence,
        }


# ---------------------------------------------------------------------------
# EventBuilder — centralised factory for all 6 event types
# ---------------------------------------------------------------------------

class EventBuilder:
    """Factory methods that produce valid RunEvent instances.

    ``_counter`` is a class-level monotonic integer; it increments on every
    call to ``_build()`` and is never reset within a process lifetime.
    """

    _counter: int = 0

    @classmethod
    def _build(
        cls,
        event_type: EventType,
        run_id: str,
        state: str | None,
        payload: Any = None,
    ) -> RunEvent:
        cls._counter += 1
        return RunEvent(
            type=event_type,
            timestamp=datetime.now(timezone.utc),
            run_id=run_id,
            state=state,
            payload=payload,
            sequence=cls._counter,
        )

    @classmethod
    def started(cls, run_id: str) -> RunEvent:
        return cls._build("started", run_id, None)

    @classmethod
    def performing(cls, run_id: str, state: str) -> RunEvent:
        return cls._build("performing", run_id, state, state)

    @classmethod
    def performed(cls, run_id: str, state: str) -> RunEvent:
        return cls._build("performed", run_id, state, state)

    @classmethod
    def warning(cls, run_id: str, message: str, state: str | None = None) -> RunEvent:
        return cls._build("warning", run_id, state, message)

    @classmethod
    def error(cls, run_id: str, payload: Any, state: str | None = None) -> RunEvent:
        """Build an ``error`` event.

        *payload* is either ``{"state", "signal", "message"}`` for graph
        errors or the exception raised by a failing action.
        """
        return cls._build("error", run_id, state, payload)

    @classmethod
    def finished(cls, run_id: str) -> RunEvent:
        return cls._build("finished", run_id, None, {})
