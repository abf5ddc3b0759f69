"""Engine-specific exception hierarchy.

All exceptions raised by the engine itself are subclasses of ``EngineError``
so callers can catch any engine error with a single except clause while
still discriminating between specific error types.

Construction-time (the runner is never returned):
    MalformedGraphError     no unique entry state or no unique exit state
    ActionPatternError      an action pattern cannot be compiled

Run-time (announced through the ``error`` event before ``run()`` raises):
    UnresolvedTransitionError   no outgoing edge matches (state, signal)
    AmbiguousTransitionError    several edges match and the policy is "error"
    LoopDetectedError           the run exceeded ``max_steps``
    RerunNotAllowedError        ``run()`` called again after a finished run

A failing action is not wrapped: its own exception is re-raised unchanged.
"""
from __future__ import annotations

from typing import Any


class EngineError(Exception):
    """Base class for all engine exceptions."""


# ---------------------------------------------------------------------------
# Construction-time errors
# ---------------------------------------------------------------------------

class MalformedGraphError(EngineError):
    """The edge relation has no unique entry state or no unique exit state.

    Attributes:
        kind:       ``"entry"`` or ``"exit"``.
        candidates: The structurally eligible states that were found.
    """

    def __init__(self, message: str, kind: str = "", candidates: list[str] | None = None) -> None:
        self.kind = kind
        self.candidates = list(candidates or [])
        super().__init__(message)


class ActionPatternError(EngineError):
    """An action pattern could not be compiled into a matcher.

    Attributes:
        pattern: The offending pattern string.
    """

    def __init__(self, pattern: str, reason: str) -> None:
        self.pattern = pattern
        super().__init__(f"Invalid action pattern {pattern!r}: {reason}")


# ---------------------------------------------------------------------------
# Run-time errors
# ---------------------------------------------------------------------------

class TransitionError(EngineError):
    """No single next state could be chosen from ``state`` for ``signal``.

    Attributes:
        state:   State the run was leaving.
        signal:  Signal produced by that state's action (``""`` for none).
        message: The human-readable message, also used as ``str(exc)``.
    """

    def __init__(self, message: str, state: str, signal: str = "") -> None:
        self.state = state
        self.signal = signal
        self.message = message
        super().__init__(message)

    def payload(self) -> dict[str, Any]:
        """Structured payload delivered to ``error`` listeners."""
        return {"state": self.state, "signal": self.signal, "message": self.message}


class UnresolvedTransitionError(TransitionError):
    """Zero outgoing edges match the current ``(state, signal)`` pair."""

    def __init__(self, state: str, signal: str = "") -> None:
        suffix = f' for "{signal}"' if signal else ""
        super().__init__(f'No next states possible from "{state}"{suffix}', state, signal)


class AmbiguousTransitionError(TransitionError):
    """More than one outgoing edge matches and the policy forbids guessing.

    Attributes:
        targets: Target states of every matching edge, in declaration order.
    """

    def __init__(self, state: str, signal: str, targets: list[str]) -> None:
        self.targets = list(targets)
        suffix = f' for "{signal}"' if signal else ""
        listed = "[" + ", ".join(f'"{t}"' for t in self.targets) + "]"
        super().__init__(
            f'Multiple next states possible from "{state}"{suffix} {listed}',
            state,
            signal,
        )


class LoopDetectedError(EngineError):
    """A run performed more steps than the configured ``max_steps``.

    Attributes:
        state:     State that would have been performed next.
        max_steps: Configured limit.
    """

    def __init__(self, state: str, max_steps: int) -> None:
        self.state = state
        self.max_steps = max_steps
        super().__init__(
            f'Loop detected: step limit of {max_steps} reached before performing "{state}". '
            f"Check for cycles in the graph or raise max_steps."
        )

    def payload(self) -> dict[str, Any]:
        """Structured payload delivered to ``error`` listeners."""
        return {"state": self.state, "signal": "", "message": str(self)}


class RerunNotAllowedError(EngineError):
    """``run()`` was called after a run reached the exit state and re-runs are disabled."""

    def __init__(self) -> None:
        super().__init__(
            "Runner has already finished and allow_rerun is disabled; "
            "create a new runner to traverse the graph again."
        )
