"""DotRunner — the step loop that walks a workflow graph.

The runner is the central coordinator.  At construction it:
1. Normalises parser output into a ``Graph``.
2. Resolves the unique entry and exit states (``Topology``).
3. Compiles the action patterns (``ActionMatcher``).

Each ``run()`` then:
1. Creates a fresh context dict and cursor ``(None, "")``.
2. Emits ``started``.
3. Repeats: pick the next state (entry first, then via ``TransitionSelector``),
   emit ``performing``, invoke the bound action, emit ``performed``,
   advance the cursor, until the exit state has been performed.
4. Emits ``finished`` and returns the context.

**Failure contract**:
- Every run-time failure is announced with exactly one ``error`` event
  before ``run()`` raises.
- A failing action's exception is re-raised as the same object (a note
  naming the state is attached); transition failures raise
  ``TransitionError`` subclasses whose ``payload()`` is the event payload.
- A state without a bound action is not a failure: ``warning`` is emitted
  and the step produces the empty signal.

**Concurrency**: at most one action is in flight per run and the loop does
not advance until it settles.  Graph, topology and matchers are read-only,
so concurrent ``run()`` calls on one runner are independent; ``status``
reflects the most recently started run.
"""
from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Iterable, Mapping
from uuid import uuid4

from dotrun.config import RunnerConfig
from dotrun.edge_selector import TransitionSelector
from dotrun.events import (
    EventBuilder,
    EventBus,
    EventBusConfig,
    EventEmitter,
    RunEvent,
    build_emitter,
)
from dotrun.exceptions import (
    LoopDetectedError,
    RerunNotAllowedError,
    TransitionError,
)
from dotrun.graph import EdgeStatement, Graph, Topology, resolve_topology
from dotrun.matcher import Action, ActionMatcher

logger = logging.getLogger(__name__)


class RunStatus(str, Enum):
    """Lifecycle of a run: ``not_started -> running -> finished | failed``."""

    NOT_STARTED = "not_started"
    RUNNING = "running"
    FINISHED = "finished"
    FAILED = "failed"


@dataclass
class Cursor:
    """Last completed transition: the state just performed and the signal it produced."""

    state: str | None = None
    signal: str = ""


class DotRunner:
    """Executes a workflow graph from its entry state to its exit state.

    Args:
        statements: Edge statements from an external DOT parser, either
                    ``EdgeStatement`` instances or mappings in parser shape.
        actions:    Mapping of state-name pattern → callable, in priority
                    order.  See ``dotrun.matcher`` for the calling convention.
        config:     Behavioural switches; defaults to ``RunnerConfig()``.
        emitter:    Event backend shared by every run.  When omitted, a
                    backend is built per run from *config* and closed when the
                    run ends.

    Raises:
        MalformedGraphError: No unique entry or exit state.
        ActionPatternError:  An action pattern cannot be compiled.
        pydantic.ValidationError: A statement is not a valid edge statement.

    Example::

        runner = DotRunner(statements, {"Say {message}": say})
        runner.on("performed", print)
        context = await runner.run()
    """

    def __init__(
        self,
        statements: Iterable[EdgeStatement | Mapping[str, Any]],
        actions: Mapping[str, Action] | None = None,
        *,
        config: RunnerConfig | None = None,
        emitter: EventEmitter | None = None,
    ) -> None:
        self.config = config or RunnerConfig()
        self._graph = Graph.from_statements(statements)
        self._topology = resolve_topology(self._graph, self.config.ambiguous_topology)
        self._matcher = ActionMatcher(actions)
        self._selector = TransitionSelector(self.config.ambiguous_transition)
        self._bus = EventBus()
        self._emitter = emitter
        self._status = RunStatus.NOT_STARTED
        self._has_finished = False
        logger.debug(
            "Runner ready: %d states, %d edges, entry=%s exit=%s, %d actions",
            len(self._graph),
            len(self._graph.edges),
            self._topology.entry,
            self._topology.exit,
            len(self._matcher),
        )

    # ── Read-only structure ──────────────────────────────────────────────────

    @property
    def graph(self) -> Graph:
        return self._graph

    @property
    def topology(self) -> Topology:
        return self._topology

    @property
    def entry_state(self) -> str:
        return self._topology.entry

    @property
    def exit_state(self) -> str:
        return self._topology.exit

    @property
    def states(self) -> tuple[str, ...]:
        return self._graph.states

    @property
    def matcher(self) -> ActionMatcher:
        return self._matcher

    @property
    def status(self) -> RunStatus:
        return self._status

    # ── Observer surface ─────────────────────────────────────────────────────

    def on(self, event: str, listener: Callable[..., Any]) -> Callable[..., Any]:
        """Subscribe *listener* to *event*.  See ``EventBus.on``."""
        return self._bus.on(event, listener)

    def once(self, event: str, listener: Callable[..., Any]) -> Callable[..., Any]:
        """Subscribe *listener* to the next *event* only."""
        return self._bus.once(event, listener)

    def off(self, event: str, listener: Callable[..., Any]) -> None:
        """Unsubscribe *listener* from *event*."""
        self._bus.off(event, listener)

    # ── Public API ───────────────────────────────────────────────────────────

    async def run(self) -> dict[str, Any]:
        """Traverse the graph once and return the run's shared context.

        Returns:
            The context dict every action received, as left by the last one.

        Raises:
            RerunNotAllowedError:      A previous run finished and re-runs are disabled.
            UnresolvedTransitionError: No edge matches the last signal.
            AmbiguousTransitionError:  Several edges match under policy ``"error"``.
            LoopDetectedError:         ``max_steps`` exceeded.
            Exception:                 Whatever a failing action raised.
        """
        if self._has_finished and not self.config.allow_rerun:
            raise RerunNotAllowedError()

        run_id = uuid4().hex[:12]
        context: dict[str, Any] = {}
        cursor = Cursor()
        backend = self._emitter or build_emitter(
            run_id,
            EventBusConfig(
                jsonl_path=str(self.config.events_jsonl_path) if self.config.events_jsonl_path else None,
                logfire_enabled=self.config.logfire_enabled,
            ),
        )

        self._status = RunStatus.RUNNING
        logger.info("Run %s started at '%s'", run_id, self._topology.entry)
        try:
            await self._emit(backend, EventBuilder.started(run_id))
            await self._run_loop(run_id, context, cursor, backend)
            await self._emit(backend, EventBuilder.finished(run_id))
        except BaseException:
            self._status = RunStatus.FAILED
            raise
        finally:
            if self._emitter is None:
                try:
                    await backend.aclose()
                except Exception as close_exc:
                    logger.warning("Emitter aclose() raised: %s", close_exc)

        self._status = RunStatus.FINISHED
        self._has_finished = True
        logger.info("Run %s finished at '%s'", run_id, self._topology.exit)
        return context

    # ── Step loop ────────────────────────────────────────────────────────────

    async def _run_loop(
        self,
        run_id: str,
        context: dict[str, Any],
        cursor: Cursor,
        backend: EventEmitter,
    ) -> None:
        steps = 0
        while True:
            # --- Resolve next state ------------------------------------
            try:
                state = self._next_state(cursor)
            except TransitionError as exc:
                logger.error("Run %s: %s", run_id, exc.message)
                await self._emit(backend, EventBuilder.error(run_id, exc.payload(), state=exc.state))
                raise

            # --- Loop guard --------------------------------------------
            max_steps = self.config.max_steps
            if max_steps is not None and steps >= max_steps:
                loop_exc = LoopDetectedError(state, max_steps)
                logger.error("Run %s: %s", run_id, loop_exc)
                await self._emit(backend, EventBuilder.error(run_id, loop_exc.payload(), state=state))
                raise loop_exc
            steps += 1

            # --- Perform ------------------------------------------------
            await self._emit(backend, EventBuilder.performing(run_id, state))
            signal = await self._perform(run_id, state, context, backend)
            await self._emit(backend, EventBuilder.performed(run_id, state))

            # --- Advance cursor -----------------------------------------
            cursor.state = state
            cursor.signal = signal
            logger.debug("Run %s: performed '%s' signal=%r", run_id, state, signal)

            if state == self._topology.exit:
                return

    def _next_state(self, cursor: Cursor) -> str:
        if cursor.state is None:
            return self._topology.entry
        return self._selector.select(self._graph, cursor.state, cursor.signal).target

    async def _perform(
        self,
        run_id: str,
        state: str,
        context: dict[str, Any],
        backend: EventEmitter,
    ) -> str:
        """Invoke the action bound to *state* and return its signal (``""`` for none)."""
        found = self._matcher.find_action(state)
        if found is None:
            message = f"unrecognized action: {state}"
            logger.warning("Run %s: %s", run_id, message)
            await self._emit(backend, EventBuilder.warning(run_id, message, state=state))
            return ""

        try:
            result = found.binding.invoke(found.params, context)
            if inspect.isawaitable(result):
                result = await result
        except Exception as exc:
            exc.add_note(f'while performing "{state}"')
            logger.error("Run %s: action for '%s' failed: %s", run_id, state, exc)
            await self._emit(backend, EventBuilder.error(run_id, exc, state=state))
            raise

        return result if isinstance(result, str) else ""

    async def _emit(self, backend: EventEmitter, event: RunEvent) -> None:
        await self._bus.emit(event)
        try:
            await backend.emit(event)
        except Exception as emit_exc:
            logger.warning("Failed to emit %s event: %s", event.type, emit_exc)

    def __repr__(self) -> str:
        return (
            f"DotRunner(entry={self._topology.entry!r}, exit={self._topology.exit!r}, "
            f"states={len(self._graph)}, status={self._status.value})"
        )
