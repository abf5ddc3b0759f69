"""Logfire backend — mirrors a run as Logfire spans.

Maintains a two-level span hierarchy:

    logfire.span("run.{run_id}")       opened on ``started``, closed on
                                       ``finished`` or ``error``
        logfire.span("state.{state}")  opened on ``performing``, closed on
                                       ``performed`` or ``error``

``warning`` events are recorded as ``logfire.warn`` logs.  All logfire calls
are guarded: after the first failure the emitter turns into a no-op for the
rest of the run.
"""
from __future__ import annotations

import logging
from contextlib import suppress
from dataclasses import dataclass
from typing import Any

import logfire

from dotrun.events.types import RunEvent

logger = logging.getLogger(__name__)


@dataclass
class SpanConfig:
    """Span naming templates."""

    run_span_name: str = "run.{run_id}"
    state_span_name: str = "state.{state}"


class LogfireEmitter:
    """Logfire event backend.

    State:
        ``_run_ctx``:    Context manager of the open run span, or ``None``.
        ``_state_ctx``:  Context manager of the open state span, or ``None``.
                         Runs are sequential so at most one is open.
        ``_failed``:     Set after the first logfire failure.
    """

    def __init__(self, run_id: str, span_config: SpanConfig | None = None) -> None:
        self._run_id = run_id
        self._span_config = span_config or SpanConfig()
        self._run_ctx: Any = None
        self._run_span: Any = None
        self._state_ctx: Any = None
        self._state_span: Any = None
        self._failed = False

    async def emit(self, event: RunEvent) -> None:
        """Dispatch *event* to the matching span operation."""
        if self._failed:
            return
        try:
            if event.type == "started":
                self._open_run()
            elif event.type == "performing":
                self._open_state(event.state or "")
            elif event.type == "performed":
                self._close_state(exc=None)
            elif event.type == "warning":
                logfire.warn("{message}", message=str(event.payload), run_id=self._run_id)
            elif event.type == "error":
                self._record_error(event)
            elif event.type == "finished":
                self._close_run(exc=None)
        except Exception as exc:  # noqa: BLE001
            logger.warning(
                "LogfireEmitter: logfire operation failed for event %s: %s",
                event.type,
                exc,
            )
            self._failed = True

    def _open_run(self) -> None:
        name = self._span_config.run_span_name.format(run_id=self._run_id)
        self._run_ctx = logfire.span(name)
        self._run_span = self._run_ctx.__enter__()
        with suppress(Exception):
            self._run_span.set_attribute("run_id", self._run_id)

    def _open_state(self, state: str) -> None:
        name = self._span_config.state_span_name.format(state=state)
        self._state_ctx = logfire.span(name)
        self._state_span = self._state_ctx.__enter__()
        with suppress(Exception):
            self._state_span.set_attribute("state", state)

    def _record_error(self, event: RunEvent) -> None:
        payload = event.payload
        if isinstance(payload, BaseException):
            exc: BaseException = payload
        else:
            message = payload.get("message", "run failed") if isinstance(payload, dict) else str(payload)
            exc = RuntimeError(message)
        for span in (self._state_span, self._run_span):
            if span is not None:
                with suppress(Exception):
                    span.set_attribute("error_type", type(exc).__name__)
                with suppress(Exception):
                    span.set_attribute("error_message", str(exc))
        self._close_state(exc=exc)
        self._close_run(exc=exc)

    def _close_state(self, exc: BaseException | None) -> None:
        ctx, self._state_ctx, self._state_span = self._state_ctx, None, None
        _exit_span(ctx, exc, "state")

    def _close_run(self, exc: BaseException | None) -> None:
        ctx, self._run_ctx, self._run_span = self._run_ctx, None, None
        _exit_span(ctx, exc, "run")

    async def aclose(self) -> None:
        """Close any still-open spans.  Idempotent."""
        with suppress(Exception):
            self._close_state(exc=None)
        with suppress(Exception):
            self._close_run(exc=None)


def _exit_span(ctx: Any, exc: BaseException | None, kind: str) -> None:
    if ctx is None:
        return
    try:
        if exc is not None:
            ctx.__exit__(type(exc), exc, exc.__traceback__)
        else:
            ctx.__exit__(None, None, None)
    except Exception as close_exc:  # noqa: BLE001
        logger.warning("LogfireEmitter: error closing %s span: %s", kind, close_exc)
