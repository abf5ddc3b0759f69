"""Tests for LogfireEmitter — span management with a mocked logfire module."""
from __future__ import annotations

import asyncio
from unittest.mock import MagicMock, patch

import pytest

from dotrun.events.logfire_backend import LogfireEmitter, SpanConfig
from dotrun.events.types import EventBuilder


def _run(coro):
    return asyncio.run(coro)


@pytest.fixture
def mock_logfire():
    """Replace logfire with a mock whose span() returns one context per name."""
    spans: dict[str, MagicMock] = {}

    def span(name, **kwargs):
        return spans.setdefault(name, MagicMock(name=name))

    with patch("dotrun.events.logfire_backend.logfire") as fake:
        fake.span.side_effect = span
        fake.spans = spans
        yield fake


class TestRunSpan:

    def test_started_opens_run_span(self, mock_logfire) -> None:
        emitter = LogfireEmitter("r1")
        _run(emitter.emit(EventBuilder.started("r1")))
        ctx = mock_logfire.spans["run.r1"]
        ctx.__enter__.assert_called_once()
        ctx.__exit__.assert_not_called()

    def test_finished_closes_run_span(self, mock_logfire) -> None:
        emitter = LogfireEmitter("r1")
        _run(emitter.emit(EventBuilder.started("r1")))
        _run(emitter.emit(EventBuilder.finished("r1")))
        mock_logfire.spans["run.r1"].__exit__.assert_called_once_with(None, None, None)

    def test_custom_span_names(self, mock_logfire) -> None:
        emitter = LogfireEmitter("r1", SpanConfig(run_span_name="wf-{run_id}", state_span_name="st-{state}"))
        _run(emitter.emit(EventBuilder.started("r1")))
        _run(emitter.emit(EventBuilder.performing("r1", "a")))
        assert set(mock_logfire.spans) == {"wf-r1", "st-a"}


class TestStateSpan:

    def test_performing_and_performed_bracket_state_span(self, mock_logfire) -> None:
        emitter = LogfireEmitter("r1")
        _run(emitter.emit(EventBuilder.started("r1")))
        _run(emitter.emit(EventBuilder.performing("r1", "Say Hello")))
        ctx = mock_logfire.spans["state.Say Hello"]
        ctx.__enter__.assert_called_once()
        _run(emitter.emit(EventBuilder.performed("r1", "Say Hello")))
        ctx.__exit__.assert_called_once_with(None, None, None)


class TestWarningsAndErrors:

    def test_warning_logged(self, mock_logfire) -> None:
        emitter = LogfireEmitter("r1")
        _run(emitter.emit(EventBuilder.warning("r1", "unrecognized action: x")))
        mock_logfire.warn.assert_called_once_with(
            "{message}", message="unrecognized action: x", run_id="r1",
        )

    def test_action_error_closes_both_spans_with_exception(self, mock_logfire) -> None:
        emitter = LogfireEmitter("r1")
        boom = RuntimeError("boom")
        _run(emitter.emit(EventBuilder.started("r1")))
        _run(emitter.emit(EventBuilder.performing("r1", "a")))
        _run(emitter.emit(EventBuilder.error("r1", boom, state="a")))
        state_exit = mock_logfire.spans["state.a"].__exit__
        run_exit = mock_logfire.spans["run.r1"].__exit__
        state_exit.assert_called_once()
        run_exit.assert_called_once()
        assert state_exit.call_args.args[1] is boom
        assert run_exit.call_args.args[1] is boom

    def test_transition_error_payload_becomes_exception(self, mock_logfire) -> None:
        emitter = LogfireEmitter("r1")
        _run(emitter.emit(EventBuilder.started("r1")))
        payload = {"state": "s", "signal": "huh", "message": 'No next states possible from "s" for "huh"'}
        _run(emitter.emit(EventBuilder.error("r1", payload, state="s")))
        args = mock_logfire.spans["run.r1"].__exit__.call_args.args
        assert str(args[1]) == payload["message"]

    def test_failure_disables_emitter(self, mock_logfire) -> None:
        mock_logfire.span.side_effect = RuntimeError("no exporter")
        emitter = LogfireEmitter("r1")
        _run(emitter.emit(EventBuilder.started("r1")))
        _run(emitter.emit(EventBuilder.warning("r1", "x")))
        mock_logfire.warn.assert_not_called()


class TestAclose:

    def test_aclose_closes_open_spans(self, mock_logfire) -> None:
        emitter = LogfireEmitter("r1")
        _run(emitter.emit(EventBuilder.started("r1")))
        _run(emitter.emit(EventBuilder.performing("r1", "a")))
        _run(emitter.aclose())
        mock_logfire.spans["state.a"].__exit__.assert_called_once_with(None, None, None)
        mock_logfire.spans["run.r1"].__exit__.assert_called_once_with(None, None, None)

    def test_aclose_idempotent(self, mock_logfire) -> None:
        emitter = LogfireEmitter("r1")
        _run(emitter.emit(EventBuilder.started("r1")))
        _run(emitter.aclose())
        _run(emitter.aclose())
        mock_logfire.spans["run.r1"].__exit__.assert_called_once()
