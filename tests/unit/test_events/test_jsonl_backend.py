"""Tests for JSONLEmitter — JSONL file backend."""
from __future__ import annotations

import asyncio
import json
import os

import pytest

from dotrun.events.jsonl_backend import JSONLEmitter
from dotrun.events.types import EventBuilder, RunEvent


def _run(coro):
    return asyncio.run(coro)


def _make_event(run_id: str = "test-run") -> RunEvent:
    return EventBuilder.started(run_id)


def _read_lines(path: str) -> list[str]:
    with open(path, encoding="utf-8") as fh:
        return [line for line in fh.readlines() if line.strip()]


# ---------------------------------------------------------------------------
# Construction and file creation
# ---------------------------------------------------------------------------

class TestJSONLEmitterConstruction:

    def test_creates_file_on_construction(self, tmp_path) -> None:
        path = str(tmp_path / "events.jsonl")
        emitter = JSONLEmitter(path)
        assert os.path.exists(path)
        _run(emitter.aclose())

    def test_creates_parent_directories(self, tmp_path) -> None:
        path = str(tmp_path / "deep" / "nested" / "events.jsonl")
        emitter = JSONLEmitter(path)
        assert os.path.exists(path)
        _run(emitter.aclose())

    def test_path_property(self, tmp_path) -> None:
        path = str(tmp_path / "events.jsonl")
        emitter = JSONLEmitter(path)
        assert emitter.path == path
        _run(emitter.aclose())


# ---------------------------------------------------------------------------
# Writing
# ---------------------------------------------------------------------------

class TestJSONLEmitterWrites:

    def test_one_line_per_event(self, tmp_path) -> None:
        path = str(tmp_path / "events.jsonl")
        emitter = JSONLEmitter(path)
        for i in range(5):
            _run(emitter.emit(EventBuilder.performing(f"r{i}", f"s{i}")))
        _run(emitter.aclose())
        assert len(_read_lines(path)) == 5

    def test_line_content(self, tmp_path) -> None:
        path = str(tmp_path / "events.jsonl")
        emitter = JSONLEmitter(path)
        _run(emitter.emit(EventBuilder.warning("r1", "unrecognized action: Ünïcode", state="Ünïcode")))
        _run(emitter.aclose())
        record = json.loads(_read_lines(path)[0])
        assert record["type"] == "warning"
        assert record["run_id"] == "r1"
        assert record["payload"] == "unrecognized action: Ünïcode"

    def test_exception_payload_serialised(self, tmp_path) -> None:
        path = str(tmp_path / "events.jsonl")
        emitter = JSONLEmitter(path)
        _run(emitter.emit(EventBuilder.error("r1", KeyError("k"), state="a")))
        _run(emitter.aclose())
        record = json.loads(_read_lines(path)[0])
        assert record["payload"]["error_type"] == "KeyError"

    def test_append_mode_preserves_existing_events(self, tmp_path) -> None:
        path = str(tmp_path / "events.jsonl")
        for _ in range(2):
            emitter = JSONLEmitter(path)
            _run(emitter.emit(_make_event()))
            _run(emitter.emit(EventBuilder.finished("test-run")))
            _run(emitter.aclose())
        assert len(_read_lines(path)) == 4


# ---------------------------------------------------------------------------
# Close semantics
# ---------------------------------------------------------------------------

class TestJSONLEmitterClose:

    def test_emit_after_close_raises(self, tmp_path) -> None:
        emitter = JSONLEmitter(str(tmp_path / "events.jsonl"))
        _run(emitter.aclose())
        with pytest.raises(ValueError, match="closed"):
            _run(emitter.emit(_make_event()))

    def test_aclose_is_idempotent(self, tmp_path) -> None:
        emitter = JSONLEmitter(str(tmp_path / "events.jsonl"))
        _run(emitter.aclose())
        _run(emitter.aclose())

    def test_unopenable_path_degrades_to_noop(self, tmp_path) -> None:
        directory = tmp_path / "a_directory"
        directory.mkdir()
        emitter = JSONLEmitter(str(directory))
        _run(emitter.emit(_make_event()))
        _run(emitter.aclose())
