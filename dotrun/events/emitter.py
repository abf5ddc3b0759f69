"""EventBus, EventEmitter protocol, CompositeEmitter, NullEmitter and build_emitter.

Two audiences consume lifecycle events:

* In-process listeners registered through ``EventBus.on()`` (the runner's
  ``on``/``once``/``off`` surface).  They receive the bare payload, in
  registration order, one event at a time.
* Backends implementing the structural ``EventEmitter`` protocol (JSONL
  file, Logfire).  ``CompositeEmitter`` fans out to all backends
  concurrently via ``asyncio.gather(return_exceptions=True)`` so a single
  failing backend never blocks the run.

Neither a listener nor a backend can fail a run: their exceptions are logged
at WARNING and discarded.
"""
from __future__ import annotations

import asyncio
import inspect
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable, Protocol, runtime_checkable

from dotrun.events.types import ALL_EVENT_TYPES

if TYPE_CHECKING:
    from dotrun.events.types import RunEvent

logger = logging.getLogger(__name__)

Listener = Callable[..., Any]


# ---------------------------------------------------------------------------
# EventEmitter Protocol
# ---------------------------------------------------------------------------

@runtime_checkable
class EventEmitter(Protocol):
    """Structural protocol for run event backends.

    Any object implementing ``emit()`` and ``aclose()`` satisfies this
    protocol; no subclassing required.
    """

    async def emit(self, event: RunEvent) -> None:
        """Emit one run event.  Must not raise."""
        ...

    async def aclose(self) -> None:
        """Flush and close any open resources.  Must be idempotent."""
        ...


# ---------------------------------------------------------------------------
# EventBus — publish/subscribe surface for callers
# ---------------------------------------------------------------------------

class EventBus:
    """Registry of per-event listeners.

    Listeners are called with the event payload (``started`` listeners are
    called with no argument).  A listener may return an awaitable; it is
    awaited before the next listener runs.

    Example::

        bus = EventBus()
        bus.on("performed", path.append)
    """

    def __init__(self) -> None:
        self._listeners: dict[str, list[tuple[Listener, bool]]] = {}

    def on(self, event: str, listener: Listener) -> Listener:
        """Register *listener* for *event*; returns it so it can be used as a decorator."""
        _check_event_name(event)
        self._listeners.setdefault(event, []).append((listener, False))
        return listener

    def once(self, event: str, listener: Listener) -> Listener:
        """Register *listener* to be called at most once."""
        _check_event_name(event)
        self._listeners.setdefault(event, []).append((listener, True))
        return listener

    def off(self, event: str, listener: Listener) -> None:
        """Remove the earliest registration of *listener* for *event*.  Unknown listeners are ignored."""
        registered = self._listeners.get(event, [])
        for i, (candidate, _) in enumerate(registered):
            if candidate == listener:
                del registered[i]
                return

    def listeners(self, event: str) -> list[Listener]:
        """Return the listeners currently registered for *event*."""
        return [listener for listener, _ in self._listeners.get(event, [])]

    async def emit(self, event: RunEvent) -> None:
        """Deliver *event* to its listeners sequentially."""
        args = () if event.type == "started" else (event.payload,)
        registered = self._listeners.get(event.type, [])
        snapshot = list(registered)
        for entry in snapshot:
            listener, once = entry
            if once:
                if entry not in registered:
                    continue
                registered.remove(entry)
            try:
                result = listener(*args)
                if inspect.isawaitable(result):
                    await result
            except Exception as exc:  # noqa: BLE001
                logger.warning(
                    "Listener %s for '%s' raised: %s",
                    getattr(listener, "__qualname__", repr(listener)),
                    event.type,
                    exc,
                )

    async def aclose(self) -> None:
        return


def _check_event_name(event: str) -> None:
    if event not in ALL_EVENT_TYPES:
        raise ValueError(
            f"Unknown event {event!r}; expected one of {sorted(ALL_EVENT_TYPES)}"
        )


# ---------------------------------------------------------------------------
# NullEmitter — no-op backend for testing / disabled configs
# ---------------------------------------------------------------------------

class NullEmitter:
    """No-op event emitter.  Accepts all events, stores nothing."""

    async def emit(self, event: RunEvent) -> None:
        return

    async def aclose(self) -> None:
        return


# ---------------------------------------------------------------------------
# CompositeEmitter — fans out to all backends concurrently
# ---------------------------------------------------------------------------

class CompositeEmitter:
    """Fan-out emitter that forwards each event to all configured backends.

    Exceptions from individual backends are logged at WARNING and discarded.
    """

    def __init__(self, backends: list[EventEmitter]) -> None:
        self._backends = list(backends)

    @property
    def backends(self) -> list[EventEmitter]:
        return list(self._backends)

    async def emit(self, event: RunEvent) -> None:
        if not self._backends:
            return
        results = await asyncio.gather(
            *[b.emit(event) for b in self._backends],
            return_exceptions=True,
        )
        for backend, result in zip(self._backends, results):
            if isinstance(result, Exception):
                logger.warning(
                    "Emitter backend %s failed on event %s: %s",
                    type(backend).__name__,
                    getattr(event, "type", "<unknown>"),
                    result,
                )

    async def aclose(self) -> None:
        if not self._backends:
            return
        await asyncio.gather(
            *[b.aclose() for b in self._backends],
            return_exceptions=True,
        )


# ---------------------------------------------------------------------------
# EventBusConfig — declarative configuration for build_emitter()
# ---------------------------------------------------------------------------

@dataclass
class EventBusConfig:
    """Configuration flags for the event backends."""

    jsonl_path: str | None = None     # None = no JSONL log
    logfire_enabled: bool = False


def build_emitter(run_id: str, config: EventBusConfig | None = None) -> CompositeEmitter:
    """Construct a CompositeEmitter with the configured backends.

    Called once per run.  The returned emitter must be closed via
    ``aclose()`` in a ``finally`` block regardless of the run's outcome.
    """
    if config is None:
        config = EventBusConfig()

    backends: list[EventEmitter] = []

    if config.jsonl_path:
        from dotrun.events.jsonl_backend import JSONLEmitter
        backends.append(JSONLEmitter(os.fspath(Path(config.jsonl_path))))

    if config.logfire_enabled:
        from dotrun.events.logfire_backend import LogfireEmitter
        backends.append(LogfireEmitter(run_id=run_id))

    return CompositeEmitter(backends)
