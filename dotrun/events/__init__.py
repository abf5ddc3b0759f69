"""Run events package — public re-exports.

    from dotrun.events import (
        RunEvent, EventBuilder, EventBus, EventEmitter,
        CompositeEmitter, NullEmitter, build_emitter,
    )

``JSONLEmitter`` and ``LogfireEmitter`` are imported from their own modules.
"""
from __future__ import annotations

from dotrun.events.emitter import (
    CompositeEmitter,
    EventBus,
    EventBusConfig,
    EventEmitter,
    NullEmitter,
    build_emitter,
)
from dotrun.events.types import ALL_EVENT_TYPES, EventBuilder, EventType, RunEvent

__all__ = [
    # types
    "RunEvent",
    "EventType",
    "EventBuilder",
    "ALL_EVENT_TYPES",
    # emitter
    "EventBus",
    "EventEmitter",
    "CompositeEmitter",
    "NullEmitter",
    "EventBusConfig",
    "build_emitter",
]
