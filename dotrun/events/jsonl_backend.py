"""JSONL backend — appends every RunEvent as a JSON line to a local file.

The file is opened in append mode on construction so that events from
successive runs accumulate rather than overwriting each other.  Each
``emit()`` call writes one newline-terminated line and flushes immediately.

After ``aclose()`` is called, subsequent ``emit()`` calls raise
``ValueError`` to surface programming errors.
"""
from __future__ import annotations

import json
import logging
import os
from typing import IO

from dotrun.events.types import RunEvent

logger = logging.getLogger(__name__)


class JSONLEmitter:
    """Appends run events as newline-delimited JSON to *path*."""

    def __init__(self, path: str) -> None:
        self._path = path
        self._closed = False
        self._failed = False  # Set on first write error; subsequent writes are no-ops

        os.makedirs(os.path.dirname(os.path.abspath(path)), exist_ok=True)
        try:
            self._file: IO[str] | None = open(path, "a", encoding="utf-8")
        except OSError as exc:
            logger.warning("JSONLEmitter: cannot open %s: %s", path, exc)
            self._failed = True
            self._file = None

    @property
    def path(self) -> str:
        return self._path

    async def emit(self, event: RunEvent) -> None:
        """Serialise ``event`` to a JSON line and flush.

        Raises:
            ValueError: If ``aclose()`` has already been called.
        """
        if self._closed:
            raise ValueError("JSONLEmitter: emitter is closed")
        if self._failed or self._file is None:
            return

        try:
            line = json.dumps(event.to_record(), ensure_ascii=False, default=str)
            self._file.write(line + "\n")
            self._file.flush()
        except OSError as exc:
            if not self._failed:
                logger.warning("JSONLEmitter: write failure on %s: %s", self._path, exc)
                self._failed = True

    async def aclose(self) -> None:
        """Close the file handle.  Idempotent."""
        if self._closed:
            return
        self._closed = True
        if self._file is not None:
            try:
                self._file.close()
            except OSError as exc:
                logger.warning("JSONLEmitter: error closing %s: %s", self._path, exc)
