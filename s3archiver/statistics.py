#!/usr/bin/env python3

"""
statistics.py

Run counters for s3archiver.

Counters are shared by the walking thread and upload workers; a background
StatusThread logs them periodically and log_status() prints the final tally.
"""

from __future__ import annotations

import threading
from enum import Enum
from typing import Dict, Optional

from s3archiver.logger import get_logger
from s3archiver.utils import format_bytes


class StatKey(Enum):
    SCANNED = "Scanned"
    UPLOADED = "Uploaded"
    SKIPPED_REMOTE = "Skipped (in bucket)"
    SKIPPED_MANIFEST = "Skipped (in manifest)"
    PLANNED = "Would upload"
    FAILED = "Failed"
    BYTES = "Bytes uploaded"


_DISPLAY_ORDER = (
    StatKey.SCANNED,
    StatKey.UPLOADED,
    StatKey.SKIPPED_REMOTE,
    StatKey.SKIPPED_MANIFEST,
    StatKey.PLANNED,
    StatKey.FAILED,
)


class ThreadSafeStats:
    """Lock-protected counters keyed by StatKey; unknown keys read as 0."""

    def __init__(self):
        self._values: Dict[StatKey, int] = {}
        self._lock = threading.Lock()

    def increment(self, key: StatKey, value: int = 1) -> None:
        with self._lock:
            self._values[key] = self._values.get(key, 0) + value

    def set(self, key: StatKey, value: int) -> None:
        with self._lock:
            self._values[key] = value

    def get(self, key: StatKey, default: int = 0) -> int:
        with self._lock:
            return self._values.get(key, default)

    def get_all(self) -> Dict[str, int]:
        """Copy of the counters touched so far, keyed by display name."""
        with self._lock:
            return {key.value: count for key, count in self._values.items()}

    def reset(self) -> None:
        with self._lock:
            self._values.clear()

    def __getitem__(self, key: StatKey) -> int:
        return self.get(key)

    def __setitem__(self, key: StatKey, value: int) -> None:
        self.set(key, value)

    def format_status(self) -> str:
        with self._lock:
            snapshot = dict(self._values)
        parts = [f"{key.value}: {snapshot.get(key, 0)}" for key in _DISPLAY_ORDER]
        parts.append(f"{StatKey.BYTES.value}: {format_bytes(snapshot.get(StatKey.BYTES, 0))}")
        return " | " + " | ".join(parts) + " | "


def _emit_status(logger, message: str) -> None:
    # mocked or foreign loggers may lack the STATUS helper
    status = getattr(logger, "status", None)
    if callable(status):
        status(message)
    else:
        logger.info("[STATUS] " + message)


class StatusThread:
    """
    Daemon thread that logs the counters every `interval` seconds while a run
    is in progress. An interval of 0 or less disables it.
    """

    def __init__(self, interval: int, counters: ThreadSafeStats):
        self.logger = get_logger(__name__)
        self.interval = interval
        self.counters = counters
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def _report_loop(self) -> None:
        while not self._stop_event.wait(self.interval):
            _emit_status(self.logger, self.get_status_summary())

    def start(self) -> None:
        if self._thread is not None or self.interval <= 0:
            return
        self._thread = threading.Thread(target=self._report_loop, name="StatusReporter", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=2.0)

    def get_status_summary(self) -> str:
        return self.counters.format_status()


def log_status(stats: ThreadSafeStats, stage: str = "") -> None:
    """Log the counters once, optionally prefixed with `[stage]`."""
    prefix = f"[{stage}] " if stage else ""
    _emit_status(get_logger(__name__), prefix + stats.format_status())


def create_stats() -> ThreadSafeStats:
    return ThreadSafeStats()
