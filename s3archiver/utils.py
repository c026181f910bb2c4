#!/usr/bin/env python3

"""
utils.py

Utility helpers shared across the package:
- atomic JSON write
- directory creation
- signal handler installation
- human readable byte sizes
"""

from __future__ import annotations

import json
import os
import signal
from pathlib import Path
from typing import Any

from s3archiver.logger import get_logger


def write_json_atomic(path: Path, data: Any) -> None:
    """
    Atomically write JSON to `path` with two-space indentation.

    The data goes to a sibling ".tmp" file which is fsynced and then moved
    over `path`, so readers only ever see the old or the new content.
    """
    _logger = get_logger(__name__)
    tmp = path.with_suffix(path.suffix + ".tmp")
    try:
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False)
            f.write("\n")
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp, path)
    except BaseException:
        # best-effort cleanup, the original error is what matters
        try:
            tmp.unlink(missing_ok=True)
        except OSError:
            pass
        raise
    _logger.debug(f"Wrote JSON atomically to {path}")


def ensure_dirs(*paths: Path) -> None:
    for p in paths:
        p.mkdir(parents=True, exist_ok=True)


def install_signal_handlers(on_interrupt):
    signal.signal(signal.SIGINT, on_interrupt)
    signal.signal(signal.SIGTERM, on_interrupt)


def format_bytes(size: int) -> str:
    """Converts raw bytes to human readable format."""
    power = 2 ** 10
    n = float(size)
    power_labels = {0: "B", 1: "KB", 2: "MB", 3: "GB", 4: "TB"}
    loop = 0
    while n >= power and loop < 4:
        n /= power
        loop += 1
    return f"{n:.2f} {power_labels[loop]}"
