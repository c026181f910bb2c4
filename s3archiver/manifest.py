#!/usr/bin/env python3

"""
manifest.py

Local record of the remote keys that have already been archived.

The manifest is a JSON document of the form

    {
      "files": [
        "a.txt",
        "sub/b.txt"
      ]
    }

kept in upload order. It is independent of the bucket's contents: a key is
only added once its upload definitively succeeded, so a key that is in the
manifest is never uploaded again even if the bucket listing does not show it
(e.g. after a lifecycle transition or a listing done with another prefix).

Includes resilience:
- atomic writes (tmp file + rename), never a truncated manifest
- idempotent, thread-safe appends
- dirty tracking so unchanged manifests are never rewritten
"""

from __future__ import annotations

import json
import os
import threading
from pathlib import Path
from typing import List, Optional, Union

from s3archiver.config import Settings
from s3archiver.errors import ManifestIOError
from s3archiver.logger import get_logger
from s3archiver.utils import ensure_dirs, write_json_atomic

MANIFEST_FIELD = "files"
MANIFEST_SUFFIX = ".json"


def load_manifest(path: Path) -> List[str]:
    """
    Read the archived keys stored at `path`, in file order.

    A missing file is an empty manifest. Anything that is not a JSON object
    with a list of strings under "files" is a ManifestIOError. Duplicate
    entries from a hand-edited file are collapsed (first one wins).
    """
    if not path.exists():
        return []
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ManifestIOError(path, f"malformed JSON: {e}") from e
    except OSError as e:
        raise ManifestIOError(path, e) from e

    if not isinstance(data, dict):
        raise ManifestIOError(path, "expected a JSON object")
    files = data.get(MANIFEST_FIELD, [])
    if files is None:
        files = []
    if not isinstance(files, list) or not all(isinstance(k, str) for k in files):
        raise ManifestIOError(path, f"'{MANIFEST_FIELD}' must be a list of strings")

    return list(dict.fromkeys(files))


def save_manifest(path: Path, keys: List[str]) -> None:
    """Write `keys` to `path`, replacing whatever was there."""
    try:
        write_json_atomic(path, {MANIFEST_FIELD: list(keys)})
    except OSError as e:
        raise ManifestIOError(path, e) from e


def ensure_manifest_dir(directory: Path) -> None:
    """Create the default manifest directory if it does not exist yet."""
    try:
        ensure_dirs(directory)
    except OSError as e:
        raise ManifestIOError(directory, e) from e


def default_manifest_path(archive_root: Union[str, Path], manifest_dir: Path) -> Path:
    """
    Derive the manifest file for `archive_root` inside `manifest_dir`.

    Path separators become "_" and drive separators (":") become "-", so
    "/data/photos" maps to "_data_photos.json" and "C:\\photos" to
    "C-_photos.json". Roots differing only in those characters share a file.
    """
    base_name = str(archive_root)
    for sep in {os.sep, os.altsep or os.sep, "/"}:
        base_name = base_name.replace(sep, "_")
    base_name = base_name.replace(":", "-")
    return manifest_dir / f"{base_name}{MANIFEST_SUFFIX}"


def resolve_manifest_path(settings: Settings) -> Path:
    """Explicit manifest path if configured, otherwise the derived default (directory created)."""
    if not settings.manifest_is_default:
        return settings.manifest_path
    ensure_manifest_dir(settings.manifest_dir)
    return default_manifest_path(settings.archive_root_name, settings.manifest_dir)


class ManifestManager:
    def __init__(self, manifest_path: Path):
        self.logger = get_logger(__name__)
        self.manifest_path: Path = manifest_path

        self._keys: List[str] = []
        self._index: set[str] = set()
        # keys [0, _saved_count) are on disk; keys are only ever appended
        self._saved_count = 0
        # re-entrant: the interrupt handler may save while the main thread holds the lock
        self._lock = threading.RLock()

    @classmethod
    def from_settings(cls, settings: Settings) -> "ManifestManager":
        return cls(resolve_manifest_path(settings))

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------
    def load(self) -> "ManifestManager":
        keys = load_manifest(self.manifest_path)
        with self._lock:
            self._keys = keys
            self._index = set(keys)
            self._saved_count = len(keys)
        if keys:
            self.logger.info(f"Loaded {len(keys)} archived keys from {self.manifest_path}")
        else:
            self.logger.info(f"No archived keys recorded yet at {self.manifest_path}")
        return self

    def save(self) -> None:
        with self._lock:
            save_manifest(self.manifest_path, self._keys)
            self._saved_count = len(self._keys)
            self.logger.debug(f"Manifest saved ({len(self._keys)} entries) to {self.manifest_path}")

    def save_if_dirty(self) -> bool:
        """Persist only if keys were added since the last load/save. Returns True when written."""
        with self._lock:
            if not self.dirty:
                return False
            self.save()
            self.logger.info(f"Manifest written to {self.manifest_path} ({len(self._keys)} entries)")
            return True

    # ------------------------------------------------------------------
    # Key set
    # ------------------------------------------------------------------
    def add(self, key: str) -> bool:
        """Record `key` as archived. Re-adding a known key is a no-op; returns True if it was new."""
        with self._lock:
            if key in self._index:
                return False
            # dirty is derived from _keys, so this append alone records the key
            self._keys.append(key)
            self._index.add(key)
            return True

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._index

    def __len__(self) -> int:
        with self._lock:
            return len(self._keys)

    @property
    def keys(self) -> List[str]:
        with self._lock:
            return list(self._keys)

    @property
    def dirty(self) -> bool:
        with self._lock:
            return len(self._keys) != self._saved_count

    def __repr__(self) -> str:
        return f"ManifestManager({str(self.manifest_path)!r}, entries={len(self)})"


def open_manifest(settings: Settings, path: Optional[Path] = None) -> ManifestManager:
    """Resolve the manifest location for `settings` and load it."""
    manager = ManifestManager(path) if path is not None else ManifestManager.from_settings(settings)
    return manager.load()
