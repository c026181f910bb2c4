#!/usr/bin/env python3

"""
reconciler.py

Per-file skip-or-upload policy.

A file is skipped when its key is in the bucket listing taken at the start
of the run, or failing that when the manifest already records it. Everything
else is uploaded, and only a successful upload adds the key to the manifest.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import AbstractSet, Callable, Optional

from s3archiver.errors import ArchiveError
from s3archiver.logger import get_logger
from s3archiver.manifest import ManifestManager
from s3archiver.statistics import StatKey, ThreadSafeStats
from s3archiver.walker import LocalFile

SKIP_IN_REMOTE = "already in remote storage"
SKIP_IN_MANIFEST = "already recorded as archived"

UploadFn = Callable[[Path, str], None]


class Action(Enum):
    SKIP = "skip"
    UPLOAD = "upload"


@dataclass(frozen=True)
class Decision:
    action: Action
    reason: str = ""

    @property
    def upload(self) -> bool:
        return self.action is Action.UPLOAD


UPLOAD = Decision(Action.UPLOAD)


class Reconciler:
    def __init__(
            self,
            inventory: AbstractSet[str],
            manifest: ManifestManager,
            upload: UploadFn,
            stats: Optional[ThreadSafeStats] = None,
            dry_run: bool = False,
    ):
        self.logger = get_logger(__name__)
        self.inventory = frozenset(inventory)
        self.manifest = manifest
        self._upload = upload
        self.stats = stats
        self.dry_run = dry_run

    def decide(self, file: LocalFile) -> Decision:
        if file.key in self.inventory:
            return Decision(Action.SKIP, SKIP_IN_REMOTE)
        if file.key in self.manifest:
            return Decision(Action.SKIP, SKIP_IN_MANIFEST)
        return UPLOAD

    def _count(self, key: StatKey, value: int = 1) -> None:
        if self.stats is not None:
            self.stats.increment(key, value)

    def screen(self, file: LocalFile) -> Decision:
        """Decide for `file`, logging and counting the outcome without uploading."""
        self._count(StatKey.SCANNED)
        decision = self.decide(file)
        if decision.upload:
            if self.dry_run:
                self._count(StatKey.PLANNED)
                self.logger.info(f"[dry-run] Would upload {file.path} as {file.key}")
        else:
            self._count(StatKey.SKIPPED_REMOTE if decision.reason == SKIP_IN_REMOTE else StatKey.SKIPPED_MANIFEST)
            self.logger.debug(f"Skipping {file.key}: {decision.reason}")
        return decision

    def commit(self, file: LocalFile) -> LocalFile:
        """
        Upload `file` and record its key.

        Any upload error propagates and leaves the manifest untouched, so the
        next run retries the file.
        """
        try:
            self._upload(file.path, file.key)
        except ArchiveError:
            self._count(StatKey.FAILED)
            raise
        self.manifest.add(file.key)
        self._count(StatKey.UPLOADED)
        self._count(StatKey.BYTES, file.size)
        return file

    def process(self, file: LocalFile) -> Decision:
        decision = self.screen(file)
        if decision.upload and not self.dry_run:
            self.commit(file)
        return decision
