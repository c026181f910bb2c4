#!/usr/bin/env python3

"""
uploader.py

Incremental upload of the archive root:
- walk the local tree
- screen every file against the bucket listing and the manifest
- upload what is missing (sequentially, or through a bounded worker pool)
- record each successful upload in the manifest and checkpoint it to disk
"""

from __future__ import annotations

from typing import AbstractSet, List

from s3archiver.config import Settings
from s3archiver.executor import TaskResult, create_managed_executor
from s3archiver.logger import get_logger
from s3archiver.manifest import ManifestManager
from s3archiver.reconciler import Reconciler
from s3archiver.statistics import ThreadSafeStats
from s3archiver.storage import S3Storage
from s3archiver.walker import LocalFile, walk_tree


class ManifestCheckpoint:
    """Saves the manifest after every `every` recorded uploads (0 disables)."""

    def __init__(self, manifest: ManifestManager, every: int):
        self.manifest = manifest
        self.every = every
        self._pending = 0

    def note(self) -> None:
        if self.every <= 0:
            return
        self._pending += 1
        if self._pending >= self.every:
            self.manifest.save()
            self._pending = 0


def _upload_sequential(files, reconciler: Reconciler, checkpoint: ManifestCheckpoint) -> int:
    uploaded = 0
    for file in files:
        decision = reconciler.process(file)
        if decision.upload and not reconciler.dry_run:
            uploaded += 1
            checkpoint.note()
    return uploaded


def _upload_parallel(files, reconciler: Reconciler, checkpoint: ManifestCheckpoint, settings: Settings) -> int:
    logger = get_logger(__name__)
    uploaded = 0

    def on_result(result: TaskResult) -> None:
        # runs on the calling thread, so checkpoints never race the walk
        if result.success:
            checkpoint.note()

    logger.info(f"Uploading with up to {settings.max_upload_workers} parallel workers...")
    with create_managed_executor(
            max_workers=settings.max_upload_workers,
            name="Uploader",
            progress_interval=25,
            fail_fast=True,
    ) as executor:

        def flush(batch: List[LocalFile]) -> int:
            results = executor.map(reconciler.commit, batch, on_result)
            failures = [r for r in results if not r.success and not r.interrupted]
            if failures:
                raise failures[0].exception
            if len(results) < len(batch) or any(r.interrupted for r in results):
                logger.error("Upload interrupted...")
                raise KeyboardInterrupt()
            return len(results)

        batch: List[LocalFile] = []
        for file in files:
            decision = reconciler.screen(file)
            if not decision.upload or reconciler.dry_run:
                continue
            batch.append(file)
            if len(batch) >= settings.upload_batch_size:
                uploaded += flush(batch)
                batch = []
        if batch:
            uploaded += flush(batch)

    return uploaded


def incremental_upload(
        settings: Settings,
        storage: S3Storage,
        manifest: ManifestManager,
        stats: ThreadSafeStats,
        inventory: AbstractSet[str],
) -> int:
    """
    Archive every file under settings.local_dir that is neither in `inventory`
    nor in `manifest`. Returns the number of files uploaded.

    The first UploadError or WalkError aborts the run; keys uploaded before it
    stay recorded in `manifest` (the caller persists them).
    """
    logger = get_logger(__name__)
    logger.info(f"Starting incremental upload of {settings.local_dir} to s3://{settings.bucket}...")

    reconciler = Reconciler(
        inventory=inventory,
        manifest=manifest,
        upload=storage.upload_file,
        stats=stats,
        dry_run=settings.dry_run,
    )
    checkpoint = ManifestCheckpoint(manifest, settings.save_every)
    files = walk_tree(settings.local_dir)

    if settings.max_upload_workers > 1 and not settings.dry_run:
        uploaded = _upload_parallel(files, reconciler, checkpoint, settings)
    else:
        uploaded = _upload_sequential(files, reconciler, checkpoint)

    logger.info(f"Incremental upload complete: {uploaded} file(s) uploaded.")
    return uploaded
