#!/usr/bin/env python3
"""
orchestrator.py

Single orchestration engine for s3archiver.
Runs the ordered stages of one archive run: inventory, archive, save.
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from datetime import datetime

from .config import Settings
from .errors import ArchiveError
from .logger import get_logger
from .manifest import ManifestManager
from .statistics import ThreadSafeStats
from .storage import S3Storage
from .uploader import incremental_upload


@contextmanager
def stage(name: str):
    """Tag any ArchiveError escaping the block with the stage it came from."""
    logger = get_logger(__name__)
    logger.debug(f"--- Running stage: {name} ---")
    try:
        yield
    except ArchiveError as e:
        if e.stage is None:
            e.stage = name
        raise


def run_pipeline(
        settings: Settings,
        storage: S3Storage,
        manifest: ManifestManager,
        stats: ThreadSafeStats,
) -> int:
    """
    Execute one archive run and return the number of uploaded files.

    The bucket is listed once up front; a listing failure aborts before any
    upload and before the manifest is touched. Whatever was recorded before
    a later failure is still written to the manifest.
    """
    logger = get_logger(__name__)

    logger.info("=== s3archiver run started ===")
    logger.debug(
        f"Run configuration: bucket={settings.bucket} local={settings.local_dir} "
        f"storage_class={settings.storage_class} workers={settings.max_upload_workers} "
        f"dry_run={settings.dry_run}"
    )
    logger.status(f"Run started at {datetime.now().isoformat()}")
    total_start = time.time()

    try:
        with stage("inventory"):
            inventory = storage.list_all_keys()

        try:
            with stage("archive"):
                uploaded = incremental_upload(settings, storage, manifest, stats, inventory)
        finally:
            if not settings.dry_run:
                with stage("save"):
                    manifest.save_if_dirty()

    except ArchiveError as e:
        logger.debug(f"Run aborted in stage {e.stage}: {e}")
        raise
    finally:
        elapsed = time.time() - total_start
        logger.status(f"Run finished in {elapsed:.1f}s at {datetime.now().isoformat()}")
        logger.info("=== s3archiver run finished ===")

    return uploaded
