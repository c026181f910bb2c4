#!/usr/bin/env python3
"""
__main__.py

Top-level CLI for s3archiver.
Builds Settings from flags and config, then delegates the run to orchestrator.
"""

from __future__ import annotations

import argparse
import sys
import time
from pathlib import Path
from typing import Optional, Sequence

from s3archiver.config import DEFAULT_REGION, DEFAULT_STORAGE_CLASS, load_settings
from s3archiver.errors import ArchiveError, ConfigError
from s3archiver.executor import get_interrupt_manager
from s3archiver.logger import setup_logger, get_logger
from s3archiver.manifest import open_manifest
from s3archiver.orchestrator import run_pipeline
from s3archiver.statistics import StatusThread, create_stats, log_status
from s3archiver.storage import S3Storage
from s3archiver.utils import install_signal_handlers

EXIT_FAILURE = 1
EXIT_CONFIG = 2


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="s3archiver",
        description="s3archiver – archive a local directory to S3 exactly once",
    )
    p.add_argument("--bucket", help="Name of the S3 bucket (required)")
    p.add_argument("--local", dest="local_dir", help="Local directory to archive (required)")
    p.add_argument("--region", help=f"AWS region (default: {DEFAULT_REGION})")
    p.add_argument("--cred", dest="credentials_file", type=Path,
                   help="Path to AWS credentials file (default: ~/.aws/credentials)")
    p.add_argument("--profile", help="Credentials profile to use")
    p.add_argument("--endpoint-url", help="Endpoint of an S3-compatible service")
    p.add_argument("--archive", dest="manifest_path", type=Path,
                   help="Path to the manifest JSON file (default: archives/<derived from --local>.json)")
    p.add_argument("--storage-class", help=f"S3 storage class for uploads (default: {DEFAULT_STORAGE_CLASS})")
    p.add_argument("--workers", dest="max_upload_workers", type=int, help="Parallel uploads (default: 1)")
    p.add_argument("--save-every", type=int,
                   help="Save the manifest after every N uploads, 0 = only at the end (default: 25)")
    p.add_argument("--dry-run", action="store_true", default=None,
                   help="Decide and log what would be uploaded without uploading")
    p.add_argument("--config", type=Path, help="Path to config file")
    p.add_argument("--log-file", dest="log_path", type=Path, help="Also log to this file (rotated)")
    p.add_argument("--log-level", help="Log level for the log file and console (default: INFO)")
    return p


def main(argv: Optional[Sequence[str]] = None):
    parser = build_parser()
    args = parser.parse_args(argv)
    overrides = {k: v for k, v in vars(args).items() if k != "config"}

    try:
        settings = load_settings(args.config, overrides)
    except ConfigError as e:
        # prints usage and exits with status 2
        parser.error(str(e))

    setup_logger(settings)
    logger = get_logger(__name__)

    try:
        manifest = open_manifest(settings)
        storage = S3Storage(settings)
    except ArchiveError as e:
        logger.error(f"setup failed: {e}")
        sys.exit(EXIT_CONFIG if isinstance(e, ConfigError) else EXIT_FAILURE)

    stats = create_stats()
    status_thread = StatusThread(settings.status_interval, stats)
    status_thread.start()

    interrupt_manager = get_interrupt_manager()

    def on_interrupt(signum, frame):
        logger.warning("Interrupt received. Saving manifest and exiting safely...")
        interrupt_manager.interrupt_all()
        if not settings.dry_run:
            try:
                manifest.save_if_dirty()
            except ArchiveError as e:
                logger.error(f"save failed: {e}")
        status_thread.stop()
        sys.exit(EXIT_FAILURE)

    install_signal_handlers(on_interrupt)

    start = time.time()
    try:
        run_pipeline(settings, storage, manifest, stats)
    except ArchiveError as e:
        logger.error(f"{e.stage or 'run'} failed: {e}")
        log_status(stats)
        sys.exit(EXIT_CONFIG if isinstance(e, ConfigError) else EXIT_FAILURE)
    finally:
        status_thread.stop()

    elapsed = time.time() - start
    log_status(stats)
    logger.info(f"Process completed successfully! ({elapsed:.1f}s)")


if __name__ == "__main__":
    main()
