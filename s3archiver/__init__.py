#!/usr/bin/env python3

"""
s3archiver
Incremental, exactly-once archival of a local directory to an S3 bucket.

Files are uploaded once; a local JSON manifest plus a listing of the bucket
decide what is already archived, so re-running after an interruption is safe.
"""

__version__ = "0.1.0"

__all__ = [
    "config",
    "errors",
    "executor",
    "logger",
    "manifest",
    "orchestrator",
    "reconciler",
    "statistics",
    "storage",
    "uploader",
    "utils",
    "walker",
]
