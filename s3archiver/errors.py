#!/usr/bin/env python3

"""
errors.py

Exception types for s3archiver.

Every error here is fatal for a run. They are raised at the boundary where a
third-party or OS error is first seen (wrapped with ``raise ... from``) and
only converted to an exit status in __main__.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Union


class ArchiveError(Exception):
    """Base class for all s3archiver failures."""

    stage: Optional[str] = None


class ConfigError(ArchiveError):
    """Bad or missing configuration, or credentials that cannot be resolved."""


class BackendError(ArchiveError):
    """An S3 request (listing or upload) failed."""


class UploadError(BackendError):
    """A single object upload failed; the manifest is not updated for `key`."""

    def __init__(self, key: str, cause: BaseException):
        super().__init__(f"upload of {key} failed: {cause}")
        self.key = key
        self.cause = cause


class WalkError(ArchiveError):
    """The local tree walk hit a filesystem error and was aborted."""

    def __init__(self, path: Union[str, Path], cause: BaseException):
        super().__init__(f"cannot read {path}: {cause}")
        self.path = Path(path)
        self.cause = cause


class ManifestIOError(ArchiveError):
    """The manifest file could not be read, parsed or written."""

    def __init__(self, path: Union[str, Path], cause: Union[BaseException, str]):
        super().__init__(f"manifest {path}: {cause}")
        self.path = Path(path)
        self.cause = cause
