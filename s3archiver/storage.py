# s3archiver/storage.py
"""
Thin boto3 wrapper: bucket listing and single-object uploads.

All connection parameters come from the Settings object handed to S3Storage;
nothing here reads process-wide state. botocore errors are converted to the
package's own error types at this boundary.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, FrozenSet, Optional, Union

import boto3
import botocore.session
from boto3.exceptions import S3UploadFailedError
from botocore.exceptions import BotoCoreError, ClientError, NoCredentialsError, PartialCredentialsError

from s3archiver.config import Settings
from s3archiver.errors import BackendError, ConfigError, UploadError
from s3archiver.logger import get_logger
from s3archiver.utils import format_bytes

_CREDENTIAL_ERRORS = (NoCredentialsError, PartialCredentialsError)


def create_session(settings: Settings) -> boto3.session.Session:
    """
    Build a boto3 session for `settings`.

    An explicit credentials file replaces botocore's default
    (~/.aws/credentials); the profile and region are applied on top.
    """
    logger = get_logger(__name__)
    core = botocore.session.Session(profile=settings.profile)
    if settings.credentials_file is not None:
        core.set_config_variable("credentials_file", str(settings.credentials_file))
        logger.info(f"Using specified AWS credentials file ({settings.credentials_file})")
    else:
        logger.info("Using default AWS credentials resolution (~/.aws/credentials)")
    try:
        return boto3.session.Session(botocore_session=core, region_name=settings.region)
    except BotoCoreError as e:
        raise ConfigError(f"Unable to load AWS config: {e}") from e


def create_client(settings: Settings) -> Any:
    session = create_session(settings)
    try:
        return session.client("s3", endpoint_url=settings.endpoint_url)
    except BotoCoreError as e:
        raise ConfigError(f"Unable to create S3 client: {e}") from e


class S3Storage:
    """Remote inventory and uploader for one bucket."""

    def __init__(self, settings: Settings, client: Any = None):
        self.logger = get_logger(__name__)
        self.bucket = settings.bucket
        self.storage_class = settings.storage_class
        self.client = client if client is not None else create_client(settings)

    def list_all_keys(self, bucket: Optional[str] = None) -> FrozenSet[str]:
        """
        Return every key in the bucket, following pagination to the end.

        Any failed page aborts the listing; no partial inventory is returned.
        """
        bucket = bucket or self.bucket
        keys: set[str] = set()
        pages = 0
        try:
            paginator = self.client.get_paginator("list_objects_v2")
            for page in paginator.paginate(Bucket=bucket):
                pages += 1
                for obj in page.get("Contents", []):
                    keys.add(obj["Key"])
        except _CREDENTIAL_ERRORS as e:
            raise ConfigError(f"Unable to resolve AWS credentials: {e}") from e
        except (ClientError, BotoCoreError) as e:
            raise BackendError(f"Failed to list files in S3 bucket {bucket}: {e}") from e

        self.logger.info(f"Found {len(keys)} objects in s3://{bucket} ({pages} pages)")
        return frozenset(keys)

    def upload_file(self, local_path: Union[str, Path], key: str, bucket: Optional[str] = None) -> None:
        """
        Stream `local_path` to `key` with the configured storage class.

        The file handle is closed on every path. Raises UploadError when the
        file cannot be opened or S3 rejects the object.
        """
        bucket = bucket or self.bucket
        local_path = Path(local_path)
        try:
            with open(local_path, "rb") as body:
                size = os.fstat(body.fileno()).st_size
                self.client.upload_fileobj(
                    body,
                    bucket,
                    key,
                    ExtraArgs={"StorageClass": self.storage_class},
                )
        except OSError as e:
            self.logger.error(f"Failed to read {local_path} for upload: {e}")
            raise UploadError(key, e) from e
        except _CREDENTIAL_ERRORS as e:
            self.logger.error(f"Failed to upload {key} to s3://{bucket}: {e}")
            raise ConfigError(f"Unable to resolve AWS credentials: {e}") from e
        except (ClientError, BotoCoreError, S3UploadFailedError) as e:
            self.logger.error(f"Failed to upload {key} to s3://{bucket}: {e}")
            raise UploadError(key, e) from e

        self.logger.info(
            f"Uploaded {local_path} to s3://{bucket}/{key} ({format_bytes(size)}, {self.storage_class})"
        )
