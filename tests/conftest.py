#!/usr/bin/env python3
"""
Shared pytest fixtures and configuration for s3archiver tests.
"""

import sys
from pathlib import Path

import pytest
from botocore.exceptions import ClientError

# Ensure the repository root is importable without installing the package
parent_dir = Path(__file__).parent.parent
sys.path.insert(0, str(parent_dir))

from s3archiver.config import Settings
from s3archiver.executor import get_interrupt_manager


class FakePaginator:
    def __init__(self, client):
        self.client = client

    def paginate(self, Bucket):
        self.client.list_calls.append(Bucket)
        for index, page in enumerate(self.client.pages):
            if self.client.fail_on_page is not None and index == self.client.fail_on_page:
                raise ClientError(
                    {"Error": {"Code": "AccessDenied", "Message": "Access Denied"}},
                    "ListObjectsV2",
                )
            yield {"Contents": [{"Key": k} for k in page]} if page else {"KeyCount": 0}


class FakeS3Client:
    """Just enough of the boto3 S3 client for listing and uploading."""

    def __init__(self, keys=(), page_size=1000):
        keys = list(keys)
        self.pages = [keys[i:i + page_size] for i in range(0, len(keys), page_size)] or [[]]
        self.fail_on_page = None
        self.fail_keys = set()
        self.list_calls = []
        self.uploads = []  # (bucket, key, body, extra_args)

    def get_paginator(self, name):
        assert name == "list_objects_v2"
        return FakePaginator(self)

    def upload_fileobj(self, fileobj, bucket, key, ExtraArgs=None):
        if key in self.fail_keys:
            raise ClientError(
                {"Error": {"Code": "InternalError", "Message": "We encountered an internal error"}},
                "PutObject",
            )
        self.uploads.append((bucket, key, fileobj.read(), ExtraArgs))

    @property
    def uploaded_keys(self):
        return [key for _, key, _, _ in self.uploads]


@pytest.fixture
def fake_s3():
    return FakeS3Client()


@pytest.fixture
def make_s3():
    """Factory for fake clients pre-populated with keys."""
    return FakeS3Client


@pytest.fixture
def isolated_aws_env(monkeypatch, tmp_path):
    """Keep the developer's AWS environment out of credential tests."""
    for var in ("AWS_ACCESS_KEY_ID", "AWS_SECRET_ACCESS_KEY", "AWS_SESSION_TOKEN", "AWS_PROFILE",
                "AWS_DEFAULT_PROFILE", "AWS_SHARED_CREDENTIALS_FILE"):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv("AWS_CONFIG_FILE", str(tmp_path / "no-aws-config"))
    monkeypatch.setenv("AWS_EC2_METADATA_DISABLED", "true")


@pytest.fixture
def archive_root(tmp_path):
    """Archive root with a.txt and sub/b.txt."""
    root = tmp_path / "data"
    (root / "sub").mkdir(parents=True)
    (root / "a.txt").write_text("alpha")
    (root / "sub" / "b.txt").write_text("bravo")
    return root


@pytest.fixture
def test_settings(tmp_path, archive_root):
    """Create a Settings object with test paths."""
    return Settings(
        bucket="test-bucket",
        local_dir=archive_root,
        region="ap-northeast-1",
        storage_class="DEEP_ARCHIVE",
        manifest_path=tmp_path / "manifest.json",
        manifest_dir=tmp_path / "archives",
        save_every=25,
        max_upload_workers=1,
        upload_batch_size=10,
        status_interval=0,
    )


@pytest.fixture(autouse=True)
def reset_interrupts():
    """The interrupt manager is process-wide; never let one test's interrupt leak."""
    get_interrupt_manager().reset()
    yield
    get_interrupt_manager().reset()
