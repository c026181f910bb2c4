#!/usr/bin/env python3
"""
Integration tests for the s3archiver command line: real settings, logging
and manifest handling, with only the S3 client replaced.
"""

import json
import logging

import pytest

import s3archiver.logger
from s3archiver import config
from s3archiver.__main__ import EXIT_CONFIG, EXIT_FAILURE, main


@pytest.fixture
def cli_env(mocker, monkeypatch, tmp_path, make_s3):
    """Fake bucket behind S3Storage, no signal handlers, a fresh logger per test."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(config, "DEFAULT_LOCATIONS", [tmp_path / "absent.toml"])
    mocker.patch("s3archiver.__main__.install_signal_handlers")

    client = make_s3()
    mocker.patch("s3archiver.storage.create_client", return_value=client)

    old_logger = s3archiver.logger._LOGGER
    s3archiver.logger._LOGGER = None
    yield client
    log = logging.getLogger("s3archiver")
    for h in log.handlers[:]:
        log.removeHandler(h)
        h.close()
    s3archiver.logger._LOGGER = old_logger


@pytest.mark.integration
class TestCli:
    """main() end to end."""

    def test_archives_with_derived_manifest(self, cli_env, archive_root, tmp_path):
        main(["--bucket", "photos", "--local", str(archive_root)])

        assert cli_env.uploaded_keys == ["a.txt", "sub/b.txt"]
        assert all(bucket == "photos" for bucket, _, _, _ in cli_env.uploads)
        manifests = list((tmp_path / "archives").glob("*.json"))
        assert len(manifests) == 1
        assert json.loads(manifests[0].read_text()) == {"files": ["a.txt", "sub/b.txt"]}

    def test_explicit_manifest_and_storage_class(self, cli_env, archive_root, tmp_path):
        manifest = tmp_path / "state" / "photos.json"
        manifest.parent.mkdir()

        main([
            "--bucket", "photos", "--local", str(archive_root),
            "--archive", str(manifest), "--storage-class", "glacier_ir",
        ])

        assert json.loads(manifest.read_text()) == {"files": ["a.txt", "sub/b.txt"]}
        assert {extra["StorageClass"] for _, _, _, extra in cli_env.uploads} == {"GLACIER_IR"}

    def test_second_invocation_uploads_nothing(self, cli_env, archive_root, tmp_path):
        argv = ["--bucket", "photos", "--local", str(archive_root), "--archive", str(tmp_path / "m.json")]

        main(argv)
        s3archiver.logger._LOGGER = None
        main(argv)

        assert len(cli_env.uploads) == 2

    def test_listing_failure_exit_status(self, cli_env, archive_root, tmp_path):
        manifest = tmp_path / "m.json"
        manifest.write_text('{\n  "files": []\n}\n')
        cli_env.fail_on_page = 0

        with pytest.raises(SystemExit) as exc_info:
            main(["--bucket", "photos", "--local", str(archive_root), "--archive", str(manifest)])

        assert exc_info.value.code == EXIT_FAILURE
        assert cli_env.uploads == []
        assert manifest.read_text() == '{\n  "files": []\n}\n'

    def test_missing_local_dir_is_usage_error(self, cli_env, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main(["--bucket", "photos"])

        assert exc_info.value.code == EXIT_CONFIG
        assert "local directory" in capsys.readouterr().err

    def test_malformed_manifest_aborts_before_upload(self, cli_env, archive_root, tmp_path):
        manifest = tmp_path / "m.json"
        manifest.write_text("not json")

        with pytest.raises(SystemExit) as exc_info:
            main(["--bucket", "photos", "--local", str(archive_root), "--archive", str(manifest)])

        assert exc_info.value.code == EXIT_FAILURE
        assert cli_env.uploads == []
        assert manifest.read_text() == "not json"

    def test_log_file(self, cli_env, archive_root, tmp_path):
        log_path = tmp_path / "logs" / "s3archiver.log"

        main([
            "--bucket", "photos", "--local", str(archive_root),
            "--archive", str(tmp_path / "m.json"), "--log-file", str(log_path),
        ])

        text = log_path.read_text()
        assert "Uploaded" in text
        assert "Process completed successfully!" in text

    def test_config_file(self, cli_env, archive_root, tmp_path):
        cfg = tmp_path / "s3archiver.toml"
        cfg.write_text(f'bucket = "from-config"\nlocal_dir = "{archive_root.as_posix()}"\ndry_run = true\n')

        main(["--config", str(cfg), "--archive", str(tmp_path / "m.json")])

        assert cli_env.uploads == []
        assert cli_env.list_calls == ["from-config"]
        assert not (tmp_path / "m.json").exists()
