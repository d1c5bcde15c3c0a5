import logging
from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest

from bucketsync.__main__ import main
from bucketsync.config import S3GatewayConfig, TransferPolicy
from bucketsync.exceptions import ConfigurationError
from bucketsync.types import SyncResult, TaskFailure

from ..util import read_tree

logger = logging.getLogger(name=None)


@pytest.fixture(autouse=True)
def env_settings(tmp_path: Path, monkeypatch, gateway_config):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("bucketsync_gateway__gateway_type", "filesystem")
    monkeypatch.setenv("bucketsync_gateway__root_dir", str(gateway_config.root_dir))
    monkeypatch.setenv("bucketsync_gateway__bucket", gateway_config.bucket)


def test_version(capsys):
    with pytest.raises(SystemExit) as exc_info:
        main(["--version"])

    assert exc_info.value.code == 0
    assert "bucketsync" in capsys.readouterr().out


def test_command_required():
    with pytest.raises(SystemExit) as exc_info:
        main([])

    assert exc_info.value.code == 2


def test_upload_list_delete_dir(local_tree: Path, bucket_dir: Path, capsys):
    assert main(["upload", str(local_tree), "s3testdir"]) == 0
    assert read_tree(bucket_dir / "s3testdir") == read_tree(local_tree)

    capsys.readouterr()
    assert main(["list", "s3testdir"]) == 0
    assert capsys.readouterr().out.splitlines() == ["test1.txt", "test2.txt"]

    assert main(["delete-dir", "s3testdir"]) == 0
    assert not (bucket_dir / "s3testdir").exists()


def test_download(local_tree: Path, tmp_path: Path):
    main(["upload", str(local_tree), "s3testdir"])

    assert main(["download", "s3testdir", str(tmp_path / "restored")]) == 0
    assert read_tree(tmp_path / "restored") == read_tree(local_tree)


def test_delete(local_tree: Path, bucket_dir: Path):
    main(["upload", str(local_tree), "s3testdir"])

    assert main(["delete", "s3testdir/test1.txt"]) == 0
    assert read_tree(bucket_dir) == {"s3testdir/test2.txt": b"test2.txt"}


def test_bucket_override(local_tree: Path, gateway_config):
    assert main(["--bucket", "otherbucket", "upload", str(local_tree)]) == 0

    assert read_tree(gateway_config.root_dir / "otherbucket") == read_tree(local_tree)


def test_policy_options(local_tree: Path):
    with patch("bucketsync.__main__.BucketSync.upload_dir", AsyncMock(return_value=SyncResult(succeeded=2))) as mock_upload:
        assert main(["--overwrite-if-newer", "--acl", "private", "--files-concurrency", "4", "upload", str(local_tree), "s3testdir"]) == 0

    policy: TransferPolicy = mock_upload.call_args.args[2]
    assert policy.overwrite is True
    assert policy.overwrite_if_newer is True
    assert policy.acl == "private"
    assert policy.files_concurrency == 4
    assert policy.dirs_concurrency is None


def test_failures_exit_code(local_tree: Path):
    failed = SyncResult(succeeded=1, failures=[TaskFailure("upload test2.txt", PermissionError("AccessDenied"))])

    with patch("bucketsync.__main__.BucketSync.upload_dir", AsyncMock(return_value=failed)):
        assert main(["upload", str(local_tree), "s3testdir"]) == 1


def test_mirror():
    with patch("bucketsync.__main__.BucketSync.upload_dir_cloud", AsyncMock(return_value=SyncResult(succeeded=3))) as mock_mirror:
        assert main(["mirror", "--source-endpoint", "s3.example.com", "sourcebucket", "origin", "mirror"]) == 0

    source_config, source_prefix, prefix, _ = mock_mirror.call_args.args
    assert isinstance(source_config, S3GatewayConfig)
    assert source_config.bucket == "sourcebucket"
    assert source_config.endpoint == "https://s3.example.com"
    assert source_prefix == "origin"
    assert prefix == "mirror"


def test_delete_dir_root_needs_allow_root(local_tree: Path, bucket_dir: Path):
    main(["upload", str(local_tree), "s3testdir"])

    with pytest.raises(ConfigurationError):
        main(["delete-dir", ""])

    assert read_tree(bucket_dir) == {"s3testdir/test1.txt": b"test1.txt", "s3testdir/test2.txt": b"test2.txt"}

    assert main(["delete-dir", "--allow-root", ""]) == 0
    assert read_tree(bucket_dir) == {}
