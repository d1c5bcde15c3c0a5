import logging
from datetime import datetime, timezone
from pathlib import Path

import pytest

from bucketsync.config import FilesystemGatewayConfig
from bucketsync.driver import BucketSync

logger = logging.getLogger(name=None)


@pytest.fixture
def gateway_config(tmp_path: Path) -> FilesystemGatewayConfig:
    return FilesystemGatewayConfig(root_dir=tmp_path / "buckets", bucket="testbucket")


@pytest.fixture
def bucket_dir(gateway_config: FilesystemGatewayConfig) -> Path:
    return gateway_config.root_dir / gateway_config.bucket


@pytest.fixture
def driver(gateway_config: FilesystemGatewayConfig) -> BucketSync:
    return BucketSync(gateway_config)


@pytest.fixture
def local_tree(tmp_path: Path) -> Path:
    directory = tmp_path / "testDirectory"
    directory.mkdir()

    Path(directory, "test1.txt").write_text("test1.txt")
    Path(directory, "test2.txt").write_text("test2.txt")

    return directory


@pytest.fixture
def nested_tree(tmp_path: Path) -> Path:
    directory = tmp_path / "nested"

    for relpath in ["a.txt", "sub1/b.txt", "sub1/deeper/c.json", "sub2/d.svg", "sub2/e.bin"]:
        Path(directory, relpath).parent.mkdir(parents=True, exist_ok=True)
        Path(directory, relpath).write_bytes(f"content of {relpath}".encode())

    Path(directory, "empty").mkdir()
    Path(directory, "sub1/empty_too").mkdir()

    return directory


@pytest.fixture
def epoch() -> datetime:
    return datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)
