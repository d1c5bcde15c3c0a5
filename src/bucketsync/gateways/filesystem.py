import logging
import shutil
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, BinaryIO

from ..config import FilesystemGatewayConfig
from .base import AbstractGateway, ListPage, ObjectInfo

logger = logging.getLogger(__name__)


class FilesystemGateway(AbstractGateway[FilesystemGatewayConfig]):
    """A local directory that behaves like a bucket. Keys map 1:1 to relative file paths below root_dir/bucket."""

    def __init__(self, config: FilesystemGatewayConfig, max_keys: int = 1000):
        super().__init__(config)

        self._root_dir: Path = config.root_dir
        self._max_keys: int = max_keys

    def __str__(self):
        return f"Filesystem: {self._root_dir}"

    def connect(self):
        assert isinstance(self._root_dir, Path), "no root directory given!"

        if self._root_dir.exists() and not self._root_dir.is_dir():
            raise ValueError(f"root_dir {self._root_dir} exists but is not a directory. The root needs to be a directory.")

        if not self._root_dir.exists():
            logger.info(f"root dir {self._root_dir} not existing, creating")
            self._root_dir.mkdir(parents=True, exist_ok=True)

        logger.info("filesystem ready to sync")

    def disconnect(self): ...

    def is_connected(self) -> bool:
        if not self._root_dir:
            return False

        return self._root_dir.is_dir()

    def _object_path(self, bucket: str, key: str) -> Path:
        if not bucket:
            raise ValueError("no bucket given!")

        return self._root_dir.joinpath(bucket, key)

    def put_object(self, bucket: str, key: str, body: BinaryIO, acl: str, content_type: str | None = None) -> dict[str, Any]:
        target = self._object_path(bucket, key)

        if key.endswith("/"):
            # directory marker, folders exist implicitly
            return {}

        target.parent.mkdir(parents=True, exist_ok=True)
        with open(target, "wb") as f:
            shutil.copyfileobj(body, f)

        logger.debug(f"stored {key} ({content_type}, acl {acl} ignored)")

        return {}

    def get_object(self, bucket: str, key: str) -> BinaryIO:
        return open(self._object_path(bucket, key), "rb")

    def delete_object(self, bucket: str, key: str):
        target = self._object_path(bucket, key)
        target.unlink(missing_ok=True)

        # prefixes vanish with their last object, same as on object storages
        bucket_dir = self._root_dir.joinpath(bucket)
        folder = target.parent
        while folder != bucket_dir and bucket_dir in folder.parents and folder.is_dir() and not any(folder.iterdir()):
            folder.rmdir()
            folder = folder.parent

    def _all_keys(self, bucket: str) -> list[str]:
        bucket_dir = self._object_path(bucket, "")
        if not bucket_dir.is_dir():
            return []

        return sorted(path.relative_to(bucket_dir).as_posix() for path in bucket_dir.rglob("*") if path.is_file())

    def list_objects_page(self, bucket: str, prefix: str, delimiter: str, continuation_token: str | None = None) -> ListPage:
        entries: set[str] = set()  # keys and common prefixes

        for key in self._all_keys(bucket):
            if not key.startswith(prefix):
                continue

            rest = key[len(prefix) :]
            if delimiter and delimiter in rest:
                entries.add(prefix + rest.split(delimiter, 1)[0] + delimiter)
            else:
                entries.add(key)

        names = sorted(name for name in entries if continuation_token is None or name > continuation_token)
        page_names = names[: self._max_keys]

        page = ListPage(is_truncated=len(names) > len(page_names))
        if page.is_truncated:
            page.next_token = page_names[-1]

        for name in page_names:
            if delimiter and name.endswith(delimiter):
                page.common_prefixes.append(name)
            else:
                stat = self._object_path(bucket, name).stat()
                page.contents.append(ObjectInfo(name, datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc), stat.st_size))

        return page

    def head_object(self, bucket: str, key: str) -> dict[str, Any]:
        stat = self._object_path(bucket, key).stat()

        return {
            "ContentLength": stat.st_size,
            "LastModified": datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
        }
