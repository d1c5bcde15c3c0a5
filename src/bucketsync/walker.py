import logging
import os
import tempfile
import uuid
from functools import partial
from pathlib import Path

from . import localfs
from .config import TransferPolicy
from .exceptions import TransferError, TransferIntegrityError
from .listing import RemoteLister, dir_prefix
from .scheduler import DualQueueScheduler
from .transfer import TransferExecutor
from .types import FileItem

logger = logging.getLogger(__name__)

UNSAFE_NAMES = (".", "..")


class RecursiveWalker:
    """Lists one directory level, diffs source against target and queues the work on the scheduler.

    Every directory level runs listing, diffing and enqueuing and returns; subdirectories are queued as
    tasks that re-enter the walker. Completion of the whole tree is awaited with scheduler.join().
    """

    def __init__(
        self,
        transfer: TransferExecutor,
        lister: RemoteLister,
        scheduler: DualQueueScheduler,
        policy: TransferPolicy,
        source_transfer: TransferExecutor | None = None,
        source_lister: RemoteLister | None = None,
        staging_dir: Path | None = None,
    ):
        self._transfer = transfer
        self._lister = lister
        self._scheduler = scheduler
        self._policy = policy

        # cloud-to-cloud only
        self._source_transfer = source_transfer
        self._source_lister = source_lister
        self._staging_dir: Path = staging_dir or Path(tempfile.gettempdir())

    def should_transfer(self, source: FileItem, target: FileItem | None) -> bool:
        if target is None:
            return True

        if not self._policy.overwrite:
            return False

        if self._policy.overwrite_if_newer:
            return source.mtime is not None and target.mtime is not None and source.mtime > target.mtime

        return True

    def _accept_remote_name(self, name: str, source: str) -> bool:
        """Remote names become path segments, they must not leave the destination tree"""
        if name not in UNSAFE_NAMES and "/" not in name and os.sep not in name:
            return True

        logger.warning(f"skipping {source}, '{name}' is not a valid path segment")
        self._scheduler.record_failure(f"transfer {source}", TransferError(f"unsafe entry name '{name}' in {source}"))

        return False

    def _file_items(self, entries) -> dict[str, FileItem]:
        return {entry.name: entry for entry in entries if isinstance(entry, FileItem)}

    async def upload_dir(self, local_dir: Path, prefix: str = ""):
        prefix = dir_prefix(prefix)
        logger.debug(f"upload_dir {local_dir} -> '{prefix}'")

        remote_files = self._file_items(await self._lister.list(prefix, full_data=True))
        local_entries = await localfs.list_dir(local_dir)

        for entry in local_entries:
            if entry.is_dir:
                self._scheduler.add_directory(
                    f"upload dir {local_dir / entry.name}",
                    partial(self.upload_dir, local_dir / entry.name, f"{prefix}{entry.name}/"),
                )
            elif self.should_transfer(entry, remote_files.get(entry.name)):
                self._scheduler.add_file(
                    f"upload {local_dir / entry.name}",
                    partial(self._transfer.upload, local_dir / entry.name, f"{prefix}{entry.name}", self._policy.acl),
                )

        self._scheduler.apply_backpressure()

    async def _download_file(self, remote_key: str, local_path: Path):
        # parents created on demand, empty remote prefixes never show up locally
        await localfs.makedirs(local_path.parent)
        await self._transfer.download(remote_key, local_path)

        if not await localfs.exists(local_path):
            raise TransferIntegrityError(f"no file {local_path} after downloading {remote_key}")

    async def download_dir(self, prefix: str, local_dir: Path):
        prefix = dir_prefix(prefix)
        logger.debug(f"download_dir '{prefix}' -> {local_dir}")

        remote_entries = await self._lister.list(prefix, full_data=True)
        local_files = self._file_items(await localfs.list_dir(local_dir))

        for entry in remote_entries:
            if not self._accept_remote_name(entry.name, f"{prefix}{entry.name}"):
                continue

            if entry.is_dir:
                self._scheduler.add_directory(
                    f"download dir {prefix}{entry.name}",
                    partial(self.download_dir, f"{prefix}{entry.name}/", local_dir / entry.name),
                )
            elif self.should_transfer(entry, local_files.get(entry.name)):
                self._scheduler.add_file(
                    f"download {prefix}{entry.name}",
                    partial(self._download_file, f"{prefix}{entry.name}", local_dir / entry.name),
                )

        self._scheduler.apply_backpressure()

    async def _relay_file(self, source_key: str, target_key: str, name: str):
        assert self._source_transfer

        # unique per relay, the same name can be in flight from several directories
        staging_path = self._staging_dir / f"{uuid.uuid4().hex}_{name}"

        try:
            await self._source_transfer.download(source_key, staging_path)

            if not await localfs.exists(staging_path):
                raise TransferIntegrityError(f"no file {staging_path} after downloading {source_key}")

            await self._transfer.upload(staging_path, target_key, self._policy.acl)
        finally:
            await localfs.remove(staging_path)

    async def upload_dir_cloud(self, source_prefix: str, prefix: str = ""):
        assert self._source_lister, "cloud-to-cloud needs a source"

        source_prefix = dir_prefix(source_prefix)
        prefix = dir_prefix(prefix)
        logger.debug(f"upload_dir_cloud '{source_prefix}' -> '{prefix}'")

        target_files = self._file_items(await self._lister.list(prefix, full_data=True))
        source_entries = await self._source_lister.list(source_prefix, full_data=True)

        for entry in source_entries:
            if not self._accept_remote_name(entry.name, f"{source_prefix}{entry.name}"):
                continue

            if entry.is_dir:
                self._scheduler.add_directory(
                    f"relay dir {source_prefix}{entry.name}",
                    partial(self.upload_dir_cloud, f"{source_prefix}{entry.name}/", f"{prefix}{entry.name}/"),
                )
            elif self.should_transfer(entry, target_files.get(entry.name)):
                self._scheduler.add_file(
                    f"relay {source_prefix}{entry.name}",
                    partial(self._relay_file, f"{source_prefix}{entry.name}", f"{prefix}{entry.name}", entry.name),
                )

        self._scheduler.apply_backpressure()
