import asyncio
import logging
from pathlib import Path
from typing import Any

from . import localfs
from .config import DEFAULT_FILES_CONCURRENCY, BucketSyncConfig, GatewayConfig, TransferPolicy
from .exceptions import ConfigurationError
from .gateways.base import AbstractGateway
from .gateways.factory import gateway_factory
from .listing import RemoteLister, dir_prefix
from .scheduler import DualQueueScheduler
from .transfer import TransferExecutor
from .types import DirectoryEntry, SyncResult, TaskFailure
from .walker import RecursiveWalker

logger = logging.getLogger(__name__)


class BucketSync:
    """Entry point: single file operations and recursive directory syncs against one bucket."""

    def __init__(self, config: GatewayConfig | None = None, gateway: AbstractGateway | None = None):
        self._gateway: AbstractGateway | None = None
        self._bucket: str = ""
        self._lister: RemoteLister | None = None
        self._transfer: TransferExecutor | None = None

        if config is not None:
            self.configure(config, gateway)

    @classmethod
    def from_settings(cls, settings: BucketSyncConfig | None = None) -> "BucketSync":
        settings = settings or BucketSyncConfig()

        return cls(settings.gateway)

    def __str__(self):
        return f"{self.__class__.__name__} ({self._gateway})"

    def configure(self, config: GatewayConfig, gateway: AbstractGateway | None = None):
        self._gateway = gateway or gateway_factory(config)
        self._gateway.connect()
        self._bucket = config.bucket

        self._lister = RemoteLister(self._gateway, self._bucket)
        self._transfer = TransferExecutor(self._gateway, self._bucket)

        logger.info(f"{self} configured for bucket '{self._bucket}'")

    def _require_configured(self) -> tuple[RemoteLister, TransferExecutor]:
        if not self._bucket or self._lister is None or self._transfer is None:
            raise ConfigurationError("Bucket is not defined.")

        return self._lister, self._transfer

    # single object operations

    async def list(self, prefix: str = "", full_data: bool = False) -> list[str] | list[DirectoryEntry]:
        lister, _ = self._require_configured()

        return await lister.list(prefix, full_data)

    async def upload(self, local_path: Path | str, remote_key: str, acl: str = "public-read") -> dict[str, Any]:
        _, transfer = self._require_configured()

        return await transfer.upload(Path(local_path), remote_key, acl)

    async def download(self, remote_key: str, local_path: Path | str) -> Path:
        _, transfer = self._require_configured()

        return await transfer.download(remote_key, Path(local_path))

    async def delete(self, remote_key: str) -> str:
        _, transfer = self._require_configured()

        return await transfer.delete(remote_key)

    async def get_metadata(self, remote_key: str) -> dict[str, Any]:
        _, transfer = self._require_configured()

        return await transfer.get_metadata(remote_key)

    # directory operations

    async def upload_dir(self, local_dir: Path | str, prefix: str = "", policy: TransferPolicy | None = None) -> SyncResult:
        """Upload a local tree below prefix. Empty directories are skipped."""
        lister, transfer = self._require_configured()
        policy = policy or TransferPolicy()

        local_dir = Path(local_dir)
        await localfs.require_dir(local_dir)

        scheduler = DualQueueScheduler.from_policy(policy)
        walker = RecursiveWalker(transfer, lister, scheduler, policy)

        await walker.upload_dir(local_dir, prefix)
        result = await scheduler.join()

        logger.info(f"upload_dir {local_dir} -> '{prefix}' finished, {result}")

        return result

    async def download_dir(self, prefix: str, local_dir: Path | str, policy: TransferPolicy | None = None) -> SyncResult:
        """Download everything below prefix into local_dir, which is created if missing."""
        lister, transfer = self._require_configured()
        policy = policy or TransferPolicy()

        local_dir = Path(local_dir)
        await localfs.makedirs(local_dir)

        scheduler = DualQueueScheduler.from_policy(policy)
        walker = RecursiveWalker(transfer, lister, scheduler, policy)

        await walker.download_dir(prefix, local_dir)
        result = await scheduler.join()

        logger.info(f"download_dir '{prefix}' -> {local_dir} finished, {result}")

        return result

    async def upload_dir_cloud(
        self,
        source_config: GatewayConfig,
        source_prefix: str = "",
        prefix: str = "",
        policy: TransferPolicy | None = None,
        source_gateway: AbstractGateway | None = None,
        staging_dir: Path | None = None,
    ) -> SyncResult:
        """Copy a tree from another bucket (or account) below prefix, relaying every file through local disk."""
        lister, transfer = self._require_configured()
        policy = policy or TransferPolicy()

        if not source_config.bucket:
            raise ConfigurationError("Source bucket is not defined.")

        if staging_dir is not None:
            await localfs.makedirs(staging_dir)

        source_gateway = source_gateway or gateway_factory(source_config)
        source_gateway.connect()

        scheduler = DualQueueScheduler.from_policy(policy)
        walker = RecursiveWalker(
            transfer,
            lister,
            scheduler,
            policy,
            source_transfer=TransferExecutor(source_gateway, source_config.bucket),
            source_lister=RemoteLister(source_gateway, source_config.bucket),
            staging_dir=staging_dir,
        )

        try:
            await walker.upload_dir_cloud(source_prefix, prefix)
            result = await scheduler.join()
        finally:
            source_gateway.disconnect()

        logger.info(f"upload_dir_cloud {source_gateway}/'{source_prefix}' -> '{prefix}' finished, {result}")

        return result

    async def delete_dir(self, prefix: str, concurrency: int = DEFAULT_FILES_CONCURRENCY, allow_root: bool = False) -> SyncResult:
        """Delete every object below prefix. All deletes are settled before the result is reported.

        An empty prefix is the whole bucket and refused unless allow_root is set.
        """
        self._require_configured()

        prefix = dir_prefix(prefix)
        if not prefix and not allow_root:
            raise ConfigurationError("Refusing to delete the bucket root, pass allow_root to empty the whole bucket.")

        return await self._delete_dir(prefix, asyncio.Semaphore(concurrency))

    async def _delete_one(self, remote_key: str, semaphore: asyncio.Semaphore) -> str:
        _, transfer = self._require_configured()

        async with semaphore:
            return await transfer.delete(remote_key)

    async def _delete_dir(self, prefix: str, semaphore: asyncio.Semaphore) -> SyncResult:
        lister, _ = self._require_configured()

        async with semaphore:
            entries = await lister.list(prefix, full_data=True)

        keys = [f"{prefix}{entry.name}" for entry in entries]
        coros = [self._delete_dir(f"{key}/", semaphore) if entry.is_dir else self._delete_one(key, semaphore) for key, entry in zip(keys, entries)]
        outcomes = await asyncio.gather(*coros, return_exceptions=True)

        result = SyncResult()
        for key, outcome in zip(keys, outcomes):
            if isinstance(outcome, SyncResult):
                result.succeeded += outcome.succeeded
                result.failures.extend(outcome.failures)
            elif isinstance(outcome, Exception):
                logger.error(f"failed to delete {key}, error {outcome}")
                result.failures.append(TaskFailure(f"delete {key}", outcome))
            elif isinstance(outcome, BaseException):
                raise outcome
            else:
                logger.debug(f"removed {key}")
                result.succeeded += 1

        return result
