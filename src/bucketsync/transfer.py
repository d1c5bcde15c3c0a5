import asyncio
import logging
import shutil
from pathlib import Path
from typing import Any

from .exceptions import ConfigurationError, ThrottlingError, TransferError
from .gateways.base import AbstractGateway
from .mime import resolve_content_type

logger = logging.getLogger(__name__)

UPLOAD_MAX_ATTEMPTS = 3
UPLOAD_THROTTLING_BACKOFF = 1  # seconds
DELETE_MAX_ATTEMPTS = 13
DELETE_THROTTLING_BACKOFF = 2  # seconds
DOWNLOAD_CHUNK_SIZE = 1024 * 1024


class TransferExecutor:
    """Single file upload, download and delete against one bucket"""

    def __init__(self, gateway: AbstractGateway, bucket: str):
        self._gateway = gateway
        self._bucket = bucket

    def __str__(self):
        return f"{self.__class__.__name__}: {self._gateway}"

    def _put_file(self, local_path: Path, remote_key: str, acl: str, content_type: str | None) -> dict[str, Any]:
        # the with block releases the read stream on success and on failure
        with open(local_path, "rb") as body:
            return self._gateway.put_object(self._bucket, remote_key, body, acl, content_type)

    async def upload(self, local_path: Path, remote_key: str, acl: str = "public-read", attempt: int = 0) -> dict[str, Any]:
        content_type = await asyncio.to_thread(resolve_content_type, local_path, remote_key)

        while True:
            try:
                return await asyncio.to_thread(self._put_file, local_path, remote_key, acl, content_type)
            except ThrottlingError as exc:
                attempt += 1
                if attempt >= UPLOAD_MAX_ATTEMPTS:
                    logger.error(f"upload of {remote_key} still throttled after {attempt} attempts, giving up")
                    raise TransferError(f"upload of {remote_key} failed permanently due to throttling") from exc

                logger.warning(f"upload of {remote_key} throttled (attempt {attempt}), retrying in {UPLOAD_THROTTLING_BACKOFF}s")
                await asyncio.sleep(UPLOAD_THROTTLING_BACKOFF)

    def _get_file(self, remote_key: str, local_path: Path):
        body = self._gateway.get_object(self._bucket, remote_key)

        try:
            with open(local_path, "wb") as f:
                shutil.copyfileobj(body, f, DOWNLOAD_CHUNK_SIZE)
        except Exception:
            # never leave a partial file that could be taken for a complete one
            local_path.unlink(missing_ok=True)
            raise
        finally:
            body.close()

    async def download(self, remote_key: str, local_path: Path) -> Path:
        if not self._bucket:
            raise ConfigurationError("Bucket is not defined.")

        logger.debug(f"download {remote_key} to {local_path}")

        # returns after the file is closed, so all data is written
        await asyncio.to_thread(self._get_file, remote_key, local_path)

        return local_path

    async def delete(self, remote_key: str, attempt: int = 0) -> str:
        while True:
            try:
                await asyncio.to_thread(self._gateway.delete_object, self._bucket, remote_key)
                return remote_key
            except ThrottlingError:
                attempt += 1
                if attempt >= DELETE_MAX_ATTEMPTS:
                    logger.error(f"delete of {remote_key} still throttled after {attempt} attempts, giving up")
                    raise

                logger.warning(f"delete of {remote_key} throttled (attempt {attempt}), retrying in {DELETE_THROTTLING_BACKOFF}s")
                await asyncio.sleep(DELETE_THROTTLING_BACKOFF)

    async def get_metadata(self, remote_key: str) -> dict[str, Any]:
        metadata = await asyncio.to_thread(self._gateway.head_object, self._bucket, remote_key)
        logger.debug(f"metadata of {remote_key}: {metadata}")

        return metadata
