import asyncio
import logging

from .exceptions import ThrottlingError
from .gateways.base import AbstractGateway
from .types import DirectoryEntry, DirectoryItem, FileItem

logger = logging.getLogger(__name__)

LIST_THROTTLING_BACKOFF = 1  # seconds, retried without cap


def list_prefix(prefix: str) -> str:
    """Prefix as sent to the backend: exactly one trailing slash, root is the empty string"""
    prefix = prefix.rstrip("/") + "/"

    return "" if prefix == "/" else prefix


def dir_prefix(prefix: str) -> str:
    """Prefix used to build child keys during recursion, without leading slash"""
    return list_prefix(prefix.lstrip("/"))


def strip_prefix(key: str, prefix: str) -> str:
    return key[len(prefix) :] if prefix and key.startswith(prefix) else key


class RemoteLister:
    def __init__(self, gateway: AbstractGateway, bucket: str):
        self._gateway = gateway
        self._bucket = bucket

    def __str__(self):
        return f"{self.__class__.__name__}: {self._gateway}"

    async def list(self, prefix: str, full_data: bool = False) -> list[str] | list[DirectoryEntry]:
        """List one level below prefix, directories first, then files, per page in backend order.

        Returns bare names by default, DirectoryItem/FileItem entries if full_data is set.
        """
        prefix = list_prefix(prefix)
        entries: list[DirectoryEntry] = []
        token: str | None = None

        while True:
            try:
                page = await asyncio.to_thread(self._gateway.list_objects_page, self._bucket, prefix, "/", token)
            except ThrottlingError:
                logger.warning(f"throttled listing '{prefix}', retrying in {LIST_THROTTLING_BACKOFF}s")
                await asyncio.sleep(LIST_THROTTLING_BACKOFF)
                continue

            for common_prefix in page.common_prefixes:
                name = strip_prefix(common_prefix, prefix).rstrip("/")
                if name:
                    entries.append(DirectoryItem(name))

            for obj in page.contents:
                name = strip_prefix(obj.key, prefix)
                # empty name is the directory marker object of the prefix itself
                if name:
                    entries.append(FileItem(name, obj.last_modified, obj.size))

            if not page.is_truncated:
                break

            if not page.next_token:
                # restarting without a token would list the first page again
                logger.warning(f"listing '{prefix}' truncated without continuation token, stopping after {len(entries)} entries")
                break

            token = page.next_token

        logger.debug(f"listed {len(entries)} entries below '{prefix}'")

        if full_data:
            return entries

        return [entry.name for entry in entries]
