"""
Local filesystem helpers. All blocking calls are run in a worker thread to keep the event loop responsive.
"""

import asyncio
import os
from datetime import datetime, timezone
from pathlib import Path

from .types import DirectoryEntry, DirectoryItem, FileItem


def _scan_dir(path: Path) -> list[DirectoryEntry]:
    if not path.is_dir():
        return []

    out: list[DirectoryEntry] = []
    with os.scandir(path) as it:
        for entry in it:
            if entry.is_dir():
                out.append(DirectoryItem(entry.name))
            elif entry.is_file():
                stat = entry.stat()
                out.append(FileItem(entry.name, datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc), stat.st_size))

    # scandir order is arbitrary, keep it stable across platforms
    out.sort(key=lambda e: e.name)

    return out


async def list_dir(path: Path) -> list[DirectoryEntry]:
    return await asyncio.to_thread(_scan_dir, path)


async def exists(path: Path) -> bool:
    return await asyncio.to_thread(path.is_file)


async def makedirs(path: Path):
    await asyncio.to_thread(path.mkdir, parents=True, exist_ok=True)


async def remove(path: Path):
    await asyncio.to_thread(path.unlink, missing_ok=True)


def _check_dir(path: Path):
    if not path.exists():
        raise FileNotFoundError(f"local directory {path} does not exist")

    if not path.is_dir():
        raise NotADirectoryError(f"{path} is not a directory")


async def require_dir(path: Path):
    await asyncio.to_thread(_check_dir, path)
