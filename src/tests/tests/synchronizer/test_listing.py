import asyncio
import logging
from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

import pytest

from bucketsync.exceptions import ThrottlingError
from bucketsync.gateways.base import ListPage, ObjectInfo
from bucketsync.listing import RemoteLister, dir_prefix, list_prefix, strip_prefix
from bucketsync.types import DirectoryItem, FileItem

logger = logging.getLogger(name=None)

MTIME = datetime(2024, 1, 1, tzinfo=timezone.utc)


@pytest.fixture
def mock_gateway():
    return MagicMock()


@pytest.fixture
def lister(mock_gateway: MagicMock):
    return RemoteLister(mock_gateway, "testbucket")


def test_list_prefix_normalization():
    assert list_prefix("") == ""
    assert list_prefix("/") == ""
    assert list_prefix("a/b") == "a/b/"
    assert list_prefix("a/b/") == "a/b/"
    assert list_prefix("a/b//") == "a/b/"


def test_dir_prefix_strips_leading_slash():
    assert dir_prefix("/s3testdir") == "s3testdir/"
    assert dir_prefix("/") == ""
    assert dir_prefix("") == ""


def test_strip_prefix():
    assert strip_prefix("a/b/c.txt", "a/b/") == "c.txt"
    assert strip_prefix("c.txt", "") == "c.txt"
    assert strip_prefix("x/c.txt", "a/b/") == "x/c.txt"


def test_list_strips_prefix(lister: RemoteLister, mock_gateway: MagicMock):
    mock_gateway.list_objects_page.return_value = ListPage(
        common_prefixes=["a/b/d/"],
        contents=[ObjectInfo("a/b/", MTIME, 0), ObjectInfo("a/b/c.txt", MTIME, 9)],
    )

    assert asyncio.run(lister.list("a/b/")) == ["d", "c.txt"]
    mock_gateway.list_objects_page.assert_called_once_with("testbucket", "a/b/", "/", None)


def test_list_full_data(lister: RemoteLister, mock_gateway: MagicMock):
    mock_gateway.list_objects_page.return_value = ListPage(
        common_prefixes=["a/b/d/"],
        contents=[ObjectInfo("a/b/c.txt", MTIME, 9)],
    )

    entries = asyncio.run(lister.list("a/b", full_data=True))

    assert entries == [DirectoryItem("d"), FileItem("c.txt", MTIME, 9)]
    assert entries[0].is_dir
    assert not entries[1].is_dir
    mock_gateway.list_objects_page.assert_called_once_with("testbucket", "a/b/", "/", None)


def test_list_root(lister: RemoteLister, mock_gateway: MagicMock):
    mock_gateway.list_objects_page.return_value = ListPage(common_prefixes=["s3testdir/"], contents=[ObjectInfo("top.txt", MTIME, 1)])

    assert asyncio.run(lister.list("")) == ["s3testdir", "top.txt"]
    mock_gateway.list_objects_page.assert_called_once_with("testbucket", "", "/", None)


def test_list_follows_continuation(lister: RemoteLister, mock_gateway: MagicMock):
    mock_gateway.list_objects_page.side_effect = [
        ListPage(common_prefixes=["p/dir1/"], contents=[ObjectInfo("p/f1", MTIME, 1)], is_truncated=True, next_token="token1"),
        ListPage(common_prefixes=["p/dir2/"], contents=[ObjectInfo("p/f2", MTIME, 2)], is_truncated=True, next_token="token2"),
        ListPage(contents=[ObjectInfo("p/f3", MTIME, 3)]),
    ]

    # directories first then files, per page, no sorting
    assert asyncio.run(lister.list("p")) == ["dir1", "f1", "dir2", "f2", "f3"]

    tokens = [c.args[3] for c in mock_gateway.list_objects_page.call_args_list]
    assert tokens == [None, "token1", "token2"]


def test_list_empty(lister: RemoteLister, mock_gateway: MagicMock):
    mock_gateway.list_objects_page.return_value = ListPage()

    assert asyncio.run(lister.list("nothing/here")) == []


def test_list_retries_throttling_without_cap(lister: RemoteLister, mock_gateway: MagicMock):
    mock_gateway.list_objects_page.side_effect = [ThrottlingError("SlowDown")] * 20 + [ListPage(contents=[ObjectInfo("f", MTIME, 1)])]

    with patch("bucketsync.listing.LIST_THROTTLING_BACKOFF", 0):
        assert asyncio.run(lister.list("")) == ["f"]

    assert mock_gateway.list_objects_page.call_count == 21


def test_list_retries_same_page(lister: RemoteLister, mock_gateway: MagicMock):
    mock_gateway.list_objects_page.side_effect = [
        ListPage(contents=[ObjectInfo("f1", MTIME, 1)], is_truncated=True, next_token="token1"),
        ThrottlingError("SlowDown"),
        ListPage(contents=[ObjectInfo("f2", MTIME, 1)]),
    ]

    with patch("bucketsync.listing.LIST_THROTTLING_BACKOFF", 0):
        assert asyncio.run(lister.list("")) == ["f1", "f2"]

    tokens = [c.args[3] for c in mock_gateway.list_objects_page.call_args_list]
    assert tokens == [None, "token1", "token1"]


def test_list_other_error_aborts(lister: RemoteLister, mock_gateway: MagicMock):
    mock_gateway.list_objects_page.side_effect = [
        ListPage(contents=[ObjectInfo("f1", MTIME, 1)], is_truncated=True, next_token="token1"),
        PermissionError("AccessDenied"),
    ]

    with pytest.raises(PermissionError):
        asyncio.run(lister.list(""))


def test_list_truncated_without_token_stops(lister: RemoteLister, mock_gateway: MagicMock):
    mock_gateway.list_objects_page.return_value = ListPage(contents=[ObjectInfo("f1", MTIME, 1)], is_truncated=True, next_token=None)

    assert asyncio.run(lister.list("")) == ["f1"]
    mock_gateway.list_objects_page.assert_called_once()
