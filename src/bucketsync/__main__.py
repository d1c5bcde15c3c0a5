#!/usr/bin/python3
"""
bucketsync command line
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from .__version__ import __version__
from .config import BucketSyncConfig, S3GatewayConfig, TransferPolicy
from .driver import BucketSync
from .logging import LoggingService

logger = logging.getLogger(f"{__name__}")

parser = argparse.ArgumentParser(prog="bucketsync", description="Mirror directory trees to and from object storage.")
parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
parser.add_argument("--bucket", action="store", type=str, default=None, help="Bucket, overrides the configured one.")
parser.add_argument("--endpoint", action="store", type=str, default=None, help="Custom endpoint, overrides the configured one.")
parser.add_argument("--overwrite", action="store_true", help="Transfer files that exist on the target.")
parser.add_argument("--overwrite-if-newer", action="store_true", help="Transfer existing files only if the source is newer.")
parser.add_argument("--acl", action="store", type=str, default=None, help="Canned ACL for uploads (default: public-read).")
parser.add_argument("--dirs-concurrency", action="store", type=int, default=None, help="Directories listed concurrently.")
parser.add_argument("--files-concurrency", action="store", type=int, default=None, help="Files transferred concurrently.")

subparsers = parser.add_subparsers(dest="command", required=True)

parser_upload = subparsers.add_parser("upload", help="Upload a local directory below a prefix.")
parser_upload.add_argument("local_dir", type=Path)
parser_upload.add_argument("prefix", nargs="?", default="")

parser_download = subparsers.add_parser("download", help="Download a prefix into a local directory.")
parser_download.add_argument("prefix")
parser_download.add_argument("local_dir", type=Path)

parser_mirror = subparsers.add_parser("mirror", help="Copy a prefix from another bucket, relayed through local disk.")
parser_mirror.add_argument("source_bucket")
parser_mirror.add_argument("source_prefix")
parser_mirror.add_argument("prefix", nargs="?", default="")
parser_mirror.add_argument("--source-endpoint", type=str, default=None)
parser_mirror.add_argument("--source-access-key-id", type=str, default="")
parser_mirror.add_argument("--source-secret-access-key", type=str, default="")

parser_list = subparsers.add_parser("list", help="List one level below a prefix.")
parser_list.add_argument("prefix", nargs="?", default="")

parser_delete = subparsers.add_parser("delete", help="Delete a single object.")
parser_delete.add_argument("key")

parser_delete_dir = subparsers.add_parser("delete-dir", help="Delete every object below a prefix.")
parser_delete_dir.add_argument("prefix")
parser_delete_dir.add_argument("--allow-root", action="store_true", help="Allow an empty prefix, deleting the whole bucket.")


def _policy(args, settings: BucketSyncConfig) -> TransferPolicy:
    overrides = {
        "acl": args.acl,
        "overwrite": args.overwrite or None,
        "overwrite_if_newer": args.overwrite_if_newer or None,
        "dirs_concurrency": args.dirs_concurrency,
        "files_concurrency": args.files_concurrency,
    }

    return TransferPolicy(**{**settings.policy.model_dump(), **{k: v for k, v in overrides.items() if v is not None}})


async def run(args, settings: BucketSyncConfig) -> bool:
    gateway_config = settings.gateway
    updates = {}
    if args.bucket:
        updates["bucket"] = args.bucket
    if args.endpoint and isinstance(gateway_config, S3GatewayConfig):
        updates["endpoint"] = args.endpoint
    gateway_config = type(gateway_config).model_validate({**gateway_config.model_dump(), **updates})

    driver = BucketSync(gateway_config)
    policy = _policy(args, settings)

    if args.command == "upload":
        result = await driver.upload_dir(args.local_dir, args.prefix, policy)
    elif args.command == "download":
        result = await driver.download_dir(args.prefix, args.local_dir, policy)
    elif args.command == "mirror":
        source_config = S3GatewayConfig(
            bucket=args.source_bucket,
            endpoint=args.source_endpoint,
            access_key_id=args.source_access_key_id,
            secret_access_key=args.source_secret_access_key,
        )
        result = await driver.upload_dir_cloud(source_config, args.source_prefix, args.prefix, policy)
    elif args.command == "list":
        for name in await driver.list(args.prefix):
            print(name)
        return True
    elif args.command == "delete":
        await driver.delete(args.key)
        return True
    else:  # delete-dir, as per required subcommand choices
        result = await driver.delete_dir(args.prefix, allow_root=args.allow_root)

    for failure in result.failures:
        logger.error(f"failed: {failure}")

    logger.info(f"{result}")

    return bool(result)


def main(args=None) -> int:
    args = parser.parse_args(args)  # parse here, not above because pytest system exit 2

    settings = BucketSyncConfig()
    logging_service = LoggingService(settings.logging_level)

    try:
        success = asyncio.run(run(args, settings))
    finally:
        logging_service.teardown()

    return 0 if success else 1


if __name__ == "__main__":
    sys.exit(main())
