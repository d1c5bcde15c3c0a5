from .__version__ import __version__
from .driver import BucketSync
from .exceptions import BucketSyncError, ConfigurationError, ThrottlingError, TransferError, TransferIntegrityError
from .types import DirectoryItem, FileItem, SyncResult

__all__ = [
    "__version__",
    "BucketSync",
    "BucketSyncError",
    "ConfigurationError",
    "ThrottlingError",
    "TransferError",
    "TransferIntegrityError",
    "DirectoryItem",
    "FileItem",
    "SyncResult",
]
