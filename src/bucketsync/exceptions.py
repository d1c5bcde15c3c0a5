class BucketSyncError(Exception):
    pass


class ConfigurationError(BucketSyncError):
    """Raised before any I/O happens, for example if no bucket is configured."""

    pass


class ThrottlingError(BucketSyncError):
    """The backend asked to slow down (SlowDown or HTTP 503). Retried by the callers with fixed backoff."""

    pass


class TransferError(BucketSyncError):
    pass


class TransferIntegrityError(TransferError):
    """Expected local file is missing after the download step"""

    pass
