from .base import AbstractGateway, ListPage, ObjectInfo
from .factory import gateway_factory
from .filesystem import FilesystemGateway
from .s3 import S3Gateway, is_throttling_error

__all__ = [
    "AbstractGateway",
    "ListPage",
    "ObjectInfo",
    "gateway_factory",
    "FilesystemGateway",
    "S3Gateway",
    "is_throttling_error",
]
