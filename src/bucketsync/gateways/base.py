from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, BinaryIO, Generic, TypeVar

from ..config import BaseGatewayConfig

T = TypeVar("T", bound=BaseGatewayConfig)


@dataclass
class ObjectInfo:
    key: str
    last_modified: datetime | None = None
    size: int | None = None


@dataclass
class ListPage:
    """One page of a delimiter listing, as returned by the backend"""

    common_prefixes: list[str] = field(default_factory=list)
    contents: list[ObjectInfo] = field(default_factory=list)
    is_truncated: bool = False
    next_token: str | None = None


class AbstractGateway(ABC, Generic[T]):
    """Blocking object storage primitives. Implementations raise ThrottlingError if the backend asks to slow down."""

    def __init__(self, config: T):
        self._config: T = config

    @abstractmethod
    def connect(self): ...
    @abstractmethod
    def disconnect(self): ...
    @abstractmethod
    def is_connected(self) -> bool: ...

    @abstractmethod
    def put_object(self, bucket: str, key: str, body: BinaryIO, acl: str, content_type: str | None = None) -> dict[str, Any]: ...
    @abstractmethod
    def get_object(self, bucket: str, key: str) -> BinaryIO: ...
    @abstractmethod
    def delete_object(self, bucket: str, key: str): ...
    @abstractmethod
    def list_objects_page(self, bucket: str, prefix: str, delimiter: str, continuation_token: str | None = None) -> ListPage: ...
    @abstractmethod
    def head_object(self, bucket: str, key: str) -> dict[str, Any]: ...

    @abstractmethod
    def __str__(self) -> str: ...
