import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any, BinaryIO

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import ClientError

from ..config import S3GatewayConfig
from ..exceptions import ThrottlingError
from .base import AbstractGateway, ListPage, ObjectInfo

logger = logging.getLogger(__name__)

# retries are done by the transfer executor and the lister with their own attempt caps
BOTO_CONFIG = BotoConfig(retries={"mode": "standard", "total_max_attempts": 1})


def is_throttling_error(exc: Exception) -> bool:
    if not isinstance(exc, ClientError):
        return False

    code = exc.response.get("Error", {}).get("Code")
    status = exc.response.get("ResponseMetadata", {}).get("HTTPStatusCode")

    return code == "SlowDown" or status == 503


@contextmanager
def _classify_errors() -> Iterator[None]:
    try:
        yield
    except ClientError as exc:
        if is_throttling_error(exc):
            raise ThrottlingError(str(exc)) from exc
        raise


class S3Gateway(AbstractGateway[S3GatewayConfig]):
    def __init__(self, config: S3GatewayConfig, client: Any = None):
        super().__init__(config)

        self._endpoint: str | None = config.endpoint
        self._client: Any = client

    def __str__(self):
        return f"S3: {self._endpoint or 'aws'}/{self._config.bucket}"

    def connect(self):
        if self._client is not None:
            return

        session = boto3.session.Session()
        self._client = session.client(
            "s3",
            aws_access_key_id=self._config.access_key_id or None,
            aws_secret_access_key=self._config.secret_access_key.get_secret_value() or None,
            endpoint_url=self._endpoint,
            region_name=self._config.region,
            config=BOTO_CONFIG,
        )

        logger.info(f"{self} client created")

    def disconnect(self):
        # boto3 clients are stateless, keep the client for reconnects
        pass

    def is_connected(self) -> bool:
        return self._client is not None

    def put_object(self, bucket: str, key: str, body: BinaryIO, acl: str, content_type: str | None = None) -> dict[str, Any]:
        assert self._client

        params: dict[str, Any] = {"Bucket": bucket, "Key": key, "Body": body, "ACL": acl}
        if content_type:
            params["ContentType"] = content_type

        with _classify_errors():
            return self._client.put_object(**params)

    def get_object(self, bucket: str, key: str) -> BinaryIO:
        assert self._client

        with _classify_errors():
            response = self._client.get_object(Bucket=bucket, Key=key)

        return response["Body"]

    def delete_object(self, bucket: str, key: str):
        assert self._client

        with _classify_errors():
            self._client.delete_object(Bucket=bucket, Key=key)

    def list_objects_page(self, bucket: str, prefix: str, delimiter: str, continuation_token: str | None = None) -> ListPage:
        assert self._client

        params: dict[str, Any] = {"Bucket": bucket, "Prefix": prefix, "Delimiter": delimiter}
        if continuation_token:
            params["ContinuationToken"] = continuation_token

        with _classify_errors():
            response = self._client.list_objects_v2(**params)

        return ListPage(
            common_prefixes=[el["Prefix"] for el in response.get("CommonPrefixes", []) if "Prefix" in el],
            contents=[ObjectInfo(el["Key"], el.get("LastModified"), el.get("Size")) for el in response.get("Contents", []) if "Key" in el],
            is_truncated=bool(response.get("IsTruncated", False)),
            next_token=response.get("NextContinuationToken"),
        )

    def head_object(self, bucket: str, key: str) -> dict[str, Any]:
        assert self._client

        with _classify_errors():
            return self._client.head_object(Bucket=bucket, Key=key)
