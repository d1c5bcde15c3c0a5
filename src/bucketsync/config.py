"""
Configuration of the storage gateways, the transfer policy and the settings used by the command line.
"""

import json
import logging
from pathlib import Path
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Discriminator, Field, SecretStr, Tag, field_validator, model_validator
from pydantic.fields import FieldInfo
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

logger = logging.getLogger(__name__)

DEFAULT_DIRS_CONCURRENCY = 15
DEFAULT_FILES_CONCURRENCY = 50


class BaseGatewayConfig(BaseModel):
    bucket: str = Field(
        default="",
        description="Bucket to synchronize with.",
    )


class S3GatewayConfig(BaseGatewayConfig):
    gateway_type: Literal["s3"] = "s3"

    access_key_id: str = Field(
        default="",
        description="Access key id of the account.",
    )
    secret_access_key: SecretStr = Field(
        default=SecretStr(""),
        description="Secret access key of the account.",
    )
    endpoint: str | None = Field(
        default=None,
        description="Custom endpoint for S3 compatible services. https:// is prepended if no scheme is given.",
    )
    region: str | None = Field(
        default=None,
        description="Region of the bucket, leave empty to use the SDK default.",
    )

    @field_validator("endpoint")
    @classmethod
    def endpoint_with_scheme(cls, value: str | None) -> str | None:
        if not value:
            return None

        if value.startswith("https://") or value.startswith("http://"):
            return value

        return f"https://{value}"


class FilesystemGatewayConfig(BaseGatewayConfig):
    gateway_type: Literal["filesystem"] = "filesystem"

    root_dir: Path = Field(
        default=Path("./buckets/"),
        description="Local directory holding one subdirectory per bucket.",
    )


GatewayConfig = S3GatewayConfig | FilesystemGatewayConfig


def _gateway_type(value: Any) -> str:
    # s3 is the default if the type is omitted, for example when set by environment variables
    if isinstance(value, dict):
        return value.get("gateway_type", "s3")

    return getattr(value, "gateway_type", "s3")


DiscriminatedGatewayConfig = Annotated[
    Annotated[S3GatewayConfig, Tag("s3")] | Annotated[FilesystemGatewayConfig, Tag("filesystem")],
    Discriminator(_gateway_type),
]


class TransferPolicy(BaseModel):
    """Immutable for one top-level sync call and passed unchanged to every recursion level."""

    model_config = ConfigDict(frozen=True)

    acl: str = Field(
        default="public-read",
        description="Canned ACL applied to uploaded objects.",
    )
    overwrite: bool = Field(
        default=False,
        description="Transfer files even if they exist on the target.",
    )
    overwrite_if_newer: bool = Field(
        default=False,
        description="Transfer existing files only if the source is newer. Implies overwrite.",
    )
    dirs_concurrency: int | None = Field(
        default=None,
        ge=1,
        description="Number of directories listed concurrently. Default is used if not set.",
    )
    files_concurrency: int | None = Field(
        default=None,
        ge=1,
        description="Number of files transferred concurrently. Default is used if not set.",
    )

    @model_validator(mode="before")
    @classmethod
    def newer_implies_overwrite(cls, data: Any) -> Any:
        if isinstance(data, dict) and data.get("overwrite_if_newer"):
            data = {**data, "overwrite": True}

        return data


class JsonConfigSettingsSource(PydanticBaseSettingsSource):
    """
    Loads the settings from the json file given as json_file in the model_config.
    A missing file is ignored and the defaults are used.
    """

    def get_field_value(self, field: FieldInfo, field_name: str) -> tuple[Any, str, bool]:
        field_value = None
        json_file = self.config.get("json_file")

        if json_file:
            try:
                file_content_json = json.loads(Path(str(json_file)).read_text(self.config.get("json_file_encoding")))
                field_value = file_content_json.get(field_name)
            except FileNotFoundError:
                # not yet created, using defaults
                pass

        return field_value, field_name, False

    def __call__(self) -> dict[str, Any]:
        d: dict[str, Any] = {}

        for field_name, field in self.settings_cls.model_fields.items():
            field_value, field_key, _ = self.get_field_value(field, field_name)
            if field_value is not None:
                d[field_key] = field_value

        return d


class BucketSyncConfig(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="bucketsync_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
        json_file="./config/bucketsync.json",
        json_file_encoding="utf-8",
    )

    logging_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Log verbosity.",
    )
    gateway: DiscriminatedGatewayConfig = Field(
        default=S3GatewayConfig(),
    )
    policy: TransferPolicy = TransferPolicy()

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (init_settings, env_settings, dotenv_settings, JsonConfigSettingsSource(settings_cls), file_secret_settings)
