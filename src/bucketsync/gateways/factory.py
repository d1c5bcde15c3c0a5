from ..config import FilesystemGatewayConfig, GatewayConfig, S3GatewayConfig
from .base import AbstractGateway
from .filesystem import FilesystemGateway
from .s3 import S3Gateway


def gateway_factory(gateway_config: GatewayConfig) -> AbstractGateway:
    gateway_map: dict[type[GatewayConfig], type[AbstractGateway]] = {
        S3GatewayConfig: S3Gateway,
        FilesystemGatewayConfig: FilesystemGateway,
    }

    klass = gateway_map[type(gateway_config)]

    return klass(gateway_config)
