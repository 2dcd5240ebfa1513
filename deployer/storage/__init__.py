"""Object storage gateways.

This package provides:
- StorageGateway: Abstract base class for the per-provider gateways
- AwsStorageGateway, GcpStorageGateway: S3 and Cloud Storage implementations
- get_storage_gateway: gateway lookup by cloud provider
"""

from __future__ import annotations

from typing import Any, Union

from deployer.providers import CloudProviderType
from deployer.storage.aws import AwsStorageGateway
from deployer.storage.base import (
    BUCKET_NAME_REGEX,
    Bucket,
    StorageGateway,
    generate_bucket_name,
    is_airnode_bucket_name,
)
from deployer.storage.gcp import GcpStorageGateway
from deployer.storage.registry import GATEWAY_REGISTRY, register_gateway

_missing = set(CloudProviderType) - set(GATEWAY_REGISTRY)
if _missing:
    raise ImportError(
        f"No storage gateway registered for: {', '.join(sorted(p.value for p in _missing))}"
    )


def get_storage_gateway(cloud_provider: Union[CloudProviderType, str, Any], **kwargs: Any) -> StorageGateway:
    """Build the storage gateway for a cloud provider.

    Args:
        cloud_provider: A provider model (its settings are passed to the
            gateway), a ``CloudProviderType`` or its string value
        **kwargs: Extra constructor arguments (``session``, ``client``)

    Returns:
        Configured StorageGateway instance

    Raises:
        ValueError: Unknown provider type
    """
    if isinstance(cloud_provider, (CloudProviderType, str)):
        provider_type = CloudProviderType(cloud_provider)
        return GATEWAY_REGISTRY[provider_type](**kwargs)

    provider_type = CloudProviderType(cloud_provider.type)
    return GATEWAY_REGISTRY[provider_type](cloud_provider, **kwargs)


__all__ = [
    "AwsStorageGateway",
    "BUCKET_NAME_REGEX",
    "Bucket",
    "GATEWAY_REGISTRY",
    "GcpStorageGateway",
    "StorageGateway",
    "generate_bucket_name",
    "get_storage_gateway",
    "is_airnode_bucket_name",
    "register_gateway",
]
