"""Registry for storage gateway classes, keyed by cloud provider type."""

from __future__ import annotations

from typing import Callable, Dict, Type, TypeVar

from deployer.providers import CloudProviderType

G = TypeVar("G", bound=type)

GATEWAY_REGISTRY: Dict[CloudProviderType, Type] = {}


def register_gateway(name: str) -> Callable[[G], G]:
    def decorator(gateway_class: G) -> G:
        GATEWAY_REGISTRY[CloudProviderType(name.lower())] = gateway_class
        return gateway_class

    return decorator
