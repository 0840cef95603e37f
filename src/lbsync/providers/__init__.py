"""
Provider adapters for load balancer appliances.

Each vendor implements the Provider interface from providers.base and is
registered by name in a ProviderRegistry.
"""

from lbsync.providers.base import Provider, Transaction, TransactionalProvider, staged
from lbsync.providers.registry import (
    ENTRY_POINT_GROUP,
    ProviderRegistry,
    build_registry,
    builtin_providers,
    default_registry,
)

__all__ = [
    "ENTRY_POINT_GROUP",
    "Provider",
    "ProviderRegistry",
    "Transaction",
    "TransactionalProvider",
    "build_registry",
    "builtin_providers",
    "default_registry",
    "staged",
]
