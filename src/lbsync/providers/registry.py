"""
Provider Registry - Registration and lookup of provider adapters.

A registry instance is owned by the host process, built once at start-up
from an explicit list of adapter factories, and passed to wherever backend
sessions are opened.
"""

import logging
from importlib.metadata import entry_points
from typing import Callable, Dict, Iterable, List, Optional

from lbsync.errors import NoSuchProvider, ProviderAlreadyRegistered
from lbsync.providers.base import Provider

logger = logging.getLogger(__name__)

ProviderFactory = Callable[[], Provider]

ENTRY_POINT_GROUP = "lbsync.providers"


class ProviderRegistry:
    """
    Name-keyed table of provider factories.

    Names are case-insensitive: they are stored and looked up lower-cased.
    """

    def __init__(self):
        self._factories: Dict[str, ProviderFactory] = {}

    def register(self, name: str, factory: ProviderFactory) -> None:
        """
        Register a provider factory.

        Args:
            name: Vendor name (e.g. 'F5_BigIP')
            factory: Zero-argument callable returning a new Provider

        Raises:
            ProviderAlreadyRegistered: If the name is already taken
        """
        slug = name.lower()
        if slug in self._factories:
            raise ProviderAlreadyRegistered(name)
        self._factories[slug] = factory
        logger.info(f"Registered provider: {name}")

    def lookup(self, name: str) -> ProviderFactory:
        """
        Get the factory registered for a vendor name.

        Raises:
            NoSuchProvider: If the vendor name is not registered
        """
        slug = name.lower()
        if slug not in self._factories:
            raise NoSuchProvider(slug, self.list())
        return self._factories[slug]

    def list(self) -> List[str]:
        """List all registered provider names."""
        return list(self._factories.keys())

    def has(self, name: str) -> bool:
        """Check if a provider is registered."""
        return name.lower() in self._factories


def builtin_providers() -> Dict[str, ProviderFactory]:
    """Vendor adapters that ship with lbsync, keyed by registration name."""
    from lbsync.providers.dummy import DummyProvider
    from lbsync.providers.f5 import F5Provider
    from lbsync.providers.haproxy import HAProxyProvider
    from lbsync.providers.netscaler import NetscalerProvider

    return {
        "Dummy": DummyProvider,
        "F5_BigIP": F5Provider,
        "Netscaler": NetscalerProvider,
        "HAProxy": HAProxyProvider,
    }


def build_registry(
    factories: Dict[str, ProviderFactory],
    enabled: Optional[Iterable[str]] = None,
) -> ProviderRegistry:
    """
    Build a registry from an explicit factory table.

    Args:
        factories: Mapping of vendor name to factory, registered in order
        enabled: Optional vendor names to keep (case-insensitive); None keeps all
    """
    wanted = {n.lower() for n in enabled} if enabled else None
    registry = ProviderRegistry()
    for name, factory in factories.items():
        if wanted is not None and name.lower() not in wanted:
            continue
        try:
            registry.register(name, factory)
        except ProviderAlreadyRegistered as e:
            logger.warning(str(e))
    return registry


def default_registry(enabled: Optional[Iterable[str]] = None) -> ProviderRegistry:
    """
    Build the registry of built-in providers plus installed third-party ones.

    Third-party adapters are discovered through the 'lbsync.providers' entry
    point group; entry points that fail to load are logged and skipped.
    """
    factories = builtin_providers()
    for ep in entry_points(group=ENTRY_POINT_GROUP):
        try:
            factories.setdefault(ep.name, ep.load())
        except Exception as e:
            logger.warning(f"Could not load provider plugin {ep.name}: {e}")
    return build_registry(factories, enabled)
