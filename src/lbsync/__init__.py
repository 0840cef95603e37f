"""
lbsync - keeps external load balancers in sync with cluster nodes.

The reconciliation engine (BackendSession) turns desired monitors, pools and
VIPs into the minimal set of vendor calls, through provider adapters selected
by name from a ProviderRegistry.
"""

from lbsync.errors import (
    CleanupError,
    ConfigError,
    LBSyncError,
    NoSuchProvider,
    ProviderAlreadyRegistered,
    ProviderError,
    TransactionError,
    ValidationError,
)
from lbsync.models import (
    VIP,
    LoadBalancerStatus,
    Monitor,
    Node,
    Pool,
    PoolMember,
    ProviderConfig,
)
from lbsync.providers.registry import ProviderRegistry, default_registry
from lbsync.session import BackendSession, SessionState, diff_members, open_session

__version__ = "0.1.0"

__all__ = [
    "BackendSession",
    "CleanupError",
    "ConfigError",
    "LBSyncError",
    "LoadBalancerStatus",
    "Monitor",
    "Node",
    "NoSuchProvider",
    "Pool",
    "PoolMember",
    "ProviderAlreadyRegistered",
    "ProviderConfig",
    "ProviderError",
    "ProviderRegistry",
    "SessionState",
    "TransactionError",
    "VIP",
    "ValidationError",
    "default_registry",
    "diff_members",
    "open_session",
]
