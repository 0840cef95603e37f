"""
Reconcile driver - one full pass for one load balancer document.

Derives the monitor, pools and VIPs from a load balancer definition plus the
caller's node list, runs them through a backend session, and returns the
status snapshot a later cleanup needs.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List

from lbsync.errors import ConfigError, ValidationError
from lbsync.models import (
    VIP,
    LoadBalancerStatus,
    Monitor,
    Node,
    Pool,
    PoolMember,
    ProviderConfig,
)
from lbsync.providers.registry import ProviderRegistry
from lbsync.session import open_session
from lbsync.validation import validate_load_balancer, validate_status

logger = logging.getLogger(__name__)


@dataclass
class LoadBalancerSpec:
    """Desired state of one logical load balancer."""

    name: str
    vip: str
    ports: List[int]
    monitor: Monitor
    provider: ProviderConfig
    nodes: List[Node] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LoadBalancerSpec":
        monitor = data.get("monitor") or {}
        return cls(
            name=data["name"],
            vip=data["vip"],
            ports=[int(p) for p in data["ports"]],
            monitor=Monitor(
                path=monitor.get("path", ""),
                port=int(monitor.get("port", 0) or 0),
                monitor_type=monitor.get(
                    "monitor_type", monitor.get("monitortype", "http")
                ),
            ),
            provider=ProviderConfig.from_dict(data["provider"]),
            nodes=[Node.from_dict(n) for n in data.get("nodes") or []],
        )


def load_spec(data: Any) -> LoadBalancerSpec:
    """Validate a decoded load balancer document and build its spec."""
    is_valid, error = validate_load_balancer(data)
    if not is_valid:
        raise ValidationError(error)
    return LoadBalancerSpec.from_dict(data)


def load_status(data: Any) -> LoadBalancerStatus:
    """Validate a decoded status snapshot and rebuild it."""
    is_valid, error = validate_status(data)
    if not is_valid:
        raise ValidationError(error)
    return LoadBalancerStatus.from_dict(data)


def build_monitor(spec: LoadBalancerSpec) -> Monitor:
    return Monitor(
        name=f"Monitor-{spec.name}",
        path=spec.monitor.path,
        port=spec.monitor.port,
        monitor_type=spec.monitor.monitor_type,
    )


def build_pools(spec: LoadBalancerSpec, monitor: Monitor) -> List[Pool]:
    """One pool per port, every node a member on that port."""
    return [
        Pool(
            name=f"Pool-{spec.name}-{port}",
            monitor_name=monitor.name,
            members=[PoolMember(node=node, port=port) for node in spec.nodes],
        )
        for port in spec.ports
    ]


def build_vips(spec: LoadBalancerSpec) -> List[VIP]:
    return [
        VIP(
            name=f"VIP-{spec.name}-{port}",
            ip=spec.vip,
            port=port,
            pool_name=f"Pool-{spec.name}-{port}",
        )
        for port in spec.ports
    ]


async def reconcile_load_balancer(
    registry: ProviderRegistry,
    spec: LoadBalancerSpec,
    username: str,
    password: str,
) -> LoadBalancerStatus:
    """
    Converge the appliance to spec: monitor, then pools, then VIPs.

    The session is closed (committed) before the snapshot is returned; any
    failure closes it with the error instead.

    Returns:
        LoadBalancerStatus to persist and later hand to cleanup_load_balancer
    """
    logger.info(f"Reconciling load balancer {spec.name} on {spec.provider.vendor}")
    async with open_session(registry, spec.provider, username, password) as session:
        monitor = await session.handle_monitor(build_monitor(spec))

        pools = []
        for pool in build_pools(spec, monitor):
            pools.append(await session.handle_pool(pool))

        vips = []
        for vip in build_vips(spec):
            vips.append(await session.handle_vip(vip))

    logger.info(f"Load balancer {spec.name} reconciled")
    return LoadBalancerStatus(
        vips=vips,
        pools=pools,
        monitor=monitor,
        ports=list(spec.ports),
        nodes=list(spec.nodes),
        provider=spec.provider,
    )


async def cleanup_load_balancer(
    registry: ProviderRegistry,
    status: LoadBalancerStatus,
    username: str,
    password: str,
) -> None:
    """Remove everything recorded in status from the appliance it names."""
    if status.provider is None:
        raise ConfigError("status snapshot has no provider")
    async with open_session(registry, status.provider, username, password) as session:
        await session.handle_cleanup(status)
    logger.info("Load balancer cleanup finished")
