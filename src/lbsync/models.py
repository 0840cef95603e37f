"""
Resource model - vendor-neutral load balancer value types.

Monitor, Pool, PoolMember, VIP and Node are value objects: they are rebuilt
on every reconcile pass and only ever compared against what an adapter reports
as live on the appliance.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

LB_METHODS = ("ROUNDROBIN", "LEASTCONNECTION", "LEASTRESPONSETIME", "SOURCEIPHASH")
MONITOR_TYPES = ("http", "https", "tcp", "icmp")


@dataclass
class Monitor:
    """Health check definition polled by the appliance against pool members."""

    name: str = ""
    path: str = ""
    port: int = 0
    monitor_type: str = ""

    def is_empty(self) -> bool:
        """True for the zero monitor (nothing was recorded)."""
        return self == Monitor()

    def differs_from(self, other: "Monitor") -> bool:
        return (
            self.port != other.port
            or self.path != other.path
            or self.monitor_type != other.monitor_type
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "path": self.path,
            "port": self.port,
            "monitor_type": self.monitor_type,
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "Monitor":
        data = data or {}
        return cls(
            name=data.get("name", ""),
            path=data.get("path", ""),
            port=int(data.get("port", 0) or 0),
            monitor_type=data.get("monitor_type", data.get("monitortype", "")),
        )


@dataclass
class Node:
    """A cluster host eligible to receive traffic."""

    name: str = ""
    host: str = ""
    labels: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "host": self.host, "labels": dict(self.labels)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Node":
        return cls(
            name=data.get("name", ""),
            host=data["host"],
            labels=dict(data.get("labels") or {}),
        )


@dataclass
class PoolMember:
    """
    One backend target of a pool.

    Identity for diffing is (node.host, port) only; node.name is ignored.
    """

    node: Node
    port: int

    @property
    def key(self) -> Tuple[str, int]:
        return (self.node.host, self.port)

    @property
    def address(self) -> str:
        return f"{self.node.host}:{self.port}"

    def to_dict(self) -> Dict[str, Any]:
        return {"node": self.node.to_dict(), "port": self.port}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PoolMember":
        return cls(node=Node.from_dict(data["node"]), port=int(data["port"]))


@dataclass
class Pool:
    """Named group of members, watched by the monitor named in monitor_name."""

    name: str
    monitor_name: str = ""
    members: List[PoolMember] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "monitor": self.monitor_name,
            "members": [m.to_dict() for m in self.members],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Pool":
        return cls(
            name=data["name"],
            monitor_name=data.get("monitor", ""),
            members=[PoolMember.from_dict(m) for m in data.get("members") or []],
        )


@dataclass
class VIP:
    """Virtual listener (ip:port) forwarding to pool_name."""

    name: str
    ip: str = ""
    port: int = 0
    pool_name: str = ""

    def differs_from(self, other: "VIP") -> bool:
        return (
            self.port != other.port
            or self.ip != other.ip
            or self.pool_name != other.pool_name
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "ip": self.ip,
            "port": self.port,
            "pool": self.pool_name,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VIP":
        return cls(
            name=data["name"],
            ip=data.get("ip", ""),
            port=int(data.get("port", 0) or 0),
            pool_name=data.get("pool", ""),
        )


@dataclass
class ProviderConfig:
    """
    Connection parameters for a load balancer appliance.

    Opaque to the engine beyond vendor-name dispatch; handed verbatim to the
    adapter's create().
    """

    vendor: str
    host: str
    port: int
    creds: str = ""
    partition: str = ""
    validate_certs: bool = False
    lb_method: str = "ROUNDROBIN"
    debug: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "vendor": self.vendor,
            "host": self.host,
            "port": self.port,
            "creds": self.creds,
            "partition": self.partition,
            "validate_certs": self.validate_certs,
            "lb_method": self.lb_method,
            "debug": self.debug,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProviderConfig":
        return cls(
            vendor=data["vendor"],
            host=data["host"],
            port=int(data["port"]),
            creds=data.get("creds", ""),
            partition=data.get("partition", ""),
            validate_certs=bool(
                data.get("validate_certs", data.get("validatecerts", False))
            ),
            lb_method=(data.get("lb_method") or data.get("lbmethod") or "ROUNDROBIN")
            .upper(),
            debug=bool(data.get("debug", False)),
        )


@dataclass
class LoadBalancerStatus:
    """
    Snapshot of what a reconcile pass applied.

    Persisted by the caller and handed back unchanged to cleanup, which never
    recomputes desired state.
    """

    vips: List[VIP] = field(default_factory=list)
    pools: List[Pool] = field(default_factory=list)
    monitor: Monitor = field(default_factory=Monitor)
    ports: List[int] = field(default_factory=list)
    nodes: List[Node] = field(default_factory=list)
    provider: Optional[ProviderConfig] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "vips": [v.to_dict() for v in self.vips],
            "pools": [p.to_dict() for p in self.pools],
            "monitor": self.monitor.to_dict(),
            "ports": list(self.ports),
            "nodes": [n.to_dict() for n in self.nodes],
            "provider": self.provider.to_dict() if self.provider else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LoadBalancerStatus":
        provider = data.get("provider")
        return cls(
            vips=[VIP.from_dict(v) for v in data.get("vips") or []],
            pools=[Pool.from_dict(p) for p in data.get("pools") or []],
            monitor=Monitor.from_dict(data.get("monitor")),
            ports=[int(p) for p in data.get("ports") or []],
            nodes=[Node.from_dict(n) for n in data.get("nodes") or []],
            provider=ProviderConfig.from_dict(provider) if provider else None,
        )
