"""
F5 BIG-IP Provider - iControl REST adapter.

Objects are created in the configured partition under /mgmt/tm/ltm and
changes apply immediately.
"""

import logging
from typing import Any, Dict, Optional

from lbsync.config import get_config
from lbsync.errors import ConfigError
from lbsync.models import VIP, Monitor, Node, Pool, PoolMember, ProviderConfig
from lbsync.providers.base import Provider
from lbsync.providers.http import RESTClient, build_base_url

logger = logging.getLogger(__name__)

LTM = "/mgmt/tm/ltm"

MONITOR_INTERVAL = 5
MONITOR_TIMEOUT = 16


class F5Provider(Provider):
    """Adapter for F5 BIG-IP LTM."""

    def __init__(self):
        super().__init__()
        self.partition = ""
        self.client: Optional[RESTClient] = None

    @property
    def name(self) -> str:
        return "F5_BigIP"

    def create(self, config: ProviderConfig, username: str, password: str) -> None:
        super().create(config, username, password)
        self.require_host()
        if not config.partition:
            raise ConfigError("F5 provider requires a partition")
        self.partition = config.partition.strip("/")
        self.client = RESTClient(
            build_base_url(config.host, config.port),
            username=username,
            password=password,
            validate_certs=config.validate_certs,
            timeout=get_config().http.timeout,
            debug=config.debug,
        )

    @property
    def prefix(self) -> str:
        """Full-path prefix of objects in the partition, e.g. '/Common/'."""
        return f"/{self.partition}/"

    def _ref(self, name: str) -> str:
        """Partition-qualified path segment, e.g. '~Common~name'."""
        return f"~{self.partition}~{name}"

    def _strip(self, value: str) -> str:
        value = (value or "").strip()
        if value.startswith(self.prefix):
            return value[len(self.prefix):]
        return value.rsplit("/", 1)[-1]

    async def connect(self) -> None:
        logger.info(f"Connect to F5 backend request: {self.client.base_url}")
        await self.client.open()
        await self.health_check()

    async def health_check(self) -> None:
        await self.client.request("GET", f"{LTM}/pool", "health_check", self.config.host)

    async def close(self, error: Optional[BaseException] = None) -> None:
        logger.info("Close connection to F5 backend")
        await self.client.close()

    # Monitor management

    def _monitor_path(self, monitor: Monitor) -> str:
        return f"{LTM}/monitor/{monitor.monitor_type}/{monitor.name}"

    def _monitor_body(self, monitor: Monitor) -> Dict[str, Any]:
        return {
            "name": monitor.name,
            "partition": self.partition,
            "defaultsFrom": self.prefix + monitor.monitor_type,
            "interval": MONITOR_INTERVAL,
            "timeout": MONITOR_TIMEOUT,
            "send": "GET " + monitor.path,
            "recv": "",
        }

    async def get_monitor(self, monitor: Monitor) -> Optional[Monitor]:
        status, body = await self.client.request(
            "GET", self._monitor_path(monitor), "get_monitor", monitor.name,
            allow_status=(404,),
        )
        if status == 404 or not body:
            return None

        port = 0
        destination = body.get("destination", "")
        # "*:8080" on newer releases, "*.8080" on older ones
        tail = destination.replace(":", ".").rsplit(".", 1)[-1]
        if tail.isdigit():
            port = int(tail)

        send = body.get("send", "")
        if send.startswith("GET "):
            send = send[len("GET "):]
        return Monitor(
            name=body.get("name", monitor.name),
            path=send.strip(),
            port=port,
            monitor_type=body.get("defaultsFrom", "").rsplit("/", 1)[-1],
        )

    async def create_monitor(self, monitor: Monitor) -> None:
        payload = self._monitor_body(monitor)
        if monitor.port:
            payload["destination"] = f"*.{monitor.port}"
        await self.client.request(
            "POST", f"{LTM}/monitor/{monitor.monitor_type}", "create_monitor",
            monitor.name, payload=payload,
        )

    async def edit_monitor(self, monitor: Monitor) -> None:
        # The destination of an existing monitor cannot be modified in place
        await self.client.request(
            "PATCH", self._monitor_path(monitor), "edit_monitor", monitor.name,
            payload=self._monitor_body(monitor),
        )

    async def delete_monitor(self, monitor: Monitor) -> None:
        await self.client.request(
            "DELETE", self._monitor_path(monitor), "delete_monitor", monitor.name
        )

    # Pool management

    def _pool_path(self, pool: Pool) -> str:
        return f"{LTM}/pool/{pool.name}"

    async def get_pool(self, pool: Pool) -> Optional[Pool]:
        status, body = await self.client.request(
            "GET", self._pool_path(pool), "get_pool", pool.name, allow_status=(404,)
        )
        if status == 404 or not body:
            return None
        return Pool(
            name=body.get("name", pool.name),
            monitor_name=self._strip(body.get("monitor", "")),
        )

    async def get_pool_members(self, pool: Pool) -> Pool:
        _, body = await self.client.request(
            "GET", f"{self._pool_path(pool)}/members", "get_pool_members", pool.name
        )
        members = []
        for item in (body or {}).get("items", []):
            # address carries a route domain suffix ("10.0.0.1%0")
            host = item.get("address", "").split("%")[0]
            port = int(item.get("name", "").rsplit(":", 1)[-1])
            members.append(PoolMember(node=Node(name=host, host=host), port=port))
        return Pool(name=pool.name, monitor_name=pool.monitor_name, members=members)

    async def create_pool(self, pool: Pool) -> None:
        await self.client.request(
            "POST", f"{LTM}/pool", "create_pool", pool.name,
            payload={"name": pool.name, "partition": self.partition},
        )
        await self.edit_pool(pool)

    async def edit_pool(self, pool: Pool) -> None:
        # Binds (or rebinds) the monitor
        await self.client.request(
            "PUT", self._pool_path(pool), "edit_pool", pool.name,
            payload={"name": pool.name, "monitor": self.prefix + pool.monitor_name},
        )

    async def delete_pool(self, pool: Pool) -> None:
        await self.client.request(
            "DELETE", self._pool_path(pool), "delete_pool", pool.name
        )

    # Pool member management

    def _member_path(self, member: PoolMember, pool: Pool) -> str:
        return f"{LTM}/pool/{self._ref(pool.name)}/members/{self._ref(member.address)}"

    async def create_pool_member(self, member: PoolMember, pool: Pool) -> None:
        host = member.node.host
        status, _ = await self.client.request(
            "GET", f"{LTM}/node/{host}", "get_node", host,
            allow_status=(404,),
        )
        if status == 404:
            logger.info(f"Creating F5 node {host}")
            await self.client.request(
                "POST", f"{LTM}/node", "create_node", host,
                payload={"name": host, "address": host, "partition": self.partition},
            )
        await self.client.request(
            "POST", f"{self._pool_path(pool)}/members", "create_pool_member",
            f"{pool.name}/{member.address}",
            payload={"name": member.address, "partition": self.partition},
        )

    async def edit_pool_member(
        self, member: PoolMember, pool: Pool, status: str
    ) -> None:
        session = "user-disabled" if status == "disable" else "user-enabled"
        await self.client.request(
            "PATCH", self._member_path(member, pool), "edit_pool_member",
            f"{pool.name}/{member.address}", payload={"session": session},
        )

    async def delete_pool_member(self, member: PoolMember, pool: Pool) -> None:
        await self.client.request(
            "DELETE", self._member_path(member, pool), "delete_pool_member",
            f"{pool.name}/{member.address}",
        )

    # VIP management

    def _vip_path(self, vip: VIP) -> str:
        return f"{LTM}/virtual/{vip.name}"

    def _vip_body(self, vip: VIP) -> Dict[str, Any]:
        return {
            "name": vip.name,
            "partition": self.partition,
            "destination": f"{self.prefix}{vip.ip}:{vip.port}",
            "pool": self.prefix + vip.pool_name,
            "sourceAddressTranslation": {"type": "automap"},
            "profiles": [
                {
                    "name": "fastL4",
                    "fullPath": "/Common/fastL4",
                    "partition": "Common",
                    "context": "all",
                }
            ],
        }

    async def get_vip(self, vip: VIP) -> Optional[VIP]:
        status, body = await self.client.request(
            "GET", self._vip_path(vip), "get_vip", vip.name, allow_status=(404,)
        )
        if status == 404 or not body:
            return None
        destination = self._strip(body.get("destination", ""))
        ip, _, port = destination.rpartition(":")
        return VIP(
            name=body.get("name", vip.name),
            ip=ip,
            port=int(port) if port.isdigit() else 0,
            pool_name=self._strip(body.get("pool", "")),
        )

    async def create_vip(self, vip: VIP) -> None:
        await self.client.request(
            "POST", f"{LTM}/virtual", "create_vip", vip.name,
            payload=self._vip_body(vip),
        )

    async def edit_vip(self, vip: VIP) -> None:
        await self.client.request(
            "PATCH", f"{LTM}/virtual/{self._ref(vip.name)}", "edit_vip", vip.name,
            payload=self._vip_body(vip),
        )

    async def delete_vip(self, vip: VIP) -> None:
        await self.client.request("DELETE", self._vip_path(vip), "delete_vip", vip.name)
