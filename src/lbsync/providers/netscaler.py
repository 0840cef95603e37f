"""
Citrix Netscaler (ADC) Provider - Nitro REST adapter.

Pools map to service groups, VIPs to lbvservers. The running configuration is
saved after every change so the appliance survives a reboot.
"""

import logging
from typing import Any, Dict, List, Optional

from lbsync.config import get_config
from lbsync.models import VIP, Monitor, Node, Pool, PoolMember, ProviderConfig
from lbsync.providers.base import Provider
from lbsync.providers.http import RESTClient, build_base_url

logger = logging.getLogger(__name__)

NITRO = "/nitro/v1/config"

# Nitro errorcode for "No such resource"
NO_SUCH_RESOURCE = 258

MONITOR_INTERVAL = 5
MONITOR_DOWNTIME = 16
BACKEND_SSL_PROFILE = "ns_default_ssl_profile_backend"


class NetscalerProvider(Provider):
    """Adapter for Citrix Netscaler via the Nitro API."""

    def __init__(self):
        super().__init__()
        self.client: Optional[RESTClient] = None

    @property
    def name(self) -> str:
        return "Netscaler"

    def create(self, config: ProviderConfig, username: str, password: str) -> None:
        super().create(config, username, password)
        self.require_host()
        self.client = RESTClient(
            build_base_url(config.host, config.port, default_scheme="http"),
            validate_certs=config.validate_certs,
            timeout=get_config().http.timeout,
            debug=config.debug,
            headers={"X-NITRO-USER": username, "X-NITRO-PASS": password},
            basic_auth=False,
        )

    async def connect(self) -> None:
        logger.info(f"Connect to Netscaler backend request: {self.client.base_url}")
        await self.client.open()

    async def close(self, error: Optional[BaseException] = None) -> None:
        try:
            if error is None:
                await self.save_config()
        finally:
            logger.info("Close connection to Netscaler backend")
            await self.client.close()

    async def save_config(self) -> None:
        await self.client.request(
            "POST", f"{NITRO}/nsconfig", "save_config", self.config.host,
            params={"action": "save"}, payload={"nsconfig": {}},
        )
        logger.debug("Netscaler configuration saved")

    async def _find(
        self, resource_type: str, name: str, operation: str
    ) -> List[Dict[str, Any]]:
        """GET a Nitro resource; an empty list means it does not exist."""
        status, body = await self.client.request(
            "GET", f"{NITRO}/{resource_type}/{name}", operation, name,
            allow_status=(404,),
        )
        if status == 404 or not isinstance(body, dict):
            return []
        if body.get("errorcode") == NO_SUCH_RESOURCE:
            return []
        return body.get(resource_type) or []

    async def _change(
        self,
        method: str,
        resource_type: str,
        operation: str,
        resource: str,
        obj: Dict[str, Any],
        params: Optional[Dict[str, str]] = None,
        allow_status=(),
    ) -> None:
        await self.client.request(
            method, f"{NITRO}/{resource_type}", operation, resource,
            params=params, payload={resource_type: obj}, allow_status=allow_status,
        )
        await self.save_config()

    async def _delete(
        self, resource_type: str, name: str, operation: str, args: str = ""
    ) -> None:
        params = {"args": args} if args else None
        await self.client.request(
            "DELETE", f"{NITRO}/{resource_type}/{name}", operation, name, params=params
        )
        await self.save_config()

    # Monitor management

    def _monitor_body(self, monitor: Monitor) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "monitorname": monitor.name,
            "type": "HTTP",
            "interval": MONITOR_INTERVAL,
            "downtime": MONITOR_DOWNTIME,
            "httprequest": "GET " + monitor.path,
        }
        if monitor.port:
            body["destport"] = monitor.port
        if monitor.monitor_type == "https":
            body["secure"] = "YES"
            body["sslprofile"] = BACKEND_SSL_PROFILE
        return body

    async def get_monitor(self, monitor: Monitor) -> Optional[Monitor]:
        found = await self._find("lbmonitor", monitor.name, "get_monitor")
        if not found:
            return None
        m = found[0]
        path = m.get("httprequest", "")
        if path.startswith("GET "):
            path = path[len("GET "):]
        monitor_type = "https" if m.get("secure") == "YES" else m.get("type", "").lower()
        return Monitor(
            name=m.get("monitorname", monitor.name),
            path=path,
            port=int(m.get("destport") or 0),
            monitor_type=monitor_type,
        )

    async def create_monitor(self, monitor: Monitor) -> None:
        await self._change(
            "POST", "lbmonitor", "create_monitor", monitor.name,
            self._monitor_body(monitor), params={"idempotent": "yes"},
        )

    async def edit_monitor(self, monitor: Monitor) -> None:
        await self._change(
            "PUT", "lbmonitor", "edit_monitor", monitor.name,
            self._monitor_body(monitor),
        )

    async def delete_monitor(self, monitor: Monitor) -> None:
        monitor_type = monitor.monitor_type.upper()
        if monitor_type == "HTTPS":
            monitor_type = "HTTP"
        await self._delete(
            "lbmonitor", monitor.name, "delete_monitor",
            args=f"monitorname:{monitor.name},type:{monitor_type}",
        )

    # Pool management

    async def get_pool(self, pool: Pool) -> Optional[Pool]:
        found = await self._find("servicegroup", pool.name, "get_pool")
        if not found:
            logger.info(f"Pool {pool.name} does not exist")
            return None
        return await self.get_pool_members(
            Pool(name=found[0].get("servicegroupname", pool.name))
        )

    async def get_pool_members(self, pool: Pool) -> Pool:
        found = await self._find("servicegroup_binding", pool.name, "get_pool_members")
        binding = found[0] if found else {}

        members = []
        for member in binding.get("servicegroup_servicegroupmember_binding") or []:
            host = member["servername"]
            port = int(member["port"])
            members.append(
                PoolMember(node=Node(name=f"{host}:{port}", host=host), port=port)
            )

        monitor_name = ""
        monitors = binding.get("servicegroup_lbmonitor_binding") or []
        if monitors:
            monitor_name = monitors[0].get("monitor_name", "")
        return Pool(name=pool.name, monitor_name=monitor_name, members=members)

    async def create_pool(self, pool: Pool) -> None:
        await self._change(
            "POST", "servicegroup", "create_pool", pool.name,
            {"servicegroupname": pool.name, "servicetype": "TCP"},
        )
        await self._bind_monitor(pool)

    async def edit_pool(self, pool: Pool) -> None:
        await self._bind_monitor(pool)

    async def _bind_monitor(self, pool: Pool) -> None:
        await self._change(
            "PUT", "servicegroup_lbmonitor_binding", "edit_pool", pool.name,
            {"servicegroupname": pool.name, "monitor_name": pool.monitor_name},
        )

    async def delete_pool(self, pool: Pool) -> None:
        await self._delete("servicegroup", pool.name, "delete_pool")

    # Pool member management

    async def create_pool_member(self, member: PoolMember, pool: Pool) -> None:
        host = member.node.host
        logger.info(f"Creating node {member.node.name} host {host}")
        # 409: the server object is shared across service groups
        await self._change(
            "POST", "server", "create_node", host,
            {"name": host, "ipaddress": host}, allow_status=(409,),
        )
        await self._change(
            "PUT", "servicegroup_servicegroupmember_binding", "create_pool_member",
            f"{pool.name}/{member.address}",
            {"servicegroupname": pool.name, "servername": host, "port": member.port},
        )

    async def edit_pool_member(
        self, member: PoolMember, pool: Pool, status: str
    ) -> None:
        await self._change(
            "POST", "servicegroup", "edit_pool_member", f"{pool.name}/{member.address}",
            {
                "servicegroupname": pool.name,
                "servername": member.node.host,
                "port": member.port,
            },
            params={"action": "disable" if status == "disable" else "enable"},
        )

    async def delete_pool_member(self, member: PoolMember, pool: Pool) -> None:
        logger.info(f"Deleting node {member.node.name} host {member.node.host}")
        await self._delete(
            "servicegroup_servicegroupmember_binding", pool.name, "delete_pool_member",
            args=(
                f"servername:{member.node.host},servicegroupname:{pool.name},"
                f"port:{member.port}"
            ),
        )

    # VIP management

    def _vip_body(self, vip: VIP) -> Dict[str, Any]:
        return {
            "name": vip.name,
            "ipv46": vip.ip,
            "port": vip.port,
            "servicetype": "TCP",
            "lbmethod": self.config.lb_method,
        }

    async def get_vip(self, vip: VIP) -> Optional[VIP]:
        found = await self._find("lbvserver", vip.name, "get_vip")
        if not found:
            return None
        vs = found[0]
        bindings = await self._find("lbvserver_servicegroup_binding", vip.name, "get_vip")
        pool_name = bindings[0].get("servicegroupname", "") if bindings else ""
        return VIP(
            name=vs.get("name", vip.name),
            ip=vs.get("ipv46", ""),
            port=int(vs.get("port") or 0),
            pool_name=pool_name,
        )

    async def create_vip(self, vip: VIP) -> None:
        await self._change("POST", "lbvserver", "create_vip", vip.name, self._vip_body(vip))
        await self._bind_pool(vip)

    async def edit_vip(self, vip: VIP) -> None:
        await self._change("PUT", "lbvserver", "edit_vip", vip.name, self._vip_body(vip))
        await self._bind_pool(vip)

    async def _bind_pool(self, vip: VIP) -> None:
        await self._change(
            "PUT", "lbvserver_servicegroup_binding", "bind_vip_pool", vip.name,
            {"name": vip.name, "servicegroupname": vip.pool_name},
        )

    async def delete_vip(self, vip: VIP) -> None:
        await self._delete("lbvserver", vip.name, "delete_vip")
