"""
HAProxy Provider - Data Plane API v2 adapter.

All configuration changes of a session are staged in one Data Plane
transaction and committed (with a forced reload) when the session closes.
Pools map to backends, VIPs to frontends with a single bind. HAProxy has no
standalone monitor object: the health check is folded into every backend
(httpchk_params) and server (health_check_port, check_ssl).
"""

import logging
from typing import Any, Dict, Optional

from lbsync.config import get_config
from lbsync.errors import ProviderError
from lbsync.models import VIP, Monitor, Node, Pool, PoolMember, ProviderConfig
from lbsync.providers.base import TransactionalProvider, staged
from lbsync.providers.http import RESTClient, build_base_url

logger = logging.getLogger(__name__)

API = "/v2/services/haproxy"
CONFIGURATION = f"{API}/configuration"

# HAProxy has no least-response-time balancing; round robin stands in for it
LB_METHOD_MAP = {
    "ROUNDROBIN": "roundrobin",
    "LEASTCONNECTION": "leastconn",
    "LEASTRESPONSETIME": "roundrobin",
    "SOURCEIPHASH": "source",
}

CHECK_INTERVAL_MS = 1000


class HAProxyProvider(TransactionalProvider):
    """Adapter for HAProxy through the Data Plane API."""

    def __init__(self):
        super().__init__()
        self.client: Optional[RESTClient] = None
        self.monitor = Monitor()
        self.lb_method = "roundrobin"

    @property
    def name(self) -> str:
        return "HAProxy"

    def create(self, config: ProviderConfig, username: str, password: str) -> None:
        super().create(config, username, password)
        self.require_host()
        self.lb_method = LB_METHOD_MAP.get(config.lb_method, "roundrobin")
        self.client = RESTClient(
            build_base_url(config.host, config.port, default_scheme="http"),
            username=username,
            password=password,
            validate_certs=config.validate_certs,
            timeout=get_config().http.timeout,
            debug=config.debug,
        )

    # Transaction handling

    async def read_version(self) -> int:
        await self.client.open()
        _, body = await self.client.request(
            "GET", f"{CONFIGURATION}/version", "read_version", self.config.host
        )
        try:
            return int(body)
        except (TypeError, ValueError) as e:
            raise ProviderError(
                "read_version", self.config.host, f"unexpected version {body!r}"
            ) from e

    async def start_transaction(self, version: int) -> str:
        _, body = await self.client.request(
            "POST", f"{API}/transactions", "start_transaction", self.config.host,
            params={"version": version},
        )
        if not isinstance(body, dict) or not body.get("id"):
            raise ProviderError(
                "start_transaction", self.config.host, f"unexpected response {body!r}"
            )
        return body["id"]

    async def commit_transaction(self, transaction_id: str) -> None:
        logger.info(f"Committing transaction {transaction_id}")
        await self.client.request(
            "PUT", f"{API}/transactions/{transaction_id}", "commit_transaction",
            transaction_id, params={"force_reload": "true"},
        )

    async def delete_transaction(self, transaction_id: str) -> None:
        await self.client.request(
            "DELETE", f"{API}/transactions/{transaction_id}", "delete_transaction",
            transaction_id,
        )

    async def disconnect(self) -> None:
        logger.info("Close connection to HAProxy backend")
        await self.client.close()

    async def _request(
        self,
        method: str,
        path: str,
        operation: str,
        resource: str,
        params: Optional[Dict[str, Any]] = None,
        payload: Optional[Any] = None,
        allow_status=(),
    ):
        transaction = self.require_transaction()
        query = {"transaction_id": transaction.id}
        if params:
            query.update(params)
        return await self.client.request(
            method, f"{CONFIGURATION}{path}", operation, resource,
            params=query, payload=payload, allow_status=allow_status,
        )

    # Monitor management

    @staged
    async def get_monitor(self, monitor: Monitor) -> Optional[Monitor]:
        # Nothing to read back: report an empty monitor so it is always
        # edited, which is what stores it for the backend and server calls.
        return Monitor()

    @staged
    async def create_monitor(self, monitor: Monitor) -> None:
        self.monitor = monitor

    @staged
    async def edit_monitor(self, monitor: Monitor) -> None:
        self.monitor = monitor

    @staged
    async def delete_monitor(self, monitor: Monitor) -> None:
        self.monitor = Monitor()

    # Pool management

    def _backend_body(self, pool: Pool) -> Dict[str, Any]:
        return {
            "name": pool.name,
            "mode": "tcp",
            "balance": {"algorithm": self.lb_method},
            "adv_check": "httpchk",
            "httpchk_params": {"method": "GET", "uri": self.monitor.path or "/"},
        }

    @staged
    async def get_pool(self, pool: Pool) -> Optional[Pool]:
        status, body = await self._request(
            "GET", f"/backends/{pool.name}", "get_pool", pool.name,
            allow_status=(404,),
        )
        if status == 404 or not body:
            return None
        # The health check is inline, so no monitor name is ever reported and
        # an existing backend is always replaced with the current check.
        return Pool(name=body.get("data", {}).get("name", pool.name))

    @staged
    async def create_pool(self, pool: Pool) -> None:
        await self._request(
            "POST", "/backends", "create_pool", pool.name,
            payload=self._backend_body(pool),
        )

    @staged
    async def edit_pool(self, pool: Pool) -> None:
        await self._request(
            "PUT", f"/backends/{pool.name}", "edit_pool", pool.name,
            payload=self._backend_body(pool),
        )
        # Re-apply servers so they pick up the current health check settings
        configured = await self.get_pool_members(pool)
        for member in configured.members:
            await self.edit_pool_member(member, pool, "enable")

    @staged
    async def delete_pool(self, pool: Pool) -> None:
        await self._request("DELETE", f"/backends/{pool.name}", "delete_pool", pool.name)

    # Pool member management

    @staticmethod
    def _server_name(member: PoolMember) -> str:
        return member.node.name or member.node.host

    def _server_body(self, member: PoolMember) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "name": self._server_name(member),
            "address": member.node.host,
            "port": member.port,
            "check": "enabled",
            "inter": CHECK_INTERVAL_MS,
        }
        if self.monitor.port:
            body["health_check_port"] = self.monitor.port
        if self.monitor.monitor_type == "https":
            body["check_ssl"] = "enabled"
            body["verify"] = "none"
        return body

    @staged
    async def get_pool_members(self, pool: Pool) -> Pool:
        _, body = await self._request(
            "GET", "/servers", "get_pool_members", pool.name,
            params={"backend": pool.name},
        )
        members = []
        for server in (body or {}).get("data") or []:
            members.append(
                PoolMember(
                    node=Node(name=server.get("name", ""), host=server["address"]),
                    port=int(server["port"]),
                )
            )
        return Pool(name=pool.name, monitor_name=pool.monitor_name, members=members)

    @staged
    async def create_pool_member(self, member: PoolMember, pool: Pool) -> None:
        await self._request(
            "POST", "/servers", "create_pool_member", f"{pool.name}/{member.address}",
            params={"backend": pool.name}, payload=self._server_body(member),
        )
        logger.info(f"Created node {member.node.name} host {member.node.host}")

    @staged
    async def edit_pool_member(
        self, member: PoolMember, pool: Pool, status: str
    ) -> None:
        body = self._server_body(member)
        body["maintenance"] = "disabled" if status == "enable" else "enabled"
        await self._request(
            "PUT", f"/servers/{self._server_name(member)}", "edit_pool_member",
            f"{pool.name}/{member.address}",
            params={"backend": pool.name}, payload=body,
        )
        logger.info(f"Edited node {member.node.name} host {member.node.host}")

    @staged
    async def delete_pool_member(self, member: PoolMember, pool: Pool) -> None:
        await self._request(
            "DELETE", f"/servers/{self._server_name(member)}", "delete_pool_member",
            f"{pool.name}/{member.address}", params={"backend": pool.name},
            allow_status=(404,),
        )
        logger.info(f"Deleted node {member.node.name} host {member.node.host}")

    # VIP management

    @staged
    async def get_vip(self, vip: VIP) -> Optional[VIP]:
        status, body = await self._request(
            "GET", f"/frontends/{vip.name}", "get_vip", vip.name, allow_status=(404,)
        )
        if status == 404 or not body:
            return None
        frontend = body.get("data", {})
        _, bind_body = await self._request(
            "GET", f"/binds/{vip.name}", "get_vip", vip.name,
            params={"frontend": vip.name},
        )
        bind = (bind_body or {}).get("data", {})
        return VIP(
            name=frontend.get("name", vip.name),
            ip=bind.get("address", ""),
            port=int(bind.get("port") or 0),
            pool_name=frontend.get("default_backend", ""),
        )

    def _frontend_body(self, vip: VIP) -> Dict[str, Any]:
        return {"name": vip.name, "mode": "tcp", "default_backend": vip.pool_name}

    def _bind_body(self, vip: VIP) -> Dict[str, Any]:
        return {"name": vip.name, "address": vip.ip, "port": vip.port}

    @staged
    async def create_vip(self, vip: VIP) -> None:
        await self._request(
            "POST", "/frontends", "create_vip", vip.name,
            payload=self._frontend_body(vip),
        )
        await self._request(
            "POST", "/binds", "create_vip", vip.name,
            params={"frontend": vip.name}, payload=self._bind_body(vip),
        )
        logger.info(f"Created VIP {vip.name}")

    @staged
    async def edit_vip(self, vip: VIP) -> None:
        await self._request(
            "PUT", f"/frontends/{vip.name}", "edit_vip", vip.name,
            payload=self._frontend_body(vip),
        )
        await self._request(
            "PUT", f"/binds/{vip.name}", "edit_vip", vip.name,
            params={"frontend": vip.name}, payload=self._bind_body(vip),
        )

    @staged
    async def delete_vip(self, vip: VIP) -> None:
        await self._request("DELETE", f"/frontends/{vip.name}", "delete_vip", vip.name)
