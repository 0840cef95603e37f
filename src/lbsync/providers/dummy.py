"""
Dummy Provider - In-memory load balancer used for dry runs and tests.

Applies every call to an in-process appliance model and records the call
sequence, so the reconciliation engine can be exercised without a vendor.
"""

import copy
import logging
from collections import Counter
from typing import Dict, List, Optional, Tuple

from lbsync.errors import ProviderError
from lbsync.models import VIP, Monitor, Pool, PoolMember
from lbsync.providers.base import Provider

logger = logging.getLogger(__name__)


class DummyProvider(Provider):
    """
    Provider backed by dictionaries instead of an appliance.

    Attributes:
        calls: Ordered (operation, resource name) tuples for every call made
        counts: Number of calls per operation
        fail_on: Operations (or 'operation:resource') that should raise
    """

    def __init__(self):
        super().__init__()
        self.monitors: Dict[str, Monitor] = {}
        self.pools: Dict[str, Pool] = {}
        self.vips: Dict[str, VIP] = {}
        self.disabled_members: Dict[str, set] = {}
        self.calls: List[Tuple[str, str]] = []
        self.counts: Counter = Counter()
        self.fail_on: set = set()
        self.connected = False

    @property
    def name(self) -> str:
        return "dummy"

    def _record(self, operation: str, resource: str) -> None:
        self.calls.append((operation, resource))
        self.counts[operation] += 1
        if operation in self.fail_on or f"{operation}:{resource}" in self.fail_on:
            raise ProviderError(operation, resource, "injected failure")

    def operations(self) -> List[str]:
        """Operation names in call order."""
        return [op for op, _ in self.calls]

    async def connect(self) -> None:
        host = f"{self.config.host}:{self.config.port}" if self.config else ""
        logger.info(f"Connect to dummy backend request: {host}")
        self.connected = True

    async def close(self, error: Optional[BaseException] = None) -> None:
        logger.info("Close connection to dummy backend")
        self.connected = False

    # Monitor management

    async def get_monitor(self, monitor: Monitor) -> Optional[Monitor]:
        self._record("get_monitor", monitor.name)
        found = self.monitors.get(monitor.name)
        return copy.deepcopy(found) if found else None

    async def create_monitor(self, monitor: Monitor) -> None:
        self._record("create_monitor", monitor.name)
        self.monitors[monitor.name] = copy.deepcopy(monitor)

    async def edit_monitor(self, monitor: Monitor) -> None:
        self._record("edit_monitor", monitor.name)
        self.monitors[monitor.name] = copy.deepcopy(monitor)

    async def delete_monitor(self, monitor: Monitor) -> None:
        self._record("delete_monitor", monitor.name)
        self.monitors.pop(monitor.name, None)

    # Pool management

    async def get_pool(self, pool: Pool) -> Optional[Pool]:
        self._record("get_pool", pool.name)
        found = self.pools.get(pool.name)
        if found is None:
            return None
        return Pool(name=found.name, monitor_name=found.monitor_name)

    async def create_pool(self, pool: Pool) -> None:
        self._record("create_pool", pool.name)
        self.pools[pool.name] = Pool(name=pool.name, monitor_name=pool.monitor_name)

    async def edit_pool(self, pool: Pool) -> None:
        self._record("edit_pool", pool.name)
        self.pools[pool.name].monitor_name = pool.monitor_name

    async def delete_pool(self, pool: Pool) -> None:
        self._record("delete_pool", pool.name)
        self.pools.pop(pool.name, None)

    # Pool member management

    async def get_pool_members(self, pool: Pool) -> Pool:
        self._record("get_pool_members", pool.name)
        found = self.pools.get(pool.name)
        members = copy.deepcopy(found.members) if found else []
        return Pool(name=pool.name, monitor_name=pool.monitor_name, members=members)

    async def create_pool_member(self, member: PoolMember, pool: Pool) -> None:
        self._record("create_pool_member", member.address)
        self.pools[pool.name].members.append(copy.deepcopy(member))

    async def edit_pool_member(
        self, member: PoolMember, pool: Pool, status: str
    ) -> None:
        self._record("edit_pool_member", member.address)
        disabled = self.disabled_members.setdefault(pool.name, set())
        if status == "disable":
            disabled.add(member.key)
        else:
            disabled.discard(member.key)

    async def delete_pool_member(self, member: PoolMember, pool: Pool) -> None:
        self._record("delete_pool_member", member.address)
        found = self.pools.get(pool.name)
        if found is None:
            raise ProviderError("delete_pool_member", member.address, "pool not found")
        found.members = [m for m in found.members if m.key != member.key]

    # VIP management

    async def get_vip(self, vip: VIP) -> Optional[VIP]:
        self._record("get_vip", vip.name)
        found = self.vips.get(vip.name)
        return copy.deepcopy(found) if found else None

    async def create_vip(self, vip: VIP) -> None:
        self._record("create_vip", vip.name)
        self.vips[vip.name] = copy.deepcopy(vip)

    async def edit_vip(self, vip: VIP) -> None:
        self._record("edit_vip", vip.name)
        self.vips[vip.name] = copy.deepcopy(vip)

    async def delete_vip(self, vip: VIP) -> None:
        self._record("delete_vip", vip.name)
        self.vips.pop(vip.name, None)
