"""
Backend Session - the reconciliation engine.

Given a connected provider, converts desired Monitor / Pool / VIP values into
the minimal set of vendor calls, and tears everything down again from a
persisted status snapshot. Nothing is cached between invocations: the live
appliance is the source of truth and the diff is recomputed on every call.
"""

import logging
from contextlib import asynccontextmanager
from enum import Enum
from typing import Any, AsyncIterator, Awaitable, Callable, List, Optional, Tuple

from lbsync.errors import CleanupError, LBSyncError, ProviderError
from lbsync.models import (
    VIP,
    LoadBalancerStatus,
    Monitor,
    Pool,
    PoolMember,
    ProviderConfig,
)
from lbsync.providers.base import Provider
from lbsync.providers.registry import ProviderRegistry

logger = logging.getLogger(__name__)


class SessionState(Enum):
    """Lifecycle states of a backend session."""

    CREATED = "created"
    CONNECTED = "connected"
    CLOSED = "closed"
    CLOSED_WITH_ERROR = "closed_with_error"


def diff_members(
    desired: List[PoolMember], existing: List[PoolMember]
) -> Tuple[List[PoolMember], List[PoolMember]]:
    """
    Compute pool member changes keyed by (host, port).

    Node names take no part in the comparison. Input order is preserved.

    Returns:
        Tuple of (to_add, to_remove)
    """
    existing_keys = {m.key for m in existing}
    desired_keys = {m.key for m in desired}
    to_add = [m for m in desired if m.key not in existing_keys]
    to_remove = [m for m in existing if m.key not in desired_keys]
    return to_add, to_remove


class BackendSession:
    """
    One reconcile pass against one appliance for one logical load balancer.

    Sessions are used sequentially and never shared. Open with
    BackendSession.open() (or the open_session() context manager), call the
    handle_* methods, then close().
    """

    def __init__(self, provider: Provider, vendor: str = ""):
        self.provider = provider
        self.vendor = vendor or provider.name
        self.state = SessionState.CREATED

    @classmethod
    async def open(
        cls,
        registry: ProviderRegistry,
        config: ProviderConfig,
        username: str,
        password: str,
    ) -> "BackendSession":
        """
        Look up, create and connect the provider for config.vendor.

        Raises:
            NoSuchProvider: If the vendor is not registered
            ConfigError: If the adapter rejects the configuration
            LBSyncError: If the adapter cannot connect
        """
        factory = registry.lookup(config.vendor)
        provider = factory()
        provider.create(config, username, password)
        session = cls(provider, config.vendor)
        logger.info(f"Created backend for provider {config.vendor}")

        try:
            await provider.connect()
        except BaseException as e:
            session.state = SessionState.CLOSED_WITH_ERROR
            try:
                await provider.close(error=e)
            except Exception as close_error:
                logger.warning(
                    f"Error closing provider {config.vendor} after failed "
                    f"connect: {close_error}"
                )
            raise
        session.state = SessionState.CONNECTED
        return session

    async def close(self, error: Optional[BaseException] = None) -> None:
        """
        End the session.

        Transactional providers commit their staged changes here, or roll them
        back when error is set or a staged call failed. A failed commit leaves
        the session unusable and the error is raised to the caller.
        """
        if self.state in (SessionState.CLOSED, SessionState.CLOSED_WITH_ERROR):
            return
        try:
            await self.provider.close(error=error)
        except BaseException:
            self.state = SessionState.CLOSED_WITH_ERROR
            raise
        if self.provider.transactional and error is not None:
            self.state = SessionState.CLOSED_WITH_ERROR
        else:
            self.state = SessionState.CLOSED
        logger.info(f"Closed backend for provider {self.vendor}")

    def _ensure_connected(self) -> None:
        if self.state is not SessionState.CONNECTED:
            raise LBSyncError(f"backend session is {self.state.value}")

    async def _call(
        self,
        operation: str,
        resource: str,
        fn: Callable[..., Awaitable[Any]],
        *args: Any,
    ) -> Any:
        """Run one adapter call, wrapping foreign errors with operation context."""
        try:
            return await fn(*args)
        except LBSyncError:
            raise
        except Exception as e:
            raise ProviderError(operation, resource, str(e) or repr(e)) from e

    async def handle_monitor(self, monitor: Monitor) -> Monitor:
        """
        Create the monitor, or edit it when port, path or type drifted.

        Returns:
            The monitor as now configured on the appliance
        """
        self._ensure_connected()
        existing = await self._call(
            "get_monitor", monitor.name, self.provider.get_monitor, monitor
        )

        if existing is None:
            logger.info(f"Monitor {monitor.name} does not exist. Creating...")
            await self._call(
                "create_monitor", monitor.name, self.provider.create_monitor, monitor
            )
            logger.info(f"Created monitor {monitor.name} port {monitor.port}")
            return monitor

        logger.info(f"Monitor {existing.name} exists, check if needs update")
        if monitor.differs_from(existing):
            logger.info(f"Monitor {monitor.name} requires update")
            logger.info(f"Need: {monitor}")
            logger.info(f"Have: {existing}")
            await self._call(
                "edit_monitor", monitor.name, self.provider.edit_monitor, monitor
            )
            logger.info(f"Monitor {monitor.name} updated successfully")
        else:
            logger.info(f"Monitor {monitor.name} does not need update")
        return monitor

    async def handle_pool(self, pool: Pool) -> Pool:
        """
        Create the pool and its members, or converge an existing one.

        For an existing pool the monitor reference is edited when it changed,
        then missing members are added before stale members are removed, so
        a rotating pool never drops to zero members.

        Returns:
            The pool as now configured on the appliance
        """
        self._ensure_connected()
        existing = await self._call(
            "get_pool", pool.name, self.provider.get_pool, pool
        )

        if existing is None:
            logger.info(f"Pool {pool.name} does not exist. Creating...")
            await self._call("create_pool", pool.name, self.provider.create_pool, pool)
            logger.info(f"Created pool {pool.name}")
            for member in pool.members:
                logger.info(f"Adding node {member.address} to pool {pool.name}")
                await self._call(
                    "create_pool_member",
                    f"{pool.name}/{member.address}",
                    self.provider.create_pool_member,
                    member,
                    pool,
                )
            return pool

        configured = await self._call(
            "get_pool_members", pool.name, self.provider.get_pool_members, existing
        )
        logger.info(f"Pool {configured.name} exists, check if needs update")
        to_add, to_remove = diff_members(pool.members, configured.members)

        if pool.monitor_name != configured.monitor_name:
            logger.info(f"Pool {pool.name} requires update")
            logger.info(f"Need: monitor {pool.monitor_name}")
            logger.info(f"Have: monitor {configured.monitor_name}")
            await self._call("edit_pool", pool.name, self.provider.edit_pool, pool)

        if not to_add and not to_remove:
            logger.info(f"Pool {pool.name} members do not need update")
            return pool

        logger.info(f"Pool {pool.name} members require update")
        if to_add:
            logger.info(f"Add nodes: {[m.address for m in to_add]}")
            for member in to_add:
                await self._call(
                    "create_pool_member",
                    f"{pool.name}/{member.address}",
                    self.provider.create_pool_member,
                    member,
                    pool,
                )
        if to_remove:
            logger.info(f"Remove nodes: {[m.address for m in to_remove]}")
            for member in to_remove:
                await self._call(
                    "delete_pool_member",
                    f"{pool.name}/{member.address}",
                    self.provider.delete_pool_member,
                    member,
                    pool,
                )
        logger.info(f"Pool {pool.name} updated successfully")
        return pool

    async def handle_vip(self, vip: VIP) -> VIP:
        """
        Create the VIP, or edit it when port, ip or pool changed.

        Returns:
            The VIP as now configured on the appliance
        """
        self._ensure_connected()
        existing = await self._call("get_vip", vip.name, self.provider.get_vip, vip)

        if existing is None:
            logger.info(f"VIP {vip.name} does not exist. Creating...")
            await self._call("create_vip", vip.name, self.provider.create_vip, vip)
            logger.info(
                f"Created VIP {vip.name} {vip.ip}:{vip.port} -> pool {vip.pool_name}"
            )
            return vip

        logger.info(f"VIP {existing.name} exists, check if needs update")
        if vip.differs_from(existing):
            logger.info(f"VIP {vip.name} requires update")
            logger.info(f"Need: {vip}")
            logger.info(f"Have: {existing}")
            await self._call("edit_vip", vip.name, self.provider.edit_vip, vip)
            logger.info(f"VIP {vip.name} updated successfully")
        else:
            logger.info(f"VIP {vip.name} does not need update")
        return vip

    async def handle_cleanup(self, status: LoadBalancerStatus) -> None:
        """
        Tear down everything recorded in a status snapshot.

        Deletes in reverse dependency order: VIPs, pool members, pools, then
        the monitor. Member deletion is best-effort; every other failure
        aborts the cleanup.

        Raises:
            CleanupError: Wrapping the first fatal failure with its resource name
        """
        self._ensure_connected()
        logger.info("Cleanup started")

        for vip in status.vips:
            logger.info(f"Cleaning VIP {vip.name}")
            try:
                await self._call("delete_vip", vip.name, self.provider.delete_vip, vip)
            except LBSyncError as e:
                raise CleanupError("VIP", vip.name, e) from e

        for pool in status.pools:
            for member in pool.members:
                logger.info(f"Cleaning pool member {member.address} of pool {pool.name}")
                try:
                    await self._call(
                        "delete_pool_member",
                        f"{pool.name}/{member.address}",
                        self.provider.delete_pool_member,
                        member,
                        pool,
                    )
                except LBSyncError as e:
                    logger.warning(
                        f"Could not delete pool member {member.node.host} "
                        f"from pool {pool.name}: {e}"
                    )

        for pool in status.pools:
            logger.info(f"Cleaning pool {pool.name}")
            try:
                await self._call(
                    "delete_pool", pool.name, self.provider.delete_pool, pool
                )
            except LBSyncError as e:
                raise CleanupError("pool", pool.name, e) from e

        if status.monitor.is_empty():
            logger.info("No monitor recorded, skipping monitor cleanup")
            return

        logger.info(f"Cleaning monitor {status.monitor.name}")
        try:
            await self._call(
                "delete_monitor",
                status.monitor.name,
                self.provider.delete_monitor,
                status.monitor,
            )
        except LBSyncError as e:
            raise CleanupError("Monitor", status.monitor.name, e) from e


@asynccontextmanager
async def open_session(
    registry: ProviderRegistry,
    config: ProviderConfig,
    username: str,
    password: str,
) -> AsyncIterator[BackendSession]:
    """
    Open a backend session scoped to an async with block.

    Leaving the block normally closes (commits) the session; leaving it with
    an exception, cancellation included, closes it with that error so a
    transactional provider rolls back.
    """
    session = await BackendSession.open(registry, config, username, password)
    try:
        yield session
    except BaseException as e:
        await session.close(error=e)
        raise
    await session.close()
