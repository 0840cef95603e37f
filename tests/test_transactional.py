"""Unit tests for the transactional provider base (providers/base.py)."""

import asyncio

import pytest

from lbsync.errors import ProviderError, TransactionError
from lbsync.models import Monitor, Node, Pool, PoolMember, ProviderConfig
from lbsync.providers.base import Transaction, TransactionalProvider, TransactionState, staged
from lbsync.providers.registry import ProviderRegistry
from lbsync.session import BackendSession, SessionState, open_session


class StagingProvider(TransactionalProvider):
    """Transactional provider that stages calls in memory."""

    def __init__(self):
        super().__init__()
        self.log = []
        self.staged_calls = []
        self.fail_on = set()
        self.fail_commit = False
        self.fail_delete = False
        self.disconnected = False

    @property
    def name(self):
        return "staging"

    async def read_version(self):
        self.log.append("read_version")
        return 7

    async def start_transaction(self, version):
        self.log.append(f"start_transaction:{version}")
        return "tx-1"

    async def commit_transaction(self, transaction_id):
        self.log.append(f"commit:{transaction_id}")
        if self.fail_commit:
            raise ProviderError("commit_transaction", transaction_id, "version mismatch")

    async def delete_transaction(self, transaction_id):
        self.log.append(f"delete:{transaction_id}")
        if self.fail_delete:
            raise ProviderError("delete_transaction", transaction_id, "gone")

    async def disconnect(self):
        self.disconnected = True

    async def _stage(self, operation, resource):
        self.require_transaction()
        self.staged_calls.append((operation, resource))
        if operation in self.fail_on:
            raise ProviderError(operation, resource, "rejected")

    @staged
    async def get_monitor(self, monitor):
        await self._stage("get_monitor", monitor.name)
        return None

    @staged
    async def create_monitor(self, monitor):
        await self._stage("create_monitor", monitor.name)

    @staged
    async def edit_monitor(self, monitor):
        await self._stage("edit_monitor", monitor.name)

    @staged
    async def delete_monitor(self, monitor):
        await self._stage("delete_monitor", monitor.name)

    @staged
    async def get_pool(self, pool):
        await self._stage("get_pool", pool.name)
        return None

    @staged
    async def create_pool(self, pool):
        await self._stage("create_pool", pool.name)

    @staged
    async def edit_pool(self, pool):
        await self._stage("edit_pool", pool.name)

    @staged
    async def delete_pool(self, pool):
        await self._stage("delete_pool", pool.name)

    @staged
    async def get_pool_members(self, pool):
        await self._stage("get_pool_members", pool.name)
        return Pool(name=pool.name)

    @staged
    async def create_pool_member(self, member, pool):
        await self._stage("create_pool_member", member.address)

    @staged
    async def edit_pool_member(self, member, pool, status):
        await self._stage("edit_pool_member", member.address)

    @staged
    async def delete_pool_member(self, member, pool):
        await self._stage("delete_pool_member", member.address)

    @staged
    async def get_vip(self, vip):
        await self._stage("get_vip", vip.name)
        return None

    @staged
    async def create_vip(self, vip):
        await self._stage("create_vip", vip.name)

    @staged
    async def edit_vip(self, vip):
        await self._stage("edit_vip", vip.name)

    @staged
    async def delete_vip(self, vip):
        await self._stage("delete_vip", vip.name)


@pytest.fixture
def staging():
    return StagingProvider()


@pytest.fixture
def staging_registry(staging):
    registry = ProviderRegistry()
    registry.register("Staging", lambda: staging)
    return registry


@pytest.fixture
def staging_config():
    return ProviderConfig(vendor="Staging", host="10.0.0.2", port=5555)


@pytest.fixture
def pool():
    return Pool(
        name="Pool-x-80",
        monitor_name="Monitor-x",
        members=[
            PoolMember(node=Node(name="n1", host="1.1.1.1"), port=80),
            PoolMember(node=Node(name="n2", host="1.1.1.2"), port=80),
        ],
    )


# ==================== Transaction Tests ====================


class TestTransaction:
    """Tests for the Transaction object."""

    def test_commit_once(self):
        tx = Transaction("tx-1", 3)
        assert tx.is_open
        tx.mark_committed()
        assert tx.state is TransactionState.COMMITTED

        with pytest.raises(TransactionError):
            tx.mark_committed()

    def test_cannot_roll_back_after_commit(self):
        tx = Transaction("tx-1", 3)
        tx.mark_committed()
        with pytest.raises(TransactionError):
            tx.mark_rolled_back()

    def test_cannot_commit_after_rollback(self):
        tx = Transaction("tx-1", 3)
        tx.mark_rolled_back()
        with pytest.raises(TransactionError) as exc_info:
            tx.mark_committed()
        assert exc_info.value.rolled_back is True


# ==================== Transactional session Tests ====================


@pytest.mark.asyncio
class TestTransactionalSession:
    """Tests for commit / rollback through a backend session."""

    async def test_connect_opens_transaction(self, staging_registry, staging, staging_config):
        session = await BackendSession.open(staging_registry, staging_config, "u", "p")

        assert staging.log == ["read_version", "start_transaction:7"]
        assert staging.transaction.id == "tx-1"
        assert staging.transaction.version == 7

        await session.close()

    async def test_clean_session_commits_once(self, staging_registry, staging, staging_config, pool):
        async with open_session(staging_registry, staging_config, "u", "p") as session:
            await session.handle_pool(pool)

        assert staging.log == ["read_version", "start_transaction:7", "commit:tx-1"]
        assert staging.transaction.state is TransactionState.COMMITTED
        assert staging.disconnected is True
        assert session.state is SessionState.CLOSED

    async def test_failed_member_rolls_back_without_commit(
        self, staging_registry, staging, staging_config, pool
    ):
        staging.fail_on.add("create_pool_member")
        session = await BackendSession.open(staging_registry, staging_config, "u", "p")

        with pytest.raises(ProviderError):
            await session.handle_pool(pool)

        with pytest.raises(TransactionError) as exc_info:
            await session.close()

        assert exc_info.value.rolled_back is True
        assert "delete:tx-1" in staging.log
        assert "commit:tx-1" not in staging.log
        assert staging.transaction.state is TransactionState.ROLLED_BACK
        assert session.state is SessionState.CLOSED_WITH_ERROR

    async def test_error_in_block_rolls_back(self, staging_registry, staging, staging_config, pool):
        staging.fail_on.add("create_pool_member")

        with pytest.raises(ProviderError):
            async with open_session(staging_registry, staging_config, "u", "p") as session:
                await session.handle_pool(pool)

        assert staging.log[-1] == "delete:tx-1"
        assert "commit:tx-1" not in staging.log
        assert session.state is SessionState.CLOSED_WITH_ERROR

    async def test_caller_error_rolls_back(self, staging_registry, staging, staging_config):
        with pytest.raises(ValueError):
            async with open_session(staging_registry, staging_config, "u", "p"):
                raise ValueError("orchestration failed")

        assert staging.log == ["read_version", "start_transaction:7", "delete:tx-1"]

    async def test_commit_failure_rolls_back(self, staging_registry, staging, staging_config, pool):
        staging.fail_commit = True
        session = await BackendSession.open(staging_registry, staging_config, "u", "p")
        await session.handle_monitor(Monitor(name="Monitor-x", path="/", port=80, monitor_type="http"))

        with pytest.raises(TransactionError) as exc_info:
            await session.close()

        assert exc_info.value.rolled_back is True
        assert exc_info.value.transaction_id == "tx-1"
        assert staging.log[-2:] == ["commit:tx-1", "delete:tx-1"]
        assert staging.disconnected is True

    async def test_rollback_failure_is_reported(self, staging_registry, staging, staging_config):
        staging.fail_delete = True
        session = await BackendSession.open(staging_registry, staging_config, "u", "p")

        with pytest.raises(TransactionError) as exc_info:
            await session.close(error=RuntimeError("boom"))

        assert exc_info.value.rolled_back is False
        assert staging.disconnected is True

    async def test_cancellation_rolls_back(self, staging_registry, staging, staging_config, pool):
        started = asyncio.Event()

        async def reconcile():
            async with open_session(staging_registry, staging_config, "u", "p") as session:
                await session.handle_pool(pool)
                started.set()
                await asyncio.sleep(3600)

        task = asyncio.create_task(reconcile())
        await started.wait()
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task

        assert staging.log[-1] == "delete:tx-1"
        assert "commit:tx-1" not in staging.log
        assert staging.transaction.state is TransactionState.ROLLED_BACK

    async def test_second_connect_is_rejected(self, staging, staging_config):
        staging.create(staging_config, "u", "p")
        await staging.connect()

        with pytest.raises(TransactionError):
            await staging.connect()

    async def test_staged_call_without_transaction_fails(self, staging, pool):
        with pytest.raises(TransactionError):
            await staging.create_pool(pool)
        assert staging.failed is True
