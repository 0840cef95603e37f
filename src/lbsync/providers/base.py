"""
Provider Base - Abstract interface for load balancer vendor adapters.

Every vendor integration implements the same capability interface and is
selected at runtime through the ProviderRegistry. Non-transactional adapters
apply each call immediately; TransactionalProvider stages every call inside a
vendor-side transaction that close() commits or discards as one unit.
"""

import functools
import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import Optional

from lbsync.errors import ConfigError, TransactionError
from lbsync.models import VIP, Monitor, Pool, PoolMember, ProviderConfig

logger = logging.getLogger(__name__)


class Provider(ABC):
    """
    Abstract base class for provider adapters.

    Lifecycle: create() stores configuration and credentials, connect() opens
    the connection, the Get/Create/Edit/Delete calls are issued sequentially,
    and close() ends the session.
    """

    transactional = False

    def __init__(self):
        self.config: Optional[ProviderConfig] = None
        self.username: str = ""
        self.password: str = ""

    @property
    @abstractmethod
    def name(self) -> str:
        """Vendor name this adapter registers under."""
        pass

    def create(self, config: ProviderConfig, username: str, password: str) -> None:
        """
        Store the provider configuration and credentials.

        Subclasses extend this to validate vendor-specific fields.

        Raises:
            ConfigError: If required configuration is missing
        """
        self.config = config
        self.username = username
        self.password = password

    @abstractmethod
    async def connect(self) -> None:
        """Open the connection to the appliance."""
        pass

    @abstractmethod
    async def close(self, error: Optional[BaseException] = None) -> None:
        """
        Close the connection to the appliance.

        Args:
            error: The exception that ended the session, if any
        """
        pass

    async def health_check(self) -> None:
        """Verify the appliance answers. Default: nothing to check."""
        return None

    def require_host(self) -> None:
        if not self.config or not self.config.host:
            raise ConfigError(f"provider {self.name}: host is required")

    # Monitor management

    @abstractmethod
    async def get_monitor(self, monitor: Monitor) -> Optional[Monitor]:
        """Return the live monitor named monitor.name, or None."""
        pass

    @abstractmethod
    async def create_monitor(self, monitor: Monitor) -> None:
        pass

    @abstractmethod
    async def edit_monitor(self, monitor: Monitor) -> None:
        pass

    @abstractmethod
    async def delete_monitor(self, monitor: Monitor) -> None:
        pass

    # Pool management

    @abstractmethod
    async def get_pool(self, pool: Pool) -> Optional[Pool]:
        """Return the live pool named pool.name, or None."""
        pass

    @abstractmethod
    async def create_pool(self, pool: Pool) -> None:
        pass

    @abstractmethod
    async def edit_pool(self, pool: Pool) -> None:
        pass

    @abstractmethod
    async def delete_pool(self, pool: Pool) -> None:
        pass

    # Pool member management

    @abstractmethod
    async def get_pool_members(self, pool: Pool) -> Pool:
        """Return pool with members populated from the appliance."""
        pass

    @abstractmethod
    async def create_pool_member(self, member: PoolMember, pool: Pool) -> None:
        pass

    @abstractmethod
    async def edit_pool_member(
        self, member: PoolMember, pool: Pool, status: str
    ) -> None:
        """Enable or disable a member; status is 'enable' or 'disable'."""
        pass

    @abstractmethod
    async def delete_pool_member(self, member: PoolMember, pool: Pool) -> None:
        pass

    # VIP management

    @abstractmethod
    async def get_vip(self, vip: VIP) -> Optional[VIP]:
        """Return the live VIP named vip.name, or None."""
        pass

    @abstractmethod
    async def create_vip(self, vip: VIP) -> None:
        pass

    @abstractmethod
    async def edit_vip(self, vip: VIP) -> None:
        pass

    @abstractmethod
    async def delete_vip(self, vip: VIP) -> None:
        pass


class TransactionState(Enum):
    """States of a staged-change context."""

    OPEN = "open"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"


class Transaction:
    """
    A vendor-side staged-change context.

    Opened against the configuration version read at connect time and
    finished exactly once, by either commit or rollback.
    """

    def __init__(self, transaction_id: str, version: int):
        self.id = transaction_id
        self.version = version
        self.state = TransactionState.OPEN

    @property
    def is_open(self) -> bool:
        return self.state is TransactionState.OPEN

    def _finish(self, state: TransactionState) -> None:
        if not self.is_open:
            raise TransactionError(
                f"transaction {self.id} already {self.state.value}",
                transaction_id=self.id,
                rolled_back=self.state is TransactionState.ROLLED_BACK,
            )
        self.state = state

    def mark_committed(self) -> None:
        self._finish(TransactionState.COMMITTED)

    def mark_rolled_back(self) -> None:
        self._finish(TransactionState.ROLLED_BACK)


def staged(method):
    """
    Mark an adapter call as part of the open transaction.

    Any exception raised by the call flags the transaction as failed so that
    close() discards it instead of committing.
    """

    @functools.wraps(method)
    async def wrapper(self, *args, **kwargs):
        try:
            return await method(self, *args, **kwargs)
        except BaseException:
            self.failed = True
            raise

    return wrapper


class TransactionalProvider(Provider):
    """
    Base class for vendors whose configuration API is staged-and-committed.

    connect() reads the current configuration version and opens one
    transaction tied to it. close() commits with a forced reload. A failed
    staged call, a session error or a rejected commit rolls it back instead.
    """

    transactional = True

    def __init__(self):
        super().__init__()
        self.transaction: Optional[Transaction] = None
        self.failed = False

    @abstractmethod
    async def read_version(self) -> int:
        """Read the appliance's current configuration version."""
        pass

    @abstractmethod
    async def start_transaction(self, version: int) -> str:
        """Open a staged-change context and return its id."""
        pass

    @abstractmethod
    async def commit_transaction(self, transaction_id: str) -> None:
        """Commit the staged changes with a forced configuration reload."""
        pass

    @abstractmethod
    async def delete_transaction(self, transaction_id: str) -> None:
        """Discard the staged changes."""
        pass

    async def disconnect(self) -> None:
        """Release the underlying connection. Called once close() is done."""
        return None

    async def connect(self) -> None:
        if self.transaction is not None:
            raise TransactionError(
                "a transaction is already open for this session",
                transaction_id=self.transaction.id,
            )
        version = await self.read_version()
        logger.info(f"Got {self.name} config version {version}")
        transaction_id = await self.start_transaction(version)
        self.transaction = Transaction(transaction_id, version)
        self.failed = False
        logger.info(f"Opened {self.name} transaction {transaction_id}")

    async def close(self, error: Optional[BaseException] = None) -> None:
        try:
            transaction = self.transaction
            if transaction is None or not transaction.is_open:
                return

            if error is not None or self.failed:
                await self.rollback()
                if error is None:
                    raise TransactionError(
                        f"transaction {transaction.id} rolled back after a "
                        f"failed staged call",
                        transaction_id=transaction.id,
                        rolled_back=True,
                    )
                return

            logger.info(f"Committing transaction {transaction.id}")
            try:
                await self.commit_transaction(transaction.id)
            except Exception as e:
                await self.rollback()
                raise TransactionError(
                    f"commit of transaction {transaction.id} failed: {e}",
                    transaction_id=transaction.id,
                    rolled_back=True,
                ) from e
            transaction.mark_committed()
        finally:
            await self.disconnect()

    async def rollback(self) -> None:
        """Discard the open transaction, if any."""
        transaction = self.transaction
        if transaction is None or not transaction.is_open:
            return
        logger.info(f"Deleting transaction {transaction.id} due to error")
        try:
            await self.delete_transaction(transaction.id)
        except Exception as e:
            raise TransactionError(
                f"rollback of transaction {transaction.id} failed: {e}",
                transaction_id=transaction.id,
                rolled_back=False,
            ) from e
        transaction.mark_rolled_back()

    def require_transaction(self) -> Transaction:
        if self.transaction is None or not self.transaction.is_open:
            raise TransactionError(f"{self.name}: no open transaction")
        return self.transaction
