"""
Error types raised by the reconciliation engine and provider adapters.

Every adapter failure is wrapped in a ProviderError naming the operation and
resource being applied, so the caller can surface it and retry the whole pass.
"""

from typing import List, Optional


class LBSyncError(Exception):
    """Base class for all lbsync errors."""


class ConfigError(LBSyncError):
    """Invalid or incomplete provider / engine configuration."""


class ValidationError(LBSyncError):
    """A load balancer document or status snapshot failed schema validation."""


class ProviderAlreadyRegistered(LBSyncError):
    """A provider name was registered twice (names are case-insensitive)."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(
            f"provider already exists, provider '{name}' tried to register twice"
        )


class NoSuchProvider(LBSyncError):
    """No adapter is registered under the requested vendor name."""

    def __init__(self, name: str, available: Optional[List[str]] = None):
        self.name = name
        self.available = sorted(available or [])
        listing = ", ".join(self.available) or "none"
        super().__init__(
            f"no such provider: {name}. Available vendor providers are: {listing}"
        )


class ProviderError(LBSyncError):
    """
    A vendor call failed.

    Attributes:
        operation: The adapter operation (e.g. 'create_pool')
        resource: Name of the resource being applied
        status: HTTP status code when the failure came from the vendor API
    """

    def __init__(
        self,
        operation: str,
        resource: str,
        message: str,
        status: Optional[int] = None,
    ):
        self.operation = operation
        self.resource = resource
        self.status = status
        detail = f" (status {status})" if status is not None else ""
        super().__init__(f"error in {operation} {resource}: {message}{detail}")


class TransactionError(LBSyncError):
    """
    A staged change set could not be committed.

    rolled_back is True when the staged-change context was discarded, so
    nothing from this session reached the live configuration.
    """

    def __init__(
        self,
        message: str,
        transaction_id: Optional[str] = None,
        rolled_back: bool = False,
    ):
        self.transaction_id = transaction_id
        self.rolled_back = rolled_back
        super().__init__(message)


class CleanupError(LBSyncError):
    """Teardown of a VIP, pool or monitor failed; resource names what was hit."""

    def __init__(self, kind: str, resource: str, cause: Exception):
        self.kind = kind
        self.resource = resource
        super().__init__(f"error in {kind} cleanup {resource}: {cause}")
