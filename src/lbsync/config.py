"""
Configuration module for lbsync.

Loads configuration from environment variables. Appliance connection details
travel with each load balancer document; only process-wide settings live here.
"""

import os
from dataclasses import dataclass, field
from typing import List, Optional

DEFAULT_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str = "INFO"
    format: str = DEFAULT_LOG_FORMAT

    @classmethod
    def from_env(cls):
        """Load from environment variables."""
        return cls(
            level=os.getenv("LOG_LEVEL", "INFO").upper(),
            format=os.getenv("LOG_FORMAT", DEFAULT_LOG_FORMAT),
        )


@dataclass
class HTTPConfig:
    """HTTP client settings shared by the REST adapters."""

    timeout: int = 30  # seconds

    @classmethod
    def from_env(cls):
        """Load from environment variables."""
        timeout = int(os.getenv("LBSYNC_HTTP_TIMEOUT", "30"))
        if timeout <= 0:
            raise ValueError("LBSYNC_HTTP_TIMEOUT must be a positive integer")
        return cls(timeout=timeout)


@dataclass
class ProvidersConfig:
    """Provider registry configuration."""

    # Vendor names to register (empty = all built-in and installed providers)
    enabled: List[str] = field(default_factory=list)

    @classmethod
    def from_env(cls):
        """Load from environment variables."""
        enabled_str = os.getenv("LBSYNC_ENABLED_PROVIDERS", "")
        enabled = (
            [p.strip() for p in enabled_str.split(",") if p.strip()]
            if enabled_str
            else []
        )
        return cls(enabled=enabled)


@dataclass
class Config:
    """Main configuration object."""

    logging: LoggingConfig
    http: HTTPConfig
    providers: ProvidersConfig

    @classmethod
    def from_env(cls):
        """Load all configuration from environment variables."""
        return cls(
            logging=LoggingConfig.from_env(),
            http=HTTPConfig.from_env(),
            providers=ProvidersConfig.from_env(),
        )

    @classmethod
    def default(cls):
        """Return default configuration."""
        return cls(
            logging=LoggingConfig(),
            http=HTTPConfig(),
            providers=ProvidersConfig(),
        )


# Global config instance
config: Optional[Config] = None


def load_config() -> Config:
    """Load configuration (singleton pattern)."""
    global config
    if config is None:
        config = Config.from_env()
    return config


def get_config() -> Config:
    """Get the current configuration."""
    if config is None:
        return load_config()
    return config


def reset_config() -> None:
    """Reset configuration (mainly for testing)."""
    global config
    config = None
