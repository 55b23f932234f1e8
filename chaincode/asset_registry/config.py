"""
Configuration management for the asset registry.

All configuration is done via environment variables.
This module provides typed configuration classes with validation.

Invariants:
    - All settings have sensible defaults for local development
    - The grant window and page sizes are always positive
    - Configuration is immutable once loaded

How to change safely:
    - Add new settings with defaults that maintain backward compatibility
    - Changing GRANT_WINDOW_SECONDS only affects grants created afterwards;
      stored expiries are never recomputed
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from enum import Enum

logger = logging.getLogger(__name__)


class StateBackend(Enum):
    """Supported world state backends."""

    MEMORY = "memory"
    SQLITE = "sqlite"


@dataclass(frozen=True)
class StorageConfig:
    """Local storage configuration.

    Attributes:
        data_dir: Directory for SQLite world state files
        channel_name: Channel whose world state is served
        wal_mode: SQLite WAL mode enabled
        busy_timeout_ms: SQLite busy timeout in milliseconds
        cache_size_pages: SQLite cache size in pages (negative = KB)
    """

    data_dir: str = "./data"
    channel_name: str = "mychannel"
    wal_mode: bool = True
    busy_timeout_ms: int = 5000
    cache_size_pages: int = -16000  # 16MB

    @classmethod
    def from_env(cls) -> StorageConfig:
        """Load configuration from environment variables."""
        return cls(
            data_dir=os.getenv("DATA_DIR", "./data"),
            channel_name=os.getenv("CHANNEL_NAME", "mychannel"),
            wal_mode=os.getenv("SQLITE_WAL_MODE", "true").lower() == "true",
            busy_timeout_ms=int(os.getenv("SQLITE_BUSY_TIMEOUT_MS", "5000")),
            cache_size_pages=int(os.getenv("SQLITE_CACHE_SIZE", "-16000")),
        )


@dataclass(frozen=True)
class QueryConfig:
    """Rich query configuration.

    Attributes:
        default_page_size: Page size used when a caller passes none
        max_page_size: Upper bound on any requested page size
    """

    default_page_size: int = 10
    max_page_size: int = 1000

    @classmethod
    def from_env(cls) -> QueryConfig:
        """Load configuration from environment variables."""
        return cls(
            default_page_size=int(os.getenv("QUERY_DEFAULT_PAGE_SIZE", "10")),
            max_page_size=int(os.getenv("QUERY_MAX_PAGE_SIZE", "1000")),
        )


@dataclass(frozen=True)
class GrantConfig:
    """Access grant configuration.

    Attributes:
        window_seconds: Validity window of a newly created grant
    """

    window_seconds: int = 600

    @classmethod
    def from_env(cls) -> GrantConfig:
        """Load configuration from environment variables."""
        return cls(window_seconds=int(os.getenv("GRANT_WINDOW_SECONDS", "600")))


@dataclass(frozen=True)
class ObservabilityConfig:
    """Logging configuration.

    Attributes:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_format: Log format (json, text)
    """

    log_level: str = "INFO"
    log_format: str = "json"

    @classmethod
    def from_env(cls) -> ObservabilityConfig:
        """Load configuration from environment variables."""
        return cls(
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_format=os.getenv("LOG_FORMAT", "json"),
        )


@dataclass
class RegistryConfig:
    """Complete registry configuration.

    Attributes:
        state_backend: Which world state backend to use
        storage: Local storage configuration
        query: Rich query configuration
        grants: Access grant configuration
        observability: Logging configuration
    """

    state_backend: StateBackend = StateBackend.MEMORY
    storage: StorageConfig = field(default_factory=StorageConfig)
    query: QueryConfig = field(default_factory=QueryConfig)
    grants: GrantConfig = field(default_factory=GrantConfig)
    observability: ObservabilityConfig = field(default_factory=ObservabilityConfig)

    @classmethod
    def from_env(cls) -> RegistryConfig:
        """Load complete configuration from environment variables.

        Raises:
            ValueError: If configuration is missing or invalid.
        """
        backend_str = os.getenv("STATE_BACKEND", "memory").lower()
        try:
            state_backend = StateBackend(backend_str)
        except ValueError:
            raise ValueError(
                f"Invalid STATE_BACKEND '{backend_str}'. Must be one of: memory, sqlite"
            )

        config = cls(
            state_backend=state_backend,
            storage=StorageConfig.from_env(),
            query=QueryConfig.from_env(),
            grants=GrantConfig.from_env(),
            observability=ObservabilityConfig.from_env(),
        )

        config.validate()
        return config

    def validate(self) -> None:
        """Validate configuration consistency.

        Raises:
            ValueError: If configuration is invalid.
        """
        if self.grants.window_seconds <= 0:
            raise ValueError("GRANT_WINDOW_SECONDS must be positive")
        if self.query.max_page_size <= 0:
            raise ValueError("QUERY_MAX_PAGE_SIZE must be positive")
        if not 0 < self.query.default_page_size <= self.query.max_page_size:
            raise ValueError("QUERY_DEFAULT_PAGE_SIZE must be between 1 and QUERY_MAX_PAGE_SIZE")
        if self.observability.log_format not in ("json", "text"):
            raise ValueError("LOG_FORMAT must be 'json' or 'text'")

        if self.state_backend == StateBackend.SQLITE:
            if not self.storage.channel_name:
                raise ValueError("CHANNEL_NAME is required when STATE_BACKEND=sqlite")
            if not os.path.exists(self.storage.data_dir):
                logger.warning(
                    f"Data directory does not exist: {self.storage.data_dir}. "
                    "It will be created on first write."
                )

    def log_config(self) -> None:
        """Log configuration."""
        logger.info(
            "Registry configuration loaded",
            extra={
                "state_backend": self.state_backend.value,
                "data_dir": self.storage.data_dir
                if self.state_backend == StateBackend.SQLITE
                else None,
                "channel": self.storage.channel_name,
                "default_page_size": self.query.default_page_size,
                "max_page_size": self.query.max_page_size,
                "grant_window_seconds": self.grants.window_seconds,
                "log_level": self.observability.log_level,
            },
        )
