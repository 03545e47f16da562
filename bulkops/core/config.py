"""bulkops configuration management.

This module centralizes all configuration loading from environment variables
and provides sensible defaults. All modules should import configuration
values from here rather than reading environment variables directly.

Environment Variables:
    BULKOPS_LOG_LEVEL: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
                       Default: INFO

    BULKOPS_LOG_FORMAT: Log output format (text, json)
                        Default: text

    BULKOPS_BATCH_SIZE: Rows per bulk-transfer chunk. 0 keeps the
                        dialect's own default.
                        Default: 0

    BULKOPS_STATEMENT_TIMEOUT: Per-statement timeout in seconds applied to
                               every operation that does not set its own.
                               0 disables the timeout.
                               Default: 0

    BULKOPS_CONNECTION_TIMEOUT: Connect timeout in seconds used by connectors
                                Default: 30

    BULKOPS_STAGING_PREFIX: Prefix for staging-table names
                            Default: temp_

    BULKOPS_LOG_SQL: Log every generated statement at DEBUG level
                     Default: false
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field


def _get_bool(key: str, default: bool) -> bool:
    """Get boolean from environment variable."""
    value = os.environ.get(key, "").lower()
    if not value:
        return default
    return value in ("true", "1", "yes", "on")


def _get_int(key: str, default: int) -> int:
    """Get integer from environment variable."""
    value = os.environ.get(key, "")
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _get_float(key: str, default: float) -> float:
    """Get float from environment variable."""
    value = os.environ.get(key, "")
    if not value:
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _get_str(key: str, default: str) -> str:
    """Get string from environment variable."""
    return os.environ.get(key, default)


@dataclass
class BulkOpsConfig:
    """bulkops configuration container.

    All configuration values are loaded from environment variables
    with sensible defaults.

    Usage:
        from bulkops.core.config import config

        batch_size = config.batch_size or dialect.default_batch_size
    """

    # Logging Configuration
    log_level: str = field(default_factory=lambda: _get_str("BULKOPS_LOG_LEVEL", "INFO").upper())
    log_format: str = field(default_factory=lambda: _get_str("BULKOPS_LOG_FORMAT", "text"))
    log_sql: bool = field(default_factory=lambda: _get_bool("BULKOPS_LOG_SQL", False))

    # Transfer Configuration
    batch_size: int = field(default_factory=lambda: _get_int("BULKOPS_BATCH_SIZE", 0))
    staging_prefix: str = field(default_factory=lambda: _get_str("BULKOPS_STAGING_PREFIX", "temp_"))

    # Timeout Configuration
    statement_timeout: float = field(
        default_factory=lambda: _get_float("BULKOPS_STATEMENT_TIMEOUT", 0.0)
    )
    connection_timeout: int = field(default_factory=lambda: _get_int("BULKOPS_CONNECTION_TIMEOUT", 30))

    def __post_init__(self):
        """Validate configuration after initialization."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if self.log_level not in valid_levels:
            raise ValueError(
                f"Invalid BULKOPS_LOG_LEVEL: {self.log_level}. "
                f"Must be one of: {valid_levels}"
            )

        valid_formats = {"text", "json"}
        if self.log_format not in valid_formats:
            raise ValueError(
                f"Invalid BULKOPS_LOG_FORMAT: {self.log_format}. "
                f"Must be one of: {valid_formats}"
            )

        if self.batch_size < 0:
            raise ValueError(f"BULKOPS_BATCH_SIZE must be >= 0, got {self.batch_size}")

        if self.statement_timeout < 0:
            raise ValueError(
                f"BULKOPS_STATEMENT_TIMEOUT must be >= 0, got {self.statement_timeout}"
            )

        if self.connection_timeout < 1:
            raise ValueError(
                f"BULKOPS_CONNECTION_TIMEOUT must be >= 1, got {self.connection_timeout}"
            )

        # The prefix ends up inside quoted identifiers, keep it to word characters
        if not re.fullmatch(r"\w+", self.staging_prefix):
            raise ValueError(
                f"BULKOPS_STAGING_PREFIX must contain only letters, digits and "
                f"underscores, got {self.staging_prefix!r}"
            )

    def as_dict(self) -> dict:
        """Export configuration as dictionary.

        Returns:
            Dictionary of all configuration values
        """
        return {
            "log_level": self.log_level,
            "log_format": self.log_format,
            "log_sql": self.log_sql,
            "batch_size": self.batch_size,
            "staging_prefix": self.staging_prefix,
            "statement_timeout": self.statement_timeout,
            "connection_timeout": self.connection_timeout,
        }


def load_config() -> BulkOpsConfig:
    """Load configuration from environment.

    This function creates a new BulkOpsConfig instance by reading
    current environment variables. Call this to refresh config
    if environment has changed.

    Returns:
        New BulkOpsConfig instance
    """
    return BulkOpsConfig()


# Global configuration instance - loaded once at import time
# Use load_config() to refresh if needed
config = load_config()
