"""Base Connector abstract class.

This module defines the Connector interface for managing connections
to relational databases.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Optional

if TYPE_CHECKING:
    from bulkops.core.dialect import BulkDialect


class Connector(ABC):
    """Base class for managing connections to databases.

    Connectors handle connection lifecycle and basic query execution,
    and know which BulkDialect drives bulk operations against them. They
    are passed to BulkOperations rather than subclassed by it.

    Examples:
        Using a connector as a context manager:
        >>> with PostgresConnector(config) as conn:
        ...     BulkOperations(conn).insert(orders)
        ...     results = conn.execute_query("SELECT count(*) AS n FROM orders")
    """

    def __init__(self, config: dict[str, Any]):
        """Initialize connector with configuration.

        Args:
            config: Connection configuration dictionary
        """
        self.config = config
        self.connection: Optional[Any] = None

    @abstractmethod
    def connect(self) -> None:
        """Establish connection to the database.

        Raises:
            ConnectionError: If connection fails
        """
        pass

    @abstractmethod
    def disconnect(self) -> None:
        """Close connection to the database.

        Should handle cases where connection is already closed gracefully.
        """
        pass

    @abstractmethod
    def test_connection(self) -> bool:
        """Test connectivity to the database.

        Returns:
            True if connection is successful, False otherwise
        """
        pass

    @abstractmethod
    def execute_query(self, query: str) -> list[dict[str, Any]]:
        """Execute a query and return results.

        Args:
            query: SQL query string

        Returns:
            List of records as dictionaries

        Raises:
            ConnectorError: If query execution fails
        """
        pass

    @property
    @abstractmethod
    def bulk_dialect(self) -> BulkDialect:
        """BulkDialect used for bulk operations through this connector."""
        pass

    def __enter__(self) -> Connector:
        """Context manager entry: establish connection.

        Returns:
            Self
        """
        self.connect()
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Context manager exit: close connection."""
        self.disconnect()

    @property
    def is_connected(self) -> bool:
        """Check if connection is established.

        Returns:
            True if connected, False otherwise
        """
        return self.connection is not None
