"""SQL-based connector base class using SQLAlchemy.

This module provides a base class for SQL database connectors
that use SQLAlchemy for connection management.
"""

from __future__ import annotations

from abc import abstractmethod
from typing import Any, Optional

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine

from bulkops.core.config import config as bulkops_config
from bulkops.core.connector import Connector
from bulkops.core.dialect import BulkDialect
from bulkops.exceptions import ConnectionError, ConnectorError


class SQLConnector(Connector):
    """Base class for SQL database connectors using SQLAlchemy.

    Provides common functionality for SQL databases including:
    - SQLAlchemy engine management
    - Connection lifecycle (connect, disconnect, test)
    - Query execution

    Subclasses must implement:
    - _build_connection_string(): Database-specific connection string
    - _get_bulk_dialect(): Return database-specific BulkDialect
    - _get_database_name(): Return database name for error messages

    This class is abstract and cannot be instantiated directly.

    Examples:
        Subclass implementation:
        >>> class MyDBConnector(SQLConnector):
        ...     def _build_connection_string(self) -> str:
        ...         return f"mydb://{self.config['host']}/{self.config['database']}"
        ...
        ...     def _get_bulk_dialect(self) -> BulkDialect:
        ...         return MyDBDialect()
        ...
        ...     def _get_database_name(self) -> str:
        ...         return "MyDB"
    """

    def __init__(self, config: dict[str, Any]):
        """Initialize SQL connector.

        Args:
            config: Connection configuration dictionary
        """
        super().__init__(config)
        self.engine: Optional[Engine] = None
        self._bulk_dialect: Optional[BulkDialect] = None

    @abstractmethod
    def _build_connection_string(self) -> str:
        """Build database-specific connection string from config.

        Returns:
            SQLAlchemy connection string (e.g., "postgresql://...", "sqlite:///...")

        Raises:
            ConnectorError: If required config is missing or invalid
        """
        pass

    @abstractmethod
    def _get_bulk_dialect(self) -> BulkDialect:
        """Get database-specific bulk dialect.

        Returns:
            BulkDialect instance for this database
        """
        pass

    @abstractmethod
    def _get_database_name(self) -> str:
        """Get database name for error messages.

        Returns:
            Human-readable database name (e.g., "PostgreSQL", "SQLite")
        """
        pass

    def _engine_options(self) -> dict[str, Any]:
        """Extra keyword arguments for ``create_engine``."""
        return {}

    def _configure_engine(self, engine: Engine) -> None:
        """Hook for subclasses to attach engine event listeners."""
        pass

    @property
    def bulk_dialect(self) -> BulkDialect:
        if self._bulk_dialect is None:
            self._bulk_dialect = self._get_bulk_dialect()
        return self._bulk_dialect

    @property
    def connect_timeout(self) -> int:
        """Connect timeout in seconds (config key or BULKOPS_CONNECTION_TIMEOUT)."""
        return int(self.config.get("connect_timeout", bulkops_config.connection_timeout))

    def connect(self) -> None:
        """Establish connection to the SQL database.

        Creates a SQLAlchemy engine with the connection string from
        _build_connection_string() and tests the connection.

        Raises:
            ConnectionError: If connection fails
        """
        try:
            connection_string = self._build_connection_string()
            engine = create_engine(
                connection_string,
                pool_pre_ping=True,  # Verify connections before using
                echo=self.config.get("echo", False),  # SQL logging
                **self._engine_options(),
            )
            self._configure_engine(engine)
            # Test the connection
            with engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            self.engine = engine
            self.connection = engine
        except ConnectorError:
            raise
        except Exception as e:
            db_name = self._get_database_name()
            raise ConnectionError(f"Failed to connect to {db_name}: {e}") from e

    def disconnect(self) -> None:
        """Close connection to the SQL database.

        Disposes the SQLAlchemy engine and clears connection references.
        Safe to call even if already disconnected.
        """
        if self.engine is not None:
            self.engine.dispose()
            self.engine = None
            self.connection = None

    def test_connection(self) -> bool:
        """Test connectivity to the SQL database.

        Returns:
            True if connection is successful, False otherwise
        """
        try:
            if not self.is_connected:
                self.connect()
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return True
        except Exception:
            return False

    def require_engine(self) -> Engine:
        """Get the engine of a connected connector.

        Raises:
            ConnectorError: If not connected
        """
        if self.engine is None:
            raise ConnectorError(f"{self._get_database_name()} connector is not connected")
        return self.engine

    def execute_query(self, query: str) -> list[dict[str, Any]]:
        """Execute a SQL query and return results.

        Args:
            query: SQL query string

        Returns:
            List of records as dictionaries (column_name -> value)

        Raises:
            ConnectorError: If not connected or query execution fails
        """
        engine = self.require_engine()
        try:
            with engine.connect() as conn:
                result = conn.execute(text(query))
                return [dict(row._mapping) for row in result]
        except Exception as e:
            raise ConnectorError(f"Failed to execute query: {e}") from e

