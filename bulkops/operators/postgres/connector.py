"""PostgreSQL connector implementation using SQLAlchemy.

This module provides connection management for PostgreSQL databases.
"""

from __future__ import annotations

from typing import Any

from bulkops.core.dialect import BulkDialect
from bulkops.exceptions import ConnectorError
from bulkops.operators.postgres.dialect import PostgresDialect
from bulkops.operators.sql.connector import SQLConnector


class PostgresConnector(SQLConnector):
    """PostgreSQL connector using SQLAlchemy and psycopg2.

    Configuration keys:
        - host: Database host (default: localhost)
        - port: Database port (default: 5432)
        - database: Database name (required)
        - user: Username (required)
        - password: Password (required)
        - connection_string: Full connection string (alternative to individual params)
        - connect_timeout: Connect timeout in seconds (default: BULKOPS_CONNECTION_TIMEOUT)
        - staging_prefix: Staging-table name prefix (default: BULKOPS_STAGING_PREFIX)
        - echo: Enable SQL logging (default: False)

    Examples:
        >>> config = {
        ...     "host": "localhost",
        ...     "port": 5432,
        ...     "database": "mydb",
        ...     "user": "postgres",
        ...     "password": "secret"
        ... }
        >>> with PostgresConnector(config) as conn:
        ...     BulkOperations(conn).insert_or_update(orders)
    """

    def _build_connection_string(self) -> str:
        """Build PostgreSQL connection string from config.

        Returns:
            SQLAlchemy connection string

        Raises:
            ConnectorError: If required config is missing
        """
        # If connection_string provided, use it directly
        if "connection_string" in self.config:
            return self.config["connection_string"]

        # Build from individual parameters
        required_keys = ["database", "user", "password"]
        for key in required_keys:
            if key not in self.config:
                raise ConnectorError(f"Missing required config key: {key}")

        host = self.config.get("host", "localhost")
        port = self.config.get("port", 5432)
        database = self.config["database"]
        user = self.config["user"]
        password = self.config["password"]

        return f"postgresql+psycopg2://{user}:{password}@{host}:{port}/{database}"

    def _engine_options(self) -> dict[str, Any]:
        return {"connect_args": {"connect_timeout": self.connect_timeout}}

    def _get_bulk_dialect(self) -> BulkDialect:
        """Get PostgreSQL bulk dialect.

        Returns:
            PostgresDialect instance
        """
        return PostgresDialect(staging_prefix=self.config.get("staging_prefix"))

    def _get_database_name(self) -> str:
        return "PostgreSQL"
