"""SQL Server connector implementation using SQLAlchemy and pyodbc.

This module provides connection management for SQL Server databases.
"""

from __future__ import annotations

from typing import Any
from urllib.parse import quote_plus

from bulkops.core.dialect import BulkDialect
from bulkops.exceptions import ConnectorError
from bulkops.operators.sql.connector import SQLConnector
from bulkops.operators.sqlserver.dialect import SQLServerDialect

DEFAULT_DRIVER = "ODBC Driver 18 for SQL Server"


class SQLServerConnector(SQLConnector):
    """SQL Server connector using SQLAlchemy and pyodbc.

    Configuration keys:
        - host: Server host (default: localhost)
        - port: Server port (default: 1433)
        - database: Database name (required)
        - user: Username (required)
        - password: Password (required)
        - driver: ODBC driver name (default: ODBC Driver 18 for SQL Server)
        - encrypt: Encrypt the connection (default: True)
        - trust_server_certificate: Skip certificate validation (default: False)
        - connection_string: Full SQLAlchemy URL (alternative to individual params)
        - connect_timeout: Login timeout in seconds (default: BULKOPS_CONNECTION_TIMEOUT)
        - staging_prefix: Staging-table name prefix (default: BULKOPS_STAGING_PREFIX)
        - echo: Enable SQL logging (default: False)

    Examples:
        >>> config = {
        ...     "host": "sql.example.com",
        ...     "database": "sales",
        ...     "user": "loader",
        ...     "password": "secret",
        ... }
        >>> with SQLServerConnector(config) as conn:
        ...     BulkOperations(conn).update(orders)
    """

    def odbc_dsn(self) -> str:
        """Build the ODBC connection string from discrete config keys.

        Raises:
            ConnectorError: If required config is missing
        """
        required_keys = ["database", "user", "password"]
        for key in required_keys:
            if key not in self.config:
                raise ConnectorError(f"Missing required config key: {key}")

        host = self.config.get("host", "localhost")
        port = self.config.get("port", 1433)
        encrypt = "yes" if self.config.get("encrypt", True) else "no"
        trust = "yes" if self.config.get("trust_server_certificate", False) else "no"

        return (
            f"Driver={{{self.config.get('driver', DEFAULT_DRIVER)}}};"
            f"Server=tcp:{host},{port};"
            f"Database={self.config['database']};"
            f"Uid={self.config['user']};"
            f"Pwd={{{self.config['password']}}};"
            f"Encrypt={encrypt};"
            f"TrustServerCertificate={trust};"
        )

    def _build_connection_string(self) -> str:
        """Build SQL Server connection string from config.

        Returns:
            SQLAlchemy connection string

        Raises:
            ConnectorError: If required config is missing
        """
        if "connection_string" in self.config:
            return self.config["connection_string"]
        return f"mssql+pyodbc:///?odbc_connect={quote_plus(self.odbc_dsn())}"

    def _engine_options(self) -> dict[str, Any]:
        return {"connect_args": {"timeout": self.connect_timeout}}

    def _get_bulk_dialect(self) -> BulkDialect:
        return SQLServerDialect(staging_prefix=self.config.get("staging_prefix"))

    def _get_database_name(self) -> str:
        return "SQL Server"
