"""SQLite connector implementation using SQLAlchemy.

This module provides connection management for SQLite databases.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import event
from sqlalchemy.engine import Engine

from bulkops.core.dialect import BulkDialect
from bulkops.exceptions import ConnectorError
from bulkops.operators.sql.connector import SQLConnector
from bulkops.operators.sqlite.dialect import SQLiteDialect


def enable_transactional_ddl(engine: Engine) -> None:
    """Let SQLAlchemy, not ``sqlite3``, decide where transactions begin.

    By default ``sqlite3`` only opens a transaction before DML, so DDL such
    as staging-table creation escapes rollback and SAVEPOINTs misbehave.
    This disables the driver's own handling and emits BEGIN whenever
    SQLAlchemy starts a transaction.
    """

    @event.listens_for(engine, "connect")
    def _disable_pysqlite_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")


class SQLiteConnector(SQLConnector):
    """SQLite connector using SQLAlchemy.

    Engines created by this connector have transactional DDL enabled
    (see :func:`enable_transactional_ddl`).

    Configuration keys:
        - database: Database file path (required, or ":memory:" for in-memory)
        - connection_string: Full connection string (alternative)
        - staging_prefix: Staging-table name prefix (default: BULKOPS_STAGING_PREFIX)
        - echo: Enable SQL logging (default: False)

    Examples:
        >>> config = {"database": "/path/to/database.db"}
        >>> with SQLiteConnector(config) as conn:
        ...     BulkOperations(conn).insert(orders)
        ...     results = conn.execute_query("SELECT * FROM orders LIMIT 10")
    """

    def _build_connection_string(self) -> str:
        """Build SQLite connection string from config.

        Returns:
            SQLAlchemy connection string

        Raises:
            ConnectorError: If required config is missing
        """
        # If connection_string provided, use it directly
        if "connection_string" in self.config:
            return self.config["connection_string"]

        if "database" not in self.config:
            raise ConnectorError("Missing required config key: database")

        return f"sqlite:///{self.config['database']}"

    def _engine_options(self) -> dict[str, Any]:
        return {"connect_args": {"timeout": self.connect_timeout}}

    def _configure_engine(self, engine: Engine) -> None:
        enable_transactional_ddl(engine)

    def _get_bulk_dialect(self) -> BulkDialect:
        return SQLiteDialect(staging_prefix=self.config.get("staging_prefix"))

    def _get_database_name(self) -> str:
        return "SQLite"
