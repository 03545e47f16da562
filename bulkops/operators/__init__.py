"""Database operators for bulkops.

Each subpackage provides a connector, a BulkDialect, a type mapper and
a merge query builder for one database engine. This module maps
SQLAlchemy dialect names to BulkDialect classes.
"""

from __future__ import annotations

from typing import Optional, Union

from sqlalchemy.engine import Connection, Engine

from bulkops.core.dialect import BulkDialect
from bulkops.exceptions import ConfigurationError
from bulkops.operators.postgres.dialect import PostgresDialect
from bulkops.operators.sqlite.dialect import SQLiteDialect
from bulkops.operators.sqlserver.dialect import SQLServerDialect

DIALECTS: dict[str, type[BulkDialect]] = {
    PostgresDialect.name: PostgresDialect,
    SQLServerDialect.name: SQLServerDialect,
    SQLiteDialect.name: SQLiteDialect,
}


def get_dialect(name: str, staging_prefix: Optional[str] = None) -> BulkDialect:
    """Instantiate the BulkDialect registered for a SQLAlchemy dialect name.

    Args:
        name: SQLAlchemy dialect name ("postgresql", "mssql", "sqlite")
        staging_prefix: Optional staging-table name prefix

    Raises:
        ConfigurationError: If no BulkDialect supports the name
    """
    try:
        dialect_cls = DIALECTS[name]
    except KeyError:
        supported = ", ".join(sorted(DIALECTS))
        raise ConfigurationError(
            f"Unsupported database dialect: {name}. Supported: {supported}"
        ) from None
    return dialect_cls(staging_prefix=staging_prefix)


def dialect_for(
    bind: Union[Engine, Connection], staging_prefix: Optional[str] = None
) -> BulkDialect:
    """Pick the BulkDialect matching an engine's or connection's database.

    Examples:
        >>> dialect_for(create_engine("sqlite://"))
        <bulkops.operators.sqlite.dialect.SQLiteDialect object at ...>
    """
    return get_dialect(bind.dialect.name, staging_prefix=staging_prefix)


__all__ = ["DIALECTS", "dialect_for", "get_dialect"]
