"""PostgreSQL operator for bulkops.

This package provides PostgreSQL support for bulkops, including
connection management, COPY-based streaming and merge SQL.
"""

from bulkops.operators.postgres.connector import PostgresConnector
from bulkops.operators.postgres.dialect import PostgresDialect
from bulkops.operators.postgres.query_builder import PostgresQueryBuilder
from bulkops.operators.postgres.type_mapper import PostgresTypeMapper

__all__ = [
    "PostgresConnector",
    "PostgresDialect",
    "PostgresQueryBuilder",
    "PostgresTypeMapper",
]
