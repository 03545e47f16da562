"""SQLite operator for bulkops.

This package provides SQLite support for bulkops, including
connection management, ``executemany`` streaming and merge SQL.
"""

from bulkops.operators.sqlite.connector import SQLiteConnector, enable_transactional_ddl
from bulkops.operators.sqlite.dialect import SQLiteDialect
from bulkops.operators.sqlite.type_mapper import SQLiteTypeMapper

__all__ = [
    "SQLiteConnector",
    "SQLiteDialect",
    "SQLiteTypeMapper",
    "enable_transactional_ddl",
]
