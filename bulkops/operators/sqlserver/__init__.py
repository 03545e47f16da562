"""SQL Server operator for bulkops.

This package provides SQL Server support for bulkops through pyodbc,
including connection management, ``fast_executemany`` streaming and
MERGE-based upserts.
"""

from bulkops.operators.sqlserver.connector import SQLServerConnector
from bulkops.operators.sqlserver.dialect import SQLServerDialect
from bulkops.operators.sqlserver.query_builder import SQLServerQueryBuilder
from bulkops.operators.sqlserver.type_mapper import SQLServerTypeMapper

__all__ = [
    "SQLServerConnector",
    "SQLServerDialect",
    "SQLServerQueryBuilder",
    "SQLServerTypeMapper",
]
