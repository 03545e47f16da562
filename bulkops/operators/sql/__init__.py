"""Generic SQL operators for SQLAlchemy-based databases.

This package provides concrete base classes shared by the SQL dialects:
- SQLConnector: Connection management using SQLAlchemy
- SQLDialect: Bulk streaming through DBAPI ``executemany``
- SQLQueryBuilder: ``UPDATE ... FROM`` / ``INSERT ... ON CONFLICT`` merges

Database-specific subclasses (PostgresConnector, SQLServerDialect, etc.)
override methods for native bulk channels and merge syntax.
"""

from bulkops.core.query_builder import MergeQueryPair
from bulkops.operators.sql.connector import SQLConnector
from bulkops.operators.sql.dialect import SQLDialect
from bulkops.operators.sql.query_builder import SQLQueryBuilder

__all__ = ["MergeQueryPair", "SQLConnector", "SQLDialect", "SQLQueryBuilder"]
