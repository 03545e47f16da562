"""SQLite bulk dialect.

Shares the ``UPDATE ... FROM`` / ``ON CONFLICT`` merge shape with
PostgreSQL, which needs SQLite 3.33 or newer.
"""

from __future__ import annotations

from sqlalchemy.dialects import sqlite
from sqlalchemy.engine import Dialect

from bulkops.core.query_builder import QueryBuilder
from bulkops.core.type_mapper import TypeMapper
from bulkops.models.descriptor import TableDescriptor
from bulkops.operators.sql.dialect import SQLDialect
from bulkops.operators.sql.query_builder import SQLQueryBuilder
from bulkops.operators.sqlite.type_mapper import SQLiteTypeMapper


class SQLiteDialect(SQLDialect):
    """BulkDialect for SQLite through the stdlib ``sqlite3`` driver.

    Statement timeouts are not supported and are ignored with a log
    message.

    Examples:
        >>> dialect = SQLiteDialect()
        >>> dialect.create_staging_sql(descriptor)
        ['CREATE TEMP TABLE "temp_orders" AS SELECT * FROM "orders" WHERE 0']
    """

    name = "sqlite"
    default_schema = None
    default_batch_size = 5_000

    def _get_sa_dialect(self) -> Dialect:
        return sqlite.dialect()

    def _get_type_mapper(self) -> TypeMapper:
        return SQLiteTypeMapper(self.sa_dialect)

    def _get_query_builder(self) -> QueryBuilder:
        return SQLQueryBuilder(self.sa_dialect, self.type_mapper)

    def drop_staging_sql(self, descriptor: TableDescriptor) -> str:
        return f"DROP TABLE IF EXISTS temp.{descriptor.staging_name}"

    def create_staging_sql(self, descriptor: TableDescriptor) -> list[str]:
        return [
            f"CREATE TEMP TABLE {descriptor.staging_name} "
            f"AS SELECT * FROM {descriptor.full_name} WHERE 0"
        ]
