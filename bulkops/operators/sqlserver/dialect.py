"""SQL Server bulk dialect using pyodbc ``fast_executemany``."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Iterator, Optional

import sqlalchemy as sa
from sqlalchemy.dialects import mssql
from sqlalchemy.engine import Connection, Dialect

from bulkops.core.query_builder import QueryBuilder
from bulkops.core.type_mapper import TypeMapper
from bulkops.models.descriptor import TableDescriptor
from bulkops.operators.sql.dialect import SQLDialect
from bulkops.operators.sqlserver.query_builder import SQLServerQueryBuilder
from bulkops.operators.sqlserver.type_mapper import SQLServerTypeMapper

logger = logging.getLogger(__name__)


class SQLServerDialect(SQLDialect):
    """BulkDialect for SQL Server through pyodbc.

    - Staging: connection-scoped ``#`` table built from the mapped column
      types, every column nullable and without identity
    - Transfer: ``executemany`` with ``fast_executemany`` enabled
    - Merge: ``UPDATE ... FROM ... JOIN`` and ``MERGE ... WITH (HOLDLOCK)``
    - Timeout: pyodbc connection ``timeout`` attribute

    Explicit identity values are written inside
    ``SET IDENTITY_INSERT ... ON/OFF``.

    Examples:
        >>> SQLServerDialect().staging_table("orders")
        '[#temp_orders]'
    """

    name = "mssql"
    default_schema = "dbo"
    default_batch_size = 10_000

    def _get_sa_dialect(self) -> Dialect:
        return mssql.dialect()

    def _get_type_mapper(self) -> TypeMapper:
        return SQLServerTypeMapper(self.sa_dialect)

    def _get_query_builder(self) -> QueryBuilder:
        return SQLServerQueryBuilder(self.sa_dialect, self.type_mapper)

    def staging_table(self, table_name: str) -> str:
        return self.quote(f"#{self.staging_prefix}{table_name}")

    def create_staging_sql(self, descriptor: TableDescriptor) -> list[str]:
        definitions = []
        for column in descriptor.columns:
            ddl_type = self.type_mapper.get_ddl_type(column)
            base = self.type_mapper._base_type(column.type)
            # tempdb may use a different collation than the target database
            if isinstance(base, sa.String) and not base.collation:
                ddl_type = f"{ddl_type} COLLATE DATABASE_DEFAULT"
            definitions.append(f"{self.quote(column.column_name)} {ddl_type} NULL")
        return [f"CREATE TABLE {descriptor.staging_name} ({', '.join(definitions)})"]

    def _prepare_cursor(self, cursor: Any) -> None:
        cursor.fast_executemany = True

    @contextmanager
    def statement_timeout(self, conn: Connection, seconds: Optional[float]) -> Iterator[None]:
        if not seconds:
            yield
            return
        raw = conn.connection.dbapi_connection
        previous = raw.timeout
        raw.timeout = max(int(seconds), 1)
        try:
            yield
        finally:
            raw.timeout = previous

    @contextmanager
    def explicit_identity(self, conn: Connection, descriptor: TableDescriptor) -> Iterator[None]:
        self.execute(conn, f"SET IDENTITY_INSERT {descriptor.full_name} ON")
        try:
            yield
        except BaseException:
            try:
                self.execute(conn, f"SET IDENTITY_INSERT {descriptor.full_name} OFF")
            except Exception as e:
                logger.warning(
                    "Failed to reset IDENTITY_INSERT on %s: %s", descriptor.full_name, e
                )
            raise
        self.execute(conn, f"SET IDENTITY_INSERT {descriptor.full_name} OFF")

    def upsert_needs_explicit_identity(self, descriptor: TableDescriptor) -> bool:
        return any(c.identity for c in self.query_builder.upsert_columns(descriptor))
