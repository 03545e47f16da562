"""PostgreSQL bulk dialect using COPY FROM STDIN.

Rows are rendered to CSV lazily and fed to psycopg2's ``copy_expert``
through a file-like object, so a chunk is never materialized in memory.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from io import TextIOBase
from typing import Any, Iterable, Iterator, Optional

from sqlalchemy.dialects import postgresql
from sqlalchemy.engine import Connection, Dialect

from bulkops.core.config import config
from bulkops.core.dialect import BulkDialect
from bulkops.core.query_builder import QueryBuilder
from bulkops.core.type_mapper import TypeMapper
from bulkops.models.descriptor import ColumnDescriptor, TableDescriptor
from bulkops.operators.postgres.query_builder import PostgresQueryBuilder
from bulkops.operators.postgres.type_mapper import PostgresTypeMapper

logger = logging.getLogger(__name__)


class _CSVRowStream(TextIOBase):
    """Lazy text stream that feeds COPY FROM without large buffers.

    Rows arrive as tuples of already formatted CSV fields. An exception
    raised while producing rows is kept in :attr:`error` so it can be
    re-raised after the driver aborts the COPY.
    """

    def __init__(self, rows: Iterable[tuple[str, ...]], delimiter: str = ","):
        self._iterator = iter(rows)
        self._delimiter = delimiter
        self._buffer = ""
        self._exhausted = False
        self.error: Optional[BaseException] = None

    def readable(self) -> bool:
        return True

    def _next_line(self) -> Optional[str]:
        try:
            row = next(self._iterator)
        except StopIteration:
            self._exhausted = True
            return None
        except BaseException as e:
            self.error = e
            raise
        return self._delimiter.join(row) + "\n"

    def read(self, size: Optional[int] = -1) -> str:
        if size is None:
            size = -1
        while (size < 0 or len(self._buffer) < size) and not self._exhausted:
            line = self._next_line()
            if line is None:
                break
            self._buffer += line

        if size < 0:
            data = self._buffer
            self._buffer = ""
            return data

        data = self._buffer[:size]
        self._buffer = self._buffer[size:]
        return data

    def readline(self, size: Optional[int] = -1) -> str:
        if self._buffer:
            return self.read(size)
        line = self._next_line()
        return line or ""


class PostgresDialect(BulkDialect):
    """BulkDialect for PostgreSQL through psycopg2.

    - Staging: ``CREATE TEMP TABLE ... AS TABLE ... WITH NO DATA``
    - Transfer: ``COPY ... FROM STDIN WITH (FORMAT csv)``
    - Merge: ``UPDATE ... FROM`` and ``INSERT ... ON CONFLICT``
    - Timeout: ``SET LOCAL statement_timeout``

    Examples:
        >>> dialect = PostgresDialect()
        >>> dialect.transfer_statement('"public"."orders"', columns)
        'COPY "public"."orders" ("id", "total") FROM STDIN WITH (FORMAT csv, NULL \\'\\')'
    """

    name = "postgresql"
    default_schema = "public"
    default_batch_size = 100_000

    def _get_sa_dialect(self) -> Dialect:
        return postgresql.dialect()

    def _get_type_mapper(self) -> TypeMapper:
        return PostgresTypeMapper(self.sa_dialect)

    def _get_query_builder(self) -> QueryBuilder:
        return PostgresQueryBuilder(self.sa_dialect, self.type_mapper)

    def drop_staging_sql(self, descriptor: TableDescriptor) -> str:
        # pg_temp keeps the drop away from a permanent table of the same name
        return f"DROP TABLE IF EXISTS pg_temp.{descriptor.staging_name}"

    def create_staging_sql(self, descriptor: TableDescriptor) -> list[str]:
        return [
            f"CREATE TEMP TABLE {descriptor.staging_name} "
            f"AS TABLE {descriptor.full_name} WITH NO DATA"
        ]

    @contextmanager
    def statement_timeout(self, conn: Connection, seconds: Optional[float]) -> Iterator[None]:
        if seconds:
            # SET LOCAL reverts on its own when the transaction ends
            self.execute(conn, f"SET LOCAL statement_timeout = {int(seconds * 1000)}")
        yield

    def transfer_statement(self, table: str, columns: tuple[ColumnDescriptor, ...]) -> str:
        column_list = self.query_builder.column_list(columns)
        return f"COPY {table} ({column_list}) FROM STDIN WITH (FORMAT csv, NULL '')"

    def _transfer(
        self,
        conn: Connection,
        table: str,
        columns: tuple[ColumnDescriptor, ...],
        rows: Iterator[tuple[Any, ...]],
    ) -> None:
        statement = self.transfer_statement(table, columns)
        if config.log_sql:
            logger.debug("Executing SQL: %s", statement)
        stream = _CSVRowStream(rows, self.type_mapper.delimiter)
        cursor = conn.connection.cursor()
        try:
            cursor.copy_expert(statement, stream)
        except Exception:
            # Surface the producer's own error (e.g. cancellation) over the driver's
            if stream.error is not None:
                raise stream.error
            raise
        finally:
            cursor.close()
