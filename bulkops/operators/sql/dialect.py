"""Generic bulk dialect for DBAPI drivers with a fast ``executemany``.

Rows are shipped in chunks through a raw DBAPI cursor that shares the
SQLAlchemy connection's transaction.
"""

from __future__ import annotations

import logging
from typing import Any, Iterator

from sqlalchemy.engine import Connection

from bulkops.core.config import config
from bulkops.core.dialect import BulkDialect
from bulkops.models.descriptor import ColumnDescriptor, TableDescriptor

logger = logging.getLogger(__name__)


class SQLDialect(BulkDialect):
    """BulkDialect streaming rows with ``cursor.executemany``.

    Subclasses still provide the SQLAlchemy dialect, type mapper and
    query builder. They can tune the cursor in _prepare_cursor().
    """

    #: DBAPI placeholder used in the transfer statement
    placeholder = "?"

    def create_staging_sql(self, descriptor: TableDescriptor) -> list[str]:
        return [
            f"CREATE TEMPORARY TABLE {descriptor.staging_name} AS "
            f"SELECT * FROM {descriptor.full_name} WHERE 1 = 0"
        ]

    def transfer_statement(self, table: str, columns: tuple[ColumnDescriptor, ...]) -> str:
        return self.query_builder.insert_values(table, columns, self.placeholder)

    def _prepare_cursor(self, cursor: Any) -> None:
        """Hook for subclasses to tune the DBAPI cursor before executemany."""
        pass

    def _transfer(
        self,
        conn: Connection,
        table: str,
        columns: tuple[ColumnDescriptor, ...],
        rows: Iterator[tuple[Any, ...]],
    ) -> None:
        statement = self.transfer_statement(table, columns)
        batch = list(rows)
        if config.log_sql:
            logger.debug("Executing SQL for %d rows: %s", len(batch), statement)
        cursor = conn.connection.cursor()
        try:
            self._prepare_cursor(cursor)
            cursor.executemany(statement, batch)
        finally:
            cursor.close()
