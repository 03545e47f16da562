"""Base BulkDialect abstract class.

A BulkDialect bundles everything that differs between database engines
during a bulk operation: identifier quoting, staging-table DDL, the
native bulk-transfer channel, merge SQL and statement timeouts. The
orchestrator only talks to this interface.
"""

from __future__ import annotations

import itertools
import logging
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager, nullcontext
from enum import Enum
from typing import Any, ContextManager, Iterable, Iterator, Optional

from sqlalchemy.engine import Connection, Dialect

from bulkops.core.config import config
from bulkops.core.query_builder import MergeQueryPair, QueryBuilder
from bulkops.core.type_mapper import TypeMapper
from bulkops.exceptions import (
    BulkTransferError,
    MergeExecutionError,
    OperationCancelledError,
    StagingTableError,
)
from bulkops.models.descriptor import ColumnDescriptor, TableDescriptor
from bulkops.models.options import BulkConfig
from bulkops.models.results import CleanupResult

logger = logging.getLogger(__name__)


class StreamTarget(str, Enum):
    """Where the batch streamer writes rows."""

    STAGING = "staging"
    TARGET = "target"


class _Progress:
    """Row counter that logs every ``notify_after`` rows."""

    def __init__(self, table: str, notify_after: Optional[int]):
        self.table = table
        self.notify_after = notify_after
        self.count = 0

    def advance(self) -> None:
        self.count += 1
        if self.notify_after and self.count % self.notify_after == 0:
            logger.debug("Streamed %d rows into %s", self.count, self.table)


def chunked(rows: Iterable[Any], size: int) -> Iterator[Iterator[Any]]:
    """Split an iterable into lazy chunks of at most ``size`` items.

    Each chunk must be consumed before the next one is requested.
    """
    iterator = iter(rows)
    for first in iterator:
        yield itertools.chain((first,), itertools.islice(iterator, size - 1))


class BulkDialect(ABC):
    """Base class for database-specific bulk operation support.

    Subclasses must implement:
    - _get_sa_dialect(): SQLAlchemy dialect used for quoting and DDL
    - _get_type_mapper(): Dialect-specific TypeMapper
    - _get_query_builder(): Dialect-specific QueryBuilder
    - create_staging_sql(): Statements creating the staging table
    - transfer_statement(): Statement the bulk channel executes
    - _transfer(): Ship one chunk of rows through the bulk channel

    Examples:
        >>> dialect = PostgresDialect()
        >>> dialect.qualify("public", "orders")
        '"public"."orders"'
        >>> dialect.staging_table("orders")
        '"temp_orders"'
    """

    #: SQLAlchemy dialect name this BulkDialect serves
    name: str = ""

    #: Schema assumed when the mapping does not set one
    default_schema: Optional[str] = None

    #: Rows per transfer chunk when neither the call nor config sets one
    default_batch_size: int = 10_000

    def __init__(self, staging_prefix: Optional[str] = None):
        """Initialize dialect.

        Args:
            staging_prefix: Prefix for staging-table names (defaults to
                BULKOPS_STAGING_PREFIX)
        """
        self.staging_prefix = staging_prefix or config.staging_prefix
        self.sa_dialect: Dialect = self._get_sa_dialect()
        self.type_mapper: TypeMapper = self._get_type_mapper()
        self.query_builder: QueryBuilder = self._get_query_builder()

    @abstractmethod
    def _get_sa_dialect(self) -> Dialect:
        """Get the SQLAlchemy dialect used for quoting and type compilation."""
        pass

    @abstractmethod
    def _get_type_mapper(self) -> TypeMapper:
        """Get dialect-specific type mapper."""
        pass

    @abstractmethod
    def _get_query_builder(self) -> QueryBuilder:
        """Get dialect-specific merge query builder."""
        pass

    # Naming

    def quote(self, name: str) -> str:
        """Quote an identifier unconditionally."""
        return self.sa_dialect.identifier_preparer.quote_identifier(name)

    def qualify(self, schema: Optional[str], table_name: str) -> str:
        """Render a fully qualified, quoted table name."""
        if schema:
            return f"{self.quote(schema)}.{self.quote(table_name)}"
        return self.quote(table_name)

    def staging_table(self, table_name: str) -> str:
        """Render the quoted staging-table name for a target table."""
        return self.quote(f"{self.staging_prefix}{table_name}")

    # Statement execution

    def execute(self, conn: Connection, statement: str) -> int:
        """Execute a generated statement and return its row count.

        Row counts are informational; drivers that cannot report one
        yield 0.
        """
        if config.log_sql:
            logger.debug("Executing SQL: %s", statement)
        result = conn.exec_driver_sql(statement, execution_options={"no_parameters": True})
        return max(result.rowcount or 0, 0)

    @contextmanager
    def statement_timeout(self, conn: Connection, seconds: Optional[float]) -> Iterator[None]:
        """Apply a per-statement timeout for the duration of the block.

        The base implementation does not support timeouts and ignores them.
        """
        if seconds:
            logger.info("%s does not support statement timeouts; ignoring %ss", self.name, seconds)
        yield

    # Staging table manager

    @abstractmethod
    def create_staging_sql(self, descriptor: TableDescriptor) -> list[str]:
        """Statements creating an empty staging table shaped like the target.

        Args:
            descriptor: Resolved target table

        Returns:
            DDL statements, executed in order
        """
        pass

    def drop_staging_sql(self, descriptor: TableDescriptor) -> str:
        """Statement dropping the staging table if it exists."""
        return f"DROP TABLE IF EXISTS {descriptor.staging_name}"

    def create_staging(self, conn: Connection, descriptor: TableDescriptor) -> None:
        """Create the staging table, replacing a stale one of the same name.

        Raises:
            StagingTableError: If the table cannot be created
        """
        try:
            self.execute(conn, self.drop_staging_sql(descriptor))
            for statement in self.create_staging_sql(descriptor):
                self.execute(conn, statement)
        except Exception as e:
            raise StagingTableError(
                f"Failed to create staging table {descriptor.staging_name} "
                f"for {descriptor.full_name}: {e}"
            ) from e
        logger.debug("Created staging table %s", descriptor.staging_name)

    def drop_staging(self, conn: Connection, descriptor: TableDescriptor) -> CleanupResult:
        """Drop the staging table. Never raises.

        Inside an open transaction the drop runs under a savepoint so a
        failure cannot poison the surrounding transaction.

        Returns:
            CleanupResult describing whether the drop succeeded
        """
        statement = self.drop_staging_sql(descriptor)
        try:
            scope = conn.begin_nested() if conn.in_transaction() else conn.begin()
            with scope:
                self.execute(conn, statement)
        except Exception as e:
            logger.warning("Failed to drop staging table %s: %s", descriptor.staging_name, e)
            return CleanupResult.failed(e)
        logger.debug("Dropped staging table %s", descriptor.staging_name)
        return CleanupResult.ok()

    # Batch streamer

    def stream_columns(
        self, descriptor: TableDescriptor, target: StreamTarget, keep_identity: bool
    ) -> tuple[ColumnDescriptor, ...]:
        """Columns transferred for a given stream target."""
        if target is StreamTarget.STAGING:
            return descriptor.columns
        return descriptor.insert_columns(keep_identity)

    def stream_table(self, descriptor: TableDescriptor, target: StreamTarget) -> str:
        """Quoted table name the streamer writes into."""
        if target is StreamTarget.STAGING:
            return descriptor.staging_name
        return descriptor.full_name

    def iter_rows(
        self,
        columns: tuple[ColumnDescriptor, ...],
        records: Iterable[Any],
        null_default_keys: bool,
        progress: _Progress,
        cancel_event: Optional[threading.Event] = None,
    ) -> Iterator[tuple[Any, ...]]:
        """Lazily convert records into wire rows, one record at a time.

        Args:
            columns: Columns to read, in transfer order
            records: Records to convert
            null_default_keys: Write placeholder key values as NULL
            progress: Counter advanced once per produced row
            cancel_event: Checked before every row

        Raises:
            OperationCancelledError: If cancel_event is set
        """
        to_wire = self.type_mapper.to_wire
        for record in records:
            if cancel_event is not None and cancel_event.is_set():
                raise OperationCancelledError(
                    f"Bulk transfer into {progress.table} cancelled after {progress.count} rows"
                )
            row = []
            for column in columns:
                value = column.read(record)
                if null_default_keys and column.is_default_key(value):
                    value = None
                row.append(to_wire(value, column))
            progress.advance()
            yield tuple(row)

    @abstractmethod
    def transfer_statement(self, table: str, columns: tuple[ColumnDescriptor, ...]) -> str:
        """Statement the bulk channel executes for a table and column list."""
        pass

    @abstractmethod
    def _transfer(
        self,
        conn: Connection,
        table: str,
        columns: tuple[ColumnDescriptor, ...],
        rows: Iterator[tuple[Any, ...]],
    ) -> None:
        """Ship one chunk of wire rows through the native bulk channel."""
        pass

    def explicit_identity(self, conn: Connection, descriptor: TableDescriptor) -> ContextManager[None]:
        """Allow explicit values in generated columns for the duration of a block.

        Most engines accept explicit identity values without ceremony.
        """
        return nullcontext()

    def stream_rows(
        self,
        conn: Connection,
        descriptor: TableDescriptor,
        records: Iterable[Any],
        target: StreamTarget,
        options: Optional[BulkConfig] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> int:
        """Push records into the staging table or directly into the target.

        Staging loads transfer every column and write placeholder key
        values as NULL. Direct loads write values verbatim and leave out
        generated columns unless ``keep_identity`` is set.

        Args:
            conn: Connection with an open transaction
            descriptor: Resolved target table
            records: Records to stream (consumed lazily)
            target: StreamTarget.STAGING or StreamTarget.TARGET
            options: Per-call options
            cancel_event: Cancellation signal checked before every row

        Returns:
            Number of rows streamed

        Raises:
            OperationCancelledError: If cancel_event is set while streaming
            BulkTransferError: If any row fails to transfer
        """
        options = options or BulkConfig()
        batch_size = options.batch_size or config.batch_size or self.default_batch_size
        columns = self.stream_columns(descriptor, target, options.keep_identity)
        table = self.stream_table(descriptor, target)
        progress = _Progress(table, options.notify_after or batch_size)
        rows = self.iter_rows(
            columns,
            records,
            null_default_keys=target is StreamTarget.STAGING,
            progress=progress,
            cancel_event=cancel_event,
        )

        explicit = target is StreamTarget.TARGET and options.keep_identity and descriptor.has_identity
        try:
            with self.explicit_identity(conn, descriptor) if explicit else nullcontext():
                for chunk in chunked(rows, batch_size):
                    self._transfer(conn, table, columns, chunk)
        except BulkTransferError:
            raise
        except Exception as e:
            raise BulkTransferError(
                f"Failed to stream rows into {table} after {progress.count} rows: {e}"
            ) from e

        logger.debug("Streamed %d rows into %s", progress.count, table)
        return progress.count

    # Merge

    def build_update(self, descriptor: TableDescriptor) -> Optional[str]:
        """Build the update-only merge (None when nothing is updatable)."""
        return self.query_builder.build_update(descriptor)

    def build_split_merge(self, descriptor: TableDescriptor) -> MergeQueryPair:
        """Build the keyed upsert and keyless insert of a split merge."""
        return self.query_builder.build_split_merge(descriptor)

    def upsert_needs_explicit_identity(self, descriptor: TableDescriptor) -> bool:
        """Whether the keyed upsert writes into a generated column."""
        return False

    def run_update(self, conn: Connection, descriptor: TableDescriptor, statement: str) -> int:
        """Execute the update-only merge.

        Raises:
            MergeExecutionError: If the database rejects the statement
        """
        try:
            return self.execute(conn, statement)
        except Exception as e:
            raise MergeExecutionError(f"Update merge into {descriptor.full_name} failed: {e}") from e

    def run_split_merge(
        self, conn: Connection, descriptor: TableDescriptor, pair: MergeQueryPair
    ) -> tuple[int, int]:
        """Execute a split merge, upsert first then insert.

        Returns:
            Tuple of (rows reported by the upsert, rows reported by the insert)

        Raises:
            MergeExecutionError: If the database rejects either statement
        """
        try:
            scope = (
                self.explicit_identity(conn, descriptor)
                if self.upsert_needs_explicit_identity(descriptor)
                else nullcontext()
            )
            with scope:
                upserted = self.execute(conn, pair.upsert_statement)
        except Exception as e:
            raise MergeExecutionError(f"Upsert into {descriptor.full_name} failed: {e}") from e
        try:
            inserted = self.execute(conn, pair.insert_statement)
        except Exception as e:
            raise MergeExecutionError(
                f"Insert of new rows into {descriptor.full_name} failed: {e}"
            ) from e
        return upserted, inserted
