"""Bulk operation orchestration.

BulkOperations sequences one public operation inside a single
transaction: resolve schema, create staging, stream rows, merge, drop
staging, commit. On failure it rolls back, tears down staging on a best
effort basis and re-raises the original error wrapped in the
operation's failure type.

Typical usage:
    >>> from bulkops import BulkOperations, BulkConfig
    >>> ops = BulkOperations(engine)
    >>> ops.insert(orders)
    >>> ops.insert_or_update(orders, options=BulkConfig(batch_size=5_000))
"""

from __future__ import annotations

import itertools
import logging
import threading
from collections.abc import Mapping
from contextlib import ExitStack
from datetime import datetime
from enum import Enum
from typing import Any, Iterable, Optional, Union

from sqlalchemy.engine import Connection, Engine

from bulkops.core.config import config
from bulkops.core.dialect import BulkDialect, StreamTarget
from bulkops.core.schema import MetadataProvider, require_primary_key, resolve_table
from bulkops.exceptions import (
    ConfigurationError,
    InsertFailedError,
    OperationFailedError,
    UpdateFailedError,
    UpsertFailedError,
)
from bulkops.models.descriptor import TableDescriptor
from bulkops.models.options import BulkConfig
from bulkops.models.results import BulkResult, CleanupResult
from bulkops.operators import dialect_for
from bulkops.operators.sql.connector import SQLConnector

logger = logging.getLogger(__name__)

Bind = Union[Engine, Connection, SQLConnector]


class OperationState(str, Enum):
    """States a bulk operation moves through."""

    START = "start"
    OPEN_CONNECTION = "open_connection"
    BEGIN_TRANSACTION = "begin_transaction"
    RESOLVE_SCHEMA = "resolve_schema"
    CREATE_STAGING = "create_staging"
    STREAM_DATA = "stream_data"
    MERGE = "merge"
    DROP_STAGING = "drop_staging"
    COMMIT = "commit"
    CLOSE_CONNECTION = "close_connection"
    COMMITTED = "committed"
    ROLLBACK = "rollback"
    FAILED = "failed"


class _Operation(str, Enum):
    INSERT = "insert"
    UPDATE = "update"
    INSERT_OR_UPDATE = "insert_or_update"


_FAILURES: dict[_Operation, type[OperationFailedError]] = {
    _Operation.INSERT: InsertFailedError,
    _Operation.UPDATE: UpdateFailedError,
    _Operation.INSERT_OR_UPDATE: UpsertFailedError,
}

_EMPTY = object()


def _peek(records: Optional[Iterable[Any]]) -> tuple[Any, Iterable[Any]]:
    """Return the first record (or _EMPTY) and an iterable over all records."""
    if records is None:
        return _EMPTY, ()
    iterator = iter(records)
    first = next(iterator, _EMPTY)
    if first is _EMPTY:
        return _EMPTY, ()
    return first, itertools.chain((first,), iterator)


class _Run:
    """Mutable bookkeeping for one operation."""

    def __init__(self, operation: _Operation):
        self.operation = operation
        self.state = OperationState.START
        self.descriptor: Optional[TableDescriptor] = None
        self.staging_created = False
        self.streamed = 0
        self.inserted = 0
        self.updated = 0
        self.upserted = 0
        self.cleanup: Optional[CleanupResult] = None

    @property
    def table(self) -> Optional[str]:
        return self.descriptor.full_name if self.descriptor else None

    def transition(self, state: OperationState) -> None:
        logger.debug("%s: %s -> %s", self.operation.value, self.state.value, state.value)
        self.state = state


class BulkOperations:
    """Dialect-aware bulk insert, update and insert-or-update.

    Args:
        bind: SQLAlchemy Engine, Connection, or a connected SQLConnector.
            With an Engine or connector a connection is opened and closed
            per call. With a Connection the caller owns it: each call runs
            in a new transaction, or a SAVEPOINT when one is already open,
            and the connection is never closed.
        dialect: BulkDialect to use (detected from the bind when omitted)
        provider: Metadata provider (SQLAlchemy mappings when omitted)

    Examples:
        >>> ops = BulkOperations(engine)
        >>> result = ops.insert_or_update(customers)
        >>> result.records_upserted, result.records_inserted
        (120, 30)
    """

    def __init__(
        self,
        bind: Bind,
        dialect: Optional[BulkDialect] = None,
        provider: Optional[MetadataProvider] = None,
    ):
        if isinstance(bind, SQLConnector):
            dialect = dialect or bind.bulk_dialect
        elif isinstance(bind, (Engine, Connection)):
            dialect = dialect or dialect_for(bind)
        else:
            raise ConfigurationError(
                f"bind must be an Engine, Connection or SQLConnector, got {type(bind).__name__}"
            )
        self.bind = bind
        self.dialect = dialect
        self.provider = provider

    def insert(
        self,
        records: Optional[Iterable[Any]],
        model: Any = None,
        options: Optional[BulkConfig] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> BulkResult:
        """Insert records directly into their target table.

        Generated columns are left to the database unless
        ``options.keep_identity`` is set.

        Raises:
            InsertFailedError: If the operation failed and was rolled back
        """
        return self._run(_Operation.INSERT, records, model, options, cancel_event)

    def update(
        self,
        records: Optional[Iterable[Any]],
        model: Any = None,
        options: Optional[BulkConfig] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> BulkResult:
        """Update existing rows matched by primary key.

        Records without a key are skipped; keys are never changed.

        Raises:
            UpdateFailedError: If the operation failed and was rolled back
        """
        return self._run(_Operation.UPDATE, records, model, options, cancel_event)

    def insert_or_update(
        self,
        records: Optional[Iterable[Any]],
        model: Any = None,
        options: Optional[BulkConfig] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> BulkResult:
        """Upsert keyed records and insert keyless records as new rows.

        Raises:
            UpsertFailedError: If the operation failed and was rolled back
        """
        return self._run(_Operation.INSERT_OR_UPDATE, records, model, options, cancel_event)

    def _engine_or_connection(self) -> Union[Engine, Connection]:
        if isinstance(self.bind, SQLConnector):
            return self.bind.require_engine()
        return self.bind

    def _run(
        self,
        operation: _Operation,
        records: Optional[Iterable[Any]],
        model: Any,
        options: Optional[BulkConfig],
        cancel_event: Optional[threading.Event],
    ) -> BulkResult:
        started_at = datetime.now()
        options = options or BulkConfig()

        first, records = _peek(records)
        if first is _EMPTY:
            logger.debug("%s called with no records; nothing to do", operation.value)
            return BulkResult(
                operation=operation.value,
                started_at=started_at,
                completed_at=datetime.now(),
            )

        if model is None:
            if isinstance(first, Mapping):
                raise ConfigurationError("model is required when records are mappings")
            model = type(first)

        run = _Run(operation)
        bind = self._engine_or_connection()
        owns_connection = not isinstance(bind, Connection)
        conn: Optional[Connection] = None
        transaction = None

        with ExitStack() as stack:
            try:
                run.transition(OperationState.OPEN_CONNECTION)
                conn = bind.connect() if owns_connection else bind

                run.transition(OperationState.BEGIN_TRANSACTION)
                transaction = conn.begin_nested() if conn.in_transaction() else conn.begin()
                timeout = options.timeout or config.statement_timeout or None
                stack.enter_context(self.dialect.statement_timeout(conn, timeout))

                self._execute(run, conn, model, records, options, cancel_event)

                run.transition(OperationState.COMMIT)
                transaction.commit()
            except BaseException as e:
                stack.close()
                self._fail(run, conn, transaction, e)
                if conn is not None and owns_connection:
                    run.transition(OperationState.CLOSE_CONNECTION)
                    conn.close()
                run.transition(OperationState.FAILED)
                if not isinstance(e, Exception):
                    logger.warning("Bulk %s into %s interrupted", operation.value, run.table)
                    raise
                error_cls = _FAILURES[operation]
                logger.error("Bulk %s into %s failed: %s", operation.value, run.table, e)
                raise error_cls(
                    f"Bulk {operation.value} into {run.table or model!r} failed: {e}",
                    table=run.table,
                    cause=e,
                ) from e

        if owns_connection:
            run.transition(OperationState.CLOSE_CONNECTION)
            conn.close()
        run.transition(OperationState.COMMITTED)

        completed_at = datetime.now()
        duration = (completed_at - started_at).total_seconds()
        logger.info(
            "Bulk %s into %s: %d rows streamed in %.2fs",
            operation.value,
            run.table,
            run.streamed,
            duration,
        )
        cleanup_error = None
        if run.cleanup is not None and not run.cleanup.succeeded:
            cleanup_error = str(run.cleanup.error)
        return BulkResult(
            operation=operation.value,
            table=run.table,
            records_streamed=run.streamed,
            records_inserted=run.inserted,
            records_updated=run.updated,
            records_upserted=run.upserted,
            duration_seconds=duration,
            started_at=started_at,
            completed_at=completed_at,
            cleanup_error=cleanup_error,
            metadata={"dialect": self.dialect.name, "keep_identity": options.keep_identity},
        )

    def _execute(
        self,
        run: _Run,
        conn: Connection,
        model: Any,
        records: Iterable[Any],
        options: BulkConfig,
        cancel_event: Optional[threading.Event],
    ) -> None:
        dialect = self.dialect

        run.transition(OperationState.RESOLVE_SCHEMA)
        descriptor = resolve_table(model, dialect, self.provider)
        run.descriptor = descriptor

        if run.operation is _Operation.INSERT:
            run.transition(OperationState.STREAM_DATA)
            run.streamed = dialect.stream_rows(
                conn, descriptor, records, StreamTarget.TARGET, options, cancel_event
            )
            run.inserted = run.streamed
            return

        require_primary_key(descriptor, run.operation.value)

        run.transition(OperationState.CREATE_STAGING)
        dialect.create_staging(conn, descriptor)
        run.staging_created = True

        run.transition(OperationState.STREAM_DATA)
        run.streamed = dialect.stream_rows(
            conn, descriptor, records, StreamTarget.STAGING, options, cancel_event
        )

        run.transition(OperationState.MERGE)
        if run.operation is _Operation.UPDATE:
            statement = dialect.build_update(descriptor)
            if statement is None:
                logger.info("%s has no updatable columns; update is a no-op", descriptor.full_name)
            else:
                run.updated = dialect.run_update(conn, descriptor, statement)
        else:
            pair = dialect.build_split_merge(descriptor)
            run.upserted, run.inserted = dialect.run_split_merge(conn, descriptor, pair)

        run.transition(OperationState.DROP_STAGING)
        run.cleanup = dialect.drop_staging(conn, descriptor)
        run.staging_created = False

    def _fail(
        self,
        run: _Run,
        conn: Optional[Connection],
        transaction: Any,
        error: BaseException,
    ) -> None:
        """Roll back and tear down staging. Never raises."""
        if transaction is not None and transaction.is_active:
            run.transition(OperationState.ROLLBACK)
            try:
                transaction.rollback()
            except Exception as e:
                logger.warning("Rollback after %s failed: %s", type(error).__name__, e)

        if conn is not None and run.staging_created and run.descriptor is not None:
            run.transition(OperationState.DROP_STAGING)
            try:
                self.dialect.drop_staging(conn, run.descriptor)
            except Exception as e:
                logger.warning("Staging cleanup after failure raised: %s", e)
            run.staging_created = False


def bulk_insert(
    bind: Bind,
    records: Optional[Iterable[Any]],
    model: Any = None,
    options: Optional[BulkConfig] = None,
    cancel_event: Optional[threading.Event] = None,
    dialect: Optional[BulkDialect] = None,
) -> BulkResult:
    """Insert records in bulk. See :meth:`BulkOperations.insert`."""
    return BulkOperations(bind, dialect=dialect).insert(records, model, options, cancel_event)


def bulk_update(
    bind: Bind,
    records: Optional[Iterable[Any]],
    model: Any = None,
    options: Optional[BulkConfig] = None,
    cancel_event: Optional[threading.Event] = None,
    dialect: Optional[BulkDialect] = None,
) -> BulkResult:
    """Update records in bulk. See :meth:`BulkOperations.update`."""
    return BulkOperations(bind, dialect=dialect).update(records, model, options, cancel_event)


def bulk_insert_or_update(
    bind: Bind,
    records: Optional[Iterable[Any]],
    model: Any = None,
    options: Optional[BulkConfig] = None,
    cancel_event: Optional[threading.Event] = None,
    dialect: Optional[BulkDialect] = None,
) -> BulkResult:
    """Upsert records in bulk. See :meth:`BulkOperations.insert_or_update`."""
    return BulkOperations(bind, dialect=dialect).insert_or_update(
        records, model, options, cancel_event
    )
