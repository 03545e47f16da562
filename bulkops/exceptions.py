"""bulkops exception hierarchy."""

from __future__ import annotations

from typing import Optional


class BulkOpsError(Exception):
    """Base exception for all bulkops errors."""

    pass


class ConfigurationError(BulkOpsError):
    """Raised when configuration is invalid or missing."""

    pass


class ConnectionError(BulkOpsError):
    """Raised when connection to a database fails."""

    pass


class ConnectorError(BulkOpsError):
    """Raised when a connector operation fails."""

    pass


class SchemaResolutionError(BulkOpsError):
    """Raised when a record type cannot be resolved to a mapped table.

    Also raised when an operation requires a primary key and the
    resolved table has none.
    """

    pass


class StagingTableError(BulkOpsError):
    """Raised when a staging table cannot be created."""

    pass


class BulkTransferError(BulkOpsError):
    """Raised when streaming rows through the bulk channel fails."""

    pass


class OperationCancelledError(BulkTransferError):
    """Raised when the cancellation signal is set while streaming."""

    pass


class MergeExecutionError(BulkOpsError):
    """Raised when generated merge SQL fails at the database."""

    pass


class OperationFailedError(BulkOpsError):
    """Operation-level failure wrapping the original cause.

    The original exception is chained as ``__cause__`` and also exposed
    as :attr:`cause` for callers that want to inspect it directly.
    """

    operation = "operation"

    def __init__(
        self,
        message: str,
        *,
        table: Optional[str] = None,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(message)
        self.table = table
        self.cause = cause


class InsertFailedError(OperationFailedError):
    """Raised when a bulk insert fails and has been rolled back."""

    operation = "insert"


class UpdateFailedError(OperationFailedError):
    """Raised when a bulk update fails and has been rolled back."""

    operation = "update"


class UpsertFailedError(OperationFailedError):
    """Raised when a bulk insert-or-update fails and has been rolled back."""

    operation = "insert_or_update"
