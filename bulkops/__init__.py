"""bulkops - dialect-aware bulk insert, update and upsert."""

__version__ = "0.1.0"

# Re-export models for convenience
from bulkops.models import (
    BulkConfig,
    BulkResult,
    CleanupResult,
    ColumnDescriptor,
    KeyKind,
    TableDescriptor,
)

# Re-export core classes for custom dialects
from bulkops.core import BulkDialect, Connector, MergeQueryPair, QueryBuilder, TypeMapper
from bulkops.core.orchestrator import (
    BulkOperations,
    OperationState,
    bulk_insert,
    bulk_insert_or_update,
    bulk_update,
)
from bulkops.core.schema import resolve_table

# Re-export dialects and connectors
from bulkops.operators import dialect_for, get_dialect
from bulkops.operators.postgres import PostgresConnector, PostgresDialect
from bulkops.operators.sqlite import SQLiteConnector, SQLiteDialect
from bulkops.operators.sqlserver import SQLServerConnector, SQLServerDialect

from bulkops.exceptions import (
    BulkOpsError,
    BulkTransferError,
    InsertFailedError,
    MergeExecutionError,
    OperationCancelledError,
    OperationFailedError,
    SchemaResolutionError,
    StagingTableError,
    UpdateFailedError,
    UpsertFailedError,
)
from bulkops.utils.logging import configure_logging

__all__ = [
    # Version
    "__version__",
    # Operations
    "BulkOperations",
    "OperationState",
    "bulk_insert",
    "bulk_update",
    "bulk_insert_or_update",
    "resolve_table",
    # Models
    "BulkConfig",
    "BulkResult",
    "CleanupResult",
    "ColumnDescriptor",
    "KeyKind",
    "TableDescriptor",
    "MergeQueryPair",
    # Core ABCs
    "BulkDialect",
    "Connector",
    "QueryBuilder",
    "TypeMapper",
    # Dialects and connectors
    "dialect_for",
    "get_dialect",
    "PostgresConnector",
    "PostgresDialect",
    "SQLServerConnector",
    "SQLServerDialect",
    "SQLiteConnector",
    "SQLiteDialect",
    # Errors
    "BulkOpsError",
    "BulkTransferError",
    "InsertFailedError",
    "MergeExecutionError",
    "OperationCancelledError",
    "OperationFailedError",
    "SchemaResolutionError",
    "StagingTableError",
    "UpdateFailedError",
    "UpsertFailedError",
    # Logging
    "configure_logging",
]
