"""bulkops models package.

This package contains the table descriptor value objects, the per-call
options model and the result models.
"""

from bulkops.models.descriptor import NIL_UUID, ColumnDescriptor, KeyKind, TableDescriptor
from bulkops.models.options import BulkConfig
from bulkops.models.results import BulkResult, CleanupResult

__all__ = [
    # Descriptor models
    "ColumnDescriptor",
    "KeyKind",
    "NIL_UUID",
    "TableDescriptor",
    # Options
    "BulkConfig",
    # Result models
    "BulkResult",
    "CleanupResult",
]
