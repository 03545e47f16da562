"""bulkops core package.

This package contains the abstract base classes that define the
interfaces of every dialect, plus the schema resolver and configuration.
The orchestrator lives in :mod:`bulkops.core.orchestrator`.
"""

from bulkops.core.connector import Connector
from bulkops.core.dialect import BulkDialect, StreamTarget
from bulkops.core.query_builder import MergeQueryPair, QueryBuilder
from bulkops.core.type_mapper import TypeMapper

__all__ = [
    "BulkDialect",
    "Connector",
    "MergeQueryPair",
    "QueryBuilder",
    "StreamTarget",
    "TypeMapper",
]
