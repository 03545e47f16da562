"""PostgreSQL merge query builder."""

from __future__ import annotations

from bulkops.models.descriptor import ColumnDescriptor
from bulkops.operators.sql.query_builder import SQLQueryBuilder


class PostgresQueryBuilder(SQLQueryBuilder):
    """SQLQueryBuilder that can write into ``GENERATED ALWAYS`` identities."""

    def _overriding_clause(self, columns: tuple[ColumnDescriptor, ...]) -> str:
        if any(c.identity_always for c in columns):
            return " OVERRIDING SYSTEM VALUE"
        return ""
