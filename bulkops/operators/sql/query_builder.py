"""Merge SQL for engines with UPDATE ... FROM and INSERT ... ON CONFLICT.

PostgreSQL and SQLite (3.33+) share this statement shape.
"""

from __future__ import annotations

from typing import Optional

from bulkops.core.query_builder import STAGING_ALIAS, TARGET_ALIAS, MergeQueryPair, QueryBuilder
from bulkops.models.descriptor import ColumnDescriptor, TableDescriptor

__all__ = ["MergeQueryPair", "SQLQueryBuilder"]


class SQLQueryBuilder(QueryBuilder):
    """Query builder using ``UPDATE ... FROM`` and ``ON CONFLICT``.

    Examples:
        >>> builder.build_update(descriptor)
        'UPDATE "orders" AS t SET "total" = s."total" FROM "temp_orders" AS s
         WHERE t."id" = s."id" AND s."id" IS NOT NULL'
        >>> builder.build_upsert(descriptor)
        'INSERT INTO "orders" ("id", "total") SELECT s."id", s."total"
         FROM "temp_orders" AS s WHERE s."id" IS NOT NULL AND s."id" <> 0
         ON CONFLICT ("id") DO UPDATE SET "total" = excluded."total"'
    """

    def _overriding_clause(self, columns: tuple[ColumnDescriptor, ...]) -> str:
        """Clause placed between the column list and SELECT of an INSERT."""
        return ""

    def build_update(self, descriptor: TableDescriptor) -> Optional[str]:
        updatable = descriptor.updatable_columns
        if not updatable:
            return None

        assignments = ", ".join(
            f"{self.quote(c.column_name)} = {STAGING_ALIAS}.{self.quote(c.column_name)}"
            for c in updatable
        )
        not_null = " AND ".join(
            f"{STAGING_ALIAS}.{self.quote(c.column_name)} IS NOT NULL"
            for c in descriptor.primary_key_columns
        )
        return (
            f"UPDATE {descriptor.full_name} AS {TARGET_ALIAS} "
            f"SET {assignments} "
            f"FROM {descriptor.staging_name} AS {STAGING_ALIAS} "
            f"WHERE {self.key_join(descriptor)} AND {not_null}"
        )

    def build_upsert(self, descriptor: TableDescriptor) -> str:
        columns = self.upsert_columns(descriptor)
        keys = self.column_list(descriptor.primary_key_columns)
        updatable = [c for c in descriptor.updatable_columns if c in columns]

        if updatable:
            assignments = ", ".join(
                f"{self.quote(c.column_name)} = excluded.{self.quote(c.column_name)}"
                for c in updatable
            )
            conflict_action = f"DO UPDATE SET {assignments}"
        else:
            conflict_action = "DO NOTHING"

        return (
            f"INSERT INTO {descriptor.full_name} ({self.column_list(columns)})"
            f"{self._overriding_clause(columns)} "
            f"SELECT {self.column_list(columns, STAGING_ALIAS)} "
            f"FROM {descriptor.staging_name} AS {STAGING_ALIAS} "
            f"WHERE {self.key_present(descriptor)} "
            f"ON CONFLICT ({keys}) {conflict_action}"
        )
