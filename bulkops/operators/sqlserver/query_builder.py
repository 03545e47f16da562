"""SQL Server merge query builder."""

from __future__ import annotations

from typing import Optional

from bulkops.core.query_builder import STAGING_ALIAS, TARGET_ALIAS, QueryBuilder
from bulkops.models.descriptor import TableDescriptor


class SQLServerQueryBuilder(QueryBuilder):
    """Query builder using T-SQL ``UPDATE ... FROM ... JOIN`` and ``MERGE``.

    Examples:
        >>> builder.build_update(descriptor)
        'UPDATE t SET [total] = s.[total] FROM [dbo].[orders] AS t
         INNER JOIN [#temp_orders] AS s ON t.[id] = s.[id] WHERE s.[id] IS NOT NULL'
    """

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
            f"UPDATE {TARGET_ALIAS} SET {assignments} "
            f"FROM {descriptor.full_name} AS {TARGET_ALIAS} "
            f"INNER JOIN {descriptor.staging_name} AS {STAGING_ALIAS} "
            f"ON {self.key_join(descriptor)} "
            f"WHERE {not_null}"
        )

    def build_upsert(self, descriptor: TableDescriptor) -> str:
        columns = self.upsert_columns(descriptor)
        updatable = [c for c in descriptor.updatable_columns if c in columns]

        source = (
            f"SELECT {self.column_list(columns)} FROM {descriptor.staging_name} "
            f"WHERE {self.key_present(descriptor, alias=descriptor.staging_name)}"
        )
        clauses = [
            f"MERGE {descriptor.full_name} WITH (HOLDLOCK) AS {TARGET_ALIAS}",
            f"USING ({source}) AS {STAGING_ALIAS}",
            f"ON {self.key_join(descriptor)}",
        ]
        if updatable:
            assignments = ", ".join(
                f"{self.quote(c.column_name)} = {STAGING_ALIAS}.{self.quote(c.column_name)}"
                for c in updatable
            )
            clauses.append(f"WHEN MATCHED THEN UPDATE SET {assignments}")
        clauses.append(
            f"WHEN NOT MATCHED BY TARGET THEN INSERT ({self.column_list(columns)}) "
            f"VALUES ({self.column_list(columns, STAGING_ALIAS)})"
        )
        return " ".join(clauses) + ";"
