"""Base QueryBuilder abstract class.

This module defines the QueryBuilder interface that renders the SQL
reconciling a staging table with its target table, plus the pieces of
that SQL which are identical across dialects.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Iterable, Optional

from sqlalchemy.engine import Dialect

from bulkops.core.type_mapper import TypeMapper
from bulkops.models.descriptor import ColumnDescriptor, TableDescriptor

STAGING_ALIAS = "s"
TARGET_ALIAS = "t"


@dataclass(frozen=True)
class MergeQueryPair:
    """Statements of a split upsert, executed in order in one transaction.

    Attributes:
        upsert_statement: Inserts staged rows carrying a key, overwriting
            the existing row on key conflict
        insert_statement: Inserts staged rows whose key is absent as new rows
    """

    upsert_statement: str
    insert_statement: str

    def __iter__(self):
        yield self.upsert_statement
        yield self.insert_statement


class QueryBuilder(ABC):
    """Base class for dialect-specific merge SQL.

    All identifiers are quoted through the SQLAlchemy dialect's
    identifier preparer. Table names come pre-quoted from the
    TableDescriptor.

    Examples:
        >>> builder = PostgresDialect().query_builder
        >>> builder.build_update(descriptor)
        'UPDATE "public"."orders" AS t SET "total" = s."total" FROM "temp_orders" AS s WHERE ...'
        >>> upsert, insert = builder.build_split_merge(descriptor)
    """

    def __init__(self, sa_dialect: Dialect, type_mapper: TypeMapper):
        """Initialize query builder.

        Args:
            sa_dialect: SQLAlchemy dialect providing identifier quoting
            type_mapper: Type mapper providing default-key literals
        """
        self.sa_dialect = sa_dialect
        self.type_mapper = type_mapper

    def quote(self, name: str) -> str:
        """Quote an identifier unconditionally."""
        return self.sa_dialect.identifier_preparer.quote_identifier(name)

    def column_list(
        self, columns: Iterable[ColumnDescriptor], alias: Optional[str] = None
    ) -> str:
        """Render a comma separated list of (optionally aliased) columns."""
        prefix = f"{alias}." if alias else ""
        return ", ".join(f"{prefix}{self.quote(c.column_name)}" for c in columns)

    def key_present(self, descriptor: TableDescriptor, alias: str = STAGING_ALIAS) -> str:
        """Condition matching rows whose every key column carries a real value."""
        conditions = []
        for column in descriptor.primary_key_columns:
            ref = f"{alias}.{self.quote(column.column_name)}"
            conditions.append(f"{ref} IS NOT NULL")
            literal = self.type_mapper.default_literal(column.key_kind)
            if literal is not None:
                conditions.append(f"{ref} <> {literal}")
        return " AND ".join(conditions)

    def key_absent(self, descriptor: TableDescriptor, alias: str = STAGING_ALIAS) -> str:
        """Condition matching rows where any key column is NULL or a placeholder."""
        conditions = []
        for column in descriptor.primary_key_columns:
            ref = f"{alias}.{self.quote(column.column_name)}"
            literal = self.type_mapper.default_literal(column.key_kind)
            if literal is None:
                conditions.append(f"{ref} IS NULL")
            else:
                conditions.append(f"({ref} IS NULL OR {ref} = {literal})")
        return " OR ".join(conditions)

    def key_join(
        self,
        descriptor: TableDescriptor,
        left: str = TARGET_ALIAS,
        right: str = STAGING_ALIAS,
    ) -> str:
        """Equality condition on every key column between two aliases."""
        return " AND ".join(
            f"{left}.{self.quote(c.column_name)} = {right}.{self.quote(c.column_name)}"
            for c in descriptor.primary_key_columns
        )

    def upsert_columns(self, descriptor: TableDescriptor) -> tuple[ColumnDescriptor, ...]:
        """Columns written by the keyed upsert: keys plus non-generated columns."""
        return tuple(c for c in descriptor.columns if c.primary_key or not c.identity)

    def new_row_columns(self, descriptor: TableDescriptor) -> tuple[ColumnDescriptor, ...]:
        """Columns written when inserting keyless rows; generated columns are left out."""
        return tuple(c for c in descriptor.columns if not c.identity)

    def insert_values(
        self,
        table: str,
        columns: Iterable[ColumnDescriptor],
        placeholder: str = "?",
    ) -> str:
        """Render a parameterized single-row INSERT for executemany."""
        columns = tuple(columns)
        placeholders = ", ".join(placeholder for _ in columns)
        return f"INSERT INTO {table} ({self.column_list(columns)}) VALUES ({placeholders})"

    def build_insert_new(self, descriptor: TableDescriptor) -> str:
        """Insert staged rows whose key is absent as brand new rows."""
        columns = self.new_row_columns(descriptor)
        return (
            f"INSERT INTO {descriptor.full_name} ({self.column_list(columns)}) "
            f"SELECT {self.column_list(columns, STAGING_ALIAS)} "
            f"FROM {descriptor.staging_name} AS {STAGING_ALIAS} "
            f"WHERE {self.key_absent(descriptor)}"
        )

    def build_split_merge(self, descriptor: TableDescriptor) -> MergeQueryPair:
        """Build the keyed upsert and the keyless insert for a staged table.

        Args:
            descriptor: Resolved target table (must have a primary key)

        Returns:
            MergeQueryPair to execute upsert first, then insert
        """
        return MergeQueryPair(
            upsert_statement=self.build_upsert(descriptor),
            insert_statement=self.build_insert_new(descriptor),
        )

    @abstractmethod
    def build_update(self, descriptor: TableDescriptor) -> Optional[str]:
        """Build the UPDATE applying staged values to matching target rows.

        Staged rows with a NULL key column are skipped. Only non-key,
        non-generated columns are written.

        Args:
            descriptor: Resolved target table (must have a primary key)

        Returns:
            UPDATE statement, or None when the table has no updatable columns
        """
        pass

    @abstractmethod
    def build_upsert(self, descriptor: TableDescriptor) -> str:
        """Build the keyed upsert for staged rows that carry a key.

        Args:
            descriptor: Resolved target table (must have a primary key)

        Returns:
            Insert-or-overwrite statement
        """
        pass
