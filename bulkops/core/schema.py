"""Schema resolution for record types.

This module turns a mapped record type into a TableDescriptor: the
physical table name, ordered column mapping, primary key and generated
columns, quoted for a particular BulkDialect.
"""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from typing import Any, Callable, Optional

import sqlalchemy as sa
from sqlalchemy.exc import NoInspectionAvailable
from sqlalchemy.orm import Mapper

from bulkops.core.dialect import BulkDialect
from bulkops.exceptions import SchemaResolutionError
from bulkops.models.descriptor import (
    ColumnDescriptor,
    KeyKind,
    TableDescriptor,
    attribute_reader,
)


class MetadataProvider(ABC):
    """Source of table metadata for record types."""

    @abstractmethod
    def table_for(self, record_type: Any) -> sa.Table:
        """Get the table a record type is persisted to.

        Raises:
            SchemaResolutionError: If the type is not mapped to a single table
        """
        pass

    @abstractmethod
    def field_columns(self, record_type: Any) -> list[tuple[str, sa.Column]]:
        """Get (field name, column) pairs for the record type's scalar fields.

        Relationship and collection attributes are never included.
        """
        pass


class SQLAlchemyMetadataProvider(MetadataProvider):
    """Metadata provider backed by SQLAlchemy mappings.

    Accepts ORM-mapped classes (declarative or imperative) and plain
    ``sqlalchemy.Table`` objects. For tables, field names are the
    column keys.

    Examples:
        >>> provider = SQLAlchemyMetadataProvider()
        >>> provider.table_for(Order).name
        'orders'
        >>> [name for name, _ in provider.field_columns(Order)]
        ['id', 'customer', 'total']
    """

    def _mapper(self, record_type: Any) -> Mapper:
        try:
            mapper = sa.inspect(record_type)
        except NoInspectionAvailable as e:
            raise SchemaResolutionError(
                f"{_type_name(record_type)} is not mapped to a table"
            ) from e
        if not isinstance(mapper, Mapper):
            raise SchemaResolutionError(
                f"{_type_name(record_type)} is not a mapped class"
            )
        return mapper

    def table_for(self, record_type: Any) -> sa.Table:
        if isinstance(record_type, sa.Table):
            return record_type
        mapper = self._mapper(record_type)
        table = mapper.persist_selectable
        if not isinstance(table, sa.Table):
            raise SchemaResolutionError(
                f"{_type_name(record_type)} is mapped to {type(table).__name__}, "
                "not a single table"
            )
        return table

    def field_columns(self, record_type: Any) -> list[tuple[str, sa.Column]]:
        table = self.table_for(record_type)
        if isinstance(record_type, sa.Table):
            return [(column.key, column) for column in table.columns]

        mapper = self._mapper(record_type)
        positions = {column: index for index, column in enumerate(table.columns)}
        pairs = []
        # column_attrs never contains relationships
        for attr in mapper.column_attrs:
            if len(attr.columns) != 1:
                continue
            column = attr.columns[0]
            if column not in positions:
                continue
            pairs.append((attr.key, column))
        pairs.sort(key=lambda pair: positions[pair[1]])
        return pairs


class RecordAccessor:
    """Precompiled field getters for one record type.

    Built once per (record type, field set) and shared afterwards; the
    instances are never mutated after construction.
    """

    _cache: dict[tuple[Any, tuple[str, ...]], RecordAccessor] = {}
    _lock = threading.Lock()

    def __init__(self, record_type: Any, field_names: tuple[str, ...]):
        self.record_type = record_type
        self.getters: dict[str, Callable[[Any], Any]] = {
            name: attribute_reader(name) for name in field_names
        }

    @classmethod
    def for_type(cls, record_type: Any, field_names: tuple[str, ...]) -> RecordAccessor:
        """Get the cached accessor for a record type, building it on first use."""
        key = (record_type, field_names)
        accessor = cls._cache.get(key)
        if accessor is None:
            with cls._lock:
                accessor = cls._cache.get(key)
                if accessor is None:
                    accessor = cls(record_type, field_names)
                    cls._cache[key] = accessor
        return accessor

    @classmethod
    def clear(cls) -> None:
        with cls._lock:
            cls._cache.clear()


_default_provider = SQLAlchemyMetadataProvider()


def _type_name(record_type: Any) -> str:
    return getattr(record_type, "__name__", None) or repr(record_type)


def _is_identity(table: sa.Table, column: sa.Column) -> bool:
    if column is table.autoincrement_column:
        return True
    if column.identity is not None:
        return True
    return bool(column.primary_key and column.server_default is not None)


def resolve_table(
    record_type: Any,
    dialect: BulkDialect,
    provider: Optional[MetadataProvider] = None,
) -> TableDescriptor:
    """Resolve a record type to its target table's physical schema.

    Args:
        record_type: ORM-mapped class or ``sqlalchemy.Table``
        dialect: BulkDialect used for quoting, staging names and key kinds
        provider: Metadata provider (defaults to SQLAlchemy mappings)

    Returns:
        Fresh TableDescriptor for this call

    Raises:
        SchemaResolutionError: If the record type has no mapped table or
            no scalar columns

    Examples:
        >>> descriptor = resolve_table(Order, PostgresDialect())
        >>> descriptor.full_name
        '"public"."orders"'
        >>> descriptor.primary_key_fields
        ('id',)
    """
    provider = provider or _default_provider
    table = provider.table_for(record_type)
    fields = provider.field_columns(record_type)
    if not fields:
        raise SchemaResolutionError(f"{_type_name(record_type)} has no mapped columns")

    accessor = RecordAccessor.for_type(record_type, tuple(name for name, _ in fields))

    columns = []
    for name, column in fields:
        columns.append(
            ColumnDescriptor(
                name=name,
                column_name=column.name,
                type=column.type,
                primary_key=bool(column.primary_key),
                identity=_is_identity(table, column),
                identity_always=bool(column.identity is not None and column.identity.always),
                key_kind=dialect.type_mapper.key_kind(column.type)
                if column.primary_key
                else KeyKind.OTHER,
                getter=accessor.getters[name],
            )
        )

    schema = table.schema or dialect.default_schema
    return TableDescriptor(
        table_name=table.name,
        schema=schema,
        full_name=dialect.qualify(schema, table.name),
        staging_name=dialect.staging_table(table.name),
        columns=tuple(columns),
        record_type=record_type,
    )


def require_primary_key(descriptor: TableDescriptor, operation: str) -> None:
    """Ensure an operation that matches rows by key has a key to match on.

    Raises:
        SchemaResolutionError: If the table has no primary key
    """
    if not descriptor.has_primary_key:
        raise SchemaResolutionError(
            f"{operation} requires a primary key but {descriptor.full_name} has none"
        )
