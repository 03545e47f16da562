"""Table descriptor and key classification models.

A TableDescriptor is the resolved physical shape of a record type's
target table: quoted names, ordered columns, primary key and identity
columns. It is built once per operation by the schema resolver and is
immutable afterwards.
"""

from __future__ import annotations

import uuid
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Optional

from sqlalchemy.types import TypeEngine

NIL_UUID = uuid.UUID(int=0)


class KeyKind(str, Enum):
    """Classification of a primary-key column by its declared type.

    The kind decides which value counts as "no key assigned" for that
    column, both in Python (:meth:`is_default`) and in generated SQL.
    """

    INTEGER = "integer"
    STRING = "string"
    UUID = "uuid"
    OTHER = "other"

    def is_default(self, value: Any) -> bool:
        """Check whether ``value`` is the absent/placeholder key for this kind.

        Examples:
            >>> KeyKind.INTEGER.is_default(0)
            True
            >>> KeyKind.STRING.is_default("")
            True
            >>> KeyKind.UUID.is_default("00000000-0000-0000-0000-000000000000")
            True
            >>> KeyKind.OTHER.is_default(0)
            False
        """
        if value is None:
            return True
        if self is KeyKind.INTEGER:
            # bool is an int subclass but never a valid surrogate key
            return isinstance(value, int) and not isinstance(value, bool) and value == 0
        if self is KeyKind.STRING:
            return isinstance(value, str) and value == ""
        if self is KeyKind.UUID:
            if isinstance(value, uuid.UUID):
                return value == NIL_UUID
            if isinstance(value, str):
                if value == "":
                    return True
                try:
                    return uuid.UUID(value) == NIL_UUID
                except ValueError:
                    return False
            return False
        return False


def attribute_reader(name: str) -> Callable[[Any], Any]:
    """Build a getter reading ``name`` from an object or a mapping.

    A mapping without the key raises KeyError rather than reading NULL.
    """

    def getter(record: Any) -> Any:
        if isinstance(record, Mapping):
            return record[name]
        return getattr(record, name)

    getter.__name__ = f"get_{name}"
    return getter


@dataclass(frozen=True)
class ColumnDescriptor:
    """One mapped scalar field and its physical column.

    Attributes:
        name: Logical field name on the record
        column_name: Physical column name in the table
        type: Declared SQLAlchemy column type
        primary_key: Whether the column is part of the primary key
        identity: Whether the database generates the value
        identity_always: Whether the identity is GENERATED ALWAYS
        key_kind: Default-detection strategy for primary-key columns
    """

    name: str
    column_name: str
    type: TypeEngine
    primary_key: bool = False
    identity: bool = False
    identity_always: bool = False
    key_kind: KeyKind = KeyKind.OTHER
    getter: Callable[[Any], Any] = field(default=None, compare=False, repr=False)  # type: ignore[assignment]

    def __post_init__(self):
        if self.getter is None:
            object.__setattr__(self, "getter", attribute_reader(self.name))

    def read(self, record: Any) -> Any:
        """Read this field's value from a record."""
        return self.getter(record)

    def is_default_key(self, value: Any) -> bool:
        """Check whether value is an absent key for this (primary-key) column."""
        return self.primary_key and self.key_kind.is_default(value)


@dataclass(frozen=True)
class TableDescriptor:
    """Resolved physical schema of a record type's target table."""

    table_name: str
    schema: Optional[str]
    full_name: str
    staging_name: str
    columns: tuple[ColumnDescriptor, ...]
    record_type: Any = field(default=None, compare=False, repr=False)

    @property
    def column_mapping(self) -> dict[str, str]:
        """Ordered logical field name -> physical column name."""
        return {c.name: c.column_name for c in self.columns}

    @property
    def primary_key_fields(self) -> tuple[str, ...]:
        return tuple(c.name for c in self.columns if c.primary_key)

    @property
    def primary_key_columns(self) -> tuple[ColumnDescriptor, ...]:
        return tuple(c for c in self.columns if c.primary_key)

    @property
    def identity_fields(self) -> tuple[str, ...]:
        return tuple(c.name for c in self.columns if c.identity)

    @property
    def has_primary_key(self) -> bool:
        return any(c.primary_key for c in self.columns)

    @property
    def has_identity(self) -> bool:
        return any(c.identity for c in self.columns)

    @property
    def has_identity_key(self) -> bool:
        """Whether the primary key is (at least partly) server generated."""
        return any(c.identity and c.primary_key for c in self.columns)

    @property
    def updatable_columns(self) -> tuple[ColumnDescriptor, ...]:
        """Columns a merge may overwrite: neither key nor identity."""
        return tuple(c for c in self.columns if not c.primary_key and not c.identity)

    def insert_columns(self, keep_identity: bool) -> tuple[ColumnDescriptor, ...]:
        """Columns written by a direct insert into the target table."""
        if keep_identity:
            return self.columns
        return tuple(c for c in self.columns if not c.identity)

    def column(self, name: str) -> ColumnDescriptor:
        for c in self.columns:
            if c.name == name:
                return c
        raise KeyError(name)
