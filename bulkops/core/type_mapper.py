"""Base TypeMapper abstract class.

This module defines the TypeMapper interface for converting between
SQLAlchemy column types, bulk-transfer wire values and the SQL literals
used for primary-key default detection.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Optional

import sqlalchemy as sa
from sqlalchemy.engine import Dialect
from sqlalchemy.types import TypeDecorator, TypeEngine

from bulkops.models.descriptor import NIL_UUID, ColumnDescriptor, KeyKind


class TypeMapper(ABC):
    """Base class for per-dialect type handling.

    TypeMappers handle three conversions:
    - key_kind: SQLAlchemy column type -> KeyKind (dialect independent)
    - to_wire: Python record value -> value accepted by the bulk channel
    - default_literal: KeyKind -> SQL literal of the placeholder key

    Each dialect provides its own TypeMapper implementation.

    Examples:
        >>> mapper = PostgresTypeMapper()
        >>> mapper.key_kind(sa.BigInteger())
        <KeyKind.INTEGER: 'integer'>
        >>> mapper.default_literal(KeyKind.STRING)
        "''"
    """

    def __init__(self, sa_dialect: Dialect):
        """Initialize type mapper.

        Args:
            sa_dialect: SQLAlchemy dialect used to compile DDL types and
                look up bind processors
        """
        self.sa_dialect = sa_dialect

    @staticmethod
    def _base_type(type_: TypeEngine) -> TypeEngine:
        """Unwrap TypeDecorator layers down to the underlying SQL type."""
        while isinstance(type_, TypeDecorator):
            type_ = type_.impl_instance
        return type_

    def key_kind(self, type_: TypeEngine) -> KeyKind:
        """Classify a column type for primary-key default detection.

        Args:
            type_: Declared SQLAlchemy column type

        Returns:
            KeyKind deciding which value means "no key assigned"
        """
        base = self._base_type(type_)
        if isinstance(base, sa.Enum):
            return KeyKind.OTHER
        if isinstance(base, sa.Integer):
            return KeyKind.INTEGER
        if isinstance(base, sa.Uuid):
            return KeyKind.UUID
        if isinstance(base, sa.String):
            return KeyKind.STRING
        return KeyKind.OTHER

    def default_literal(self, kind: KeyKind) -> Optional[str]:
        """Get the SQL literal of the placeholder key for a kind.

        Returns:
            SQL literal, or None when only NULL counts as absent
        """
        if kind is KeyKind.INTEGER:
            return "0"
        if kind is KeyKind.STRING:
            return "''"
        if kind is KeyKind.UUID:
            return f"'{NIL_UUID}'"
        return None

    def get_ddl_type(self, column: ColumnDescriptor) -> str:
        """Compile a column's SQLAlchemy type for this dialect's DDL."""
        return column.type.compile(dialect=self.sa_dialect)

    @abstractmethod
    def to_wire(self, value: Any, column: ColumnDescriptor) -> Any:
        """Convert a record value into what the bulk channel accepts.

        Args:
            value: Value read from the record (None for NULL)
            column: Column the value is written to

        Returns:
            Value in the representation the dialect's bulk channel expects
        """
        pass
