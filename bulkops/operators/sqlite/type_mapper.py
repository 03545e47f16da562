"""SQLite type mapper implementation.

SQLite stores dates, UUIDs and decimals in SQLAlchemy-specific text
forms, so values are passed through each column type's bind processor
before reaching ``sqlite3``.
"""

from __future__ import annotations

import threading
import uuid
from typing import Any, Callable, Optional

import sqlalchemy as sa
from sqlalchemy.dialects import sqlite
from sqlalchemy.engine import Dialect

from bulkops.core.type_mapper import TypeMapper
from bulkops.models.descriptor import NIL_UUID, ColumnDescriptor, KeyKind

_MISSING = object()


class SQLiteTypeMapper(TypeMapper):
    """Type mapper for SQLite ``executemany`` parameters.

    Examples:
        >>> mapper = SQLiteTypeMapper()
        >>> mapper.default_literal(KeyKind.UUID)
        "'00000000000000000000000000000000'"
    """

    def __init__(self, sa_dialect: Optional[Dialect] = None):
        super().__init__(sa_dialect or sqlite.dialect())
        self._processors: dict[int, Optional[Callable[[Any], Any]]] = {}
        self._lock = threading.Lock()

    def default_literal(self, kind: KeyKind) -> Optional[str]:
        # Uuid columns are stored as 32 hex digits without dashes
        if kind is KeyKind.UUID:
            return f"'{NIL_UUID.hex}'"
        return super().default_literal(kind)

    def _processor(self, column: ColumnDescriptor) -> Optional[Callable[[Any], Any]]:
        key = id(column.type)
        processor = self._processors.get(key, _MISSING)
        if processor is _MISSING:
            processor = column.type.bind_processor(self.sa_dialect)
            with self._lock:
                self._processors[key] = processor
        return processor

    def to_wire(self, value: Any, column: ColumnDescriptor) -> Any:
        if value is None:
            return None
        base = self._base_type(column.type)
        if isinstance(base, sa.Uuid) and base.as_uuid and isinstance(value, str):
            value = uuid.UUID(value)
        processor = self._processor(column)
        if processor is not None:
            return processor(value)
        return value
