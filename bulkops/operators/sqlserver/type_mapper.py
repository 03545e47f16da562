"""SQL Server type mapper implementation."""

from __future__ import annotations

import enum
import uuid
from typing import Any, Optional

import sqlalchemy as sa
from sqlalchemy.dialects import mssql
from sqlalchemy.engine import Dialect

from bulkops.core.type_mapper import TypeMapper
from bulkops.models.descriptor import ColumnDescriptor


class SQLServerTypeMapper(TypeMapper):
    """Type mapper for pyodbc ``fast_executemany`` parameters.

    pyodbc binds most Python values natively; UUIDs are sent in their
    canonical string form and enum members are unwrapped.
    """

    def __init__(self, sa_dialect: Optional[Dialect] = None):
        super().__init__(sa_dialect or mssql.dialect())

    def to_wire(self, value: Any, column: ColumnDescriptor) -> Any:
        if value is None:
            return None
        if isinstance(value, enum.Enum):
            if isinstance(self._base_type(column.type), sa.Enum):
                return value.name
            return value.value
        if isinstance(value, uuid.UUID):
            return str(value)
        return value
