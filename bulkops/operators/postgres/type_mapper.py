"""PostgreSQL type mapper implementation.

This module converts record values into the CSV text consumed by
``COPY ... FROM STDIN WITH (FORMAT CSV)``.
"""

from __future__ import annotations

import enum
import json
import uuid
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import Any, Optional

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql
from sqlalchemy.engine import Dialect

from bulkops.core.type_mapper import TypeMapper
from bulkops.models.descriptor import ColumnDescriptor


class PostgresTypeMapper(TypeMapper):
    """Type mapper for PostgreSQL COPY in CSV format.

    NULL is written as an unquoted empty field and every string is
    quoted, so empty strings and NULLs stay distinguishable.

    Examples:
        >>> mapper = PostgresTypeMapper()
        >>> mapper.to_wire(None, column)
        ''
        >>> mapper.to_wire('a "b" c', column)
        '"a ""b"" c"'
        >>> mapper.to_wire(True, column)
        't'
    """

    delimiter = ","
    quote_char = '"'
    null_string = ""

    def __init__(self, sa_dialect: Optional[Dialect] = None):
        super().__init__(sa_dialect or postgresql.dialect())

    def _quote(self, value: str) -> str:
        escaped = value.replace(self.quote_char, self.quote_char * 2)
        return f"{self.quote_char}{escaped}{self.quote_char}"

    def to_wire(self, value: Any, column: ColumnDescriptor) -> str:
        """Format value as a single CSV field.

        Handles:
        - NULL values
        - Strings with special characters (quotes, delimiters, newlines)
        - Booleans, temporal types, UUIDs, binary and JSON payloads
        """
        if value is None:
            return self.null_string

        if isinstance(value, enum.Enum):
            # SQLAlchemy Enum columns persist member names
            if isinstance(self._base_type(column.type), sa.Enum):
                value = value.name
            else:
                value = value.value
            if value is None:
                return self.null_string

        if isinstance(value, str):
            return self._quote(value)

        elif isinstance(value, bool):
            # PostgreSQL COPY expects 't' or 'f' for boolean
            return "t" if value else "f"

        elif isinstance(value, (int, float, Decimal)):
            return str(value)

        elif isinstance(value, (datetime, date, time)):
            return value.isoformat()

        elif isinstance(value, timedelta):
            return f"{value.total_seconds()} seconds"

        elif isinstance(value, uuid.UUID):
            return str(value)

        elif isinstance(value, (bytes, bytearray, memoryview)):
            return "\\x" + bytes(value).hex()

        elif isinstance(value, (dict, list)):
            return self._quote(json.dumps(value, default=str))

        else:
            return self._quote(str(value))
