"""Result models for bulk operations.

Row counts reported here are informational: they come from the driver's
rowcount after each statement and never influence control flow.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field as PydanticField


class BulkResult(BaseModel):
    """Outcome of a committed bulk operation.

    Failed operations raise instead of returning a result, so ``success``
    is only ``False`` for results built by callers themselves.
    """

    operation: str = PydanticField(
        ...,
        description="Operation name: 'insert', 'update' or 'insert_or_update'",
    )

    table: Optional[str] = PydanticField(
        None,
        description="Fully qualified target table (None for empty input)",
    )

    success: bool = PydanticField(
        True,
        description="Whether the operation committed",
    )

    records_streamed: int = PydanticField(
        0,
        description="Number of rows pushed through the bulk channel",
        ge=0,
    )

    records_inserted: int = PydanticField(
        0,
        description="Rows inserted as new records (direct insert or insert-new statement)",
        ge=0,
    )

    records_updated: int = PydanticField(
        0,
        description="Rows reported by the update statement",
        ge=0,
    )

    records_upserted: int = PydanticField(
        0,
        description="Rows reported by the keyed upsert statement",
        ge=0,
    )

    duration_seconds: float = PydanticField(
        0.0,
        description="Duration of the operation in seconds",
        ge=0.0,
    )

    started_at: datetime = PydanticField(
        ...,
        description="Operation start time",
    )

    completed_at: Optional[datetime] = PydanticField(
        None,
        description="Operation completion time",
    )

    cleanup_error: Optional[str] = PydanticField(
        None,
        description="Staging teardown failure, if any (non-fatal)",
    )

    metadata: dict[str, Any] = PydanticField(
        default_factory=dict,
        description="Additional metadata",
    )

    model_config = {"extra": "forbid"}


@dataclass(frozen=True)
class CleanupResult:
    """Outcome of a best-effort staging teardown.

    A failed cleanup is never fatal; it is reported alongside the
    operation's own outcome.
    """

    succeeded: bool
    error: Optional[BaseException] = None

    @classmethod
    def ok(cls) -> CleanupResult:
        return cls(True)

    @classmethod
    def failed(cls, error: BaseException) -> CleanupResult:
        return cls(False, error)
