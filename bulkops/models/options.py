"""Per-call options for bulk operations."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field as PydanticField


class BulkConfig(BaseModel):
    """Options for a single insert / update / insert_or_update call.

    Examples:
        >>> BulkConfig(keep_identity=True, batch_size=5000)
        >>> BulkConfig(timeout=30)
    """

    keep_identity: bool = PydanticField(
        False,
        description="Preserve explicit primary-key values instead of letting "
        "the database assign them",
    )

    batch_size: Optional[int] = PydanticField(
        None,
        description="Rows per transfer chunk (None: configured or dialect default)",
        gt=0,
    )

    timeout: Optional[float] = PydanticField(
        None,
        description="Per-statement execution timeout in seconds (None: configured default)",
        gt=0,
    )

    notify_after: Optional[int] = PydanticField(
        None,
        description="Log streaming progress every N rows (defaults to batch_size)",
        gt=0,
    )

    model_config = {"extra": "forbid"}
