"""
Data models for paranoid delete operations.

These models describe the deletion state of a record and the per-call
payloads that travel through the delete path and uniqueness checks.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


class DeletionState(str, Enum):
    """Lifecycle states of a paranoid record."""

    ACTIVE = "active"
    DELETED = "deleted"


class HookEvent(str, Enum):
    """Extension points fired around deletion and recovery."""

    BEFORE_DELETE = "before_delete"
    AFTER_DELETE = "after_delete"
    BEFORE_RECOVER = "before_recover"
    AFTER_RECOVER = "after_recover"


class DeleteContext(BaseModel):
    """Immutable payload handed from ``destroy()`` down to ``apply_delete()``.

    It lives only for the duration of one delete call and is passed
    explicitly to every hook, so nothing about the call outlives it.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    record_type: str = Field(..., description="Class name of the record")
    entity_id: Optional[str] = Field(None, description="Primary key of the record")
    deleted_at: datetime = Field(..., description="Timestamp written to the marker")
    deleted_by: Optional[Any] = Field(None, description="Actor performing deletion")


class RecoverContext(BaseModel):
    """Immutable payload for recovery hooks."""

    model_config = ConfigDict(frozen=True)

    record_type: str
    entity_id: Optional[str] = None
    previous_deleted_at: Optional[Any] = None


class UniqueOptions(BaseModel):
    """Options understood by the generic uniqueness validator."""

    model_config = ConfigDict(extra="forbid")

    message: str = Field("is already taken", description="Error message per field")
    only_if_modified: bool = Field(
        False, description="Skip the check for persisted rows with unchanged columns"
    )


ColumnGroup = Tuple[str, ...]
