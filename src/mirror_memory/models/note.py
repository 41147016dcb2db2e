"""Note metadata model.

Note bodies are end-to-end encrypted and never reach this core; only title and category
metadata are matchable.
"""
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class NoteStatus(str, Enum):
    ACTIVE = "active"
    DELETED = "deleted"  # Soft-deleted; restorable


class Note(BaseModel):
    """Searchable metadata of a user note."""

    model_config = {"from_attributes": True}

    id: str = Field(..., description="Unique note identifier")
    user_id: str = Field(..., description="Owning user")
    title: Optional[str] = Field(None, description="Note title")
    category: Optional[str] = Field(None, description="Note category")
    status: NoteStatus = Field(NoteStatus.ACTIVE, description="Lifecycle status")
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc), description="Creation timestamp")
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc), description="Last update timestamp")
    deleted_at: Optional[datetime] = Field(None, description="Soft-deletion timestamp")

    @property
    def display_title(self) -> str:
        return self.title or "Untitled"
