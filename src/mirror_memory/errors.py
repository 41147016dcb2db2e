"""Exception hierarchy for the MIRROR memory core.

Retrieval paths degrade to empty results instead of raising; these exceptions are reserved
for explicit lookups and storage failures on the lifecycle API.
"""
from typing import Optional


class MirrorMemoryError(Exception):
    """Base class for all memory core errors."""


class StorageError(MirrorMemoryError):
    """The storage backend failed or is not connected."""


class RecordNotFoundError(MirrorMemoryError):
    """A record addressed by id does not exist for the given user."""

    record_type: str = "record"

    def __init__(self, record_id: str, user_id: Optional[str] = None):
        self.record_id = record_id
        self.user_id = user_id
        super().__init__(f"{self.record_type} not found: {record_id}")


class EntityNotFoundError(RecordNotFoundError):
    record_type = "entity"


class FactNotFoundError(RecordNotFoundError):
    record_type = "fact"


class NoteNotFoundError(RecordNotFoundError):
    record_type = "note"
