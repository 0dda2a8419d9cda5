"""
Base Entity Contract for Domain Layer
Provides UUID-based identity, equality, and audit timestamps
"""
from __future__ import annotations

from abc import ABC
from datetime import datetime, timezone
from uuid import UUID, uuid4


def utcnow() -> datetime:
    """Timezone-aware UTC now; every domain timestamp goes through here."""
    return datetime.now(timezone.utc)


class BaseEntity(ABC):
    """
    Abstract base class for domain entities.

    Entities are defined by their identity (id), not their attributes.
    Two entities of the same type are equal when their ids match.

    Attributes:
        id: Unique identifier (UUID)
        created_at: Timestamp of creation
        updated_at: Timestamp of last update
    """

    def __init__(
        self,
        id: UUID | None = None,
        created_at: datetime | None = None,
        updated_at: datetime | None = None,
    ) -> None:
        now = utcnow()
        self.id: UUID = id or uuid4()
        self.created_at: datetime = created_at or now
        self.updated_at: datetime = updated_at or now

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, self.__class__):
            return False
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(id={self.id})"

    def mark_updated(self) -> None:
        """Bump updated_at to the current time."""
        self.updated_at = utcnow()
