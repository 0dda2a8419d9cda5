"""
Domain Event Base Class
All domain events inherit from this
"""
from __future__ import annotations

from dataclasses import dataclass, field, fields
from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from src.shared.domain.base_entity import utcnow


@dataclass(frozen=True)
class DomainEvent:
    """
    Base class for domain events.

    Events are immutable facts about something that already happened to an
    aggregate. Subclasses add their own payload fields (with defaults, since
    the base fields already have defaults).

    Attributes:
        event_id: Unique identifier for this event occurrence
        occurred_at: When the event happened
        aggregate_id: ID of the aggregate that produced this event
        aggregate_type: Type name of the aggregate
        event_version: Schema version of this event type
    """

    event_id: UUID = field(default_factory=uuid4)
    occurred_at: datetime = field(default_factory=utcnow)
    aggregate_id: UUID | None = None
    aggregate_type: str = ""
    event_version: int = 1

    @property
    def event_type(self) -> str:
        return self.__class__.__name__

    def to_dict(self) -> dict[str, Any]:
        """Serialize the event, payload included, into JSON-friendly primitives."""
        data: dict[str, Any] = {"event_type": self.event_type}
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, UUID):
                value = str(value)
            elif isinstance(value, datetime):
                value = value.isoformat()
            elif isinstance(value, Enum):
                value = value.value
            data[f.name] = value
        return data
