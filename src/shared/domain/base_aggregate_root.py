"""
Aggregate Root Base Class
Collects domain events raised during state changes
"""
from __future__ import annotations

from typing import Any
from uuid import UUID

from src.shared.domain.base_entity import BaseEntity
from src.shared.domain.domain_event import DomainEvent


class BaseAggregateRoot(BaseEntity):
    """
    Base class for aggregate roots.

    Aggregate roots are the consistency boundary of an aggregate. They keep a
    list of events raised by their operations; the application layer collects
    them after persistence and hands them to whoever needs to hear about them.
    """

    def __init__(self, id: UUID | None = None, **kwargs: Any) -> None:
        super().__init__(id=id, **kwargs)
        self._domain_events: list[DomainEvent] = []

    def raise_event(self, event: DomainEvent) -> None:
        """Record a domain event, filling in aggregate identity when missing."""
        if event.aggregate_id is None:
            object.__setattr__(event, "aggregate_id", self.id)
        if not event.aggregate_type:
            object.__setattr__(event, "aggregate_type", self.__class__.__name__)
        self._domain_events.append(event)

    def collect_domain_events(self) -> list[DomainEvent]:
        """Return pending events and clear the buffer."""
        events = self._domain_events.copy()
        self._domain_events.clear()
        return events

    @property
    def has_domain_events(self) -> bool:
        return len(self._domain_events) > 0
