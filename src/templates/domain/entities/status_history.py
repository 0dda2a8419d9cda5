"""
Template Status History
Append-only record of every status change of a template version.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, Iterator, List, Optional
from uuid import UUID, uuid4

from src.shared.domain.base_entity import utcnow
from src.templates.domain.value_objects.template_status import TemplateStatus


@dataclass(frozen=True, slots=True)
class StatusHistoryEntry:
    """
    One status change.

    ``from_status`` is None for the creation entry. A failed provider call
    while Pending is recorded as pending → pending with the failure reason.
    """
    template_id: UUID
    tenant_id: UUID
    from_status: Optional[TemplateStatus]
    to_status: TemplateStatus
    reason: Optional[str] = None
    provider_response: Optional[Dict[str, Any]] = None
    changed_at: datetime = field(default_factory=utcnow)
    id: UUID = field(default_factory=uuid4)

    @property
    def is_status_change(self) -> bool:
        return self.from_status is not self.to_status

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": str(self.id),
            "template_id": str(self.template_id),
            "tenant_id": str(self.tenant_id),
            "from_status": self.from_status.value if self.from_status else None,
            "to_status": self.to_status.value,
            "reason": self.reason,
            "provider_response": self.provider_response,
            "changed_at": self.changed_at.isoformat(),
        }


class StatusHistory:
    """Ordered (oldest first) history of a template with timeline queries."""

    def __init__(self, entries: Optional[Iterable[StatusHistoryEntry]] = None) -> None:
        self._entries: List[StatusHistoryEntry] = sorted(entries or [], key=lambda e: e.changed_at)

    def append(self, entry: StatusHistoryEntry) -> None:
        self._entries.append(entry)

    def __iter__(self) -> Iterator[StatusHistoryEntry]:
        return iter(list(self._entries))

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def entries(self) -> List[StatusHistoryEntry]:
        return list(self._entries)

    @property
    def latest(self) -> Optional[StatusHistoryEntry]:
        return self._entries[-1] if self._entries else None

    def timeline(self) -> List[StatusHistoryEntry]:
        """Newest first, for display."""
        return list(reversed(self._entries))

    def has_been_in_status(self, status: TemplateStatus) -> bool:
        return any(entry.to_status is status for entry in self._entries)

    def time_in_statuses(self, now: Optional[datetime] = None) -> Dict[str, float]:
        """
        Seconds spent in each status.

        Each entry's status lasts until the next entry; the last one runs until
        ``now``. Pending → pending failure entries keep counting as pending.
        """
        if not self._entries:
            return {}

        end_of_time = now or utcnow()
        totals: Dict[str, float] = {}
        for index, current in enumerate(self._entries):
            following = self._entries[index + 1] if index + 1 < len(self._entries) else None
            end = following.changed_at if following else end_of_time
            duration = max((end - current.changed_at).total_seconds(), 0.0)
            key = current.to_status.value
            totals[key] = totals.get(key, 0.0) + duration
        return totals
