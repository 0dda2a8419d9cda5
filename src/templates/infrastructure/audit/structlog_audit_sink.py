"""
Audit trail for template lifecycle events
Writes one structured log record per domain event; storage is the log pipeline's job
"""
from __future__ import annotations

from src.shared.domain.domain_event import DomainEvent
from src.shared.infrastructure.observability.logger import get_logger

logger = get_logger("audit.templates")

# events that deserve a warning rather than info in the audit stream
_WARNING_EVENTS = frozenset({"TemplateSubmissionFailed", "TemplateDeleted"})


class StructlogAuditSink:
    """
    Audit sink for template lifecycle events.

    Audit logs should be:
    - Immutable (append-only)
    - Complete (every status change, version, deletion)
    - Free of template content beyond names and ids
    """

    def __init__(self, category: str = "template_lifecycle") -> None:
        self.category = category

    async def record(self, event: DomainEvent) -> None:
        entry = event.to_dict()
        event_type = entry.pop("event_type")
        if event_type in _WARNING_EVENTS:
            logger.warning(f"audit.{event_type}", event_category=self.category, event_type=event_type, **entry)
        else:
            logger.info(f"audit.{event_type}", event_category=self.category, event_type=event_type, **entry)
