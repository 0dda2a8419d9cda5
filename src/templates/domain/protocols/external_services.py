"""
External service protocols for the templates module.
Only the contracts live here; adapters are in templates.infrastructure.
"""
from abc import abstractmethod
from typing import Any, List, Protocol
from uuid import UUID

from src.shared.domain.domain_event import DomainEvent
from src.templates.domain.value_objects.provider import (
    ProviderStatusReport,
    SubmissionReceipt,
    TemplateSubmission,
)


class TemplateProviderGateway(Protocol):
    """
    Template approval provider.

    Errors are raised as ProviderError subclasses: TransientProviderError for
    anything worth retrying, ProviderRejectedError for a definitive rejection.
    """

    @abstractmethod
    async def submit(self, submission: TemplateSubmission) -> SubmissionReceipt:
        """Send a template for review."""
        ...

    @abstractmethod
    async def poll(self, provider_template_id: str) -> ProviderStatusReport:
        """Fetch the current review state of a submitted template."""
        ...


class CampaignUsageChecker(Protocol):
    """Answers whether campaigns still reference a template."""

    @abstractmethod
    async def active_campaigns_using(self, tenant_id: UUID, template_id: UUID) -> List[Any]:
        """Ids of active (scheduled or running) campaigns using the template."""
        ...


class AuditSink(Protocol):
    """Receives lifecycle events for the audit trail."""

    @abstractmethod
    async def record(self, event: DomainEvent) -> None:
        ...
