"""Domain events for the templates module."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional
from uuid import UUID

from src.shared.domain.domain_event import DomainEvent


@dataclass(frozen=True)
class TemplateCreated(DomainEvent):
    """Event raised when a first-version draft is created."""
    tenant_id: Optional[UUID] = None
    name: str = ""
    version: int = 1


@dataclass(frozen=True)
class TemplateVersionCreated(DomainEvent):
    """Event raised when a draft is opened from an approved or rejected version."""
    tenant_id: Optional[UUID] = None
    parent_template_id: Optional[UUID] = None
    source_template_id: Optional[UUID] = None
    version: int = 1


@dataclass(frozen=True)
class TemplateStatusChanged(DomainEvent):
    """Event raised on every lifecycle transition."""
    tenant_id: Optional[UUID] = None
    from_status: Optional[str] = None
    to_status: str = ""
    reason: Optional[str] = None


@dataclass(frozen=True)
class TemplateSubmissionFailed(DomainEvent):
    """Event raised when a provider submission or poll fails; status is unchanged."""
    tenant_id: Optional[UUID] = None
    error_code: str = ""
    reason: str = ""
    attempts: int = 0


@dataclass(frozen=True)
class TemplateDeleted(DomainEvent):
    """Event raised when a draft or rejected template is removed."""
    tenant_id: Optional[UUID] = None
    name: str = ""
    version: int = 1
