# src/templates/domain/value_objects/provider.py
"""Values exchanged with the template approval provider."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional
from uuid import UUID


class ProviderDecision(str, Enum):
    """Provider-side review state, normalized."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"

    @classmethod
    def from_provider(cls, raw: Optional[str]) -> "ProviderDecision":
        value = (raw or "").strip().upper()
        if value == "APPROVED":
            return cls.APPROVED
        if value in {"REJECTED", "DISABLED", "PAUSED"}:
            return cls.REJECTED
        return cls.PENDING

    @property
    def is_final(self) -> bool:
        return self is not ProviderDecision.PENDING


@dataclass(frozen=True, slots=True)
class TemplateSubmission:
    """What the provider needs to review a template."""
    template_id: UUID
    tenant_id: UUID
    name: str
    language: str
    category: str
    body_text: str
    version: int = 1

    def to_payload(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "language": self.language,
            "category": self.category.upper(),
            "components": [{"type": "BODY", "text": self.body_text}],
        }


@dataclass(frozen=True, slots=True)
class SubmissionReceipt:
    """Provider acknowledgement of a submission; may already carry a decision."""
    provider_template_id: str
    decision: ProviderDecision = ProviderDecision.PENDING
    reason: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class ProviderStatusReport:
    """Answer to a status poll for an already-submitted template."""
    provider_template_id: str
    decision: ProviderDecision
    reason: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict)
