"""
Message Template Aggregate
A versioned template moving through the provider approval lifecycle.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Iterable, Optional
from uuid import UUID

from src.shared.domain.base_aggregate_root import BaseAggregateRoot
from src.shared.domain.base_entity import utcnow
from src.shared.domain.result import Failure, Result, Success
from src.templates.domain.entities.status_history import StatusHistory, StatusHistoryEntry
from src.templates.domain.events.template_events import (
    TemplateCreated,
    TemplateStatusChanged,
    TemplateSubmissionFailed,
    TemplateVersionCreated,
)
from src.templates.domain.exceptions import (
    TemplateInUseError,
    TemplateStatusError,
    TemplateValidationError,
)
from src.templates.domain.services.placeholder_grammar import PlaceholderError, PlaceholderGrammar
from src.templates.domain.services.template_rules import validate_fields
from src.templates.domain.value_objects.provider import TemplateSubmission
from src.templates.domain.value_objects.template_status import TemplateStatus

EDITABLE_FIELDS = ("name", "language", "category")


def _check_editable(changes: Dict[str, Any]) -> Optional[Failure]:
    unknown = sorted(set(changes) - set(EDITABLE_FIELDS))
    if not unknown:
        return None
    return Failure(TemplateValidationError(
        [{"field": f, "code": "NOT_EDITABLE", "message": f"Field '{f}' cannot be edited", "position": None}
         for f in unknown],
    ))


class MessageTemplate(BaseAggregateRoot):
    """
    Aggregate for provider-approved message templates.

    Attributes:
        tenant_id: Owning tenant
        name: Template name (one active lineage per tenant + name)
        language: Template language code (en, hi, etc.)
        category: utility, marketing, authentication
        body_text: Template body with {{N}} placeholders
        status: draft, pending, approved, rejected, superseded
        version: Version number within the lineage, starting at 1
        parent_template_id: Approved version this one was derived from
        provider_template_id: Provider's id, set once the provider accepted it
        rejection_reason: Reason if rejected by the provider
        last_submission_error: Last provider failure while pending
        history: Append-only status history

    Status changes only through the transition methods below. They return a
    Result instead of raising; the application service decides what to raise.
    """

    def __init__(
        self,
        tenant_id: UUID,
        name: str,
        language: str,
        category: str,
        body_text: str,
        *,
        id: Optional[UUID] = None,
        status: TemplateStatus = TemplateStatus.DRAFT,
        version: int = 1,
        parent_template_id: Optional[UUID] = None,
        provider_template_id: Optional[str] = None,
        rejection_reason: Optional[str] = None,
        last_submission_error: Optional[str] = None,
        submitted_at: Optional[datetime] = None,
        approved_at: Optional[datetime] = None,
        rejected_at: Optional[datetime] = None,
        history: Optional[Iterable[StatusHistoryEntry]] = None,
        created_at: Optional[datetime] = None,
        updated_at: Optional[datetime] = None,
    ) -> None:
        if version < 1:
            raise ValueError("version must be >= 1")
        super().__init__(id=id, created_at=created_at, updated_at=updated_at)
        self.tenant_id = tenant_id
        self.name = name
        self.language = language
        self.category = category
        self.body_text = body_text
        self._status = TemplateStatus(status)
        self.version = version
        self.parent_template_id = parent_template_id
        self.provider_template_id = provider_template_id
        self.rejection_reason = rejection_reason
        self.last_submission_error = last_submission_error
        self.submitted_at = submitted_at
        self.approved_at = approved_at
        self.rejected_at = rejected_at
        self.history = StatusHistory(history)

    # ─────────────────────────── factories ───────────────────────────

    @classmethod
    def create(
        cls,
        tenant_id: UUID,
        name: str,
        language: str,
        category: str,
        body_text: str,
        *,
        now: Optional[datetime] = None,
    ) -> "MessageTemplate":
        """New first-version draft."""
        now = now or utcnow()
        template = cls(tenant_id, name, language, category, body_text, created_at=now, updated_at=now)
        template._record(None, TemplateStatus.DRAFT, "Template created", None, now)
        template.raise_event(TemplateCreated(tenant_id=tenant_id, name=name, version=1))
        return template

    def _new_draft(
        self,
        *,
        version: int,
        parent_template_id: Optional[UUID],
        body_text: str,
        changes: Dict[str, Any],
        reason: str,
        now: datetime,
    ) -> "MessageTemplate":
        draft = MessageTemplate(
            self.tenant_id,
            changes.get("name", self.name),
            changes.get("language", self.language),
            changes.get("category", self.category),
            body_text,
            version=version,
            parent_template_id=parent_template_id,
            created_at=now,
            updated_at=now,
        )
        draft._record(None, TemplateStatus.DRAFT, reason, None, now)
        draft.raise_event(TemplateVersionCreated(
            tenant_id=self.tenant_id,
            parent_template_id=parent_template_id,
            source_template_id=self.id,
            version=version,
        ))
        return draft

    # ─────────────────────────── state ───────────────────────────

    @property
    def status(self) -> TemplateStatus:
        return self._status

    @property
    def placeholders(self) -> list[int]:
        return PlaceholderGrammar.extract(self.body_text)

    def validate(self) -> list[PlaceholderError]:
        """Field rule errors first, then placeholder grammar errors."""
        return validate_fields(self.name, self.category, self.body_text) + PlaceholderGrammar.validate(self.body_text)

    def to_submission(self) -> TemplateSubmission:
        return TemplateSubmission(
            template_id=self.id,
            tenant_id=self.tenant_id,
            name=self.name,
            language=self.language,
            category=self.category,
            body_text=self.body_text,
            version=self.version,
        )

    # ─────────────────────────── transitions ───────────────────────────

    def submit(self, *, now: Optional[datetime] = None) -> Result:
        """draft → pending, guarded by the field rules and the placeholder grammar."""
        if self._status is not TemplateStatus.DRAFT:
            return Failure(TemplateStatusError(self.id, self._status, "submit"))
        errors = self.validate()
        if errors:
            return Failure(TemplateValidationError(errors))

        now = now or utcnow()
        self.submitted_at = now
        self.last_submission_error = None
        self._transition(TemplateStatus.PENDING, "Submitted for provider approval", None, now)
        return Success(self)

    def record_provider_acceptance(self, provider_template_id: str) -> Result:
        """Provider took the submission for review; status stays pending."""
        if self._status is not TemplateStatus.PENDING:
            return Failure(TemplateStatusError(self.id, self._status, "record provider acceptance for"))
        self.provider_template_id = provider_template_id
        self.last_submission_error = None
        self.mark_updated()
        return Success(self)

    def approve(
        self,
        provider_template_id: Optional[str] = None,
        *,
        provider_response: Optional[Dict[str, Any]] = None,
        now: Optional[datetime] = None,
    ) -> Result:
        """pending → approved."""
        if self._status is not TemplateStatus.PENDING:
            return Failure(TemplateStatusError(self.id, self._status, "approve"))

        now = now or utcnow()
        if provider_template_id:
            self.provider_template_id = provider_template_id
        self.approved_at = now
        self.rejection_reason = None
        self.last_submission_error = None
        self._transition(TemplateStatus.APPROVED, "Approved by provider", provider_response, now)
        return Success(self)

    def reject(
        self,
        reason: str,
        *,
        provider_response: Optional[Dict[str, Any]] = None,
        now: Optional[datetime] = None,
    ) -> Result:
        """pending → rejected; a reason is mandatory."""
        if self._status is not TemplateStatus.PENDING:
            return Failure(TemplateStatusError(self.id, self._status, "reject"))
        if not reason or not reason.strip():
            return Failure(TemplateValidationError(
                [{"field": "reason", "code": "REJECTION_REASON_REQUIRED",
                  "message": "A rejection reason is required", "position": None}],
                "Rejection reason is required",
            ))

        now = now or utcnow()
        self.rejection_reason = reason.strip()
        self.rejected_at = now
        self._transition(TemplateStatus.REJECTED, self.rejection_reason, provider_response, now)
        return Success(self)

    def supersede(self, successor: "MessageTemplate", *, now: Optional[datetime] = None) -> Result:
        """approved → superseded, once ``successor`` itself is approved."""
        if self._status is not TemplateStatus.APPROVED:
            return Failure(TemplateStatusError(self.id, self._status, "supersede"))
        if successor.parent_template_id != self.id or successor.status is not TemplateStatus.APPROVED:
            return Failure(TemplateStatusError(successor.id, successor.status, "supersede its parent with"))

        self._transition(
            TemplateStatus.SUPERSEDED,
            f"Superseded by version {successor.version}",
            {"successor_template_id": str(successor.id)},
            now or utcnow(),
        )
        return Success(self)

    def record_submission_failure(
        self,
        error_code: str,
        reason: str,
        *,
        attempts: int = 0,
        provider_response: Optional[Dict[str, Any]] = None,
        now: Optional[datetime] = None,
    ) -> Result:
        """Provider call failed while pending: history gets pending → pending."""
        if self._status is not TemplateStatus.PENDING:
            return Failure(TemplateStatusError(self.id, self._status, "record a submission failure for"))

        now = now or utcnow()
        self.last_submission_error = reason
        self._record(TemplateStatus.PENDING, TemplateStatus.PENDING, reason, provider_response, now)
        self.mark_updated()
        self.raise_event(TemplateSubmissionFailed(
            tenant_id=self.tenant_id, error_code=error_code, reason=reason, attempts=attempts,
        ))
        return Success(self)

    # ─────────────────────────── editing ───────────────────────────

    def revise(self, body_text: Optional[str] = None, **changes: Any) -> Result:
        """Edit a draft in place."""
        if self._status is not TemplateStatus.DRAFT:
            return Failure(TemplateStatusError(self.id, self._status, "revise"))
        rejected = _check_editable(changes)
        if rejected is not None:
            return rejected
        if body_text is not None:
            self.body_text = body_text
        for key, value in changes.items():
            setattr(self, key, value)
        self.mark_updated()
        return Success(self)

    def create_successor(
        self, body_text: str, *, now: Optional[datetime] = None, **changes: Any
    ) -> Result:
        """
        Approved → new draft at version + 1 with this record as parent.

        This record stays approved until the successor is approved.
        """
        if self._status is not TemplateStatus.APPROVED:
            return Failure(TemplateStatusError(self.id, self._status, "create a new version of"))
        return self._draft_from(
            body_text,
            changes,
            version=self.version + 1,
            parent_template_id=self.id,
            reason=f"New version {self.version + 1} created from version {self.version}",
            now=now,
        )

    def reopen_rejected(
        self, body_text: str, *, now: Optional[datetime] = None, **changes: Any
    ) -> Result:
        """Rejected → new draft at the same version and parent; this record stays rejected."""
        if self._status is not TemplateStatus.REJECTED:
            return Failure(TemplateStatusError(self.id, self._status, "reopen"))
        return self._draft_from(
            body_text,
            changes,
            version=self.version,
            parent_template_id=self.parent_template_id,
            reason="Draft reopened after rejection",
            now=now,
        )

    def ensure_deletable(self) -> Result:
        if not self._status.is_deletable:
            return Failure(TemplateInUseError(
                self.id, f"Only draft or rejected templates can be deleted (status '{self._status.value}')",
            ))
        return Success(self)

    # ─────────────────────────── internals ───────────────────────────

    def _draft_from(
        self,
        body_text: str,
        changes: Dict[str, Any],
        *,
        version: int,
        parent_template_id: Optional[UUID],
        reason: str,
        now: Optional[datetime],
    ) -> Result:
        rejected = _check_editable(changes)
        if rejected is not None:
            return rejected
        return Success(self._new_draft(
            version=version,
            parent_template_id=parent_template_id,
            body_text=body_text,
            changes=changes,
            reason=reason,
            now=now or utcnow(),
        ))

    def _transition(
        self,
        to_status: TemplateStatus,
        reason: Optional[str],
        provider_response: Optional[Dict[str, Any]],
        now: datetime,
    ) -> None:
        from_status = self._status
        self._status = to_status
        self._record(from_status, to_status, reason, provider_response, now)
        self.updated_at = now
        self.raise_event(TemplateStatusChanged(
            tenant_id=self.tenant_id,
            from_status=from_status.value,
            to_status=to_status.value,
            reason=reason,
        ))

    def _record(
        self,
        from_status: Optional[TemplateStatus],
        to_status: TemplateStatus,
        reason: Optional[str],
        provider_response: Optional[Dict[str, Any]],
        now: datetime,
    ) -> None:
        self.history.append(StatusHistoryEntry(
            template_id=self.id,
            tenant_id=self.tenant_id,
            from_status=from_status,
            to_status=to_status,
            reason=reason,
            provider_response=provider_response,
            changed_at=now,
        ))

    def __repr__(self) -> str:
        return (
            f"<MessageTemplate(id={self.id}, name={self.name}, "
            f"version={self.version}, status={self._status.value})>"
        )
