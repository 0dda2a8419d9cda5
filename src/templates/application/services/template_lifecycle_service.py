"""
Template Lifecycle Service
Business logic for template validation, approval state and version lineage.
"""
from __future__ import annotations

import asyncio
from datetime import datetime
from functools import partial
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Set, Union
from uuid import UUID

from src.shared.domain.base_entity import utcnow
from src.shared.domain.domain_event import DomainEvent
from src.shared.infrastructure.observability.logger import get_logger
from src.shared.utils.retry import RetryContext, RetryExecutor, RetryOptions
from src.templates.domain.entities.message_template import MessageTemplate
from src.templates.domain.entities.status_history import StatusHistoryEntry
from src.templates.domain.events.template_events import TemplateDeleted, TemplateStatusChanged
from src.templates.domain.exceptions import (
    ProviderRejectedError,
    RetriesExhaustedError,
    TemplateDuplicateNameError,
    TemplateInUseError,
    TemplateNotFoundError,
    TemplateStatusError,
    TemplateValidationError,
    TemplateVersionError,
)
from src.templates.domain.protocols.external_services import (
    AuditSink,
    CampaignUsageChecker,
    TemplateProviderGateway,
)
from src.templates.domain.protocols.template_repository import TemplateRepository
from src.templates.domain.services.placeholder_grammar import PlaceholderError, PlaceholderGrammar
from src.templates.domain.services.template_rules import validate_fields
from src.templates.domain.value_objects.provider import ProviderDecision
from src.templates.domain.value_objects.template_status import TemplateStatus

logger = get_logger(__name__)

SUBMIT_CIRCUIT = "provider-submit"
POLL_CIRCUIT = "provider-poll"


class TemplateLifecycleService:
    """
    Application service for the template lifecycle.

    Handles creation, validation, provider submission, approval decisions,
    versioning with deferred supersession, and deletion. Entity transitions
    return Results; this service is where a Failure becomes a raised error.
    """

    def __init__(
        self,
        template_repo: TemplateRepository,
        provider: TemplateProviderGateway,
        retry_executor: RetryExecutor,
        *,
        campaign_usage: Optional[CampaignUsageChecker] = None,
        audit_sink: Optional[AuditSink] = None,
        retry_options: Optional[RetryOptions] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.template_repo = template_repo
        self.provider = provider
        self.retry_executor = retry_executor
        self.campaign_usage = campaign_usage
        self.audit_sink = audit_sink
        self.retry_options = retry_options or retry_executor.default_options
        self._clock = clock
        self._audit_tasks: Set[asyncio.Task] = set()

    # ─────────────────────────── validation ───────────────────────────

    def validate_placeholders(self, body_text: str) -> List[PlaceholderError]:
        return PlaceholderGrammar.validate(body_text)

    # ─────────────────────────── queries ───────────────────────────

    async def get_template(self, template_id: UUID) -> MessageTemplate:
        template = await self.template_repo.get_by_id(template_id)
        if template is None:
            raise TemplateNotFoundError(template_id)
        return template

    async def get_template_versions(self, template_id: UUID) -> List[MessageTemplate]:
        """The whole lineage (root and every descendant), newest version first."""
        template = await self.get_template(template_id)
        root = await self._find_root(template)

        lineage: Dict[UUID, MessageTemplate] = {root.id: root}
        queue = [root.id]
        while queue:
            parent_id = queue.pop(0)
            for child in await self.template_repo.list_children(parent_id):
                if child.id not in lineage:
                    lineage[child.id] = child
                    queue.append(child.id)

        return sorted(lineage.values(), key=lambda t: (t.version, t.created_at), reverse=True)

    async def preview_template(self, template_id: UUID, values: Mapping[Union[int, str], Any]) -> str:
        template = await self.get_template(template_id)
        return PlaceholderGrammar.render(template.body_text, values)

    async def get_status_history(self, template_id: UUID) -> List[StatusHistoryEntry]:
        template = await self.get_template(template_id)
        return template.history.timeline()

    async def get_time_in_statuses(self, template_id: UUID) -> Dict[str, float]:
        template = await self.get_template(template_id)
        return template.history.time_in_statuses(now=self._clock())

    async def has_been_in_status(self, template_id: UUID, status: TemplateStatus) -> bool:
        template = await self.get_template(template_id)
        return template.history.has_been_in_status(status)

    # ─────────────────────────── commands ───────────────────────────

    async def create_template(
        self,
        tenant_id: UUID,
        name: str,
        language: str,
        category: str,
        body_text: str,
    ) -> MessageTemplate:
        """
        Create new message template in draft status.

        Name, category and body must pass the field rules; placeholder grammar
        is only enforced on submit, so a draft may be saved mid-edit.

        Raises:
            TemplateValidationError: a field rule failed
            TemplateDuplicateNameError: an active template already uses the name
        """
        errors = validate_fields(name, category, body_text)
        if errors:
            raise TemplateValidationError(errors)
        await self._ensure_name_available(tenant_id, name)

        template = MessageTemplate.create(tenant_id, name, language, category, body_text, now=self._clock())
        await self._save(template, new=True)

        logger.info("template_created", template_id=str(template.id), tenant_id=str(tenant_id), name=name)
        return template

    async def submit_template(self, template_id: UUID) -> MessageTemplate:
        """
        Validate, move to pending and hand the template to the provider.

        Raises:
            TemplateValidationError: field rule or placeholder grammar violations; stays draft
            TemplateStatusError: template is not a draft
            RetriesExhaustedError: transient provider failures used up the budget
            CircuitOpenError: provider breaker is open
        """
        template = await self.get_template(template_id)
        template.submit(now=self._clock()).unwrap()
        await self._save(template)

        return await self._send_to_provider(template)

    async def refresh_status(self, template_id: UUID) -> MessageTemplate:
        """
        Reconcile a pending template with the provider.

        Never accepted by the provider → resubmit; otherwise poll and apply a
        final decision if there is one.
        """
        template = await self.get_template(template_id)
        if template.status is not TemplateStatus.PENDING:
            raise TemplateStatusError(template.id, template.status, "refresh status of")

        if not template.provider_template_id:
            logger.info("template_resubmitting", template_id=str(template.id))
            return await self._send_to_provider(template)

        options = self.retry_options.with_changes(circuit_breaker=POLL_CIRCUIT)
        context = RetryContext("template.poll", tenant_id=template.tenant_id, template_id=template.id)
        try:
            report = await self.retry_executor.execute_with_retry(
                partial(self.provider.poll, template.provider_template_id), context, options,
            )
        except Exception as exc:
            await self._handle_provider_failure(template, exc, context, options)
            raise

        if not report.decision.is_final:
            logger.debug("template_still_pending", template_id=str(template.id))
            return template
        return await self._apply_decision(template, report.decision, report.reason, report.raw)

    async def mark_approved(self, template_id: UUID, provider_template_id: Optional[str] = None) -> MessageTemplate:
        """Provider approved the template (webhook or poll)."""
        template = await self.get_template(template_id)
        return await self._approve(template, provider_template_id, None)

    async def mark_rejected(self, template_id: UUID, reason: str) -> MessageTemplate:
        """Provider rejected the template (webhook or poll); reason is required."""
        template = await self.get_template(template_id)
        return await self._reject(template, reason, None)

    async def edit_template(self, template_id: UUID, body_text: Optional[str] = None, **changes: Any) -> MessageTemplate:
        """
        Edit according to the current status:
        draft → revised in place; approved → new version; rejected → new draft
        at the same version. Anything else is refused.
        """
        template = await self.get_template(template_id)

        if template.status is TemplateStatus.DRAFT:
            new_name = changes.get("name")
            if new_name and new_name != template.name:
                await self._ensure_name_available(
                    template.tenant_id, new_name, allowed={template.id, template.parent_template_id},
                )
            template.revise(body_text, **changes).unwrap()
            await self._save(template)
            logger.info("template_revised", template_id=str(template.id))
            return template

        if template.status is TemplateStatus.APPROVED:
            return await self._open_successor(template, body_text or template.body_text, changes)

        if template.status is TemplateStatus.REJECTED:
            return await self._reopen_rejected(template, body_text or template.body_text, changes)

        raise TemplateStatusError(template.id, template.status, "edit")

    async def edit_approved_template(self, template_id: UUID, body_text: str, **changes: Any) -> MessageTemplate:
        """
        New draft version of an approved template.

        The approved record keeps serving until the new version is approved.

        Raises:
            TemplateStatusError: template is not approved
            TemplateVersionError: a successor draft/pending version already exists
        """
        template = await self.get_template(template_id)
        if template.status is not TemplateStatus.APPROVED:
            raise TemplateStatusError(template.id, template.status, "create a new version of")
        return await self._open_successor(template, body_text, changes)

    async def delete_template(self, template_id: UUID) -> None:
        """Delete a draft or rejected template that no active campaign uses."""
        template = await self.get_template(template_id)
        template.ensure_deletable().unwrap()

        if self.campaign_usage is not None:
            campaigns = list(await self.campaign_usage.active_campaigns_using(template.tenant_id, template.id))
            if campaigns:
                raise TemplateInUseError(
                    template.id,
                    f"Template is used by {len(campaigns)} active campaign(s)",
                    campaign_ids=campaigns,
                )

        await self.template_repo.delete(template.id)
        template.raise_event(TemplateDeleted(tenant_id=template.tenant_id, name=template.name, version=template.version))
        self._dispatch(template.collect_domain_events())
        logger.info("template_deleted", template_id=str(template.id), tenant_id=str(template.tenant_id))

    async def flush_audit(self) -> None:
        """Wait for outstanding audit notifications."""
        while self._audit_tasks:
            await asyncio.gather(*list(self._audit_tasks), return_exceptions=True)

    # ─────────────────────────── provider interaction ───────────────────────────

    async def _send_to_provider(self, template: MessageTemplate) -> MessageTemplate:
        options = self.retry_options.with_changes(circuit_breaker=SUBMIT_CIRCUIT)
        context = RetryContext("template.submit", tenant_id=template.tenant_id, template_id=template.id)
        try:
            receipt = await self.retry_executor.execute_with_retry(
                partial(self.provider.submit, template.to_submission()), context, options,
            )
        except ProviderRejectedError as exc:
            return await self._reject(template, exc.reason or exc.message, exc.payload or None)
        except Exception as exc:
            await self._handle_provider_failure(template, exc, context, options)
            raise

        template.record_provider_acceptance(receipt.provider_template_id).unwrap()
        logger.info(
            "template_accepted_by_provider",
            template_id=str(template.id),
            provider_template_id=receipt.provider_template_id,
            attempts=context.attempt,
        )
        if not receipt.decision.is_final:
            await self._save(template)
            return template
        return await self._apply_decision(template, receipt.decision, receipt.reason, receipt.raw)

    async def _handle_provider_failure(
        self,
        template: MessageTemplate,
        error: Exception,
        context: RetryContext,
        options: RetryOptions,
    ) -> None:
        """
        Record the failure on the template (stays pending) and persist it.

        Raises RetriesExhaustedError when a retryable error used up the budget;
        otherwise returns and the caller re-raises the original error.
        """
        error_code = getattr(error, "code", None) or error.__class__.__name__
        template.record_submission_failure(
            str(error_code),
            str(error) or error.__class__.__name__,
            attempts=context.attempt,
            now=self._clock(),
        ).unwrap()
        await self._save(template)

        exhausted = (
            context.attempt >= options.max_attempts
            and self.retry_executor.is_retryable(error, options)
        )
        logger.error(
            "template_provider_call_failed",
            operation=context.operation_name,
            template_id=str(template.id),
            error_code=str(error_code),
            attempts=context.attempt,
            exhausted=exhausted,
        )
        if exhausted:
            raise RetriesExhaustedError(context.operation_name, context.attempt, error) from error

    async def _apply_decision(
        self,
        template: MessageTemplate,
        decision: ProviderDecision,
        reason: Optional[str],
        provider_response: Optional[Dict[str, Any]],
    ) -> MessageTemplate:
        if decision is ProviderDecision.APPROVED:
            return await self._approve(template, None, provider_response)
        return await self._reject(template, reason or "Rejected by provider", provider_response)

    async def _approve(
        self,
        template: MessageTemplate,
        provider_template_id: Optional[str],
        provider_response: Optional[Dict[str, Any]],
    ) -> MessageTemplate:
        now = self._clock()
        template.approve(provider_template_id, provider_response=provider_response, now=now).unwrap()
        await self._save(template)

        if template.parent_template_id is not None:
            parent = await self.template_repo.get_by_id(template.parent_template_id)
            if parent is not None and parent.status is TemplateStatus.APPROVED:
                parent.supersede(template, now=now).unwrap()
                await self._save(parent)
        return template

    async def _reject(
        self,
        template: MessageTemplate,
        reason: str,
        provider_response: Optional[Dict[str, Any]],
    ) -> MessageTemplate:
        template.reject(reason, provider_response=provider_response, now=self._clock()).unwrap()
        await self._save(template)
        return template

    # ─────────────────────────── versioning ───────────────────────────

    async def _open_successor(
        self, template: MessageTemplate, body_text: str, changes: Dict[str, Any],
    ) -> MessageTemplate:
        await self._ensure_no_open_successor(template.id)
        new_name = changes.get("name")
        if new_name and new_name != template.name:
            await self._ensure_name_available(template.tenant_id, new_name)

        successor = template.create_successor(body_text, now=self._clock(), **changes).unwrap()
        await self._save(successor, new=True)
        logger.info(
            "template_version_created",
            template_id=str(successor.id),
            parent_template_id=str(template.id),
            version=successor.version,
        )
        return successor

    async def _reopen_rejected(
        self, template: MessageTemplate, body_text: str, changes: Dict[str, Any],
    ) -> MessageTemplate:
        if template.parent_template_id is not None:
            await self._ensure_no_open_successor(template.parent_template_id)
        await self._ensure_name_available(
            template.tenant_id,
            changes.get("name", template.name),
            allowed={template.parent_template_id},
        )

        draft = template.reopen_rejected(body_text, now=self._clock(), **changes).unwrap()
        await self._save(draft, new=True)
        logger.info(
            "template_reopened",
            template_id=str(draft.id),
            rejected_template_id=str(template.id),
            version=draft.version,
        )
        return draft

    async def _ensure_no_open_successor(self, parent_id: UUID) -> None:
        for child in await self.template_repo.list_children(parent_id):
            if child.status.is_open:
                raise TemplateVersionError(parent_id, child.id)

    async def _ensure_name_available(
        self, tenant_id: UUID, name: str, allowed: Iterable[Optional[UUID]] = (),
    ) -> None:
        allowed_ids = {i for i in allowed if i is not None}
        for existing in await self.template_repo.find_active_by_name(tenant_id, name):
            if existing.id not in allowed_ids and not existing.status.is_terminal:
                raise TemplateDuplicateNameError(name, existing.id)

    async def _find_root(self, template: MessageTemplate) -> MessageTemplate:
        current = template
        seen = {current.id}
        while current.parent_template_id is not None and current.parent_template_id not in seen:
            parent = await self.template_repo.get_by_id(current.parent_template_id)
            if parent is None:
                break
            seen.add(parent.id)
            current = parent
        return current

    # ─────────────────────────── persistence & audit ───────────────────────────

    async def _save(self, template: MessageTemplate, *, new: bool = False) -> None:
        if new:
            await self.template_repo.add(template)
        else:
            await self.template_repo.update(template)

        events = template.collect_domain_events()
        for event in events:
            if isinstance(event, TemplateStatusChanged):
                logger.info(
                    "template_status_changed",
                    template_id=str(template.id),
                    tenant_id=str(template.tenant_id),
                    from_status=event.from_status,
                    to_status=event.to_status,
                    reason=event.reason,
                )
        self._dispatch(events)

    def _dispatch(self, events: List[DomainEvent]) -> None:
        if self.audit_sink is None:
            return
        for event in events:
            task = asyncio.create_task(self._record_audit(event))
            self._audit_tasks.add(task)
            task.add_done_callback(self._audit_tasks.discard)

    async def _record_audit(self, event: DomainEvent) -> None:
        try:
            await self.audit_sink.record(event)
        except Exception:
            logger.exception(
                "audit_record_failed",
                event_type=event.event_type,
                aggregate_id=str(event.aggregate_id),
            )
