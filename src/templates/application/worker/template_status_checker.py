"""Worker for reconciling pending templates with the provider."""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable

from src.shared.infrastructure.observability.logger import bind_context, clear_context, get_logger
from src.shared.utils.retry import BatchResult, RetryContext, RetryExecutor, RetryOptions
from src.templates.application.services.template_lifecycle_service import TemplateLifecycleService
from src.templates.domain.entities.message_template import MessageTemplate
from src.templates.domain.protocols.template_repository import TemplateRepository

logger = get_logger(__name__)

ERROR_BACKOFF_SECONDS = 60


class TemplateStatusChecker:
    """
    Periodically refreshes pending templates.

    Each template is isolated: one failing refresh never stops the batch.
    refresh_status applies its own retry budget, so the batch itself runs
    every item once.
    """

    def __init__(
        self,
        template_service: TemplateLifecycleService,
        template_repo: TemplateRepository,
        retry_executor: RetryExecutor,
        *,
        check_interval_minutes: int = 30,
        batch_size: int = 50,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.template_service = template_service
        self.template_repo = template_repo
        self.retry_executor = retry_executor
        self.check_interval = check_interval_minutes * 60
        self.batch_size = batch_size
        self.running = False
        self._sleep = sleep
        self._batch_options = RetryOptions(max_attempts=1)

    async def start(self) -> None:
        """Start the status checker."""
        logger.info("template_status_checker_started", interval_seconds=self.check_interval)
        self.running = True

        try:
            while self.running:
                try:
                    await self.check_pending_templates()
                except Exception:
                    logger.exception("template_status_checker_error")
                    await self._sleep(ERROR_BACKOFF_SECONDS)
                    continue
                if self.running:
                    await self._sleep(self.check_interval)
        finally:
            await self.template_service.flush_audit()
            logger.info("template_status_checker_stopped")

    async def check_pending_templates(self) -> BatchResult[MessageTemplate, MessageTemplate]:
        """One reconciliation pass over up to ``batch_size`` pending templates."""
        pending = await self.template_repo.list_pending(limit=self.batch_size)
        if not pending:
            logger.debug("template_status_check_idle")
            return BatchResult()

        logger.info("template_status_check_started", pending=len(pending))
        result = await self.retry_executor.execute_batch_with_retry(
            pending,
            self._refresh,
            RetryContext("template.status_check"),
            self._batch_options,
        )
        for template, error in result.failed:
            logger.warning(
                "template_status_check_failed",
                template_id=str(template.id),
                error_type=error.__class__.__name__,
                error=str(error),
            )
        return result

    async def _refresh(self, template: MessageTemplate) -> MessageTemplate:
        bind_context(tenant_id=str(template.tenant_id), template_id=str(template.id))
        try:
            return await self.template_service.refresh_status(template.id)
        finally:
            clear_context()

    def stop(self) -> None:
        """Stop the status checker after the current pass."""
        logger.info("template_status_checker_stopping")
        self.running = False
