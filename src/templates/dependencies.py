"""Composition root for the templates module: explicit constructor wiring, no container."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from src.shared.config import Settings, get_settings
from src.shared.infrastructure.observability.logger import configure_logging, get_logger
from src.shared.utils.circuit_breaker import CircuitBreakerRegistry
from src.shared.utils.retry import RetryExecutor, RetryOptions
from src.templates.application.services.template_lifecycle_service import TemplateLifecycleService
from src.templates.application.worker.template_status_checker import TemplateStatusChecker
from src.templates.domain.exceptions import TransientProviderError
from src.templates.domain.protocols.external_services import (
    AuditSink,
    CampaignUsageChecker,
    TemplateProviderGateway,
)
from src.templates.domain.protocols.template_repository import TemplateRepository
from src.templates.infrastructure.adapters.provider_gateway import HttpTemplateProviderGateway
from src.templates.infrastructure.audit.structlog_audit_sink import StructlogAuditSink

logger = get_logger(__name__)

# Only "the provider did not answer properly" trips a breaker; definitive
# answers (rejections, auth errors) mean the provider is up.
PROVIDER_FAILURE_EXCEPTIONS = (TransientProviderError, TimeoutError, ConnectionError)


@dataclass
class TemplateEngine:
    """Everything a host process needs, built once per process."""
    settings: Settings
    breakers: CircuitBreakerRegistry
    retry_executor: RetryExecutor
    provider: TemplateProviderGateway
    service: TemplateLifecycleService
    status_checker: TemplateStatusChecker

    async def aclose(self) -> None:
        self.status_checker.stop()
        await self.service.flush_audit()
        close = getattr(self.provider, "close", None)
        if close is not None:
            await close()


def init_observability(settings: Optional[Settings] = None) -> None:
    settings = settings or get_settings()
    configure_logging(log_level=settings.log_level, json_logs=settings.log_json)


def build_breaker_registry(settings: Settings) -> CircuitBreakerRegistry:
    return CircuitBreakerRegistry(
        failure_threshold=settings.circuit_failure_threshold,
        reset_timeout=settings.circuit_reset_timeout_seconds,
        failure_exceptions=PROVIDER_FAILURE_EXCEPTIONS,
    )


def build_retry_executor(settings: Settings, breakers: CircuitBreakerRegistry) -> RetryExecutor:
    return RetryExecutor(breakers, default_options=RetryOptions.from_settings(settings))


def build_template_engine(
    template_repo: TemplateRepository,
    *,
    settings: Optional[Settings] = None,
    provider: Optional[TemplateProviderGateway] = None,
    campaign_usage: Optional[CampaignUsageChecker] = None,
    audit_sink: Optional[AuditSink] = None,
) -> TemplateEngine:
    """
    Wire the engine around a host-supplied repository.

    The HTTP gateway and structlog audit sink are used unless the host passes
    its own collaborators.
    """
    settings = settings or get_settings()
    breakers = build_breaker_registry(settings)
    retry_executor = build_retry_executor(settings, breakers)
    provider = provider or HttpTemplateProviderGateway.from_settings(settings)

    service = TemplateLifecycleService(
        template_repo,
        provider,
        retry_executor,
        campaign_usage=campaign_usage,
        audit_sink=audit_sink or StructlogAuditSink(),
    )
    status_checker = TemplateStatusChecker(
        service,
        template_repo,
        retry_executor,
        check_interval_minutes=settings.status_check_interval_minutes,
        batch_size=settings.status_check_batch_size,
    )

    logger.info("template_engine_built", settings=settings.safe_dict())
    return TemplateEngine(
        settings=settings,
        breakers=breakers,
        retry_executor=retry_executor,
        provider=provider,
        service=service,
        status_checker=status_checker,
    )
