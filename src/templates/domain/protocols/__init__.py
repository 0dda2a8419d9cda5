from src.templates.domain.protocols.external_services import (
    AuditSink,
    CampaignUsageChecker,
    TemplateProviderGateway,
)
from src.templates.domain.protocols.template_repository import TemplateRepository

__all__ = [
    "AuditSink",
    "CampaignUsageChecker",
    "TemplateProviderGateway",
    "TemplateRepository",
]
