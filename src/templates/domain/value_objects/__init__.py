from src.templates.domain.value_objects.provider import (
    ProviderDecision,
    ProviderStatusReport,
    SubmissionReceipt,
    TemplateSubmission,
)
from src.templates.domain.value_objects.template_status import TemplateStatus

__all__ = [
    "ProviderDecision",
    "ProviderStatusReport",
    "SubmissionReceipt",
    "TemplateStatus",
    "TemplateSubmission",
]
