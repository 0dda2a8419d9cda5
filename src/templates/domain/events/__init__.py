from src.templates.domain.events.template_events import (
    TemplateCreated,
    TemplateDeleted,
    TemplateStatusChanged,
    TemplateSubmissionFailed,
    TemplateVersionCreated,
)

__all__ = [
    "TemplateCreated",
    "TemplateDeleted",
    "TemplateStatusChanged",
    "TemplateSubmissionFailed",
    "TemplateVersionCreated",
]
