from src.templates.application.services.template_lifecycle_service import TemplateLifecycleService

__all__ = ["TemplateLifecycleService"]
