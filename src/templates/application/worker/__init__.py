from src.templates.application.worker.template_status_checker import TemplateStatusChecker

__all__ = ["TemplateStatusChecker"]
