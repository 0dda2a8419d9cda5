from src.templates.infrastructure.audit.structlog_audit_sink import StructlogAuditSink

__all__ = ["StructlogAuditSink"]
