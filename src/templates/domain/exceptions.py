# src/templates/domain/exceptions.py
"""
Template Domain Exceptions

Template and provider error kinds layered on the shared DomainError taxonomy,
so the host API maps them to HTTP without knowing about templates.
"""
from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional
from uuid import UUID

from fastapi import status

from src.shared.exceptions import (
    ConflictError,
    DomainError,
    NotFoundError,
    ServiceUnavailableError,
    ValidationError,
)


def _error_dict(error: Any) -> Dict[str, Any]:
    if isinstance(error, dict):
        return dict(error)
    to_dict = getattr(error, "to_dict", None)
    if callable(to_dict):
        return to_dict()
    return {"field": None, "code": "INVALID", "message": str(error), "position": None}


# ───────────────────────────── Template errors ─────────────────────────────

class TemplateValidationError(ValidationError):
    """Template content failed validation; details carry field-level errors."""
    code = "template_validation_error"

    def __init__(self, errors: Iterable[Any], message: str = "Template content failed validation") -> None:
        self.errors: List[Dict[str, Any]] = [_error_dict(e) for e in errors]
        super().__init__(message, details={"errors": self.errors})

    @property
    def error_codes(self) -> List[str]:
        return [e["code"] for e in self.errors]


class TemplateStatusError(ValidationError):
    """Operation not allowed in the template's current status."""
    code = "invalid_template_status"
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, template_id: Optional[UUID], current_status: Any, action: str) -> None:
        current = getattr(current_status, "value", current_status)
        super().__init__(
            f"Cannot {action} template in status '{current}'",
            details={"template_id": str(template_id) if template_id else None, "status": current, "action": action},
        )
        self.template_id = template_id
        self.current_status = current_status
        self.action = action


class TemplateNotFoundError(NotFoundError):
    code = "template_not_found"

    def __init__(self, template_id: UUID) -> None:
        super().__init__(f"Template {template_id} not found", details={"template_id": str(template_id)})
        self.template_id = template_id


class TemplateDuplicateNameError(ConflictError):
    code = "template_duplicate_name"

    def __init__(self, name: str, existing_id: Optional[UUID] = None) -> None:
        super().__init__(
            f"An active template named '{name}' already exists",
            details={"name": name, "existing_template_id": str(existing_id) if existing_id else None},
        )
        self.name = name
        self.existing_id = existing_id


class TemplateInUseError(ConflictError):
    """Template is referenced by active campaigns, or is past the deletable states."""
    code = "template_in_use"

    def __init__(
        self,
        template_id: UUID,
        message: str = "Template cannot be deleted",
        campaign_ids: Optional[Iterable[Any]] = None,
    ) -> None:
        ids = [str(c) for c in (campaign_ids or [])]
        details: Dict[str, Any] = {"template_id": str(template_id)}
        if ids:
            details["campaign_ids"] = ids
        super().__init__(message, details=details)
        self.template_id = template_id
        self.campaign_ids = ids


class TemplateVersionError(ConflictError):
    """A successor version of this template is already open."""
    code = "template_version_error"

    def __init__(self, template_id: UUID, successor_id: Optional[UUID] = None) -> None:
        super().__init__(
            "A newer version of this template is already in progress",
            details={
                "template_id": str(template_id),
                "successor_template_id": str(successor_id) if successor_id else None,
            },
        )
        self.template_id = template_id
        self.successor_id = successor_id


# ───────────────────────────── Provider errors ─────────────────────────────

class ProviderError(DomainError):
    """
    Error reported by (or while talking to) the template approval provider.

    ``retryable`` drives the RetryExecutor; ``provider_code`` is the provider's
    own numeric/string code when it sent one.
    """
    code = "provider_error"
    status_code = status.HTTP_502_BAD_GATEWAY
    retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        code: Optional[str] = None,
        provider_code: Optional[Any] = None,
        http_status: Optional[int] = None,
        retryable: Optional[bool] = None,
        retry_after: Optional[float] = None,
        payload: Optional[Dict[str, Any]] = None,
    ) -> None:
        details: Dict[str, Any] = {}
        if provider_code is not None:
            details["provider_code"] = provider_code
        if http_status is not None:
            details["provider_http_status"] = http_status
        if retry_after is not None:
            details["retry_after"] = retry_after
        super().__init__(message, code=code, details=details or None)
        if retryable is not None:
            self.retryable = retryable
        self.provider_code = provider_code
        self.http_status = http_status
        self.retry_after = retry_after
        self.payload = payload or {}

    @property
    def error_code(self) -> str:
        return self.code


class TransientProviderError(ProviderError):
    """Rate limit, timeout, network or 5xx: worth another attempt."""
    code = "service_unavailable"
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    retryable = True


class ProviderRejectedError(ProviderError):
    """Definitive rejection of the template content by the provider."""
    code = "provider_rejected"
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    retryable = False

    def __init__(self, reason: str, **kwargs: Any) -> None:
        super().__init__(reason, **kwargs)
        self.reason = reason


class RetriesExhaustedError(ServiceUnavailableError):
    """All retry attempts failed; ``last_error`` is the final underlying error."""
    code = "retries_exhausted"

    def __init__(self, operation: str, attempts: int, last_error: BaseException) -> None:
        details: Dict[str, Any] = {
            "operation": operation,
            "attempts": attempts,
            "last_error_code": getattr(last_error, "code", last_error.__class__.__name__),
            "last_error": str(last_error),
        }
        retry_after = getattr(last_error, "retry_after", None)
        if retry_after is not None:
            details["retry_after"] = retry_after
        super().__init__(f"{operation} failed after {attempts} attempt(s): {last_error}", details=details)
        self.operation = operation
        self.attempts = attempts
        self.last_error = last_error
