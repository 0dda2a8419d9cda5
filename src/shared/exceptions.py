from typing import Any, Dict, Optional

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from src.shared.error_codes import ERROR_CODES


# ───────────────────────── Base & Domain Exceptions ─────────────────────────
class DomainError(Exception):
    """Base class for domain-level errors. Services raise these, never HTTPException."""
    code: str = "domain_error"
    status_code: int = status.HTTP_400_BAD_REQUEST
    message: str
    details: Optional[Dict[str, Any]]

    def __init__(
        self,
        message: str = "",
        *,
        code: Optional[str] = None,
        status_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message or self.__class__.__name__)
        if code is not None:
            self.code = code
        if status_code is not None:
            self.status_code = status_code
        self.message = message or self.__class__.__name__
        self.details = details


class ValidationError(DomainError):
    code = "validation_error"
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY


class NotFoundError(DomainError):
    # generic; set a specific code via constructor if needed (e.g., "template_not_found")
    code = "not_found"
    status_code = status.HTTP_404_NOT_FOUND


class ConflictError(DomainError):
    code = "conflict"
    status_code = status.HTTP_409_CONFLICT


class ServiceUnavailableError(DomainError):
    code = "service_unavailable"
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE


class CircuitOpenError(ServiceUnavailableError):
    """
    Raised when a circuit breaker rejects a call without running it.

    Never retried by the RetryExecutor: retrying into an open breaker only
    burns the retry budget. Schedulers may try again on their own cadence.
    """
    code = "circuit_open"

    def __init__(self, circuit_name: str, *, retry_in_seconds: Optional[float] = None) -> None:
        details: Dict[str, Any] = {"circuit": circuit_name}
        if retry_in_seconds is not None:
            details["retry_in_seconds"] = round(retry_in_seconds, 3)
        super().__init__(
            f"Circuit breaker '{circuit_name}' is OPEN; dependency temporarily unavailable",
            details=details,
        )
        self.circuit_name = circuit_name
        self.retry_in_seconds = retry_in_seconds


# ───────────────────────────── Helpers ──────────────────────────────────────

def _problem(
    code: str,
    message: str,
    details: Optional[Dict[str, Any]],
    correlation_id: Optional[str],
) -> Dict[str, Any]:
    body: Dict[str, Any] = {"code": code, "message": message}
    if details:
        body["details"] = details
    if correlation_id:
        body["correlation_id"] = correlation_id
    return body


def _extract_correlation_id(req: Request) -> Optional[str]:
    return getattr(getattr(req, "state", None), "request_id", None) or req.headers.get("X-Request-ID")


def _http_for(code: str) -> int:
    return int(ERROR_CODES.get(code, {}).get("http", status.HTTP_500_INTERNAL_SERVER_ERROR))


def _msg_for(code: str) -> str:
    return str(ERROR_CODES.get(code, {}).get("message", code))


# ─────────────────────────── Registration ───────────────────────────

def register_exception_handlers(app: FastAPI) -> None:
    """Map the domain error taxonomy onto JSON problem responses for a host API."""

    @app.exception_handler(DomainError)
    async def handle_domain_error(req: Request, exc: DomainError):
        headers = None
        retry_after = (exc.details or {}).get("retry_after")
        if retry_after is not None:
            headers = {"Retry-After": str(int(retry_after))}
        return JSONResponse(
            status_code=exc.status_code,
            content=_problem(exc.code, exc.message, exc.details, _extract_correlation_id(req)),
            headers=headers,
        )

    @app.exception_handler(Exception)
    async def handle_unhandled(req: Request, exc: Exception):
        code = "internal_error"
        return JSONResponse(
            status_code=_http_for(code),
            content=_problem(code, _msg_for(code), {"type": exc.__class__.__name__}, _extract_correlation_id(req)),
        )
