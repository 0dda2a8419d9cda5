"""
Template Provider Gateway Implementation
Graph-style template approval API over httpx; maps provider failures onto the
ProviderError family so the RetryExecutor can classify them.
"""
from __future__ import annotations

from typing import Any, Dict, Optional

import httpx
from pydantic import ValidationError as PydanticValidationError

from src.shared.infrastructure.observability.logger import get_logger
from src.templates.domain.exceptions import (
    ProviderError,
    ProviderRejectedError,
    TransientProviderError,
)
from src.templates.domain.value_objects.provider import (
    ProviderDecision,
    ProviderStatusReport,
    SubmissionReceipt,
    TemplateSubmission,
)
from src.templates.infrastructure.adapters.schemas import (
    ProviderErrorBody,
    ProviderErrorEnvelope,
    TemplateCreateResponse,
    TemplateStatusResponse,
)

logger = get_logger(__name__)

DEFAULT_RETRY_AFTER_SECONDS = 60


class HttpTemplateProviderGateway:
    """
    Template approval provider over HTTP.

    Error mapping:
    - 401/403 or auth codes            → ProviderError(provider_auth_error), not retried
    - 429 or rate-limit codes          → TransientProviderError(rate_limited) with Retry-After
    - 408, 5xx or transient codes      → TransientProviderError(service_unavailable)
    - other 4xx on submit              → ProviderRejectedError (content rejected)
    - timeouts / connection failures   → TransientProviderError(timeout_error / network_error)

    No retries or circuit breaking here; callers wrap calls in a RetryExecutor.
    """

    RATE_LIMIT_ERROR_CODES = frozenset({4, 17, 32, 613, 80007, 130429})
    TRANSIENT_ERROR_CODES = frozenset({1, 2, 368})
    AUTH_ERROR_CODES = frozenset({10, 190, 200})

    def __init__(
        self,
        base_url: str,
        account_id: Optional[str],
        access_token: Optional[str],
        *,
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        """
        Args:
            base_url: Provider API base URL (e.g. https://graph.facebook.com/v19.0)
            account_id: Business account that owns the templates
            access_token: API access token
            timeout: Request timeout in seconds
            client: Preconfigured client (tests pass one with a MockTransport)
        """
        self.base_url = base_url.rstrip("/")
        self.account_id = account_id
        self._access_token = access_token
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout),
            limits=httpx.Limits(max_keepalive_connections=20, max_connections=50),
        )

    @classmethod
    def from_settings(cls, settings: Any, client: Optional[httpx.AsyncClient] = None) -> "HttpTemplateProviderGateway":
        return cls(
            settings.provider_api_base_url,
            settings.provider_account_id,
            settings.provider_access_token,
            timeout=settings.provider_timeout_seconds,
            client=client,
        )

    async def submit(self, submission: TemplateSubmission) -> SubmissionReceipt:
        if not self.account_id:
            raise ProviderError("Provider account id is not configured", code="provider_error")

        data = await self._request(
            "POST",
            f"{self.base_url}/{self.account_id}/message_templates",
            operation="submit",
            json=submission.to_payload(),
        )
        body = self._parse(TemplateCreateResponse, data, "submit")
        decision = ProviderDecision.from_provider(body.status)

        logger.info(
            "provider_template_submitted",
            template_id=str(submission.template_id),
            provider_template_id=body.id,
            provider_status=body.status,
        )
        return SubmissionReceipt(
            provider_template_id=body.id,
            decision=decision,
            reason="Rejected by provider on submission" if decision is ProviderDecision.REJECTED else None,
            raw=data,
        )

    async def poll(self, provider_template_id: str) -> ProviderStatusReport:
        data = await self._request(
            "GET",
            f"{self.base_url}/{provider_template_id}",
            operation="poll",
            params={"fields": "id,name,status,rejected_reason,quality_score"},
        )
        body = self._parse(TemplateStatusResponse, data, "poll")
        decision = ProviderDecision.from_provider(body.status)
        reason = body.reason
        if decision is ProviderDecision.REJECTED and not reason:
            reason = f"Provider status {body.status}"
        return ProviderStatusReport(
            provider_template_id=body.id,
            decision=decision,
            reason=reason,
            raw=data,
        )

    async def close(self) -> None:
        """Close the HTTP client connection pool (only when we created it)."""
        if self._owns_client:
            await self.client.aclose()
            logger.info("provider_gateway_client_closed")

    # ─────────────────────────── internals ───────────────────────────

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._access_token:
            headers["Authorization"] = f"Bearer {self._access_token}"
        return headers

    async def _request(
        self,
        method: str,
        url: str,
        *,
        operation: str,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        try:
            response = await self.client.request(method, url, json=json, params=params, headers=self._headers())
        except httpx.TimeoutException as exc:
            logger.warning("provider_request_timeout", operation=operation, url=url)
            raise TransientProviderError(f"Provider {operation} timed out", code="timeout_error") from exc
        except httpx.TransportError as exc:
            logger.warning("provider_request_network_error", operation=operation, url=url, error=str(exc))
            raise TransientProviderError(f"Provider {operation} network error: {exc}", code="network_error") from exc

        if response.is_success:
            try:
                return response.json()
            except ValueError as exc:
                raise ProviderError(f"Provider {operation} returned invalid JSON", http_status=response.status_code) from exc

        raise self._map_error(response, operation)

    def _map_error(self, response: httpx.Response, operation: str) -> ProviderError:
        error = self._parse_error_response(response)
        status_code = response.status_code
        provider_code = error.numeric_code

        logger.warning(
            "provider_request_failed",
            operation=operation,
            status_code=status_code,
            provider_code=error.code,
            provider_message=error.message,
            fbtrace_id=error.fbtrace_id,
        )

        common: Dict[str, Any] = {
            "provider_code": error.code,
            "http_status": status_code,
            "payload": error.model_dump(exclude_none=True),
        }

        if status_code in (401, 403) or provider_code in self.AUTH_ERROR_CODES:
            return ProviderError(
                f"Provider refused credentials: {error.message}",
                code="provider_auth_error",
                retryable=False,
                **common,
            )

        if status_code == 429 or provider_code in self.RATE_LIMIT_ERROR_CODES:
            return TransientProviderError(
                f"Rate limited by provider: {error.message}",
                code="rate_limited",
                retry_after=self._get_retry_after(response),
                **common,
            )

        if status_code == 408 or status_code >= 500 or provider_code in self.TRANSIENT_ERROR_CODES:
            return TransientProviderError(
                f"Provider temporarily unavailable: {error.message}",
                code="service_unavailable",
                **common,
            )

        if operation == "submit":
            return ProviderRejectedError(error.reason, **common)

        return ProviderError(f"Provider {operation} failed: {error.message}", **common)

    def _parse_error_response(self, response: httpx.Response) -> ProviderErrorBody:
        try:
            return ProviderErrorEnvelope.model_validate(response.json()).error
        except (ValueError, PydanticValidationError):
            return ProviderErrorBody(code=None, message=response.text[:200] or response.reason_phrase)

    @staticmethod
    def _parse(model: Any, data: Dict[str, Any], operation: str) -> Any:
        try:
            return model.model_validate(data)
        except PydanticValidationError as exc:
            raise ProviderError(f"Unexpected provider {operation} response: {exc.error_count()} error(s)") from exc

    @staticmethod
    def _get_retry_after(response: httpx.Response) -> int:
        """Retry-After header in seconds; HTTP-date values fall back to the default."""
        retry_after = response.headers.get("Retry-After")
        if retry_after is None:
            return DEFAULT_RETRY_AFTER_SECONDS
        try:
            return int(retry_after)
        except ValueError:
            return DEFAULT_RETRY_AFTER_SECONDS
