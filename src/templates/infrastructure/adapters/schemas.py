"""Provider (Graph-style API) response models using Pydantic v2."""

from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class ProviderErrorBody(BaseModel):
    """The ``error`` object of a failed Graph API call."""
    model_config = ConfigDict(extra="ignore")

    code: Optional[Union[int, str]] = Field(None, description="Provider error code")
    message: str = Field("Unknown error", description="Developer-facing message")
    type: Optional[str] = None
    error_subcode: Optional[int] = None
    error_user_title: Optional[str] = None
    error_user_msg: Optional[str] = Field(None, description="Human-readable reason, used for rejections")
    fbtrace_id: Optional[str] = None

    @property
    def numeric_code(self) -> Optional[int]:
        if isinstance(self.code, int):
            return self.code
        if isinstance(self.code, str) and self.code.isdigit():
            return int(self.code)
        return None

    @property
    def reason(self) -> str:
        return self.error_user_msg or self.message


class ProviderErrorEnvelope(BaseModel):
    model_config = ConfigDict(extra="ignore")

    error: ProviderErrorBody = Field(default_factory=ProviderErrorBody)


class TemplateCreateResponse(BaseModel):
    """Answer to ``POST /{account_id}/message_templates``."""
    model_config = ConfigDict(extra="ignore")

    id: str = Field(..., min_length=1)
    status: Optional[str] = Field(None, description="PENDING, APPROVED or REJECTED")
    category: Optional[str] = None


class TemplateStatusResponse(BaseModel):
    """Answer to ``GET /{template_id}``."""
    model_config = ConfigDict(extra="ignore")

    id: str = Field(..., min_length=1)
    name: Optional[str] = None
    status: Optional[str] = None
    rejected_reason: Optional[str] = None
    quality_score: Optional[Dict[str, Any]] = None

    @property
    def reason(self) -> Optional[str]:
        # the provider reports "NONE" when nothing was rejected
        if not self.rejected_reason or self.rejected_reason.upper() == "NONE":
            return None
        return self.rejected_reason
