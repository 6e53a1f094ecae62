# src/api/models.py — v1
"""API-level models: AnalyzeRequest, SearchRequest, ErrorPayload.

Requests are validated here, before any cache or network work happens.
"""

from __future__ import annotations

from pydantic import BaseModel, Field, ValidationError, field_validator

from screenlens.core.models import Platform, Screenshot
from screenlens.llm.errors import VisionServiceError

MIN_TIMEOUT_MS = 1_000
MAX_TIMEOUT_MS = 300_000

_HTTP_STATUS: dict[str, int] = {
    "API_KEY_INVALID": 401,
    "RATE_LIMITED": 429,
    "VALIDATION_ERROR": 400,
    "IMAGE_INVALID": 400,
    "IMAGE_FETCH_ERROR": 422,
    "TIMEOUT": 504,
    "NETWORK_ERROR": 502,
}


class RequestValidationError(ValueError):
    """Raised when an API request fails validation."""

    def __init__(self, message: str, details: list[str] | None = None) -> None:
        self.details = details or []
        super().__init__(message)


class AnalyzeOptions(BaseModel):
    """Per-request analysis options."""

    force_refresh: bool = False
    timeout_ms: int | None = Field(default=None, ge=MIN_TIMEOUT_MS, le=MAX_TIMEOUT_MS)


class AnalyzeRequest(BaseModel):
    """Analyze one app's screenshots."""

    subject_id: str
    subject_name: str
    screenshots: list[Screenshot] = Field(min_length=1)
    options: AnalyzeOptions = Field(default_factory=AnalyzeOptions)

    @field_validator("subject_id", "subject_name")
    @classmethod
    def validate_non_empty(cls, v: str) -> str:  # noqa: N805
        if not v.strip():
            raise ValueError("must be non-empty")
        return v.strip()


class SearchRequest(BaseModel):
    """Search the app stores."""

    query: str
    platforms: list[Platform] = Field(default_factory=lambda: ["ios", "android"], min_length=1)
    country: str | None = None
    language: str | None = None
    limit: int | None = Field(default=None, ge=1, le=200)
    force_refresh: bool = False

    @field_validator("query")
    @classmethod
    def validate_query(cls, v: str) -> str:  # noqa: N805
        if not v.strip():
            raise ValueError("query must be non-empty")
        return v


class ErrorPayload(BaseModel):
    """Error body returned to API callers."""

    code: str
    message: str
    user_message: str
    retryable: bool = False
    retry_after_ms: int | None = None
    status: int = 500

    @classmethod
    def from_error(cls, error: VisionServiceError) -> ErrorPayload:
        return cls(
            code=error.code,
            message=error.message,
            user_message=error.user_message,
            retryable=error.retryable,
            retry_after_ms=error.retry_after_ms,
            status=http_status_for(error.code),
        )


def http_status_for(code: str) -> int:
    """HTTP status for a service error code (500 for anything unmapped)."""
    return _HTTP_STATUS.get(code, 500)


def parse_analyze_request(data: dict) -> AnalyzeRequest:
    """Validate a raw analyze payload.

    Raises:
        RequestValidationError: With one detail line per failing field.
    """
    try:
        return AnalyzeRequest.model_validate(data)
    except ValidationError as e:
        raise RequestValidationError("Invalid analyze request", _details(e)) from e


def parse_search_request(data: dict) -> SearchRequest:
    """Validate a raw search payload.

    Raises:
        RequestValidationError: With one detail line per failing field.
    """
    try:
        return SearchRequest.model_validate(data)
    except ValidationError as e:
        raise RequestValidationError("Invalid search request", _details(e)) from e


def _details(error: ValidationError) -> list[str]:
    return [
        f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in error.errors()
    ]
