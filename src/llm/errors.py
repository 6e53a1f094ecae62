# src/llm/errors.py — v1
"""Typed errors returned by the vision service and the search providers.

Every failure that crosses the retry executor is normalized into a
VisionServiceError so callers only ever see one error shape, with a
user-facing message that survives retry exhaustion.
"""

from __future__ import annotations

from typing import Literal

ErrorCode = Literal[
    "API_KEY_INVALID",
    "RATE_LIMITED",
    "TIMEOUT",
    "NETWORK_ERROR",
    "VALIDATION_ERROR",
    "RESPONSE_PARSE_ERROR",
    "IMAGE_FETCH_ERROR",
    "IMAGE_INVALID",
    "UNKNOWN_ERROR",
]

RETRYABLE_CODES: frozenset[str] = frozenset({"RATE_LIMITED", "TIMEOUT", "NETWORK_ERROR"})

USER_MESSAGES: dict[str, str] = {
    "API_KEY_INVALID": "The AI service is not configured correctly. Please contact support.",
    "RATE_LIMITED": "Too many requests. Please wait a moment and try again.",
    "TIMEOUT": "The analysis took too long. Please try with fewer screenshots.",
    "NETWORK_ERROR": "Unable to connect to the AI service. Please check your connection.",
    "VALIDATION_ERROR": "Invalid request. Please check your input.",
    "RESPONSE_PARSE_ERROR": "Failed to process the AI response. Please try again.",
    "IMAGE_FETCH_ERROR": "Unable to load the screenshots. Please check the image URLs.",
    "IMAGE_INVALID": "One or more screenshots are not valid images.",
    "UNKNOWN_ERROR": "An unexpected error occurred. Please try again.",
}


class VisionServiceError(Exception):
    """Classified failure of an external service call.

    Attributes:
        code: Machine-readable error code.
        message: Technical description (for logs).
        user_message: Text safe to show to an end user.
        retryable: Whether the retry executor may try again.
        retry_after_ms: Service-reported wait before the next call, if any.
        status_code: HTTP status of the underlying response, if any.
    """

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        user_message: str | None = None,
        retryable: bool | None = None,
        retry_after_ms: int | None = None,
        status_code: int | None = None,
    ) -> None:
        self.code = code
        self.message = message
        self.user_message = user_message or USER_MESSAGES.get(code, USER_MESSAGES["UNKNOWN_ERROR"])
        self.retryable = code in RETRYABLE_CODES if retryable is None else retryable
        self.retry_after_ms = retry_after_ms
        self.status_code = status_code
        super().__init__(f"[{code}] {message}")

    def to_dict(self) -> dict[str, object]:
        data: dict[str, object] = {
            "code": self.code,
            "message": self.message,
            "userMessage": self.user_message,
            "retryable": self.retryable,
        }
        if self.retry_after_ms is not None:
            data["retryAfterMs"] = self.retry_after_ms
        return data


def create_service_error(
    code: ErrorCode,
    message: str,
    retry_after_ms: int | None = None,
    status_code: int | None = None,
) -> VisionServiceError:
    """Build a VisionServiceError with the standard user message and retry flag."""
    return VisionServiceError(
        code=code,
        message=message,
        retry_after_ms=retry_after_ms,
        status_code=status_code,
    )


def is_retryable(code: str) -> bool:
    return code in RETRYABLE_CODES
