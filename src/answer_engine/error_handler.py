# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Exceptions and error classification for the answer engine.

Retryable conditions (rate limits, server errors, network failures,
truncated completions) are resolved inside RequestExecutor. Only the
terminal errors below ever reach the caller, who is expected to halt its
automation loop and show describe_error() to the user.
"""

import re
from typing import Any, Dict, Optional

import httpx

# "Please retry after 17 seconds." style hints in 429 messages
_RETRY_AFTER_PATTERN = re.compile(r"retry after (\d+) seconds", re.IGNORECASE)

# 400 messages meaning the key itself was deleted or is wrong
INVALID_CREDENTIAL_MARKERS = (
    "api key not found",
    "api key not valid",
    "check your api key",
)

SERVER_ERROR_STATUSES = frozenset({500, 503})


# =============================================================================
# EXCEPTIONS
# =============================================================================


class AnswerEngineError(Exception):
    """Base class for every error the engine raises."""

    def __init__(self, message: str = ""):
        self.message = message
        super().__init__(message)


class MissingCredentialError(AnswerEngineError):
    """Raised when no credential is configured for a request."""

    def __init__(self, message: str = ""):
        super().__init__(message or "API key is required")


class RequestCancelledError(AnswerEngineError):
    """
    Raised when the caller cancels during a wait.

    Cancellation comes either from the status callback returning False or
    from the caller's cancel event being set while a wait is pending.
    """

    def __init__(self, stage: str = "", message: str = ""):
        self.stage = stage
        super().__init__(
            message
            or (f"Request cancelled by user during {stage}" if stage else "Request cancelled by user")
        )


class RateLimitedError(AnswerEngineError):
    """
    Internal signal for a 429 response.

    Always resolved by the retry state machine (wait, switch model or rotate
    credential); surfaces only as ApiError once retries run out.
    """

    def __init__(self, model: str, message: str = "", retry_after: Optional[int] = None):
        self.model = model
        self.retry_after = retry_after
        super().__init__(message or f"Rate limit exceeded on {model}")


class ServerError(AnswerEngineError):
    """Internal signal for a 500/503 response. Retried with backoff."""

    def __init__(self, status_code: int, message: str = ""):
        self.status_code = status_code
        super().__init__(message or f"Server error ({status_code})")


class ApiError(AnswerEngineError):
    """
    Non-retriable provider error, surfaced verbatim.

    Attributes:
        status_code: HTTP status, or None for transport failures
        payload: Decoded provider error body, if any
    """

    def __init__(
        self,
        status_code: Optional[int],
        message: str = "",
        payload: Optional[Dict[str, Any]] = None,
    ):
        self.status_code = status_code
        self.payload = payload
        super().__init__(
            message or f"API failed: {status_code} - {payload if payload is not None else ''}"
        )

    def __str__(self) -> str:
        if self.status_code is None:
            return self.message
        return f"API Error ({self.status_code}): {self.message}"


class MalformedResponseError(AnswerEngineError):
    """
    Raised when the completion has no usable JSON answer.

    Not retried. ``raw_text`` keeps whatever the model sent back.
    """

    def __init__(self, message: str = "", raw_text: Optional[str] = None):
        self.raw_text = raw_text
        super().__init__(message or "Parse failed: model output has no valid answer JSON")


class StoppedError(AnswerEngineError):
    """Raised when generation stopped for a reason other than STOP."""

    def __init__(self, finish_reason: str, payload: Optional[Dict[str, Any]] = None):
        self.finish_reason = finish_reason
        self.payload = payload
        super().__init__(f"Stopped: {finish_reason}")


class RotationTimeoutError(AnswerEngineError):
    """Raised when the rotation agent never answered within its poll budget."""

    def __init__(self, stage: str, polls: int):
        self.stage = stage
        self.polls = polls
        super().__init__(f"Timeout waiting for {stage} after {polls} polls")


class RotationFailedError(AnswerEngineError):
    """Raised when credential rotation reported failure or produced no key."""

    pass


# =============================================================================
# CLASSIFICATION
# =============================================================================


class ClassifiedError:
    """A structured representation of a classified failure."""

    RATE_LIMIT = "rate_limit"
    SERVER_ERROR = "server_error"
    INVALID_CREDENTIAL = "invalid_credential"
    API_ERROR = "api_error"
    API_CONNECTION = "api_connection"

    RETRYABLE = frozenset({RATE_LIMIT, SERVER_ERROR, API_CONNECTION})

    def __init__(
        self,
        error_type: str,
        status_code: Optional[int] = None,
        message: str = "",
        retry_after: Optional[int] = None,
        payload: Optional[Dict[str, Any]] = None,
        original_exception: Optional[Exception] = None,
    ):
        self.error_type = error_type
        self.status_code = status_code
        self.message = message
        self.retry_after = retry_after
        self.payload = payload
        self.original_exception = original_exception

    @property
    def is_retryable(self) -> bool:
        return self.error_type in self.RETRYABLE

    def __str__(self):
        parts = [
            f"type={self.error_type}",
            f"status={self.status_code}",
            f"retry_after={self.retry_after}",
        ]
        if self.original_exception is not None:
            parts.append(f"original_exc={self.original_exception}")
        return f"ClassifiedError({', '.join(parts)})"


def get_retry_after(message: Optional[str]) -> Optional[int]:
    """
    Extract a server-suggested wait from a rate limit message.

    Args:
        message: Provider error message

    Returns:
        Seconds to wait, or None if the message carries no hint
    """
    if not message:
        return None
    match = _RETRY_AFTER_PATTERN.search(message)
    if match:
        return int(match.group(1))
    return None


def extract_error_message(payload: Optional[Dict[str, Any]]) -> str:
    """Return ``error.message`` from a provider error body, or ''."""
    if not isinstance(payload, dict):
        return ""
    error = payload.get("error")
    if isinstance(error, dict):
        return str(error.get("message") or "")
    return ""


def is_invalid_credential_message(message: str) -> bool:
    text = message.lower()
    return any(marker in text for marker in INVALID_CREDENTIAL_MARKERS)


def classify_response(
    status_code: int, payload: Optional[Dict[str, Any]]
) -> ClassifiedError:
    """
    Classify a non-2xx provider response.

    Error types and their handling:
    - rate_limit (429): wait once on the same model, then switch models
    - server_error (500/503): exponential backoff on the same model
    - invalid_credential (400 + key message): rotate the credential
    - api_error (anything else): surface to the caller

    Args:
        status_code: HTTP status of the response
        payload: Decoded JSON body (may be None for non-JSON bodies)

    Returns:
        ClassifiedError
    """
    message = extract_error_message(payload)

    if status_code == 429:
        return ClassifiedError(
            ClassifiedError.RATE_LIMIT,
            status_code=status_code,
            message=message,
            retry_after=get_retry_after(message),
            payload=payload,
        )

    if status_code in SERVER_ERROR_STATUSES:
        return ClassifiedError(
            ClassifiedError.SERVER_ERROR,
            status_code=status_code,
            message=message,
            payload=payload,
        )

    if status_code == 400 and is_invalid_credential_message(message):
        return ClassifiedError(
            ClassifiedError.INVALID_CREDENTIAL,
            status_code=status_code,
            message=message,
            payload=payload,
        )

    return ClassifiedError(
        ClassifiedError.API_ERROR,
        status_code=status_code,
        message=message,
        payload=payload,
    )


def classify_exception(e: Exception) -> ClassifiedError:
    """Classify a transport-level exception raised by httpx."""
    if isinstance(e, httpx.RequestError):
        return ClassifiedError(
            ClassifiedError.API_CONNECTION,
            message=str(e) or type(e).__name__,
            original_exception=e,
        )
    return ClassifiedError(
        ClassifiedError.API_ERROR, message=str(e), original_exception=e
    )


def to_api_error(classified: ClassifiedError) -> ApiError:
    """Terminal ApiError for a classification that ran out of retries."""
    if classified.error_type == ClassifiedError.API_CONNECTION:
        return ApiError(None, f"Network error: {classified.message}")
    message = classified.message or (
        f"API failed: {classified.status_code} - {classified.payload}"
    )
    return ApiError(classified.status_code, message, payload=classified.payload)


# =============================================================================
# UTILITIES
# =============================================================================


def mask_credential(credential: Optional[str]) -> str:
    """
    Mask a credential for safe display in logs and error messages.

    Shows the last 6 characters (e.g. "...xyz123").
    """
    if not credential:
        return "<none>"
    if len(credential) > 6:
        return f"...{credential[-6:]}"
    return "***"


def describe_error(error: Exception) -> str:
    """
    User-facing alert text for a terminal error.

    Args:
        error: Exception that ended a question's processing

    Returns:
        Alert message with the error details appended
    """
    if isinstance(error, MissingCredentialError):
        summary = (
            "Please configure your Gemini API key in the extension settings "
            "before using automation."
        )
    elif isinstance(error, RequestCancelledError):
        summary = "Request cancelled."
    elif isinstance(error, ApiError) and (
        error.status_code in (401, 403) or is_invalid_credential_message(error.message)
    ):
        summary = "Invalid API key. Please check your API key in settings."
    elif isinstance(error, ApiError) and (
        error.status_code == 429 or "quota" in error.message.lower()
    ):
        summary = "API rate limit exceeded. Please wait a moment and try again."
    elif isinstance(error, ApiError) and error.status_code is None:
        summary = "Network error. Please check your internet connection."
    elif isinstance(error, MalformedResponseError):
        summary = (
            "Failed to parse API response. The AI may have returned an invalid format."
        )
    elif isinstance(error, StoppedError):
        summary = "Content was blocked by safety filters. Try rephrasing the question."
    elif isinstance(error, (RotationTimeoutError, RotationFailedError)):
        summary = "Automatic API key rotation failed. Please set a new key in settings."
    else:
        summary = "Failed to get response from Gemini AI."

    return f"{summary}\n\nError details: {error}"
