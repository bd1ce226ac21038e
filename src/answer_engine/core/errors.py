# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Error handling for the answer engine.

This module re-exports all exception classes and error handling utilities
from the main error_handler module so the rest of the package has a single,
stable import path.
"""

from ..error_handler import (
    # Exception classes
    AnswerEngineError,
    MissingCredentialError,
    RequestCancelledError,
    RateLimitedError,
    ServerError,
    ApiError,
    MalformedResponseError,
    StoppedError,
    RotationTimeoutError,
    RotationFailedError,
    # Error classification
    ClassifiedError,
    classify_response,
    classify_exception,
    to_api_error,
    # Utilities
    mask_credential,
    get_retry_after,
    extract_error_message,
    is_invalid_credential_message,
    describe_error,
    # Constants
    INVALID_CREDENTIAL_MARKERS,
    SERVER_ERROR_STATUSES,
)

__all__ = [
    # Exception classes
    "AnswerEngineError",
    "MissingCredentialError",
    "RequestCancelledError",
    "RateLimitedError",
    "ServerError",
    "ApiError",
    "MalformedResponseError",
    "StoppedError",
    "RotationTimeoutError",
    "RotationFailedError",
    # Error classification
    "ClassifiedError",
    "classify_response",
    "classify_exception",
    "to_api_error",
    # Utilities
    "mask_credential",
    "get_retry_after",
    "extract_error_message",
    "is_invalid_credential_message",
    "describe_error",
    # Constants
    "INVALID_CREDENTIAL_MARKERS",
    "SERVER_ERROR_STATUSES",
]
