# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Core package for the answer engine.

Provides shared infrastructure used by the client, provider and credential
packages:
- types: Question/answer records, status updates, EngineConfig
- errors: All custom exceptions and error classification
- config: ConfigLoader for centralized configuration
- constants: Default values and magic numbers
"""

from .types import (
    QuestionType,
    MatchingOptions,
    PreviousCorrection,
    QuestionRecord,
    SingleAnswer,
    MultipleAnswer,
    Answer,
    AnswerResult,
    StatusLevel,
    StatusUpdate,
    KeyValidation,
    EngineConfig,
)

from .errors import (
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
    ClassifiedError,
    classify_response,
    classify_exception,
    mask_credential,
    get_retry_after,
    describe_error,
)

from .config import ConfigLoader
from .waiting import Waiter, StatusCallback

__all__ = [
    # Types
    "QuestionType",
    "MatchingOptions",
    "PreviousCorrection",
    "QuestionRecord",
    "SingleAnswer",
    "MultipleAnswer",
    "Answer",
    "AnswerResult",
    "StatusLevel",
    "StatusUpdate",
    "KeyValidation",
    "EngineConfig",
    # Errors
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
    "ClassifiedError",
    "classify_response",
    "classify_exception",
    "mask_credential",
    "get_retry_after",
    "describe_error",
    # Config
    "ConfigLoader",
    # Waiting
    "Waiter",
    "StatusCallback",
]
