# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Client-specific type definitions.

Types that are only used within the client package.
Shared types are in core/types.py.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class RateLimitAction(str, Enum):
    """What to do about a 429, as decided by RotationPolicy."""

    WAIT_SAME_MODEL = "wait_same_model"
    SWITCH_MODEL = "switch_model"
    ROTATE_CREDENTIAL = "rotate_credential"


class AttemptOutcome(str, Enum):
    """Classification of one request attempt."""

    SUCCESS = "success"
    RATE_LIMITED = "rate_limited"
    SERVER_ERROR = "server_error"
    TRUNCATED = "truncated"
    INVALID_CREDENTIAL = "invalid_credential"
    STOPPED = "stopped"
    API_ERROR = "api_error"


@dataclass
class RetrySession:
    """
    State tracking for one top-level ask_model call.

    Used by RequestExecutor in place of recursion arguments.
    """

    current_credential: str
    current_model_index: int = 0
    retry_count: int = 0
    is_same_model_retry: bool = False
    switch_count: int = 0

    # Bookkeeping
    attempts: int = 0
    rotations: int = 0
    last_error: Optional[Exception] = None

    def reset_counters(self) -> None:
        """Start over after a credential rotation."""
        self.retry_count = 0
        self.switch_count = 0
        self.is_same_model_retry = False

    def __str__(self) -> str:
        return (
            f"attempt={self.attempts} retry={self.retry_count} "
            f"same_model={self.is_same_model_retry} switches={self.switch_count} "
            f"model_index={self.current_model_index} rotations={self.rotations}"
        )
