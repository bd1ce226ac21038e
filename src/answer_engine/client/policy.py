# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Rate limit escalation policy.

A model that hits a 429 first gets one grace wait. A second 429 on the same
model moves to the next model. Once the switches reach
``exhaustion_multiplier * model_count`` the credential itself is rotated.
"""

from ..core.constants import DEFAULT_EXHAUSTION_MULTIPLIER
from .types import RateLimitAction


class RotationPolicy:
    """Pure decision function over the retry session's rate limit counters."""

    def __init__(self, exhaustion_multiplier: int = DEFAULT_EXHAUSTION_MULTIPLIER):
        if exhaustion_multiplier < 1:
            raise ValueError("exhaustion_multiplier must be >= 1")
        self.exhaustion_multiplier = exhaustion_multiplier

    def switch_limit(self, model_count: int) -> int:
        return self.exhaustion_multiplier * model_count

    def decide(
        self, is_same_model_retry: bool, switch_count: int, model_count: int
    ) -> RateLimitAction:
        """
        Decide how to react to a rate limit.

        Args:
            is_same_model_retry: The current model already had its grace wait
            switch_count: Model switches made with the current credential
            model_count: Roster length

        Returns:
            RateLimitAction
        """
        if not is_same_model_retry:
            return RateLimitAction.WAIT_SAME_MODEL
        if switch_count >= self.switch_limit(model_count):
            return RateLimitAction.ROTATE_CREDENTIAL
        return RateLimitAction.SWITCH_MODEL
