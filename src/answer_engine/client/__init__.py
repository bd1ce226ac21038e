# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Client package for resilient quiz answering.

Public API:
    AnswerClient: Main client class for answering questions
    ask_model: One-shot helper around AnswerClient

Components (for advanced usage):
    RequestExecutor: Retry / model failover / rotation state machine
    RotationPolicy: Rate limit escalation decisions
    RatePacer: Minimum spacing between requests
    ModelRoster: Ordered model list with wrap-around
    format_question_prompt, parse_answer: Prompt in, answer out
"""

from .answer_client import AnswerClient, ask_model

# Also expose components for advanced usage
from .executor import RequestExecutor
from .policy import RotationPolicy
from .pacer import RatePacer
from .models import ModelRoster
from .prompt import format_question_prompt
from .parser import parse_answer
from .types import RetrySession, RateLimitAction, AttemptOutcome

__all__ = [
    # Main public API
    "AnswerClient",
    "ask_model",
    # Components
    "RequestExecutor",
    "RotationPolicy",
    "RatePacer",
    "ModelRoster",
    "format_question_prompt",
    "parse_answer",
    # Types
    "RetrySession",
    "RateLimitAction",
    "AttemptOutcome",
]
