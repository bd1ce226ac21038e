# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

import logging

from .client import AnswerClient, ask_model
from .core.types import (
    QuestionType,
    QuestionRecord,
    MatchingOptions,
    PreviousCorrection,
    AnswerResult,
    SingleAnswer,
    MultipleAnswer,
    StatusLevel,
    StatusUpdate,
)
from .core.config import ConfigLoader
from .core.waiting import Waiter
from .credentials import (
    CredentialStore,
    ManualCredentialSource,
    ConsoleAutomationSource,
    AutomationSurface,
)
from .error_handler import describe_error

# Library code logs; the embedding application decides where it goes
logging.getLogger("answer_engine").addHandler(logging.NullHandler())

__all__ = [
    "AnswerClient",
    "ask_model",
    "QuestionType",
    "QuestionRecord",
    "MatchingOptions",
    "PreviousCorrection",
    "AnswerResult",
    "SingleAnswer",
    "MultipleAnswer",
    "StatusLevel",
    "StatusUpdate",
    "ConfigLoader",
    "Waiter",
    "CredentialStore",
    "ManualCredentialSource",
    "ConsoleAutomationSource",
    "AutomationSurface",
    "describe_error",
]
