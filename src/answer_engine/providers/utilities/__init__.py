# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

# Utilities for the Gemini provider
from .gemini_shared_utils import (
    FINISH_REASON_STOP,
    FINISH_REASON_MAX_TOKENS,
    DEFAULT_SAFETY_SETTINGS,
    build_generate_payload,
    extract_candidate,
    describe_finish_reason,
)
from .gemini_file_logger import TransactionFileLogger

__all__ = [
    "FINISH_REASON_STOP",
    "FINISH_REASON_MAX_TOKENS",
    "DEFAULT_SAFETY_SETTINGS",
    "build_generate_payload",
    "extract_candidate",
    "describe_finish_reason",
    "TransactionFileLogger",
]
