# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

# src/answer_engine/providers/utilities/gemini_shared_utils.py
"""
Shared utility functions and constants for the Gemini provider.

Request body construction and candidate extraction live here so the provider
and the retry executor agree on one reading of a generateContent response.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Tuple

lib_logger = logging.getLogger("answer_engine")


# =============================================================================
# FINISH REASONS
# =============================================================================

FINISH_REASON_STOP = "STOP"
FINISH_REASON_MAX_TOKENS = "MAX_TOKENS"

# Gemini finish reasons we know how to name in logs
KNOWN_FINISH_REASONS = frozenset(
    {
        "STOP",
        "MAX_TOKENS",
        "SAFETY",
        "RECITATION",
        "BLOCKLIST",
        "PROHIBITED_CONTENT",
        "SPII",
        "OTHER",
    }
)

# Quiz material trips the default filters (history, biology, chemistry)
DEFAULT_SAFETY_SETTINGS: List[Dict[str, str]] = [
    {"category": "HARM_CATEGORY_HARASSMENT", "threshold": "BLOCK_NONE"},
    {"category": "HARM_CATEGORY_HATE_SPEECH", "threshold": "BLOCK_NONE"},
    {"category": "HARM_CATEGORY_SEXUALLY_EXPLICIT", "threshold": "BLOCK_NONE"},
    {"category": "HARM_CATEGORY_DANGEROUS_CONTENT", "threshold": "BLOCK_NONE"},
]


# =============================================================================
# PAYLOAD HELPERS
# =============================================================================


def build_generate_payload(
    prompt: str, temperature: float, max_output_tokens: int
) -> Dict[str, Any]:
    """
    Build a generateContent request body for a single-turn text prompt.

    Args:
        prompt: Formatted prompt text
        temperature: Sampling temperature
        max_output_tokens: Output token cap

    Returns:
        JSON-serializable request body
    """
    return {
        "contents": [{"parts": [{"text": prompt}]}],
        "generationConfig": {
            "temperature": temperature,
            "maxOutputTokens": max_output_tokens,
        },
        "safetySettings": [dict(setting) for setting in DEFAULT_SAFETY_SETTINGS],
    }


def extract_candidate(
    response_data: Dict[str, Any],
) -> Tuple[Optional[str], Optional[str]]:
    """
    Pull the first candidate's text and finish reason.

    Text parts are concatenated; a candidate without parts yields None text.

    Returns:
        (text, finish_reason). Either may be None.
    """
    candidates = response_data.get("candidates") or []
    if not candidates or not isinstance(candidates[0], dict):
        return None, None

    candidate = candidates[0]
    finish_reason = candidate.get("finishReason")
    parts = (candidate.get("content") or {}).get("parts") or []

    texts = [
        part["text"]
        for part in parts
        if isinstance(part, dict) and isinstance(part.get("text"), str)
    ]
    if not texts:
        return None, finish_reason
    return "".join(texts), finish_reason


def describe_finish_reason(finish_reason: Optional[str]) -> str:
    if finish_reason is None:
        return "<none>"
    if finish_reason not in KNOWN_FINISH_REASONS:
        lib_logger.debug(f"Unrecognized finishReason from Gemini: {finish_reason}")
    return finish_reason
