# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Model output parsing.

Models ignore "no Markdown" often enough that fenced output and trailing
prose have to be tolerated.
"""

import json
import logging
import re
from typing import Any, Optional

from ..core.types import AnswerResult, MultipleAnswer, SingleAnswer
from ..error_handler import MalformedResponseError

lib_logger = logging.getLogger("answer_engine")

_FENCE_OPEN = re.compile(r"```json\s*", re.IGNORECASE)
_FENCE_CLOSE = re.compile(r"```\s*")
# Greedy: first "{" to last "}"
_OBJECT_PATTERN = re.compile(r"\{[\s\S]*\}")


def strip_code_fences(text: str) -> str:
    text = _FENCE_OPEN.sub("", text)
    text = _FENCE_CLOSE.sub("", text)
    return text.strip()


def _load_object(text: str) -> Optional[Any]:
    try:
        return json.loads(text)
    except ValueError:
        pass

    match = _OBJECT_PATTERN.search(text)
    if not match:
        return None
    try:
        return json.loads(match.group(0))
    except ValueError:
        return None


def parse_answer(text: str) -> AnswerResult:
    """
    Extract the answer object from raw model output.

    Args:
        text: Completion text

    Returns:
        AnswerResult with a SingleAnswer (string answer) or MultipleAnswer
        (array answer, items stringified)

    Raises:
        MalformedResponseError: No JSON object, or no usable ``answer`` key.
    """
    cleaned = strip_code_fences(text or "")
    data = _load_object(cleaned)

    if not isinstance(data, dict):
        lib_logger.error(f"Failed to parse model output as JSON: {cleaned[:200]!r}")
        raise MalformedResponseError(
            "Parse failed: model output has no valid answer JSON", raw_text=text
        )

    raw_answer = data.get("answer")
    if raw_answer is None or raw_answer == "" or raw_answer == []:
        raise MalformedResponseError(
            "Parse failed: response JSON has no answer", raw_text=text
        )

    if isinstance(raw_answer, list):
        answer = MultipleAnswer(tuple(_stringify(item) for item in raw_answer))
    else:
        answer = SingleAnswer(_stringify(raw_answer))

    explanation = data.get("explanation")
    return AnswerResult(
        answer=answer, explanation=str(explanation) if explanation is not None else ""
    )


def _stringify(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, bool) or value is None:
        return json.dumps(value)
    if isinstance(value, (int, float)):
        return str(value)
    return json.dumps(value, ensure_ascii=False)
