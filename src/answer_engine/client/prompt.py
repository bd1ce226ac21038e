# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Question prompt formatting.

The wording below is what the answer parser and the answer injector were tuned
against; change it and answers stop matching option text.
"""

import json
from typing import Iterable, cast

from ..core.types import MatchingOptions, QuestionRecord, QuestionType

MATCHING_INSTRUCTION = (
    "Please match each prompt with the correct choice. Format your answer as an "
    "array where each element is 'Prompt -> Choice'."
)

FILL_IN_THE_BLANK_INSTRUCTION = (
    "This is a fill in the blank question. If there are multiple blanks, provide "
    "answers as an array in order of appearance. For a single blank, you can "
    "provide a string."
)

MULTIPLE_SELECT_INSTRUCTION = (
    "IMPORTANT: This is a multiple-select question. Your answer must be an ARRAY "
    "containing ALL correct options. Each answer must EXACTLY match one of the "
    "above options. Do not include numbers. If there are periods, include them. "
    'Format: ["option1", "option2", ...]'
)

SINGLE_SELECT_INSTRUCTION = (
    "IMPORTANT: Your answer must EXACTLY match one of the above options. Do not "
    "include numbers in your answer. If there are periods, include them."
)

RESPONSE_FORMAT_INSTRUCTION = (
    'Please provide your answer in raw JSON format with keys "answer" and '
    '"explanation". Do not use Markdown formatting (no backticks). Explanations '
    "should be no more than one sentence. DO NOT acknowledge the correction in "
    "your response, only answer the new question."
)


def _numbered(items: Iterable[str]) -> str:
    return "\n".join(f"{i}. {item}" for i, item in enumerate(items, start=1))


def _quote_answer(answer) -> str:
    if isinstance(answer, tuple):
        answer = list(answer)
    return json.dumps(answer, ensure_ascii=False, separators=(",", ":"))


def format_question_prompt(record: QuestionRecord) -> str:
    """
    Render a question record as the model prompt.

    Pure and deterministic: the same record always yields the same text.

    Args:
        record: Scraped question

    Returns:
        Prompt text
    """
    text = f"Type: {record.question_type.value}\nQuestion: {record.question_text}"

    correction = record.previous_correction
    if correction is not None:
        text = (
            f'CORRECTION FROM PREVIOUS ANSWER: For the question "{correction.question}", '
            f"your answer was incorrect. The correct answer was: "
            f"{_quote_answer(correction.correct_answer)}\n\n"
            f"Now answer this new question:\n\n" + text
        )

    qtype = record.question_type
    if qtype == QuestionType.MATCHING:
        options = cast(MatchingOptions, record.options)
        text += "\nPrompts:\n" + _numbered(options.prompts)
        text += "\nChoices:\n" + _numbered(options.choices)
        text += "\n\n" + MATCHING_INSTRUCTION
    elif qtype == QuestionType.FILL_IN_THE_BLANK:
        text += "\n\n" + FILL_IN_THE_BLANK_INSTRUCTION
    elif qtype == QuestionType.MULTIPLE_SELECT:
        text += "\nOptions:\n" + _numbered(record.options)
        text += "\n\n" + MULTIPLE_SELECT_INSTRUCTION
    elif record.options:
        text += "\nOptions:\n" + _numbered(record.options)
        text += "\n\n" + SINGLE_SELECT_INSTRUCTION

    text += "\n\n" + RESPONSE_FORMAT_INSTRUCTION
    return text
