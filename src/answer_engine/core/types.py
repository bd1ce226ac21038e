# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Shared type definitions for the answer engine.

Question records come in from the page scraper, answer results go back out to
the answer injector. Both sides speak a small JSON dialect, so every type here
has a from_dict/to_dict pair for that wire shape.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union

from .constants import (
    DEFAULT_API_BASE,
    DEFAULT_CREDENTIAL_FILE,
    DEFAULT_EXHAUSTION_MULTIPLIER,
    DEFAULT_KEYS_URL,
    DEFAULT_MAX_OUTPUT_TOKENS,
    DEFAULT_MAX_RETRIES,
    DEFAULT_MAX_ROTATIONS,
    DEFAULT_MIN_REQUEST_INTERVAL,
    DEFAULT_MODELS,
    DEFAULT_MODEL_SWITCH_DELAY,
    DEFAULT_PROJECTS_URL,
    DEFAULT_RATE_LIMIT_WAIT,
    DEFAULT_REQUEST_TIMEOUT,
    DEFAULT_RETRY_DELAY,
    DEFAULT_ROTATION_MAX_POLLS,
    DEFAULT_ROTATION_POLL_INTERVAL,
    DEFAULT_TEMPERATURE,
)


# =============================================================================
# QUESTIONS
# =============================================================================


class QuestionType(str, Enum):
    """Question kinds the scraper can produce."""

    MULTIPLE_CHOICE = "multiple_choice"
    TRUE_FALSE = "true_false"
    MULTIPLE_SELECT = "multiple_select"
    FILL_IN_THE_BLANK = "fill_in_the_blank"
    MATCHING = "matching"


@dataclass(frozen=True)
class MatchingOptions:
    """Prompt and choice columns of a matching question."""

    prompts: Tuple[str, ...]
    choices: Tuple[str, ...]

    def __post_init__(self):
        object.__setattr__(self, "prompts", tuple(self.prompts))
        object.__setattr__(self, "choices", tuple(self.choices))


OptionSet = Union[Tuple[str, ...], MatchingOptions, None]


@dataclass(frozen=True)
class PreviousCorrection:
    """The question answered wrong last time, and what the right answer was."""

    question: str
    correct_answer: Union[str, Tuple[str, ...]]

    def __post_init__(self):
        if isinstance(self.correct_answer, (list, tuple)):
            object.__setattr__(self, "correct_answer", tuple(self.correct_answer))

    def wire_answer(self) -> Union[str, List[str]]:
        """Correct answer in the JSON shape it is quoted with."""
        if isinstance(self.correct_answer, tuple):
            return list(self.correct_answer)
        return self.correct_answer


@dataclass(frozen=True)
class QuestionRecord:
    """
    One scraped question.

    Immutable once constructed. ``options`` is a tuple of option strings for
    single/multi-select questions, MatchingOptions for matching questions and
    None for fill-in-the-blank.
    """

    question_type: QuestionType
    question_text: str
    options: OptionSet = None
    previous_correction: Optional[PreviousCorrection] = None

    def __post_init__(self):
        object.__setattr__(self, "question_type", QuestionType(self.question_type))

        if self.question_type == QuestionType.MATCHING:
            if not isinstance(self.options, MatchingOptions):
                raise ValueError(
                    "Matching questions need MatchingOptions(prompts, choices)"
                )
        elif self.question_type == QuestionType.FILL_IN_THE_BLANK:
            object.__setattr__(self, "options", None)
        elif self.options is None:
            object.__setattr__(self, "options", ())
        elif isinstance(self.options, MatchingOptions):
            raise ValueError(
                f"{self.question_type.value} questions take a list of options"
            )
        else:
            object.__setattr__(self, "options", tuple(self.options))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "QuestionRecord":
        """
        Build a record from the scraper's wire shape.

        Args:
            data: ``{"type", "question", "options", "previousCorrection"}``

        Returns:
            QuestionRecord

        Raises:
            ValueError: Unknown question type or options that don't fit it.
        """
        question_type = QuestionType(data["type"])
        raw_options = data.get("options")

        options: OptionSet
        if question_type == QuestionType.MATCHING:
            raw_options = raw_options or {}
            options = MatchingOptions(
                prompts=raw_options.get("prompts", []),
                choices=raw_options.get("choices", []),
            )
        elif question_type == QuestionType.FILL_IN_THE_BLANK:
            options = None
        else:
            options = tuple(raw_options or ())

        correction = None
        raw_correction = data.get("previousCorrection")
        # Both halves are needed to say anything useful
        if (
            raw_correction
            and raw_correction.get("question")
            and raw_correction.get("correctAnswer")
        ):
            correction = PreviousCorrection(
                question=raw_correction["question"],
                correct_answer=raw_correction["correctAnswer"],
            )

        return cls(
            question_type=question_type,
            question_text=data.get("question", ""),
            options=options,
            previous_correction=correction,
        )


# =============================================================================
# ANSWERS
# =============================================================================


@dataclass(frozen=True)
class SingleAnswer:
    """Answer for single-select and single-blank questions."""

    value: str

    def to_wire(self) -> str:
        return self.value


@dataclass(frozen=True)
class MultipleAnswer:
    """Answer for multi-select, multi-blank and matching questions."""

    values: Tuple[str, ...]

    def __post_init__(self):
        object.__setattr__(self, "values", tuple(self.values))

    def to_wire(self) -> List[str]:
        return list(self.values)


Answer = Union[SingleAnswer, MultipleAnswer]


@dataclass(frozen=True)
class AnswerResult:
    """Structured answer handed back to the answer injector."""

    answer: Answer
    explanation: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"answer": self.answer.to_wire(), "explanation": self.explanation}


# =============================================================================
# STATUS REPORTING
# =============================================================================


class StatusLevel(str, Enum):
    """Severity of a status update shown to the user."""

    INFO = "info"
    ACTION = "action"
    WARNING = "warning"
    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True)
class StatusUpdate:
    """Progress message passed to the caller's status callback."""

    message: str
    level: StatusLevel = StatusLevel.INFO

    def to_dict(self) -> Dict[str, str]:
        return {"type": "logToConsole", "message": self.message, "level": self.level.value}


@dataclass(frozen=True)
class KeyValidation:
    """Outcome of a credential validation request."""

    valid: bool
    error: Optional[str] = None


# =============================================================================
# CONFIGURATION
# =============================================================================


@dataclass
class EngineConfig:
    """
    Complete engine configuration.

    Built by ConfigLoader from system defaults plus environment overrides.
    """

    models: List[str] = field(default_factory=lambda: list(DEFAULT_MODELS))
    ignore_models: List[str] = field(default_factory=list)
    api_base: str = DEFAULT_API_BASE
    temperature: float = DEFAULT_TEMPERATURE
    max_output_tokens: int = DEFAULT_MAX_OUTPUT_TOKENS
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT

    max_retries: int = DEFAULT_MAX_RETRIES
    retry_delay: float = DEFAULT_RETRY_DELAY
    rate_limit_wait: float = DEFAULT_RATE_LIMIT_WAIT
    model_switch_delay: float = DEFAULT_MODEL_SWITCH_DELAY
    min_request_interval: float = DEFAULT_MIN_REQUEST_INTERVAL
    exhaustion_multiplier: int = DEFAULT_EXHAUSTION_MULTIPLIER
    max_rotations: int = DEFAULT_MAX_ROTATIONS

    projects_url: str = DEFAULT_PROJECTS_URL
    keys_url: str = DEFAULT_KEYS_URL
    rotation_poll_interval: float = DEFAULT_ROTATION_POLL_INTERVAL
    rotation_max_polls: int = DEFAULT_ROTATION_MAX_POLLS

    credential_file: str = DEFAULT_CREDENTIAL_FILE
    transaction_logs: bool = False
    logs_dir: Optional[str] = None

