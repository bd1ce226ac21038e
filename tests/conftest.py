"""
Shared pytest fixtures for the answer engine tests.

HTTP is faked with httpx.MockTransport driven by a scripted list of replies,
and every wait goes through RecordingWaiter, which records durations instead
of sleeping. Coroutines are driven with asyncio.run inside plain tests.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any, Callable, Dict, List, Optional, Union

import httpx
import pytest

from answer_engine.client.answer_client import AnswerClient
from answer_engine.core.types import (
    EngineConfig,
    MatchingOptions,
    PreviousCorrection,
    QuestionRecord,
    QuestionType,
    StatusUpdate,
)
from answer_engine.core.waiting import Waiter
from answer_engine.credentials.rotation import CredentialSource
from answer_engine.credentials.store import CredentialStore


# ---------------------------------------------------------------------------
# Response builders
# ---------------------------------------------------------------------------

def gemini_ok(text: str, finish_reason: Optional[str] = "STOP") -> Dict[str, Any]:
    candidate: Dict[str, Any] = {"content": {"parts": [{"text": text}], "role": "model"}}
    if finish_reason is not None:
        candidate["finishReason"] = finish_reason
    return {"candidates": [candidate]}


def gemini_error(message: str, code: int = 400) -> Dict[str, Any]:
    return {"error": {"code": code, "message": message, "status": "ERROR"}}


PARIS_TEXT = '{"answer": "Paris", "explanation": "Paris is the capital of France."}'

ReplySpec = Union[httpx.Response, Exception, Callable[[httpx.Request], httpx.Response]]


def reply(status: int, body: Optional[Dict[str, Any]] = None) -> httpx.Response:
    return httpx.Response(status, json=body if body is not None else {})


class ScriptedTransport:
    """
    Serves a fixed sequence of replies and records every request.

    An Exception in the script is raised from the transport (httpx wraps
    nothing here, so raise httpx.RequestError subclasses for network faults).
    """

    def __init__(self, script: List[ReplySpec]):
        self.script = list(script)
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if not self.script:
            raise AssertionError(f"Unexpected request #{len(self.requests)}: {request.url}")
        item = self.script.pop(0)
        if isinstance(item, Exception):
            raise item
        if callable(item) and not isinstance(item, httpx.Response):
            return item(request)
        return item

    @property
    def models(self) -> List[str]:
        """Model named in each generateContent request, in order."""
        return [
            r.url.path.rsplit("/", 1)[-1].split(":", 1)[0] for r in self.requests
        ]

    @property
    def keys(self) -> List[str]:
        return [r.url.params.get("key") for r in self.requests]

    def bodies(self) -> List[Dict[str, Any]]:
        return [json.loads(r.content) for r in self.requests]


# ---------------------------------------------------------------------------
# Waiting / status
# ---------------------------------------------------------------------------

class RecordingWaiter(Waiter):
    """Waiter that records sleeps and status updates instead of sleeping."""

    def __init__(self, on_status=None, cancel_event=None, on_sleep=None):
        self.sleeps: List[float] = []
        self.updates: List[StatusUpdate] = []
        self._user_status = on_status
        self._on_sleep = on_sleep
        super().__init__(on_status=self._record, cancel_event=cancel_event)

    def _record(self, update: StatusUpdate):
        self.updates.append(update)
        if self._user_status is not None:
            return self._user_status(update)
        return None

    async def _sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        if self._on_sleep is not None:
            self._on_sleep(seconds)

    @property
    def messages(self) -> List[str]:
        return [u.message for u in self.updates]


@pytest.fixture
def waiter() -> RecordingWaiter:
    return RecordingWaiter()


# ---------------------------------------------------------------------------
# Credentials
# ---------------------------------------------------------------------------

class FakeCredentialSource(CredentialSource):
    """Hands out scripted replacement keys and counts rotations."""

    def __init__(self, keys: List[str]):
        self.keys = list(keys)
        self.calls = 0

    async def request_rotated_credential(self, waiter: Waiter) -> str:
        self.calls += 1
        return self.keys.pop(0)


@pytest.fixture
def store(tmp_path) -> CredentialStore:
    return CredentialStore(tmp_path / "credentials.json")


# ---------------------------------------------------------------------------
# Config / client
# ---------------------------------------------------------------------------

TEST_MODELS = [
    "gemini-2.5-flash",
    "gemini-2.5-flash-lite",
    "gemini-2.0-flash",
    "gemini-2.0-flash-lite",
    "gemini-3-flash-preview",
    "gemini-2.5-pro",
]


@pytest.fixture
def config(tmp_path) -> EngineConfig:
    return EngineConfig(
        models=list(TEST_MODELS),
        credential_file=str(tmp_path / "credentials.json"),
        logs_dir=str(tmp_path / "logs"),
    )


def make_client(
    config: EngineConfig,
    transport: ScriptedTransport,
    store: Optional[CredentialStore] = None,
    credential_source: Optional[CredentialSource] = None,
) -> AnswerClient:
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(transport))
    return AnswerClient(
        config=config,
        store=store,
        credential_source=credential_source,
        http_client=http_client,
    )


def run(coro):
    return asyncio.run(coro)


# ---------------------------------------------------------------------------
# Questions
# ---------------------------------------------------------------------------

@pytest.fixture
def capital_question() -> QuestionRecord:
    return QuestionRecord(
        question_type=QuestionType.MULTIPLE_CHOICE,
        question_text="What is the capital of France?",
        options=("London", "Paris", "Berlin"),
    )


@pytest.fixture
def select_question() -> QuestionRecord:
    return QuestionRecord(
        question_type=QuestionType.MULTIPLE_SELECT,
        question_text="Which of these are prime numbers?",
        options=("2.", "4.", "5.", "9."),
    )


@pytest.fixture
def matching_question() -> QuestionRecord:
    return QuestionRecord(
        question_type=QuestionType.MATCHING,
        question_text="Match each organelle to its function.",
        options=MatchingOptions(
            prompts=("Mitochondria", "Ribosome"),
            choices=("Protein synthesis", "ATP production"),
        ),
    )


@pytest.fixture
def corrected_question() -> QuestionRecord:
    return QuestionRecord(
        question_type=QuestionType.TRUE_FALSE,
        question_text="Water boils at 100C at sea level.",
        options=("True", "False"),
        previous_correction=PreviousCorrection(
            question="Which gases are noble?", correct_answer=("Neon", "Argon")
        ),
    )
