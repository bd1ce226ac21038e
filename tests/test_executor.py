"""
State machine tests for answer_engine/client/executor.py, driven through
AnswerClient.ask_model with a scripted httpx.MockTransport.

Covers the rate limit grace wait and model switch, exhaustion-triggered
rotation, server and network backoff, truncation, non-STOP finish reasons,
invalid-key rotation and cancellation at suspension points.
"""

from __future__ import annotations

import asyncio

import httpx
import pytest

from answer_engine.core.types import MultipleAnswer, SingleAnswer, StatusLevel
from answer_engine.error_handler import (
    ApiError,
    MalformedResponseError,
    MissingCredentialError,
    RequestCancelledError,
    RotationFailedError,
    StoppedError,
)

from conftest import (
    PARIS_TEXT,
    TEST_MODELS,
    FakeCredentialSource,
    RecordingWaiter,
    ScriptedTransport,
    gemini_error,
    gemini_ok,
    make_client,
    reply,
    run,
)

RATE_LIMITED = gemini_error("Resource has been exhausted (e.g. check quota).", 429)


def ask(client, question, waiter, credential="key-original-123"):
    async def scenario():
        try:
            return await client.ask_model(question, credential=credential, waiter=waiter)
        finally:
            await client.http_client.aclose()

    return run(scenario())


# ---------------------------------------------------------------------------
# Happy path
# ---------------------------------------------------------------------------

class TestSuccess:

    def test_end_to_end_answer(self, config, capital_question, waiter):
        transport = ScriptedTransport([reply(200, gemini_ok(PARIS_TEXT))])
        client = make_client(config, transport)

        result = ask(client, capital_question, waiter)

        assert result.answer == SingleAnswer("Paris")
        assert result.explanation == "Paris is the capital of France."
        assert transport.models == ["gemini-2.5-flash"]
        assert transport.keys == ["key-original-123"]
        assert waiter.sleeps == []

    def test_request_body(self, config, select_question, waiter):
        transport = ScriptedTransport(
            [reply(200, gemini_ok('{"answer": ["2.", "5."]}'))]
        )
        client = make_client(config, transport)

        result = ask(client, select_question, waiter)

        assert result.answer == MultipleAnswer(("2.", "5."))
        body = transport.bodies()[0]
        assert body["generationConfig"] == {"temperature": 0.7, "maxOutputTokens": 8192}
        assert {s["threshold"] for s in body["safetySettings"]} == {"BLOCK_NONE"}
        assert len(body["safetySettings"]) == 4
        assert "must be an ARRAY" in body["contents"][0]["parts"][0]["text"]
        assert transport.requests[0].url.path.endswith(
            "/models/gemini-2.5-flash:generateContent"
        )

    def test_absent_finish_reason_counts_as_stop(self, config, capital_question, waiter):
        transport = ScriptedTransport(
            [reply(200, gemini_ok(PARIS_TEXT, finish_reason=None))]
        )
        result = ask(make_client(config, transport), capital_question, waiter)
        assert result.answer == SingleAnswer("Paris")

    def test_dict_question_accepted(self, config, waiter):
        transport = ScriptedTransport([reply(200, gemini_ok(PARIS_TEXT))])
        question = {
            "type": "multiple_choice",
            "question": "Capital of France?",
            "options": ["Paris", "Rome"],
        }
        result = ask(make_client(config, transport), question, waiter)
        assert result.to_dict()["answer"] == "Paris"


# ---------------------------------------------------------------------------
# Rate limits
# ---------------------------------------------------------------------------

class TestRateLimit:

    def test_grace_wait_then_same_model(self, config, capital_question, waiter):
        transport = ScriptedTransport(
            [reply(429, RATE_LIMITED), reply(200, gemini_ok(PARIS_TEXT))]
        )
        result = ask(make_client(config, transport), capital_question, waiter)

        assert result.answer == SingleAnswer("Paris")
        assert transport.models == ["gemini-2.5-flash", "gemini-2.5-flash"]
        assert waiter.sleeps == [2.0]
        assert waiter.messages[0] == "Rate limit on gemini-2.5-flash. Waiting 2s..."

    def test_server_hint_adds_one_second(self, config, capital_question, waiter):
        hinted = gemini_error("Quota exceeded. Please retry after 7 seconds.", 429)
        transport = ScriptedTransport(
            [reply(429, hinted), reply(200, gemini_ok(PARIS_TEXT))]
        )
        ask(make_client(config, transport), capital_question, waiter)
        assert waiter.sleeps == [8.0]

    def test_second_429_switches_model(self, config, capital_question, waiter):
        transport = ScriptedTransport(
            [
                reply(429, RATE_LIMITED),
                reply(429, RATE_LIMITED),
                reply(200, gemini_ok(PARIS_TEXT)),
            ]
        )
        client = make_client(config, transport)
        ask(client, capital_question, waiter)

        assert transport.models == [
            "gemini-2.5-flash",
            "gemini-2.5-flash",
            "gemini-2.5-flash-lite",
        ]
        # grace wait, then switch debounce
        assert waiter.sleeps == [2.0, 1.0]
        assert (
            "Rate limit persists. Switching to gemini-2.5-flash-lite (Attempt 1/12)..."
            in waiter.messages
        )
        # Next call starts on the model this one ended on
        assert client.current_model == "gemini-2.5-flash-lite"

    def test_exhaustion_rotates_exactly_once(self, config, capital_question, waiter, store):
        # 1 grace wait + 12 switches, each new model getting wait + switch:
        # 26 rate limits before the 13th same-model 429 triggers rotation
        script = [reply(429, RATE_LIMITED)] * 26 + [reply(200, gemini_ok(PARIS_TEXT))]
        transport = ScriptedTransport(script)
        source = FakeCredentialSource(["key-rotated-456"])
        client = make_client(config, transport, store=store, credential_source=source)

        result = ask(client, capital_question, waiter)

        assert result.answer == SingleAnswer("Paris")
        assert source.calls == 1
        assert transport.keys[:26] == ["key-original-123"] * 26
        assert transport.keys[26] == "key-rotated-456"
        # 12 switches wrap twice round six models back to the first
        assert transport.models[26] == TEST_MODELS[0]
        assert waiter.sleeps.count(2.0) == 13
        assert waiter.sleeps.count(1.0) == 12
        assert run(store.get()) == "key-rotated-456"
        assert "Key rotation successful. Resuming..." in waiter.messages

    def test_counters_reset_after_rotation(self, config, capital_question, waiter, store):
        # After rotation the first 429 must get a grace wait again, not a switch
        script = (
            [reply(429, RATE_LIMITED)] * 26
            + [reply(429, RATE_LIMITED), reply(200, gemini_ok(PARIS_TEXT))]
        )
        transport = ScriptedTransport(script)
        source = FakeCredentialSource(["key-rotated-456"])
        client = make_client(config, transport, store=store, credential_source=source)

        ask(client, capital_question, waiter)

        assert transport.models[26] == transport.models[27]
        assert waiter.sleeps[-1] == 2.0

    def test_exhaustion_without_rotator_surfaces_429(self, config, capital_question, waiter):
        config.models = ["gemini-2.5-flash"]
        config.exhaustion_multiplier = 1
        # wait, switch (wraps to same model), wait, then rotation needed
        transport = ScriptedTransport([reply(429, RATE_LIMITED)] * 4)
        with pytest.raises(ApiError) as exc_info:
            ask(make_client(config, transport), capital_question, waiter)
        assert exc_info.value.status_code == 429

    def test_rotation_bound(self, config, capital_question, waiter, store):
        config.models = ["gemini-2.5-flash"]
        config.exhaustion_multiplier = 1
        config.max_rotations = 1
        transport = ScriptedTransport([reply(429, RATE_LIMITED)] * 8)
        source = FakeCredentialSource(["key-rotated-456", "key-rotated-789"])
        client = make_client(config, transport, store=store, credential_source=source)

        with pytest.raises(RotationFailedError):
            ask(client, capital_question, waiter)
        assert source.calls == 1
        assert len(transport.requests) == 8


# ---------------------------------------------------------------------------
# Server / network / truncation backoff
# ---------------------------------------------------------------------------

class TestBackoff:

    def test_server_error_backoff(self, config, capital_question, waiter):
        transport = ScriptedTransport(
            [
                reply(503, gemini_error("The model is overloaded.", 503)),
                reply(500, gemini_error("Internal error.", 500)),
                reply(200, gemini_ok(PARIS_TEXT)),
            ]
        )
        ask(make_client(config, transport), capital_question, waiter)

        assert waiter.sleeps == [1.0, 2.0]
        assert transport.models == ["gemini-2.5-flash"] * 3
        assert waiter.messages[:2] == [
            "Server error (503). Retrying...",
            "Server error (500). Retrying...",
        ]

    def test_server_error_gives_up_after_max_retries(self, config, capital_question, waiter):
        config.max_retries = 2
        transport = ScriptedTransport(
            [reply(503, gemini_error("Overloaded.", 503))] * 3
        )
        with pytest.raises(ApiError) as exc_info:
            ask(make_client(config, transport), capital_question, waiter)

        assert exc_info.value.status_code == 503
        assert waiter.sleeps == [1.0, 2.0]
        assert waiter.updates[-1].level == StatusLevel.ERROR

    def test_network_error_retried(self, config, capital_question, waiter):
        transport = ScriptedTransport(
            [httpx.ConnectError("connection refused"), reply(200, gemini_ok(PARIS_TEXT))]
        )
        result = ask(make_client(config, transport), capital_question, waiter)

        assert result.answer == SingleAnswer("Paris")
        assert waiter.sleeps == [1.0]
        assert waiter.messages == ["Network error. Retrying..."]

    def test_network_error_exhausted(self, config, capital_question, waiter):
        config.max_retries = 1
        transport = ScriptedTransport([httpx.ConnectError("down")] * 2)

        with pytest.raises(ApiError) as exc_info:
            ask(make_client(config, transport), capital_question, waiter)

        assert exc_info.value.status_code is None
        assert str(exc_info.value).startswith("Network error:")
        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)

    def test_max_tokens_retried_then_stopped(self, config, capital_question, waiter):
        config.max_retries = 2
        truncated = reply(200, gemini_ok('{"answer": "Par', finish_reason="MAX_TOKENS"))
        transport = ScriptedTransport([truncated] * 3)

        with pytest.raises(StoppedError) as exc_info:
            ask(make_client(config, transport), capital_question, waiter)

        assert exc_info.value.finish_reason == "MAX_TOKENS"
        assert waiter.sleeps == [1.0, 2.0]
        assert waiter.messages[0] == "Response truncated (Max Tokens). Retrying..."

    def test_backoff_preserves_rate_limit_state(self, config, capital_question, waiter):
        # 429 grace wait, then a 503: the retry stays on the model and the next
        # 429 switches instead of granting a second grace wait
        transport = ScriptedTransport(
            [
                reply(429, RATE_LIMITED),
                reply(503, gemini_error("Overloaded.", 503)),
                reply(429, RATE_LIMITED),
                reply(200, gemini_ok(PARIS_TEXT)),
            ]
        )
        ask(make_client(config, transport), capital_question, waiter)

        assert transport.models == [
            "gemini-2.5-flash",
            "gemini-2.5-flash",
            "gemini-2.5-flash",
            "gemini-2.5-flash-lite",
        ]
        assert waiter.sleeps == [2.0, 1.0, 1.0]


# ---------------------------------------------------------------------------
# Terminal errors
# ---------------------------------------------------------------------------

class TestTerminal:

    def test_safety_stop(self, config, capital_question, waiter):
        transport = ScriptedTransport(
            [reply(200, gemini_ok("", finish_reason="SAFETY"))]
        )
        with pytest.raises(StoppedError, match="Stopped: SAFETY"):
            ask(make_client(config, transport), capital_question, waiter)
        assert len(transport.requests) == 1

    def test_other_4xx_surfaces(self, config, capital_question, waiter):
        transport = ScriptedTransport(
            [reply(404, gemini_error("models/foo is not found.", 404))]
        )
        with pytest.raises(ApiError) as exc_info:
            ask(make_client(config, transport), capital_question, waiter)

        error = exc_info.value
        assert error.status_code == 404
        assert error.payload["error"]["message"] == "models/foo is not found."
        assert str(error) == "API Error (404): models/foo is not found."

    def test_unparseable_answer_not_retried(self, config, capital_question, waiter):
        transport = ScriptedTransport([reply(200, gemini_ok("I refuse."))])
        with pytest.raises(MalformedResponseError):
            ask(make_client(config, transport), capital_question, waiter)
        assert len(transport.requests) == 1

    def test_no_candidates(self, config, capital_question, waiter):
        transport = ScriptedTransport([reply(200, {"candidates": []})])
        with pytest.raises(MalformedResponseError):
            ask(make_client(config, transport), capital_question, waiter)

    def test_missing_credential(self, config, capital_question, waiter, store):
        transport = ScriptedTransport([])
        client = make_client(config, transport, store=store)
        with pytest.raises(MissingCredentialError):
            ask(client, capital_question, waiter, credential=None)


# ---------------------------------------------------------------------------
# Invalid key rotation
# ---------------------------------------------------------------------------

class TestInvalidKey:

    def test_invalid_key_rotates(self, config, capital_question, waiter, store):
        transport = ScriptedTransport(
            [
                reply(400, gemini_error("API key not valid. Please pass a valid API key.")),
                reply(200, gemini_ok(PARIS_TEXT)),
            ]
        )
        source = FakeCredentialSource(["key-rotated-456"])
        client = make_client(config, transport, store=store, credential_source=source)

        result = ask(client, capital_question, waiter)

        assert result.answer == SingleAnswer("Paris")
        assert transport.keys == ["key-original-123", "key-rotated-456"]
        assert "Invalid API Key detected. Rotating key..." in waiter.messages
        assert waiter.sleeps == []

    def test_plain_400_is_terminal(self, config, capital_question, waiter, store):
        transport = ScriptedTransport(
            [reply(400, gemini_error("Invalid JSON payload received."))]
        )
        source = FakeCredentialSource(["unused"])
        client = make_client(config, transport, store=store, credential_source=source)

        with pytest.raises(ApiError) as exc_info:
            ask(client, capital_question, waiter)
        assert exc_info.value.status_code == 400
        assert source.calls == 0


# ---------------------------------------------------------------------------
# Cancellation
# ---------------------------------------------------------------------------

class TestCancellation:

    def test_callback_false_during_rate_limit_wait(self, config, capital_question):
        transport = ScriptedTransport([reply(429, RATE_LIMITED)])
        waiter = RecordingWaiter(on_status=lambda update: False)

        with pytest.raises(RequestCancelledError, match="rate limit wait"):
            ask(make_client(config, transport), capital_question, waiter)

        assert len(transport.requests) == 1
        assert waiter.sleeps == []

    def test_cancel_event_during_wait_stops_requests(self, config, capital_question):
        transport = ScriptedTransport(
            [reply(429, RATE_LIMITED), reply(200, gemini_ok(PARIS_TEXT))]
        )
        client = make_client(config, transport)

        async def scenario():
            event = asyncio.Event()
            waiter = RecordingWaiter(cancel_event=event, on_sleep=lambda s: event.set())
            try:
                await client.ask_model(
                    capital_question, credential="key-original-123", waiter=waiter
                )
            finally:
                await client.http_client.aclose()

        with pytest.raises(RequestCancelledError):
            run(scenario())
        assert len(transport.requests) == 1

    def test_async_status_callback(self, config, capital_question):
        transport = ScriptedTransport(
            [reply(503, gemini_error("Overloaded.", 503))]
        )

        async def decline(update):
            return False

        waiter = RecordingWaiter(on_status=decline)
        with pytest.raises(RequestCancelledError):
            ask(make_client(config, transport), capital_question, waiter)
        assert len(transport.requests) == 1
