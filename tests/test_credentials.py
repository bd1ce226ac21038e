"""
Tests for credential persistence, the rotation lock and the console
automation orchestrator.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any, Dict, List, Optional

import pytest

from answer_engine.credentials.automation import (
    AutomationSurface,
    ConsoleAutomationSource,
)
from answer_engine.credentials.rotation import (
    CredentialRotator,
    ManualCredentialSource,
)
from answer_engine.credentials.store import CredentialStore
from answer_engine.error_handler import (
    RequestCancelledError,
    RotationFailedError,
    RotationTimeoutError,
)

from conftest import FakeCredentialSource, RecordingWaiter, run


# ---------------------------------------------------------------------------
# CredentialStore
# ---------------------------------------------------------------------------

class TestCredentialStore:

    def test_missing_file_reads_none(self, store):
        assert run(store.get()) is None

    def test_set_then_get(self, store):
        assert run(store.set("  AIzaSy-new-key  ")) is True
        assert run(store.get()) == "AIzaSy-new-key"

    def test_file_shape_and_other_keys_preserved(self, tmp_path):
        path = tmp_path / "creds.json"
        path.write_text(json.dumps({"theme": "dark", "geminiApiKey": "old"}))
        store = CredentialStore(path)

        run(store.set("new"))

        assert json.loads(path.read_text()) == {"theme": "dark", "geminiApiKey": "new"}
        assert not (tmp_path / "creds.json.tmp").exists()

    def test_corrupt_file_reads_none(self, tmp_path):
        path = tmp_path / "creds.json"
        path.write_text("{not json")
        assert run(CredentialStore(path).get()) is None

    def test_clear(self, store):
        run(store.set("key"))
        run(store.clear())
        assert run(store.get()) is None


# ---------------------------------------------------------------------------
# CredentialRotator
# ---------------------------------------------------------------------------

class TestCredentialRotator:

    def test_rotation_persists_new_key(self, store, waiter):
        run(store.set("stale-key"))
        rotator = CredentialRotator(FakeCredentialSource(["fresh-key"]), store)

        assert run(rotator.rotate("stale-key", waiter)) == "fresh-key"
        assert run(store.get()) == "fresh-key"

    def test_already_rotated_key_is_reused(self, store, waiter):
        run(store.set("fresh-key"))
        source = FakeCredentialSource(["unused"])
        rotator = CredentialRotator(source, store)

        assert run(rotator.rotate("stale-key", waiter)) == "fresh-key"
        assert source.calls == 0

    def test_concurrent_rotations_share_one(self, store, waiter):
        run(store.set("stale-key"))
        source = FakeCredentialSource(["fresh-key", "second-key"])
        rotator = CredentialRotator(source, store)

        async def scenario():
            return await asyncio.gather(
                rotator.rotate("stale-key", waiter),
                rotator.rotate("stale-key", waiter),
            )

        assert run(scenario()) == ["fresh-key", "fresh-key"]
        assert source.calls == 1

    def test_empty_key_fails(self, store, waiter):
        rotator = CredentialRotator(FakeCredentialSource(["   "]), store)
        with pytest.raises(RotationFailedError):
            run(rotator.rotate("stale-key", waiter))


class TestManualCredentialSource:

    def test_prompt_supplies_key(self, waiter):
        source = ManualCredentialSource(lambda: " typed-key ")
        assert run(source.request_rotated_credential(waiter)) == "typed-key"
        assert waiter.messages == ["API key exhausted. Please enter a new API key."]

    def test_async_prompt(self, waiter):
        async def prompt():
            return "typed-key"

        source = ManualCredentialSource(prompt)
        assert run(source.request_rotated_credential(waiter)) == "typed-key"

    def test_no_key_given(self, waiter):
        source = ManualCredentialSource(lambda: None)
        with pytest.raises(RotationFailedError):
            run(source.request_rotated_credential(waiter))


# ---------------------------------------------------------------------------
# ConsoleAutomationSource
# ---------------------------------------------------------------------------

class ScriptedSurface(AutomationSurface):
    """Browser stand-in: replies per message type come from scripts."""

    def __init__(self, replies: Dict[str, List[Optional[Dict[str, Any]]]]):
        self.replies = {k: list(v) for k, v in replies.items()}
        self.events: List[tuple] = []

    async def open_tab(self, url: str) -> Any:
        self.events.append(("open", url))
        return 7

    async def navigate(self, tab: Any, url: str) -> None:
        self.events.append(("navigate", tab, url))

    async def send_message(self, tab: Any, message: Dict[str, Any]):
        self.events.append(("message", message["type"]))
        script = self.replies.get(message["type"], [])
        return script.pop(0) if script else None

    async def close_tab(self, tab: Any) -> None:
        self.events.append(("close", tab))


def make_source(surface, max_polls=60):
    return ConsoleAutomationSource(
        surface,
        projects_url="https://console.test/projects",
        keys_url="https://console.test/keys",
        poll_interval=2.0,
        max_polls=max_polls,
    )


class TestConsoleAutomation:

    def test_two_stage_rotation(self, waiter):
        surface = ScriptedSurface(
            {
                "performProjectCleanup": [None, {"success": False, "busy": True}, {"success": True}],
                "performKeyRotation": [None, {"success": True, "apiKey": "AIza-fresh"}],
            }
        )

        key = run(make_source(surface).request_rotated_credential(waiter))

        assert key == "AIza-fresh"
        assert surface.events == [
            ("open", "https://console.test/projects"),
            ("message", "performProjectCleanup"),
            ("message", "performProjectCleanup"),
            ("message", "performProjectCleanup"),
            ("navigate", 7, "https://console.test/keys"),
            ("message", "performKeyRotation"),
            ("message", "performKeyRotation"),
            ("close", 7),
        ]
        assert waiter.sleeps == [2.0] * 5

    def test_agent_error_fails(self, waiter):
        surface = ScriptedSurface(
            {
                "performProjectCleanup": [{"success": True}],
                "performKeyRotation": [{"success": False, "error": "Create key button not found"}],
            }
        )
        with pytest.raises(RotationFailedError, match="Create key button not found"):
            run(make_source(surface).request_rotated_credential(waiter))
        assert ("close", 7) not in surface.events

    def test_cleanup_timeout(self, waiter):
        surface = ScriptedSurface({})
        with pytest.raises(RotationTimeoutError) as exc_info:
            run(make_source(surface, max_polls=3).request_rotated_credential(waiter))

        assert str(exc_info.value) == "Timeout waiting for project cleanup after 3 polls"
        assert exc_info.value.polls == 3
        assert waiter.sleeps == [2.0] * 3

    def test_key_stage_timeout(self, waiter):
        surface = ScriptedSurface(
            {
                "performProjectCleanup": [{"success": True}],
                "performKeyRotation": [{"success": False, "busy": True}] * 5,
            }
        )
        with pytest.raises(RotationTimeoutError, match="key rotation script"):
            run(make_source(surface, max_polls=4).request_rotated_credential(waiter))

    def test_cancel_between_polls(self):
        surface = ScriptedSurface({})

        async def scenario():
            event = asyncio.Event()
            waiter = RecordingWaiter(cancel_event=event, on_sleep=lambda s: event.set())
            await make_source(surface).request_rotated_credential(waiter)

        with pytest.raises(RequestCancelledError):
            run(scenario())
        assert ("message", "performProjectCleanup") not in surface.events
