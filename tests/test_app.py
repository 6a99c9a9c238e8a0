"""Tests for the Textual app wiring of commands, turns, and the config flow."""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from copy import deepcopy
import logging
import tempfile
from pathlib import Path
from typing import Any
import unittest

from codeaid.config import DEFAULT_CONFIG, MODEL_CHOICES, load_config
from codeaid.coordinator import Success
from codeaid.exceptions import CompletionError
from codeaid.history import Entry

try:
    from textual.widgets import Input

    from codeaid.app import CodeAidApp
    from codeaid.widgets.conversation import ConversationView
except ModuleNotFoundError:
    Input = None  # type: ignore[assignment,misc]
    CodeAidApp = None  # type: ignore[assignment,misc]
    ConversationView = None  # type: ignore[assignment,misc]


class FakeClient:
    """Completion client that replies immediately, or after a gate opens."""

    def __init__(self, reply: str = "Here you go.", gated: bool = False) -> None:
        self.reply = reply
        self.gated = gated
        self.gates: list[asyncio.Event] = []
        self.prompts: list[str] = []

    async def complete(self, messages: Sequence[Entry], model: str) -> str:
        self.prompts.append(messages[-1].content)
        gate = asyncio.Event()
        self.gates.append(gate)
        if not self.gated:
            gate.set()
        await gate.wait()
        return self.reply


class FailingClient:
    async def complete(self, messages: Sequence[Entry], model: str) -> str:
        raise CompletionError("API error 500: boom")


def _config() -> dict[str, Any]:
    config = deepcopy(DEFAULT_CONFIG)
    config["app"]["show_logo"] = False
    config["api"]["openrouter_api_key"] = "sk-test-key-abcdef"
    config["logging"]["structured"] = False
    return config


@unittest.skipIf(CodeAidApp is None, "textual is not installed")
class CodeAidAppTests(unittest.IsolatedAsyncioTestCase):
    """Drive the app headlessly and inspect the rendered transcript."""

    def setUp(self) -> None:
        root = logging.getLogger()
        self._original_level = root.level
        self._original_handlers = list(root.handlers)
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.config_path = Path(self._tmp.name) / "config.json"

    def tearDown(self) -> None:
        root = logging.getLogger()
        root.setLevel(self._original_level)
        root.handlers.clear()
        root.handlers.extend(self._original_handlers)

    def _app(self, client: object) -> CodeAidApp:
        assert CodeAidApp is not None
        return CodeAidApp(config=_config(), client=client, config_path=self.config_path)  # type: ignore[arg-type]

    @staticmethod
    def _transcript(app: CodeAidApp) -> list[tuple[str, str]]:
        view = app.query_one(ConversationView)
        return [(bubble.role, bubble.message_content) for bubble in view.bubbles]

    async def test_prompt_is_rendered_then_recorded(self) -> None:
        app = self._app(FakeClient(reply="Use a list comprehension."))
        async with app.run_test() as pilot:
            await app.submit_text("how do I filter a list?")
            watcher = app._task_manager.get("active_turn")
            self.assertIsNotNone(watcher)
            await watcher  # type: ignore[misc]
            await pilot.pause()

            self.assertEqual(
                self._transcript(app),
                [
                    ("user", "how do I filter a list?"),
                    ("assistant", "Use a list comprehension."),
                ],
            )
            self.assertEqual(
                app.store.messages,
                [
                    {"role": "user", "content": "how do I filter a list?"},
                    {"role": "assistant", "content": "Use a list comprehension."},
                ],
            )
            self.assertFalse(app.query_one("#activity_bar").running)  # type: ignore[attr-defined]

    async def test_failure_is_shown_and_not_recorded(self) -> None:
        app = self._app(FailingClient())
        async with app.run_test() as pilot:
            await app.submit_text("hello")
            await app._task_manager.get("active_turn")  # type: ignore[misc]
            await pilot.pause()

            self.assertEqual(self._transcript(app)[-1], ("error", "Error: API error 500: boom"))
            self.assertEqual(app.store.message_count, 1)

    async def test_escape_cancels_outstanding_request(self) -> None:
        client = FakeClient(gated=True)
        app = self._app(client)
        async with app.run_test() as pilot:
            await app.submit_text("long question")
            watcher = app._task_manager.get("active_turn")
            await pilot.pause()
            await app.action_cancel_request()
            await watcher  # type: ignore[misc]
            await pilot.pause()

            self.assertEqual(self._transcript(app)[-1], ("info", "Request canceled."))
            self.assertEqual(app.store.message_count, 1)
            self.assertIsNone(app.coordinator.outstanding)

    async def test_escape_without_request_is_noop(self) -> None:
        app = self._app(FakeClient())
        async with app.run_test():
            await app.action_cancel_request()
            self.assertEqual(app.sub_title, "No request to cancel.")

    async def test_new_prompt_supersedes_silently(self) -> None:
        client = FakeClient(reply="second answer", gated=True)
        app = self._app(client)
        async with app.run_test() as pilot:
            await app.submit_text("first")
            first_watcher = app._task_manager.get("active_turn")
            await pilot.pause()
            await app.submit_text("second")
            second_watcher = app._task_manager.get("active_turn")
            await first_watcher  # type: ignore[misc]
            await pilot.pause()
            client.gates[-1].set()
            await second_watcher  # type: ignore[misc]
            await pilot.pause()

            self.assertEqual(
                self._transcript(app),
                [("user", "first"), ("user", "second"), ("assistant", "second answer")],
            )
            self.assertEqual(
                [m["content"] for m in app.store.messages],
                ["first", "second", "second answer"],
            )

    async def test_clear_resets_history_and_view(self) -> None:
        app = self._app(FakeClient())
        async with app.run_test() as pilot:
            await app.submit_text("hello")
            await app._task_manager.get("active_turn")  # type: ignore[misc]
            await app.submit_text("/clear")
            await pilot.pause()

            self.assertEqual(app.store.message_count, 0)
            self.assertEqual(self._transcript(app), [])
            self.assertEqual(app.sub_title, "Conversation history cleared.")

    async def test_clear_after_resolution_before_delivery_keeps_history_empty(self) -> None:
        app = self._app(FakeClient(reply="old reply"))
        async with app.run_test() as pilot:
            await app.submit_text("hello")
            watcher = app._task_manager.get("active_turn")
            while app.coordinator.outstanding is not None:
                await asyncio.sleep(0)
            await app.submit_text("/clear")
            await watcher  # type: ignore[misc]
            await pilot.pause()

            self.assertEqual(app.store.messages, [])
            self.assertEqual(self._transcript(app), [])

    async def test_reply_from_before_clear_is_dropped(self) -> None:
        app = self._app(FakeClient())
        async with app.run_test() as pilot:
            await app.submit_text("/clear")
            await app._deliver(Success("old reply", turn_id=1), generation=0)
            await pilot.pause()

            self.assertEqual(app.store.message_count, 0)
            self.assertEqual(self._transcript(app), [])

    async def test_clear_during_request_cancels_silently(self) -> None:
        client = FakeClient(gated=True)
        app = self._app(client)
        async with app.run_test() as pilot:
            await app.submit_text("long question")
            watcher = app._task_manager.get("active_turn")
            await pilot.pause()
            await app.submit_text("/clear")
            await watcher  # type: ignore[misc]
            await pilot.pause()

            self.assertEqual(app.store.message_count, 0)
            self.assertEqual(self._transcript(app), [])
            self.assertIsNone(app.coordinator.outstanding)

    async def test_help_and_unknown_commands(self) -> None:
        client = FakeClient()
        app = self._app(client)
        async with app.run_test() as pilot:
            await app.submit_text("/help")
            await pilot.pause()
            role, text = self._transcript(app)[-1]
            self.assertEqual(role, "info")
            self.assertTrue(text.startswith("Available commands:"))

            await app.submit_text("/frobnicate")
            await app._task_manager.get("active_turn")  # type: ignore[misc]
            self.assertEqual(client.prompts, ["/frobnicate"])

    async def test_empty_input_is_ignored(self) -> None:
        client = FakeClient()
        app = self._app(client)
        async with app.run_test():
            await app.submit_text("   ")
            self.assertEqual(app.store.message_count, 0)
            self.assertIsNone(app._task_manager.get("active_turn"))
            self.assertEqual(app.sub_title, "Cannot send an empty message.")

    async def test_tab_completes_command(self) -> None:
        app = self._app(FakeClient())
        async with app.run_test() as pilot:
            input_widget = app.query_one("#message_input", Input)
            input_widget.value = "/he"
            await pilot.press("tab")
            self.assertEqual(input_widget.value, "/help")

    async def test_up_recalls_last_prompt(self) -> None:
        app = self._app(FakeClient())
        async with app.run_test() as pilot:
            await app.submit_text("remember me")
            await app._task_manager.get("active_turn")  # type: ignore[misc]
            await pilot.press("up")
            self.assertEqual(app.query_one("#message_input", Input).value, "remember me")

    async def test_config_flow_saves_and_switches_model(self) -> None:
        app = self._app(FakeClient())
        async with app.run_test() as pilot:
            await app.submit_text("/config")
            self.assertIsNotNone(app.config_flow)
            self.assertTrue(app.query_one("#message_input", Input).password)

            await app.submit_text("sk-or-brand-new-9999")
            self.assertFalse(app.query_one("#message_input", Input).password)
            await app.submit_text("2")
            await pilot.pause()

            self.assertIsNone(app.config_flow)
            self.assertEqual(app.coordinator.model, MODEL_CHOICES[1])
            saved = load_config(self.config_path)
            self.assertEqual(saved["api"]["openrouter_api_key"], "sk-or-brand-new-9999")
            self.assertEqual(saved["api"]["model"], MODEL_CHOICES[1])
            self.assertTrue(self._transcript(app)[-1][1].startswith("Configuration saved to"))
            self.assertEqual(app.store.message_count, 0)

    async def test_escape_aborts_config_flow(self) -> None:
        app = self._app(FakeClient())
        async with app.run_test() as pilot:
            await app.submit_text("/config")
            await app.action_cancel_request()
            await pilot.pause()

            self.assertIsNone(app.config_flow)
            self.assertFalse(self.config_path.exists())
            self.assertEqual(self._transcript(app)[-1], ("info", "Configuration unchanged."))

    async def test_exit_command_exits(self) -> None:
        app = self._app(FakeClient())
        async with app.run_test() as pilot:
            await app.submit_text("/exit")
            await pilot.pause()
        self.assertIsNone(app.return_value)


if __name__ == "__main__":
    unittest.main()
