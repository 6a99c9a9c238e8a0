"""Main Textual application for chatting through OpenRouter."""

from __future__ import annotations

import asyncio
import logging
import sys
from pathlib import Path
from typing import Any

from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Container
from textual.events import Key
from textual.widgets import Footer, Header, Input

from .commands import (
    CommandEvent,
    CommandResponse,
    ConfigRequested,
    ExitRequested,
    HistoryCleared,
    build_default_registry,
)
from .completion import CompletionClient, OpenRouterClient
from .config import load_config, mask_api_key, resolve_api_key, save_config
from .config_flow import ConfigFlow
from .coordinator import (
    CancelCause,
    Canceled,
    Failure,
    RequestCoordinator,
    Success,
    TurnResult,
)
from .dispatcher import CommandDispatcher, RunCommand
from .exceptions import ConfigValidationError
from .history import ConversationStore
from .logging_utils import configure_logging
from .task_manager import TaskManager
from .widgets.activity_bar import ActivityBar
from .widgets.conversation import ConversationView
from .widgets.logo import Logo
from .widgets.message import MessageBubble
from .widgets.status_bar import StatusBar

LOGGER = logging.getLogger(__name__)

SHORTCUT_HINTS = "tab complete · esc cancel · ctrl+q quit"


def build_client(config: dict[str, Any]) -> OpenRouterClient:
    """Create the OpenRouter client described by ``config``."""
    api_cfg = config["api"]
    return OpenRouterClient(
        api_key=resolve_api_key(config),
        base_url=str(api_cfg["base_url"]),
        max_tokens=int(api_cfg["max_tokens"]),
        temperature=float(api_cfg["temperature"]),
    )


class CodeAidApp(App[None]):
    """CodeAid terminal chat interface."""

    CSS = """
    #app-root {
        layout: vertical;
        height: 1fr;
    }

    #logo {
        padding: 0 1;
    }

    #conversation {
        height: 1fr;
        padding: 0 1;
    }

    #message_input {
        margin: 0 1;
    }
    """

    BINDINGS = [
        Binding("escape", "cancel_request", "Cancel"),
        Binding("tab", "complete_command", "Complete", show=False, priority=True),
        Binding("ctrl+q", "quit", "Quit"),
    ]

    def __init__(
        self,
        config: dict[str, Any] | None = None,
        client: CompletionClient | None = None,
        config_path: Path | None = None,
    ) -> None:
        self._config_path = config_path
        self.config = config if config is not None else load_config(config_path)
        configure_logging(self.config["logging"])
        LOGGER.info(
            "app.python",
            extra={
                "event": "app.python",
                "executable": sys.executable,
                "version": sys.version.split()[0],
            },
        )

        timeouts = self.config["timeouts"]
        self.store = ConversationStore()
        self.coordinator = RequestCoordinator(
            self.store,
            client if client is not None else build_client(self.config),
            model=str(self.config["api"]["model"]),
            request_timeout=float(timeouts["request_seconds"]),
            failsafe_timeout=float(timeouts["failsafe_seconds"]),
        )
        self.registry = build_default_registry(
            self.store, config_loader=lambda: load_config(self._config_path)
        )
        self.dispatcher = CommandDispatcher(self.registry)
        self._task_manager = TaskManager()
        self._config_flow: ConfigFlow | None = None
        self._masked_key = mask_api_key(resolve_api_key(self.config))
        self._last_prompt: str = ""
        # Bumped by /clear; turns from an older generation are dropped.
        self._history_generation = 0

        self._w_input: Input | None = None
        self._w_activity: ActivityBar | None = None
        self._w_status: StatusBar | None = None
        self._w_conversation: ConversationView | None = None
        super().__init__()
        self.title = str(self.config["app"]["title"])

    def compose(self) -> ComposeResult:
        """Compose app widgets."""
        yield Header()
        with Container(id="app-root"):
            if self.config["app"]["show_logo"]:
                yield Logo(id="logo")
            yield ConversationView(id="conversation")
            yield ActivityBar(shortcut_hints=SHORTCUT_HINTS, id="activity_bar")
            yield Input(
                placeholder="Ask anything... (/help for commands)",
                id="message_input",
            )
            yield StatusBar(id="status_bar")
        yield Footer()

    async def on_mount(self) -> None:
        self._w_input = self.query_one("#message_input", Input)
        self._w_activity = self.query_one("#activity_bar", ActivityBar)
        self._w_status = self.query_one("#status_bar", StatusBar)
        self._w_conversation = self.query_one(ConversationView)
        self._w_input.focus()
        self._update_status_bar()
        self.sub_title = f"Model: {self.coordinator.model}"
        if not self._masked_key:
            await self._add_message(
                "No OpenRouter API key configured. Run /config to set one.", "info"
            )

    @property
    def config_flow(self) -> ConfigFlow | None:
        """The interactive /config flow, while one is in progress."""
        return self._config_flow

    def _update_status_bar(self) -> None:
        if self._w_status is None:
            return
        self._w_status.set_status(
            model=self.coordinator.model,
            message_count=self.store.message_count,
            masked_key=self._masked_key,
        )

    async def _add_message(self, content: str, role: str) -> MessageBubble:
        conversation = self._w_conversation or self.query_one(ConversationView)
        return await conversation.add_message(content, role)

    async def on_input_submitted(self, event: Input.Submitted) -> None:
        """Handle input submit events."""
        if event.input.id == "message_input":
            await self.submit_text(event.value)

    def on_key(self, event: Key) -> None:
        """Recall the last prompt with the up arrow on an empty input."""
        if event.key != "up" or self._w_input is None:
            return
        input_widget = self._w_input
        if input_widget.has_focus and not input_widget.value and self._last_prompt:
            input_widget.value = self._last_prompt
            input_widget.cursor_position = len(input_widget.value)
            self.sub_title = "Restored last prompt."
            event.stop()

    async def submit_text(self, raw: str) -> None:
        """Route one line of input: config answer, slash command, or prompt."""
        input_widget = self._w_input or self.query_one("#message_input", Input)
        input_widget.value = ""

        if self._config_flow is not None:
            await self._advance_config_flow(raw)
            return

        action = self.dispatcher.dispatch(raw)
        if isinstance(action, RunCommand):
            command = self.registry.lookup(action.name)
            if command is not None:
                await self._apply_command_event(command.run(action.args))
            return

        if not action.text:
            self.sub_title = "Cannot send an empty message."
            return
        await self._start_turn(action.text)

    async def _start_turn(self, prompt: str) -> None:
        self._last_prompt = prompt
        await self._add_message(prompt, "user")
        operation = self.coordinator.submit(prompt)
        if self._w_activity is not None:
            self._w_activity.start_activity()
        self.sub_title = "Waiting for response..."
        self._update_status_bar()
        watcher = asyncio.create_task(
            self._await_turn(operation, self._history_generation)
        )
        self._task_manager.add(watcher, name="active_turn")

    async def _await_turn(
        self, operation: asyncio.Task[TurnResult], generation: int
    ) -> None:
        result = await operation
        self._task_manager.discard("active_turn", asyncio.current_task())
        if self.coordinator.outstanding is None and self._w_activity is not None:
            self._w_activity.stop_activity()
        await self._deliver(result, generation)
        self._update_status_bar()

    async def _deliver(self, result: TurnResult, generation: int) -> None:
        """Render a resolved turn. Replies are shown before they enter history.

        Nothing is shown or recorded for a turn submitted before the last
        /clear, even if it resolved first.
        """
        if generation != self._history_generation:
            LOGGER.info(
                "app.turn.discarded",
                extra={"event": "app.turn.discarded", "result": type(result).__name__},
            )
            return
        if isinstance(result, Success):
            bubble = await self._add_message(result.text, "assistant")
            if generation != self._history_generation:
                await bubble.remove()
                return
            self.store.append_assistant(result.text)
            self.sub_title = "Ready"
        elif isinstance(result, Failure):
            await self._add_message(f"Error: {result.reason}", "error")
            self.sub_title = "Request failed."
        elif isinstance(result, Canceled) and result.cause is CancelCause.USER:
            await self._add_message("Request canceled.", "info")
            self.sub_title = "Request canceled."

    async def _apply_command_event(self, event: CommandEvent) -> None:
        if isinstance(event, CommandResponse):
            await self._add_message(event.text, "info")
        elif isinstance(event, HistoryCleared):
            self._history_generation += 1
            self.coordinator.cancel()
            conversation = self._w_conversation or self.query_one(ConversationView)
            await conversation.clear()
            self.sub_title = "Conversation history cleared."
            self._update_status_bar()
        elif isinstance(event, ExitRequested):
            self.exit()
        elif isinstance(event, ConfigRequested):
            await self._begin_config_flow(event)

    async def _begin_config_flow(self, event: ConfigRequested) -> None:
        self._config_flow = ConfigFlow(event.config)
        LOGGER.info("app.config_flow.started", extra={"event": "app.config_flow.started"})
        await self._add_message(
            "Current configuration:\n"
            f"API Key: {event.masked_key or 'not set'}\n"
            f"Model: {event.model}",
            "info",
        )
        await self._show_config_prompt()

    async def _show_config_prompt(self) -> None:
        flow = self._config_flow
        if flow is None:
            return
        await self._add_message(flow.prompt, "info")
        if self._w_input is not None:
            self._w_input.password = flow.secret
        self.sub_title = "Configuring... (esc to abort)"

    async def _advance_config_flow(self, raw: str) -> None:
        flow = self._config_flow
        if flow is None:
            return
        flow.answer(raw)
        if not flow.finished:
            await self._show_config_prompt()
            return

        self._end_config_flow()
        try:
            saved = save_config(flow.config, self._config_path)
        except (ConfigValidationError, OSError) as exc:
            LOGGER.warning(
                "app.config_flow.save_failed",
                extra={"event": "app.config_flow.save_failed", "error": str(exc)},
            )
            await self._add_message(f"Error saving configuration: {exc}", "error")
            self.sub_title = "Configuration not saved."
            return
        self._apply_config(flow.config)
        await self._add_message(f"Configuration saved to {saved}", "info")
        self.sub_title = f"Model: {self.coordinator.model}"

    def _end_config_flow(self) -> None:
        self._config_flow = None
        if self._w_input is not None:
            self._w_input.password = False

    def _apply_config(self, config: dict[str, Any]) -> None:
        """Point future turns at the newly saved key and model."""
        self.config = config
        self.coordinator.client = build_client(config)
        self.coordinator.model = str(config["api"]["model"])
        self._masked_key = mask_api_key(resolve_api_key(config))
        self._update_status_bar()

    async def action_cancel_request(self) -> None:
        """Abort the config flow, or cancel the outstanding request."""
        if self._config_flow is not None:
            self._end_config_flow()
            await self._add_message("Configuration unchanged.", "info")
            self.sub_title = "Configuration aborted."
            return
        if self.coordinator.cancel():
            self.sub_title = "Canceling request..."
        else:
            self.sub_title = "No request to cancel."

    def action_complete_command(self) -> None:
        """Complete a slash command name from the typed prefix."""
        input_widget = self._w_input or self.query_one("#message_input", Input)
        matches = self.registry.find_matching(input_widget.value.strip())
        if len(matches) == 1:
            input_widget.value = matches[0]
            input_widget.cursor_position = len(input_widget.value)
        elif matches:
            self.sub_title = "  ".join(matches)

    async def on_unmount(self) -> None:
        """Cancel and await all background tasks during shutdown."""
        await self._task_manager.cancel_all()
        await self.coordinator.aclose()

    async def action_quit(self) -> None:
        """Exit the app."""
        self.exit()
