"""Activity bar widget showing a spinner while a request is outstanding."""

from __future__ import annotations

import asyncio
from typing import Any

from textual.app import ComposeResult
from textual.widgets import Label, Static

SPINNER_FRAMES: tuple[str, ...] = (
    "⠋", "⠙", "⠚", "⠞", "⠖", "⠦", "⠴", "⠲", "⠳", "⠓",
)
FRAME_INTERVAL_SECONDS = 0.06


def spinner_frame(tick: int) -> str:
    """Return the spinner character for animation tick ``tick``."""
    return SPINNER_FRAMES[tick % len(SPINNER_FRAMES)]


class ActivityBar(Static):
    """Render the loading animation on the left and key hints on the right."""

    DEFAULT_CSS = """
    ActivityBar {
        layout: horizontal;
        height: 1;
        padding: 0 1;
    }
    ActivityBar #activity_left {
        width: 1fr;
    }
    ActivityBar #activity_right {
        width: auto;
        color: $text-muted;
    }
    """

    def __init__(self, shortcut_hints: str = "", **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self._shortcut_hints = shortcut_hints
        self._animation_task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._animation_task is not None and not self._animation_task.done()

    def compose(self) -> ComposeResult:
        yield Label("", id="activity_left")
        yield Label(self._shortcut_hints, id="activity_right")

    def start_activity(self, hint: str = "Thinking... (esc to cancel)") -> None:
        """Begin the spinner; a no-op while it is already running."""
        if self.running:
            return
        self._animation_task = asyncio.create_task(self._spin(hint))

    def stop_activity(self) -> None:
        """Stop the spinner and clear the left label."""
        task = self._animation_task
        self._animation_task = None
        if task is not None and not task.done():
            task.cancel()
        self.query_one("#activity_left", Label).update("")

    async def _spin(self, hint: str) -> None:
        left = self.query_one("#activity_left", Label)
        tick = 0
        while True:
            left.update(f"{spinner_frame(tick)} {hint}")
            tick += 1
            await asyncio.sleep(FRAME_INTERVAL_SECONDS)
