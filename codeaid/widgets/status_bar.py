"""Status bar widget for model and conversation telemetry."""

from __future__ import annotations

from textual.app import ComposeResult
from textual.widgets import Label, Static


class StatusBar(Static):
    """Render compact runtime status information.

    Segments (left to right):
        Model: mistralai/...  |  Messages: 4  |  Key: sk-o...9f2c
    """

    DEFAULT_CSS = """
    StatusBar {
        layout: horizontal;
        height: 1;
        padding: 0 1;
    }
    StatusBar Label {
        margin-right: 1;
    }
    StatusBar #status_key {
        color: $text-muted;
    }
    """

    summary: str = ""

    def compose(self) -> ComposeResult:
        yield Label("Model: -", id="status_model")
        yield Label("|")
        yield Label("Messages: 0", id="status_messages")
        yield Label("|")
        yield Label("Key: not set", id="status_key")

    def set_status(self, *, model: str, message_count: int, masked_key: str) -> None:
        """Update all status segment labels."""
        segments = (
            f"Model: {model}",
            f"Messages: {message_count}",
            f"Key: {masked_key}" if masked_key else "Key: not set",
        )
        self.query_one("#status_model", Label).update(segments[0])
        self.query_one("#status_messages", Label).update(segments[1])
        self.query_one("#status_key", Label).update(segments[2])
        self.summary = " | ".join(segments)
