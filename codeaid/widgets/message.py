"""Message bubble widget for conversation rendering."""

from __future__ import annotations

from typing import Any

from rich.markdown import Markdown
from rich.text import Text
from textual.app import ComposeResult
from textual.containers import Vertical
from textual.widgets import Static

_ROLE_LABELS = {
    "user": "You",
    "assistant": "CodeAid",
    "error": "Error",
    "info": "CodeAid",
}


class MessageBubble(Vertical):
    """Render a single transcript line: a role header and its content.

    Assistant replies are rendered as Markdown; user input, errors and
    command output are shown verbatim.
    """

    DEFAULT_CSS = """
    MessageBubble {
        height: auto;
        margin: 0 0 1 0;
    }
    MessageBubble > .bubble-header {
        text-style: bold;
    }
    MessageBubble.role-user > .bubble-header {
        color: $accent;
    }
    MessageBubble.role-assistant > .bubble-header {
        color: $success;
    }
    MessageBubble.role-error > .bubble-content {
        color: $error;
    }
    MessageBubble.role-info > .bubble-content {
        color: $text-muted;
    }
    """

    def __init__(self, content: str, role: str, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.message_content = content
        self.role = role
        self.add_class(f"role-{role}")
        self._content_widget: Static | None = None

    @property
    def role_label(self) -> str:
        return _ROLE_LABELS.get(self.role, self.role.capitalize())

    def compose(self) -> ComposeResult:
        yield Static(self.role_label, classes="bubble-header")
        self._content_widget = Static(self._renderable(), classes="bubble-content")
        yield self._content_widget

    def _renderable(self) -> Markdown | Text:
        if self.role == "assistant":
            return Markdown(self.message_content.rstrip())
        return Text(self.message_content)

    def set_content(self, content: str) -> None:
        """Replace the bubble text."""
        self.message_content = content
        if self._content_widget is not None:
            self._content_widget.update(self._renderable())
