"""Scrollable conversation view widget."""

from __future__ import annotations

from textual.containers import VerticalScroll

from .message import MessageBubble


class ConversationView(VerticalScroll):
    """A scrollable container that hosts message bubbles."""

    async def add_message(self, content: str, role: str) -> MessageBubble:
        """Create, mount, and scroll to a new message bubble."""
        bubble = MessageBubble(content=content, role=role)
        await self.mount(bubble)
        self.scroll_end(animate=False)
        return bubble

    @property
    def bubbles(self) -> list[MessageBubble]:
        return list(self.query(MessageBubble))

    async def clear(self) -> None:
        """Remove every rendered bubble."""
        await self.remove_children()
