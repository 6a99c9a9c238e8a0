"""Lock-protected conversation transcript with snapshot isolation."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
import threading


class Role(str, Enum):
    """Speaker of a conversation entry."""

    USER = "user"
    ASSISTANT = "assistant"


@dataclass(frozen=True)
class Entry:
    """A single immutable transcript entry."""

    role: Role
    content: str

    def as_message(self) -> dict[str, str]:
        """Return the chat-completions wire form of this entry."""
        return {"role": self.role.value, "content": self.content}


class ConversationStore:
    """Ordered, append-only transcript sent to the completion service.

    Every operation takes the same lock so a snapshot is always a consistent
    copy. Entries are never removed one by one; ``reset`` clears everything.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._entries: list[Entry] = []

    def append_user(self, text: str) -> None:
        """Append a user entry."""
        with self._lock:
            self._entries.append(Entry(Role.USER, text))

    def append_assistant(self, text: str) -> None:
        """Append an assistant entry.

        Only call this once a successful reply has been shown to the user.
        """
        with self._lock:
            self._entries.append(Entry(Role.ASSISTANT, text))

    def snapshot(self) -> tuple[Entry, ...]:
        """Return an independent copy of the transcript."""
        with self._lock:
            return tuple(self._entries)

    def reset(self) -> None:
        """Drop every entry. Snapshots taken earlier are unaffected."""
        with self._lock:
            self._entries = []

    @property
    def messages(self) -> list[dict[str, str]]:
        """Return the transcript as role/content dicts."""
        return [entry.as_message() for entry in self.snapshot()]

    @property
    def message_count(self) -> int:
        """Return the number of stored entries."""
        with self._lock:
            return len(self._entries)

    def __len__(self) -> int:
        return self.message_count
