"""Pure classification of raw input into slash commands or model turns."""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Protocol, Union

LOGGER = logging.getLogger(__name__)


class CommandLookup(Protocol):
    """Anything that can resolve a command name to a handler."""

    def lookup(self, name: str) -> object | None: ...


@dataclass(frozen=True)
class RunCommand:
    """Input names a registered command."""

    name: str
    args: str = ""


@dataclass(frozen=True)
class SendToModel:
    """Input is a conversation turn for the completion service."""

    text: str


Action = Union[RunCommand, SendToModel]


class CommandDispatcher:
    """Classify user input against a command registry.

    A slash-prefixed string whose name is not registered is *not* an error:
    it is sent to the model exactly as typed, so a mistyped command becomes
    a prompt.
    """

    def __init__(self, registry: CommandLookup) -> None:
        self._registry = registry

    def dispatch(self, raw_input: str) -> Action:
        """Return the action for ``raw_input``."""
        trimmed = raw_input.strip()
        if not trimmed.startswith("/"):
            return SendToModel(trimmed)

        parts = trimmed.split(maxsplit=1)
        name = parts[0]
        args = parts[1] if len(parts) == 2 else ""

        if self._registry.lookup(name) is None:
            LOGGER.debug(
                "dispatcher.command.unknown",
                extra={"event": "dispatcher.command.unknown", "command": name},
            )
            return SendToModel(trimmed)
        return RunCommand(name=name, args=args)
