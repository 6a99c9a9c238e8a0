"""Slash command registry and the built-in commands."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
import logging
from typing import Any, Union

from .config import load_config, mask_api_key, resolve_api_key
from .history import ConversationStore

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class CommandResponse:
    """Text to show the user."""

    text: str


@dataclass(frozen=True)
class HistoryCleared:
    """The conversation history was reset."""


@dataclass(frozen=True)
class ExitRequested:
    """The user asked to quit."""


@dataclass(frozen=True)
class ConfigRequested:
    """Start the interactive configuration flow."""

    masked_key: str
    model: str
    config: dict[str, Any]


CommandEvent = Union[CommandResponse, HistoryCleared, ExitRequested, ConfigRequested]


class Command:
    """Base class for slash commands.

    ``name`` includes the leading slash. ``run`` receives everything after
    the first whitespace (possibly empty) and returns one UI event.
    """

    name: str = ""
    description: str = ""

    def run(self, args: str) -> CommandEvent:
        raise NotImplementedError


class CommandRegistry:
    """Case-sensitive mapping of command names to commands."""

    def __init__(self) -> None:
        self._commands: dict[str, Command] = {}

    def register(self, command: Command) -> None:
        """Add ``command``, replacing any command with the same name."""
        if not command.name.startswith("/"):
            raise ValueError(f"Command names must start with '/': {command.name!r}")
        self._commands[command.name] = command
        LOGGER.debug(
            "commands.registered",
            extra={"event": "commands.registered", "command": command.name},
        )

    def lookup(self, name: str) -> Command | None:
        """Return the command registered under ``name`` exactly."""
        return self._commands.get(name)

    def all_commands(self) -> list[Command]:
        """Return every command, sorted by name."""
        return [self._commands[name] for name in sorted(self._commands)]

    def names(self) -> list[str]:
        return sorted(self._commands)

    def find_matching(self, prefix: str) -> list[str]:
        """Return command names starting with ``prefix``.

        Only slash-prefixed input is considered; anything else has no matches.
        """
        if not prefix or not prefix.startswith("/"):
            return []
        return [name for name in self.names() if name.startswith(prefix)]

    def __contains__(self, name: object) -> bool:
        return name in self._commands

    def __len__(self) -> int:
        return len(self._commands)


class ClearCommand(Command):
    name = "/clear"
    description = "Clear conversation history"

    def __init__(self, store: ConversationStore) -> None:
        self._store = store

    def run(self, args: str) -> CommandEvent:
        self._store.reset()
        LOGGER.info("commands.clear", extra={"event": "commands.clear"})
        return HistoryCleared()


class HelpCommand(Command):
    name = "/help"
    description = "Show available commands"

    def __init__(self, registry: CommandRegistry) -> None:
        self._registry = registry

    def run(self, args: str) -> CommandEvent:
        lines = ["Available commands:"]
        for command in self._registry.all_commands():
            lines.append(f"{command.name} - {command.description}")
        return CommandResponse("\n".join(lines))


class ExitCommand(Command):
    name = "/exit"
    description = "Exit the application"

    def run(self, args: str) -> CommandEvent:
        return ExitRequested()


class ConfigCommand(Command):
    name = "/config"
    description = "Update configuration settings"

    def __init__(self, loader: Callable[[], dict[str, Any]] = load_config) -> None:
        self._loader = loader

    def run(self, args: str) -> CommandEvent:
        try:
            config = self._loader()
        except Exception as exc:  # noqa: BLE001 - reported to the user instead.
            LOGGER.warning(
                "commands.config.load_failed",
                extra={"event": "commands.config.load_failed", "error": str(exc)},
            )
            return CommandResponse(f"Error loading configuration: {exc}")
        return ConfigRequested(
            masked_key=mask_api_key(resolve_api_key(config)),
            model=str(config["api"]["model"]),
            config=config,
        )


def build_default_registry(
    store: ConversationStore,
    config_loader: Callable[[], dict[str, Any]] = load_config,
) -> CommandRegistry:
    """Register the built-in commands."""
    registry = CommandRegistry()
    registry.register(ClearCommand(store))
    registry.register(ExitCommand())
    registry.register(HelpCommand(registry))
    registry.register(ConfigCommand(config_loader))
    return registry
