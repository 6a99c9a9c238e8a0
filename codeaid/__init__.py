"""Top-level package for codeaid-tui."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .app import CodeAidApp
    from .commands import CommandRegistry
    from .config import ensure_config_dir, load_config, save_config
    from .coordinator import RequestCoordinator, TurnPhase
    from .dispatcher import CommandDispatcher
    from .exceptions import (
        CodeAidError,
        CompletionError,
        ConfigValidationError,
        MissingAPIKeyError,
    )
    from .history import ConversationStore

__all__ = [
    "CodeAidApp",
    "CodeAidError",
    "CommandDispatcher",
    "CommandRegistry",
    "CompletionError",
    "ConfigValidationError",
    "ConversationStore",
    "MissingAPIKeyError",
    "RequestCoordinator",
    "TurnPhase",
    "ensure_config_dir",
    "load_config",
    "save_config",
]


def __getattr__(name: str) -> Any:
    """Lazily import symbols to keep the UI dependencies optional at import time."""
    if name in {"ensure_config_dir", "load_config", "save_config"}:
        from .config import ensure_config_dir, load_config, save_config

        return {
            "ensure_config_dir": ensure_config_dir,
            "load_config": load_config,
            "save_config": save_config,
        }[name]
    if name in {
        "CodeAidError",
        "CompletionError",
        "ConfigValidationError",
        "MissingAPIKeyError",
    }:
        from .exceptions import (
            CodeAidError,
            CompletionError,
            ConfigValidationError,
            MissingAPIKeyError,
        )

        return {
            "CodeAidError": CodeAidError,
            "CompletionError": CompletionError,
            "ConfigValidationError": ConfigValidationError,
            "MissingAPIKeyError": MissingAPIKeyError,
        }[name]
    if name in {"RequestCoordinator", "TurnPhase"}:
        from .coordinator import RequestCoordinator, TurnPhase

        return {"RequestCoordinator": RequestCoordinator, "TurnPhase": TurnPhase}[name]
    if name == "ConversationStore":
        from .history import ConversationStore

        return ConversationStore
    if name == "CommandDispatcher":
        from .dispatcher import CommandDispatcher

        return CommandDispatcher
    if name == "CommandRegistry":
        from .commands import CommandRegistry

        return CommandRegistry
    if name == "CodeAidApp":
        from .app import CodeAidApp

        return CodeAidApp
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
