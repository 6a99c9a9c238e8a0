"""First-run configuration on the plain terminal, before the TUI starts."""

from __future__ import annotations

from collections.abc import Callable
import logging
from pathlib import Path

from rich.console import Console
from rich.prompt import Prompt

from .config import CONFIG_PATH, config_exists, load_config, save_config
from .config_flow import ConfigFlow
from .widgets.logo import LOGO

LOGGER = logging.getLogger(__name__)


def run_first_time_setup(
    force: bool = False,
    config_path: Path | None = None,
    ask: Callable[..., str] | None = None,
    console: Console | None = None,
) -> Path | None:
    """Prompt for the API key and model and save them.

    Skipped when a config file already exists unless ``force`` is set.
    Returns the saved path, or None when nothing was asked.
    """
    target = config_path or CONFIG_PATH
    if not force and config_exists(target):
        return None

    console = console or Console()
    ask = ask or Prompt.ask

    console.print(LOGO, style="bold", highlight=False)
    console.print("CodeAid Configuration", style="bold")
    console.print("=" * 50)

    flow = ConfigFlow(load_config(target))
    while not flow.finished:
        *context, question = flow.prompt.splitlines()
        for line in context:
            console.print(line, highlight=False)
        answer = ask(question, default="", show_default=False, password=flow.secret)
        flow.answer(answer or "")

    saved = save_config(flow.config, target)
    console.print(f"\nConfiguration saved to {saved}\n")
    return saved
