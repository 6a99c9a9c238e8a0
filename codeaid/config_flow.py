"""Step-by-step prompt flow for updating the API key and model.

Shared by the ``/config`` command inside the TUI and the first-run setup on
the command line. The flow only transforms answers into a configuration
dict; saving it is up to the caller.
"""

from __future__ import annotations

from copy import deepcopy
from enum import Enum
from typing import Any

from .config import MODEL_CHOICES, mask_api_key


class ConfigStep(str, Enum):
    API_KEY = "api_key"
    MODEL = "model"
    CUSTOM_MODEL = "custom_model"
    DONE = "done"


class ConfigFlow:
    """Collect an API key and a model choice, one answer at a time."""

    def __init__(
        self,
        config: dict[str, Any],
        models: tuple[str, ...] = MODEL_CHOICES,
    ) -> None:
        self._config = deepcopy(config)
        self._models = models
        self.step = ConfigStep.API_KEY

    @property
    def finished(self) -> bool:
        return self.step is ConfigStep.DONE

    @property
    def config(self) -> dict[str, Any]:
        """Return the configuration with the answers applied so far."""
        return deepcopy(self._config)

    @property
    def custom_choice(self) -> int:
        return len(self._models) + 1

    @property
    def secret(self) -> bool:
        """True while the current answer should be hidden on screen."""
        return self.step is ConfigStep.API_KEY

    @property
    def prompt(self) -> str:
        """Return the text to show for the current step."""
        api = self._config["api"]
        if self.step is ConfigStep.API_KEY:
            current = mask_api_key(str(api.get("openrouter_api_key", "")))
            lines = ["Press Enter to keep current values."]
            if current:
                lines.append(f"Current OpenRouter API Key: {current}")
            lines.append("OpenRouter API Key:")
            return "\n".join(lines)
        if self.step is ConfigStep.MODEL:
            lines = [f"Current model: {api['model']}", ""]
            for index, model in enumerate(self._models, start=1):
                lines.append(f"{index}) {model}")
            lines.append(f"{self.custom_choice}) Custom model")
            lines.append("")
            lines.append(f"Select model (1-{self.custom_choice}):")
            return "\n".join(lines)
        if self.step is ConfigStep.CUSTOM_MODEL:
            return "Enter custom model identifier:"
        return "Configuration complete."

    def answer(self, text: str) -> None:
        """Apply an answer to the current step and advance."""
        value = text.strip()
        api = self._config["api"]

        if self.step is ConfigStep.API_KEY:
            if value:
                api["openrouter_api_key"] = value
            self.step = ConfigStep.MODEL
        elif self.step is ConfigStep.MODEL:
            self.step = ConfigStep.DONE
            if not value:
                return
            if value.isdigit():
                choice = int(value)
                if choice == self.custom_choice:
                    self.step = ConfigStep.CUSTOM_MODEL
                elif 1 <= choice <= len(self._models):
                    api["model"] = self._models[choice - 1]
                return
            # Anything else is taken as a model identifier.
            api["model"] = value
        elif self.step is ConfigStep.CUSTOM_MODEL:
            if value:
                api["model"] = value
            self.step = ConfigStep.DONE
