"""Tests for JSON configuration loading, validation, and saving."""

from __future__ import annotations

import json
import os
import stat
import tempfile
from pathlib import Path
import unittest
from unittest.mock import patch

from codeaid.config import (
    API_KEY_ENV_VAR,
    DEFAULT_CONFIG,
    DEFAULT_MODEL,
    config_exists,
    load_config,
    mask_api_key,
    resolve_api_key,
    save_config,
)
from codeaid.exceptions import ConfigValidationError


class ConfigTests(unittest.TestCase):
    """Validate config defaults, merging, and safety fallbacks."""

    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.path = Path(self._tmp.name) / "config.json"

    def _write(self, payload: object) -> None:
        self.path.write_text(json.dumps(payload), encoding="utf-8")

    def test_missing_file_yields_defaults(self) -> None:
        config = load_config(self.path)
        self.assertEqual(config, DEFAULT_CONFIG)
        self.assertEqual(config["api"]["model"], DEFAULT_MODEL)
        self.assertEqual(config["timeouts"]["request_seconds"], 10.0)
        self.assertEqual(config["timeouts"]["failsafe_seconds"], 15.0)
        self.assertFalse(config_exists(self.path))

    def test_partial_file_is_merged_with_defaults(self) -> None:
        self._write({"api": {"model": "meta-llama/llama-3-8b-instruct"}})

        config = load_config(self.path)

        self.assertEqual(config["api"]["model"], "meta-llama/llama-3-8b-instruct")
        self.assertEqual(config["api"]["max_tokens"], 1024)
        self.assertEqual(config["app"]["title"], "CodeAid")
        self.assertTrue(config_exists(self.path))

    def test_legacy_flat_layout_is_migrated(self) -> None:
        self._write({"openrouter_api_key": "sk-legacy-123456", "model": "custom/model"})

        with self.assertLogs("codeaid.config", level="INFO"):
            config = load_config(self.path)

        self.assertEqual(config["api"]["openrouter_api_key"], "sk-legacy-123456")
        self.assertEqual(config["api"]["model"], "custom/model")
        self.assertNotIn("openrouter_api_key", config)

    def test_invalid_json_falls_back_to_defaults(self) -> None:
        self.path.write_text("{not json", encoding="utf-8")
        self.assertEqual(load_config(self.path), DEFAULT_CONFIG)

    def test_non_object_json_falls_back_to_defaults(self) -> None:
        self._write(["a", "b"])
        self.assertEqual(load_config(self.path), DEFAULT_CONFIG)

    def test_invalid_values_fall_back_to_defaults(self) -> None:
        self._write({"api": {"base_url": "ftp://example.com"}})
        self.assertEqual(load_config(self.path), DEFAULT_CONFIG)

    def test_request_timeout_must_be_below_failsafe(self) -> None:
        self._write({"timeouts": {"request_seconds": 20, "failsafe_seconds": 15}})
        config = load_config(self.path)
        self.assertEqual(config["timeouts"], DEFAULT_CONFIG["timeouts"])

    def test_base_url_trailing_slash_is_stripped(self) -> None:
        self._write({"api": {"base_url": "https://example.com/api/v1/"}})
        self.assertEqual(
            load_config(self.path)["api"]["base_url"], "https://example.com/api/v1"
        )

    def test_log_level_is_normalized(self) -> None:
        self._write({"logging": {"level": "debug"}})
        self.assertEqual(load_config(self.path)["logging"]["level"], "DEBUG")

    def test_save_writes_indented_json_with_private_permissions(self) -> None:
        config = load_config(self.path)
        config["api"]["openrouter_api_key"] = "sk-or-abcdef123456"

        saved = save_config(config, self.path)

        self.assertEqual(saved, self.path)
        text = self.path.read_text(encoding="utf-8")
        self.assertIn('\n  "api": {', text)
        self.assertEqual(load_config(self.path)["api"]["openrouter_api_key"], "sk-or-abcdef123456")
        if os.name == "posix":
            mode = stat.S_IMODE(self.path.stat().st_mode)
            self.assertEqual(mode, 0o600)

    def test_save_creates_missing_directory(self) -> None:
        nested = Path(self._tmp.name) / "nested" / "dir" / "config.json"
        save_config(load_config(nested), nested)
        self.assertTrue(nested.exists())

    def test_save_rejects_invalid_config(self) -> None:
        config = load_config(self.path)
        config["timeouts"]["request_seconds"] = 30
        with self.assertRaises(ConfigValidationError):
            save_config(config, self.path)
        self.assertFalse(self.path.exists())


class ApiKeyTests(unittest.TestCase):
    """Validate API key resolution and masking."""

    def test_configured_key_wins_over_environment(self) -> None:
        config = {"api": {"openrouter_api_key": " sk-config "}}
        with patch.dict(os.environ, {API_KEY_ENV_VAR: "sk-env"}), patch(
            "codeaid.config.load_dotenv"
        ) as dotenv_mock:
            self.assertEqual(resolve_api_key(config), "sk-config")
        dotenv_mock.assert_not_called()

    def test_environment_is_used_when_config_is_empty(self) -> None:
        config = {"api": {"openrouter_api_key": ""}}
        with patch.dict(os.environ, {API_KEY_ENV_VAR: "sk-env"}), patch(
            "codeaid.config.load_dotenv"
        ) as dotenv_mock:
            self.assertEqual(resolve_api_key(config), "sk-env")
        dotenv_mock.assert_called_once()

    def test_missing_everywhere_is_empty(self) -> None:
        with patch.dict(os.environ, {}, clear=True), patch("codeaid.config.load_dotenv"):
            self.assertEqual(resolve_api_key({"api": {}}), "")

    def test_mask_api_key(self) -> None:
        self.assertEqual(mask_api_key(""), "")
        self.assertEqual(mask_api_key("short"), "****")
        self.assertEqual(mask_api_key("sk-or-v1-abcdef9f2c"), "sk-o...9f2c")


if __name__ == "__main__":
    unittest.main()
