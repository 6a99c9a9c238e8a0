"""Domain exception hierarchy for the CodeAid chat client."""

from __future__ import annotations


class CodeAidError(RuntimeError):
    """Base class for all domain-level chat errors."""


class CompletionError(CodeAidError):
    """Raised when the completion service call fails."""


class CompletionConnectionError(CompletionError):
    """Raised when the completion service cannot be reached."""


class CompletionAuthError(CompletionError):
    """Raised when the API key is rejected."""


class ModelNotFoundError(CompletionError):
    """Raised when the configured model is unavailable."""


class EmptyResponseError(CompletionError):
    """Raised when the service answers without any choices."""


class MissingAPIKeyError(CompletionError):
    """Raised when no API key is configured."""


class ConfigValidationError(CodeAidError):
    """Raised when configuration cannot be validated safely."""
