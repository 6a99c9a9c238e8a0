"""Lifecycle tracking for background asyncio tasks.

Completion calls are never force-killed when a turn ends: they are left to
finish in the background. This manager keeps a reference to each one so it
is not garbage collected mid-flight, logs failures nobody awaited, and lets
shutdown cancel whatever is still running.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

LOGGER = logging.getLogger(__name__)


class TaskManager:
    """Track named and anonymous background tasks."""

    def __init__(self) -> None:
        self._named: dict[str, asyncio.Task[Any]] = {}
        self._anonymous: set[asyncio.Task[Any]] = set()

    def add(self, task: asyncio.Task[Any], name: str | None = None) -> None:
        """Register a task, optionally under a unique name.

        A named task replaces any prior task with the same name without
        cancelling it. Anonymous tasks drop out of tracking when they finish.
        """
        if name is not None:
            self._named[name] = task
            return
        self._anonymous.add(task)
        task.add_done_callback(self._anonymous.discard)
        task.add_done_callback(self._log_unobserved_exception)

    @staticmethod
    def _log_unobserved_exception(task: asyncio.Task[Any]) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            LOGGER.warning(
                "task.background.exception",
                extra={
                    "event": "task.background.exception",
                    "task": task.get_name(),
                    "error_type": type(exc).__name__,
                    "error": str(exc),
                },
            )

    def get(self, name: str) -> asyncio.Task[Any] | None:
        """Return the named task or ``None``."""
        return self._named.get(name)

    def discard(self, name: str, task: asyncio.Task[Any] | None = None) -> None:
        """Stop tracking a named task without cancelling it.

        When ``task`` is given, the entry is only removed if it still refers
        to that task, so a finished task cannot untrack its replacement.
        """
        if task is not None and self._named.get(name) is not task:
            return
        self._named.pop(name, None)

    @property
    def pending(self) -> int:
        """Return how many tracked tasks are still running."""
        tasks = list(self._named.values()) + list(self._anonymous)
        return sum(1 for task in tasks if not task.done())

    async def cancel_all(self) -> None:
        """Cancel every tracked task and wait for them all."""
        tasks = list(self._named.values()) + list(self._anonymous)
        for task in tasks:
            if not task.done():
                task.cancel()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
            except Exception:  # noqa: BLE001 - already reported by the done callback.
                pass
        self._named.clear()
        self._anonymous.clear()

    async def await_all(self) -> None:
        """Wait for every tracked task without cancelling any."""
        tasks = list(self._named.values()) + list(self._anonymous)
        for task in tasks:
            if task.done():
                continue
            try:
                await task
            except asyncio.CancelledError:
                pass
