"""Single-flight coordination of completion requests, one per conversation turn.

Each ``submit`` appends the prompt to the store, snapshots the history, and
starts the completion call on its own task. A second task, the turn
operation handed back to the caller, races three signals:

* the call finishing with a reply or an error,
* the failsafe timer (``failsafe_seconds``) expiring,
* the turn's :class:`RequestHandle` being cancelled, either by the user or
  by a newer ``submit``.

Whichever fires first decides the turn's only result. The call carries its
own, shorter deadline (``request_seconds``) so the failsafe is only reached
when that deadline is not honoured. A call that completes after its handle
was cancelled is dropped, never delivered.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import Enum
import itertools
import logging
from typing import Any, Union

from .completion import CompletionClient
from .exceptions import CompletionError, ConfigValidationError
from .history import ConversationStore, Entry
from .task_manager import TaskManager

LOGGER = logging.getLogger(__name__)

DEFAULT_REQUEST_TIMEOUT_SECONDS = 10.0
DEFAULT_FAILSAFE_TIMEOUT_SECONDS = 15.0


class TurnPhase(str, Enum):
    """Coordinator lifecycle from the point of view of the latest turn."""

    IDLE = "IDLE"
    SUBMITTED = "SUBMITTED"
    IN_FLIGHT = "IN_FLIGHT"
    TERMINAL = "TERMINAL"


class CancelCause(str, Enum):
    """Why a turn's handle was cancelled."""

    USER = "user"
    SUPERSEDED = "superseded"
    FAILSAFE = "failsafe"
    SHUTDOWN = "shutdown"


@dataclass(frozen=True)
class Success:
    """The model replied."""

    text: str
    turn_id: int = 0


@dataclass(frozen=True)
class Failure:
    """The call failed, returned nothing, or timed out."""

    reason: str
    turn_id: int = 0


@dataclass(frozen=True)
class Canceled:
    """The turn was cancelled before a result was accepted."""

    cause: CancelCause = CancelCause.USER
    turn_id: int = 0

    @property
    def superseded(self) -> bool:
        """True when a newer turn replaced this one."""
        return self.cause is CancelCause.SUPERSEDED


TurnResult = Union[Success, Failure, Canceled]


def timeout_message(seconds: float) -> str:
    return f"Request timed out after {seconds:g} seconds. Please try again."


class RequestHandle:
    """Cancellation token for the one outstanding completion call."""

    def __init__(self, turn_id: int) -> None:
        self.turn_id = turn_id
        self.done = False
        self.cause: CancelCause | None = None
        self._cancelled = asyncio.Event()
        self._task: asyncio.Task[Any] | None = None

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def attach(self, task: asyncio.Task[Any]) -> None:
        """Bind the completion task this handle can cancel."""
        self._task = task

    def cancel(self, cause: CancelCause = CancelCause.USER) -> bool:
        """Invalidate the turn and ask its call to stop.

        Returns False when the handle already finished or was cancelled.
        """
        if self.done or self._cancelled.is_set():
            return False
        self.cause = cause
        self._cancelled.set()
        if self._task is not None and not self._task.done():
            self._task.cancel()
        return True

    async def wait_cancelled(self) -> None:
        await self._cancelled.wait()


class RequestCoordinator:
    """Own the outstanding request handle and resolve every turn exactly once."""

    def __init__(
        self,
        store: ConversationStore,
        client: CompletionClient,
        model: str,
        request_timeout: float = DEFAULT_REQUEST_TIMEOUT_SECONDS,
        failsafe_timeout: float = DEFAULT_FAILSAFE_TIMEOUT_SECONDS,
    ) -> None:
        if request_timeout <= 0 or request_timeout >= failsafe_timeout:
            raise ConfigValidationError(
                "request_timeout must be positive and shorter than failsafe_timeout "
                f"(got {request_timeout:g}s and {failsafe_timeout:g}s)."
            )
        self.store = store
        self.client = client
        self.model = model
        self.request_timeout = request_timeout
        self.failsafe_timeout = failsafe_timeout
        self.phase = TurnPhase.IDLE
        self._handle: RequestHandle | None = None
        self._turn_ids = itertools.count(1)
        self._calls = TaskManager()

    @property
    def outstanding(self) -> RequestHandle | None:
        """Return the live handle, if a turn is still unresolved."""
        return self._handle

    def submit(self, prompt: str) -> asyncio.Task[TurnResult]:
        """Start a turn for ``prompt`` and return the task that resolves it.

        Must be called from the running event loop. Never blocks.
        """
        previous = self._handle
        if previous is not None and previous.cancel(CancelCause.SUPERSEDED):
            LOGGER.info(
                "coordinator.turn.superseded",
                extra={
                    "event": "coordinator.turn.superseded",
                    "turn_id": previous.turn_id,
                },
            )

        self.store.append_user(prompt)
        snapshot = self.store.snapshot()

        handle = RequestHandle(next(self._turn_ids))
        self._handle = handle
        self.phase = TurnPhase.SUBMITTED

        call = asyncio.create_task(
            self._call(handle, snapshot), name=f"codeaid-call-{handle.turn_id}"
        )
        handle.attach(call)
        self._calls.add(call)
        self.phase = TurnPhase.IN_FLIGHT

        LOGGER.info(
            "coordinator.turn.submitted",
            extra={
                "event": "coordinator.turn.submitted",
                "turn_id": handle.turn_id,
                "model": self.model,
                "history_length": len(snapshot),
            },
        )
        return asyncio.create_task(
            self._resolve(handle, call), name=f"codeaid-turn-{handle.turn_id}"
        )

    def cancel(self) -> bool:
        """Cancel the outstanding turn, if any. Returns whether one was cancelled."""
        handle = self._handle
        if handle is None:
            return False
        cancelled = handle.cancel(CancelCause.USER)
        if cancelled:
            LOGGER.info(
                "coordinator.turn.cancel_requested",
                extra={
                    "event": "coordinator.turn.cancel_requested",
                    "turn_id": handle.turn_id,
                },
            )
        return cancelled

    async def drain(self) -> None:
        """Wait for background completion calls to finish on their own."""
        await self._calls.await_all()

    async def aclose(self) -> None:
        """Cancel the outstanding turn and every background call."""
        if self._handle is not None:
            self._handle.cancel(CancelCause.SHUTDOWN)
        await self._calls.cancel_all()

    async def _call(
        self, handle: RequestHandle, snapshot: tuple[Entry, ...]
    ) -> TurnResult | None:
        """Run the completion under the request deadline.

        Returns None when the handle was cancelled by the time the call
        finished, in which case nothing may be delivered for it.
        """
        try:
            async with asyncio.timeout(self.request_timeout) as deadline:
                text = await self.client.complete(snapshot, self.model)
        except TimeoutError:
            result: TurnResult = Failure(
                timeout_message(self.request_timeout), handle.turn_id
            )
        except CompletionError as exc:
            result = Failure(str(exc), handle.turn_id)
        except Exception as exc:  # noqa: BLE001 - every outcome must resolve the turn.
            LOGGER.exception(
                "coordinator.call.unexpected_error",
                extra={
                    "event": "coordinator.call.unexpected_error",
                    "turn_id": handle.turn_id,
                },
            )
            result = Failure(f"Unexpected error: {exc}", handle.turn_id)
        else:
            if deadline.expired():
                # The client swallowed the deadline and answered late anyway.
                result = Failure(timeout_message(self.request_timeout), handle.turn_id)
            else:
                result = Success(text, handle.turn_id)

        if handle.cancelled:
            LOGGER.info(
                "coordinator.result.suppressed",
                extra={
                    "event": "coordinator.result.suppressed",
                    "turn_id": handle.turn_id,
                    "cause": handle.cause.value if handle.cause else None,
                },
            )
            return None
        return result

    async def _resolve(
        self, handle: RequestHandle, call: asyncio.Task[TurnResult | None]
    ) -> TurnResult:
        cancel_signal = asyncio.ensure_future(handle.wait_cancelled())
        try:
            done, _ = await asyncio.wait(
                {call, cancel_signal},
                timeout=self.failsafe_timeout,
                return_when=asyncio.FIRST_COMPLETED,
            )
            if handle.cancelled:
                result: TurnResult = Canceled(
                    handle.cause or CancelCause.USER, handle.turn_id
                )
            elif call in done:
                result = self._call_outcome(handle, call)
            else:
                handle.cancel(CancelCause.FAILSAFE)
                result = Failure(timeout_message(self.failsafe_timeout), handle.turn_id)
        except asyncio.CancelledError:
            handle.cancel(CancelCause.SHUTDOWN)
            self._finish(handle, None)
            raise
        except Exception as exc:  # noqa: BLE001 - the UI must never wait forever.
            LOGGER.exception(
                "coordinator.turn.unexpected_error",
                extra={
                    "event": "coordinator.turn.unexpected_error",
                    "turn_id": handle.turn_id,
                },
            )
            result = Failure(f"Unexpected error: {exc}", handle.turn_id)
        finally:
            cancel_signal.cancel()

        self._finish(handle, result)
        return result

    @staticmethod
    def _call_outcome(
        handle: RequestHandle, call: asyncio.Task[TurnResult | None]
    ) -> TurnResult:
        if call.cancelled():
            return Canceled(handle.cause or CancelCause.USER, handle.turn_id)
        exc = call.exception()
        if exc is not None:
            return Failure(f"Unexpected error: {exc}", handle.turn_id)
        outcome = call.result()
        if outcome is None:
            return Canceled(handle.cause or CancelCause.USER, handle.turn_id)
        return outcome

    def _finish(self, handle: RequestHandle, result: TurnResult | None) -> None:
        handle.done = True
        if self._handle is handle:
            self._handle = None
            self.phase = TurnPhase.TERMINAL
        LOGGER.info(
            "coordinator.turn.finished",
            extra={
                "event": "coordinator.turn.finished",
                "turn_id": handle.turn_id,
                "result": type(result).__name__ if result is not None else "Aborted",
            },
        )
