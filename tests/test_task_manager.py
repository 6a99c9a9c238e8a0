"""Tests for the TaskManager lifecycle helper."""

from __future__ import annotations

import asyncio
import unittest

from codeaid.task_manager import TaskManager


async def _sleeper(marker: list[str], label: str) -> None:
    try:
        await asyncio.sleep(9999)
    except asyncio.CancelledError:
        marker.append(label)
        raise


class TaskManagerTests(unittest.IsolatedAsyncioTestCase):
    """Validate named and anonymous task lifecycle management."""

    async def test_named_task_is_cancelled_by_cancel_all(self) -> None:
        tm = TaskManager()
        cancelled: list[str] = []
        task = asyncio.create_task(_sleeper(cancelled, "named"))
        tm.add(task, name="active_turn")
        await asyncio.sleep(0)
        self.assertIs(tm.get("active_turn"), task)

        await tm.cancel_all()

        self.assertTrue(task.done())
        self.assertEqual(cancelled, ["named"])
        self.assertIsNone(tm.get("active_turn"))

    async def test_discard_only_removes_matching_task(self) -> None:
        tm = TaskManager()
        first = asyncio.create_task(asyncio.sleep(9999))
        second = asyncio.create_task(asyncio.sleep(9999))
        tm.add(first, name="x")
        tm.add(second, name="x")

        tm.discard("x", first)
        self.assertIs(tm.get("x"), second)

        tm.discard("x", second)
        self.assertIsNone(tm.get("x"))
        self.assertFalse(second.done())
        first.cancel()
        second.cancel()
        await asyncio.gather(first, second, return_exceptions=True)

    async def test_anonymous_tasks_self_clean(self) -> None:
        tm = TaskManager()

        async def _quick() -> None:
            return None

        task = asyncio.create_task(_quick())
        tm.add(task)
        await task
        await asyncio.sleep(0)
        self.assertEqual(tm.pending, 0)

    async def test_unobserved_failure_is_logged(self) -> None:
        tm = TaskManager()

        async def _boom() -> None:
            raise RuntimeError("lost")

        with self.assertLogs("codeaid.task_manager", level="WARNING") as logs:
            task = asyncio.create_task(_boom(), name="background-call")
            tm.add(task)
            with self.assertRaises(RuntimeError):
                await task
            await asyncio.sleep(0)

        self.assertTrue(any("task.background.exception" in line for line in logs.output))

    async def test_await_all_waits_without_cancelling(self) -> None:
        tm = TaskManager()
        release = asyncio.Event()
        finished: list[bool] = []

        async def _worker() -> None:
            await release.wait()
            finished.append(True)

        tm.add(asyncio.create_task(_worker()))
        self.assertEqual(tm.pending, 1)
        asyncio.get_running_loop().call_soon(release.set)
        await tm.await_all()

        self.assertEqual(finished, [True])

    async def test_cancel_all_handles_mixed_tasks(self) -> None:
        tm = TaskManager()
        results: list[str] = []
        tm.add(asyncio.create_task(_sleeper(results, "named")), name="n1")
        tm.add(asyncio.create_task(_sleeper(results, "anon")))
        await asyncio.sleep(0)

        await tm.cancel_all()

        self.assertCountEqual(results, ["named", "anon"])
        self.assertEqual(tm.pending, 0)


if __name__ == "__main__":
    unittest.main()
