"""
Tests for fire-and-forget task spawning.
"""

import asyncio

from errors import BackgroundTaskError
from services.background import BackgroundTasks, log_error_sink


class TestBackgroundTasks:
    def test_spawn_does_not_block(self):
        order = []

        async def job():
            order.append("job")

        async def run():
            tasks = BackgroundTasks()
            tasks.spawn("job", job())
            order.append("spawned")
            await tasks.drain()
            return tasks

        tasks = asyncio.run(run())
        assert order == ["spawned", "job"]
        assert tasks.spawned == ["job"]
        assert tasks.pending == 0

    def test_failure_routed_to_sink(self):
        seen = []

        async def boom():
            raise RuntimeError("title model down")

        async def run():
            tasks = BackgroundTasks(error_sink=lambda name, err: seen.append((name, str(err))))
            tasks.spawn("title", boom())
            await tasks.drain()

        asyncio.run(run())
        assert seen == [("title", "title model down")]

    def test_sink_failure_contained(self):
        def bad_sink(name, err):
            raise ValueError("sink broke")

        async def boom():
            raise RuntimeError("x")

        async def run():
            tasks = BackgroundTasks(error_sink=bad_sink)
            tasks.spawn("t", boom())
            await tasks.drain()
            return tasks.pending

        assert asyncio.run(run()) == 0

    def test_drain_timeout_cancels(self):
        async def slow():
            await asyncio.sleep(10)

        async def run():
            tasks = BackgroundTasks()
            task = tasks.spawn("slow", slow())
            await tasks.drain(timeout=0.01)
            return task

        assert asyncio.run(run()).cancelled()

    def test_default_sink_logs(self, caplog):
        log_error_sink("title", RuntimeError("boom"))
        assert "BACKGROUND_TASK_FAILED" in caplog.text

    def test_default_sink_keeps_background_error(self, caplog):
        log_error_sink("title", BackgroundTaskError("Title generation failed", task="title"))
        assert "Title generation failed" in caplog.text
