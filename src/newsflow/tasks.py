"""进程内后台任务 — 管道处理以 fire-and-forget 方式派发"""

from __future__ import annotations

import asyncio
import logging
from typing import Coroutine

logger = logging.getLogger("newsflow.tasks")


class TaskRunner:
    """
    持有后台任务的强引用直到完成，并在任务边界捕获异常写日志，
    防止异常变成无人处理的 "Task exception was never retrieved"。
    """

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def spawn(self, coro: Coroutine, name: str = "") -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro, name=name or None)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            logger.warning(f"后台任务被取消: {task.get_name()}")
            return
        exc = task.exception()
        if exc is not None:
            logger.error(f"后台任务异常: {task.get_name()}: {exc}", exc_info=exc)

    async def drain(self) -> None:
        """等待所有在途任务结束（含任务执行中新派发的任务）"""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
