"""后台全量索引调度器。

调度器是一个显式持有的 asyncio 任务：``start()`` 后立即执行一次全量索引，
之后按固定间隔循环；``stop()`` 取消任务并等待其退出。全量索引在线程中执行，
不会阻塞事件循环。同一时刻只允许一个索引在运行，重叠的触发会被跳过并计数。
"""

from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Any, Awaitable, Callable, Optional

from app.packages.filebrowser.core.config import get_settings
from app.packages.filebrowser.core.logger import logger
from app.packages.filebrowser.core.timezone import Clock, isoformat, utc_now
from app.packages.filebrowser.services.indexer import file_indexer

Sleep = Callable[[float], Awaitable[Any]]


class IndexScheduler:
    def __init__(
        self,
        run_sweep: Callable[[], Any],
        *,
        interval_seconds: float,
        clock: Clock = utc_now,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._run_sweep = run_sweep
        self.interval_seconds = interval_seconds
        self._clock = clock
        self._sleep = sleep
        self._task: Optional[asyncio.Task] = None
        self._busy = False

        self.runs = 0
        self.skipped = 0
        self.last_started_at: Optional[datetime] = None
        self.last_finished_at: Optional[datetime] = None
        self.last_error: Optional[str] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def busy(self) -> bool:
        return self._busy

    async def tick(self) -> bool:
        """执行一次全量索引；已有索引在运行时直接跳过并返回 ``False``。"""
        if self._busy:
            self.skipped += 1
            logger.warning("index_scheduler.skip reason=overlap skipped=%s", self.skipped)
            return False

        self._busy = True
        self.last_started_at = self._clock()
        try:
            await asyncio.to_thread(self._run_sweep)
            self.last_error = None
        except Exception as exc:
            self.last_error = str(exc) or exc.__class__.__name__
            logger.exception("index_scheduler.sweep_failed")
        finally:
            self.runs += 1
            self.last_finished_at = self._clock()
            self._busy = False
        return True

    async def _loop(self) -> None:
        while True:
            await self.tick()
            await self._sleep(self.interval_seconds)

    def start(self) -> asyncio.Task:
        """在当前事件循环中启动调度任务，重复调用返回同一个任务。"""
        if self.running:
            return self._task
        self._task = asyncio.get_running_loop().create_task(self._loop(), name="index-scheduler")
        logger.info("index_scheduler.start interval_seconds=%s", self.interval_seconds)
        return self._task

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("index_scheduler.stop runs=%s skipped=%s", self.runs, self.skipped)

    def status(self) -> dict:
        return {
            "running": self.running,
            "busy": self._busy,
            "intervalSeconds": self.interval_seconds,
            "runs": self.runs,
            "skipped": self.skipped,
            "lastStartedAt": isoformat(self.last_started_at),
            "lastFinishedAt": isoformat(self.last_finished_at),
            "lastError": self.last_error,
        }


index_scheduler = IndexScheduler(
    file_indexer.run_full_sweep,
    interval_seconds=get_settings().index_interval_seconds,
)
