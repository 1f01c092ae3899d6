"""
防抖调度

每次 schedule() 都会取消尚未触发的定时器并重新计时，
静默期结束后只执行一次回调，回调以 Fire-and-Forget 方式在事件循环中运行。
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional, Set

logger = logging.getLogger(__name__)


class DebouncedTask:
    """
    可取消的防抖任务

    使用示例:
        task = DebouncedTask(push_snapshot, delay=1.0, name="tab_sync")
        task.schedule()   # 每次变更后调用
        await task.flush()  # 立即执行挂起的回调
    """

    def __init__(
        self,
        callback: Callable[[], Awaitable[None]],
        delay: float,
        name: str = "debounced",
    ):
        """
        Args:
            callback: 静默期结束后执行的协程函数
            delay: 静默期（秒）
            name: 日志中使用的名称
        """
        self._callback = callback
        self.delay = delay
        self.name = name
        self._handle: Optional[asyncio.TimerHandle] = None
        self._running: Set[asyncio.Task] = set()

    @property
    def pending(self) -> bool:
        """是否有尚未触发的定时器"""
        return self._handle is not None

    def schedule(self) -> bool:
        """
        重置定时器

        Returns:
            是否成功调度（没有运行中的事件循环时跳过）
        """
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug(f"{self.name}_schedule_skipped: no running event loop")
            return False

        self.cancel()
        self._handle = loop.call_later(self.delay, self._fire)
        return True

    def cancel(self) -> None:
        """取消尚未触发的定时器"""
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self) -> None:
        self._handle = None
        task = asyncio.get_running_loop().create_task(self._run())
        self._running.add(task)
        task.add_done_callback(self._running.discard)

    async def _run(self) -> None:
        try:
            await self._callback()
        except Exception as e:
            logger.error(f"{self.name}_failed: {e}")

    async def flush(self, force: bool = False) -> bool:
        """
        立即执行挂起的回调

        Args:
            force: 没有挂起的定时器时也执行

        Returns:
            是否执行了回调
        """
        had_pending = self.pending
        self.cancel()
        await self.wait_idle()
        if not (had_pending or force):
            return False
        await self._run()
        return True

    async def wait_idle(self) -> None:
        """等待已触发的回调执行完毕"""
        if self._running:
            await asyncio.gather(*list(self._running), return_exceptions=True)
