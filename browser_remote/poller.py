"""轮询模块：拉取命令队列，逐条分发并回报"""

import asyncio
import contextlib
import logging
from typing import Awaitable, Callable, List, Optional, Set

from .client import ServerClient
from .dispatcher import Dispatcher
from .errors import EnvelopeError, TransportError
from .models import CommandEnvelope, InvalidCommand
from .reporter import Reporter
from .settings import SettingsStore

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 6.0


class PollLoop:
    """
    单次轮询周期：读取设置快照 → 拉取队列 → 按服务器给出的顺序逐条执行。

    第 N 条命令的结果回报完成后才开始执行第 N+1 条。
    周期不可重入：运行中再次唤醒会被直接忽略。
    """

    def __init__(self, store: SettingsStore, client: ServerClient,
                 dispatcher: Dispatcher, reporter: Reporter):
        self.store = store
        self.client = client
        self.dispatcher = dispatcher
        self.reporter = reporter
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    async def poll_once(self, reason: str = "timer") -> List[CommandEnvelope]:
        if self._running:
            logger.info("轮询进行中，忽略本次唤醒 (%s)", reason)
            return []
        self._running = True
        try:
            return await self._cycle(reason)
        finally:
            self._running = False

    async def _cycle(self, reason: str) -> List[CommandEnvelope]:
        settings = self.store.load()
        if not settings.complete:
            logger.warning("跳过轮询：设置不完整")
            return []
        if not settings.registered:
            logger.warning("跳过轮询：尚未注册")
            return []

        logger.info("轮询中... (%s)", reason)
        try:
            items = await self.client.poll(settings)
        except TransportError as e:
            logger.error("❌ %s", e)
            return []

        if items:
            logger.info("收到 %d 条命令", len(items))

        processed = []
        for item in items:
            try:
                envelope = CommandEnvelope.from_payload(item)
            except EnvelopeError as e:
                logger.error("❌ 跳过无法回报的条目: %s", e)
                continue

            command = envelope.command
            kind = command.declared_type if isinstance(command, InvalidCommand) else command.type
            logger.info("→ 命令 #%d type=\"%s\"", envelope.id, kind)

            outcome = await self.dispatcher.dispatch(envelope)
            await self.reporter.report(settings, envelope.id, outcome)
            processed.append(envelope)
        return processed


class WakeScheduler:
    """
    周期性唤醒轮询；也可以随时手动触发。

    单个周期失败不会让定时器停止。
    """

    def __init__(self, wake: Callable[[str], Awaitable[object]],
                 interval: float = DEFAULT_POLL_INTERVAL):
        self.wake = wake
        self.interval = interval
        self._task: Optional[asyncio.Task] = None
        self._pending: Set[asyncio.Task] = set()

    def start(self) -> None:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._run())
            logger.info("定时唤醒已启动（每 %.1f 秒）", self.interval)

    async def stop(self) -> None:
        """停止定时器，并取消仍在运行的手动唤醒"""
        tasks = list(self._pending)
        if self._task is not None:
            tasks.append(self._task)
            self._task = None
        for task in tasks:
            task.cancel()
        for task in tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._pending.clear()

    def trigger(self, reason: str = "manual") -> asyncio.Task:
        task = asyncio.ensure_future(self.fire(reason))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def fire(self, reason: str) -> None:
        logger.info("唤醒 (%s) → 轮询", reason)
        try:
            await self.wake(reason)
        except Exception:
            logger.exception("❌ 轮询周期异常结束")

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            await self.fire("timer")
