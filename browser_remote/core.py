"""远程控制 Agent 核心类：浏览器、服务器连接与唤醒来源的生命周期"""

import asyncio
import contextlib
import logging
import signal
from typing import Any, Dict, Optional

import aiohttp
from playwright.async_api import async_playwright

from .client import ServerClient
from .config import AgentConfig
from .dispatcher import Dispatcher
from .errors import ConfigurationError, RegistrationError, TransportError
from .host import PlaywrightHost
from .interpreter import CommandInterpreter
from .poller import PollLoop, WakeScheduler
from .reporter import Reporter
from .resolver import TargetResolver
from .settings import Settings, SettingsStore

logger = logging.getLogger(__name__)


class RemoteAgent:
    """远程控制 Agent：定期向服务器询问下一步要做什么，并在标签页里执行"""

    def __init__(self, config: AgentConfig, store: Optional[SettingsStore] = None):
        self.config = config
        self.store = store or SettingsStore(config.settings_path)
        self.interpreter = CommandInterpreter()
        self.client: Optional[ServerClient] = None
        self.host: Optional[PlaywrightHost] = None
        self.poller: Optional[PollLoop] = None
        self.scheduler: Optional[WakeScheduler] = None

    # ── 设置 ──────────────────────────────────

    def prepare_settings(self) -> Settings:
        """应用环境变量中的服务器设置，并确保浏览器 ID 存在"""
        overrides = self.config.settings_overrides()
        current = self.store.load()
        if any(getattr(current, k) != v for k, v in overrides.items()):
            self.store.update(**overrides)
        settings = self.store.ensure_identity()
        logger.info("浏览器 ID: %s", settings.browser_id)
        logger.info("已注册: %s", "是" if settings.registered else "否")
        return settings

    # ── 注册 ──────────────────────────────────

    async def register(self, client: Optional[ServerClient] = None) -> Dict[str, Any]:
        """手动注册；设置不完整抛出 ConfigurationError，服务器拒绝抛出 RegistrationError"""
        settings = self.store.load()
        if not settings.complete:
            raise ConfigurationError("server_url, api_key and browser_id are required.")

        logger.info("注册中... server=%s browser=%s", settings.server_url, settings.browser_id)
        if client is not None:
            data = await client.register(settings)
        else:
            async with aiohttp.ClientSession() as session:
                data = await self._make_client(session).register(settings)

        # 注册期间设置被改动过，则这次注册不再有效
        current = self.store.load()
        if (current.server_url, current.api_key) == (settings.server_url, settings.api_key):
            self.store.mark_registered()
            logger.info("✓ 注册成功: status=%s", data.get("status"))
        else:
            logger.warning("注册期间设置已变更，忽略本次注册结果")
        return data

    async def auto_register(self) -> bool:
        """启动时自动注册；失败只记录日志"""
        if not self.store.load().complete:
            logger.info("跳过自动注册：设置不完整")
            return False
        try:
            await self.register(self.client)
        except (RegistrationError, TransportError) as e:
            logger.warning("自动注册失败: %s", e)
            return False
        return True

    # ── 运行 ──────────────────────────────────

    def _make_client(self, session: aiohttp.ClientSession) -> ServerClient:
        return ServerClient(session, self.config.api_path, self.config.request_timeout)

    def _wire(self, session: aiohttp.ClientSession, windows) -> None:
        self.client = self._make_client(session)
        self.host = PlaywrightHost(windows)
        dispatcher = Dispatcher(TargetResolver(self.host), self.interpreter,
                                self.config.command_timeout)
        self.poller = PollLoop(self.store, self.client, dispatcher, Reporter(self.client))
        self.scheduler = WakeScheduler(self.poller.poll_once, self.config.poll_interval)

    @contextlib.asynccontextmanager
    async def _environment(self):
        """HTTP 会话 + 浏览器；设置了 cdp_url 时连接用户已打开的 Chrome"""
        async with aiohttp.ClientSession() as session, async_playwright() as p:
            if self.config.cdp_url:
                browser = await p.chromium.connect_over_cdp(self.config.cdp_url)
                logger.info("✓ 已连接浏览器 %s", self.config.cdp_url)
            else:
                browser = await p.chromium.launch(headless=self.config.headless)
                context = await browser.new_context(bypass_csp=True)
                page = await context.new_page()
                if self.config.start_url:
                    await page.goto(self.config.start_url)
                logger.info("✓ 浏览器已启动")

            self._wire(session, lambda: browser.contexts)
            try:
                yield
            finally:
                await browser.close()

    async def run_once(self) -> int:
        """执行一个轮询周期后退出，供外部调度器（cron 等）使用"""
        self.prepare_settings()
        async with self._environment():
            if not self.store.load().registered:
                await self.auto_register()
            processed = await self.poller.poll_once("once")
        return len(processed)

    async def run(self) -> None:
        """常驻运行：启动即注册并轮询，之后由定时器和 SIGUSR1 唤醒"""
        logger.info("=== Agent 启动 ===")
        self.prepare_settings()
        async with self._environment():
            await self.auto_register()
            await self.scheduler.fire("startup")
            self.scheduler.start()

            stop = asyncio.Event()
            loop = asyncio.get_running_loop()
            with contextlib.suppress(NotImplementedError):
                loop.add_signal_handler(signal.SIGTERM, stop.set)
                if hasattr(signal, "SIGUSR1"):
                    loop.add_signal_handler(signal.SIGUSR1, self.scheduler.trigger, "signal")
            try:
                await stop.wait()
            finally:
                await self.scheduler.stop()
                logger.info("✓ Agent 已停止")
