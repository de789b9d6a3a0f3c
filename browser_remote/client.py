"""服务器通信：注册、拉取命令队列、回报结果"""

import asyncio
import json
import logging
from typing import Any, Dict, List, Optional

import aiohttp

from .errors import RegistrationError, TransportError
from .models import ExecutionOutcome
from .settings import Settings

logger = logging.getLogger(__name__)

DEFAULT_API_PATH = "/wp-json/brc/v1"


class ServerClient:
    """
    HTTP/JSON 协议客户端。

    不保存配置：服务器地址和凭据来自每次调用传入的 Settings 快照。
    """

    def __init__(self, session: aiohttp.ClientSession, api_path: str = DEFAULT_API_PATH,
                 timeout: float = 15.0):
        self.session = session
        self.api_path = "/" + api_path.strip("/") if api_path.strip("/") else ""
        self.timeout = aiohttp.ClientTimeout(total=timeout)

    def _url(self, settings: Settings, path: str) -> str:
        return settings.server_url.rstrip("/") + self.api_path + path

    @staticmethod
    def _decode(text: str) -> Any:
        try:
            return json.loads(text) if text else {}
        except ValueError as e:
            raise TransportError(f"Malformed response body: {e}") from e

    async def register(self, settings: Settings) -> Dict[str, Any]:
        """注册浏览器；非 2xx 抛出 RegistrationError"""
        payload = {
            "api_key": settings.api_key,
            "browser_id": settings.browser_id,
            "label": settings.label,
        }
        try:
            async with self.session.post(self._url(settings, "/register"), json=payload,
                                         timeout=self.timeout) as resp:
                text = await resp.text()
                status = resp.status
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise TransportError(f"Register request failed: {e}") from e

        try:
            data = self._decode(text)
        except TransportError:
            data = {}
        if not isinstance(data, dict):
            data = {}
        logger.info("注册 HTTP %d %s", status, text[:200])

        if not 200 <= status < 300:
            raise RegistrationError(data.get("message") or "Registration failed")
        return data

    async def poll(self, settings: Settings) -> List[Any]:
        """拉取待执行命令；任何失败都抛出 TransportError"""
        params = {"api_key": settings.api_key, "browser_id": settings.browser_id}
        try:
            async with self.session.get(self._url(settings, "/poll"), params=params,
                                        timeout=self.timeout) as resp:
                text = await resp.text()
                status = resp.status
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise TransportError(f"Poll network error: {e}") from e

        logger.debug("轮询 HTTP %d", status)
        if not 200 <= status < 300:
            raise TransportError(f"Poll error: HTTP {status} {text[:200]}")

        data = self._decode(text)
        if not isinstance(data, dict):
            raise TransportError("Malformed response body: expected an object")
        commands = data.get("commands") or []
        if not isinstance(commands, list):
            raise TransportError("Malformed response body: 'commands' is not a list")
        return commands

    async def report(self, settings: Settings, envelope_id: int,
                     outcome: ExecutionOutcome) -> Optional[int]:
        """回报执行结果，返回 HTTP 状态码"""
        payload = {
            "api_key": settings.api_key,
            "browser_id": settings.browser_id,
            "status": outcome.status,
            "result": outcome.result,
        }
        try:
            async with self.session.post(self._url(settings, f"/result/{envelope_id}"),
                                         json=payload, timeout=self.timeout) as resp:
                text = await resp.text()
                status = resp.status
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise TransportError(f"Report failed: {e}") from e

        logger.info("  回报 HTTP %d: status=%s %s", status, outcome.status, text[:200])
        return status
