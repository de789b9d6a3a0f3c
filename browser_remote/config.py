"""运行配置：从环境变量（及 .env）读取"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from .client import DEFAULT_API_PATH
from .errors import ConfigurationError
from .poller import DEFAULT_POLL_INTERVAL

DEFAULT_SETTINGS_PATH = Path.home() / ".browser-remote" / "settings.json"


def _flag(value: Optional[str], default: bool) -> bool:
    if value is None or value == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _seconds(env: Mapping[str, str], name: str, default: float) -> float:
    value = env.get(name)
    if not value:
        return default
    try:
        seconds = float(value)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number of seconds, got {value!r}") from None
    if seconds <= 0:
        raise ConfigurationError(f"{name} must be positive, got {value!r}")
    return seconds


@dataclass(frozen=True)
class AgentConfig:
    settings_path: Path = DEFAULT_SETTINGS_PATH
    server_url: Optional[str] = None
    api_key: Optional[str] = None
    label: Optional[str] = None
    api_path: str = DEFAULT_API_PATH
    poll_interval: float = DEFAULT_POLL_INTERVAL
    request_timeout: float = 15.0
    command_timeout: float = 30.0  # 单条命令在页面内的执行时限
    headless: bool = False
    cdp_url: Optional[str] = None  # 设置后连接已有的 Chrome，而不是启动新浏览器
    start_url: Optional[str] = None
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "AgentConfig":
        env = os.environ if environ is None else environ
        return cls(
            settings_path=Path(env.get("BRC_SETTINGS_PATH") or DEFAULT_SETTINGS_PATH),
            server_url=env.get("BRC_SERVER_URL") or None,
            api_key=env.get("BRC_API_KEY") or None,
            label=env.get("BRC_LABEL") or None,
            api_path=env.get("BRC_API_PATH", DEFAULT_API_PATH),
            poll_interval=_seconds(env, "BRC_POLL_INTERVAL", DEFAULT_POLL_INTERVAL),
            request_timeout=_seconds(env, "BRC_REQUEST_TIMEOUT", 15.0),
            command_timeout=_seconds(env, "BRC_COMMAND_TIMEOUT", 30.0),
            headless=_flag(env.get("BRC_HEADLESS"), False),
            cdp_url=env.get("BRC_CDP_URL") or None,
            start_url=env.get("BRC_START_URL") or None,
            log_level=(env.get("BRC_LOG_LEVEL") or "INFO").upper(),
        )

    def settings_overrides(self) -> dict:
        """环境变量中给出的服务器设置"""
        overrides = {"server_url": self.server_url, "api_key": self.api_key, "label": self.label}
        return {k: v for k, v in overrides.items() if v is not None}
