"""设置存储：服务器地址、API key、浏览器 ID 与注册状态

每个轮询周期开始时重新读取，得到的是不可变快照；修改总是生成新快照。
"""

import json
import logging
import os
import secrets
import time
from dataclasses import asdict, dataclass, fields, replace
from pathlib import Path
from typing import Callable, Union

logger = logging.getLogger(__name__)

DEFAULT_LABEL = "My Browser"

# 注册与服务器地址 + API key 绑定，二者任一变化都要重新注册
_BINDING_FIELDS = ("server_url", "api_key")


def generate_browser_id() -> str:
    """brc + 毫秒时间戳(十六进制) + 8 字节随机数(十六进制)"""
    return f"brc{int(time.time() * 1000):x}{secrets.token_hex(8)}"


@dataclass(frozen=True)
class Settings:
    server_url: str = ""
    api_key: str = ""
    browser_id: str = ""
    label: str = DEFAULT_LABEL
    registered: bool = False

    @property
    def complete(self) -> bool:
        return bool(self.server_url and self.api_key and self.browser_id)

    @classmethod
    def from_dict(cls, data: dict) -> "Settings":
        known = {f.name for f in fields(cls)}
        values = {k: v for k, v in data.items() if k in known and v is not None}
        if "registered" in values:
            values["registered"] = bool(values["registered"])
        return cls(**values)


class SettingsStore:
    """JSON 文件形式的设置存储"""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def load(self) -> Settings:
        if not self.path.exists():
            return Settings()
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.error("❌ 设置文件无法读取，使用默认值: %s (%s)", self.path, e)
            return Settings()
        if not isinstance(data, dict):
            logger.error("❌ 设置文件格式错误，使用默认值: %s", self.path)
            return Settings()
        return Settings.from_dict(data)

    def save(self, settings: Settings) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_name(self.path.name + ".tmp")
        tmp.write_text(json.dumps(asdict(settings), ensure_ascii=False, indent=2), encoding="utf-8")
        os.replace(tmp, self.path)

    def update(self, **changes) -> Settings:
        """修改设置；服务器地址或 API key 真正变化时清除注册状态"""
        current = self.load()
        updated = replace(current, **changes)
        if any(getattr(current, name) != getattr(updated, name) for name in _BINDING_FIELDS):
            updated = replace(updated, registered=False)
        self.save(updated)
        return updated

    def mark_registered(self) -> Settings:
        return self._write(registered=True)

    def ensure_identity(self, generator: Callable[[], str] = generate_browser_id) -> Settings:
        """浏览器 ID 只在不存在时生成一次，之后不再改变"""
        current = self.load()
        if current.browser_id:
            return current
        browser_id = generator()
        logger.info("生成浏览器 ID: %s", browser_id)
        return self._write(browser_id=browser_id)

    def _write(self, **changes) -> Settings:
        updated = replace(self.load(), **changes)
        self.save(updated)
        return updated
