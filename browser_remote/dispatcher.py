"""分发模块：选择标签页 → 执行命令 → 生成执行结果

dispatch() 是单条命令的隔离边界，永远不会抛出异常。
"""

import asyncio
import json
import logging
from typing import Any, Optional

from .errors import NoMatchingTarget
from .interpreter import CommandInterpreter
from .models import CommandEnvelope, ExecutionOutcome, InvalidCommand
from .resolver import TargetResolver

logger = logging.getLogger(__name__)


def encode_result(value: Any) -> str:
    """结构化结果编码为字符串，空结果记为 ok"""
    if not value:
        return "ok"
    return json.dumps(value, ensure_ascii=False, separators=(",", ":"))


class Dispatcher:
    """分发模块：每个条目恰好产生一个 ExecutionOutcome"""

    def __init__(self, resolver: TargetResolver, interpreter: CommandInterpreter,
                 timeout: Optional[float] = 30.0):
        self.resolver = resolver
        self.interpreter = interpreter
        self.timeout = timeout

    async def dispatch(self, envelope: CommandEnvelope) -> ExecutionOutcome:
        command = envelope.command
        try:
            if isinstance(command, InvalidCommand):
                return self._failed(command.reason)

            context = await self.resolver.resolve(command)
            logger.info("  标签页: #%s \"%s\" %s", context.id, context.title, context.url)

            # 页面卡住时整个轮询周期也会卡住，必须限时
            result = await asyncio.wait_for(
                self.resolver.host.run_in_context(context, self.interpreter.execute, command),
                self.timeout,
            )
        except NoMatchingTarget as e:
            return self._failed(str(e))
        except asyncio.TimeoutError:
            return self._failed(f"Command timed out after {self.timeout:g}s")
        except Exception as e:
            # 标签页被关闭、页面崩溃等宿主层错误
            return self._failed(str(e) or type(e).__name__)

        if isinstance(result, dict) and "error" in result:
            return self._failed(str(result["error"]) or "Unknown error")

        encoded = encode_result(result)
        logger.info("  ✓ 结果: %s", encoded)
        return ExecutionOutcome.executed(encoded)

    def _failed(self, message: str) -> ExecutionOutcome:
        logger.error("  ❌ 失败: %s", message)
        return ExecutionOutcome.error(message)
