"""目标选择：为每条命令挑出要操作的标签页"""

import logging

from .errors import NoMatchingTarget
from .models import Command, TargetContext

logger = logging.getLogger(__name__)


class TargetResolver:
    """
    选择顺序：
      1. tab_url：匹配 URL pattern 的第一个标签页
      2. tab_index：所有窗口中位置等于 tab_index 的第一个标签页
      3. 默认：最近获得焦点的窗口中的当前标签页
    """

    def __init__(self, host):
        self.host = host

    async def resolve(self, command: Command) -> TargetContext:
        if command.tab_url:
            contexts = await self.host.list_contexts(url=command.tab_url)
        elif command.tab_index is not None:
            contexts = [c for c in await self.host.list_contexts() if c.index == command.tab_index]
        else:
            contexts = await self.host.list_contexts(active=True)

        logger.info("  找到标签页: %d 个", len(contexts))
        if not contexts:
            raise NoMatchingTarget("No matching tab found.")
        return contexts[0]
