"""回报模块：把执行结果发回服务器，尽力而为"""

import logging

from .client import ServerClient
from .errors import TransportError
from .models import ExecutionOutcome
from .settings import Settings

logger = logging.getLogger(__name__)


class Reporter:
    """回报失败只记录日志，不重试、不重新入队"""

    def __init__(self, client: ServerClient):
        self.client = client

    async def report(self, settings: Settings, envelope_id: int, outcome: ExecutionOutcome) -> bool:
        try:
            status = await self.client.report(settings, envelope_id, outcome)
        except TransportError as e:
            logger.error("  ❌ 回报失败 #%d: %s", envelope_id, e)
            return False
        if status is not None and not 200 <= status < 300:
            logger.warning("  回报 #%d 被服务器拒绝: HTTP %d", envelope_id, status)
            return False
        return True
