"""Browser Remote Agent 包

包含各个模块：
- models: 数据模型（命令、队列条目、执行结果）
- settings: 设置存储与浏览器 ID
- config: 运行配置
- dom: DOM 抽象
- interpreter: 命令执行
- host: Playwright 宿主
- resolver: 目标标签页选择
- client: 服务器通信
- dispatcher / reporter: 分发与回报
- poller: 轮询与定时唤醒
- core: 核心 Agent 类
"""

from .models import CommandEnvelope, ExecutionOutcome, TargetContext, decode_command
from .settings import Settings, SettingsStore, generate_browser_id
from .config import AgentConfig
from .interpreter import CommandInterpreter
from .resolver import TargetResolver
from .client import ServerClient
from .dispatcher import Dispatcher
from .reporter import Reporter
from .poller import PollLoop, WakeScheduler
from .core import RemoteAgent

__all__ = [
    "CommandEnvelope",
    "ExecutionOutcome",
    "TargetContext",
    "decode_command",
    "Settings",
    "SettingsStore",
    "generate_browser_id",
    "AgentConfig",
    "CommandInterpreter",
    "TargetResolver",
    "ServerClient",
    "Dispatcher",
    "Reporter",
    "PollLoop",
    "WakeScheduler",
    "RemoteAgent",
]
