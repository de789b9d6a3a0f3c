"""异常定义：按失败阶段划分"""


class AgentError(Exception):
    """所有 agent 异常的基类"""


class ConfigurationError(AgentError):
    """缺少服务器地址、API key 或浏览器 ID"""


class TransportError(AgentError):
    """网络不可达、非 2xx 响应或响应体无法解析"""


class RegistrationError(AgentError):
    """服务器拒绝注册"""


class NoMatchingTarget(AgentError):
    """没有符合条件的标签页"""


class EnvelopeError(AgentError):
    """队列条目缺少可用的 id，无法回报结果"""


class CommandDecodeError(AgentError):
    """命令字段缺失或类型不对"""


class ExecutionError(AgentError):
    """页面内执行命令失败"""


class ElementNotFound(ExecutionError):
    pass


class WrongElementKind(ExecutionError):
    pass


class ElementNotEditable(ExecutionError):
    pass


class OptionNotFound(ExecutionError):
    pass


class UnsupportedCommand(ExecutionError, CommandDecodeError):
    pass
