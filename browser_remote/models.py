"""数据模型定义：命令、队列条目、执行结果、标签页"""

from dataclasses import MISSING, dataclass, field, fields
from typing import Any, Callable, ClassVar, Dict, Optional, Tuple

from .errors import CommandDecodeError, EnvelopeError, UnsupportedCommand

STATUS_EXECUTED = "executed"
STATUS_ERROR = "error"

DEFAULT_SCROLL_AMOUNT = 300


# ──────────────────────────────────────────────
# 字段转换：解码阶段统一校验，handler 不再做类型判断
# ──────────────────────────────────────────────

def _text(name: str, value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    raise CommandDecodeError(f"Field '{name}' must be a string.")


def _number(name: str, value: Any) -> float:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return value
    raise CommandDecodeError(f"Field '{name}' must be a number.")


def _integer(name: str, value: Any) -> int:
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    raise CommandDecodeError(f"Field '{name}' must be an integer.")


def _flag(name: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    raise CommandDecodeError(f"Field '{name}' must be a boolean.")


def _patterns(name: str, value: Any) -> Tuple[str, ...]:
    if isinstance(value, str):
        return (value,)
    if isinstance(value, list) and value and all(isinstance(v, str) for v in value):
        return tuple(value)
    raise CommandDecodeError(f"Field '{name}' must be a URL pattern or a list of patterns.")


_FIELD_CONVERTERS: Dict[str, Callable[[str, Any], Any]] = {
    "selector": _text,
    "value": _text,
    "url": _text,
    "code": _text,
    "direction": _text,
    "x": _number,
    "y": _number,
    "amount": _number,
    "nth": _integer,
    "tab_index": _integer,
    "clear": _flag,
    "checked": _flag,
    "tab_url": _patterns,
}


# ──────────────────────────────────────────────
# 命令（按 type 区分的封闭联合类型）
# ──────────────────────────────────────────────

@dataclass(frozen=True)
class Command:
    """所有命令的公共部分：可选的标签页定位信息"""
    type: ClassVar[str] = ""
    tab_url: Optional[Tuple[str, ...]] = field(default=None, kw_only=True)
    tab_index: Optional[int] = field(default=None, kw_only=True)


@dataclass(frozen=True)
class Click(Command):
    type: ClassVar[str] = "click"
    selector: str


@dataclass(frozen=True)
class ClickCoords(Command):
    type: ClassVar[str] = "click_coords"
    x: float
    y: float


@dataclass(frozen=True)
class Scroll(Command):
    type: ClassVar[str] = "scroll"
    selector: Optional[str] = None
    direction: Optional[str] = None  # up|down，其他一律按 down
    amount: float = DEFAULT_SCROLL_AMOUNT


@dataclass(frozen=True)
class Type(Command):
    type: ClassVar[str] = "type"
    selector: str
    value: str
    clear: bool = True


@dataclass(frozen=True)
class TypeNth(Command):
    type: ClassVar[str] = "type_nth"
    value: str
    nth: int = 1
    clear: bool = True


@dataclass(frozen=True)
class Checkbox(Command):
    type: ClassVar[str] = "checkbox"
    selector: str
    checked: Optional[bool] = None  # None 表示取反


@dataclass(frozen=True)
class Radio(Command):
    type: ClassVar[str] = "radio"
    selector: str


@dataclass(frozen=True)
class Select(Command):
    type: ClassVar[str] = "select"
    selector: str
    value: str


@dataclass(frozen=True)
class Navigate(Command):
    type: ClassVar[str] = "navigate"
    url: str


@dataclass(frozen=True)
class Eval(Command):
    type: ClassVar[str] = "eval"
    code: str


@dataclass(frozen=True)
class InvalidCommand(Command):
    """解码失败的命令，仍需向服务器回报错误"""
    type: ClassVar[str] = "invalid"
    declared_type: Optional[str]
    reason: str


COMMAND_TYPES: Dict[str, type] = {
    cls.type: cls
    for cls in (Click, ClickCoords, Scroll, Type, TypeNth, Checkbox, Radio, Select, Navigate, Eval)
}


def decode_command(payload: Any) -> Command:
    """
    把服务器下发的 JSON 命令解码为对应的 Command 子类。

    未知 type 抛出 UnsupportedCommand，字段缺失或类型错误抛出 CommandDecodeError。
    值为 null 的字段按未提供处理。
    """
    if not isinstance(payload, dict):
        raise CommandDecodeError("Command must be a JSON object.")

    kind = payload.get("type")
    cls = COMMAND_TYPES.get(kind) if isinstance(kind, str) else None
    if cls is None:
        raise UnsupportedCommand(f"Unknown command type: {kind}")

    kwargs = {}
    for f in fields(cls):
        raw = payload.get(f.name)
        if raw is None:
            if f.default is MISSING and f.default_factory is MISSING:
                raise CommandDecodeError(f"Missing field '{f.name}' for {kind} command.")
            continue
        kwargs[f.name] = _FIELD_CONVERTERS[f.name](f.name, raw)

    if cls is TypeNth and kwargs.get("nth", 1) < 1:
        raise CommandDecodeError("Field 'nth' must be >= 1.")
    return cls(**kwargs)


# ──────────────────────────────────────────────
# 队列条目与执行结果
# ──────────────────────────────────────────────

@dataclass(frozen=True)
class CommandEnvelope:
    """服务器队列中的一条待执行命令，id 用于回报结果"""
    id: int
    command: Command

    @classmethod
    def from_payload(cls, item: Any) -> "CommandEnvelope":
        if not isinstance(item, dict):
            raise EnvelopeError("Queue item must be a JSON object.")
        envelope_id = item.get("id")
        if isinstance(envelope_id, str) and envelope_id.isdigit():
            envelope_id = int(envelope_id)
        if not isinstance(envelope_id, int) or isinstance(envelope_id, bool):
            raise EnvelopeError(f"Queue item has no usable id: {envelope_id!r}")

        payload = item.get("command")
        try:
            command = decode_command(payload)
        except CommandDecodeError as e:
            declared = payload.get("type") if isinstance(payload, dict) else None
            command = InvalidCommand(declared_type=declared, reason=str(e))
        return cls(id=envelope_id, command=command)


@dataclass(frozen=True)
class ExecutionOutcome:
    """单条命令的最终状态，每个条目恰好产生一个"""
    status: str  # executed|error
    result: str

    @classmethod
    def executed(cls, result: str) -> "ExecutionOutcome":
        return cls(status=STATUS_EXECUTED, result=result)

    @classmethod
    def error(cls, message: str) -> "ExecutionOutcome":
        return cls(status=STATUS_ERROR, result=message)

    @property
    def ok(self) -> bool:
        return self.status == STATUS_EXECUTED


@dataclass(frozen=True)
class TargetContext:
    """一个可执行命令的标签页快照，每条命令重新选取"""
    window_id: int
    index: int
    url: str
    title: str
    active: bool
    handle: Any = field(default=None, compare=False, repr=False)

    @property
    def id(self) -> str:
        return f"{self.window_id}:{self.index}"
