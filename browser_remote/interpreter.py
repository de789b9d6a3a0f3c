"""执行模块：在标签页内执行单条命令

所有失败都以 {"error": message} 的形式返回，不向外抛出。
"""

import json
import logging
from typing import Any, Dict, List

from .dom import Document, Element
from .errors import (
    ElementNotEditable,
    ElementNotFound,
    ExecutionError,
    OptionNotFound,
    UnsupportedCommand,
    WrongElementKind,
)
from .models import (
    Checkbox,
    Click,
    ClickCoords,
    Command,
    Eval,
    InvalidCommand,
    Navigate,
    Radio,
    Scroll,
    Select,
    Type,
    TypeNth,
)

logger = logging.getLogger(__name__)

# type_nth 的候选：可见的文本类 input 与 textarea
TYPEABLE_SELECTOR = (
    "input:not([type=hidden]):not([type=submit]):not([type=button]):not([type=reset])"
    ":not([type=checkbox]):not([type=radio]):not([type=file]), textarea"
)


class CommandInterpreter:
    """执行模块：把一条命令作用到页面上"""

    def __init__(self):
        self._handlers = {
            Click: self._click,
            ClickCoords: self._click_coords,
            Scroll: self._scroll,
            Type: self._type,
            TypeNth: self._type_nth,
            Checkbox: self._checkbox,
            Radio: self._radio,
            Select: self._select,
            Navigate: self._navigate,
            Eval: self._eval,
        }

    async def execute(self, document: Document, command: Command) -> Dict[str, Any]:
        """
        执行命令，返回结构化结果；任何异常都转换为 {"error": message}。
        """
        try:
            handler = self._handlers.get(type(command))
            if handler is None:
                if isinstance(command, InvalidCommand):
                    raise ExecutionError(command.reason)
                raise UnsupportedCommand(f"Unknown command type: {command.type}")
            return await handler(document, command)
        except Exception as e:
            logger.debug("命令 %s 执行失败: %s", command.type, e)
            return {"error": str(e) or type(e).__name__}

    # ── 辅助 ──────────────────────────────────

    async def _get_element(self, document: Document, selector: str) -> Element:
        el = await document.query_selector(selector)
        if el is None:
            raise ElementNotFound(f"Element not found: {selector}")
        return el

    async def _describe(self, document: Document, el: Element) -> Dict[str, Any]:
        """输入框调试信息，始终附在 type 结果里"""
        return {
            "tag": await el.tag_name(),
            "type": await el.get_property("type") or "no-type",
            "name": await el.get_property("name") or "",
            "id": await el.get_property("id") or "",
            "readOnly": bool(await el.get_property("readOnly")),
            "disabled": bool(await el.get_property("disabled")),
            "valueBefore": await el.get_property("value"),
            "url": await document.location(),
        }

    # ── 点击 ──────────────────────────────────

    async def _click(self, document: Document, command: Click) -> Dict[str, Any]:
        el = await self._get_element(document, command.selector)
        await el.scroll_into_view()
        # 有些页面只监听其中一部分事件，按真实鼠标的顺序全部触发
        await el.dispatch_event("mouseover")
        await el.dispatch_event("mousedown")
        await el.click()
        await el.dispatch_event("mouseup")
        return {"clicked": command.selector}

    async def _click_coords(self, document: Document, command: ClickCoords) -> Dict[str, Any]:
        el = await document.element_from_point(command.x, command.y)
        if el is None:
            raise ElementNotFound(f"No element at ({_num(command.x)}, {_num(command.y)})")
        await el.dispatch_event("mousedown")
        await el.click()
        await el.dispatch_event("mouseup")
        return {"clicked_at": {"x": command.x, "y": command.y}, "tag": await el.tag_name()}

    # ── 滚动 ──────────────────────────────────

    async def _scroll(self, document: Document, command: Scroll) -> Dict[str, Any]:
        sign = -1 if command.direction == "up" else 1
        top = sign * command.amount
        if command.selector:
            el = await self._get_element(document, command.selector)
            await el.scroll_by(top)
        else:
            await document.scroll_by(top)
        return {"scrolled": {"direction": command.direction, "amount": command.amount}}

    # ── 输入 ──────────────────────────────────

    async def _type(self, document: Document, command: Type) -> Dict[str, Any]:
        el = await self._get_element(document, command.selector)
        info = await self._describe(document, el)
        ok, info = await self._fill(document, el, info, command.value, command.clear)
        return {
            "ok": ok,
            "typed": f"{len(command.value)} chars",
            "selector": command.selector,
            "debug": info,
        }

    async def _type_nth(self, document: Document, command: TypeNth) -> Dict[str, Any]:
        candidates: List[Element] = [
            el for el in await document.query_selector_all(TYPEABLE_SELECTOR)
            if await el.is_rendered()
        ]
        if len(candidates) < command.nth:
            raise ElementNotFound(
                f"Only {len(candidates)} visible input(s) found, requested #{command.nth}"
            )

        el = candidates[command.nth - 1]
        info = await self._describe(document, el)
        info["nthFound"] = command.nth
        info["totalInputs"] = len(candidates)
        await el.scroll_into_view()
        ok, info = await self._fill(document, el, info, command.value, command.clear)
        return {
            "ok": ok,
            "typed": f"{len(command.value)} chars",
            "nth": command.nth,
            "debug": info,
        }

    async def _fill(self, document: Document, el: Element, info: Dict[str, Any],
                    value: str, clear: bool):
        """
        输入状态机：校验 → 清空 → 原生 setter 赋值 → 校验结果 → 必要时模拟键入。

        ok 只反映原生 setter 赋值后的校验结果；模拟键入之后不再校验，
        最终的值写在 debug.valueAfter 里。
        """
        debug = json.dumps(info, ensure_ascii=False)
        if info["readOnly"]:
            raise ElementNotEditable(f"Element is readOnly. Debug: {debug}")
        if info["disabled"]:
            raise ElementNotEditable(f"Element is disabled. Debug: {debug}")
        if info["type"] == "file":
            raise ElementNotEditable(f"Element is file input. Debug: {debug}")

        await el.focus()

        if clear:
            await el.set_value("")
            await el.dispatch_event("input")

        # React/Vue/Angular 会拦截实例上的 value，直接调用原型的 setter
        await el.set_value_native(value)
        await el.dispatch_event("input")
        await el.dispatch_event("change")
        await el.dispatch_event("keyup")

        ok = await el.get_property("value") == value
        if not ok:
            logger.debug("原生 setter 未生效，改用 insertText 模拟键入")
            await el.focus()
            await document.exec_command("selectAll")
            await document.exec_command("insertText", value)

        info["valueAfter"] = await el.get_property("value")
        info["ok"] = ok
        return ok, info

    # ── 表单控件 ──────────────────────────────

    async def _checkbox(self, document: Document, command: Checkbox) -> Dict[str, Any]:
        el = await self._get_element(document, command.selector)
        if await el.get_property("type") != "checkbox":
            raise WrongElementKind("Element is not a checkbox.")
        current = bool(await el.get_property("checked"))
        desired = command.checked if command.checked is not None else not current
        if current != desired:
            await el.click()
        return {"checkbox": command.selector, "checked": bool(await el.get_property("checked"))}

    async def _radio(self, document: Document, command: Radio) -> Dict[str, Any]:
        el = await self._get_element(document, command.selector)
        if await el.get_property("type") != "radio":
            raise WrongElementKind("Element is not a radio button.")
        if not await el.get_property("checked"):
            await el.click()
        return {"radio": command.selector, "checked": bool(await el.get_property("checked"))}

    async def _select(self, document: Document, command: Select) -> Dict[str, Any]:
        el = await self._get_element(document, command.selector)
        if await el.tag_name() != "SELECT":
            raise WrongElementKind("Element is not a <select>.")

        options = await el.options()
        index = next((i for i, (v, _) in enumerate(options) if v == command.value), None)
        if index is None:
            index = next((i for i, (_, t) in enumerate(options) if t == command.value), None)
        if index is None:
            raise OptionNotFound(f'Option "{command.value}" not found in {command.selector}')

        await el.select_option(index)
        await el.dispatch_event("change")
        return {"selected": command.value, "selector": command.selector}

    # ── 页面级 ────────────────────────────────

    async def _navigate(self, document: Document, command: Navigate) -> Dict[str, Any]:
        await document.navigate(command.url)
        return {"navigating_to": command.url}

    async def _eval(self, document: Document, command: Eval) -> Dict[str, Any]:
        # 任意代码执行是协议有意提供的能力，服务器端被视为可信
        return {"eval_result": await document.evaluate(command.code)}


def _num(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)
