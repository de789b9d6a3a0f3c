"""宿主模块：基于 Playwright 枚举标签页，并在标签页内执行命令"""

import itertools
import logging
import re
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional
from urllib.parse import urlsplit

from playwright.async_api import BrowserContext, ElementHandle, Error as PlaywrightError, Page

from .dom import Document, Element
from .models import TargetContext

logger = logging.getLogger(__name__)

_MATCH_PATTERN = re.compile(r"^(\*|https?|file|ftp|wss?)://([^/]*)(/.*)$")
_ALL_URLS_SCHEMES = ("http", "https", "file", "ftp", "ws", "wss")


def url_matches(pattern: str, url: str) -> bool:
    """
    Chrome 风格的 match pattern：<all_urls>、scheme://host/path，
    scheme 可为 *（http/https），host 可为 * 或 *.example.com，path 中 * 为通配。
    """
    parts = urlsplit(url)
    if pattern == "<all_urls>":
        return parts.scheme in _ALL_URLS_SCHEMES

    m = _MATCH_PATTERN.match(pattern)
    if not m:
        return False
    scheme, host, path = m.groups()

    if scheme == "*":
        if parts.scheme not in ("http", "https"):
            return False
    elif parts.scheme != scheme:
        return False

    if scheme != "file" and host != "*":
        actual = (parts.netloc if ":" in host else parts.hostname or "").lower()
        host = host.lower()
        if host.startswith("*."):
            base = host[2:]
            if actual != base and not actual.endswith("." + base):
                return False
        elif actual != host:
            return False

    target = parts.path or "/"
    if parts.query:
        target += "?" + parts.query
    regex = "^" + ".*".join(re.escape(chunk) for chunk in path.split("*")) + "$"
    return re.match(regex, target) is not None


# ──────────────────────────────────────────────
# DOM 实现：每个操作都是一小段注入页面的 JS
# ──────────────────────────────────────────────

_NATIVE_SET_VALUE = """
(el, value) => {
    const proto = el instanceof HTMLTextAreaElement
        ? HTMLTextAreaElement.prototype
        : HTMLInputElement.prototype;
    const descriptor = Object.getOwnPropertyDescriptor(proto, 'value');
    if (descriptor && descriptor.set) {
        descriptor.set.call(el, value);
    } else {
        el.value = value;
    }
}
"""


class PlaywrightElement(Element):

    def __init__(self, handle: ElementHandle):
        self._handle = handle

    async def get_property(self, name: str) -> Any:
        return await self._handle.evaluate("(el, name) => el[name]", name)

    async def is_rendered(self) -> bool:
        return await self._handle.evaluate(
            "el => { const r = el.getBoundingClientRect(); return r.width > 0 && r.height > 0; }"
        )

    async def scroll_into_view(self) -> None:
        await self._handle.evaluate("el => el.scrollIntoView({ behavior: 'smooth', block: 'center' })")

    async def scroll_by(self, top: float) -> None:
        await self._handle.evaluate("(el, top) => el.scrollBy({ top, behavior: 'smooth' })", top)

    async def focus(self) -> None:
        await self._handle.focus()

    async def click(self) -> None:
        # 不用 handle.click()：那是真实鼠标点击，会等待可操作性检查
        await self._handle.evaluate("el => el.click()")

    async def dispatch_event(self, event_type: str) -> None:
        await self._handle.dispatch_event(event_type)

    async def set_value(self, value: str) -> None:
        await self._handle.evaluate("(el, value) => { el.value = value; }", value)

    async def set_value_native(self, value: str) -> None:
        await self._handle.evaluate(_NATIVE_SET_VALUE, value)

    async def options(self):
        return [
            (value, text)
            for value, text in await self._handle.evaluate(
                "el => Array.from(el.options || []).map(o => [o.value, o.text])"
            )
        ]

    async def select_option(self, index: int) -> None:
        await self._handle.evaluate("(el, i) => { el.options[i].selected = true; }", index)


class PlaywrightDocument(Document):

    def __init__(self, page: Page):
        self._page = page

    async def query_selector(self, selector: str) -> Optional[Element]:
        handle = await self._page.query_selector(selector)
        return PlaywrightElement(handle) if handle else None

    async def query_selector_all(self, selector: str) -> List[Element]:
        return [PlaywrightElement(h) for h in await self._page.query_selector_all(selector)]

    async def element_from_point(self, x: float, y: float) -> Optional[Element]:
        handle = await self._page.evaluate_handle(
            "([x, y]) => document.elementFromPoint(x, y)", [x, y]
        )
        element = handle.as_element()
        if element is None:
            await handle.dispose()
            return None
        return PlaywrightElement(element)

    async def scroll_by(self, top: float) -> None:
        await self._page.evaluate("top => window.scrollBy({ top, behavior: 'smooth' })", top)

    async def location(self) -> str:
        return self._page.url

    async def navigate(self, url: str) -> None:
        # 导航会销毁当前执行上下文，延后到 evaluate 返回之后再跳转
        await self._page.evaluate(
            "url => { setTimeout(() => { window.location.href = url; }, 0); }", url
        )

    async def evaluate(self, code: str) -> str:
        # 代码作为参数传入并用间接 eval 执行：返回的 Promise 不会被等待，
        # 形如函数的代码也不会被调用
        return await self._page.evaluate("code => String((0, eval)(code))", code)

    async def exec_command(self, name: str, value: Optional[str] = None) -> bool:
        return await self._page.evaluate(
            "([name, value]) => document.execCommand(name, false, value)", [name, value]
        )


# ──────────────────────────────────────────────
# 标签页枚举
# ──────────────────────────────────────────────

_FOCUS_STATE = "() => [document.visibilityState === 'visible', document.hasFocus()]"


class PlaywrightHost:
    """
    把 Playwright 的 BrowserContext 当作窗口、Page 当作标签页。

    标签页集合由浏览器维护，这里只读取；只额外记录每个标签页第一次
    被看到的顺序，作为"最近打开"的依据。
    """

    def __init__(self, windows: Callable[[], Iterable[BrowserContext]]):
        self._windows = windows
        self._seen: Dict[Page, int] = {}
        self._counter = itertools.count()

    def _snapshot(self) -> List[TargetContext]:
        contexts = []
        for window_id, window in enumerate(self._windows()):
            for index, page in enumerate(window.pages):
                if page.is_closed():
                    continue
                if page not in self._seen:
                    self._seen[page] = next(self._counter)
                contexts.append(TargetContext(
                    window_id=window_id,
                    index=index,
                    url=page.url,
                    title="",
                    active=False,
                    handle=page,
                ))
        alive = {c.handle for c in contexts}
        for page in [p for p in self._seen if p not in alive]:
            del self._seen[page]
        return contexts

    async def _title(self, page: Page) -> str:
        try:
            return await page.title()
        except PlaywrightError:
            return ""

    async def _focus_rank(self, context: TargetContext):
        """
        焦点 > 可见 > 打开顺序。无头模式下所有页面都可见且都没有焦点，
        此时选最近打开的页面；agent 启动前已存在的页面按窗口、位置排序。
        """
        try:
            visible, focused = await context.handle.evaluate(_FOCUS_STATE)
        except PlaywrightError:
            visible, focused = False, False
        return (bool(focused), bool(visible), self._seen.get(context.handle, -1))

    async def list_contexts(self, url: Optional[Iterable[str]] = None,
                            active: Optional[bool] = None) -> List[TargetContext]:
        """
        枚举标签页。url 为 match pattern 列表；active=True 时只返回
        最近获得焦点的窗口中的当前标签页（至多一个）。
        """
        contexts = self._snapshot()
        if url is not None:
            patterns = list(url)
            contexts = [c for c in contexts if any(url_matches(p, c.url) for p in patterns)]

        if active:
            if not contexts:
                return []
            ranked = [(await self._focus_rank(c), c) for c in contexts]
            best = max(ranked, key=lambda pair: pair[0])[1]
            contexts = [best]

        result = []
        for c in contexts:
            result.append(TargetContext(
                window_id=c.window_id,
                index=c.index,
                url=c.url,
                title=await self._title(c.handle),
                active=bool(active),
                handle=c.handle,
            ))
        return result

    async def run_in_context(self, context: TargetContext,
                             procedure: Callable[..., Awaitable[Any]], *args: Any) -> Any:
        """在指定标签页内执行 procedure(document, *args)"""
        return await procedure(PlaywrightDocument(context.handle), *args)
