"""DOM 抽象：命令解释器只通过这里的接口操作页面

Playwright 宿主和测试中的假 DOM 都实现这组接口，解释器本身与宿主无关。
"""

from abc import ABC, abstractmethod
from typing import Any, List, Optional, Tuple


class Element(ABC):
    """页面中的一个元素"""

    @abstractmethod
    async def get_property(self, name: str) -> Any:
        """读取 DOM 属性（tagName、type、value、checked ...）"""

    async def tag_name(self) -> str:
        return str(await self.get_property("tagName") or "").upper()

    @abstractmethod
    async def is_rendered(self) -> bool:
        """包围盒宽高都大于 0"""

    @abstractmethod
    async def scroll_into_view(self) -> None:
        """平滑滚动到视口中央"""

    @abstractmethod
    async def scroll_by(self, top: float) -> None:
        """平滑滚动元素自身"""

    @abstractmethod
    async def focus(self) -> None: ...

    @abstractmethod
    async def click(self) -> None:
        """原生 el.click()，会触发框架绑定的 click/change 监听"""

    @abstractmethod
    async def dispatch_event(self, event_type: str) -> None:
        """派发冒泡事件，鼠标/键盘事件使用对应的事件类"""

    @abstractmethod
    async def set_value(self, value: str) -> None:
        """普通赋值 el.value = value，可能被框架拦截"""

    @abstractmethod
    async def set_value_native(self, value: str) -> None:
        """通过原型上的 value setter 赋值，绕过实例上的拦截"""

    @abstractmethod
    async def options(self) -> List[Tuple[str, str]]:
        """<select> 的选项列表 (value, text)"""

    @abstractmethod
    async def select_option(self, index: int) -> None: ...


class Document(ABC):
    """一个标签页的文档与窗口"""

    @abstractmethod
    async def query_selector(self, selector: str) -> Optional[Element]: ...

    @abstractmethod
    async def query_selector_all(self, selector: str) -> List[Element]: ...

    @abstractmethod
    async def element_from_point(self, x: float, y: float) -> Optional[Element]: ...

    @abstractmethod
    async def scroll_by(self, top: float) -> None:
        """平滑滚动整个视口"""

    @abstractmethod
    async def location(self) -> str: ...

    @abstractmethod
    async def navigate(self, url: str) -> None:
        """修改 location 后立即返回，不等待导航完成"""

    @abstractmethod
    async def evaluate(self, code: str) -> str:
        """在页面中执行代码，返回 String(result)"""

    @abstractmethod
    async def exec_command(self, name: str, value: Optional[str] = None) -> bool:
        """document.execCommand，用于 selectAll / insertText"""
