"""
Visual Capture - Element Wrapper

EyesElement binds an adapter element to the browsing context it lives in
and re-resolves it by selector when the adapter reports it stale.
"""

import logging
from typing import Any, Awaitable, Callable, Optional

from . import page_utils
from .errors import ElementNotFoundError
from .geometry import Region

logger = logging.getLogger(__name__)


class EyesElement:
    """Adapter element plus the context it belongs to"""

    def __init__(self, context, element: Any = None, selector: Any = None):
        if element is None and selector is None:
            raise ValueError("EyesElement needs an element or a selector")
        self._context = context
        self._element = element
        self._selector = selector
        self._original_overflow: Optional[str] = None
        self._position_memento = None

    @property
    def unwrapped(self) -> Any:
        return self._element

    @property
    def selector(self) -> Any:
        return self._selector

    @property
    def context(self):
        return self._context

    @property
    def adapter(self):
        return self._context.driver.adapter

    async def init(self) -> "EyesElement":
        """Resolve a selector-only element"""
        if self._element is not None:
            return self
        found = await self._context.element(self._selector)
        if found is None:
            raise ElementNotFoundError(self._selector)
        self._element = found.unwrapped
        return self

    async def equals(self, other: Any) -> bool:
        if self._element is None:
            return False
        other_element = other.unwrapped if isinstance(other, EyesElement) else other
        if other_element is None:
            return False
        if other_element is self._element:
            return True
        return bool(await self.adapter.is_equal_elements(self._element, other_element))

    async def get_rect(self) -> Region:
        return await self.with_refresh(lambda: page_utils.get_element_rect(self._context, self))

    async def get_client_rect(self) -> Region:
        return await self.with_refresh(lambda: page_utils.get_element_client_rect(self._context, self))

    async def hide_scrollbars(self) -> Optional[str]:
        async def operation():
            self._original_overflow = await page_utils.set_overflow(self._context, "hidden", self)
            return self._original_overflow
        return await self.with_refresh(operation)

    async def restore_scrollbars(self) -> None:
        await self.with_refresh(
            lambda: page_utils.set_overflow(self._context, self._original_overflow, self)
        )

    async def preserve_position(self, position_provider):
        async def operation():
            self._position_memento = await position_provider.get_state(self)
            return self._position_memento
        return await self.with_refresh(operation)

    async def restore_position(self, position_provider) -> None:
        if self._position_memento is not None:
            await self.with_refresh(
                lambda: position_provider.restore_state(self._position_memento, self)
            )

    async def refresh(self, fresh_element: Any = None) -> bool:
        """Swap in a fresh adapter element, looking it up by selector if none is given"""
        if fresh_element is not None and self.adapter.is_element(fresh_element):
            self._element = fresh_element
            return True
        if self._selector is None:
            return False
        found = await self._context.element(self._selector)
        if found is not None:
            self._element = found.unwrapped
        return found is not None

    async def with_refresh(self, operation: Callable[[], Awaitable[Any]]) -> Any:
        """Run operation, re-resolving the element once if it went stale"""
        try:
            return await operation()
        except Exception as e:
            if not self.adapter.is_stale_element_error(e):
                raise
            logger.debug(f"[EyesElement] Stale element {self._selector!r}, refreshing")
            if not await self.refresh():
                raise
            return await operation()

    def __repr__(self) -> str:
        return f"EyesElement(selector={self._selector!r})"
