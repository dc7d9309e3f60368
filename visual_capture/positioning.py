"""
Visual Capture - Position Providers

Strategies for reading and moving the visible part of a scrollable root:
plain scrolling, or a CSS translate of the root's content. Each comes in a
root flavor (the document scrolling element by default) and an element
flavor (a specific scrollable element).

Reads are best effort and degrade to Location.ZERO; moves raise
EyesDriverOperationError so a stitch never silently pastes a tile at the
wrong offset. State restoration is best effort so it never masks the error
that triggered it.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, Optional

from . import page_utils
from .config import StitchMode
from .errors import ErrorContext, EyesDriverOperationError
from .geometry import Location, RectangleSize

logger = logging.getLogger(__name__)


@dataclass
class PositionMemento:
    """Snapshot of a scroll root's position, owned by whoever took it"""
    position: Optional[Location] = None
    transforms: Dict[str, str] = field(default_factory=dict)


class PositionProvider(ABC):
    """Reads and moves the visible position of one scroll root"""

    measures_element = False

    def __init__(self, context, scroll_root_element=None):
        self._context = context
        self._scroll_root_element = scroll_root_element

    @property
    def scroll_root_element(self):
        return self._scroll_root_element

    def _target(self, custom_root=None):
        """(context, element) the scripts should run against"""
        element = custom_root or self._scroll_root_element
        context = element.context if element is not None else self._context
        return context, element

    @abstractmethod
    async def get_current_position(self, custom_root=None) -> Location:
        pass

    @abstractmethod
    async def set_position(self, location: Location, custom_root=None) -> Location:
        pass

    @abstractmethod
    async def get_state(self, custom_root=None) -> PositionMemento:
        pass

    @abstractmethod
    async def restore_state(self, state: PositionMemento, custom_root=None) -> None:
        pass

    async def get_entire_size(self) -> RectangleSize:
        """Document size for root flavors, content size of the element otherwise"""
        if self.measures_element:
            size = await page_utils.get_element_entire_size(
                self._scroll_root_element.context, self._scroll_root_element
            )
        else:
            size = await page_utils.get_document_size(self._context)
        logger.debug(f"[{type(self).__name__}] Entire size: {size}")
        return size

    async def mark_scroll_root_element(self) -> None:
        try:
            context, element = self._target()
            await page_utils.mark_scroll_root_element(context, element)
        except Exception as e:
            logger.warning(f"[{type(self).__name__}] Can't set data attribute for element: {e}")


class ScrollPositionProvider(PositionProvider):
    """Scrolls the document scrolling element (or the given root)"""

    async def get_current_position(self, custom_root=None) -> Location:
        try:
            context, element = self._target(custom_root)
            position = await page_utils.get_scroll_offset(context, element)
            logger.debug(f"[ScrollPositionProvider] Current position: {position}")
            return position
        except Exception as e:
            logger.warning(f"[ScrollPositionProvider] Failed to extract current scroll position: {e}")
            return Location.ZERO

    async def set_position(self, location: Location, custom_root=None) -> Location:
        logger.debug(f"[ScrollPositionProvider] Scrolling to {location}")
        context, element = self._target(custom_root)
        async with ErrorContext("setting scroll position", raise_as=EyesDriverOperationError):
            return await page_utils.scroll_to(context, location, element)

    async def get_state(self, custom_root=None) -> PositionMemento:
        return PositionMemento(position=await self.get_current_position(custom_root))

    async def restore_state(self, state: PositionMemento, custom_root=None) -> None:
        if state.position is None:
            return
        try:
            await self.set_position(state.position, custom_root)
            logger.debug("[ScrollPositionProvider] Position restored")
        except Exception as e:
            logger.warning(f"[ScrollPositionProvider] Failed to restore state: {e}")


class ScrollElementPositionProvider(ScrollPositionProvider):
    """Scrolls one specific scrollable element"""

    measures_element = True

    def __init__(self, context, element):
        if element is None:
            raise ValueError("ScrollElementPositionProvider needs an element")
        super().__init__(context, element)


class CssTranslatePositionProvider(PositionProvider):
    """
    Moves content by scrolling the root to zero and translating it.

    Positions past the scrollable range are reachable, which makes this the
    provider of choice for pages that lazy-load or snap while scrolling.
    """

    async def get_current_position(self, custom_root=None) -> Location:
        try:
            context, element = self._target(custom_root)
            scroll = await page_utils.get_scroll_offset(context, element)
            translate = await page_utils.get_translate_offset(context, element)
            return scroll.offset_by_location(translate)
        except Exception as e:
            logger.warning(f"[CssTranslatePositionProvider] Failed to extract current position: {e}")
            return Location.ZERO

    async def set_position(self, location: Location, custom_root=None) -> Location:
        logger.debug(f"[CssTranslatePositionProvider] Setting position to {location}")
        context, element = self._target(custom_root)
        async with ErrorContext("setting translate position", raise_as=EyesDriverOperationError):
            await page_utils.scroll_to(context, Location.ZERO, element)
            return await page_utils.translate_to(context, location, element)

    async def get_state(self, custom_root=None) -> PositionMemento:
        try:
            context, element = self._target(custom_root)
            position = await page_utils.get_scroll_offset(context, element)
            transforms = await page_utils.get_transforms(context, element)
            logger.debug(f"[{type(self).__name__}] Current transforms: {transforms}")
            return PositionMemento(position=position, transforms=transforms)
        except Exception as e:
            logger.warning(f"[{type(self).__name__}] Failed to get current transforms: {e}")
            return PositionMemento()

    async def restore_state(self, state: PositionMemento, custom_root=None) -> None:
        try:
            context, element = self._target(custom_root)
            if state.position is not None:
                await page_utils.scroll_to(context, state.position, element)
            await page_utils.set_transforms(context, state.transforms, element)
            logger.debug(f"[{type(self).__name__}] Transforms (position) restored")
        except Exception as e:
            logger.warning(f"[{type(self).__name__}] Failed to restore state: {e}")


class CssTranslateElementPositionProvider(CssTranslatePositionProvider):
    """Scrolls an element as far as it goes, then translates the remainder"""

    measures_element = True

    def __init__(self, context, element):
        if element is None:
            raise ValueError("CssTranslateElementPositionProvider needs an element")
        super().__init__(context, element)

    async def set_position(self, location: Location, custom_root=None) -> Location:
        logger.debug(f"[CssTranslateElementPositionProvider] Setting position to {location}")
        context, element = self._target(custom_root)
        async with ErrorContext("setting element position", raise_as=EyesDriverOperationError):
            scrolled = await page_utils.scroll_to(context, location, element)
            remainder = location.offset_negative(scrolled)
            translated = await page_utils.translate_to(context, remainder, element)
            return scrolled.offset_by_location(translated)


def create_position_provider(
    stitch_mode, context, scroll_root_element=None, for_element: bool = False
) -> PositionProvider:
    """
    Pick a provider for the stitch mode.

    for_element selects the element flavors, for scrollable elements other
    than the context's own scroll root.
    """
    is_root = not for_element
    if stitch_mode == StitchMode.CSS:
        if is_root:
            return CssTranslatePositionProvider(context, scroll_root_element)
        return CssTranslateElementPositionProvider(context, scroll_root_element)
    if is_root:
        return ScrollPositionProvider(context, scroll_root_element)
    return ScrollElementPositionProvider(context, scroll_root_element)
