"""
Visual Capture - Browsing Context Tree

EyesContext is one node of the tree of browsing contexts: the top-level
document or a (nested) iframe. Nodes are created and owned by EyesDriver,
which keeps them in an arena keyed by their path so that asking twice for
the same frame yields the same node.

A child node starts UNRESOLVED holding only a reference (index, name or
id, selector, or element). init() turns the reference into the frame
element; the node becomes STALE when the frame element is detached and is
re-resolved on the next init().
"""

import logging
from enum import Enum
from typing import Any, List, Optional, Tuple

from . import page_utils
from .element import EyesElement
from .errors import ElementNotFoundError
from .geometry import Location, RectangleSize, Region

logger = logging.getLogger(__name__)

FRAMES_SELECTOR = "frame, iframe"
DEFAULT_SCROLL_ROOT_SELECTOR = "html"


class ContextState(str, Enum):
    """Lifecycle of a context node"""
    UNRESOLVED = "unresolved"  # Only the reference is known
    RESOLVED = "resolved"  # Frame element found
    STALE = "stale"  # Frame element detached, needs re-resolving


class EyesContext:
    """One browsing context (main document or iframe)"""

    def __init__(
        self,
        driver,
        parent: Optional["EyesContext"] = None,
        reference: Any = None,
        key: Tuple = (),
        scroll_root_element: Any = None,
    ):
        if parent is not None and reference is None:
            raise ValueError("Child context needs a reference to its frame")

        self._driver = driver
        self._parent = parent
        self._reference = reference
        self._key = key
        self._element: Optional[EyesElement] = None
        self._scroll_root_element = scroll_root_element
        self._state = ContextState.RESOLVED if parent is None else ContextState.UNRESOLVED

        # Metrics cached while the parent is current
        self._rect = Region()
        self._client_rect = Region()
        self._inner_offset = Location.ZERO

    # -------------------------------------------------------------------------
    # Tree
    # -------------------------------------------------------------------------

    @property
    def driver(self):
        return self._driver

    @property
    def adapter(self):
        return self._driver.adapter

    @property
    def parent(self) -> Optional["EyesContext"]:
        return self._parent

    @property
    def main(self) -> "EyesContext":
        return self._parent.main if self._parent else self

    @property
    def path(self) -> List["EyesContext"]:
        return (self._parent.path if self._parent else []) + [self]

    @property
    def key(self) -> Tuple:
        return self._key

    @property
    def state(self) -> ContextState:
        return self._state

    @property
    def is_main(self) -> bool:
        return self._parent is None

    @property
    def is_current(self) -> bool:
        return self._driver.current_context is self

    def mark_stale(self) -> None:
        if not self.is_main:
            self._element = None
            self._state = ContextState.STALE

    def context(self, reference: Any, scroll_root_element: Any = None) -> "EyesContext":
        """Child node for reference (created once, then reused)"""
        if isinstance(reference, EyesContext):
            if reference.parent is not self:
                raise ValueError("Cannot attach a child context because it has a different parent")
            return reference
        return self._driver.get_child_context(self, reference, scroll_root_element)

    async def equals(self, other: Any) -> bool:
        if other is self or (self.is_main and other is None):
            return True
        if self._element is None:
            return False
        if isinstance(other, EyesContext):
            # Compare resolved nodes only; resolving here would switch frames
            other = other._element
        return await self._element.equals(other)

    # -------------------------------------------------------------------------
    # Resolution and focus
    # -------------------------------------------------------------------------

    async def init(self) -> "EyesContext":
        """Resolve the frame reference into the frame element (idempotent)"""
        if self._state == ContextState.RESOLVED:
            return self

        await self._parent.focus()
        reference = self._reference
        logger.debug(f"[EyesContext] Resolving frame reference {reference!r}")

        element = None
        if isinstance(reference, bool):
            raise ElementNotFoundError(reference, message=f"Frame reference {reference!r} is not supported")
        elif isinstance(reference, int):
            frames = await self._parent.elements(FRAMES_SELECTOR)
            if reference < 0 or reference >= len(frames):
                raise ElementNotFoundError(reference, message=f"Frame index [{reference}] is invalid!")
            element = frames[reference]
        elif isinstance(reference, EyesElement):
            element = reference
        elif self.adapter.is_element(reference):
            element = EyesElement(self._parent, element=reference)
        else:
            if isinstance(reference, str):
                try:
                    element = await self._parent.element(
                        f'iframe[name="{reference}"], iframe#{reference}'
                    )
                except Exception as e:
                    logger.debug(f"[EyesContext] Name/id lookup failed for {reference!r}: {e}")
            if element is None and self.adapter.is_selector(reference):
                element = await self._parent.element(reference)
            if element is None:
                raise ElementNotFoundError(
                    reference,
                    message=f"No frame with selector, name or id '{reference}' exists!",
                )

        self._element = element
        self._state = ContextState.RESOLVED
        return self

    async def focus(self) -> "EyesContext":
        """Make this context the driver's current context"""
        if self.is_current:
            return self
        if self.is_main:
            return await self._driver.switch_to_main_context()

        await self.init()

        if not self._parent.is_current:
            await self._driver.switch_to(self)
            return self

        await self._parent.cache_inner_offset()
        await self.cache_metrics()

        try:
            await self.adapter.child_context(self._element.unwrapped)
        except Exception as e:
            if not self.adapter.is_stale_element_error(e):
                raise
            logger.info(f"[EyesContext] Frame element {self._reference!r} is stale, re-resolving")
            self.mark_stale()
            await self.init()
            await self.cache_metrics()
            await self.adapter.child_context(self._element.unwrapped)

        self._driver.update_current_context(self)
        return self

    # -------------------------------------------------------------------------
    # Elements and scripts
    # -------------------------------------------------------------------------

    async def element(self, selector: Any) -> Optional[EyesElement]:
        if isinstance(selector, EyesElement):
            return selector
        if self.adapter.is_element(selector):
            return EyesElement(self, element=selector)
        await self.focus()
        found = await self.adapter.find_element(selector)
        return EyesElement(self, element=found, selector=selector) if found is not None else None

    async def elements(self, selector: Any) -> List[EyesElement]:
        await self.focus()
        found = await self.adapter.find_elements(selector)
        return [EyesElement(self, element=element, selector=selector) for element in found or []]

    async def execute(self, script: str, *args: Any) -> Any:
        await self.focus()
        try:
            return await self.adapter.execute_script(script, *[_serialize(arg) for arg in args])
        except Exception as e:
            logger.debug(f"[EyesContext] Execute script error: {e}")
            raise

    # -------------------------------------------------------------------------
    # Metrics
    # -------------------------------------------------------------------------

    async def cache_inner_offset(self) -> None:
        self._inner_offset = await self.get_inner_offset()

    async def cache_metrics(self) -> None:
        self._rect = await self._element.get_rect()
        self._client_rect = await self._element.get_client_rect()
        if self._parent.is_main:
            viewport = Region.from_location_size(Location.ZERO, await self._driver.get_viewport_size())
            self._parent._rect = viewport
            self._parent._client_rect = viewport.copy()

    async def get_frame_element(self) -> Optional[EyesElement]:
        if self.is_main:
            return None
        await self.init()
        return self._element

    async def get_scroll_root_element(self) -> Optional[EyesElement]:
        if not isinstance(self._scroll_root_element, EyesElement):
            self._scroll_root_element = await self.element(
                self._scroll_root_element or DEFAULT_SCROLL_ROOT_SELECTOR
            )
        return self._scroll_root_element

    async def set_scroll_root_element(self, scroll_root_element: Any) -> None:
        if scroll_root_element is None:
            self._scroll_root_element = None
        else:
            self._scroll_root_element = await self.element(scroll_root_element)

    async def get_rect(self) -> Region:
        if self.is_main:
            if self.is_current:
                self._rect = Region.from_location_size(
                    Location.ZERO, await self._driver.get_viewport_size()
                )
        elif self._parent.is_current:
            await self.init()
            self._rect = await self._element.get_rect()
        return self._rect

    async def get_client_rect(self) -> Region:
        if self.is_main:
            if self.is_current:
                self._client_rect = Region.from_location_size(
                    Location.ZERO, await self._driver.get_viewport_size()
                )
        elif self._parent.is_current:
            await self.init()
            self._client_rect = await self._element.get_client_rect()
        return self._client_rect

    async def get_client_location(self) -> Location:
        return (await self.get_client_rect()).get_location()

    async def get_client_size(self) -> RectangleSize:
        return (await self.get_client_rect()).get_size()

    async def get_inner_offset(self) -> Location:
        """Scroll (plus translate) offset of the scroll root; cached while not current"""
        if self.is_current:
            self._inner_offset = await page_utils.get_inner_offset(
                self, await self.get_scroll_root_element()
            )
        return self._inner_offset

    async def get_location_in_page(self) -> Location:
        location = Location.ZERO
        for context in self.path:
            location = location.offset_by_location(await context.get_client_location())
        return location

    async def get_location_in_viewport(self) -> Location:
        if self.is_main:
            return Location.ZERO.offset_negative(await self.get_inner_offset())

        location = Location.ZERO
        current = self
        while current is not None:
            context_location = await current.get_client_location()
            parent_inner_offset = (
                await current.parent.get_inner_offset() if current.parent else Location.ZERO
            )
            location = location.offset_by_location(context_location).offset_negative(parent_inner_offset)
            current = current.parent
        return location

    async def get_effective_size(self) -> RectangleSize:
        """Client area of this context that is not clipped by any ancestor"""
        rect = Region.from_location_size(Location.ZERO, await self.main.get_client_size())
        for context in self.path:
            rect.intersect(Region.from_location_size(Location.ZERO, await context.get_client_size()))
        return rect.get_size()

    async def get_document_size(self) -> RectangleSize:
        return await page_utils.get_document_size(self)

    def __repr__(self) -> str:
        name = "main" if self.is_main else repr(self._reference)
        return f"EyesContext({name}, {self._state.value})"


def _serialize(value: Any) -> Any:
    """Make script arguments transferable: unwrap elements, flatten geometry"""
    if isinstance(value, EyesElement):
        return value.unwrapped
    if isinstance(value, (Location, RectangleSize, Region)):
        return value.to_dict()
    if isinstance(value, (list, tuple)):
        return [_serialize(item) for item in value]
    if isinstance(value, dict):
        return {key: _serialize(item) for key, item in value.items()}
    return value
