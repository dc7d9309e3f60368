"""
Visual Capture - Page Utilities

Thin async helpers that run the browser scripts from snippets.py in a
browsing context and wrap the results in geometry types. Every function
takes the context to run in; an element argument of None targets the
document's scrolling element.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional

from . import snippets
from .errors import (
    ErrorContext,
    EyesDriverOperationError,
    VisualCaptureError,
    ViewportSizeError,
)
from .geometry import CoordinatesType, Location, RectangleSize, Region

logger = logging.getLogger(__name__)

OVERFLOW_SETTLE_DELAY = 0.2  # Seconds for layout to settle after overflow changes


# =============================================================================
# Viewport and window
# =============================================================================

async def get_viewport_size(context) -> RectangleSize:
    """Viewport size of the given context (window size on native apps)"""
    if context.driver.is_native:
        rect = await context.driver.get_window_rect()
        size = rect.get_size()
    else:
        size = RectangleSize.from_dict(await context.execute(snippets.GET_VIEWPORT_SIZE))
    logger.debug(f"[PageUtils] Viewport size: {size}")
    return size


async def set_viewport_size(
    driver,
    required_size: RectangleSize,
    retries: int = 3,
    sleep: float = 3.0,
) -> None:
    """
    Resize the browser window until the viewport matches required_size.

    The window is first moved to (0, 0), then resized by the difference
    between the required and the measured viewport, re-measuring after each
    attempt.

    Raises:
        ViewportSizeError: If the viewport still differs after all retries
    """
    logger.info(f"[PageUtils] Setting viewport size to {required_size}")

    actual_viewport = await driver.get_viewport_size()
    logger.debug(f"[PageUtils] Initial viewport size: {actual_viewport}")
    if actual_viewport == required_size:
        return

    try:
        await driver.set_window_rect({"x": 0, "y": 0})
    except Exception as e:
        logger.warning(f"[PageUtils] Failed to move the browser window to (0,0): {e}")

    window_size = (await driver.get_window_rect()).get_size()
    actual_viewport = await driver.get_viewport_size()

    while retries >= 0:
        required_window = RectangleSize(
            max(window_size.width + (required_size.width - actual_viewport.width), 0),
            max(window_size.height + (required_size.height - actual_viewport.height), 0),
        )
        logger.debug(
            f"[PageUtils] Attempt to set window size to {required_window}. Retries left: {retries}"
        )
        await driver.set_window_rect(required_window.to_dict())
        await asyncio.sleep(sleep)

        actual_viewport = await driver.get_viewport_size()
        if actual_viewport == required_size:
            logger.info(f"[PageUtils] Viewport size set to {actual_viewport}")
            return

        logger.debug(
            f"[PageUtils] Attempt failed, required={required_size}, actual={actual_viewport}"
        )
        window_size = required_window
        retries -= 1

    raise ViewportSizeError(
        f"Failed to set viewport size! required={required_size}, actual={actual_viewport}",
        required=required_size,
        actual=actual_viewport,
    )


async def get_pixel_ratio(context) -> float:
    return float(await context.execute(snippets.GET_PIXEL_RATIO))


async def get_user_agent(context) -> str:
    return await context.execute(snippets.GET_USER_AGENT)


# =============================================================================
# Sizes and rects
# =============================================================================

async def get_document_size(context) -> RectangleSize:
    async with ErrorContext("extracting entire size", raise_as=EyesDriverOperationError):
        return RectangleSize.from_dict(await context.execute(snippets.GET_DOCUMENT_SIZE))


async def get_element_entire_size(context, element) -> RectangleSize:
    async with ErrorContext("extracting element size", raise_as=EyesDriverOperationError):
        return RectangleSize.from_dict(
            await context.execute(snippets.GET_ELEMENT_CONTENT_SIZE, element)
        )


async def get_element_rect(context, element) -> Region:
    """Border box of the element in document coordinates of its context"""
    rect = await context.execute(snippets.GET_ELEMENT_RECT, element, False)
    return Region.from_dict(rect, CoordinatesType.CONTEXT_RELATIVE)


async def get_element_client_rect(context, element) -> Region:
    """Client box (no borders or scrollbars) in document coordinates of its context"""
    rect = await context.execute(snippets.GET_ELEMENT_RECT, element, True)
    return Region.from_dict(rect, CoordinatesType.CONTEXT_RELATIVE)


# =============================================================================
# Scroll and translate
# =============================================================================

async def get_inner_offset(context, element=None) -> Location:
    return Location.from_dict(await context.execute(snippets.GET_ELEMENT_INNER_OFFSET, element))


async def get_scroll_offset(context, element=None) -> Location:
    return Location.from_dict(await context.execute(snippets.GET_ELEMENT_SCROLL_OFFSET, element))


async def scroll_to(context, location: Location, element=None) -> Location:
    """Scroll and return the position the browser actually reached"""
    offset = {"x": round(location.x), "y": round(location.y)}
    return Location.from_dict(await context.execute(snippets.SCROLL_TO, element, offset))


async def get_translate_offset(context, element=None) -> Location:
    return Location.from_dict(
        await context.execute(snippets.GET_ELEMENT_TRANSLATE_OFFSET, element)
    )


async def translate_to(context, location: Location, element=None) -> Location:
    offset = {"x": round(location.x), "y": round(location.y)}
    return Location.from_dict(await context.execute(snippets.TRANSLATE_TO, element, offset))


async def is_scrollable(context, element=None) -> bool:
    return bool(await context.execute(snippets.IS_ELEMENT_SCROLLABLE, element))


async def mark_scroll_root_element(context, element=None) -> None:
    await context.execute(snippets.SET_ELEMENT_ATTRIBUTES, element, {"data-applitools-scroll": True})


async def get_transforms(context, element=None) -> Dict[str, str]:
    return await context.execute(
        snippets.GET_ELEMENT_STYLE_PROPERTIES, element, ["transform", "-webkit-transform"]
    ) or {}


async def set_transforms(context, transforms: Dict[str, str], element=None) -> None:
    await context.execute(snippets.SET_ELEMENT_STYLE_PROPERTIES, element, transforms)


# =============================================================================
# Overflow, focus and markers
# =============================================================================

async def get_overflow(context, element=None) -> Optional[str]:
    styles = await context.execute(snippets.GET_ELEMENT_STYLE_PROPERTIES, element, ["overflow"])
    return (styles or {}).get("overflow")


async def set_overflow(context, overflow: Optional[str], element=None) -> Optional[str]:
    """Set the overflow style and return the value it replaced"""
    async with ErrorContext("setting overflow", raise_as=VisualCaptureError):
        original = await context.execute(
            snippets.SET_ELEMENT_STYLE_PROPERTIES, element, {"overflow": overflow}
        )
        await asyncio.sleep(OVERFLOW_SETTLE_DELAY)
        return (original or {}).get("overflow")


async def blur_element(context, element=None) -> Any:
    """Blur the element (or the active element); returns what was blurred"""
    try:
        return await context.execute(snippets.BLUR_ELEMENT, element)
    except Exception as e:
        logger.warning(f"[PageUtils] Cannot hide caret: {e}")
        return None


async def focus_element(context, element) -> None:
    try:
        await context.execute(snippets.FOCUS_ELEMENT, element)
    except Exception as e:
        logger.warning(f"[PageUtils] Cannot restore caret: {e}")


async def get_element_xpath(context, element) -> Optional[str]:
    try:
        return await context.execute(snippets.GET_ELEMENT_XPATH, element)
    except Exception as e:
        logger.warning(f"[PageUtils] Failed to get element selector (xpath): {e}")
        return None


async def set_element_markers(context, elements_by_id: Dict[str, Any]) -> None:
    ids = list(elements_by_id.keys())
    elements = [elements_by_id[marker_id] for marker_id in ids]
    await context.execute(snippets.SET_ELEMENT_MARKERS, elements, ids)


async def cleanup_element_markers(context, elements: List[Any]) -> None:
    await context.execute(snippets.CLEANUP_ELEMENT_MARKERS, elements)


# =============================================================================
# Visibility
# =============================================================================

async def ensure_region_visible(context, position_provider, region: Optional[Region]) -> Optional[Location]:
    """
    Scroll every context on the path so the region is visible as far as possible.

    Args:
        context: Context the region is expressed in (document coordinates)
        position_provider: Provider used to move each scroll root
        region: Region to bring into view

    Returns:
        Remaining offset that could not be scrolled away, ZERO when the region
        was already inside the viewport, None for no region or native apps
    """
    if region is None:
        return None
    if context.driver.is_native:
        logger.debug("[PageUtils] Native context, skipping ensure region visible")
        return None

    context_location = await context.get_location_in_viewport()
    # Main already accounts for its own scroll in its viewport location
    inner_offset = Location.ZERO if context.is_main else await context.get_inner_offset()
    region_in_viewport = Region(
        region.left - inner_offset.x + context_location.x,
        region.top - inner_offset.y + context_location.y,
        region.width,
        region.height,
    )
    viewport_rect = await context.main.get_rect()
    viewport = Region(viewport_rect.left, viewport_rect.top, viewport_rect.width, viewport_rect.height)
    if not context.is_main:
        viewport.intersect(Region.from_location_size(context_location, await context.get_client_size()))
    if viewport.contains(region_in_viewport):
        return Location.ZERO

    current = context
    remaining = region.get_location()
    while current is not None:
        scroll_root = await current.get_scroll_root_element()
        scroll_root_offset = (
            (await scroll_root.get_client_rect()).get_location() if scroll_root else Location.ZERO
        )
        actual = await position_provider.set_position(
            remaining.offset_negative(scroll_root_offset), scroll_root
        )
        remaining = remaining.offset_negative(actual).offset_by_location(
            await current.get_client_location()
        )
        current = current.parent

    logger.debug(f"[PageUtils] Region {region} scrolled into view, remaining offset {remaining}")
    return remaining
