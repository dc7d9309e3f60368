"""
Visual Capture - Capture Engine

Entry point of the package. CaptureEngine.capture() resolves a target
(window, region, element or frame, optionally fully) to one image:

1. Resolve the frame path to a context and switch into it
2. Save scroll/translate state and hide scrollbars on every context of the path
3. Take one viewport screenshot, or stitch the full content
4. Restore page state and return to the context the caller was in
"""

import logging
from dataclasses import dataclass
from typing import Optional

from PIL import Image

from . import page_utils
from .config import CaptureSettings, CaptureTarget, TargetKind
from .driver import EyesDriver
from .element import EyesElement
from .errors import ElementNotFoundError
from .geometry import CoordinatesType, Location, RectangleSize, Region
from .imaging import (
    ContextBasedScaleProvider,
    FixedCutProvider,
    FixedScaleProvider,
    ScaleProviderFactory,
    create_debug_screenshots_provider,
    create_image_provider,
    create_region_position_compensation,
)
from .positioning import create_position_provider
from .screenshot import EyesScreenshot
from .stitcher import FullPageCaptureAlgorithm

logger = logging.getLogger(__name__)


@dataclass
class CaptureResult:
    """Captured screenshot plus what it covers"""
    screenshot: EyesScreenshot
    region: Region  # Captured area (context coordinates, or screenshot coordinates for viewport captures)
    image_location: Location = Location.ZERO  # Where the image's top-left sits in its context document


@dataclass
class _SavedState:
    context: object
    scroll_root: Optional[EyesElement]
    provider: object
    scrollbars_hidden: bool = False


class CaptureEngine:
    """
    Captures screenshots through one EyesDriver session.

    Captures issued through the same driver are serialized; the page is
    always returned to its original scroll state and context.
    """

    def __init__(self, driver: EyesDriver, settings: Optional[CaptureSettings] = None):
        self._driver = driver
        self.settings = settings or CaptureSettings()
        self._debug = create_debug_screenshots_provider(self.settings)
        self._device_pixel_ratio: Optional[float] = None

    @property
    def driver(self) -> EyesDriver:
        return self._driver

    async def capture(
        self, target: Optional[CaptureTarget] = None, skip_native_hook: bool = False
    ) -> CaptureResult:
        """
        Capture target.

        Args:
            target: What to capture, defaults to the visible window
            skip_native_hook: On native apps use the plain screenshot command

        Returns:
            CaptureResult with the screenshot and the captured region
        """
        target = target or CaptureTarget()
        async with self._driver.lock:
            if not self._driver.is_initialized:
                await self._driver.init()
            logger.info(f"[CaptureEngine] Capturing {target.kind} (fully={target.fully}, frames={len(target.frames)})")
            result = await self._capture(target, skip_native_hook)
            image = result.screenshot.get_image()
            logger.info(f"[CaptureEngine] Captured {image.width}x{image.height}")
            return result

    async def set_viewport_size(self, size: RectangleSize) -> None:
        """Resize the browser window to size, with the retry policy of the settings"""
        async with self._driver.lock:
            await page_utils.set_viewport_size(
                self._driver,
                size,
                retries=self.settings.viewport_retries,
                sleep=self.settings.viewport_retry_sleep,
            )

    async def _capture(self, target: CaptureTarget, skip_native_hook: bool) -> CaptureResult:
        driver = self._driver
        original_context = driver.current_context
        context = driver.get_context(*target.frames)
        if target.scroll_root_selector is not None:
            await context.set_scroll_root_element(target.scroll_root_selector)

        saved = []
        caret = None
        try:
            await self._get_device_pixel_ratio()
            saved = await self._preserve_page_state(context)
            if self.settings.hide_caret:
                caret = await page_utils.blur_element(context)

            kind = target.kind
            if kind == TargetKind.FRAME and not context.is_main:
                if target.fully:
                    return await self._capture_full_context(context, skip_native_hook)
                return await self._capture_frame_in_viewport(context, skip_native_hook)

            if kind in (TargetKind.REGION, TargetKind.ELEMENT):
                if kind == TargetKind.ELEMENT:
                    element = await self._resolve_element(target, context)
                    if target.fully:
                        return await self._capture_element_fully(context, element, skip_native_hook)
                    region = await element.get_rect()
                else:
                    region = self._resolve_region(target)
                    if target.fully:
                        return await self._capture_area_fully(context, region, skip_native_hook)
                return await self._capture_region_in_viewport(context, region, skip_native_hook)

            if target.fully or self.settings.force_full_page_screenshot:
                return await self._capture_full_context(context, skip_native_hook)
            return await self._capture_viewport(context, skip_native_hook)
        finally:
            if caret is not None:
                await page_utils.focus_element(context, caret)
            await self._restore_page_state(saved)
            await driver.switch_to(original_context)

    # -------------------------------------------------------------------------
    # Target resolution
    # -------------------------------------------------------------------------

    async def _resolve_element(self, target: CaptureTarget, context) -> EyesElement:
        reference = target.element if target.element is not None else target.selector
        if reference is None:
            raise ElementNotFoundError(message="Element target needs a selector or an element")
        element = await context.element(reference)
        if element is None:
            raise ElementNotFoundError(reference)
        return element

    def _resolve_region(self, target: CaptureTarget) -> Region:
        if target.region is None:
            raise ValueError("Region target needs a region")
        region = target.region.copy()
        # Untyped regions are page coordinates of the target context
        if region.coordinates_type == CoordinatesType.CONTEXT_AS_IS:
            region.coordinates_type = CoordinatesType.CONTEXT_RELATIVE
        return region

    # -------------------------------------------------------------------------
    # Page state
    # -------------------------------------------------------------------------

    async def _preserve_page_state(self, context) -> list:
        saved = []
        for node in context.path:
            await node.focus()
            scroll_root = await node.get_scroll_root_element()
            if scroll_root is None:
                continue
            provider = create_position_provider(self.settings.stitch_mode, node, scroll_root)
            await scroll_root.preserve_position(provider)
            state = _SavedState(node, scroll_root, provider)
            saved.append(state)
            if self.settings.hide_scrollbars:
                await scroll_root.hide_scrollbars()
                state.scrollbars_hidden = True
        return saved

    async def _restore_page_state(self, saved: list) -> None:
        for state in reversed(saved):
            try:
                if state.scrollbars_hidden:
                    await state.scroll_root.restore_scrollbars()
                await state.scroll_root.restore_position(state.provider)
            except Exception as e:
                logger.warning(f"[CaptureEngine] Failed to restore page state of {state.context}: {e}")

    async def _refresh_offsets(self, context) -> None:
        """Re-enter context from the top so cached frame offsets match the page"""
        await self._driver.switch_to_main_context()
        await context.focus()
        await context.get_inner_offset()

    # -------------------------------------------------------------------------
    # Imaging
    # -------------------------------------------------------------------------

    async def _get_device_pixel_ratio(self) -> float:
        if self._device_pixel_ratio is None:
            try:
                self._device_pixel_ratio = await self._driver.get_pixel_ratio()
            except Exception as e:
                logger.warning(f"[CaptureEngine] Failed to extract device pixel ratio, using 1: {e}")
                self._device_pixel_ratio = 1.0
            logger.debug(f"[CaptureEngine] Device pixel ratio: {self._device_pixel_ratio}")
        return self._device_pixel_ratio

    async def _scale_provider_factory(self) -> ScaleProviderFactory:
        if self.settings.scale_ratio:
            return ScaleProviderFactory(FixedScaleProvider(self.settings.scale_ratio))
        main = self._driver.main_context
        viewport_size = await self._driver.get_viewport_size()
        try:
            entire_size = await main.get_document_size()
        except Exception as e:
            logger.warning(f"[CaptureEngine] Failed to extract entire size, using viewport: {e}")
            entire_size = viewport_size
        return ScaleProviderFactory(
            ContextBasedScaleProvider(entire_size, viewport_size, await self._get_device_pixel_ratio())
        )

    def _image_provider(self):
        return create_image_provider(
            self._driver,
            rotation=self.settings.rotation,
            debug_screenshots=self._debug,
            device_pixel_ratio=self._device_pixel_ratio or 1.0,
        )

    async def _take_viewport_image(self, skip_native_hook: bool) -> Image.Image:
        image = await self._image_provider().get_image(skip_native_hook=skip_native_hook)
        await self._debug.save(image, "original")
        image = FixedCutProvider.from_settings(self.settings.cut).cut(image)
        factory = await self._scale_provider_factory()
        image = factory.get_scale_provider(image.width).scale(image)
        await self._debug.save(image, "scaled")
        return image

    async def _build_algorithm(self) -> FullPageCaptureAlgorithm:
        main = self._driver.main_context
        origin_provider = create_position_provider(
            self.settings.stitch_mode, main, await main.get_scroll_root_element()
        )
        return FullPageCaptureAlgorithm(
            image_provider=self._image_provider(),
            origin_provider=origin_provider,
            scale_provider_factory=await self._scale_provider_factory(),
            cut_provider=FixedCutProvider.from_settings(self.settings.cut),
            wait_before_screenshots=self.settings.wait_before_screenshots,
            stitch_overlap=self.settings.stitch_overlap,
            region_position_compensation=create_region_position_compensation(self._driver),
            debug_screenshots=self._debug,
            seam_check_threshold=self.settings.seam_check_threshold,
        )

    async def _to_viewport(self, context, region: Region) -> Region:
        """Document coordinates of context -> viewport coordinates"""
        origin = Location.ZERO if context.is_main else await context.get_location_in_viewport()
        inner_offset = await context.get_inner_offset()
        return Region(
            region.left - inner_offset.x + origin.x,
            region.top - inner_offset.y + origin.y,
            region.width,
            region.height,
        )

    async def _context_window(self, context) -> Region:
        """Visible client area of context in viewport coordinates"""
        location = await context.get_location_in_viewport()
        window = Region.from_location_size(location, await context.get_effective_size())
        window.intersect(Region.from_location_size(Location.ZERO, await self._driver.get_viewport_size()))
        return window

    # -------------------------------------------------------------------------
    # Capture flavors
    # -------------------------------------------------------------------------

    async def _capture_viewport(self, context, skip_native_hook: bool) -> CaptureResult:
        await context.focus()
        image = await self._take_viewport_image(skip_native_hook)
        await context.focus()
        screenshot = await EyesScreenshot.from_screenshot_type(
            self._driver, image, device_pixel_ratio=self._device_pixel_ratio or 1.0
        )
        window = screenshot.get_frame_window()
        region = Region(window.left, window.top, window.width, window.height, CoordinatesType.SCREENSHOT_AS_IS)
        image_location = screenshot.convert_location(
            window.get_location(), CoordinatesType.SCREENSHOT_AS_IS, CoordinatesType.CONTEXT_RELATIVE
        )
        return CaptureResult(screenshot, region, image_location)

    async def _capture_region_in_viewport(self, context, region: Region, skip_native_hook: bool) -> CaptureResult:
        await context.focus()
        scroll_root = await context.get_scroll_root_element()
        provider = create_position_provider(self.settings.stitch_mode, context, scroll_root)
        await page_utils.ensure_region_visible(context, provider, region)
        await self._refresh_offsets(context)

        image = await self._take_viewport_image(skip_native_hook)
        await context.focus()
        screenshot = await EyesScreenshot.from_screenshot_type(
            self._driver, image, device_pixel_ratio=self._device_pixel_ratio or 1.0
        )
        sub_screenshot = screenshot.get_sub_screenshot(region, throw_if_clipped=False)
        return CaptureResult(sub_screenshot, region, region.get_location())

    async def _capture_frame_in_viewport(self, context, skip_native_hook: bool) -> CaptureResult:
        parent = context.parent
        frame_element = await context.get_frame_element()
        await parent.focus()
        region = await frame_element.get_client_rect()
        return await self._capture_region_in_viewport(parent, region, skip_native_hook)

    async def _capture_full_context(self, context, skip_native_hook: bool) -> CaptureResult:
        """Stitch the entire document of context (main page or frame)"""
        if not context.is_main:
            parent = context.parent
            frame_element = await context.get_frame_element()
            await parent.focus()
            frame_rect = await frame_element.get_client_rect()
            parent_provider = create_position_provider(
                self.settings.stitch_mode, parent, await parent.get_scroll_root_element()
            )
            await page_utils.ensure_region_visible(parent, parent_provider, frame_rect)

        await self._refresh_offsets(context)
        provider = create_position_provider(
            self.settings.stitch_mode, context, await context.get_scroll_root_element()
        )
        entire_size = await provider.get_entire_size()
        full_area = Region.from_location_size(Location.ZERO, entire_size, CoordinatesType.CONTEXT_RELATIVE)
        window = None if context.is_main else await self._context_window(context)

        algorithm = await self._build_algorithm()
        image = await algorithm.get_stitched_region(window, full_area, provider, skip_native_hook)
        screenshot = EyesScreenshot.from_frame_size(image, entire_size)
        return CaptureResult(screenshot, full_area, Location.ZERO)

    async def _capture_area_fully(self, context, area: Region, skip_native_hook: bool) -> CaptureResult:
        """Stitch an area of the context document by moving the context's scroll root"""
        await self._refresh_offsets(context)
        provider = create_position_provider(
            self.settings.stitch_mode, context, await context.get_scroll_root_element()
        )
        window = None if context.is_main else await self._context_window(context)

        algorithm = await self._build_algorithm()
        image = await algorithm.get_stitched_region(window, area, provider, skip_native_hook)
        screenshot = EyesScreenshot.from_frame_size(image, area.get_size())
        return CaptureResult(screenshot, area, area.get_location())

    async def _capture_element_fully(self, context, element: EyesElement, skip_native_hook: bool) -> CaptureResult:
        """Stitch the content of a scrollable element, or its area of the page otherwise"""
        if not await page_utils.is_scrollable(context, element):
            return await self._capture_area_fully(context, await element.get_rect(), skip_native_hook)

        client_rect = await element.get_client_rect()
        root_provider = create_position_provider(
            self.settings.stitch_mode, context, await context.get_scroll_root_element()
        )
        await page_utils.ensure_region_visible(context, root_provider, client_rect)
        await self._refresh_offsets(context)
        client_rect = await element.get_client_rect()

        window = await self._to_viewport(context, client_rect)
        if not context.is_main:
            window.intersect(await self._context_window(context))

        provider = create_position_provider(self.settings.stitch_mode, context, element, for_element=True)
        entire_size = await provider.get_entire_size()
        full_area = Region.from_location_size(Location.ZERO, entire_size, CoordinatesType.CONTEXT_RELATIVE)

        algorithm = await self._build_algorithm()
        image = await algorithm.get_stitched_region(window, full_area, provider, skip_native_hook)
        screenshot = EyesScreenshot.from_frame_size(image, entire_size)
        region = Region.from_location_size(client_rect.get_location(), entire_size, CoordinatesType.CONTEXT_RELATIVE)
        return CaptureResult(screenshot, region, client_rect.get_location())
