"""
Visual Capture - Imaging Collaborators

Small strategy objects used while turning raw screenshots into tiles:

- Image providers: where the raw bitmap comes from
- Scale providers: device pixels to CSS pixels
- Cut providers: fixed margins removed from each bitmap
- Region position compensation: browser specific region fix-ups
- Debug screenshots: optional dump of intermediate images
"""

import logging
import math
import os
from datetime import datetime
from typing import Optional

from PIL import Image

from .config import CaptureSettings, CutSettings
from .driver import decode_image
from .geometry import RectangleSize, Region
from .screenshot import EyesScreenshot, ScreenshotType
from .useragent import BrowserNames

logger = logging.getLogger(__name__)

NATIVE_SCREENSHOT_COMMAND = "mobile: viewportScreenshot"
FIREFOX_FRAME_PROVIDER_VERSION = 48


# =============================================================================
# Debug screenshots
# =============================================================================

class NullDebugScreenshotsProvider:
    """Discards debug images"""

    async def save(self, image: Image.Image, suffix: str) -> None:
        return None


class DebugScreenshotsProvider(NullDebugScreenshotsProvider):
    """Writes each intermediate image as PNG into a directory"""

    def __init__(self, path: str, prefix: str = "screenshot_"):
        self.path = path
        self.prefix = prefix
        os.makedirs(path, exist_ok=True)

    async def save(self, image: Image.Image, suffix: str) -> None:
        timestamp = datetime.now().strftime("%Y_%m_%d_%H_%M_%S_%f")
        filename = os.path.join(self.path, f"{self.prefix}{timestamp}_{suffix}.png")
        try:
            image.save(filename, format="PNG")
            logger.debug(f"[DebugScreenshots] Saved {filename}")
        except OSError as e:
            logger.warning(f"[DebugScreenshots] Failed to save {filename}: {e}")


# =============================================================================
# Image providers
# =============================================================================

class TakesScreenshotImageProvider:
    """Plain WebDriver screenshot, optionally rotated"""

    def __init__(self, driver, rotation: int = 0, debug_screenshots=None):
        self._driver = driver
        self.rotation = rotation
        self._debug = debug_screenshots or NullDebugScreenshotsProvider()

    async def _take(self, skip_native_hook: bool = False) -> Image.Image:
        return await self._driver.take_screenshot()

    async def get_image(self, skip_native_hook: bool = False) -> Image.Image:
        logger.debug(f"[{type(self).__name__}] Getting screenshot")
        image = await self._take(skip_native_hook)
        if self.rotation:
            image = image.rotate(self.rotation, expand=True)
        return image


class FirefoxScreenshotImageProvider(TakesScreenshotImageProvider):
    """
    Firefox returns the whole viewport even when switched into a frame.

    Inside a frame the bitmap is cut down to the frame's part of the
    viewport so callers always see the current context at the origin.
    """

    def __init__(self, driver, rotation: int = 0, debug_screenshots=None, device_pixel_ratio: float = 1.0):
        super().__init__(driver, rotation, debug_screenshots)
        self.device_pixel_ratio = device_pixel_ratio

    async def get_image(self, skip_native_hook: bool = False) -> Image.Image:
        image = await super().get_image(skip_native_hook)
        await self._debug.save(image, "FIREFOX_FRAME")

        context = self._driver.current_context
        if context.is_main:
            return image

        screenshot_type = await EyesScreenshot.get_screenshot_type(self._driver, image)
        location = await context.get_location_in_viewport()
        if screenshot_type == ScreenshotType.ENTIRE_FRAME:
            location = location.offset_by_location(await context.main.get_inner_offset())
        viewport_size = await self._driver.get_viewport_size()

        crop = Region.from_location_size(
            location.scale(self.device_pixel_ratio), viewport_size.scale(self.device_pixel_ratio)
        )
        crop.intersect(Region(0, 0, image.width, image.height))
        if crop.is_size_empty():
            return image
        return image.crop(crop.to_box())


class MobileApplicationScreenshotImageProvider(TakesScreenshotImageProvider):
    """
    Native app screenshot through the viewport-only command.

    skip_native_hook falls back to the plain screenshot, which keeps region
    captures working on native apps.
    """

    async def _take(self, skip_native_hook: bool = False) -> Image.Image:
        if skip_native_hook:
            return await self._driver.take_screenshot()
        data = await self._driver.adapter.execute_script(NATIVE_SCREENSHOT_COMMAND)
        return decode_image(data)


def create_image_provider(driver, rotation: int = 0, debug_screenshots=None, device_pixel_ratio: float = 1.0):
    user_agent = driver.user_agent
    if (
        user_agent is not None
        and user_agent.browser == BrowserNames.FIREFOX
        and user_agent.browser_major >= FIREFOX_FRAME_PROVIDER_VERSION
    ):
        return FirefoxScreenshotImageProvider(driver, rotation, debug_screenshots, device_pixel_ratio)
    if driver.is_native:
        return MobileApplicationScreenshotImageProvider(driver, rotation, debug_screenshots)
    return TakesScreenshotImageProvider(driver, rotation, debug_screenshots)


# =============================================================================
# Scale providers
# =============================================================================

class FixedScaleProvider:
    """Always scales by the same ratio"""

    def __init__(self, scale_ratio: float):
        if scale_ratio <= 0:
            raise ValueError(f"Scale ratio must be positive, got {scale_ratio}")
        self.scale_ratio = scale_ratio

    def update_scale_ratio(self, image_width: int) -> None:
        pass

    def scale(self, image: Image.Image) -> Image.Image:
        if self.scale_ratio == 1:
            return image
        size = RectangleSize(image.width, image.height).scale(self.scale_ratio)
        return image.resize((int(size.width), int(size.height)), Image.LANCZOS)


class ContextBasedScaleProvider(FixedScaleProvider):
    """
    Derives the ratio from the screenshot width: no scaling when the bitmap
    already matches the viewport or the page width, 1/DPR otherwise.
    """

    ALLOWED_VIEWPORT_DEVIATION = 1
    ALLOWED_DOCUMENT_DEVIATION = 10

    def __init__(self, entire_size: RectangleSize, viewport_size: RectangleSize, device_pixel_ratio: float):
        super().__init__(1)
        self._entire_size = entire_size
        self._viewport_size = viewport_size
        self._device_pixel_ratio = device_pixel_ratio or 1

    def update_scale_ratio(self, image_width: int) -> None:
        viewport_width = self._viewport_size.width
        document_width = self._entire_size.width
        if (
            abs(image_width - viewport_width) <= self.ALLOWED_VIEWPORT_DEVIATION
            or abs(image_width - document_width) <= self.ALLOWED_DOCUMENT_DEVIATION
        ):
            self.scale_ratio = 1
        else:
            self.scale_ratio = 1 / self._device_pixel_ratio
        logger.debug(f"[ContextBasedScaleProvider] Scale ratio for width {image_width}: {self.scale_ratio}")


class ScaleProviderFactory:
    """Hands out the scale provider after updating it for the image width"""

    def __init__(self, provider: FixedScaleProvider):
        self._provider = provider

    def get_scale_provider(self, image_width: int) -> FixedScaleProvider:
        self._provider.update_scale_ratio(image_width)
        return self._provider


# =============================================================================
# Cut providers
# =============================================================================

class NullCutProvider:
    def cut(self, image: Image.Image) -> Image.Image:
        return image


class FixedCutProvider(NullCutProvider):
    """Removes fixed margins (in device pixels) from every side"""

    def __init__(self, top: int = 0, bottom: int = 0, left: int = 0, right: int = 0):
        self.top = top
        self.bottom = bottom
        self.left = left
        self.right = right

    @classmethod
    def from_settings(cls, cut: Optional[CutSettings]) -> NullCutProvider:
        if cut is None:
            return NullCutProvider()
        return cls(cut.top, cut.bottom, cut.left, cut.right)

    def cut(self, image: Image.Image) -> Image.Image:
        right = max(image.width - self.right, self.left)
        bottom = max(image.height - self.bottom, self.top)
        return image.crop((self.left, self.top, right, bottom))


# =============================================================================
# Region position compensation
# =============================================================================

class NullRegionPositionCompensation:
    def compensate_region_position(self, region: Region, pixel_ratio: float) -> Region:
        return region


class FirefoxRegionPositionCompensation(NullRegionPositionCompensation):
    """Firefox on HiDPI reports main-context regions half a device pixel low"""

    def __init__(self, driver):
        self._driver = driver

    def compensate_region_position(self, region: Region, pixel_ratio: float) -> Region:
        if pixel_ratio == 1 or not self._driver.current_context.is_main:
            return region
        compensated = region.offset(0, -math.ceil(pixel_ratio / 2))
        if compensated.width <= 0 or compensated.height <= 0:
            return Region(0, 0, 0, 0, region.coordinates_type)
        return compensated


def create_region_position_compensation(driver) -> NullRegionPositionCompensation:
    if driver.is_firefox:
        return FirefoxRegionPositionCompensation(driver)
    return NullRegionPositionCompensation()


def create_debug_screenshots_provider(settings: CaptureSettings) -> NullDebugScreenshotsProvider:
    if settings.debug_screenshots_path:
        return DebugScreenshotsProvider(settings.debug_screenshots_path, settings.debug_screenshots_prefix)
    return NullDebugScreenshotsProvider()
