"""
Visual Capture - Screenshot

EyesScreenshot pairs a captured bitmap with the offsets needed to map
context coordinates onto it. The offsets are read from the browsing
context once, at construction, so later conversions are pure arithmetic.
"""

import io
import logging
from enum import Enum
from typing import Optional

from PIL import Image

from .coordinates import ScreenshotOffsets, convert_location, convert_region_location
from .errors import CoordinatesTypeConversionError, OutOfBoundsError, ScreenshotCaptureError
from .geometry import CoordinatesType, Location, RectangleSize, Region
from .useragent import BrowserNames

logger = logging.getLogger(__name__)

# Firefox before 48 returns only the frame when switched into one
FIREFOX_FRAME_ONLY_VERSION = 48


class ScreenshotType(str, Enum):
    """What a captured bitmap covers"""
    VIEWPORT = "VIEWPORT"  # Exactly what was visible in the browser
    ENTIRE_FRAME = "ENTIRE_FRAME"  # Full content of a frame, usually stitched


class EyesScreenshot:
    """Captured image plus the offsets of the frame it was taken in"""

    def __init__(
        self,
        image: Image.Image,
        screenshot_type: ScreenshotType,
        offsets: ScreenshotOffsets,
        frame_size: RectangleSize,
        frame_rect: Region,
    ):
        self._image = image
        self._screenshot_type = screenshot_type
        self._offsets = offsets
        self._frame_size = frame_size
        self._frame_rect = frame_rect

    # -------------------------------------------------------------------------
    # Construction
    # -------------------------------------------------------------------------

    @staticmethod
    async def get_screenshot_type(
        driver,
        image: Image.Image,
        stitch_content: bool = False,
        device_pixel_ratio: float = 1.0,
    ) -> ScreenshotType:
        in_frame = not driver.current_context.is_main
        viewport_size = await driver.get_viewport_size()
        if stitch_content:
            viewport_size = viewport_size.scale(device_pixel_ratio)

        fits_viewport = image.width <= viewport_size.width and image.height <= viewport_size.height
        user_agent = driver.user_agent
        old_firefox_in_frame = (
            in_frame
            and user_agent is not None
            and user_agent.browser == BrowserNames.FIREFOX
            and 0 <= user_agent.browser_major < FIREFOX_FRAME_ONLY_VERSION
        )
        if fits_viewport or old_firefox_in_frame:
            return ScreenshotType.VIEWPORT
        return ScreenshotType.ENTIRE_FRAME

    @classmethod
    def from_frame_size(cls, image: Image.Image, entire_frame_size: RectangleSize) -> "EyesScreenshot":
        """Screenshot whose bitmap is the whole frame, starting at its origin"""
        return cls(
            image,
            ScreenshotType.ENTIRE_FRAME,
            ScreenshotOffsets(Location.ZERO, Location.ZERO),
            entire_frame_size,
            Region.from_location_size(Location.ZERO, entire_frame_size),
        )

    @classmethod
    async def from_screenshot_type(
        cls,
        driver,
        image: Image.Image,
        screenshot_type: Optional[ScreenshotType] = None,
        frame_location_in_screenshot: Optional[Location] = None,
        *,
        stitch_content: bool = False,
        device_pixel_ratio: float = 1.0,
    ) -> "EyesScreenshot":
        """
        Screenshot of the driver's current context.

        Args:
            driver: EyesDriver whose current context the image was taken in
            image: Captured bitmap
            screenshot_type: Inferred from the image size when omitted
            frame_location_in_screenshot: Defaults to the context's location
                in the viewport (zero for the main context)
            stitch_content: The image was produced at device resolution
            device_pixel_ratio: Ratio used with stitch_content

        Raises:
            ScreenshotCaptureError: If the frame does not overlap the image
        """
        context = driver.current_context
        if screenshot_type is None:
            screenshot_type = await cls.get_screenshot_type(
                driver, image, stitch_content, device_pixel_ratio
            )
            # Measuring the viewport runs in the main context
            await context.focus()

        try:
            scroll_position = await context.get_inner_offset()
        except Exception as e:
            logger.warning(f"[EyesScreenshot] Failed to read frame scroll position: {e}")
            scroll_position = Location.ZERO

        if frame_location_in_screenshot is None:
            frame_location_in_screenshot = (
                Location.ZERO if context.is_main else await context.get_location_in_viewport()
            )
        frame_size = await context.get_client_size()

        frame_rect = Region.from_location_size(frame_location_in_screenshot, frame_size)
        frame_rect.intersect(Region(0, 0, image.width, image.height))
        if frame_rect.is_size_empty():
            raise ScreenshotCaptureError(
                "Got empty frame window for screenshot!", screenshot_type=screenshot_type.value
            )

        logger.debug(
            f"[EyesScreenshot] {screenshot_type.value}: frame window {frame_rect}, "
            f"scroll {scroll_position}"
        )
        return cls(
            image,
            screenshot_type,
            ScreenshotOffsets(frame_location_in_screenshot, scroll_position),
            frame_size,
            frame_rect,
        )

    # -------------------------------------------------------------------------
    # Accessors
    # -------------------------------------------------------------------------

    @property
    def screenshot_type(self) -> ScreenshotType:
        return self._screenshot_type

    @property
    def offsets(self) -> ScreenshotOffsets:
        return self._offsets

    @property
    def frame_location_in_screenshot(self) -> Location:
        return self._offsets.frame_location_in_screenshot

    @property
    def current_frame_scroll_position(self) -> Location:
        return self._offsets.current_frame_scroll_position

    @property
    def frame_size(self) -> RectangleSize:
        return self._frame_size

    def get_image(self) -> Image.Image:
        return self._image

    def get_frame_window(self) -> Region:
        return self._frame_rect.copy()

    def to_png_bytes(self) -> bytes:
        buffer = io.BytesIO()
        self._image.save(buffer, format="PNG")
        return buffer.getvalue()

    # -------------------------------------------------------------------------
    # Coordinates
    # -------------------------------------------------------------------------

    def convert_location(
        self, location: Location, from_type: CoordinatesType, to_type: CoordinatesType
    ) -> Location:
        return convert_location(location, from_type, to_type, self._offsets)

    def convert_region_location(
        self, region: Region, from_type: CoordinatesType, to_type: CoordinatesType
    ) -> Region:
        return convert_region_location(region, from_type, to_type, self._offsets)

    def get_location_in_screenshot(self, location: Location, coordinates_type: CoordinatesType) -> Location:
        """
        Raises:
            OutOfBoundsError: If the location falls outside the frame window
        """
        result = self.convert_location(location, coordinates_type, CoordinatesType.SCREENSHOT_AS_IS)
        if not self._frame_rect.contains(result):
            raise OutOfBoundsError(
                f"Location {location} ('{coordinates_type}') is not visible in screenshot!"
            )
        return result

    def get_intersected_region(self, region: Region, result_type: CoordinatesType) -> Region:
        """Part of region visible in this screenshot, expressed in result_type"""
        if region.is_size_empty():
            return region.copy()

        original_type = region.coordinates_type
        if original_type not in (
            CoordinatesType.CONTEXT_AS_IS,
            CoordinatesType.CONTEXT_RELATIVE,
            CoordinatesType.SCREENSHOT_AS_IS,
        ):
            raise CoordinatesTypeConversionError(original_type)

        intersected = self.convert_region_location(
            region, original_type, CoordinatesType.SCREENSHOT_AS_IS
        )
        if original_type == CoordinatesType.SCREENSHOT_AS_IS:
            # Screenshot based requests are clipped by the image itself
            intersected.intersect(
                Region(0, 0, self._image.width, self._image.height, CoordinatesType.SCREENSHOT_AS_IS)
            )
        else:
            intersected.intersect(self._frame_rect)

        if intersected.is_empty():
            return intersected

        return self.convert_region_location(intersected, CoordinatesType.SCREENSHOT_AS_IS, result_type)

    async def get_intersected_region_from_element(self, element) -> Region:
        """Visible part of the element in screenshot coordinates"""
        region = self.get_intersected_region(await element.get_rect(), CoordinatesType.CONTEXT_RELATIVE)
        if not region.is_empty():
            region = self.convert_region_location(
                region, CoordinatesType.CONTEXT_RELATIVE, CoordinatesType.SCREENSHOT_AS_IS
            )
        return region

    def get_sub_screenshot(self, region: Region, throw_if_clipped: bool = False) -> "EyesScreenshot":
        """
        Crop region out of this screenshot.

        Raises:
            OutOfBoundsError: If nothing of the region is visible, or it is
                clipped and throw_if_clipped is set
        """
        logger.debug(f"[EyesScreenshot] get_sub_screenshot({region}, {throw_if_clipped})")

        as_is_region = self.get_intersected_region(region, CoordinatesType.SCREENSHOT_AS_IS)
        if as_is_region.is_size_empty() or (
            throw_if_clipped and as_is_region.get_size() != region.get_size()
        ):
            raise OutOfBoundsError(
                f"Region {region} is out of screenshot bounds {self._frame_rect}", region=region
            )

        image_part = self._image.crop(as_is_region.to_box())
        screenshot = EyesScreenshot.from_frame_size(
            image_part, RectangleSize(image_part.width, image_part.height)
        )
        screenshot._offsets = ScreenshotOffsets(Location(-region.left, -region.top), Location.ZERO)
        return screenshot
