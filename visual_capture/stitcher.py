"""
Visual Capture - Full Page Stitching

FullPageCaptureAlgorithm captures content larger than the viewport by
moving it through a fixed tile window with a position provider, one tile
at a time, and pasting every tile into a canvas at the position the
provider actually reached.
"""

import asyncio
import logging
import math
from typing import List, Optional, Tuple

import cv2
import numpy as np
from PIL import Image

from .errors import ScreenshotCaptureError
from .geometry import Location, RectangleSize, Region
from .imaging import NullCutProvider, NullDebugScreenshotsProvider, NullRegionPositionCompensation

logger = logging.getLogger(__name__)


def _axis_positions(start: float, size: float, tile: float, overlap: int) -> List[float]:
    if size <= tile:
        return [start]
    step = max(tile - overlap, 1)
    count = 1 + math.ceil((size - tile) / step)
    positions = [start + index * step for index in range(count - 1)]
    # Last tile is aligned with the end of the area
    positions.append(start + size - tile)
    return positions


def compute_tile_positions(area: Region, tile_size: RectangleSize, overlap: int) -> List[Location]:
    """
    Positions to move the content to, row by row.

    Consecutive tiles advance by tile size minus overlap; the last tile of
    each axis is aligned with the end of the area.
    """
    xs = _axis_positions(area.left, area.width, tile_size.width, overlap)
    ys = _axis_positions(area.top, area.height, tile_size.height, overlap)
    return [Location(x, y) for y in ys for x in xs]


class FullPageCaptureAlgorithm:
    """
    Stitches viewport captures into one image of a full area.

    Args:
        image_provider: Source of raw screenshots
        origin_provider: Provider of the main scroll root, saved and restored
        scale_provider_factory: Yields the scale provider for a raw image width
        cut_provider: Removes fixed margins from raw screenshots
        wait_before_screenshots: Milliseconds to wait after each move
        stitch_overlap: Pixels shared by consecutive tiles
        region_position_compensation: Browser specific tile window fix-up
        debug_screenshots: Receives intermediate images
        seam_check_threshold: Minimum seam match confidence; None disables the check
    """

    def __init__(
        self,
        image_provider,
        origin_provider,
        scale_provider_factory,
        cut_provider=None,
        wait_before_screenshots: int = 100,
        stitch_overlap: int = 50,
        region_position_compensation=None,
        debug_screenshots=None,
        seam_check_threshold: Optional[float] = None,
    ):
        self._image_provider = image_provider
        self._origin_provider = origin_provider
        self._scale_provider_factory = scale_provider_factory
        self._cut_provider = cut_provider or NullCutProvider()
        self._wait_before_screenshots = wait_before_screenshots
        self._stitch_overlap = stitch_overlap
        self._region_position_compensation = (
            region_position_compensation or NullRegionPositionCompensation()
        )
        self._debug = debug_screenshots or NullDebugScreenshotsProvider()
        self._seam_check_threshold = seam_check_threshold

        # (canvas location, confidence) of every checked seam in the last stitch
        self.seam_scores: List[Tuple[Location, float]] = []

    async def get_stitched_region(
        self,
        region: Optional[Region],
        full_area: Optional[Region],
        position_provider,
        skip_native_hook: bool = False,
    ) -> Image.Image:
        """
        Capture full_area of the position provider's content.

        Args:
            region: Tile window in viewport (CSS pixel) coordinates, or None
                for the whole screenshot
            full_area: Content area to capture, defaults to the entire size
            position_provider: Provider that moves the content
            skip_native_hook: Use the plain screenshot on native apps

        Returns:
            Image exactly full_area.size large

        Raises:
            EyesDriverOperationError: A move failed; nothing partial is returned
            ScreenshotCaptureError: The tile window is empty
        """
        origin_state = await self._origin_provider.get_state()
        state = await position_provider.get_state()
        self.seam_scores = []

        try:
            if full_area is None:
                entire_size = await position_provider.get_entire_size()
                full_area = Region.from_location_size(Location.ZERO, entire_size)
            logger.info(f"[FullPageCapture] Stitching area {full_area}")

            start = full_area.get_location()
            achieved = await position_provider.set_position(start)
            await self._wait()
            tile = await self._capture_tile(region, skip_native_hook, "part-0")
            if tile.width == 0 or tile.height == 0:
                raise ScreenshotCaptureError("Got empty tile window for stitching!")

            tile_size = RectangleSize(tile.width, tile.height)
            positions = compute_tile_positions(full_area, tile_size, self._stitch_overlap)
            logger.info(
                f"[FullPageCapture] Tile {tile_size}, overlap {self._stitch_overlap}, "
                f"{len(positions)} tile(s)"
            )

            canvas = Image.new("RGB", (int(full_area.width), int(full_area.height)))
            pasted: List[Region] = []
            self._paste(canvas, tile, achieved, full_area, pasted)

            for index, position in enumerate(positions[1:], start=1):
                achieved = await position_provider.set_position(position)
                await self._wait()
                tile = await self._capture_tile(region, skip_native_hook, f"part-{index}")
                logger.debug(
                    f"[FullPageCapture] Tile {index + 1}/{len(positions)}: requested {position}, "
                    f"reached {achieved}"
                )
                self._paste(canvas, tile, achieved, full_area, pasted)

            await self._debug.save(canvas, "stitched")
            logger.info(f"[FullPageCapture] Stitched image {canvas.width}x{canvas.height}")
            return canvas
        finally:
            await position_provider.restore_state(state)
            await self._origin_provider.restore_state(origin_state)

    async def _wait(self) -> None:
        if self._wait_before_screenshots:
            await asyncio.sleep(self._wait_before_screenshots / 1000)

    async def _capture_tile(
        self, region: Optional[Region], skip_native_hook: bool, name: str
    ) -> Image.Image:
        """Raw screenshot -> cut -> crop to the tile window -> scale"""
        image = await self._image_provider.get_image(skip_native_hook=skip_native_hook)
        await self._debug.save(image, f"{name}-original")

        image = self._cut_provider.cut(image)
        scale_provider = self._scale_provider_factory.get_scale_provider(image.width)
        pixel_ratio = 1 / scale_provider.scale_ratio

        if region is not None:
            window = self._region_position_compensation.compensate_region_position(
                region.scale(pixel_ratio), pixel_ratio
            )
            window = window.copy().intersect(Region(0, 0, image.width, image.height))
            image = image.crop(window.to_box())

        image = scale_provider.scale(image)
        await self._debug.save(image, f"{name}-scaled")
        return image

    def _paste(
        self,
        canvas: Image.Image,
        tile: Image.Image,
        achieved: Location,
        full_area: Region,
        pasted: List[Region],
    ) -> None:
        offset = achieved.offset_negative(full_area.get_location())
        rect = Region(int(round(offset.x)), int(round(offset.y)), tile.width, tile.height)
        if self._seam_check_threshold is not None and pasted:
            self._check_seam(canvas, tile, rect, pasted)
        canvas.paste(tile, (rect.left, rect.top))
        pasted.append(rect)

    def _check_seam(self, canvas: Image.Image, tile: Image.Image, rect: Region, pasted: List[Region]) -> None:
        """Compare the strip the tile shares with earlier tiles against the canvas"""
        overlap = None
        for previous in pasted:
            candidate = rect.copy().intersect(previous)
            candidate.intersect(Region(0, 0, canvas.width, canvas.height))
            if candidate.is_size_empty():
                continue
            if overlap is None or candidate.width * candidate.height > overlap.width * overlap.height:
                overlap = candidate
        if overlap is None:
            return

        canvas_strip = np.array(canvas.crop(overlap.to_box()).convert("RGB"))
        tile_strip = np.array(
            tile.crop(overlap.offset(-rect.left, -rect.top).to_box()).convert("RGB")
        )
        canvas_gray = cv2.cvtColor(canvas_strip, cv2.COLOR_RGB2GRAY)
        tile_gray = cv2.cvtColor(tile_strip, cv2.COLOR_RGB2GRAY)

        if np.std(canvas_gray) == 0 or np.std(tile_gray) == 0:
            # Flat strips carry no correlation signal
            score = 1.0 if np.array_equal(canvas_gray, tile_gray) else 0.0
        else:
            result = cv2.matchTemplate(canvas_gray, tile_gray, cv2.TM_CCOEFF_NORMED)
            _, score, _, _ = cv2.minMaxLoc(result)

        location = Location(rect.left, rect.top)
        self.seam_scores.append((location, float(score)))
        if score < self._seam_check_threshold:
            logger.warning(
                f"[FullPageCapture] Low seam confidence at {location}: {score:.3f} "
                f"(threshold: {self._seam_check_threshold})"
            )
        else:
            logger.debug(f"[FullPageCapture] Seam at {location}: confidence={score:.3f}")
