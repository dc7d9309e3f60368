"""
Visual Capture - Coordinate Conversion

Converts locations and regions between the coordinate spaces of a captured
image. A conversion is fully determined by two offsets cached on the
screenshot: where the frame sits inside the bitmap, and how far the frame
was scrolled when the bitmap was taken.
"""

from dataclasses import dataclass

from .errors import CoordinatesTypeConversionError
from .geometry import CoordinatesType, Location, Region


@dataclass(frozen=True)
class ScreenshotOffsets:
    """Offsets a screenshot needs to translate between coordinate spaces"""
    frame_location_in_screenshot: Location = Location.ZERO
    current_frame_scroll_position: Location = Location.ZERO


def convert_location(
    location: Location,
    from_type: CoordinatesType,
    to_type: CoordinatesType,
    offsets: ScreenshotOffsets,
) -> Location:
    """
    Convert a location from one coordinate space to another.

    Args:
        location: Point to convert
        from_type: Space the point is currently expressed in
        to_type: Space to express it in
        offsets: Frame location and scroll position of the screenshot

    Returns:
        New Location in the target space

    Raises:
        CoordinatesTypeConversionError: For an unsupported pair of spaces
    """
    if from_type == to_type:
        return Location(location.x, location.y)

    frame = offsets.frame_location_in_screenshot
    scroll = offsets.current_frame_scroll_position

    if from_type == CoordinatesType.CONTEXT_AS_IS:
        if to_type == CoordinatesType.CONTEXT_RELATIVE:
            return location.offset_by_location(scroll)
        if to_type == CoordinatesType.SCREENSHOT_AS_IS:
            return location.offset_by_location(frame)

    elif from_type == CoordinatesType.CONTEXT_RELATIVE:
        if to_type == CoordinatesType.SCREENSHOT_AS_IS:
            # relative -> as-is -> screenshot
            return location.offset_negative(scroll).offset_by_location(frame)
        if to_type == CoordinatesType.CONTEXT_AS_IS:
            return location.offset_negative(scroll)

    elif from_type == CoordinatesType.SCREENSHOT_AS_IS:
        if to_type == CoordinatesType.CONTEXT_RELATIVE:
            # screenshot -> as-is -> relative
            return location.offset_negative(frame).offset_by_location(scroll)
        if to_type == CoordinatesType.CONTEXT_AS_IS:
            return location.offset_negative(frame)

    raise CoordinatesTypeConversionError(from_type, to_type)


def convert_region_location(
    region: Region,
    from_type: CoordinatesType,
    to_type: CoordinatesType,
    offsets: ScreenshotOffsets,
) -> Region:
    """Translate the region's location only; empty regions are copied unchanged"""
    if region.is_size_empty():
        return region.copy()

    location = convert_location(region.get_location(), from_type, to_type, offsets)
    return Region.from_location_size(location, region.get_size(), to_type)
