"""
Visual Capture - Geometry

Value types for points, sizes and rectangles used by every capture step.
Location and RectangleSize are immutable. Region is mutable only through
intersect(), which narrows it in place.
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Tuple, Union


class CoordinatesType(str, Enum):
    """Coordinate space a region or location is expressed in"""
    CONTEXT_AS_IS = "CONTEXT_AS_IS"  # As the browsing context reports it
    CONTEXT_RELATIVE = "CONTEXT_RELATIVE"  # Relative to the context scroll offset
    SCREENSHOT_AS_IS = "SCREENSHOT_AS_IS"  # Pixel coordinates in a captured bitmap


@dataclass(frozen=True)
class Location:
    """2-D point (x, y)"""
    x: float = 0
    y: float = 0

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "Location":
        if not data:
            return cls.ZERO
        return cls(data.get("x") or 0, data.get("y") or 0)

    def offset(self, dx: float, dy: float) -> "Location":
        return Location(self.x + dx, self.y + dy)

    def offset_by_location(self, other: "Location") -> "Location":
        return Location(self.x + other.x, self.y + other.y)

    def offset_negative(self, other: "Location") -> "Location":
        return Location(self.x - other.x, self.y - other.y)

    def scale(self, ratio: float) -> "Location":
        return Location(math.ceil(self.x * ratio), math.ceil(self.y * ratio))

    def to_dict(self) -> Dict[str, float]:
        return {"x": self.x, "y": self.y}

    def __str__(self) -> str:
        return f"({self.x}, {self.y})"


Location.ZERO = Location(0, 0)


@dataclass(frozen=True)
class RectangleSize:
    """Width/height pair"""
    width: float = 0
    height: float = 0

    def __post_init__(self):
        if self.width < 0 or self.height < 0:
            raise ValueError(f"Size must be non-negative, got {self.width}x{self.height}")

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "RectangleSize":
        if not data:
            return cls(0, 0)
        return cls(data.get("width") or 0, data.get("height") or 0)

    def is_empty(self) -> bool:
        return self.width <= 0 or self.height <= 0

    def scale(self, ratio: float) -> "RectangleSize":
        return RectangleSize(math.ceil(self.width * ratio), math.ceil(self.height * ratio))

    def to_dict(self) -> Dict[str, float]:
        return {"width": self.width, "height": self.height}

    def __str__(self) -> str:
        return f"{self.width}x{self.height}"


class Region:
    """
    Rectangle tagged with the coordinate space it is expressed in.

    Containment checks are purely spatial, so both sides have to be in the
    same coordinate space before calling contains().
    """

    def __init__(
        self,
        left: float = 0,
        top: float = 0,
        width: float = 0,
        height: float = 0,
        coordinates_type: CoordinatesType = CoordinatesType.CONTEXT_AS_IS,
    ):
        self.left = left
        self.top = top
        self.width = width
        self.height = height
        self.coordinates_type = coordinates_type

    @classmethod
    def from_location_size(
        cls,
        location: Location,
        size: RectangleSize,
        coordinates_type: CoordinatesType = CoordinatesType.CONTEXT_AS_IS,
    ) -> "Region":
        return cls(location.x, location.y, size.width, size.height, coordinates_type)

    @classmethod
    def from_dict(
        cls,
        data: Dict[str, Any],
        coordinates_type: CoordinatesType = CoordinatesType.CONTEXT_AS_IS,
    ) -> "Region":
        """Accepts both {x, y, width, height} and {left, top, width, height}"""
        left = data.get("left", data.get("x", 0)) or 0
        top = data.get("top", data.get("y", 0)) or 0
        return cls(left, top, data.get("width") or 0, data.get("height") or 0, coordinates_type)

    def copy(self) -> "Region":
        return Region(self.left, self.top, self.width, self.height, self.coordinates_type)

    @property
    def right(self) -> float:
        return self.left + self.width

    @property
    def bottom(self) -> float:
        return self.top + self.height

    def get_location(self) -> Location:
        return Location(self.left, self.top)

    def get_size(self) -> RectangleSize:
        return RectangleSize(max(self.width, 0), max(self.height, 0))

    def is_size_empty(self) -> bool:
        return self.width <= 0 or self.height <= 0

    def is_empty(self) -> bool:
        # A region without area carries no usable location either
        return self.is_size_empty()

    def offset(self, dx: float, dy: float) -> "Region":
        return Region(self.left + dx, self.top + dy, self.width, self.height, self.coordinates_type)

    def scale(self, ratio: float) -> "Region":
        return Region(
            math.ceil(self.left * ratio),
            math.ceil(self.top * ratio),
            math.ceil(self.width * ratio),
            math.ceil(self.height * ratio),
            self.coordinates_type,
        )

    def is_intersected(self, other: "Region") -> bool:
        return (
            self.left < other.right
            and other.left < self.right
            and self.top < other.bottom
            and other.top < self.bottom
        )

    def intersect(self, other: "Region") -> "Region":
        """Narrow this region to its overlap with other (in place)"""
        if not self.is_intersected(other):
            self.left, self.top, self.width, self.height = 0, 0, 0, 0
            return self

        left = max(self.left, other.left)
        top = max(self.top, other.top)
        right = min(self.right, other.right)
        bottom = min(self.bottom, other.bottom)

        self.left = left
        self.top = top
        self.width = right - left
        self.height = bottom - top
        return self

    def contains(self, item: Union["Region", Location]) -> bool:
        if isinstance(item, Location):
            return self.left <= item.x <= self.right and self.top <= item.y <= self.bottom

        assert item.coordinates_type == self.coordinates_type, (
            f"Cannot compare {item.coordinates_type} region with {self.coordinates_type} region"
        )
        return (
            self.left <= item.left
            and self.top <= item.top
            and item.right <= self.right
            and item.bottom <= self.bottom
        )

    def to_box(self) -> Tuple[int, int, int, int]:
        """PIL crop box (left, upper, right, lower)"""
        return (
            int(round(self.left)),
            int(round(self.top)),
            int(round(self.right)),
            int(round(self.bottom)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "left": self.left,
            "top": self.top,
            "width": self.width,
            "height": self.height,
            "coordinatesType": self.coordinates_type.value,
        }

    def __eq__(self, other) -> bool:
        if not isinstance(other, Region):
            return NotImplemented
        return (
            self.left == other.left
            and self.top == other.top
            and self.width == other.width
            and self.height == other.height
            and self.coordinates_type == other.coordinates_type
        )

    def __repr__(self) -> str:
        return (
            f"Region({self.left}, {self.top}, {self.width}x{self.height}, "
            f"{self.coordinates_type.value})"
        )
