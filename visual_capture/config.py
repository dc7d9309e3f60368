"""
Visual Capture - Configuration Models

Pydantic models for capture settings and capture targets.
"""

from typing import Any, List, Optional
from pydantic import BaseModel, Field
from enum import Enum

from .geometry import Region


class StitchMode(str, Enum):
    """How content is moved into view between tiles"""
    SCROLL = "Scroll"  # Scroll the root element
    CSS = "CSS"  # Translate the root element with a CSS transform


class TargetKind(str, Enum):
    """What a capture call is aimed at"""
    WINDOW = "window"
    REGION = "region"
    ELEMENT = "element"
    FRAME = "frame"


class CutSettings(BaseModel):
    """Fixed margins removed from every raw screenshot (browser chrome, status bars)"""
    top: int = Field(0, ge=0)
    bottom: int = Field(0, ge=0)
    left: int = Field(0, ge=0)
    right: int = Field(0, ge=0)


class CaptureSettings(BaseModel):
    """Settings for one capture engine"""
    # Stitching
    stitch_mode: StitchMode = StitchMode.SCROLL
    stitch_overlap: int = Field(default=50, ge=0)  # Pixels shared between consecutive tiles
    wait_before_screenshots: int = Field(default=100, ge=0)  # Milliseconds to settle after each move
    force_full_page_screenshot: bool = False

    # Page state
    hide_scrollbars: bool = True
    hide_caret: bool = True

    # Imaging
    cut: Optional[CutSettings] = None
    scale_ratio: Optional[float] = Field(None, gt=0)  # Fixed ratio; derived from the page when unset
    rotation: int = 0  # Degrees, applied to every raw screenshot
    debug_screenshots_path: Optional[str] = None  # Directory for intermediate images
    debug_screenshots_prefix: str = "screenshot_"
    seam_check_threshold: Optional[float] = Field(None, ge=0, le=1)  # TM_CCOEFF_NORMED floor

    # Viewport
    viewport_retries: int = Field(default=3, ge=0)
    viewport_retry_sleep: float = Field(default=3.0, ge=0)  # Seconds

    class Config:
        use_enum_values = True


class CaptureTarget(BaseModel):
    """What to capture"""
    kind: TargetKind = TargetKind.WINDOW
    region: Optional[Region] = None  # For REGION targets
    selector: Optional[Any] = None  # For ELEMENT targets (adapter selector)
    element: Optional[Any] = None  # For ELEMENT targets (adapter element)
    frames: List[Any] = Field(default_factory=list)  # Frame references from the main context
    fully: bool = False
    scroll_root_selector: Optional[Any] = None

    class Config:
        use_enum_values = True
        arbitrary_types_allowed = True

    @classmethod
    def window(cls, fully: bool = False, **kwargs) -> "CaptureTarget":
        return cls(kind=TargetKind.WINDOW, fully=fully, **kwargs)

    @classmethod
    def for_region(cls, region: Region, **kwargs) -> "CaptureTarget":
        return cls(kind=TargetKind.REGION, region=region, **kwargs)

    @classmethod
    def for_element(cls, selector: Any = None, element: Any = None, **kwargs) -> "CaptureTarget":
        return cls(kind=TargetKind.ELEMENT, selector=selector, element=element, **kwargs)

    @classmethod
    def for_frame(cls, *frames: Any, **kwargs) -> "CaptureTarget":
        return cls(kind=TargetKind.FRAME, frames=list(frames), **kwargs)
