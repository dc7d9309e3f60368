"""
Visual Capture Package

Screenshot capture core for browser automation sessions: viewport,
region, element and frame captures, with full-content stitching.

Modules:
- geometry: Location, RectangleSize, Region and coordinate spaces
- coordinates: Conversion between coordinate spaces
- driver: DriverAdapter interface and the EyesDriver session
- context: Browsing context tree (main document and iframes)
- positioning: Scroll and CSS translate position providers
- screenshot: EyesScreenshot and sub-screenshots
- stitcher: Full page stitching
- capture: CaptureEngine entry point
"""

# Geometry
from .geometry import CoordinatesType, Location, RectangleSize, Region
from .coordinates import ScreenshotOffsets, convert_location, convert_region_location

# Errors
from .errors import (
    VisualCaptureError,
    CoordinatesTypeConversionError,
    OutOfBoundsError,
    EyesDriverOperationError,
    ScreenshotCaptureError,
    ElementNotFoundError,
    ViewportSizeError,
    ErrorContext,
    get_user_friendly_message,
)

# Configuration
from .config import CaptureSettings, CaptureTarget, CutSettings, StitchMode, TargetKind

# Session and contexts
from .driver import DriverAdapter, EyesDriver, decode_image
from .context import ContextState, EyesContext
from .element import EyesElement

# Capture pipeline
from .positioning import (
    PositionMemento,
    PositionProvider,
    ScrollPositionProvider,
    ScrollElementPositionProvider,
    CssTranslatePositionProvider,
    CssTranslateElementPositionProvider,
    create_position_provider,
)
from .screenshot import EyesScreenshot, ScreenshotType
from .stitcher import FullPageCaptureAlgorithm, compute_tile_positions
from .capture import CaptureEngine, CaptureResult

__all__ = [
    # Geometry
    'CoordinatesType',
    'Location',
    'RectangleSize',
    'Region',
    'ScreenshotOffsets',
    'convert_location',
    'convert_region_location',
    # Errors
    'VisualCaptureError',
    'CoordinatesTypeConversionError',
    'OutOfBoundsError',
    'EyesDriverOperationError',
    'ScreenshotCaptureError',
    'ElementNotFoundError',
    'ViewportSizeError',
    'ErrorContext',
    'get_user_friendly_message',
    # Configuration
    'CaptureSettings',
    'CaptureTarget',
    'CutSettings',
    'StitchMode',
    'TargetKind',
    # Session
    'DriverAdapter',
    'EyesDriver',
    'decode_image',
    'ContextState',
    'EyesContext',
    'EyesElement',
    # Positioning
    'PositionMemento',
    'PositionProvider',
    'ScrollPositionProvider',
    'ScrollElementPositionProvider',
    'CssTranslatePositionProvider',
    'CssTranslateElementPositionProvider',
    'create_position_provider',
    # Screenshots
    'EyesScreenshot',
    'ScreenshotType',
    'FullPageCaptureAlgorithm',
    'compute_tile_positions',
    'CaptureEngine',
    'CaptureResult',
]

__version__ = '0.1.0'
