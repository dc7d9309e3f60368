"""
Visual Capture - Driver Session

DriverAdapter is the capability interface a browser-automation framework
implements; EyesDriver is the session built on top of it. The session owns
the context tree, tracks the current context, routes context switches
along the shortest path and exposes viewport, window and screenshot
operations.
"""

import asyncio
import base64
import binascii
import io
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Tuple, Union

from PIL import Image, UnidentifiedImageError

from . import page_utils
from .context import EyesContext
from .element import EyesElement
from .errors import ScreenshotCaptureError, VisualCaptureError
from .geometry import RectangleSize, Region
from .useragent import BrowserNames, UserAgent, parse_user_agent

logger = logging.getLogger(__name__)


class DriverAdapter(ABC):
    """
    Capabilities the capture core needs from an automation framework.

    The adapter is stateful in the WebDriver sense: context switches move the
    session into another frame, and scripts and lookups run in whichever
    frame is current. Selectors passed by the core are CSS strings.
    """

    @abstractmethod
    async def take_screenshot(self) -> Union[bytes, str]:
        """PNG bytes, or a base64 string of them, of the current viewport"""

    @abstractmethod
    async def execute_script(self, script: str, *args: Any) -> Any:
        pass

    @abstractmethod
    async def main_context(self) -> None:
        pass

    @abstractmethod
    async def parent_context(self) -> None:
        pass

    @abstractmethod
    async def child_context(self, element: Any) -> None:
        pass

    @abstractmethod
    async def find_element(self, selector: Any) -> Optional[Any]:
        pass

    @abstractmethod
    async def find_elements(self, selector: Any) -> List[Any]:
        pass

    @abstractmethod
    async def is_equal_elements(self, element1: Any, element2: Any) -> bool:
        pass

    @abstractmethod
    async def get_window_rect(self) -> Dict[str, float]:
        """{x, y, width, height} of the browser window"""

    @abstractmethod
    async def set_window_rect(self, rect: Dict[str, float]) -> None:
        """Apply any subset of {x, y, width, height}"""

    @abstractmethod
    def is_element(self, value: Any) -> bool:
        pass

    @abstractmethod
    def is_selector(self, value: Any) -> bool:
        pass

    def is_stale_element_error(self, error: BaseException) -> bool:
        return False

    async def get_driver_info(self) -> Dict[str, Any]:
        """
        Optional session details: is_native, is_mobile, is_stateless,
        device_name, platform_name, platform_version, browser_name,
        browser_version
        """
        return {}


class EyesDriver:
    """Capture session over one DriverAdapter"""

    def __init__(
        self,
        adapter: DriverAdapter,
        scroll_root_element: Any = None,
        viewport_retries: int = 3,
        viewport_retry_sleep: float = 3.0,
    ):
        self._adapter = adapter
        self._viewport_retries = viewport_retries
        self._viewport_retry_sleep = viewport_retry_sleep

        self._main_context = EyesContext(self, scroll_root_element=scroll_root_element)
        self._current_context = self._main_context
        self._contexts: Dict[Tuple, EyesContext] = {}

        # Serializes captures on this session
        self.lock = asyncio.Lock()

        self._initialized = False
        self._is_native = False
        self._is_mobile = False
        self._is_stateless = False
        self._device_name: Optional[str] = None
        self._platform_name: Optional[str] = None
        self._platform_version: Optional[str] = None
        self._browser_name: Optional[str] = None
        self._browser_version: Optional[str] = None
        self._user_agent_string: Optional[str] = None
        self._user_agent: Optional[UserAgent] = None

    # -------------------------------------------------------------------------
    # Properties
    # -------------------------------------------------------------------------

    @property
    def adapter(self) -> DriverAdapter:
        return self._adapter

    @property
    def main_context(self) -> EyesContext:
        return self._main_context

    @property
    def current_context(self) -> EyesContext:
        return self._current_context

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    @property
    def is_native(self) -> bool:
        return self._is_native

    @property
    def is_mobile(self) -> bool:
        return self._is_mobile

    @property
    def device_name(self) -> Optional[str]:
        return self._device_name

    @property
    def platform_name(self) -> Optional[str]:
        return self._platform_name

    @property
    def platform_version(self) -> Optional[str]:
        return self._platform_version

    @property
    def browser_name(self) -> Optional[str]:
        return self._browser_name

    @property
    def browser_version(self) -> Optional[str]:
        return self._browser_version

    @property
    def user_agent(self) -> Optional[UserAgent]:
        return self._user_agent

    @property
    def user_agent_string(self) -> Optional[str]:
        return self._user_agent_string

    @property
    def is_firefox(self) -> bool:
        return self._user_agent is not None and self._user_agent.browser == BrowserNames.FIREFOX

    def update_current_context(self, context: EyesContext) -> None:
        self._current_context = context

    async def init(self) -> "EyesDriver":
        """Load driver info and parse the user agent"""
        info = await self._adapter.get_driver_info() or {}
        self._is_native = bool(info.get("is_native", False))
        self._is_mobile = bool(info.get("is_mobile", False))
        self._is_stateless = bool(info.get("is_stateless", False))
        self._device_name = info.get("device_name")
        self._platform_name = info.get("platform_name")
        self._platform_version = info.get("platform_version")
        self._browser_name = info.get("browser_name")
        self._browser_version = info.get("browser_version")

        if not self._is_native:
            self._user_agent_string = await page_utils.get_user_agent(self._current_context)
            self._user_agent = parse_user_agent(self._user_agent_string)

        if self._user_agent:
            if not self._is_mobile:
                self._is_mobile = self._user_agent.os in ("iOS", "Android")
            self._platform_name = self._platform_name or self._user_agent.os
            self._platform_version = self._platform_version or self._user_agent.os_major_version
            self._browser_name = self._browser_name or self._user_agent.browser
            self._browser_version = self._browser_version or self._user_agent.browser_major_version

        self._initialized = True
        logger.info(
            f"[EyesDriver] Session ready: browser={self._browser_name} {self._browser_version}, "
            f"platform={self._platform_name}, native={self._is_native}"
        )
        return self

    # -------------------------------------------------------------------------
    # Context arena
    # -------------------------------------------------------------------------

    def get_child_context(
        self, parent: EyesContext, reference: Any, scroll_root_element: Any = None
    ) -> EyesContext:
        key = parent.key + (self._reference_key(reference),)
        context = self._contexts.get(key)
        if context is None:
            context = EyesContext(
                self, parent=parent, reference=reference, key=key,
                scroll_root_element=scroll_root_element,
            )
            self._contexts[key] = context
        return context

    def get_context(self, *references: Any) -> EyesContext:
        """Node for a path of frame references from the main context (no switching)"""
        context = self._main_context
        for reference in references:
            context = context.context(reference)
        return context

    def _reference_key(self, reference: Any) -> Tuple:
        if isinstance(reference, EyesElement):
            return ("element", id(reference.unwrapped))
        if isinstance(reference, (int, str)):
            return (type(reference).__name__, reference)
        if self._adapter.is_element(reference):
            return ("element", id(reference))
        try:
            hash(reference)
            return ("selector", reference)
        except TypeError:
            return ("selector", repr(reference))

    async def refresh_contexts(self) -> EyesContext:
        """Forget every frame node and return to the main context"""
        logger.info("[EyesDriver] Refreshing contexts")
        self._contexts.clear()
        self._main_context = EyesContext(
            self, scroll_root_element=self._main_context._scroll_root_element
        )
        self._current_context = self._main_context
        if not (self._is_native or self._is_stateless):
            await self._adapter.main_context()
        return self._current_context

    # -------------------------------------------------------------------------
    # Context switching
    # -------------------------------------------------------------------------

    async def switch_to(self, context: EyesContext) -> EyesContext:
        """Switch to context along the path with the fewest frame switches"""
        if await self._current_context.equals(context):
            return self._current_context

        current_path = self._current_context.path
        required_path = context.path

        diff_index = -1
        for index, required in enumerate(required_path):
            if index < len(current_path) and not await current_path[index].equals(required):
                diff_index = index
                break

        if diff_index == 0:
            raise VisualCaptureError(
                "Cannot switch to the context, because it has different main context"
            )

        if diff_index == -1:
            if len(current_path) == len(required_path):
                return self._current_context
            if len(required_path) > len(current_path):
                # Descendant of the current context
                return await self.switch_to_child_context(*required_path[len(current_path):])
            if len(current_path) - len(required_path) <= len(required_path):
                return await self.switch_to_parent_context(len(current_path) - len(required_path))
            await self.switch_to_main_context()
            return await self.switch_to_child_context(*required_path[1:])

        if len(current_path) - diff_index <= diff_index:
            await self.switch_to_parent_context(len(current_path) - diff_index)
            return await self.switch_to_child_context(*required_path[diff_index:])

        await self.switch_to_main_context()
        return await self.switch_to_child_context(*required_path[1:])

    async def switch_to_main_context(self) -> EyesContext:
        if self._is_native:
            return self._current_context
        logger.debug("[EyesDriver] Switching to main context")
        if not self._is_stateless:
            await self._adapter.main_context()
        self._current_context = self._main_context
        return self._current_context

    async def switch_to_parent_context(self, elevation: int = 1) -> EyesContext:
        if self._is_native:
            return self._current_context
        logger.debug(f"[EyesDriver] Switching to parent context ({elevation})")
        if len(self._current_context.path) <= elevation + 1:
            return await self.switch_to_main_context()

        try:
            while elevation > 0:
                await self._adapter.parent_context()
                self._current_context = self._current_context.parent
                elevation -= 1
        except Exception as e:
            logger.warning(f"[EyesDriver] Error during switch to parent frame: {e}")
            path = self._current_context.path[1:-elevation]
            await self.switch_to_main_context()
            await self.switch_to_child_context(*path)
        return self._current_context

    async def switch_to_child_context(self, *references: Any) -> EyesContext:
        if self._is_native:
            return self._current_context
        for reference in references:
            if reference is self._main_context:
                continue
            context = self._current_context.context(reference)
            await context.focus()
        return self._current_context

    # -------------------------------------------------------------------------
    # Delegation to the current context
    # -------------------------------------------------------------------------

    async def element(self, selector: Any) -> Optional[EyesElement]:
        return await self._current_context.element(selector)

    async def elements(self, selector: Any) -> List[EyesElement]:
        return await self._current_context.elements(selector)

    async def execute(self, script: str, *args: Any) -> Any:
        return await self._current_context.execute(script, *args)

    # -------------------------------------------------------------------------
    # Window, viewport and screenshots
    # -------------------------------------------------------------------------

    async def take_screenshot(self) -> Image.Image:
        return decode_image(await self._adapter.take_screenshot())

    async def get_viewport_size(self) -> RectangleSize:
        return await page_utils.get_viewport_size(self._main_context)

    async def set_viewport_size(self, size: RectangleSize) -> None:
        await page_utils.set_viewport_size(
            self, size, retries=self._viewport_retries, sleep=self._viewport_retry_sleep
        )

    async def get_window_rect(self) -> Region:
        rect = await self._adapter.get_window_rect() or {}
        return Region.from_dict(rect)

    async def set_window_rect(self, rect: Union[Region, Dict[str, float]]) -> None:
        if isinstance(rect, Region):
            rect = {"x": rect.left, "y": rect.top, "width": rect.width, "height": rect.height}
        await self._adapter.set_window_rect(rect)

    async def get_pixel_ratio(self) -> float:
        if self._is_native:
            viewport_size = await self.get_viewport_size()
            screenshot = await self.take_screenshot()
            return screenshot.width / viewport_size.width
        return await page_utils.get_pixel_ratio(self._current_context)


def decode_image(data: Union[bytes, str, Image.Image]) -> Image.Image:
    """Decode PNG bytes or base64 text into an RGB image"""
    if isinstance(data, Image.Image):
        return data.convert("RGB")
    try:
        if isinstance(data, str):
            data = base64.b64decode(data.replace("\r\n", "").replace("\n", ""))
        image = Image.open(io.BytesIO(data))
        image.load()
    except (binascii.Error, UnidentifiedImageError, OSError) as e:
        raise ScreenshotCaptureError(f"Failed to decode screenshot: {e}") from e
    return image.convert("RGB")
