"""
Shared fixtures: an in-memory browser behind the DriverAdapter interface.

FakeBrowser keeps a tree of documents (main page, iframes, scrollable
elements) and renders screenshots by cropping every document's content
image at its current scroll plus translate offset. Scripts are dispatched
on the constants of visual_capture.snippets.
"""

import base64
import io
import re

import numpy as np
import pytest
from PIL import Image

from visual_capture import page_utils, snippets
from visual_capture.driver import DriverAdapter, EyesDriver
from visual_capture.imaging import NATIVE_SCREENSHOT_COMMAND

CHROME_UA = (
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/120.0.0.0 Safari/537.36"
)
FIREFOX_UA = "Mozilla/5.0 (X11; Linux x86_64; rv:121.0) Gecko/20100101 Firefox/121.0"

_TRANSLATE = re.compile(r"translate\((-?[\d.]+)px,\s*(-?[\d.]+)px\)")
_SELECTOR = re.compile(r'^(\w+)?(?:#([\w-]+))?(?:\[name="([^"]+)"\])?$')


def make_content(width, height, seed=0):
    """Image whose pixels encode their own coordinates, unique up to 4096x4096"""
    ys, xs = np.mgrid[0:height, 0:width]
    pixels = np.stack(
        [xs % 256, ys % 256, (xs // 256 + 16 * (ys // 256) + seed * 37) % 256], axis=-1
    ).astype(np.uint8)
    return Image.fromarray(pixels, "RGB")


class StaleElementError(Exception):
    pass


class FakeElement:
    """Element with a border box in document coordinates of its document"""

    def __init__(self, tag, rect, element_id=None, name=None, border=0, content=None, document=None):
        self.tag = tag
        self.id = element_id
        self.name = name
        self.rect = rect
        self.border = border
        self.content = content
        self.document = document
        self.scroll = [0, 0]
        self.style = {}
        self.attributes = {}
        self.detached = False

    @property
    def client_rect(self):
        x, y, width, height = self.rect
        b = self.border
        return (x + b, y + b, width - 2 * b, height - 2 * b)

    @property
    def content_size(self):
        if self.document is not None:
            return self.document.content.size
        if self.content is not None:
            return self.content.size
        return self.client_rect[2], self.client_rect[3]

    @property
    def translate(self):
        match = _TRANSLATE.search(self.style.get("transform", ""))
        if not match:
            return 0, 0
        return -float(match.group(1)), -float(match.group(2))

    @property
    def inner_offset(self):
        tx, ty = self.translate
        return self.scroll[0] + tx, self.scroll[1] + ty

    def scroll_to(self, x, y):
        width, height = self.content_size
        max_x = max(width - self.client_rect[2], 0)
        max_y = max(height - self.client_rect[3], 0)
        self.scroll = [min(max(x, 0), max_x), min(max(y, 0), max_y)]
        return {"x": self.scroll[0], "y": self.scroll[1]}

    def matches(self, selector):
        match = _SELECTOR.match(selector.strip())
        if not match:
            return False
        tag, element_id, name = match.groups()
        if tag and tag != self.tag:
            return False
        if element_id and element_id != self.id:
            return False
        if name and name != self.name:
            return False
        return True

    def __repr__(self):
        return f"FakeElement({self.tag}#{self.id})"


class FakeDocument:
    """Document whose scrolling element is html; html.rect holds the viewport"""

    def __init__(self, width, height, viewport=(800, 600), seed=0):
        self.content = make_content(width, height, seed)
        self.html = FakeElement("html", (0, 0) + tuple(viewport))
        self.html.document = self
        self.elements = [self.html]
        self.active_element = None

    def add_frame(self, name, rect, document, border=0):
        element = FakeElement("iframe", rect, element_id=name, name=name, border=border, document=document)
        client = element.client_rect
        document.html.rect = (0, 0, client[2], client[3])
        self.elements.append(element)
        return element

    def add_scroller(self, element_id, rect, content_size, seed=5):
        element = FakeElement("div", rect, element_id=element_id, content=make_content(*content_size, seed=seed))
        self.elements.append(element)
        return element

    def add_input(self, element_id, rect):
        element = FakeElement("input", rect, element_id=element_id)
        self.elements.append(element)
        return element

    def find(self, selector):
        for part in selector.split(","):
            for element in self.elements:
                if element.matches(part):
                    return element
        return None

    def find_all(self, selector):
        parts = selector.split(",")
        return [element for element in self.elements if any(element.matches(part) for part in parts)]

    def render(self):
        """This document's viewport as currently scrolled"""
        ox, oy = self.html.inner_offset
        width, height = self.html.rect[2], self.html.rect[3]
        canvas = self.content.crop((int(ox), int(oy), int(ox + width), int(oy + height)))
        for element in self.elements[1:]:
            cx, cy, cw, ch = element.client_rect
            if element.document is not None:
                part = element.document.render()
            elif element.content is not None:
                ex, ey = element.inner_offset
                part = element.content.crop((int(ex), int(ey), int(ex + cw), int(ey + ch)))
            else:
                continue
            canvas.paste(part, (int(cx - ox), int(cy - oy)))
        return canvas


class FakeBrowser:
    def __init__(self, main, user_agent=CHROME_UA, pixel_ratio=1, chrome_height=80):
        self.main = main
        self.user_agent = user_agent
        self.pixel_ratio = pixel_ratio
        self.chrome_height = chrome_height
        self.window_location = (40, 40)

    def screenshot(self):
        image = self.main.render()
        if self.pixel_ratio != 1:
            image = image.resize(
                (image.width * self.pixel_ratio, image.height * self.pixel_ratio), Image.NEAREST
            )
        return image


class FakeDriverAdapter(DriverAdapter):
    """Stateful adapter: scripts and lookups run in the document on top of the stack"""

    def __init__(self, browser, driver_info=None):
        self.browser = browser
        self.driver_info = driver_info or {}
        self.stack = [browser.main]
        self.switches = []
        self.scripts = []
        self.window_rect_calls = []
        self._handlers = {
            snippets.GET_VIEWPORT_SIZE: self._viewport_size,
            snippets.GET_DOCUMENT_SIZE: self._document_size,
            snippets.GET_PIXEL_RATIO: lambda: str(self.browser.pixel_ratio),
            snippets.GET_USER_AGENT: lambda: self.browser.user_agent,
            snippets.GET_ELEMENT_CONTENT_SIZE: self._content_size,
            snippets.GET_ELEMENT_RECT: self._element_rect,
            snippets.GET_ELEMENT_SCROLL_OFFSET: self._scroll_offset,
            snippets.GET_ELEMENT_TRANSLATE_OFFSET: self._translate_offset,
            snippets.GET_ELEMENT_INNER_OFFSET: self._inner_offset,
            snippets.IS_ELEMENT_SCROLLABLE: self._is_scrollable,
            snippets.SCROLL_TO: self._scroll_to,
            snippets.TRANSLATE_TO: self._translate_to,
            snippets.GET_ELEMENT_STYLE_PROPERTIES: self._get_style,
            snippets.SET_ELEMENT_STYLE_PROPERTIES: self._set_style,
            snippets.SET_ELEMENT_ATTRIBUTES: self._set_attributes,
            snippets.SET_ELEMENT_MARKERS: self._set_markers,
            snippets.CLEANUP_ELEMENT_MARKERS: self._cleanup_markers,
            snippets.BLUR_ELEMENT: self._blur,
            snippets.FOCUS_ELEMENT: self._focus,
            snippets.GET_ELEMENT_XPATH: lambda element: f"/html[1]/{element.tag}[1]",
            NATIVE_SCREENSHOT_COMMAND: self._native_screenshot,
        }

    @property
    def document(self):
        return self.stack[-1]

    def _resolve(self, element):
        if element is None:
            return self.document.html
        if element.detached:
            raise StaleElementError(f"{element} is detached")
        assert element in self.document.elements, f"{element} is not in the current document"
        return element

    # DriverAdapter

    async def get_driver_info(self):
        return self.driver_info

    async def take_screenshot(self):
        buffer = io.BytesIO()
        self.browser.screenshot().save(buffer, format="PNG")
        return buffer.getvalue()

    async def execute_script(self, script, *args):
        self.scripts.append(script)
        return self._handlers[script](*args)

    async def main_context(self):
        self.switches.append("main")
        self.stack = [self.browser.main]

    async def parent_context(self):
        self.switches.append("parent")
        if len(self.stack) > 1:
            self.stack.pop()

    async def child_context(self, element):
        self.switches.append("child")
        element = self._resolve(element)
        assert element.document is not None, f"{element} is not a frame"
        self.stack.append(element.document)

    async def find_element(self, selector):
        return self.document.find(selector)

    async def find_elements(self, selector):
        return self.document.find_all(selector)

    async def is_equal_elements(self, element1, element2):
        return element1 is element2

    async def get_window_rect(self):
        width, height = self.browser.main.html.rect[2], self.browser.main.html.rect[3]
        x, y = self.browser.window_location
        return {"x": x, "y": y, "width": width, "height": height + self.browser.chrome_height}

    async def set_window_rect(self, rect):
        self.window_rect_calls.append(dict(rect))
        if "x" in rect and "y" in rect:
            self.browser.window_location = (rect["x"], rect["y"])
        if "width" in rect and "height" in rect:
            self.browser.main.html.rect = (
                0, 0, rect["width"], max(rect["height"] - self.browser.chrome_height, 0)
            )

    def is_element(self, value):
        return isinstance(value, FakeElement)

    def is_selector(self, value):
        return isinstance(value, str)

    def is_stale_element_error(self, error):
        return isinstance(error, StaleElementError)

    # Scripts

    def _viewport_size(self):
        html = self.document.html
        return {"width": html.rect[2], "height": html.rect[3]}

    def _document_size(self):
        width, height = self.document.content.size
        return {"width": width, "height": height}

    def _content_size(self, element=None):
        width, height = self._resolve(element).content_size
        return {"width": width, "height": height}

    def _element_rect(self, element, is_client):
        element = self._resolve(element)
        x, y, width, height = element.client_rect if is_client else element.rect
        return {"x": x, "y": y, "width": width, "height": height}

    def _scroll_offset(self, element=None):
        element = self._resolve(element)
        return {"x": element.scroll[0], "y": element.scroll[1]}

    def _translate_offset(self, element=None):
        x, y = self._resolve(element).translate
        return {"x": x, "y": y}

    def _inner_offset(self, element=None):
        x, y = self._resolve(element).inner_offset
        return {"x": x, "y": y}

    def _is_scrollable(self, element=None):
        element = self._resolve(element)
        width, height = element.content_size
        return width > element.client_rect[2] or height > element.client_rect[3]

    def _scroll_to(self, element, offset):
        return self._resolve(element).scroll_to(offset["x"], offset["y"])

    def _translate_to(self, element, offset):
        value = f"translate({-offset['x']}px, {-offset['y']}px)"
        self._resolve(element).style["transform"] = value
        self._resolve(element).style["-webkit-transform"] = value
        return {"x": offset["x"], "y": offset["y"]}

    def _get_style(self, element, names):
        element = self._resolve(element)
        return {name: element.style.get(name, "") for name in names}

    def _set_style(self, element, properties):
        element = self._resolve(element)
        original = {}
        for name, value in properties.items():
            original[name] = element.style.get(name, "")
            if value:
                element.style[name] = value
            else:
                element.style.pop(name, None)
        return original

    def _set_attributes(self, element, attributes):
        element = self._resolve(element)
        for name, value in attributes.items():
            element.attributes[name] = str(value)

    def _set_markers(self, elements, ids):
        for element, marker_id in zip(elements, ids):
            self._resolve(element).attributes["data-applitools-marker"] = marker_id

    def _cleanup_markers(self, elements):
        for element in elements:
            self._resolve(element).attributes.pop("data-applitools-marker", None)

    def _blur(self, element=None):
        element = element or self.document.active_element
        self.document.active_element = None
        return element

    def _focus(self, element):
        if element is not None:
            self.document.active_element = element

    def _native_screenshot(self):
        buffer = io.BytesIO()
        self.browser.screenshot().save(buffer, format="PNG")
        return base64.b64encode(buffer.getvalue()).decode("ascii")


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture(autouse=True)
def no_overflow_delay(monkeypatch):
    monkeypatch.setattr(page_utils, "OVERFLOW_SETTLE_DELAY", 0)


@pytest.fixture
def page():
    """800x600 viewport over an 800x1500 page"""
    return FakeDocument(800, 1500, viewport=(800, 600))


@pytest.fixture
def framed_page():
    """
    Main page 1000x2000 (viewport 800x600) with frame1 at (50, 100) 400x300
    holding a 600x900 document, which holds frame2 at (20, 30) 200x150 over
    a 300x400 document.
    """
    main = FakeDocument(1000, 2000, viewport=(800, 600), seed=0)
    frame1_doc = FakeDocument(600, 900, seed=1)
    frame2_doc = FakeDocument(300, 400, seed=2)
    main.add_frame("frame1", (50, 100, 400, 300), frame1_doc)
    frame1_doc.add_frame("frame2", (20, 30, 200, 150), frame2_doc)
    return main


def make_driver(document, user_agent=CHROME_UA, pixel_ratio=1, driver_info=None):
    browser = FakeBrowser(document, user_agent=user_agent, pixel_ratio=pixel_ratio)
    adapter = FakeDriverAdapter(browser, driver_info=driver_info)
    return EyesDriver(adapter, viewport_retry_sleep=0)


@pytest.fixture
def driver(page):
    return make_driver(page)


@pytest.fixture
def framed_driver(framed_page):
    return make_driver(framed_page)
