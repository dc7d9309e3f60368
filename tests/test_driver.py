"""Tests for EyesDriver sessions and the browsing context tree."""

import base64
import io

import pytest
from PIL import Image

from conftest import FakeBrowser, FakeDriverAdapter, FakeElement, make_driver
from visual_capture.context import ContextState
from visual_capture.driver import EyesDriver, decode_image
from visual_capture.element import EyesElement
from visual_capture.errors import ElementNotFoundError, ScreenshotCaptureError, ViewportSizeError
from visual_capture.geometry import Location, RectangleSize


def scroll_all(framed_page, offset=(10, 10)):
    frame1 = framed_page.find("#frame1")
    frame2 = frame1.document.find("#frame2")
    for document in (framed_page, frame1.document, frame2.document):
        document.html.scroll = list(offset)
    return frame1, frame2


class TestDriverInit:
    """Tests for EyesDriver.init()."""

    @pytest.mark.asyncio
    async def test_reads_user_agent(self, driver):
        await driver.init()
        assert driver.is_initialized
        assert driver.browser_name == "Chrome"
        assert driver.browser_version == "120"
        assert driver.platform_name == "Linux"
        assert not driver.is_firefox
        assert not driver.is_mobile

    @pytest.mark.asyncio
    async def test_native_skips_user_agent(self, page):
        driver = make_driver(page, driver_info={"is_native": True, "platform_name": "Android"})
        await driver.init()
        assert driver.is_native
        assert driver.user_agent is None
        assert driver.platform_name == "Android"
        assert driver.adapter.scripts == []

    @pytest.mark.asyncio
    async def test_pixel_ratio(self, page):
        driver = make_driver(page, pixel_ratio=2)
        assert await driver.get_pixel_ratio() == 2.0


class TestContextTree:
    """Tests for frame resolution and the context arena."""

    def test_arena_returns_same_node(self, framed_driver):
        first = framed_driver.get_context("frame1", "frame2")
        second = framed_driver.get_context("frame1", "frame2")
        assert first is second
        assert first.parent is framed_driver.get_context("frame1")
        assert first.main is framed_driver.main_context
        assert [node.is_main for node in first.path] == [True, False, False]

    def test_child_context_rejects_foreign_node(self, framed_driver):
        frame1 = framed_driver.get_context("frame1")
        frame2 = frame1.context("frame2")
        with pytest.raises(ValueError):
            framed_driver.main_context.context(frame2)

    @pytest.mark.asyncio
    async def test_resolve_by_name_index_and_element(self, framed_driver, framed_page):
        by_name = await framed_driver.get_context("frame1").init()
        assert by_name.state == ContextState.RESOLVED
        assert (await by_name.get_frame_element()).unwrapped is framed_page.find("#frame1")

        by_index = await framed_driver.get_context(0).init()
        assert (await by_index.get_frame_element()).unwrapped is framed_page.find("#frame1")

        raw = framed_page.find("#frame1")
        by_element = await framed_driver.get_context(raw).init()
        assert (await by_element.get_frame_element()).unwrapped is raw

    @pytest.mark.asyncio
    async def test_invalid_index(self, framed_driver):
        with pytest.raises(ElementNotFoundError, match=r"Frame index \[5\] is invalid!"):
            await framed_driver.get_context(5).init()

    @pytest.mark.asyncio
    async def test_unknown_name(self, framed_driver):
        with pytest.raises(ElementNotFoundError, match="No frame with selector, name or id 'nope' exists!"):
            await framed_driver.get_context("nope").init()

    @pytest.mark.asyncio
    async def test_refresh_contexts_forgets_nodes(self, framed_driver):
        node = framed_driver.get_context("frame1")
        await framed_driver.switch_to(node)
        main = await framed_driver.refresh_contexts()
        assert main.is_current
        assert framed_driver.get_context("frame1") is not node
        assert framed_driver.adapter.document is framed_driver.adapter.browser.main


class TestContextSwitching:
    """Tests for EyesDriver.switch_to()."""

    @pytest.mark.asyncio
    async def test_descend_into_nested_frame(self, framed_driver, framed_page):
        target = framed_driver.get_context("frame1", "frame2")
        await framed_driver.switch_to(target)
        assert framed_driver.current_context is target
        assert framed_driver.adapter.document is framed_page.find("#frame1").document.find("#frame2").document
        assert framed_driver.adapter.switches == ["child", "child"]

    @pytest.mark.asyncio
    async def test_switch_up_one_level(self, framed_driver, framed_page):
        frame2 = framed_driver.get_context("frame1", "frame2")
        await framed_driver.switch_to(frame2)
        framed_driver.adapter.switches.clear()

        await framed_driver.switch_to(frame2.parent)
        assert framed_driver.current_context is frame2.parent
        assert framed_driver.adapter.switches == ["parent"]
        assert framed_driver.adapter.document is framed_page.find("#frame1").document

    @pytest.mark.asyncio
    async def test_switch_to_main_goes_direct(self, framed_driver):
        await framed_driver.switch_to(framed_driver.get_context("frame1", "frame2"))
        framed_driver.adapter.switches.clear()
        await framed_driver.switch_to(framed_driver.main_context)
        assert framed_driver.adapter.switches == ["main"]

    @pytest.mark.asyncio
    async def test_switch_to_current_is_noop(self, framed_driver):
        frame1 = framed_driver.get_context("frame1")
        await framed_driver.switch_to(frame1)
        framed_driver.adapter.switches.clear()
        await framed_driver.switch_to(frame1)
        assert framed_driver.adapter.switches == []

    @pytest.mark.asyncio
    async def test_stale_frame_element_is_re_resolved(self, framed_driver, framed_page):
        frame1 = framed_driver.get_context("frame1")
        await framed_driver.switch_to(frame1)
        await framed_driver.switch_to_main_context()

        old = framed_page.find("#frame1")
        old.detached = True
        replacement = FakeElement("iframe", old.rect, element_id="frame1", name="frame1", document=old.document)
        framed_page.elements[framed_page.elements.index(old)] = replacement

        await frame1.focus()
        assert framed_driver.current_context is frame1
        assert (await frame1.get_frame_element()).unwrapped is replacement

    @pytest.mark.asyncio
    async def test_script_runs_in_its_context(self, framed_driver):
        frame1 = framed_driver.get_context("frame1")
        assert await frame1.get_document_size() == RectangleSize(600, 900)
        assert framed_driver.current_context is frame1


class TestFrameGeometry:
    """Tests for location and size of nested contexts."""

    @pytest.mark.asyncio
    async def test_location_in_viewport_of_nested_scrolled_frames(self, framed_driver, framed_page):
        frame1, frame2 = scroll_all(framed_page)
        target = framed_driver.get_context("frame1", "frame2")
        await framed_driver.switch_to(target)

        # Each client rect location minus the inner offset of the document it sits in
        expected = Location(
            frame1.client_rect[0] - 10 + frame2.client_rect[0] - 10,
            frame1.client_rect[1] - 10 + frame2.client_rect[1] - 10,
        )
        assert await target.get_location_in_viewport() == expected == Location(50, 110)

    @pytest.mark.asyncio
    async def test_location_in_page(self, framed_driver, framed_page):
        scroll_all(framed_page)
        target = framed_driver.get_context("frame1", "frame2")
        await framed_driver.switch_to(target)
        assert await target.get_location_in_page() == Location(70, 130)

    @pytest.mark.asyncio
    async def test_main_location_in_viewport_is_negative_scroll(self, framed_driver, framed_page):
        framed_page.html.scroll = [0, 250]
        assert await framed_driver.main_context.get_location_in_viewport() == Location(0, -250)

    @pytest.mark.asyncio
    async def test_effective_size_is_clipped_by_ancestors(self, framed_driver):
        target = framed_driver.get_context("frame1", "frame2")
        await framed_driver.switch_to(target)
        assert await target.get_effective_size() == RectangleSize(200, 150)

    @pytest.mark.asyncio
    async def test_element_lookup_in_context(self, framed_driver, framed_page):
        frame1 = framed_driver.get_context("frame1")
        element = await frame1.element("#frame2")
        assert isinstance(element, EyesElement)
        assert element.context is frame1
        assert element.unwrapped is framed_page.find("#frame1").document.find("#frame2")
        assert await frame1.element("#missing") is None


class TestViewportAndScreenshots:
    """Tests for window, viewport and screenshot helpers."""

    @pytest.mark.asyncio
    async def test_set_viewport_size(self, driver):
        await driver.set_viewport_size(RectangleSize(1024, 768))
        assert await driver.get_viewport_size() == RectangleSize(1024, 768)
        assert driver.adapter.window_rect_calls[0] == {"x": 0, "y": 0}

    @pytest.mark.asyncio
    async def test_set_viewport_size_gives_up(self, page):
        driver = EyesDriver(FakeDriverAdapter(FakeBrowser(page)), viewport_retries=1, viewport_retry_sleep=0)
        calls = []

        async def ignore_resize(rect):
            calls.append(rect)

        driver.adapter.set_window_rect = ignore_resize
        with pytest.raises(ViewportSizeError) as exc_info:
            await driver.set_viewport_size(RectangleSize(1024, 768))
        assert exc_info.value.details["actual"] == "800x600"
        # Move to origin plus one attempt per retry and the initial try
        assert len(calls) == 3

    @pytest.mark.asyncio
    async def test_take_screenshot_decodes_png(self, driver):
        image = await driver.take_screenshot()
        assert image.size == (800, 600)
        assert image.mode == "RGB"

    def test_decode_image_inputs(self):
        image = Image.new("RGBA", (4, 3), (255, 0, 0, 255))
        buffer = io.BytesIO()
        image.save(buffer, format="PNG")
        data = buffer.getvalue()

        assert decode_image(data).size == (4, 3)
        assert decode_image(base64.b64encode(data).decode("ascii")).mode == "RGB"
        assert decode_image(image).mode == "RGB"

    def test_decode_image_garbage(self):
        with pytest.raises(ScreenshotCaptureError):
            decode_image(b"not a png")
