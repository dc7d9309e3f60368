"""Tests for scroll and CSS translate position providers."""

import pytest

from visual_capture import page_utils, snippets
from visual_capture.config import StitchMode
from visual_capture.errors import EyesDriverOperationError
from visual_capture.geometry import Location, RectangleSize, Region
from visual_capture.positioning import (
    CssTranslateElementPositionProvider,
    CssTranslatePositionProvider,
    ScrollElementPositionProvider,
    ScrollPositionProvider,
    create_position_provider,
)


@pytest.fixture
def scroller(page):
    return page.add_scroller("scroller", (100, 700, 300, 200), (300, 800))


async def root_provider(driver, provider_class):
    context = driver.main_context
    return provider_class(context, await context.get_scroll_root_element())


class TestScrollPositionProvider:
    """Tests for ScrollPositionProvider."""

    @pytest.mark.asyncio
    async def test_set_position_returns_reached_position(self, driver, page):
        provider = await root_provider(driver, ScrollPositionProvider)
        assert await provider.set_position(Location(0, 300)) == Location(0, 300)
        assert page.html.scroll == [0, 300]
        # Clamped by the browser at the end of the page
        assert await provider.set_position(Location(0, 5000)) == Location(0, 900)
        assert await provider.get_current_position() == Location(0, 900)

    @pytest.mark.asyncio
    async def test_state_round_trip(self, driver, page):
        provider = await root_provider(driver, ScrollPositionProvider)
        await provider.set_position(Location(0, 200))
        state = await provider.get_state()
        await provider.restore_state(state)
        assert await provider.get_current_position() == Location(0, 200)

        await provider.set_position(Location(0, 700))
        await provider.restore_state(state)
        assert page.html.scroll == [0, 200]

    @pytest.mark.asyncio
    async def test_set_position_failure_raises(self, driver):
        provider = await root_provider(driver, ScrollPositionProvider)

        def broken(*args):
            raise RuntimeError("session lost")

        driver.adapter._handlers[snippets.SCROLL_TO] = broken
        with pytest.raises(EyesDriverOperationError, match="session lost"):
            await provider.set_position(Location(0, 100))

    @pytest.mark.asyncio
    async def test_current_position_failure_is_zero(self, driver, page):
        provider = await root_provider(driver, ScrollPositionProvider)
        page.html.scroll = [0, 100]

        def broken(*args):
            raise RuntimeError("session lost")

        driver.adapter._handlers[snippets.GET_ELEMENT_SCROLL_OFFSET] = broken
        assert await provider.get_current_position() == Location.ZERO

    @pytest.mark.asyncio
    async def test_entire_size_is_document_size(self, driver):
        provider = await root_provider(driver, ScrollPositionProvider)
        assert await provider.get_entire_size() == RectangleSize(800, 1500)

    @pytest.mark.asyncio
    async def test_mark_scroll_root_element(self, driver, page):
        provider = await root_provider(driver, ScrollPositionProvider)
        await provider.mark_scroll_root_element()
        assert page.html.attributes["data-applitools-scroll"] == "True"


class TestCssTranslatePositionProvider:
    """Tests for CssTranslatePositionProvider."""

    @pytest.mark.asyncio
    async def test_translates_instead_of_scrolling(self, driver, page):
        page.html.scroll = [0, 100]
        provider = await root_provider(driver, CssTranslatePositionProvider)
        assert await provider.set_position(Location(0, 300)) == Location(0, 300)
        assert page.html.scroll == [0, 0]
        assert page.html.style["transform"] == "translate(0px, -300px)"
        assert await provider.get_current_position() == Location(0, 300)

    @pytest.mark.asyncio
    async def test_reaches_past_scroll_range(self, driver):
        provider = await root_provider(driver, CssTranslatePositionProvider)
        assert await provider.set_position(Location(0, 5000)) == Location(0, 5000)

    @pytest.mark.asyncio
    async def test_state_round_trip(self, driver, page):
        provider = await root_provider(driver, CssTranslatePositionProvider)
        await provider.set_position(Location(0, 250))
        state = await provider.get_state()
        await provider.restore_state(state)
        assert await provider.get_current_position() == Location(0, 250)

        await provider.set_position(Location(0, 800))
        await provider.restore_state(state)
        assert await provider.get_current_position() == Location(0, 250)

    @pytest.mark.asyncio
    async def test_restore_removes_transform(self, driver, page):
        page.html.scroll = [0, 40]
        provider = await root_provider(driver, CssTranslatePositionProvider)
        state = await provider.get_state()
        assert state.position == Location(0, 40)

        await provider.set_position(Location(0, 500))
        await provider.restore_state(state)
        assert "transform" not in page.html.style
        assert page.html.scroll == [0, 40]


class TestElementProviders:
    """Tests for the element flavors."""

    @pytest.mark.asyncio
    async def test_scroll_element_provider(self, driver, scroller):
        element = await driver.main_context.element("#scroller")
        provider = ScrollElementPositionProvider(driver.main_context, element)
        assert await provider.get_entire_size() == RectangleSize(300, 800)
        assert await provider.set_position(Location(0, 150)) == Location(0, 150)
        assert scroller.scroll == [0, 150]

    @pytest.mark.asyncio
    async def test_css_element_provider_scrolls_then_translates(self, driver, scroller):
        element = await driver.main_context.element("#scroller")
        provider = CssTranslateElementPositionProvider(driver.main_context, element)
        assert await provider.set_position(Location(0, 700)) == Location(0, 700)
        assert scroller.scroll == [0, 600]
        assert scroller.translate == (0, 100)
        assert await provider.get_current_position() == Location(0, 700)

    def test_element_providers_need_an_element(self, driver):
        with pytest.raises(ValueError):
            ScrollElementPositionProvider(driver.main_context, None)


class TestCreatePositionProvider:
    """Tests for create_position_provider."""

    @pytest.mark.parametrize("mode, for_element, expected", [
        (StitchMode.SCROLL, False, ScrollPositionProvider),
        (StitchMode.SCROLL, True, ScrollElementPositionProvider),
        ("CSS", False, CssTranslatePositionProvider),
        ("CSS", True, CssTranslateElementPositionProvider),
    ])
    @pytest.mark.asyncio
    async def test_provider_types(self, driver, mode, for_element, expected):
        root = await driver.main_context.get_scroll_root_element()
        provider = create_position_provider(mode, driver.main_context, root, for_element=for_element)
        assert type(provider) is expected
        assert provider.scroll_root_element is root


class TestEnsureRegionVisible:
    """Tests for page_utils.ensure_region_visible."""

    @pytest.mark.asyncio
    async def test_visible_region_does_not_move(self, driver, page):
        provider = await root_provider(driver, ScrollPositionProvider)
        result = await page_utils.ensure_region_visible(driver.main_context, provider, Region(10, 10, 50, 50))
        assert result == Location.ZERO
        assert page.html.scroll == [0, 0]

    @pytest.mark.asyncio
    async def test_scrolls_region_into_view(self, driver, page):
        provider = await root_provider(driver, ScrollPositionProvider)
        remaining = await page_utils.ensure_region_visible(
            driver.main_context, provider, Region(10, 1000, 50, 50)
        )
        assert page.html.scroll == [0, 900]
        assert remaining == Location(10, 100)


class TestPageHelpers:
    """Tests for the remaining page_utils helpers."""

    @pytest.mark.asyncio
    async def test_element_markers(self, driver, scroller):
        element = await driver.main_context.element("#scroller")
        await page_utils.set_element_markers(driver.main_context, {"m-1": element})
        assert scroller.attributes["data-applitools-marker"] == "m-1"

        await page_utils.cleanup_element_markers(driver.main_context, [element])
        assert "data-applitools-marker" not in scroller.attributes

    @pytest.mark.asyncio
    async def test_overflow_round_trip(self, driver, page):
        original = await page_utils.set_overflow(driver.main_context, "hidden")
        assert original == ""
        assert await page_utils.get_overflow(driver.main_context) == "hidden"

        await page_utils.set_overflow(driver.main_context, original)
        assert "overflow" not in page.html.style

    @pytest.mark.asyncio
    async def test_element_xpath(self, driver, scroller):
        element = await driver.main_context.element("#scroller")
        assert await page_utils.get_element_xpath(driver.main_context, element) == "/html[1]/div[1]"

    @pytest.mark.asyncio
    async def test_is_scrollable(self, driver, page, scroller):
        element = await driver.main_context.element("#scroller")
        assert await page_utils.is_scrollable(driver.main_context, element)
        page.add_input("name", (0, 0, 10, 10))
        field = await driver.main_context.element("#name")
        assert not await page_utils.is_scrollable(driver.main_context, field)
