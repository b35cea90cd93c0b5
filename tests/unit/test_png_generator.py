"""
Unit Tests for PNG Generator
============================

Tests for the Playwright rasterizer with the browser mocked out: startup,
settling, export root capture and PNG optimization.
"""

from unittest.mock import AsyncMock, MagicMock, patch
import asyncio
import io

import pytest
from PIL import Image

from banner_batch.core.exceptions import RasterizationError
from banner_batch.core.rendering.png_generator import (
    FALLBACK_SELECTOR,
    FONTS_READY_SCRIPT,
    PlaywrightRasterizer,
    render_options,
)
from banner_batch.models.schemas import RenderOptions

from tests.utils.assertions import assert_valid_png
from tests.utils.mocks import FakeRasterizer, PNG_SIGNATURE


def _png(size=(40, 20)) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", size, color="white").save(buffer, format="PNG", compress_level=0)
    return buffer.getvalue()


@pytest.fixture
def mock_page():
    page = MagicMock()
    page.set_content = AsyncMock()
    page.evaluate = AsyncMock(return_value=1)
    page.query_selector = AsyncMock()
    return page


@pytest.fixture
def mock_playwright(mock_page):
    """Patched async_playwright returning a browser with one context and page."""
    context = MagicMock()
    context.new_page = AsyncMock(return_value=mock_page)
    context.close = AsyncMock()

    browser = MagicMock()
    browser.new_context = AsyncMock(return_value=context)
    browser.close = AsyncMock()

    playwright = MagicMock()
    playwright.chromium.launch = AsyncMock(return_value=browser)
    playwright.stop = AsyncMock()

    manager = MagicMock()
    manager.start = AsyncMock(return_value=playwright)

    with patch("banner_batch.core.rendering.png_generator.async_playwright", return_value=manager):
        yield playwright, browser, context


class TestRenderOptions:
    def test_from_settings(self, test_settings):
        options = render_options(test_settings)

        assert options.scale == test_settings.export_scale
        assert options.export_selector == ".container"
        assert options.settle_delay_ms == 0

    def test_scale_override(self, test_settings):
        assert render_options(test_settings, scale=1.0).scale == 1.0

    def test_empty_selector_means_body(self, test_settings):
        test_settings.export_selector = ""
        assert render_options(test_settings).export_selector is None


class TestPlaywrightRasterizer:
    """Test the Chromium-backed rasterizer."""

    @pytest.mark.asyncio
    async def test_initialize(self, mock_playwright, mock_page):
        playwright, browser, _ = mock_playwright
        rasterizer = PlaywrightRasterizer(RenderOptions(width=750, height=1000, scale=2.0))

        await rasterizer.initialize()

        assert rasterizer.page is mock_page
        browser.new_context.assert_awaited_once_with(
            viewport={"width": 750, "height": 1000}, device_scale_factor=2.0
        )
        mock_page.set_default_timeout.assert_called_once()

        await rasterizer.initialize()
        playwright.chromium.launch.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_initialize_failure_wrapped(self, mock_playwright):
        playwright, _, _ = mock_playwright
        playwright.chromium.launch.side_effect = Exception("no chromium")
        rasterizer = PlaywrightRasterizer()

        with pytest.raises(RasterizationError, match="Browser initialization failed"):
            await rasterizer.initialize()

        playwright.stop.assert_awaited_once()

    def test_page_before_initialize(self):
        with pytest.raises(RasterizationError, match="not initialized"):
            PlaywrightRasterizer().page

    @pytest.mark.asyncio
    async def test_load(self, mock_playwright, mock_page):
        rasterizer = PlaywrightRasterizer()
        await rasterizer.initialize()

        await rasterizer.load("<html></html>")

        mock_page.set_content.assert_awaited_once_with("<html></html>", wait_until="load")

    @pytest.mark.asyncio
    async def test_load_failure_wrapped(self, mock_playwright, mock_page):
        mock_page.set_content.side_effect = Exception("crashed")
        rasterizer = PlaywrightRasterizer()
        await rasterizer.initialize()

        with pytest.raises(RasterizationError, match="Failed to load document"):
            await rasterizer.load("<html></html>")

    @pytest.mark.asyncio
    async def test_settle_waits_for_fonts(self, mock_playwright, mock_page):
        rasterizer = PlaywrightRasterizer(RenderOptions(settle_delay_ms=0))
        await rasterizer.initialize()

        await rasterizer.settle()

        mock_page.evaluate.assert_awaited_once_with(FONTS_READY_SCRIPT)

    @pytest.mark.asyncio
    async def test_settle_font_timeout_proceeds(self, mock_playwright, mock_page):
        """Test that a font wait that never finishes does not fail the record."""

        async def never_ready(script):
            await asyncio.sleep(10)

        mock_page.evaluate.side_effect = never_ready
        rasterizer = PlaywrightRasterizer(RenderOptions(settle_delay_ms=0, font_wait_timeout_ms=10))
        await rasterizer.initialize()

        await rasterizer.settle()

    @pytest.mark.asyncio
    async def test_capture_export_root(self, mock_playwright, mock_page):
        element = MagicMock()
        element.screenshot = AsyncMock(return_value=PNG_SIGNATURE + b"data")
        mock_page.query_selector.return_value = element
        rasterizer = PlaywrightRasterizer()
        await rasterizer.initialize()

        data = await rasterizer.capture(".container")

        assert_valid_png(data)
        mock_page.query_selector.assert_awaited_once_with(".container")
        element.screenshot.assert_awaited_once_with(type="png")

    @pytest.mark.asyncio
    async def test_capture_falls_back_to_body(self, mock_playwright, mock_page):
        """Test that a missing export root captures the body instead."""
        body = MagicMock()
        body.screenshot = AsyncMock(return_value=PNG_SIGNATURE)
        mock_page.query_selector.side_effect = [None, body]
        rasterizer = PlaywrightRasterizer()
        await rasterizer.initialize()

        await rasterizer.capture(".missing")

        assert mock_page.query_selector.await_args_list[1].args == (FALLBACK_SELECTOR,)
        body.screenshot.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_capture_without_selector(self, mock_playwright, mock_page):
        body = MagicMock()
        body.screenshot = AsyncMock(return_value=PNG_SIGNATURE)
        mock_page.query_selector.return_value = body
        rasterizer = PlaywrightRasterizer()
        await rasterizer.initialize()

        await rasterizer.capture(None)

        mock_page.query_selector.assert_awaited_once_with(FALLBACK_SELECTOR)

    @pytest.mark.asyncio
    async def test_capture_failure_wrapped(self, mock_playwright, mock_page):
        element = MagicMock()
        element.screenshot = AsyncMock(side_effect=Exception("detached"))
        mock_page.query_selector.return_value = element
        rasterizer = PlaywrightRasterizer()
        await rasterizer.initialize()

        with pytest.raises(RasterizationError, match="Screenshot failed"):
            await rasterizer.capture(".container")

    @pytest.mark.asyncio
    async def test_capture_optimizes_when_enabled(self, mock_playwright, mock_page):
        original = _png()
        element = MagicMock()
        element.screenshot = AsyncMock(return_value=original)
        mock_page.query_selector.return_value = element
        rasterizer = PlaywrightRasterizer(RenderOptions(optimize_png=True))
        await rasterizer.initialize()

        data = await rasterizer.capture(".container")

        assert_valid_png(data)
        assert len(data) <= len(original)

    @pytest.mark.asyncio
    async def test_close(self, mock_playwright):
        playwright, browser, context = mock_playwright
        rasterizer = PlaywrightRasterizer()
        await rasterizer.initialize()

        await rasterizer.close()

        context.close.assert_awaited_once()
        browser.close.assert_awaited_once()
        playwright.stop.assert_awaited_once()
        with pytest.raises(RasterizationError):
            rasterizer.page

    @pytest.mark.asyncio
    async def test_async_context_manager(self, mock_playwright):
        _, browser, _ = mock_playwright

        async with PlaywrightRasterizer() as rasterizer:
            assert rasterizer.page is not None

        browser.close.assert_awaited_once()


class TestOptimizePng:
    """Test Pillow re-encoding."""

    def test_smaller_or_original(self):
        original = _png((200, 200))
        optimized = PlaywrightRasterizer()._optimize_png(original)

        assert_valid_png(optimized)
        assert len(optimized) <= len(original)
        with Image.open(io.BytesIO(optimized)) as image:
            assert image.size == (200, 200)

    def test_invalid_bytes_returned_unchanged(self):
        assert PlaywrightRasterizer()._optimize_png(b"not a png") == b"not a png"


class TestBaseRasterizer:
    @pytest.mark.asyncio
    async def test_render_helper(self):
        """Test that render loads, settles and captures at the export root."""
        rasterizer = FakeRasterizer()

        data = await rasterizer.render("<html>x</html>")

        assert_valid_png(data)
        assert rasterizer.loaded == ["<html>x</html>"]
        assert rasterizer.settles == 1
        assert rasterizer.selectors == [".container"]
