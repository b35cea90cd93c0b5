"""
PNG Generator
=============

Rasterize bound banner documents to PNG. A rasterizer keeps one page open
for a whole batch: each record is loaded into it, allowed to settle (font
loading, then a fixed layout delay) and captured at the export root.
"""

from abc import ABC, abstractmethod
from typing import Optional, Dict, Any
import asyncio
import io

from playwright.async_api import async_playwright, Browser, BrowserContext, Page, Playwright
from PIL import Image  # type: ignore

from banner_batch.config.logging import get_logger
from banner_batch.config.settings import Settings, get_settings
from banner_batch.core.exceptions import RasterizationError
from banner_batch.models.schemas import RenderOptions

logger = get_logger(__name__)

FALLBACK_SELECTOR = "body"

FONTS_READY_SCRIPT = "() => document.fonts.ready.then(() => document.fonts.size)"


def render_options(settings: Optional[Settings] = None, scale: Optional[float] = None) -> RenderOptions:
    """Rendering options from settings; ``scale`` overrides the export scale."""
    settings = settings or get_settings()
    return RenderOptions(
        width=settings.viewport_width,
        height=settings.viewport_height,
        scale=settings.export_scale if scale is None else scale,
        export_selector=settings.export_selector or None,
        settle_delay_ms=settings.settle_delay_ms,
        font_wait_timeout_ms=settings.font_wait_timeout_ms,
        optimize_png=settings.optimize_png,
        background_color=settings.background_color,
    )


class BaseRasterizer(ABC):
    """Abstract base class for rasterizers."""

    def __init__(self, options: Optional[RenderOptions] = None):
        self.options = options or render_options()

    @abstractmethod
    async def initialize(self) -> None:
        """Open the page used for every following capture."""

    @abstractmethod
    async def load(self, html: str) -> None:
        """Replace the page content with a complete HTML document."""

    @abstractmethod
    async def settle(self) -> None:
        """Wait until fonts are loaded and layout is stable."""

    @abstractmethod
    async def capture(self, selector: Optional[str] = None) -> bytes:
        """PNG of the export root, ``<body>`` when the selector matches nothing."""

    @abstractmethod
    async def close(self) -> None:
        """Release the page and the browser."""

    async def render(self, html: str) -> bytes:
        """Load, settle and capture in one call."""
        await self.load(html)
        await self.settle()
        return await self.capture(self.options.export_selector)

    async def __aenter__(self) -> "BaseRasterizer":
        await self.initialize()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()


class PlaywrightRasterizer(BaseRasterizer):
    """Playwright-based rasterizer holding a single Chromium page."""

    def __init__(self, options: Optional[RenderOptions] = None):
        super().__init__(options)
        self.settings = get_settings()
        self.logger: Any = logger.bind(component="rasterizer", generator="playwright")
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._context: Optional[BrowserContext] = None
        self._page: Optional[Page] = None

    async def initialize(self) -> None:
        """Start Chromium and open the page."""
        if self._page is not None:
            return
        try:
            self._playwright = await async_playwright().start()
            self._browser = await self._playwright.chromium.launch(
                headless=self.settings.playwright_headless,
                args=[
                    "--no-sandbox",
                    "--disable-setuid-sandbox",
                    "--disable-dev-shm-usage",
                    "--font-render-hinting=none",
                ],
            )
            self._context = await self._create_browser_context(self._browser)
            self._page = await self._context.new_page()
            self._page.set_default_timeout(self.settings.playwright_timeout)
        except Exception as e:
            self.logger.error("Failed to start browser", error=str(e))
            await self.close()
            raise RasterizationError(f"Browser initialization failed: {e}") from e

        self.logger.info(
            "Rasterizer initialized",
            width=self.options.width,
            height=self.options.height,
            scale=self.options.scale,
        )

    async def _create_browser_context(self, browser: Browser) -> BrowserContext:
        """Create browser context with the capture viewport and scale."""
        context_options: Dict[str, Any] = {
            "viewport": {"width": self.options.width, "height": self.options.height},
            "device_scale_factor": self.options.scale,
        }
        return await browser.new_context(**context_options)  # type: ignore[arg-type]

    @property
    def page(self) -> Page:
        if self._page is None:
            raise RasterizationError("Rasterizer not initialized")
        return self._page

    async def load(self, html: str) -> None:
        try:
            await self.page.set_content(html, wait_until="load")
        except RasterizationError:
            raise
        except Exception as e:
            raise RasterizationError(f"Failed to load document: {e}") from e

    async def settle(self) -> None:
        """
        Wait for ``document.fonts.ready`` (bounded), then the settle delay.

        A font wait that runs out is logged and the capture proceeds.
        """
        timeout = self.options.font_wait_timeout_ms / 1000
        try:
            await asyncio.wait_for(self.page.evaluate(FONTS_READY_SCRIPT), timeout=timeout)
        except asyncio.TimeoutError:
            self.logger.warning("Font loading did not finish in time", timeout_ms=self.options.font_wait_timeout_ms)
        except RasterizationError:
            raise
        except Exception as e:
            raise RasterizationError(f"Failed to wait for fonts: {e}") from e

        if self.options.settle_delay_ms:
            await asyncio.sleep(self.options.settle_delay_ms / 1000)

    async def capture(self, selector: Optional[str] = None) -> bytes:
        """
        Screenshot the export root element.

        Args:
            selector: Export root selector, ``<body>`` when absent or unmatched

        Returns:
            PNG bytes at the configured device scale

        Raises:
            RasterizationError: If the screenshot fails
        """
        try:
            element = await self.page.query_selector(selector) if selector else None
            if element is None:
                if selector:
                    self.logger.debug("Export root not found, capturing body", selector=selector)
                element = await self.page.query_selector(FALLBACK_SELECTOR)
            if element is None:
                raise RasterizationError("Document has no body to capture")

            screenshot_bytes = await element.screenshot(type="png")
        except RasterizationError:
            raise
        except Exception as e:
            self.logger.error("Element screenshot failed", selector=selector, error=str(e))
            raise RasterizationError(f"Screenshot failed: {e}") from e

        if self.options.optimize_png:
            screenshot_bytes = self._optimize_png(screenshot_bytes)

        self.logger.debug("Captured", selector=selector, file_size=len(screenshot_bytes))
        return screenshot_bytes

    def _optimize_png(self, png_bytes: bytes) -> bytes:
        """
        Re-encode a PNG with Pillow at maximum compression.

        Args:
            png_bytes: Original PNG bytes

        Returns:
            Optimized PNG bytes, or the original when Pillow cannot read them
        """
        try:
            image = Image.open(io.BytesIO(png_bytes))  # type: ignore[attr-defined]
            output = io.BytesIO()
            image.save(output, format="PNG", optimize=True, compress_level=9)  # type: ignore[attr-defined]
            optimized_bytes = output.getvalue()
        except (OSError, ValueError) as e:
            self.logger.warning("PNG optimization failed, using original", error=str(e))
            return png_bytes

        reduction = (1 - len(optimized_bytes) / len(png_bytes)) * 100 if png_bytes else 0
        self.logger.debug(
            "PNG optimization completed",
            original_size=len(png_bytes),
            optimized_size=len(optimized_bytes),
            reduction_percent=round(reduction, 2),
        )
        return optimized_bytes if len(optimized_bytes) < len(png_bytes) else png_bytes

    async def close(self) -> None:
        """Close page, context, browser and Playwright."""
        if self._context is not None:
            await self._context.close()
        if self._browser is not None:
            await self._browser.close()
        if self._playwright is not None:
            await self._playwright.stop()
        self._page = None
        self._context = None
        self._browser = None
        self._playwright = None
        self.logger.info("Rasterizer closed")
