"""
Test Mocks
==========

Stand-ins for the browser so batches run without Chromium.
"""

from typing import Callable, List, Optional
import hashlib

from banner_batch.core.exceptions import RasterizationError
from banner_batch.core.rendering.png_generator import BaseRasterizer
from banner_batch.models.schemas import RenderOptions

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"


class FakeRasterizer(BaseRasterizer):
    """
    Rasterizer that records every loaded document and returns fake PNG bytes.

    Args:
        options: Render options, defaults from settings
        fail_on_calls: 1-based capture calls that raise RasterizationError
        fail_when: Predicate on the loaded document; a match makes the capture fail
    """

    def __init__(
        self,
        options: Optional[RenderOptions] = None,
        fail_on_calls: Optional[List[int]] = None,
        fail_when: Optional[Callable[[str], bool]] = None,
    ):
        super().__init__(options)
        self.fail_on_calls = set(fail_on_calls or [])
        self.fail_when = fail_when
        self.loaded: List[str] = []
        self.selectors: List[Optional[str]] = []
        self.captures = 0
        self.settles = 0
        self.initialized = False
        self.closed = False

    async def initialize(self) -> None:
        self.initialized = True

    async def load(self, html: str) -> None:
        self.loaded.append(html)

    async def settle(self) -> None:
        self.settles += 1

    async def capture(self, selector: Optional[str] = None) -> bytes:
        self.captures += 1
        self.selectors.append(selector)
        html = self.loaded[-1] if self.loaded else ""
        if self.captures in self.fail_on_calls or (self.fail_when and self.fail_when(html)):
            raise RasterizationError(f"capture {self.captures} failed")
        return PNG_SIGNATURE + hashlib.sha256(html.encode("utf-8")).digest()

    async def close(self) -> None:
        self.closed = True
