"""
Banner Session
==============

Interactive state around one template: the loaded records, the record being
previewed, manual edits and the preview render target. A session is the
programmatic counterpart of the editing screen; batch export goes through
the BatchOrchestrator.
"""

from typing import Any, List, Optional, Union

from banner_batch.config.logging import get_logger
from banner_batch.config.settings import Settings, get_settings
from banner_batch.core.assets.bundle import AssetBundle
from banner_batch.core.assets.resolver import resolve_record, resolve_value
from banner_batch.core.batch.orchestrator import BatchOrchestrator, ProgressCallback
from banner_batch.core.binding.binder import bind, bind_field
from banner_batch.core.exceptions import BannerBatchError
from banner_batch.core.records.loader import load_records
from banner_batch.core.records.overlay import EditOverlay
from banner_batch.core.rendering.png_generator import BaseRasterizer, PlaywrightRasterizer, render_options
from banner_batch.core.rendering.render_target import RenderTarget
from banner_batch.core.template.loader import BannerTemplate, load_template, load_template_archive
from banner_batch.models.schemas import BannerRecord, BatchResult, RecordValue, TemplateDescriptor

logger = get_logger(__name__)


class BannerSession:
    """Template, records, edits and preview of one editing session."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self.template: Optional[BannerTemplate] = None
        self.bundle = AssetBundle()
        self.records: List[BannerRecord] = []
        self.overlay = EditOverlay()
        self.current_index = 0
        self._preview: Optional[RenderTarget] = None
        self.logger: Any = logger.bind(component="session")

    @property
    def descriptor(self) -> TemplateDescriptor:
        return self.template.descriptor if self.template else TemplateDescriptor()

    @property
    def current_record(self) -> Optional[BannerRecord]:
        if not self.records:
            return None
        return self.records[self.current_index]

    def _require_template(self) -> BannerTemplate:
        if self.template is None:
            raise BannerBatchError("No template loaded")
        return self.template

    def _set_template(self, template: BannerTemplate, bundle: AssetBundle) -> TemplateDescriptor:
        self.template = template
        self.bundle = bundle
        self.overlay.clear()
        self._preview = RenderTarget(template, bundle)
        self._refresh_preview()
        return template.descriptor

    def load_template(
        self,
        markup: Union[str, bytes],
        stylesheet: Optional[Union[str, bytes]] = None,
        bundle: Optional[AssetBundle] = None,
        name: Optional[str] = None,
    ) -> TemplateDescriptor:
        """Load template markup; records are kept, edits are discarded."""
        template = load_template(markup, stylesheet, image_groups=self.settings.image_groups, name=name)
        return self._set_template(template, bundle if bundle is not None else AssetBundle())

    def load_archive(self, data: bytes) -> TemplateDescriptor:
        """
        Load a template archive. A record file inside the archive replaces the
        loaded records.
        """
        template, bundle, partition = load_template_archive(data, self.settings.image_groups)
        descriptor = self._set_template(template, bundle)
        if partition.data:
            entry = partition.data[0]
            self.logger.info("Loading records bundled with template", path=entry.path)
            self.load_records(entry.content, entry.filename)
        return descriptor

    def load_records(self, data: Union[str, bytes], filename: Optional[str] = None) -> int:
        """Replace the batch atomically; previous edits are discarded."""
        records = load_records(data, filename)
        self.records = records
        self.overlay.clear()
        self.current_index = 0
        self._refresh_preview()
        return len(records)

    def _refresh_preview(self) -> None:
        if self._preview is None or self.template is None:
            return
        self._preview.reset()
        record = self.current_record
        if record is not None:
            overrides = {
                name: resolve_value(value, self.bundle) if self.bundle else value
                for name, value in self.overlay.for_index(self.current_index).items()
            }
            bind(
                self._preview,
                self.template.descriptor,
                resolve_record(record, self.bundle),
                overrides,
                self.settings.price_decimal_separator,
            )
        self._preview.resolve_resources()

    def navigate(self, index: int) -> BannerRecord:
        """
        Show the record at ``index``.

        Raises:
            IndexError: If ``index`` is outside the loaded batch
        """
        if not 0 <= index < len(self.records):
            raise IndexError(f"Record index {index} out of range (0..{len(self.records) - 1})")
        self.current_index = index
        self._refresh_preview()
        return self.records[index]

    def next(self) -> bool:
        if self.current_index + 1 >= len(self.records):
            return False
        self.navigate(self.current_index + 1)
        return True

    def previous(self) -> bool:
        if self.current_index == 0 or not self.records:
            return False
        self.navigate(self.current_index - 1)
        return True

    def field_value(self, name: str) -> Any:
        """Value shown for ``name`` on the current record: edit, else record value."""
        if name in self.overlay.for_index(self.current_index):
            return self.overlay.get(self.current_index, name)
        record = self.current_record
        return record.get(name) if record is not None else None

    def edit_field(self, name: str, value: RecordValue) -> bool:
        """
        Record a manual edit for the current record and apply it to the preview.

        Returns:
            True when a live slot took the value
        """
        template = self._require_template()
        self.overlay.set(self.current_index, name, value)
        if self._preview is None:
            return False
        applied = bind_field(
            self._preview,
            template.descriptor,
            name,
            resolve_value(value, self.bundle) if self.bundle else value,
            self.settings.price_decimal_separator,
        )
        self._preview.resolve_resources()
        self.logger.debug("Field edited", index=self.current_index, field=name, applied=applied)
        return applied

    async def preview_html(self) -> str:
        """Standalone document of the current preview."""
        self._require_template()
        return await self._preview.to_html()  # type: ignore[union-attr]

    async def preview_png(self, rasterizer: Optional[BaseRasterizer] = None) -> bytes:
        """
        Rasterize the current preview at the preview scale.

        A rasterizer passed in is used as is and left open; otherwise a
        Chromium rasterizer is started for this capture and closed after it.
        """
        html = await self.preview_html()
        if rasterizer is not None:
            return await rasterizer.render(html)

        options = render_options(self.settings, scale=self.settings.preview_scale)
        async with PlaywrightRasterizer(options) as browser:
            return await browser.render(html)

    async def generate_all(
        self,
        rasterizer: Optional[BaseRasterizer] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> BatchResult:
        """Export every loaded record, edits applied, into one archive."""
        template = self._require_template()
        if not self.records:
            raise BannerBatchError("No records loaded")

        orchestrator = BatchOrchestrator(template, self.bundle, rasterizer, self.settings)
        job = orchestrator.create_job(self.records)
        return await orchestrator.run_batch(job, self.overlay, on_progress)
