"""
Batch Orchestrator
==================

Run an ordered batch of records through the render pipeline, strictly one
record at a time on a single render target and a single rasterizer page:

    reset -> bind (overlay over record) -> resolve resources -> load ->
    settle -> capture -> collect

A record that fails to bind or capture is logged and counted; the batch
moves on. Only structural failures (nothing produced, archive not written)
end a run with an exception.
"""

from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Optional, Sequence, Union
import inspect

from banner_batch.config.logging import get_logger
from banner_batch.config.settings import Settings, get_settings
from banner_batch.core.assets.bundle import AssetBundle
from banner_batch.core.assets.resolver import resolve_record, resolve_value
from banner_batch.core.batch.naming import batch_timestamp, is_placeholder, output_name
from banner_batch.core.batch.packager import ArchivePackager
from banner_batch.core.binding.binder import bind
from banner_batch.core.exceptions import ArchiveEmptyFailure, BannerBatchError, RecordCaptureFailure
from banner_batch.core.records.overlay import EditOverlay
from banner_batch.core.rendering.png_generator import BaseRasterizer, PlaywrightRasterizer, render_options
from banner_batch.core.rendering.render_target import RenderTarget
from banner_batch.core.template.loader import BannerTemplate
from banner_batch.models.schemas import (
    BannerRecord,
    BatchJob,
    BatchProgress,
    BatchResult,
    BatchState,
    NamedRaster,
    RecordResult,
)

logger = get_logger(__name__)

ProgressCallback = Callable[[BatchProgress], Union[None, Awaitable[None]]]


class BatchOrchestrator:
    """Sequential bind/settle/capture loop over one batch job."""

    def __init__(
        self,
        template: BannerTemplate,
        bundle: Optional[AssetBundle] = None,
        rasterizer: Optional[BaseRasterizer] = None,
        settings: Optional[Settings] = None,
        packager: Optional[ArchivePackager] = None,
    ):
        self.settings = settings or get_settings()
        self.template = template
        self.bundle = bundle if bundle is not None else AssetBundle()
        self._own_rasterizer = rasterizer is None
        self.rasterizer = rasterizer or PlaywrightRasterizer(render_options(self.settings))
        self.packager = packager or ArchivePackager(self.settings.archive_prefix)
        self.state = BatchState.IDLE
        self._cancelled = False
        self.logger: Any = logger.bind(component="batch_orchestrator", template=template.name)

    def create_job(self, records: Sequence[BannerRecord]) -> BatchJob:
        """New job over ``records`` with the run timestamp fixed now."""
        return BatchJob(records=list(records), timestamp=batch_timestamp(self.settings.timestamp_format))

    def cancel(self) -> None:
        """Stop after the record in progress; what was produced is kept."""
        self._cancelled = True
        self.logger.info("Batch cancellation requested")

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def _overrides(self, overlay: Optional[EditOverlay], index: int) -> Dict[str, Any]:
        if overlay is None:
            return {}
        edits = overlay.for_index(index)
        if not self.bundle:
            return edits
        return {name: resolve_value(value, self.bundle) for name, value in edits.items()}

    async def _process(
        self,
        target: RenderTarget,
        job: BatchJob,
        index: int,
        overlay: Optional[EditOverlay],
    ) -> RecordResult:
        record = job.records[index]
        name = output_name(record, index, job.timestamp)

        if is_placeholder(record, index) and not self.settings.include_template_preview:
            self.logger.debug("Skipping template preview record", index=index)
            return RecordResult(index=index, skipped=True)

        async with target.lock:
            try:
                self.state = BatchState.BINDING
                target.reset()
                report = bind(
                    target,
                    self.template.descriptor,
                    resolve_record(record, self.bundle),
                    self._overrides(overlay, index),
                    self.settings.price_decimal_separator,
                )
                target.resolve_resources()
                html = await target.to_html()

                self.state = BatchState.SETTLING
                await self.rasterizer.load(html)
                await self.rasterizer.settle()

                self.state = BatchState.CAPTURING
                png_data = await self.rasterizer.capture(self.rasterizer.options.export_selector)

                self.state = BatchState.COLLECTING
            except Exception as e:
                failure = RecordCaptureFailure(index, str(e), e)
                self.logger.error(
                    "Record failed",
                    index=index,
                    filename=name,
                    error=str(failure),
                    error_type=type(e).__name__,
                )
                return RecordResult(index=index, filename=name, error=failure.reason)

        self.logger.info(
            "Record captured",
            index=index,
            filename=name,
            bound=len(report.bound),
            missing=len(report.missing),
            file_size=len(png_data),
        )
        return RecordResult(index=index, filename=name, png_data=png_data)

    async def iter_batch(
        self, job: BatchJob, overlay: Optional[EditOverlay] = None
    ) -> AsyncIterator[BatchProgress]:
        """
        Process the job from its cursor, yielding progress after each record.

        The rasterizer is opened for the run and, when the orchestrator created
        it, closed when the run ends.
        """
        self._cancelled = False
        target = RenderTarget(self.template, self.bundle)
        self.logger.info("Batch started", total=job.total, timestamp=job.timestamp)

        await self.rasterizer.initialize()
        try:
            while not job.finished:
                if self._cancelled:
                    self.state = BatchState.CANCELLED
                    self.logger.warning("Batch cancelled", processed=job.cursor, total=job.total)
                    return

                index = job.cursor
                result = await self._process(target, job, index, overlay)
                job.results.append(result)
                job.cursor = index + 1

                yield BatchProgress(
                    index=index,
                    total=job.total,
                    filename=result.filename,
                    success=result.success,
                    skipped=result.skipped,
                    error=result.error,
                )
        finally:
            if self._own_rasterizer:
                await self.rasterizer.close()

    async def run_batch(
        self,
        job: BatchJob,
        overlay: Optional[EditOverlay] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> BatchResult:
        """
        Run the whole job and package its outputs.

        Args:
            job: Records and run timestamp
            overlay: Manual edits applied over the records
            on_progress: Sync or async callback receiving each BatchProgress

        Returns:
            BatchResult with counts, per-record results and the archive

        Raises:
            ArchiveEmptyFailure: If no record produced a raster
            PackagingFailure: If the archive cannot be written
        """
        async for progress in self.iter_batch(job, overlay):
            if on_progress is not None:
                outcome = on_progress(progress)
                if inspect.isawaitable(outcome):
                    await outcome

        outputs: List[NamedRaster] = [
            NamedRaster(name=result.filename, png_data=result.png_data)
            for result in job.results
            if result.success and result.filename and result.png_data is not None
        ]
        succeeded = len(outputs)
        skipped = sum(1 for result in job.results if result.skipped)
        failed = sum(1 for result in job.results if result.error is not None)

        archive = None
        if outputs:
            try:
                archive = self.packager.collect(outputs, job.timestamp, job.total)
            except BannerBatchError:
                self.state = BatchState.FAILED
                raise
        elif not self._cancelled:
            self.state = BatchState.FAILED
            self.logger.error("Batch produced no output", total=job.total, failed=failed)
            raise ArchiveEmptyFailure(job.total)

        if self._cancelled:
            self.state = BatchState.CANCELLED
        elif failed:
            self.state = BatchState.PARTIAL_FAILURE
        else:
            self.state = BatchState.COMPLETED

        result = BatchResult(
            state=self.state,
            total=job.total,
            succeeded=succeeded,
            failed=failed,
            skipped=skipped,
            results=list(job.results),
            archive=archive,
            timestamp=job.timestamp,
            metadata={
                "template": self.template.name,
                "processed": job.cursor,
                "started_at": job.started_at.isoformat(),
            },
        )
        self.logger.info(
            "Batch finished",
            state=result.state.value,
            summary=result.summary(),
            archive=archive.filename if archive else None,
        )
        return result
