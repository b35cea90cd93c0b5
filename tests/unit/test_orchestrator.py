"""
Unit Tests for the Batch Orchestrator
=====================================

Tests for the sequential bind/settle/capture loop, failure isolation,
placeholder handling, progress and cancellation.
"""

from unittest.mock import patch

import pytest

from banner_batch.core.batch.orchestrator import BatchOrchestrator
from banner_batch.core.exceptions import ArchiveEmptyFailure
from banner_batch.core.records.overlay import EditOverlay
from banner_batch.models.schemas import BannerRecord, BatchJob, BatchState, BindReport

from tests.utils.assertions import archive_entries, assert_valid_png
from tests.utils.mocks import FakeRasterizer

TS = "202511300120"


def _job(*values) -> BatchJob:
    return BatchJob(records=[BannerRecord(values=v) for v in values], timestamp=TS)


class TestRunBatch:
    """Test whole batch runs."""

    @pytest.mark.asyncio
    async def test_all_records_captured(self, simple_template, fake_rasterizer):
        orchestrator = BatchOrchestrator(simple_template, rasterizer=fake_rasterizer)

        result = await orchestrator.run_batch(_job({"id": "a", "title": "A"}, {"title": "B"}))

        assert result.state == BatchState.COMPLETED
        assert result.succeeded == 2
        assert result.failed == 0
        assert result.archive.entries == [f"a_{TS}.png", f"1_{TS}.png"]
        assert archive_entries(result.archive) == result.archive.entries
        assert result.summary() == "2/2 banners generated"
        assert fake_rasterizer.selectors == [".container", ".container"]
        assert fake_rasterizer.settles == 2
        assert_valid_png(result.results[0].png_data)

    @pytest.mark.asyncio
    async def test_one_failure_does_not_stop_the_batch(self, simple_template):
        """Test that a failed capture is counted and the rest still export."""
        rasterizer = FakeRasterizer(fail_on_calls=[2])
        orchestrator = BatchOrchestrator(simple_template, rasterizer=rasterizer)

        result = await orchestrator.run_batch(_job({"id": "a"}, {"id": "b"}, {"id": "c"}))

        assert result.state == BatchState.PARTIAL_FAILURE
        assert result.succeeded == 2
        assert result.failed == 1
        assert result.archive.entries == [f"a_{TS}.png", f"c_{TS}.png"]
        assert "capture 2 failed" in result.results[1].error

    @pytest.mark.asyncio
    async def test_all_failed_raises(self, simple_template):
        rasterizer = FakeRasterizer(fail_when=lambda html: True)
        orchestrator = BatchOrchestrator(simple_template, rasterizer=rasterizer)

        with pytest.raises(ArchiveEmptyFailure):
            await orchestrator.run_batch(_job({"id": "a"}, {"id": "b"}))

        assert orchestrator.state == BatchState.FAILED

    @pytest.mark.asyncio
    async def test_empty_job_raises(self, simple_template, fake_rasterizer):
        orchestrator = BatchOrchestrator(simple_template, rasterizer=fake_rasterizer)

        with pytest.raises(ArchiveEmptyFailure):
            await orchestrator.run_batch(_job())

    @pytest.mark.asyncio
    async def test_bind_failure_isolated(self, simple_template, fake_rasterizer):
        """Test that an exception while binding fails only that record."""
        orchestrator = BatchOrchestrator(simple_template, rasterizer=fake_rasterizer)

        with patch("banner_batch.core.batch.orchestrator.bind") as mock_bind:
            mock_bind.side_effect = [ValueError("boom"), BindReport()]
            result = await orchestrator.run_batch(_job({"id": "a"}, {"id": "b"}))

        assert result.failed == 1
        assert result.results[0].error == "boom"
        assert result.archive.entries == [f"b_{TS}.png"]
        assert fake_rasterizer.captures == 1

    @pytest.mark.asyncio
    async def test_passed_in_rasterizer_not_closed(self, simple_template, fake_rasterizer):
        orchestrator = BatchOrchestrator(simple_template, rasterizer=fake_rasterizer)

        await orchestrator.run_batch(_job({"id": "a"}))

        assert fake_rasterizer.initialized
        assert not fake_rasterizer.closed

    @pytest.mark.asyncio
    async def test_records_are_isolated(self, simple_template, fake_rasterizer):
        """Test that a value bound for one record does not leak into the next."""
        orchestrator = BatchOrchestrator(simple_template, rasterizer=fake_rasterizer)

        await orchestrator.run_batch(_job({"title": "First"}, {"id": "x"}))

        assert "First" in fake_rasterizer.loaded[0]
        assert "First" not in fake_rasterizer.loaded[1]
        assert "Default title" in fake_rasterizer.loaded[1]


class TestPlaceholder:
    """Test the template preview record at index 0."""

    @pytest.mark.asyncio
    async def test_skipped_by_default(self, simple_template, fake_rasterizer):
        orchestrator = BatchOrchestrator(simple_template, rasterizer=fake_rasterizer)

        result = await orchestrator.run_batch(_job({}, {"title": "A"}))

        assert result.skipped == 1
        assert result.results[0].skipped
        assert result.archive.entries == [f"1_{TS}.png"]
        assert result.summary() == "1/1 banners generated"
        assert len(fake_rasterizer.loaded) == 1

    @pytest.mark.asyncio
    async def test_included_when_configured(self, simple_template, fake_rasterizer, test_settings):
        test_settings.include_template_preview = True
        orchestrator = BatchOrchestrator(simple_template, rasterizer=fake_rasterizer)

        result = await orchestrator.run_batch(_job({}, {"title": "A"}))

        assert result.skipped == 0
        assert result.archive.entries == [f"template_preview_{TS}.png", f"1_{TS}.png"]

    @pytest.mark.asyncio
    async def test_skeleton_record(self, simple_template, fake_rasterizer):
        """Test that the template's own defaults count as the placeholder."""
        orchestrator = BatchOrchestrator(simple_template, rasterizer=fake_rasterizer)
        job = BatchJob(records=[simple_template.preview_record(), BannerRecord(values={"id": "a"})], timestamp=TS)

        result = await orchestrator.run_batch(job)

        assert result.archive.entries == [f"a_{TS}.png"]


class TestOverlayAndProgress:
    """Test edits, progress callbacks and cancellation."""

    @pytest.mark.asyncio
    async def test_overlay_applied_per_record(self, simple_template, fake_rasterizer):
        overlay = EditOverlay()
        overlay.set(1, "title", "Edited")
        orchestrator = BatchOrchestrator(simple_template, rasterizer=fake_rasterizer)

        await orchestrator.run_batch(_job({"title": "A"}, {"title": "B"}), overlay)

        assert ">A<" in fake_rasterizer.loaded[0]
        assert "Edited" in fake_rasterizer.loaded[1]
        assert ">B<" not in fake_rasterizer.loaded[1]

    @pytest.mark.asyncio
    async def test_overlay_paths_resolved(self, simple_template, fake_rasterizer, asset_bundle):
        overlay = EditOverlay()
        overlay.set(0, "product_main_src", "p1.png")
        orchestrator = BatchOrchestrator(simple_template, asset_bundle, rasterizer=fake_rasterizer)

        await orchestrator.run_batch(_job({"id": "a"}), overlay)

        assert "data:image/png;base64," in fake_rasterizer.loaded[0]

    @pytest.mark.asyncio
    async def test_sync_progress(self, simple_template, fake_rasterizer):
        seen = []
        orchestrator = BatchOrchestrator(simple_template, rasterizer=fake_rasterizer)

        await orchestrator.run_batch(_job({}, {"id": "a"}, {"id": "b"}), on_progress=seen.append)

        assert [(p.index, p.total, p.skipped, p.success) for p in seen] == [
            (0, 3, True, False),
            (1, 3, False, True),
            (2, 3, False, True),
        ]
        assert seen[1].filename == f"a_{TS}"

    @pytest.mark.asyncio
    async def test_async_progress(self, simple_template, fake_rasterizer):
        seen = []

        async def on_progress(progress):
            seen.append(progress.index)

        orchestrator = BatchOrchestrator(simple_template, rasterizer=fake_rasterizer)
        await orchestrator.run_batch(_job({"id": "a"}, {"id": "b"}), on_progress=on_progress)

        assert seen == [0, 1]

    @pytest.mark.asyncio
    async def test_cancel_keeps_produced_outputs(self, simple_template, fake_rasterizer):
        """Test that a cancelled run stops after the current record."""
        orchestrator = BatchOrchestrator(simple_template, rasterizer=fake_rasterizer)

        def on_progress(progress):
            if progress.index == 0:
                orchestrator.cancel()

        job = _job({"id": "a"}, {"id": "b"}, {"id": "c"})
        result = await orchestrator.run_batch(job, on_progress=on_progress)

        assert result.state == BatchState.CANCELLED
        assert result.archive.entries == [f"a_{TS}.png"]
        assert result.metadata["processed"] == 1
        assert job.cursor == 1

    @pytest.mark.asyncio
    async def test_cancel_before_any_output(self, simple_template, fake_rasterizer):
        orchestrator = BatchOrchestrator(simple_template, rasterizer=fake_rasterizer)

        result = await orchestrator.run_batch(
            _job({}, {"id": "a"}), on_progress=lambda progress: orchestrator.cancel()
        )

        assert result.state == BatchState.CANCELLED
        assert result.archive is None

    def test_create_job_fixes_timestamp(self, simple_template, fake_rasterizer):
        orchestrator = BatchOrchestrator(simple_template, rasterizer=fake_rasterizer)

        job = orchestrator.create_job([BannerRecord()])

        assert len(job.timestamp) == 12
        assert job.total == 1
        assert not job.finished
