from __future__ import annotations

import threading
import time
from pathlib import Path
from typing import Callable, Dict, List, Optional

import pytest

from mediashelf.cache import LocalArtifactCache
from mediashelf.catalog import ArtifactState, SourceItem
from mediashelf.preprocessing import (
    AlreadyRunning,
    ItemOutcome,
    JobNotActive,
    JobState,
    PreprocessingScheduler,
    SchedulerClosed,
)
from mediashelf.rendering import (
    PageRenderer,
    RenderFailure,
    RenderResult,
    RenderStatus,
    WorkerRegistry,
)
from mediashelf.rendering.source import scratch_prefix
from tests.helpers.catalog_stub import MemoryCatalog
from tests.helpers.poppler_stub import FakePoppler


def _wait_for(predicate: Callable[[], bool], timeout: float = 5.0) -> None:
    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            raise AssertionError("condition not reached in time")
        time.sleep(0.01)


class ScriptedWorker:
    """Rendering worker whose per-item behaviour is scripted by the test."""

    def __init__(self, script: Optional[Dict[int, object]] = None) -> None:
        self.script = script or {}
        self.calls: List[int] = []
        self.started = threading.Event()
        self.gate = threading.Event()
        self.gate.set()
        self.gated_items: set[int] = set()

    def render_all(self, item: SourceItem) -> RenderResult:
        self.calls.append(item.id)
        if item.id in self.gated_items:
            self.started.set()
            self.gate.wait(timeout=5)
        outcome = self.script.get(item.id)
        if isinstance(outcome, BaseException):
            raise outcome
        if isinstance(outcome, RenderResult):
            return outcome
        return RenderResult(status=RenderStatus.SUCCESS, units_written=3, total_units=3, page_count=3)


def _pdf(item_id: int, **kwargs) -> SourceItem:
    return SourceItem(
        id=item_id,
        item_type="magazine",
        source_path=f"/media/magazines/issue-{item_id}.pdf",
        title=f"Issue {item_id}",
        **kwargs,
    )


@pytest.fixture
def cache(tmp_path: Path) -> LocalArtifactCache:
    return LocalArtifactCache(tmp_path / "cache")


@pytest.fixture
def worker() -> ScriptedWorker:
    return ScriptedWorker()


@pytest.fixture
def catalog() -> MemoryCatalog:
    return MemoryCatalog([_pdf(1), _pdf(2), _pdf(3)])


@pytest.fixture
def scheduler(catalog, worker, cache):
    registry = WorkerRegistry({".pdf": worker})
    instance = PreprocessingScheduler(
        catalog=catalog, registry=registry, cache=cache, item_delay_seconds=0
    )
    yield instance
    worker.gate.set()
    instance.shutdown()


def test_status_before_any_job_is_idle(scheduler) -> None:
    snapshot = scheduler.status("magazine")

    assert snapshot.state is JobState.IDLE
    assert snapshot.total == 0
    assert snapshot.job_id is None


def test_job_processes_every_item_and_records_state(scheduler, catalog, worker) -> None:
    started = scheduler.start("magazine")

    assert started.total == 3
    assert started.running
    final = scheduler.wait("magazine", timeout=5)

    assert final.state is JobState.IDLE
    assert (final.processed, final.success, final.failed, final.skipped) == (3, 3, 0, 0)
    assert final.finished_at is not None
    assert worker.calls == [1, 2, 3]
    assert all(catalog.item(item_id).artifact_state is ArtifactState.COMPLETE for item_id in (1, 2, 3))
    assert catalog.item(2).page_count == 3


def test_completed_items_are_not_queued_unless_forced(scheduler, catalog, worker) -> None:
    catalog.add(_pdf(2, artifact_state=ArtifactState.COMPLETE))

    assert scheduler.start("magazine").total == 2
    scheduler.wait("magazine", timeout=5)
    assert worker.calls == [1, 3]

    forced = scheduler.start("magazine", force=True)
    assert forced.total == 3
    assert forced.force is True
    scheduler.wait("magazine", timeout=5)


def test_skipped_results_are_counted(scheduler, worker) -> None:
    worker.script[1] = RenderResult(status=RenderStatus.SKIPPED, units_written=0, total_units=3)

    scheduler.start("magazine")
    final = scheduler.wait("magazine", timeout=5)

    assert final.skipped == 1
    assert final.success == 2


def test_second_start_while_running_is_rejected(scheduler, worker) -> None:
    worker.gated_items = {1}
    worker.gate.clear()
    first = scheduler.start("magazine")
    assert worker.started.wait(timeout=5)

    with pytest.raises(AlreadyRunning) as excinfo:
        scheduler.start("magazine")

    assert excinfo.value.job is not None
    assert excinfo.value.job.job_id == first.job_id
    worker.gate.set()
    scheduler.wait("magazine", timeout=5)


def test_failures_are_isolated_per_item(scheduler, catalog, worker) -> None:
    catalog.add(_pdf(4))
    worker.script.update(
        {
            1: RenderFailure("pdftoppm timed out", item_id=1, units_done=2),
            2: RenderFailure("pdfinfo failed", item_id=2, units_done=0),
            3: RuntimeError("disk on fire"),
        }
    )

    scheduler.start("magazine")
    final = scheduler.wait("magazine", timeout=5)

    assert (final.processed, final.success, final.failed) == (4, 1, 3)
    assert [error.item_id for error in final.errors] == [1, 2, 3]
    assert final.errors[2].message == "disk on fire"
    assert catalog.item(1).artifact_state is ArtifactState.PARTIAL
    assert catalog.item(2).artifact_state is ArtifactState.ABSENT
    assert catalog.item(3).artifact_state is ArtifactState.ABSENT
    assert catalog.item(4).artifact_state is ArtifactState.COMPLETE


def test_items_without_a_worker_are_skipped_and_completed(scheduler, catalog, worker) -> None:
    catalog.add(
        SourceItem(id=9, item_type="magazine", source_path="/media/magazines/notes.txt", title="Notes")
    )

    scheduler.start("magazine")
    final = scheduler.wait("magazine", timeout=5)

    assert final.skipped == 1
    assert 9 not in worker.calls
    assert catalog.item(9).artifact_state is ArtifactState.COMPLETE


def test_cover_flag_is_recorded(cache) -> None:
    catalog = MemoryCatalog(
        [SourceItem(id=1, item_type="ebook", source_path="/media/ebooks/a.epub", title="A")]
    )
    worker = ScriptedWorker(
        {1: RenderResult(status=RenderStatus.SUCCESS, units_written=0, total_units=1, cover_found=False)}
    )
    scheduler = PreprocessingScheduler(
        catalog=catalog,
        registry=WorkerRegistry({".epub": worker}),
        cache=cache,
        item_delay_seconds=0,
    )
    try:
        scheduler.start("ebook")
        final = scheduler.wait("ebook", timeout=5)
    finally:
        scheduler.shutdown()

    assert final.success == 1
    assert catalog.item(1).cover_missing is True
    assert catalog.item(1).artifact_state is ArtifactState.COMPLETE


def test_pause_waits_for_item_in_flight_then_resume_continues(scheduler, worker) -> None:
    worker.gated_items = {1}
    worker.gate.clear()
    scheduler.start("magazine")
    assert worker.started.wait(timeout=5)

    paused = scheduler.pause("magazine")
    assert paused.state is JobState.PAUSED
    worker.gate.set()

    _wait_for(lambda: scheduler.status("magazine").processed == 1)
    time.sleep(0.1)
    assert worker.calls == [1]
    assert scheduler.status("magazine").state is JobState.PAUSED

    resumed = scheduler.resume("magazine")
    assert resumed.state is not JobState.PAUSED
    final = scheduler.wait("magazine", timeout=5)
    assert final.processed == 3
    assert worker.calls == [1, 2, 3]


def test_pause_without_active_job_is_rejected(scheduler) -> None:
    with pytest.raises(JobNotActive):
        scheduler.pause("magazine")
    with pytest.raises(JobNotActive):
        scheduler.resume("magazine")


def test_progress_payload_shape(scheduler, worker) -> None:
    worker.script[2] = RenderFailure("broken", item_id=2)

    scheduler.start("magazine")
    payload = scheduler.wait("magazine", timeout=5).to_payload()

    assert payload["state"] == "idle"
    assert payload["running"] is False
    assert payload["total"] == 3
    assert payload["processed"] == 3
    assert payload["errors"] == [{"id": 2, "title": "Issue 2", "error": "broken"}]
    assert payload["current"] is None


def test_job_removes_only_its_own_scratch(catalog, cache) -> None:
    class LeavesScratch(ScriptedWorker):
        def render_all(self, item: SourceItem) -> RenderResult:
            cache.scratch_path(".png", prefix=scratch_prefix(item)).write_bytes(b"leftover")
            return super().render_all(item)

    in_flight = cache.scratch_path(".pdf", prefix="magazine-1")
    in_flight.write_bytes(b"on-demand render")
    other_type = cache.scratch_path(".epub", prefix="ebook-1")
    other_type.write_bytes(b"other type")
    scheduler = PreprocessingScheduler(
        catalog=catalog,
        registry=WorkerRegistry({".pdf": LeavesScratch()}),
        cache=cache,
        item_delay_seconds=0,
    )
    try:
        scheduler.start("magazine")
        scheduler.wait("magazine", timeout=5)
    finally:
        scheduler.shutdown()

    remaining = sorted(entry.name for entry in cache.scratch_dir().iterdir())
    assert remaining == sorted([in_flight.name, other_type.name])


def test_page_renderer_job_keeps_concurrent_render_scratch(cache, tmp_path: Path) -> None:
    source = tmp_path / "media" / "issue-5.pdf"
    source.parent.mkdir(parents=True)
    source.write_bytes(b"%PDF-1.7\n")
    catalog = MemoryCatalog(
        [SourceItem(id=5, item_type="magazine", source_path=str(source), title="Issue 5")]
    )
    in_flight = cache.scratch_path(prefix="magazine-99")
    in_flight.mkdir()
    (in_flight / "page-1.png").write_bytes(b"png")
    scheduler = PreprocessingScheduler(
        catalog=catalog,
        registry=WorkerRegistry({".pdf": PageRenderer(cache, runner=FakePoppler(2))}),
        cache=cache,
        item_delay_seconds=0,
    )
    try:
        scheduler.start("magazine")
        final = scheduler.wait("magazine", timeout=5)
    finally:
        scheduler.shutdown()

    assert final.success == 1
    assert (in_flight / "page-1.png").exists()


def test_start_after_shutdown_is_rejected(catalog, worker, cache) -> None:
    scheduler = PreprocessingScheduler(
        catalog=catalog,
        registry=WorkerRegistry({".pdf": worker}),
        cache=cache,
        item_delay_seconds=0,
    )
    scheduler.shutdown()

    with pytest.raises(SchedulerClosed):
        scheduler.start("magazine")
    assert worker.calls == []
    assert scheduler.status("magazine").state is JobState.IDLE


def test_process_item_runs_outside_a_job(scheduler, catalog, worker) -> None:
    outcome = scheduler.process_item(catalog.item(2))

    assert outcome is ItemOutcome.SUCCESS
    assert worker.calls == [2]
    assert scheduler.status("magazine").state is JobState.IDLE
