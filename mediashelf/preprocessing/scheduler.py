"""Background preprocessing of catalog items, one sequential worker per item type."""

from __future__ import annotations

import threading
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Callable, Dict, Optional, Sequence
from uuid import uuid4

from mediashelf import logging_manager as log_mgr
from mediashelf.cache import LocalArtifactCache
from mediashelf.catalog import ArtifactState, Catalog, SourceItem
from mediashelf.rendering import (
    RenderFailure,
    RenderStatus,
    WorkerRegistry,
    scoped_scratch_prefix,
    scratch_scope,
)

from .job import (
    AlreadyRunning,
    ItemOutcome,
    JobError,
    JobNotActive,
    JobState,
    PreprocessingJob,
    SchedulerClosed,
)

logger = log_mgr.logger

ItemFilter = Callable[[SourceItem], bool]


class _Runner:
    """Worker-owned state for one item type.

    Only the worker thread assigns ``snapshot``; readers take the reference and
    never see a half-updated job. Pause is a cleared ``resume_event``.
    """

    def __init__(self, snapshot: PreprocessingJob) -> None:
        self.snapshot = snapshot
        self.resume_event = threading.Event()
        self.resume_event.set()
        self.future: Optional[Future] = None

    def publish(self, snapshot: PreprocessingJob) -> PreprocessingJob:
        self.snapshot = snapshot
        return snapshot

    def view(self) -> PreprocessingJob:
        snapshot = self.snapshot
        if snapshot.state is JobState.RUNNING and not self.resume_event.is_set():
            return snapshot.evolve(state=JobState.PAUSED)
        return snapshot


class PreprocessingScheduler:
    """Walk catalog items that lack artifacts and run the matching worker on each."""

    def __init__(
        self,
        *,
        catalog: Catalog,
        registry: WorkerRegistry,
        cache: LocalArtifactCache,
        item_delay_seconds: float = 0.5,
        executor_factory: Callable[[str], Executor] | None = None,
    ) -> None:
        self._catalog = catalog
        self._registry = registry
        self._cache = cache
        self.item_delay_seconds = max(0.0, float(item_delay_seconds))
        self._executor_factory = executor_factory or (
            lambda item_type: ThreadPoolExecutor(
                max_workers=1, thread_name_prefix=f"preprocess-{item_type}"
            )
        )
        self._executors: Dict[str, Executor] = {}
        self._runners: Dict[str, _Runner] = {}
        self._lock = threading.Lock()
        self._shutdown = threading.Event()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def start(
        self,
        item_type: str,
        *,
        force: bool = False,
        filter_predicate: Optional[ItemFilter] = None,
    ) -> PreprocessingJob:
        """Queue every item of ``item_type`` needing artifacts and start the worker.

        Raises :class:`AlreadyRunning` when a job for the item type is active and
        :class:`SchedulerClosed` after :meth:`shutdown`.
        """

        with self._lock:
            if self._shutdown.is_set():
                raise SchedulerClosed("Preprocessing scheduler has been shut down")
            existing = self._runners.get(item_type)
            if existing is not None and existing.snapshot.running:
                raise AlreadyRunning(item_type, existing.view())

            items = list(self._catalog.list_items_needing_artifacts(item_type, force))
            if filter_predicate is not None:
                items = [item for item in items if filter_predicate(item)]

            snapshot = PreprocessingJob(
                item_type=item_type,
                job_id=uuid4().hex,
                state=JobState.RUNNING,
                item_ids=tuple(item.id for item in items),
                total=len(items),
                force=force,
                started_at=datetime.now(timezone.utc),
            )
            runner = _Runner(snapshot)
            self._runners[item_type] = runner
            executor = self._executors.get(item_type)
            if executor is None:
                executor = self._executor_factory(item_type)
                self._executors[item_type] = executor
            runner.future = executor.submit(self._execute_job, runner, items)

        logger.info(
            "Queued %d %s items for preprocessing",
            len(items),
            item_type,
            extra={"event": "preprocess.job.started", "job_id": snapshot.job_id, "item_type": item_type},
        )
        return snapshot

    def status(self, item_type: str) -> PreprocessingJob:
        runner = self._runners.get(item_type)
        if runner is None:
            return PreprocessingJob(item_type=item_type)
        return runner.view()

    def pause(self, item_type: str) -> PreprocessingJob:
        """Stop before the next item; the item in flight finishes first."""

        runner = self._active_runner(item_type)
        runner.resume_event.clear()
        logger.info(
            "Pausing %s preprocessing",
            item_type,
            extra={"event": "preprocess.job.paused", "item_type": item_type},
        )
        return runner.view()

    def resume(self, item_type: str) -> PreprocessingJob:
        runner = self._active_runner(item_type)
        runner.resume_event.set()
        logger.info(
            "Resuming %s preprocessing",
            item_type,
            extra={"event": "preprocess.job.resumed", "item_type": item_type},
        )
        return runner.view()

    def wait(self, item_type: str, timeout: Optional[float] = None) -> PreprocessingJob:
        """Block until the current job for ``item_type`` ends and return its final snapshot."""

        runner = self._runners.get(item_type)
        if runner is None:
            return PreprocessingJob(item_type=item_type)
        if runner.future is not None:
            runner.future.result(timeout=timeout)
        return runner.view()

    def process_item(self, item: SourceItem) -> ItemOutcome:
        """Run the worker for a single item outside any job."""

        outcome, _error = self._process_item(item)
        return outcome

    def shutdown(self, wait: bool = True) -> None:
        with self._lock:
            self._shutdown.set()
        for runner in list(self._runners.values()):
            runner.resume_event.set()
        for executor in list(self._executors.values()):
            executor.shutdown(wait=wait)
        self._executors.clear()

    # ------------------------------------------------------------------
    # Worker
    # ------------------------------------------------------------------
    def _active_runner(self, item_type: str) -> _Runner:
        runner = self._runners.get(item_type)
        if runner is None or not runner.snapshot.running:
            raise JobNotActive(item_type)
        return runner

    def _wait_if_paused(self, runner: _Runner) -> None:
        while not runner.resume_event.wait(timeout=0.5):
            if self._shutdown.is_set():
                return

    def _execute_job(self, runner: _Runner, items: Sequence[SourceItem]) -> None:
        snapshot = runner.snapshot
        item_type = snapshot.item_type
        job_tag = snapshot.job_id or uuid4().hex
        with log_mgr.log_context(job_id=snapshot.job_id, item_type=item_type), scratch_scope(job_tag):
            try:
                for index, item in enumerate(items):
                    self._wait_if_paused(runner)
                    if self._shutdown.is_set():
                        break
                    snapshot = runner.publish(
                        snapshot.evolve(current_label=item.display_label, cursor=index)
                    )
                    outcome, error = self._process_item(item)
                    snapshot = runner.publish(snapshot.record(outcome, error))
                    if self.item_delay_seconds and index < len(items) - 1:
                        self._shutdown.wait(self.item_delay_seconds)
            finally:
                self._cache.cleanup_scratch(prefix=scoped_scratch_prefix(item_type, job_tag))
                snapshot = runner.publish(
                    snapshot.evolve(
                        state=JobState.IDLE,
                        current_label=None,
                        finished_at=datetime.now(timezone.utc),
                    )
                )
                logger.info(
                    "Preprocessing finished: %d succeeded, %d skipped, %d failed",
                    snapshot.success,
                    snapshot.skipped,
                    snapshot.failed,
                    extra={"event": "preprocess.job.finished", "status": "idle"},
                )

    def _process_item(self, item: SourceItem) -> tuple[ItemOutcome, Optional[JobError]]:
        worker = self._registry.for_item(item)
        try:
            if worker is None:
                # No derived artifacts exist for this format.
                self._catalog.mark_artifact_state(item.id, ArtifactState.COMPLETE)
                return ItemOutcome.SKIPPED, None

            try:
                result = worker.render_all(item)
            except RenderFailure as exc:
                state = ArtifactState.PARTIAL if exc.units_done > 0 else ArtifactState.ABSENT
                self._catalog.mark_artifact_state(item.id, state)
                logger.warning(
                    "Rendering %s failed: %s",
                    item.display_label,
                    exc,
                    extra={"event": "preprocess.item.failed", "item_id": item.id, "status": state.value},
                )
                return ItemOutcome.FAILED, JobError(item.id, item.title, str(exc))

            if result.page_count is not None and result.page_count != item.page_count:
                self._catalog.set_page_count(item.id, result.page_count)
            if result.cover_found is not None:
                cover_missing = not result.cover_found
                if cover_missing != item.cover_missing:
                    self._catalog.set_cover_missing(item.id, cover_missing)
            self._catalog.mark_artifact_state(item.id, ArtifactState.COMPLETE)
        except Exception as exc:  # noqa: BLE001
            logger.exception(
                "Preprocessing %s failed",
                item.display_label,
                extra={"event": "preprocess.item.error", "item_id": item.id},
            )
            try:
                self._catalog.mark_artifact_state(item.id, ArtifactState.ABSENT)
            except Exception:  # noqa: BLE001
                logger.exception(
                    "Unable to record failure state for item %s",
                    item.id,
                    extra={"event": "preprocess.item.state_failed", "item_id": item.id},
                )
            return ItemOutcome.FAILED, JobError(item.id, item.title, str(exc) or exc.__class__.__name__)

        if result.status is RenderStatus.SKIPPED:
            return ItemOutcome.SKIPPED, None
        return ItemOutcome.SUCCESS, None


__all__ = ["PreprocessingScheduler"]
