from __future__ import annotations

from datetime import datetime, timezone

from mediashelf.preprocessing import ItemOutcome, JobError, JobState, PreprocessingJob


def test_record_counts_outcomes_and_errors() -> None:
    job = PreprocessingJob(item_type="ebook", state=JobState.RUNNING, total=3)

    job = job.record(ItemOutcome.SUCCESS)
    job = job.record(ItemOutcome.SKIPPED)
    job = job.record(ItemOutcome.FAILED, JobError(7, "Dune", "bad zip"))

    assert (job.processed, job.success, job.skipped, job.failed) == (3, 1, 1, 1)
    assert job.cursor == 3
    assert job.errors == (JobError(7, "Dune", "bad zip"),)


def test_snapshots_are_immutable_values() -> None:
    original = PreprocessingJob(item_type="ebook")

    evolved = original.evolve(state=JobState.RUNNING, current_label="Dune")

    assert original.state is JobState.IDLE
    assert original.running is False
    assert evolved.running is True
    assert evolved.current_label == "Dune"


def test_payload_serialises_timestamps() -> None:
    started = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
    job = PreprocessingJob(item_type="magazine", job_id="abc", started_at=started)

    payload = job.to_payload()

    assert payload["job_id"] == "abc"
    assert payload["started_at"] == "2024-05-01T12:00:00+00:00"
    assert payload["finished_at"] is None
    assert payload["state"] == "idle"
