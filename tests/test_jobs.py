"""Unit tests for the in-memory job store and the background job runner.

WHY: The job store is the central state manager for the background API.
Missing cleanup or a wrong status transition leaves clip folders on disk
or makes a finished job look stuck.

HOW: Tests are organized by class, one per JobStore method or concern:
  - TestJobCreation: create_job basics, dedicated directories, max_jobs
  - TestJobUpdate: status transitions, progress, terminal timestamps
  - TestJobDeletion: delete and directory cleanup
  - TestTTLCleanup: expiry logic
  - TestBackgroundRunner: success, failure, and missing-job scenarios

RULES:
- Each test creates its own JobStore instance (no shared mutable state)
- Time-dependent tests use monkeypatch to control time.time()
"""

from __future__ import annotations

import asyncio
import time
from unittest.mock import AsyncMock, patch

import pytest

from conftest import make_segments

from heatmap_clipper.errors import NoMarkersFound
from heatmap_clipper.options import ProcessOptions
from heatmap_clipper.pipeline import ClipPipeline, RunReport
from heatmap_clipper.server import app as app_module
from heatmap_clipper.server.jobs import JobStatus, JobStore

URL = "https://youtu.be/abc123"


@pytest.fixture
def store():
    job_store = JobStore()
    yield job_store
    for job in job_store.list_jobs():
        job_store.delete_job(job.id)


class TestJobCreation:
    def test_creates_pending_job(self, store):
        job = store.create_job(URL, config={"url": URL})
        assert job.status == JobStatus.PENDING
        assert job.url == URL
        assert job.config == {"url": URL}
        assert store.get_job(job.id) is job

    def test_each_job_gets_own_directory(self, store):
        first = store.create_job(URL)
        second = store.create_job(URL)
        assert first.id != second.id
        assert first.output_dir.is_dir()
        assert first.output_dir != second.output_dir

    def test_max_jobs(self):
        store = JobStore(max_jobs=1)
        job = store.create_job(URL)
        with pytest.raises(ValueError, match="Maximum number"):
            store.create_job(URL)
        store.delete_job(job.id)

    def test_unknown_job(self, store):
        assert store.get_job("missing") is None
        assert store.update_job("missing", status=JobStatus.FAILED) is None


class TestJobUpdate:
    def test_progress_does_not_complete(self, store):
        job = store.create_job(URL)
        store.update_job(job.id, status=JobStatus.PROCESSING, progress="Processing clip 1")
        assert job.status == JobStatus.PROCESSING
        assert job.progress == "Processing clip 1"
        assert job.completed_at is None

    @pytest.mark.parametrize("status", [JobStatus.COMPLETED, JobStatus.FAILED])
    def test_terminal_states_set_completed_at(self, store, status):
        job = store.create_job(URL)
        store.update_job(job.id, status=status)
        assert job.completed_at is not None

    def test_outputs_recorded(self, store):
        job = store.create_job(URL)
        store.update_job(
            job.id,
            status=JobStatus.COMPLETED,
            output_files=["clip_1.mp4"],
            clips=[{"index": 1}],
        )
        assert job.output_files == ["clip_1.mp4"]
        assert job.clips == [{"index": 1}]

    def test_completed_at_set_once(self, store):
        job = store.create_job(URL)
        store.update_job(job.id, status=JobStatus.COMPLETED)
        first = job.completed_at
        store.update_job(job.id, progress="done")
        assert job.completed_at == first

    def test_unknown_field_rejected(self, store):
        job = store.create_job(URL)
        with pytest.raises(TypeError, match="output_dir"):
            store.update_job(job.id, output_dir="/tmp")


class TestJobDeletion:
    def test_delete_removes_directory(self, store):
        job = store.create_job(URL)
        (job.output_dir / "clip_1.mp4").write_bytes(b"clip")
        assert store.delete_job(job.id) is True
        assert not job.output_dir.exists()
        assert store.get_job(job.id) is None

    def test_delete_unknown(self, store):
        assert store.delete_job("missing") is False


class TestTTLCleanup:
    def test_expires_old_terminal_jobs(self, monkeypatch):
        store = JobStore(ttl_seconds=60)
        done = store.create_job(URL)
        running = store.create_job(URL)
        store.update_job(done.id, status=JobStatus.COMPLETED)
        store.update_job(running.id, status=JobStatus.PROCESSING)

        now = time.time()
        monkeypatch.setattr(time, "time", lambda: now + 120)
        assert store.cleanup_expired() == 1
        assert store.get_job(done.id) is None
        assert not done.output_dir.exists()
        assert store.get_job(running.id) is running
        store.delete_job(running.id)

    def test_keeps_recent_jobs(self, store):
        job = store.create_job(URL)
        store.update_job(job.id, status=JobStatus.COMPLETED)
        assert store.cleanup_expired() == 0


class TestBackgroundRunner:
    def test_success(self, store, fake_toolchain):
        job = store.create_job(URL, config={"url": URL, "crop_mode": "split-left"})

        async def fake_process(url, options, on_status=None):
            assert options.output_dir == job.output_dir
            on_status("Processing clip 1 (segment at 100s, score 0.99)")
            return ClipPipeline(fake_toolchain, options).run("abc123", make_segments(2), 3600)

        with patch.object(app_module, "process_video", new=fake_process):
            asyncio.run(app_module._run_job(job.id, store))

        assert job.status == JobStatus.COMPLETED
        assert job.output_files == ["clip_1.mp4", "clip_2.mp4"]
        assert (job.output_dir / "clip_1.mp4").exists()
        assert len(job.clips) == 2
        assert job.config["crop_mode"] == "split-left"
        assert job.progress == "2 clip(s) from 2 candidate(s)"

    def test_failure(self, store):
        job = store.create_job(URL, config={"url": URL})
        failing = AsyncMock(side_effect=NoMarkersFound("No heatmap markers found"))

        with patch.object(app_module, "process_video", new=failing):
            asyncio.run(app_module._run_job(job.id, store))

        assert job.status == JobStatus.FAILED
        assert job.error == "No heatmap markers found"

    def test_missing_job_is_ignored(self, store):
        never = AsyncMock(return_value=RunReport(video_id="x", options=ProcessOptions()))
        with patch.object(app_module, "process_video", new=never):
            asyncio.run(app_module._run_job("missing", store))
        never.assert_not_called()
