"""In-memory job store for background clip runs, with TTL cleanup.

WHY: A run downloads and transcodes up to ten clips and can take minutes.
POST /jobs answers with an ID straight away and the clips are cut after the
response is sent. One host, one process: a dict behind a lock is enough.

HOW:
  JobStatus  — pending → fetching → processing → completed | failed
  Job        — one run: its request, its private clip folder, its results
  JobStore   — lock-protected dict; create / get / update / delete / expire

RULES:
- All store mutations happen under threading.Lock
- Every job owns a fresh directory (clipper_job_*), so two jobs never
  collide on temp_<n> or clip_<n> names
- Only terminal jobs expire, TTL counted from completion
- create_job() raises ValueError at max_jobs (the API answers 429)
- Deleting or expiring a job removes its directory and every clip in it
"""

from __future__ import annotations

import enum
import logging
import shutil
import tempfile
import threading
import time
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 3600
DEFAULT_MAX_JOBS = 20
JOB_DIR_PREFIX = "clipper_job_"


class JobStatus(str, enum.Enum):
    """Where a background clip job is.

    RULES:
    - pending: accepted, runner not started yet
    - fetching: reading the heatmap and the video duration
    - processing: cutting clips (progress names the current clip)
    - completed / failed: terminal
    """

    PENDING = "pending"
    FETCHING = "fetching"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


TERMINAL_STATES = frozenset({JobStatus.COMPLETED, JobStatus.FAILED})

# Fields update_job() may overwrite besides status.
_UPDATABLE_FIELDS = ("error", "progress", "output_files", "clips", "config")


@dataclass
class Job:
    """One background run of the clip pipeline.

    Attributes:
        url: The submitted video URL.
        output_dir: Private folder the clips are written to.
        config: The request body, replaced by the effective
            configuration once the run finishes.
        output_files: Clip filenames in output order (completed jobs).
        clips: ClipResult.to_dict() for every candidate considered.
    """

    id: str
    status: JobStatus
    url: str
    output_dir: Path
    created_at: float
    updated_at: float
    completed_at: Optional[float] = None
    error: Optional[str] = None
    progress: Optional[str] = None
    config: Dict[str, Any] = field(default_factory=dict)
    output_files: List[str] = field(default_factory=list)
    clips: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATES

    def expired(self, now: float, ttl_seconds: float) -> bool:
        if not self.is_terminal or self.completed_at is None:
            return False
        return now - self.completed_at > ttl_seconds


def _remove_job_dir(output_dir: Path) -> None:
    if not output_dir.exists():
        return
    try:
        shutil.rmtree(output_dir)
    except OSError as exc:
        logger.warning("Could not remove job folder %s: %s", output_dir, exc)


class JobStore:
    """Thread-safe registry of background clip jobs.

    The runner thread writes progress while request handlers read it, so
    every access to the dict goes through the lock. Folder removal happens
    outside the lock; it can be slow for a job with ten clips.
    """

    def __init__(
        self,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        max_jobs: int = DEFAULT_MAX_JOBS,
    ) -> None:
        self._jobs: Dict[str, Job] = {}
        self._lock = threading.Lock()
        self._ttl_seconds = ttl_seconds
        self.max_jobs = max_jobs

    def create_job(self, url: str, config: Optional[Dict[str, Any]] = None) -> Job:
        """Register a PENDING job and give it a fresh clip folder.

        Raises:
            ValueError: max_jobs jobs are already held.
        """
        with self._lock:
            if len(self._jobs) >= self.max_jobs:
                raise ValueError(
                    "Maximum number of concurrent jobs ({}) reached".format(self.max_jobs)
                )
            created = time.time()
            job = Job(
                id=uuid.uuid4().hex,
                status=JobStatus.PENDING,
                url=url,
                output_dir=Path(tempfile.mkdtemp(prefix=JOB_DIR_PREFIX)),
                created_at=created,
                updated_at=created,
                config=dict(config or {}),
            )
            self._jobs[job.id] = job

        logger.info("Job %s queued for %s in %s", job.id, url, job.output_dir)
        return job

    def get_job(self, job_id: str) -> Optional[Job]:
        with self._lock:
            return self._jobs.get(job_id)

    def list_jobs(self) -> List[Job]:
        """All held jobs, oldest first."""
        with self._lock:
            return sorted(self._jobs.values(), key=lambda j: j.created_at)

    def update_job(
        self,
        job_id: str,
        status: Optional[JobStatus] = None,
        **changes: Any,
    ) -> Optional[Job]:
        """Record a status change and/or new field values for a job.

        Keyword arguments name Job fields (error, progress, output_files,
        clips, config); None values are ignored. Reaching a terminal state
        stamps completed_at.

        Returns:
            The updated Job, or None if job_id is unknown.

        Raises:
            TypeError: A keyword does not name an updatable field.
        """
        unknown = set(changes) - set(_UPDATABLE_FIELDS)
        if unknown:
            raise TypeError("Cannot update job field(s): {}".format(", ".join(sorted(unknown))))

        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                return None
            if status is not None:
                job.status = status
            for name, value in changes.items():
                if value is not None:
                    setattr(job, name, value)
            job.updated_at = time.time()
            if job.is_terminal and job.completed_at is None:
                job.completed_at = job.updated_at
            return job

    def delete_job(self, job_id: str) -> bool:
        """Forget a job and delete its clips; False if it was not held."""
        with self._lock:
            job = self._jobs.pop(job_id, None)
        if job is None:
            return False

        _remove_job_dir(job.output_dir)
        logger.info("Job %s deleted", job_id)
        return True

    def cleanup_expired(self) -> int:
        """Drop terminal jobs older than the TTL; returns how many went."""
        now = time.time()
        with self._lock:
            expired = [
                self._jobs.pop(job_id)
                for job_id, job in list(self._jobs.items())
                if job.expired(now, self._ttl_seconds)
            ]

        for job in expired:
            _remove_job_dir(job.output_dir)
            logger.info("Job %s expired %.0fs after completion", job.id, now - job.completed_at)
        return len(expired)
