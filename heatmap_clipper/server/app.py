"""FastAPI application exposing clip generation over HTTP.

WHY: A web front end (or curl, or an automation tool) should be able to
hand over a YouTube URL and get clip links back, without a terminal on the
machine that runs ffmpeg.

HOW: Two ways in. POST /api/process runs the whole pipeline inside the
request and answers with the produced filenames, which are then served
from /clips. POST /jobs creates a background job instead: it gets its own
output directory, runs via BackgroundTasks, and is polled through
GET /jobs/{id}. Crop modes and health have their own read-only endpoints.

RULES:
- Fatal-to-run errors map to status codes: bad URL 400, no heatmap 404,
  upstream fetch or duration lookup 502, anything else 500
- POST /api/process writes into the clips directory (or a sub-folder of it)
- Background jobs never share an output directory
- Job downloads reject any filename that is not one of the job's outputs
- CORS is open; the service is meant to sit behind a local front end
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import List, Optional

from fastapi import BackgroundTasks, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, Response
from fastapi.staticfiles import StaticFiles

from heatmap_clipper import __version__
from heatmap_clipper.config import DEFAULT_OUTPUT_DIR
from heatmap_clipper.core.crop import CropMode
from heatmap_clipper.core.heatmap import extract_video_id
from heatmap_clipper.errors import (
    ClipperError,
    DurationUnavailable,
    HeatmapFetchError,
    InvalidSourceError,
    NoMarkersFound,
)
from heatmap_clipper.options import ProcessOptions
from heatmap_clipper.pipeline import RunReport, process_video
from heatmap_clipper.server.jobs import Job, JobStatus, JobStore
from heatmap_clipper.server.models import (
    ClipInfo,
    CropModeInfo,
    ErrorResponse,
    HealthResponse,
    JobCreatedResponse,
    JobResponse,
    ProcessRequest,
    ProcessResponse,
)
from heatmap_clipper.tools.whisper import detect_backend

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# App and store setup
# ---------------------------------------------------------------------------

job_store = JobStore()


async def _periodic_cleanup() -> None:
    """Expire finished jobs (and their clip folders) every five minutes."""
    while True:
        await asyncio.sleep(300)
        job_store.cleanup_expired()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create the clips folder and run job expiry for the app's lifetime."""
    Path(DEFAULT_OUTPUT_DIR).mkdir(parents=True, exist_ok=True)
    task = asyncio.create_task(_periodic_cleanup())
    yield
    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        pass


app = FastAPI(
    lifespan=lifespan,
    title="YouTube Heatmap Clipper API",
    description=(
        "Generate vertical 9:16 clips from the most replayed moments of a "
        "YouTube video, with optional burned-in captions. Process a URL "
        "directly or submit a background job and poll for status."
    ),
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

app.mount(
    "/clips",
    StaticFiles(directory=DEFAULT_OUTPUT_DIR, check_dir=False),
    name="clips",
)

_ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Not a YouTube video URL"},
    404: {"model": ErrorResponse, "description": "No heatmap or no high-engagement segment"},
    500: {"model": ErrorResponse, "description": "Processing failed"},
    502: {"model": ErrorResponse, "description": "YouTube or yt-dlp lookup failed"},
}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _status_code_for(exc: ClipperError) -> int:
    if isinstance(exc, InvalidSourceError):
        return 400
    if isinstance(exc, NoMarkersFound):
        return 404
    if isinstance(exc, (HeatmapFetchError, DurationUnavailable)):
        return 502
    return 500


def _options_from_request(request: ProcessRequest, output_dir: Path) -> ProcessOptions:
    return ProcessOptions.from_inputs(
        crop_mode=request.crop_mode,
        subtitle=request.subtitle,
        model=request.model,
        language=request.language,
        output_dir=str(output_dir),
        hw_accel=request.hw_accel,
    )


def _request_output_dir(sub_folder: Optional[str]) -> Path:
    """Resolve the optional sub-folder inside the clips directory."""
    root = Path(DEFAULT_OUTPUT_DIR)
    if not sub_folder:
        return root
    name = Path(sub_folder).name
    if not name or name in (".", ".."):
        raise HTTPException(status_code=400, detail="Invalid output_dir")
    return root / name


def _report_to_response(report: RunReport, url_prefix: str) -> ProcessResponse:
    return ProcessResponse(
        message="Processing complete",
        files=["{}/{}".format(url_prefix, name) for name in report.files],
        clips=[ClipInfo(**r.to_dict()) for r in report.results],
        candidates_considered=report.candidates_considered,
        config=report.options.to_dict(),
    )


def _job_to_response(job: Job) -> JobResponse:
    """Public view of a job; empty result lists are reported as null."""
    return JobResponse(
        id=job.id,
        status=job.status.value,
        url=job.url,
        created_at=job.created_at,
        config=job.config,
        progress=job.progress,
        error=job.error,
        output_files=job.output_files if job.output_files else None,
        clips=[ClipInfo(**c) for c in job.clips] if job.clips else None,
    )


async def _run_job(job_id: str, store: JobStore) -> None:
    """Run one background job to completion, recording every stage.

    RULES:
    - The job's own output_dir replaces whatever the request asked for
    - Progress messages from the pipeline are stored as job.progress
    - Any ClipperError marks the job failed with its message
    """
    job = store.get_job(job_id)
    if job is None:
        return

    def on_status(msg: str) -> None:
        if msg.startswith("Processing clip"):
            store.update_job(job_id, status=JobStatus.PROCESSING, progress=msg)
        else:
            store.update_job(job_id, progress=msg)

    request = ProcessRequest(**job.config)
    options = _options_from_request(request, job.output_dir)

    try:
        store.update_job(job_id, status=JobStatus.FETCHING)
        report = await process_video(job.url, options, on_status=on_status)
    except ClipperError as exc:
        logger.warning("Job %s failed: %s", job_id, exc)
        store.update_job(job_id, status=JobStatus.FAILED, error=str(exc))
        return
    except Exception as exc:
        logger.exception("Job %s crashed", job_id)
        store.update_job(job_id, status=JobStatus.FAILED, error=str(exc))
        return

    store.update_job(
        job_id,
        status=JobStatus.COMPLETED,
        output_files=report.files,
        clips=[r.to_dict() for r in report.results],
        config=report.options.to_dict(),
        progress="{} clip(s) from {} candidate(s)".format(
            report.success_count, report.candidates_considered
        ),
    )


def _run_job_sync(job_id: str, store: JobStore) -> None:
    """Synchronous wrapper for the async job runner.

    WHY: FastAPI BackgroundTasks run synchronous callables in a worker
    thread. This wraps the async runner with asyncio.run().
    """
    asyncio.run(_run_job(job_id, store))


# ---------------------------------------------------------------------------
# Endpoints: Processing
# ---------------------------------------------------------------------------


@app.post(
    "/api/process",
    response_model=ProcessResponse,
    tags=["process"],
    summary="Generate clips for a video and wait for the result",
    description=(
        "Fetches the heatmap, cuts up to ten clips and returns their URLs "
        "under /clips once every candidate has been processed. Can take "
        "several minutes; use POST /jobs for long videos."
    ),
    responses=_ERROR_RESPONSES,
)
async def process_clips(request: ProcessRequest) -> ProcessResponse:
    output_dir = _request_output_dir(request.output_dir)
    options = _options_from_request(request, output_dir)
    try:
        report = await process_video(request.url, options)
    except ClipperError as exc:
        logger.warning("Processing %s failed: %s", request.url, exc)
        raise HTTPException(status_code=_status_code_for(exc), detail=str(exc))

    relative = output_dir.relative_to(Path(DEFAULT_OUTPUT_DIR)).as_posix()
    prefix = "/clips" if relative == "." else "/clips/{}".format(relative)
    return _report_to_response(report, prefix)


# ---------------------------------------------------------------------------
# Endpoints: Jobs
# ---------------------------------------------------------------------------


@app.post(
    "/jobs",
    response_model=JobCreatedResponse,
    status_code=201,
    tags=["jobs"],
    summary="Submit a background clip job",
    description=(
        "Returns a job ID immediately; the clips are generated in the "
        "background. Poll GET /jobs/{id} for status updates."
    ),
    responses={
        400: {"model": ErrorResponse, "description": "Not a YouTube video URL"},
        429: {"model": ErrorResponse, "description": "Too many concurrent jobs"},
    },
)
async def create_job(
    request: ProcessRequest,
    background_tasks: BackgroundTasks,
) -> JobCreatedResponse:
    if not extract_video_id(request.url):
        raise HTTPException(status_code=400, detail="Invalid YouTube URL: {}".format(request.url))

    try:
        job = job_store.create_job(url=request.url, config=request.model_dump())
    except ValueError as exc:
        raise HTTPException(status_code=429, detail=str(exc))

    background_tasks.add_task(_run_job_sync, job.id, job_store)
    return JobCreatedResponse(id=job.id, status=job.status.value, url=job.url)


@app.get(
    "/jobs/{job_id}",
    response_model=JobResponse,
    tags=["jobs"],
    summary="Get background job status",
    responses={404: {"model": ErrorResponse, "description": "Job not found"}},
)
async def get_job(job_id: str) -> JobResponse:
    job = job_store.get_job(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail="Job not found: {}".format(job_id))
    return _job_to_response(job)


@app.get(
    "/jobs/{job_id}/files/{filename}",
    tags=["jobs"],
    summary="Download one clip from a completed job",
    responses={
        400: {"model": ErrorResponse, "description": "Invalid filename"},
        404: {"model": ErrorResponse, "description": "Job or file not found"},
        409: {"model": ErrorResponse, "description": "Job not yet completed"},
    },
)
async def download_job_file(job_id: str, filename: str) -> Response:
    if "/" in filename or "\\" in filename or ".." in filename:
        raise HTTPException(status_code=400, detail="Invalid filename")

    job = job_store.get_job(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail="Job not found: {}".format(job_id))

    if job.status != JobStatus.COMPLETED:
        raise HTTPException(
            status_code=409,
            detail="Job is not completed (current status: {}).".format(job.status.value),
        )

    if filename not in job.output_files:
        raise HTTPException(
            status_code=404,
            detail="File '{}' not found in job output files.".format(filename),
        )

    fpath = job.output_dir / filename
    if not fpath.exists():
        raise HTTPException(
            status_code=404,
            detail="File '{}' not found on disk.".format(filename),
        )

    return FileResponse(fpath, media_type="video/mp4", filename=filename)


@app.delete(
    "/jobs/{job_id}",
    status_code=204,
    tags=["jobs"],
    summary="Delete a job and its clips",
    responses={404: {"model": ErrorResponse, "description": "Job not found"}},
)
async def delete_job(job_id: str) -> Response:
    if not job_store.delete_job(job_id):
        raise HTTPException(status_code=404, detail="Job not found: {}".format(job_id))
    return Response(status_code=204)


# ---------------------------------------------------------------------------
# Endpoints: Crop modes and health
# ---------------------------------------------------------------------------


@app.get(
    "/crop-modes",
    response_model=List[CropModeInfo],
    tags=["crop-modes"],
    summary="List available crop layouts",
)
async def list_crop_modes() -> List[CropModeInfo]:
    return [
        CropModeInfo(key=mode.value, description=mode.description, filter_graph=mode.is_complex)
        for mode in CropMode
    ]


@app.get(
    "/health",
    response_model=HealthResponse,
    tags=["health"],
    summary="Health check",
    description="Liveness check; also reports which caption engine would be used.",
)
async def health_check() -> HealthResponse:
    backend = detect_backend()
    return HealthResponse(
        status="ok",
        version=__version__,
        recognition_backend=backend.value if backend else None,
    )
