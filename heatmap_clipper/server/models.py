"""Pydantic request/response models for the HTTP API.

WHY: The FastAPI endpoints need typed schemas for request validation,
response serialization, and automatic OpenAPI documentation.

HOW: One request model shared by the synchronous and background endpoints,
plus one response model per endpoint. All fields carry Field descriptions
for the /docs UI.

RULES:
- All models use Field(description=...) for OpenAPI documentation
- Option fields are loose strings; unknown values fall back to defaults in
  ProcessOptions.from_inputs() rather than failing validation
- ``config`` in responses is the effective configuration actually used
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class ProcessRequest(BaseModel):
    """A clip generation request for one YouTube video."""

    url: str = Field(description="YouTube video URL (watch, youtu.be or shorts link).")
    crop_mode: Optional[str] = Field(
        default=None,
        description="Crop mode: 'default', 'split-left' or 'split-right' (or 1-3).",
    )
    subtitle: bool = Field(default=False, description="Burn in automatic captions.")
    model: Optional[str] = Field(
        default=None,
        description="Whisper model size: tiny, base, small, medium, large.",
    )
    language: Optional[str] = Field(
        default=None,
        description="Caption language code (e.g. 'id', 'en').",
    )
    output_dir: Optional[str] = Field(
        default=None,
        description="Sub-folder of the clips directory to write into.",
    )
    hw_accel: bool = Field(
        default=False,
        description="Use the hardware video encoder when ffmpeg supports it.",
    )

    model_config = {
        "protected_namespaces": (),
        "json_schema_extra": {
            "examples": [
                {
                    "url": "https://www.youtube.com/watch?v=dQw4w9WgXcQ",
                    "crop_mode": "split-left",
                    "subtitle": True,
                    "model": "small",
                    "language": "id",
                }
            ]
        },
    }


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class ClipInfo(BaseModel):
    """Outcome of one candidate clip."""

    index: int = Field(description="Output number the candidate used or would have used.")
    file: Optional[str] = Field(default=None, description="Clip filename, when produced.")
    state: Optional[str] = Field(default=None, description="Terminal pipeline state.")
    captioned: bool = Field(description="True when captions were burned in.")
    note: str = Field(default="", description="Why a clip was skipped or left uncaptioned.")
    score: float = Field(description="Heatmap engagement score of the segment.")
    start_s: Optional[float] = Field(default=None, description="Clip start in the source (s).")
    end_s: Optional[float] = Field(default=None, description="Clip end in the source (s).")


class ProcessResponse(BaseModel):
    """Result of a synchronous clip generation run."""

    message: str = Field(description="Human-readable summary.")
    files: List[str] = Field(description="Produced clip filenames, in output order.")
    clips: List[ClipInfo] = Field(description="Every candidate considered, in rank order.")
    candidates_considered: int = Field(description="Number of candidates attempted.")
    config: Dict[str, Any] = Field(description="Effective configuration used for the run.")


class JobCreatedResponse(BaseModel):
    """Response returned when a background job is submitted."""

    id: str = Field(description="Unique job identifier for polling status.")
    status: str = Field(description="Initial job status (always 'pending').")
    url: str = Field(description="The submitted video URL.")


class JobResponse(BaseModel):
    """Background job status."""

    id: str = Field(description="Unique job identifier.")
    status: str = Field(description="Current job status.")
    url: str = Field(description="The submitted video URL.")
    created_at: float = Field(description="Job creation timestamp (Unix epoch seconds).")
    config: Dict[str, Any] = Field(description="Configuration for this job.")
    progress: Optional[str] = Field(default=None, description="Latest progress message.")
    error: Optional[str] = Field(
        default=None,
        description="Error message, only present when status is 'failed'.",
    )
    output_files: Optional[List[str]] = Field(
        default=None,
        description="Produced clip filenames, only present when status is 'completed'.",
    )
    clips: Optional[List[ClipInfo]] = Field(
        default=None,
        description="Per-candidate outcomes, only present when status is 'completed'.",
    )


class CropModeInfo(BaseModel):
    """Description of an available crop mode."""

    key: str = Field(description="Crop mode identifier used in requests.")
    description: str = Field(description="Human-readable layout description.")
    filter_graph: bool = Field(description="True when the layout needs a filter graph.")


class ErrorResponse(BaseModel):
    """Standard error response body."""

    detail: str = Field(description="Human-readable error description.")


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(description="Service health status.", json_schema_extra={"example": "ok"})
    version: str = Field(description="API version string.", json_schema_extra={"example": "0.1.0"})
    recognition_backend: Optional[str] = Field(
        default=None,
        description="Speech recognition engine captions would use, if any.",
    )
