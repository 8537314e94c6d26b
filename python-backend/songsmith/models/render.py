"""Music rendering (Suno) task models."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class RenderStatus(str, Enum):
    PENDING = "pending"
    GENERATING = "generating"
    SUCCESS = "success"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (RenderStatus.SUCCESS, RenderStatus.FAILED)


class RenderTrack(BaseModel):
    """One rendered take. Suno usually returns two per task."""

    id: str = ""
    title: str = ""
    audio_url: str | None = None
    stream_audio_url: str | None = None
    image_url: str | None = None
    duration: float | None = None
    model: str | None = Field(default=None, description="Model actually used by the provider")


class RenderStatusReport(BaseModel):
    """What the rendering service says about a task right now."""

    task_id: str
    status: RenderStatus
    tracks: list[RenderTrack] = Field(default_factory=list)
    error: str | None = None


class RenderInfo(BaseModel):
    """Render state attached to a song."""

    model_config = ConfigDict(frozen=True)

    task_id: str
    model: str = Field(description="Requested model version tag, e.g. 'V4'")
    status: RenderStatus = RenderStatus.PENDING
    tracks: list[RenderTrack] = Field(default_factory=list)
    error: str | None = None

    def with_report(self, report: RenderStatusReport) -> RenderInfo:
        return self.model_copy(
            update={
                "status": report.status,
                "tracks": report.tracks or self.tracks,
                "error": report.error,
            }
        )
