"""Launch-time snapshots handed to background enrichment."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from songsmith.models.analysis import LineImprovement
from songsmith.models.song import Song


class EnrichmentKind(str, Enum):
    """Closed set of background operations that can run against a song."""

    ANALYSIS = "analysis"
    VARIATIONS = "variations"
    REWRITE = "rewrite"
    RENDER = "render"


class SongSnapshot(BaseModel):
    """A frozen copy of the content an enrichment was launched against.

    Collaborators only ever see a snapshot, never the live Song, so a result
    always describes what was actually submitted.
    """

    model_config = ConfigDict(frozen=True)

    song_id: str = Field(description="Song the result will be merged into")
    title: str
    style_prompt: str
    lyrics: str
    improvements: tuple[LineImprovement, ...] = Field(
        default=(), description="Line improvements to apply (rewrite only)"
    )

    @classmethod
    def of(cls, song: Song) -> SongSnapshot:
        improvements = song.analysis.line_by_line_improvements if song.analysis else []
        return cls(
            song_id=song.id,
            title=song.title,
            style_prompt=song.style_prompt,
            lyrics=song.lyrics,
            improvements=tuple(improvements),
        )
