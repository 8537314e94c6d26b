"""Song artifact model and the inputs that produce it."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

from songsmith.models.analysis import SongAnalysis, SongVariation
from songsmith.models.render import RenderInfo


class StructureType(str, Enum):
    AUTO = "Auto / Best Fit"
    POP = "Pop Standard (V-C-V-C-B-C)"
    EDM = "EDM Build (Intro-Build-Drop-Break-Drop)"
    STORYTELLING = "Storytelling (Linear Verse progression)"
    EXPERIMENTAL = "Experimental/Progressive"


class FeatureFlags(BaseModel):
    """Generation modes active when a song's content was written."""

    model_config = ConfigDict(frozen=True)

    advanced_lyric_logic: bool = Field(
        default=False, description="Strict-format mode: section headers, vocal cues, concrete imagery"
    )
    central_metaphor_logic: bool = Field(
        default=False, description="Thematic-anchor mode: all imagery drawn from one metaphor"
    )


class SongInputs(BaseModel):
    """What the user asked for. Empty fields are left to the songwriter to invent."""

    artist_reference: str = ""
    song_reference: str = ""
    topic: str = ""
    mood: str = ""
    genre: str = ""
    vocals: str = ""
    instruments: list[str] = Field(default_factory=list)
    structure: StructureType = StructureType.AUTO
    custom_instructions: str = ""
    syllable_pattern: str = ""
    flags: FeatureFlags = Field(default_factory=FeatureFlags)


class SongDraft(BaseModel):
    """Raw content returned by the generation collaborator, before it becomes a Song."""

    title: str = Field(description="A creative title for the song")
    style_prompt: str = Field(description="Genre, instruments, vibe and tempo for the renderer")
    negative_prompt: str = Field(default="", description="Styles or elements to exclude")
    lyrics: str = Field(description="Full lyrics with metatags and vocal directions")
    technical_explanation: str = Field(default="", description="Rationale for structure and tags")
    cover_art_prompt: str = Field(default="", description="Visual description for album art")
    cover_image_base64: str | None = None


def new_song_id() -> str:
    return str(uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Song(BaseModel):
    """A persisted creative artifact.

    Songs are immutable values: the store replaces a whole Song when an
    enrichment lands, and a rewrite produces a new Song with a fresh id and a
    ``parent_id`` back-link rather than editing the old one.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_song_id)
    parent_id: str | None = Field(default=None, description="Song this version was derived from")
    created_at: datetime = Field(default_factory=utcnow)

    title: str
    style_prompt: str
    negative_prompt: str = ""
    lyrics: str
    technical_explanation: str = ""
    cover_art_prompt: str = ""
    cover_image_base64: str | None = None

    analysis: SongAnalysis | None = None
    variations: list[SongVariation] | None = None
    render: RenderInfo | None = None

    flags: FeatureFlags = Field(default_factory=FeatureFlags)

    @classmethod
    def from_draft(cls, draft: SongDraft, flags: FeatureFlags) -> Song:
        return cls(**draft.model_dump(), flags=flags)

    @property
    def has_analysis(self) -> bool:
        return self.analysis is not None

    @property
    def has_variations(self) -> bool:
        return bool(self.variations)

    def summary(self) -> dict:
        """Compact view used for history listings."""
        return {
            "id": self.id,
            "parent_id": self.parent_id,
            "title": self.title,
            "created_at": self.created_at.isoformat(),
            "overall_score": self.analysis.overall_score if self.analysis else None,
            "has_variations": self.has_variations,
            "render_status": self.render.status.value if self.render else None,
        }
