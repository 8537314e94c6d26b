from __future__ import annotations

from typing import Protocol, runtime_checkable

from songsmith.models.analysis import (
    LineEvaluation,
    RewriteResult,
    SongAnalysis,
    SongVariation,
)
from songsmith.models.render import RenderStatusReport
from songsmith.models.snapshot import SongSnapshot
from songsmith.models.song import SongDraft, SongInputs


@runtime_checkable
class SongGenerator(Protocol):
    """Turns user inputs into a complete song draft.

    Any failure (network, provider, unparseable output) is raised as a
    CollaboratorError subclass; the caller treats them all the same way.
    """

    async def generate_song(self, inputs: SongInputs) -> SongDraft: ...


@runtime_checkable
class SongCritic(Protocol):
    """Scores and critiques lyrics.

    When ``parent_lyrics`` is given the analysis also carries a
    comparison review against that earlier version.
    """

    async def analyze_song(
        self, snapshot: SongSnapshot, parent_lyrics: str | None = None
    ) -> SongAnalysis: ...

    async def evaluate_line_change(
        self, original_line: str, new_line: str, song_context: str
    ) -> LineEvaluation: ...


@runtime_checkable
class VariationWriter(Protocol):
    """Returns exactly two alternative full-lyric drafts."""

    async def generate_variations(self, snapshot: SongSnapshot) -> list[SongVariation]: ...


@runtime_checkable
class SongRewriter(Protocol):
    """Applies line-by-line improvements and returns replacement lyrics."""

    async def rewrite_song(self, snapshot: SongSnapshot) -> RewriteResult: ...


@runtime_checkable
class MusicRenderer(Protocol):
    """Third-party audio rendering: submit a task, then poll it."""

    async def submit(self, snapshot: SongSnapshot, model: str) -> str: ...

    async def check_status(self, task_id: str) -> RenderStatusReport: ...

    async def poll(self, task_id: str) -> RenderStatusReport: ...
