from __future__ import annotations

import asyncio
from collections import Counter

import pytest

from songsmith.errors import ProviderError
from songsmith.models.analysis import (
    ComparisonReview,
    LineEvaluation,
    LineImprovement,
    LineVerdict,
    RewriteResult,
    SongAnalysis,
    SongVariation,
)
from songsmith.models.render import RenderStatus, RenderStatusReport, RenderTrack
from songsmith.models.snapshot import SongSnapshot
from songsmith.models.song import Song, SongDraft, SongInputs
from songsmith.services.enrichment import EnrichmentCoordinator
from songsmith.services.history_storage import MemoryStorage
from songsmith.services.session import SessionController
from songsmith.services.song_store import SongStore


class FakeSongwriter:
    """In-memory collaborator. Counts calls, can be gated or made to fail per operation."""

    def __init__(self):
        self.calls: Counter[str] = Counter()
        self.gates: dict[str, asyncio.Event] = {}
        self.failures: dict[str, Exception] = {}
        self.seen: dict[str, list] = {}
        self.draft = SongDraft(
            title="Neon Rain",
            style_prompt="Synthwave, 1980s, analog pads, 110 BPM",
            lyrics="[Verse]\nline one\nline two",
            technical_explanation="Verse then chorus",
        )
        self.score = 78

    def gate(self, operation: str, song_id: str | None = None) -> asyncio.Event:
        """Hold calls to ``operation`` until the event is set, optionally for one song only."""
        event = asyncio.Event()
        self.gates[f"{operation}:{song_id}" if song_id else operation] = event
        return event

    def fail(self, operation: str, error: Exception | None = None) -> None:
        self.failures[operation] = error or ProviderError(operation, "provider unavailable")

    async def _enter(self, operation: str, *seen, song_id: str | None = None) -> None:
        self.calls[operation] += 1
        self.seen.setdefault(operation, []).append(seen)
        gate = self.gates.get(f"{operation}:{song_id}") or self.gates.get(operation)
        if gate is not None:
            await gate.wait()
        error = self.failures.get(operation)
        if error is not None:
            raise error

    async def generate_song(self, inputs: SongInputs) -> SongDraft:
        await self._enter("generate_song", inputs)
        return self.draft

    async def analyze_song(
        self, snapshot: SongSnapshot, parent_lyrics: str | None = None
    ) -> SongAnalysis:
        await self._enter("analyze_song", snapshot, parent_lyrics, song_id=snapshot.song_id)
        review = None
        if parent_lyrics is not None:
            review = ComparisonReview(verdict="Clear Upgrade", score_delta=4)
        return SongAnalysis(
            overall_score=self.score,
            projected_score=self.score + 10,
            summary=f"Critique of: {snapshot.lyrics}",
            line_by_line_improvements=[
                LineImprovement(original="line one", improved="line ONE", reason="louder")
            ],
            comparison_review=review,
        )

    async def generate_variations(self, snapshot: SongSnapshot) -> list[SongVariation]:
        await self._enter("generate_variations", snapshot, song_id=snapshot.song_id)
        return [
            SongVariation(id="A", type="More Rhythmic", lyrics=snapshot.lyrics + "\nfaster"),
            SongVariation(id="B", type="Darker", lyrics=snapshot.lyrics + "\ndarker"),
        ]

    async def rewrite_song(self, snapshot: SongSnapshot) -> RewriteResult:
        await self._enter("rewrite_song", snapshot, song_id=snapshot.song_id)
        return RewriteResult(
            lyrics=snapshot.lyrics.replace("line one", "line ONE"),
            technical_explanation="Applied the critique",
        )

    async def evaluate_line_change(
        self, original_line: str, new_line: str, song_context: str
    ) -> LineEvaluation:
        await self._enter("evaluate_line_change", original_line, new_line)
        return LineEvaluation(verdict=LineVerdict.BETTER, score_change=2, explanation="Sharper")


class FakeRenderer:
    """Audio renderer that hands out sequential task ids."""

    def __init__(self):
        self.submitted: list[tuple[str, str]] = []
        self.polled: list[str] = []
        self.final_status = RenderStatus.SUCCESS
        self.poll_gate: asyncio.Event | None = None

    async def submit(self, snapshot: SongSnapshot, model: str) -> str:
        self.submitted.append((snapshot.song_id, model))
        return f"task-{len(self.submitted)}"

    async def check_status(self, task_id: str) -> RenderStatusReport:
        return RenderStatusReport(task_id=task_id, status=RenderStatus.GENERATING)

    async def poll(self, task_id: str) -> RenderStatusReport:
        self.polled.append(task_id)
        if self.poll_gate is not None:
            await self.poll_gate.wait()
        if self.final_status is RenderStatus.SUCCESS:
            return RenderStatusReport(
                task_id=task_id,
                status=RenderStatus.SUCCESS,
                tracks=[RenderTrack(id="t1", audio_url="https://cdn.example/t1.mp3", duration=180)],
            )
        return RenderStatusReport(task_id=task_id, status=self.final_status, error="render failed")


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def store(storage):
    return SongStore(storage)


@pytest.fixture
def songwriter():
    return FakeSongwriter()


@pytest.fixture
def renderer():
    return FakeRenderer()


@pytest.fixture
def coordinator(store, songwriter, renderer):
    return EnrichmentCoordinator(
        store,
        critic=songwriter,
        variation_writer=songwriter,
        rewriter=songwriter,
        renderer=renderer,
    )


@pytest.fixture
def controller(store, coordinator, songwriter):
    return SessionController(store, coordinator, generator=songwriter, critic=songwriter)


@pytest.fixture
def make_song():
    """Factory for songs with sensible defaults."""

    def _make(**overrides) -> Song:
        fields = {
            "title": "Ocean Drive",
            "style_prompt": "Indie pop, 100 BPM",
            "lyrics": "[Verse]\nline one\nline two",
        }
        fields.update(overrides)
        return Song(**fields)

    return _make
