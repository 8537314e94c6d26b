"""Top-level songwriting session: submissions, history selection and versions."""

from __future__ import annotations

import asyncio
import logging
import os
from enum import Enum
from pathlib import Path

from songsmith.agent.mock_song import MockSongwriter
from songsmith.agent.songwriter import OpenRouterSongwriter
from songsmith.errors import (
    AnalysisRequiredError,
    CollaboratorError,
    CreationFailure,
    SubmissionInProgressError,
)
from songsmith.models.analysis import (
    ImprovementSource,
    LineEvaluation,
    LineImprovement,
    RewriteResult,
)
from songsmith.models.snapshot import SongSnapshot
from songsmith.models.song import FeatureFlags, Song, SongInputs
from songsmith.services.collaborators import SongCritic, SongGenerator
from songsmith.services.enrichment import DEFAULT_RENDER_MODEL, EnrichmentCoordinator
from songsmith.services.history_storage import HistoryStorage, JsonFileStorage
from songsmith.services.song_store import SongStore
from songsmith.services.suno_client import SunoClient
from songsmith.services.version_graph import derive, find_parent

log = logging.getLogger(__name__)

CREATION_FAILED_MESSAGE = (
    "Failed to generate song assets. Please check your API key and try again."
)


class SessionState(str, Enum):
    IDLE = "idle"
    SUBMITTING = "submitting"
    VIEWING = "viewing"


class SessionController:
    """Owns the song history and ties generation to background enrichment.

    Only one submission may be in flight. Background enrichment never blocks
    a transition and never rolls one back: a song returned by ``submit`` is
    complete and usable even if every later enrichment fails.
    """

    def __init__(
        self,
        store: SongStore,
        coordinator: EnrichmentCoordinator,
        generator: SongGenerator,
        critic: SongCritic,
        auto_variations: bool = False,
    ):
        self.store = store
        self.coordinator = coordinator
        self._generator = generator
        self._critic = critic
        self.auto_variations = auto_variations
        self._submitting = False
        self.last_error: str | None = None

    @property
    def is_busy(self) -> bool:
        return self._submitting

    @property
    def state(self) -> SessionState:
        if self._submitting:
            return SessionState.SUBMITTING
        if self.store.current is not None:
            return SessionState.VIEWING
        return SessionState.IDLE

    # ── Creation ──────────────────────────────────────

    async def submit(self, inputs: SongInputs) -> Song:
        if self._submitting:
            raise SubmissionInProgressError("A song is already being generated")

        self._submitting = True
        self.last_error = None
        try:
            draft = await self._generator.generate_song(inputs)
        except Exception as e:
            self.last_error = CREATION_FAILED_MESSAGE
            log.error(
                "Song generation failed: %s", e, exc_info=not isinstance(e, CollaboratorError)
            )
            raise CreationFailure(CREATION_FAILED_MESSAGE) from e
        finally:
            self._submitting = False

        song = Song.from_draft(draft, inputs.flags)
        self.store.insert_at_front(song)
        self.store.set_current(song.id)
        log.info("Created song %s (%r)", song.id, song.title)

        snapshot = SongSnapshot.of(song)
        self.coordinator.launch_analysis(song.id, snapshot)
        if self.auto_variations:
            self.coordinator.launch_variations(song.id, snapshot)
        return song

    # ── Navigation ────────────────────────────────────

    def select_history_entry(self, song_id: str) -> Song | None:
        return self.store.set_current(song_id)

    def comparison(self, song_id: str) -> tuple[Song, Song] | None:
        """The song and the version it was derived from, if both are still in history."""
        song = self.store.get(song_id)
        if song is None:
            return None
        parent = find_parent(song, self.store)
        if parent is None:
            return None
        return song, parent

    def clear_history(self) -> None:
        """Empty the history. Callers must have confirmed with the user first."""
        self.store.clear_all()
        self.last_error = None

    # ── Versions ──────────────────────────────────────

    def create_version(
        self, base: Song, new_lyrics: str, new_rationale: str, flags: FeatureFlags
    ) -> Song:
        if base.id not in self.store:
            raise ValueError(f"Cannot derive from {base.id}: it is not in history")
        song = derive(base, new_lyrics, new_rationale, flags)
        self.store.insert_at_front(song)
        self.store.set_current(song.id)
        self.coordinator.launch_analysis(song.id, SongSnapshot.of(song), parent_lyrics=base.lyrics)
        return song

    def request_rewrite(
        self, song_id: str, flags: FeatureFlags | None = None
    ) -> asyncio.Task | None:
        """Rewrite a song from its critique in the background, landing as a new version."""
        song = self.store.get(song_id)
        if song is None:
            return None
        if song.analysis is None:
            raise AnalysisRequiredError(f"Song {song_id} has not been analysed yet")
        version_flags = flags or song.flags

        def on_result(result: RewriteResult) -> None:
            base = self.store.get(song_id)
            if base is None:
                log.info("Rewrite of %s finished after history was cleared; dropped", song_id)
                return
            self.create_version(base, result.lyrics, result.technical_explanation, version_flags)

        return self.coordinator.launch_rewrite(song_id, SongSnapshot.of(song), on_result)

    # ── Enrichment on demand ──────────────────────────

    def request_analysis(self, song_id: str) -> asyncio.Task | None:
        song = self.store.get(song_id)
        if song is None:
            return None
        parent = find_parent(song, self.store)
        return self.coordinator.launch_analysis(
            song.id, SongSnapshot.of(song), parent_lyrics=parent.lyrics if parent else None
        )

    def request_variations(self, song_id: str) -> asyncio.Task | None:
        song = self.store.get(song_id)
        if song is None:
            return None
        return self.coordinator.launch_variations(song.id, SongSnapshot.of(song))

    def request_render(self, song_id: str, model: str = DEFAULT_RENDER_MODEL) -> asyncio.Task | None:
        song = self.store.get(song_id)
        if song is None:
            return None
        return self.coordinator.launch_render(song.id, SongSnapshot.of(song), model)

    # ── Line editing ──────────────────────────────────

    def apply_line_edit(
        self, song_id: str, original_line: str, improved_line: str, reason: str = ""
    ) -> Song | None:
        """Record a manual line change as a user-sourced improvement on the analysis."""
        improvement = LineImprovement(
            original=original_line,
            improved=improved_line,
            reason=reason or "Manual edit",
            source=ImprovementSource.USER,
        )

        def extend(song: Song) -> Song:
            if song.analysis is None:
                return song
            return song.model_copy(update={"analysis": song.analysis.with_improvement(improvement)})

        updated = self.store.replace(song_id, extend)
        if updated is None or updated.analysis is None:
            log.info("Line edit for %s ignored: no analysis to extend", song_id)
            return None
        return updated

    async def evaluate_line_change(
        self, original_line: str, new_line: str, song_context: str
    ) -> LineEvaluation | None:
        try:
            return await self._critic.evaluate_line_change(original_line, new_line, song_context)
        except CollaboratorError as e:
            log.warning("Line evaluation failed: %s", e)
            return None

    async def wait_for_background(self) -> None:
        await self.coordinator.drain()


def create_session(
    history_dir: str | Path | None = None,
    use_mock: bool = False,
    auto_variations: bool = False,
    storage: HistoryStorage | None = None,
    model_name: str | None = None,
    debug: bool = False,
) -> SessionController:
    """Wire the store, collaborators and coordinator from the environment."""
    store = SongStore(storage or JsonFileStorage(history_dir))
    store.load_history()

    songwriter = (
        MockSongwriter() if use_mock else OpenRouterSongwriter(model_name=model_name, debug=debug)
    )

    renderer = None
    if os.environ.get("SUNO_API_KEY"):
        renderer = SunoClient()
    else:
        log.info("SUNO_API_KEY not set; audio rendering is disabled")

    coordinator = EnrichmentCoordinator(
        store,
        critic=songwriter,
        variation_writer=songwriter,
        rewriter=songwriter,
        renderer=renderer,
    )
    return SessionController(
        store,
        coordinator,
        generator=songwriter,
        critic=songwriter,
        auto_variations=auto_variations,
    )
