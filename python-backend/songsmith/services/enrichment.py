"""Background enrichment of songs: analysis, variations, rewrites and audio renders.

Every kind follows the same three phases:

1. launch against a ``SongSnapshot`` taken by the caller, never the live song;
2. on success, merge through ``SongStore.replace`` (a no-op when the song
   has since disappeared, for example because history was cleared);
3. on failure, log and return None. Nothing is written and nothing is raised.

There is no cancellation. A result that arrives for a vanished song, or for
a field that is already populated, is discarded at merge time.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

from songsmith.errors import CollaboratorError
from songsmith.models.analysis import RewriteResult, SongAnalysis, SongVariation
from songsmith.models.render import RenderInfo, RenderStatus
from songsmith.models.snapshot import EnrichmentKind, SongSnapshot
from songsmith.models.song import Song
from songsmith.services.collaborators import (
    MusicRenderer,
    SongCritic,
    SongRewriter,
    VariationWriter,
)
from songsmith.services.song_store import SongStore

log = logging.getLogger(__name__)

T = TypeVar("T")

TaskKey = tuple[EnrichmentKind, str]

DEFAULT_RENDER_MODEL = "V4"


class EnrichmentCoordinator:
    """Runs enrichment collaborators and reconciles their results into the store."""

    def __init__(
        self,
        store: SongStore,
        critic: SongCritic,
        variation_writer: VariationWriter,
        rewriter: SongRewriter,
        renderer: MusicRenderer | None = None,
    ):
        self._store = store
        self._critic = critic
        self._variation_writer = variation_writer
        self._rewriter = rewriter
        self._renderer = renderer
        self._running: set[TaskKey] = set()
        self._tasks: dict[TaskKey, asyncio.Task] = {}

    @property
    def has_renderer(self) -> bool:
        return self._renderer is not None

    # ── Progress ──────────────────────────────────────

    def is_pending(self, kind: EnrichmentKind, song_id: str) -> bool:
        key = (kind, song_id)
        task = self._tasks.get(key)
        return key in self._running or (task is not None and not task.done())

    def pending_kinds(self, song_id: str) -> list[EnrichmentKind]:
        return [kind for kind in EnrichmentKind if self.is_pending(kind, song_id)]

    async def drain(self) -> None:
        """Wait until no background enrichment is left, including follow-ups it spawns."""
        while True:
            pending = [task for task in self._tasks.values() if not task.done()]
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)

    # ── Guards ────────────────────────────────────────

    def _already_enriched(self, kind: EnrichmentKind, song: Song) -> bool:
        if kind is EnrichmentKind.ANALYSIS:
            return song.has_analysis
        if kind is EnrichmentKind.VARIATIONS:
            return song.has_variations
        if kind is EnrichmentKind.RENDER:
            return song.render is not None and song.render.status is RenderStatus.SUCCESS
        return False

    def _should_skip(self, kind: EnrichmentKind, song_id: str) -> bool:
        song = self._store.get(song_id)
        if song is None:
            log.debug("Skipping %s: song %s is not in history", kind.value, song_id)
            return True
        if self._already_enriched(kind, song):
            log.debug("Skipping %s: song %s already has it", kind.value, song_id)
            return True
        return False

    async def _guarded(
        self, kind: EnrichmentKind, song_id: str, work: Callable[[], Awaitable[T]]
    ) -> T | None:
        key = (kind, song_id)
        if key in self._running:
            log.debug("Skipping %s for %s: already in flight", kind.value, song_id)
            return None
        self._running.add(key)
        try:
            return await work()
        except CollaboratorError as e:
            log.warning("%s for song %s failed: %s", kind.value, song_id, e)
        except Exception as e:
            log.error(
                "%s for song %s failed unexpectedly: %s", kind.value, song_id, e, exc_info=True
            )
        finally:
            self._running.discard(key)
        return None

    def _launch(
        self, kind: EnrichmentKind, song_id: str, start: Callable[[], Awaitable[object]]
    ) -> asyncio.Task | None:
        key = (kind, song_id)
        existing = self._tasks.get(key)
        if existing is not None and not existing.done():
            return existing
        if key in self._running:
            return None

        task = asyncio.create_task(start(), name=f"{kind.value}:{song_id}")
        self._tasks[key] = task

        def _forget(done: asyncio.Task) -> None:
            if self._tasks.get(key) is done:
                del self._tasks[key]

        task.add_done_callback(_forget)
        return task

    # ── Analysis ──────────────────────────────────────

    async def run_analysis(
        self, song_id: str, snapshot: SongSnapshot, parent_lyrics: str | None = None
    ) -> SongAnalysis | None:
        if self._should_skip(EnrichmentKind.ANALYSIS, song_id):
            return None

        async def work() -> SongAnalysis | None:
            analysis = await self._critic.analyze_song(snapshot, parent_lyrics)

            def attach(song: Song) -> Song:
                if song.analysis is not None:
                    return song
                return song.model_copy(update={"analysis": analysis})

            merged = self._store.replace(song_id, attach)
            if merged is None:
                log.info("Analysis for %s arrived after it left history; dropped", song_id)
                return None
            if merged.analysis is not analysis:
                log.info("Song %s was already analysed; dropped duplicate result", song_id)
                return None
            log.info("Attached analysis to %s (score %s)", song_id, analysis.overall_score)
            return analysis

        return await self._guarded(EnrichmentKind.ANALYSIS, song_id, work)

    def launch_analysis(
        self, song_id: str, snapshot: SongSnapshot, parent_lyrics: str | None = None
    ) -> asyncio.Task | None:
        if self._should_skip(EnrichmentKind.ANALYSIS, song_id):
            return None
        return self._launch(
            EnrichmentKind.ANALYSIS,
            song_id,
            lambda: self.run_analysis(song_id, snapshot, parent_lyrics),
        )

    # ── Variations ────────────────────────────────────

    async def run_variations(
        self, song_id: str, snapshot: SongSnapshot
    ) -> list[SongVariation] | None:
        if self._should_skip(EnrichmentKind.VARIATIONS, song_id):
            return None

        async def work() -> list[SongVariation] | None:
            variations = await self._variation_writer.generate_variations(snapshot)

            def attach(song: Song) -> Song:
                if song.has_variations:
                    return song
                return song.model_copy(update={"variations": variations})

            merged = self._store.replace(song_id, attach)
            if merged is None or merged.variations is not variations:
                log.info("Variations for %s were not needed anymore; dropped", song_id)
                return None
            log.info("Attached %d variations to %s", len(variations), song_id)
            return variations

        return await self._guarded(EnrichmentKind.VARIATIONS, song_id, work)

    def launch_variations(self, song_id: str, snapshot: SongSnapshot) -> asyncio.Task | None:
        if self._should_skip(EnrichmentKind.VARIATIONS, song_id):
            return None
        return self._launch(
            EnrichmentKind.VARIATIONS,
            song_id,
            lambda: self.run_variations(song_id, snapshot),
        )

    # ── Rewrite ───────────────────────────────────────

    async def run_rewrite(self, song_id: str, snapshot: SongSnapshot) -> RewriteResult | None:
        """Ask for replacement lyrics. The result is returned, never merged into ``song_id``."""
        if self._should_skip(EnrichmentKind.REWRITE, song_id):
            return None

        async def work() -> RewriteResult:
            result = await self._rewriter.rewrite_song(snapshot)
            log.info("Rewrite of %s ready (%d chars)", song_id, len(result.lyrics))
            return result

        return await self._guarded(EnrichmentKind.REWRITE, song_id, work)

    def launch_rewrite(
        self,
        song_id: str,
        snapshot: SongSnapshot,
        on_result: Callable[[RewriteResult], object],
    ) -> asyncio.Task | None:
        if self._should_skip(EnrichmentKind.REWRITE, song_id):
            return None

        async def start() -> RewriteResult | None:
            result = await self.run_rewrite(song_id, snapshot)
            if result is None:
                return None
            try:
                on_result(result)
            except Exception as e:
                log.error(
                    "Handling rewrite of %s failed unexpectedly: %s", song_id, e, exc_info=True
                )
            return result

        return self._launch(EnrichmentKind.REWRITE, song_id, start)

    # ── Render ────────────────────────────────────────

    def _merge_render(self, song_id: str, render: RenderInfo) -> Song | None:
        def attach(song: Song) -> Song:
            current = song.render
            if (
                current is not None
                and current.task_id != render.task_id
                and not current.status.is_terminal
            ):
                return song
            return song.model_copy(update={"render": render})

        return self._store.replace(song_id, attach)

    async def run_render(
        self, song_id: str, snapshot: SongSnapshot, model: str = DEFAULT_RENDER_MODEL
    ) -> RenderInfo | None:
        """Submit the song for audio rendering and poll it to completion.

        A song that still carries an unfinished task id resumes polling that
        task instead of paying for a second one.
        """
        if self._renderer is None:
            log.warning("No music renderer configured; cannot render %s", song_id)
            return None
        if self._should_skip(EnrichmentKind.RENDER, song_id):
            return None
        renderer = self._renderer

        async def work() -> RenderInfo | None:
            song = self._store.get(song_id)
            render = song.render if song is not None else None
            if render is None or render.status.is_terminal:
                task_id = await renderer.submit(snapshot, model)
                render = RenderInfo(task_id=task_id, model=model)
                if self._merge_render(song_id, render) is None:
                    log.info("Song %s left history before render %s started", song_id, task_id)
                    return None
            else:
                log.info("Resuming render %s for %s", render.task_id, song_id)

            report = await renderer.poll(render.task_id)
            final = render.with_report(report)
            if self._merge_render(song_id, final) is None:
                log.info("Render %s finished after %s left history; dropped", render.task_id, song_id)
                return None
            log.info("Render %s for %s ended: %s", render.task_id, song_id, final.status.value)
            return final

        return await self._guarded(EnrichmentKind.RENDER, song_id, work)

    def launch_render(
        self, song_id: str, snapshot: SongSnapshot, model: str = DEFAULT_RENDER_MODEL
    ) -> asyncio.Task | None:
        if self._renderer is None:
            log.warning("No music renderer configured; cannot render %s", song_id)
            return None
        if self._should_skip(EnrichmentKind.RENDER, song_id):
            return None
        return self._launch(
            EnrichmentKind.RENDER,
            song_id,
            lambda: self.run_render(song_id, snapshot, model),
        )
