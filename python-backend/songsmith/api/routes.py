"""REST API routes for the songwriting session."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from songsmith.errors import (
    AnalysisRequiredError,
    CreationFailure,
    SubmissionInProgressError,
)
from songsmith.models.analysis import LineEvaluation
from songsmith.models.snapshot import EnrichmentKind
from songsmith.models.song import FeatureFlags, Song, SongInputs
from songsmith.services.enrichment import DEFAULT_RENDER_MODEL
from songsmith.services.session import SessionController

log = logging.getLogger(__name__)


class VersionRequest(BaseModel):
    lyrics: str
    technical_explanation: str = ""
    flags: Optional[FeatureFlags] = Field(
        default=None, description="Defaults to the base song's flags"
    )


class RewriteRequest(BaseModel):
    flags: Optional[FeatureFlags] = None


class LineEditRequest(BaseModel):
    original_line: str
    improved_line: str
    reason: str = ""


class LineEvaluationRequest(BaseModel):
    original_line: str
    new_line: str
    song_context: str = ""


class RenderRequest(BaseModel):
    model: str = DEFAULT_RENDER_MODEL


def create_app(controller: SessionController) -> FastAPI:
    """Create and configure the FastAPI application around one session."""
    app = FastAPI(
        title="Songsmith API",
        description="REST API for song generation, critique and versioning",
        version="0.1.0",
    )
    app.state.controller = controller

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    def song_view(song: Song) -> dict:
        data = song.model_dump(mode="json")
        data["pending"] = [k.value for k in controller.coordinator.pending_kinds(song.id)]
        return data

    def require_song(song_id: str) -> Song:
        song = controller.store.get(song_id)
        if song is None:
            raise HTTPException(status_code=404, detail="Song not found")
        return song

    def accepted(song_id: str, kind: EnrichmentKind, task: asyncio.Task | None) -> dict:
        return {
            "song_id": song_id,
            "kind": kind.value,
            "status": "pending" if task is not None else "skipped",
        }

    @app.get("/api/health")
    async def health_check() -> dict:
        """Health check endpoint."""
        return {"status": "ok"}

    @app.get("/api/session")
    async def get_session() -> dict:
        return {
            "state": controller.state.value,
            "busy": controller.is_busy,
            "current_id": controller.store.current_id,
            "song_count": len(controller.store),
            "last_error": controller.last_error,
            "render_enabled": controller.coordinator.has_renderer,
        }

    # ── Songs ───────────────────────────────────────────

    @app.post("/api/songs", status_code=201)
    async def create_song(inputs: SongInputs) -> dict:
        """Generate a song. Returns once the song is in history; critique follows in the background."""
        try:
            song = await controller.submit(inputs)
        except SubmissionInProgressError as e:
            raise HTTPException(status_code=409, detail=str(e))
        except CreationFailure as e:
            raise HTTPException(status_code=502, detail=str(e))
        return song_view(song)

    @app.get("/api/songs")
    async def list_songs() -> dict:
        """List history (newest first)."""
        return {
            "current_id": controller.store.current_id,
            "songs": [song.summary() for song in controller.store],
        }

    @app.delete("/api/songs")
    async def clear_songs(confirm: bool = Query(False)) -> dict:
        if not confirm:
            raise HTTPException(status_code=400, detail="Pass confirm=true to clear history")
        controller.clear_history()
        return {"status": "cleared"}

    @app.get("/api/songs/{song_id}")
    async def get_song(song_id: str) -> dict:
        return song_view(require_song(song_id))

    @app.post("/api/songs/{song_id}/select")
    async def select_song(song_id: str) -> dict:
        song = controller.select_history_entry(song_id)
        if song is None:
            raise HTTPException(status_code=404, detail="Song not found")
        return song_view(song)

    @app.get("/api/songs/{song_id}/comparison")
    async def get_comparison(song_id: str) -> dict:
        require_song(song_id)
        pair = controller.comparison(song_id)
        if pair is None:
            raise HTTPException(status_code=404, detail="Previous version not found")
        song, parent = pair
        review = song.analysis.comparison_review if song.analysis else None
        return {
            "current": song_view(song),
            "previous": song_view(parent),
            "review": review.model_dump(mode="json") if review else None,
        }

    # ── Enrichment ──────────────────────────────────────

    @app.post("/api/songs/{song_id}/analysis", status_code=202)
    async def request_analysis(song_id: str) -> dict:
        require_song(song_id)
        return accepted(song_id, EnrichmentKind.ANALYSIS, controller.request_analysis(song_id))

    @app.post("/api/songs/{song_id}/variations", status_code=202)
    async def request_variations(song_id: str) -> dict:
        require_song(song_id)
        return accepted(song_id, EnrichmentKind.VARIATIONS, controller.request_variations(song_id))

    @app.post("/api/songs/{song_id}/rewrite", status_code=202)
    async def request_rewrite(song_id: str, body: Optional[RewriteRequest] = None) -> dict:
        require_song(song_id)
        try:
            task = controller.request_rewrite(song_id, body.flags if body else None)
        except AnalysisRequiredError as e:
            raise HTTPException(status_code=409, detail=str(e))
        return accepted(song_id, EnrichmentKind.REWRITE, task)

    @app.post("/api/songs/{song_id}/render", status_code=202)
    async def request_render(song_id: str, body: Optional[RenderRequest] = None) -> dict:
        require_song(song_id)
        if not controller.coordinator.has_renderer:
            raise HTTPException(status_code=503, detail="Audio rendering is not configured")
        model = body.model if body else DEFAULT_RENDER_MODEL
        return accepted(song_id, EnrichmentKind.RENDER, controller.request_render(song_id, model))

    # ── Versions & line editing ─────────────────────────

    @app.post("/api/songs/{song_id}/versions", status_code=201)
    async def create_version(song_id: str, body: VersionRequest) -> dict:
        base = require_song(song_id)
        song = controller.create_version(
            base, body.lyrics, body.technical_explanation, body.flags or base.flags
        )
        return song_view(song)

    @app.post("/api/songs/{song_id}/line-edits")
    async def apply_line_edit(song_id: str, body: LineEditRequest) -> dict:
        require_song(song_id)
        song = controller.apply_line_edit(
            song_id, body.original_line, body.improved_line, body.reason
        )
        if song is None:
            raise HTTPException(status_code=409, detail="Song has no analysis to record the edit on")
        return song_view(song)

    @app.post("/api/line-evaluations")
    async def evaluate_line(body: LineEvaluationRequest) -> LineEvaluation:
        evaluation = await controller.evaluate_line_change(
            body.original_line, body.new_line, body.song_context
        )
        if evaluation is None:
            raise HTTPException(status_code=502, detail="Line evaluation failed")
        return evaluation

    return app
