"""HTTP client for the Suno music generation REST API (sunoapi.org).

Supported calls:
  1. Generate    : POST /generate                        (lyrics + style + title)
  2. Task status : GET  /generate/record-info?taskId=...
  3. Poll        : repeated status checks until SUCCESS / FAILED
"""

from __future__ import annotations

import asyncio
import logging
import os
from typing import Any

import httpx

from songsmith.errors import MalformedResponseError, ProviderError
from songsmith.models.render import RenderStatus, RenderStatusReport, RenderTrack
from songsmith.models.snapshot import SongSnapshot

log = logging.getLogger(__name__)

DEFAULT_SUNO_URL = "https://api.sunoapi.org/api/v1"
# The API insists on a callback URL even though we poll instead.
DEFAULT_CALLBACK_URL = "https://webhook.site/placeholder"
DEFAULT_MODEL = "V4"
SUPPORTED_MODELS = ("V3_5", "V4", "V4_5", "V4_5PLUS", "V5")

_STATUS_MAP: dict[str, RenderStatus] = {
    "PENDING": RenderStatus.PENDING,
    "TEXT_SUBMITTING": RenderStatus.PENDING,
    "TEXT_SUCCESS": RenderStatus.GENERATING,
    "FIRST_SUCCESS": RenderStatus.GENERATING,
    "GENERATING": RenderStatus.GENERATING,
    "SUCCESS": RenderStatus.SUCCESS,
    "FAILED": RenderStatus.FAILED,
    "CREATE_TASK_FAILED": RenderStatus.FAILED,
    "GENERATE_AUDIO_FAILED": RenderStatus.FAILED,
    "CALLBACK_EXCEPTION": RenderStatus.FAILED,
    "SENSITIVE_WORD_ERROR": RenderStatus.FAILED,
}


def _parse_track(raw: dict[str, Any]) -> RenderTrack:
    """Suno has shipped both camelCase and snake_case track payloads."""
    return RenderTrack(
        id=str(raw.get("id", "")),
        title=raw.get("title", "") or "",
        audio_url=raw.get("audioUrl") or raw.get("audio_url"),
        stream_audio_url=raw.get("streamAudioUrl") or raw.get("stream_audio_url"),
        image_url=raw.get("imageUrl") or raw.get("image_url"),
        duration=raw.get("duration"),
        model=raw.get("modelName") or raw.get("model") or raw.get("model_name"),
    )


def parse_status(task_id: str, data: dict[str, Any]) -> RenderStatusReport:
    """Convert a record-info ``data`` block into a RenderStatusReport."""
    raw_status = str(data.get("status", "")).upper()
    status = _STATUS_MAP.get(raw_status)
    if status is None:
        log.warning("Unknown Suno status %r for task %s; treating as pending", raw_status, task_id)
        status = RenderStatus.PENDING

    response = data.get("response") or {}
    raw_tracks = response.get("sunoData") or response.get("data") or []
    tracks = [_parse_track(t) for t in raw_tracks if isinstance(t, dict)]

    error = data.get("errorMessage") or None
    if status is RenderStatus.FAILED and not error:
        error = raw_status or "Unknown error"

    return RenderStatusReport(
        task_id=data.get("taskId") or task_id,
        status=status,
        tracks=tracks,
        error=error,
    )


class SunoClient:
    """Async client for the Suno REST API.

    Configured via environment variables:
      - SUNO_API_URL: base URL (default: sunoapi.org v1)
      - SUNO_API_KEY: bearer token
      - SUNO_CALLBACK_URL: callback the API requires but we never use
    """

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        callback_url: str | None = None,
        poll_interval: float = 5.0,
        poll_timeout: float = 600,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = (
            base_url or os.environ.get("SUNO_API_URL") or DEFAULT_SUNO_URL
        ).rstrip("/")
        self.api_key = api_key or os.environ.get("SUNO_API_KEY")
        self.callback_url = (
            callback_url or os.environ.get("SUNO_CALLBACK_URL") or DEFAULT_CALLBACK_URL
        )
        self.poll_interval = poll_interval
        self.poll_timeout = poll_timeout
        self._transport = transport

    def _headers(self) -> dict[str, str]:
        if not self.api_key:
            raise ProviderError("suno", "SUNO_API_KEY is not configured")
        return {"Authorization": f"Bearer {self.api_key}"}

    def _client(self, timeout: float) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=timeout, transport=self._transport)

    @staticmethod
    def _unwrap(operation: str, resp: httpx.Response) -> dict[str, Any]:
        """Check both the HTTP status and the ``code`` field inside the body."""
        if resp.status_code >= 400:
            raise ProviderError(operation, f"HTTP {resp.status_code}: {resp.text[:300]}")
        try:
            body = resp.json()
        except ValueError as e:
            raise MalformedResponseError(operation, f"response is not JSON: {e}")
        if not isinstance(body, dict):
            raise MalformedResponseError(operation, f"unexpected body: {body!r}")
        if body.get("code") != 200:
            raise ProviderError(operation, f"Suno API error (code {body.get('code')}): {body.get('msg')}")
        data = body.get("data")
        if not isinstance(data, dict):
            raise MalformedResponseError(operation, f"no data in response: {body}")
        return data

    # ── 1. Generate ─────────────────────────────────────

    async def generate(
        self,
        prompt: str,
        style: str,
        title: str,
        model: str = DEFAULT_MODEL,
        instrumental: bool = False,
        custom_mode: bool = True,
    ) -> str:
        """Submit a render task. Returns the task id.

        POST /generate → {"code": 200, "msg": "success", "data": {"taskId": "..."}}
        """
        if model not in SUPPORTED_MODELS:
            log.warning("Unknown Suno model %r, sending it anyway", model)
        payload = {
            "prompt": prompt,
            "style": style,
            "title": title,
            "customMode": custom_mode,
            "instrumental": instrumental,
            "model": model,
            "callBackUrl": self.callback_url,
        }
        log.debug("Suno generate payload: title=%r model=%s style=%r", title, model, style[:80])

        try:
            async with self._client(timeout=30) as client:
                resp = await client.post(
                    f"{self.base_url}/generate", json=payload, headers=self._headers()
                )
        except httpx.HTTPError as e:
            raise ProviderError("suno.generate", str(e)) from e

        data = self._unwrap("suno.generate", resp)
        task_id = data.get("taskId")
        if not task_id:
            raise MalformedResponseError("suno.generate", f"no taskId in response: {data}")
        log.info("Submitted Suno task %s (%r, %s)", task_id, title, model)
        return task_id

    async def submit(self, snapshot: SongSnapshot, model: str = DEFAULT_MODEL) -> str:
        return await self.generate(
            prompt=snapshot.lyrics,
            style=snapshot.style_prompt,
            title=snapshot.title,
            model=model,
        )

    # ── 2. Status ───────────────────────────────────────

    async def check_status(self, task_id: str) -> RenderStatusReport:
        """GET /generate/record-info?taskId=... → status + tracks once available."""
        try:
            async with self._client(timeout=30) as client:
                resp = await client.get(
                    f"{self.base_url}/generate/record-info",
                    params={"taskId": task_id},
                    headers=self._headers(),
                )
        except httpx.HTTPError as e:
            raise ProviderError("suno.status", str(e)) from e

        report = parse_status(task_id, self._unwrap("suno.status", resp))
        log.debug("Suno task %s: %s (%d tracks)", task_id, report.status.value, len(report.tracks))
        return report

    # ── 3. Poll ─────────────────────────────────────────

    async def poll(
        self,
        task_id: str,
        timeout: float | None = None,
        interval: float | None = None,
    ) -> RenderStatusReport:
        """Check status until the task succeeds or fails. Returns the terminal report."""
        timeout = self.poll_timeout if timeout is None else timeout
        interval = self.poll_interval if interval is None else interval
        elapsed = 0.0
        while True:
            report = await self.check_status(task_id)
            if report.status.is_terminal:
                if report.status is RenderStatus.FAILED:
                    log.warning("Suno task %s failed: %s", task_id, report.error)
                return report
            if elapsed >= timeout:
                raise ProviderError("suno.poll", f"task {task_id} timed out after {timeout}s")
            await asyncio.sleep(interval)
            elapsed += interval
