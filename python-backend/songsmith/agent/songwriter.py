from __future__ import annotations

import json
import logging
import os
import time
from typing import TypeVar

from openai import AsyncOpenAI, OpenAIError
from pydantic import BaseModel, ValidationError

from songsmith.agent.debug import (
    trace_final_output,
    trace_model_config,
    trace_request,
    trace_usage,
)
from songsmith.agent.prompts import (
    ADVANCED_LYRIC_LOGIC,
    CENTRAL_METAPHOR,
    COMPARISON_ADDENDUM,
    CRITIC_PROMPT,
    DEFAULT_VOCAL_DIRECTIONS,
    LINE_EVALUATION_PROMPT,
    REWRITE_PROMPT,
    SYSTEM_PROMPT,
    VARIATION_PROMPT,
)
from songsmith.errors import MalformedResponseError, ProviderError
from songsmith.models.analysis import (
    LineEvaluation,
    RewriteResult,
    SongAnalysis,
    SongVariation,
)
from songsmith.models.snapshot import SongSnapshot
from songsmith.models.song import FeatureFlags, SongDraft, SongInputs, StructureType

log = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)

# OpenRouter config: set OPENROUTER_API_KEY env var
OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"
DEFAULT_MODEL_NAME = "google/gemini-2.5-pro"
DEFAULT_VARIATION_MODEL = "google/gemini-2.5-flash"

VARIATION_COUNT = 2


def _make_client() -> AsyncOpenAI:
    """Create an OpenAI-compatible client pointing at OpenRouter."""
    return AsyncOpenAI(
        base_url=OPENROUTER_BASE_URL,
        api_key=os.environ.get("OPENROUTER_API_KEY"),
    )


def extract_json(raw: str, operation: str) -> dict:
    """Pull the outermost JSON object out of a model reply.

    Models like to wrap JSON in prose or code fences, so everything outside
    the first ``{`` and the last ``}`` is ignored.
    """
    json_start = raw.find("{")
    json_end = raw.rfind("}") + 1
    if json_start < 0 or json_end <= json_start:
        raise MalformedResponseError(operation, "no JSON object found in response")
    try:
        data = json.loads(raw[json_start:json_end])
    except json.JSONDecodeError as e:
        raise MalformedResponseError(operation, f"invalid JSON: {e}") from e
    if not isinstance(data, dict):
        raise MalformedResponseError(operation, "expected a JSON object")
    return data


def parse_reply(raw: str, model_cls: type[M], operation: str) -> M:
    data = extract_json(raw, operation)
    try:
        return model_cls.model_validate(data)
    except ValidationError as e:
        log.error("Failed to parse %s response: %s", operation, e)
        log.debug("Full response content: %s", raw)
        raise MalformedResponseError(
            operation, f"response could not be parsed as {model_cls.__name__}: {e}"
        ) from e


def generation_temperature(flags: FeatureFlags) -> float:
    """Stricter writing modes get a slightly cooler temperature."""
    if flags.advanced_lyric_logic or flags.central_metaphor_logic:
        return 0.8
    return 0.9


def build_song_prompt(inputs: SongInputs) -> str:
    """Render user inputs into the generation request, including the mode blocks."""
    flags = inputs.flags
    structure = (
        "Choose the OPTIMAL structure for this specific song concept"
        if inputs.structure is StructureType.AUTO
        else inputs.structure.value
    )
    lines = [
        "Generate a Suno song concept.",
        "",
        "User inputs (if a field is empty, invent a creative choice that fits the others; "
        "use references only to infer missing style data):",
        f"- Artist Reference: {inputs.artist_reference or 'None'} "
        "(infer genre, vocals and mood ONLY; never name the artist in the style prompt)",
        f"- Song Reference: {inputs.song_reference or 'None'}",
        f"- Topic: {inputs.topic or 'NOT SPECIFIED - invent a unique, creative topic'}",
        f"- Mood: {inputs.mood or 'NOT SPECIFIED - invent a mood that fits'}",
        f"- Genre: {inputs.genre or 'NOT SPECIFIED - invent a genre that fits'}",
        f"- Preferred Vocals: {inputs.vocals or 'NOT SPECIFIED - pick vocals that fit the genre'}",
        f"- Structure Preference: {structure}",
        f"- Syllable Pattern/Meter: {inputs.syllable_pattern or 'Natural flow appropriate for genre'}",
    ]
    if inputs.instruments:
        lines.append(f"- Featured Instruments: {', '.join(inputs.instruments)}")
    lines += [
        f"- Extra Instructions: {inputs.custom_instructions or 'None'}",
        f"- Advanced Lyric Logic Mode: {'ENABLED' if flags.advanced_lyric_logic else 'Disabled'}",
        f"- Central Metaphor Anchoring: {'ENABLED' if flags.central_metaphor_logic else 'Disabled'}",
        "",
        ADVANCED_LYRIC_LOGIC if flags.advanced_lyric_logic else DEFAULT_VOCAL_DIRECTIONS,
    ]
    if flags.central_metaphor_logic:
        lines.append(CENTRAL_METAPHOR)
    return "\n".join(lines)


def _song_block(snapshot: SongSnapshot) -> str:
    return f"Song Title: {snapshot.title}\nStyle: {snapshot.style_prompt}\nLyrics:\n{snapshot.lyrics}"


class OpenRouterSongwriter:
    """Generation, critique, variations, rewrites and line evaluation via OpenRouter.

    Configured via environment variables:
      - OPENROUTER_API_KEY: API key
      - SONGWRITER_MODEL: model for generation, critique and rewrites
      - VARIATION_MODEL: cheaper model for variations and line evaluation
      - COVER_IMAGE_MODEL: image-capable model for album art (disabled when unset)
    """

    def __init__(
        self,
        model_name: str | None = None,
        variation_model: str | None = None,
        cover_image_model: str | None = None,
        client: AsyncOpenAI | None = None,
        debug: bool = False,
    ):
        self.model_name = model_name or os.environ.get("SONGWRITER_MODEL") or DEFAULT_MODEL_NAME
        self.variation_model = (
            variation_model or os.environ.get("VARIATION_MODEL") or DEFAULT_VARIATION_MODEL
        )
        self.cover_image_model = cover_image_model or os.environ.get("COVER_IMAGE_MODEL")
        self.debug = debug
        self._client = client

    @property
    def client(self) -> AsyncOpenAI:
        # Created lazily so a missing key only fails the calls that need it.
        if self._client is None:
            try:
                self._client = _make_client()
            except OpenAIError as e:
                raise ProviderError("openrouter", str(e)) from e
            if self.debug:
                trace_model_config(self.model_name, OPENROUTER_BASE_URL)
        return self._client

    async def _complete(
        self,
        operation: str,
        system_prompt: str,
        user_prompt: str,
        temperature: float,
        model: str | None = None,
    ) -> str:
        model = model or self.model_name
        if self.debug:
            trace_request(operation, model, temperature, system_prompt, user_prompt)

        start = time.time()
        try:
            response = await self.client.chat.completions.create(
                model=model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                temperature=temperature,
            )
        except OpenAIError as e:
            raise ProviderError(operation, str(e)) from e

        if not response.choices:
            raise MalformedResponseError(operation, "model returned no choices")
        raw = response.choices[0].message.content or ""
        log.info("%s completed in %.2fs (%s)", operation, time.time() - start, model)
        log.debug("%s raw response: %s", operation, raw[:500])
        if self.debug:
            trace_final_output(operation, raw)
            trace_usage(operation, response.usage)
        return raw

    # ── Generation ──────────────────────────────────────

    async def generate_song(self, inputs: SongInputs) -> SongDraft:
        raw = await self._complete(
            "generate_song",
            SYSTEM_PROMPT,
            build_song_prompt(inputs),
            temperature=generation_temperature(inputs.flags),
        )
        draft = parse_reply(raw, SongDraft, "generate_song")

        if draft.cover_art_prompt and self.cover_image_model:
            image = await self._generate_cover(draft.cover_art_prompt)
            if image:
                draft = draft.model_copy(update={"cover_image_base64": image})
        return draft

    async def _generate_cover(self, prompt: str) -> str | None:
        """Best-effort album art. Returns base64 image data or None."""
        try:
            response = await self.client.chat.completions.create(
                model=self.cover_image_model,
                messages=[{"role": "user", "content": f"Album cover, square 1:1. {prompt}"}],
                extra_body={"modalities": ["image", "text"]},
            )
            images = getattr(response.choices[0].message, "images", None) or []
            for image in images:
                url = image.get("image_url", {}).get("url", "")
                if url.startswith("data:") and "," in url:
                    return url.split(",", 1)[1]
            log.warning("Cover image model returned no image")
        except Exception as e:
            log.warning("Image generation failed, continuing with text only: %s", e)
        return None

    # ── Critique ────────────────────────────────────────

    async def analyze_song(
        self, snapshot: SongSnapshot, parent_lyrics: str | None = None
    ) -> SongAnalysis:
        system_prompt = CRITIC_PROMPT
        user_prompt = _song_block(snapshot)
        if parent_lyrics:
            system_prompt = f"{CRITIC_PROMPT}\n{COMPARISON_ADDENDUM}"
            user_prompt += f"\n\nPrevious version lyrics:\n{parent_lyrics}"

        raw = await self._complete("analyze_song", system_prompt, user_prompt, temperature=0.8)
        analysis = parse_reply(raw, SongAnalysis, "analyze_song")
        if not parent_lyrics and analysis.comparison_review is not None:
            analysis = analysis.model_copy(update={"comparison_review": None})
        return analysis

    async def evaluate_line_change(
        self, original_line: str, new_line: str, song_context: str
    ) -> LineEvaluation:
        user_prompt = (
            f"Song context:\n{song_context}\n\n"
            f"Original line: {original_line}\nNew line: {new_line}"
        )
        raw = await self._complete(
            "evaluate_line_change",
            LINE_EVALUATION_PROMPT,
            user_prompt,
            temperature=0.4,
            model=self.variation_model,
        )
        return parse_reply(raw, LineEvaluation, "evaluate_line_change")

    # ── Variations & rewrites ──────────────────────────

    async def generate_variations(self, snapshot: SongSnapshot) -> list[SongVariation]:
        raw = await self._complete(
            "generate_variations",
            VARIATION_PROMPT,
            _song_block(snapshot),
            temperature=1.0,
            model=self.variation_model,
        )
        data = extract_json(raw, "generate_variations")
        items = data.get("variations")
        if not isinstance(items, list):
            raise MalformedResponseError("generate_variations", "missing 'variations' list")
        try:
            variations = [SongVariation.model_validate(item) for item in items]
        except ValidationError as e:
            raise MalformedResponseError("generate_variations", str(e)) from e

        if len(variations) < VARIATION_COUNT:
            raise MalformedResponseError(
                "generate_variations",
                f"expected {VARIATION_COUNT} variations, got {len(variations)}",
            )
        if len(variations) > VARIATION_COUNT:
            log.warning("Model returned %d variations; keeping the first %d", len(variations), VARIATION_COUNT)
        return variations[:VARIATION_COUNT]

    async def rewrite_song(self, snapshot: SongSnapshot) -> RewriteResult:
        critique = json.dumps(
            [imp.model_dump(mode="json") for imp in snapshot.improvements], indent=2
        )
        user_prompt = f"Original lyrics:\n{snapshot.lyrics}\n\nCritique to apply:\n{critique}"
        raw = await self._complete("rewrite_song", REWRITE_PROMPT, user_prompt, temperature=0.7)
        return parse_reply(raw, RewriteResult, "rewrite_song")
