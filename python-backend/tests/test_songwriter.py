import json
from types import SimpleNamespace

import httpx
import openai
import pytest

from songsmith.agent.mock_song import MockSongwriter
from songsmith.agent.prompts import ADVANCED_LYRIC_LOGIC, CENTRAL_METAPHOR, COMPARISON_ADDENDUM
from songsmith.agent.songwriter import (
    OpenRouterSongwriter,
    build_song_prompt,
    extract_json,
    generation_temperature,
    parse_reply,
)
from songsmith.errors import MalformedResponseError, ProviderError
from songsmith.models.analysis import LineImprovement, LineVerdict, RewriteResult
from songsmith.models.snapshot import SongSnapshot
from songsmith.models.song import FeatureFlags, SongDraft, SongInputs, StructureType

SONG_JSON = {
    "title": "Neon Rain",
    "style_prompt": "Synthwave, 110 BPM",
    "negative_prompt": "live",
    "lyrics": "[Verse]\nla la",
    "technical_explanation": "Short and punchy",
    "cover_art_prompt": "Rainy city at night",
}

ANALYSIS_JSON = {
    "overall_score": 74,
    "projected_score": 86,
    "summary": "Solid",
    "score_breakdown": [{"category": "Hook", "score": 70, "reason": "ok"}],
    "sonic_analysis": {"cinema_audit": {"score": "C", "object_count": 4, "objects": ["cup"]}},
    "line_by_line_improvements": [{"original": "la", "improved": "lo", "reason": "open vowel"}],
    "comparison_review": {"verdict": "Sidegrade", "score_delta": 0},
}


class FakeCompletions:
    """Stands in for ``client.chat.completions``; replies are consumed in order."""

    def __init__(self, replies):
        self.replies = list(replies)
        self.requests = []

    async def create(self, **kwargs):
        self.requests.append(kwargs)
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        message = reply if isinstance(reply, SimpleNamespace) else SimpleNamespace(content=reply)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)], usage=None)


def make_writer(*replies, **kwargs):
    completions = FakeCompletions(replies)
    client = SimpleNamespace(chat=SimpleNamespace(completions=completions))
    return OpenRouterSongwriter(client=client, **kwargs), completions


def snapshot(**overrides) -> SongSnapshot:
    fields = {"song_id": "s1", "title": "Neon Rain", "style_prompt": "Synthwave", "lyrics": "la la"}
    fields.update(overrides)
    return SongSnapshot(**fields)


class TestParsing:
    def test_extract_json_ignores_surrounding_prose(self):
        raw = 'Sure! Here it is:\n```json\n{"a": {"b": 1}}\n```\nEnjoy.'
        assert extract_json(raw, "op") == {"a": {"b": 1}}

    def test_extract_json_without_object(self):
        with pytest.raises(MalformedResponseError):
            extract_json("no json here", "op")

    def test_extract_json_invalid(self):
        with pytest.raises(MalformedResponseError, match="invalid JSON"):
            extract_json("{not: valid}", "op")

    def test_parse_reply_validation_error(self):
        """Valid JSON of the wrong shape is a malformed response."""
        with pytest.raises(MalformedResponseError) as excinfo:
            parse_reply('{"title": "only a title"}', SongDraft, "generate_song")
        assert excinfo.value.operation == "generate_song"


class TestPromptBuilding:
    def test_temperature_follows_flags(self):
        assert generation_temperature(FeatureFlags()) == 0.9
        assert generation_temperature(FeatureFlags(advanced_lyric_logic=True)) == 0.8
        assert generation_temperature(FeatureFlags(central_metaphor_logic=True)) == 0.8

    def test_empty_fields_ask_for_invention(self):
        prompt = build_song_prompt(SongInputs())
        assert "NOT SPECIFIED" in prompt
        assert "Choose the OPTIMAL structure" in prompt
        assert ADVANCED_LYRIC_LOGIC not in prompt
        assert CENTRAL_METAPHOR not in prompt

    def test_inputs_and_modes_are_included(self):
        inputs = SongInputs(
            topic="rain",
            instruments=["Rhodes", "808"],
            structure=StructureType.EDM,
            flags=FeatureFlags(advanced_lyric_logic=True, central_metaphor_logic=True),
        )
        prompt = build_song_prompt(inputs)
        assert "Topic: rain" in prompt
        assert "Featured Instruments: Rhodes, 808" in prompt
        assert StructureType.EDM.value in prompt
        assert ADVANCED_LYRIC_LOGIC in prompt
        assert CENTRAL_METAPHOR in prompt


class TestOpenRouterSongwriter:
    @pytest.mark.asyncio
    async def test_generate_song(self):
        writer, completions = make_writer(json.dumps(SONG_JSON))

        draft = await writer.generate_song(SongInputs(flags=FeatureFlags(central_metaphor_logic=True)))

        assert draft.title == "Neon Rain"
        assert draft.cover_image_base64 is None
        request = completions.requests[0]
        assert request["temperature"] == 0.8
        assert request["model"] == writer.model_name
        assert request["messages"][0]["role"] == "system"

    @pytest.mark.asyncio
    async def test_cover_art_is_attached(self):
        image = SimpleNamespace(
            content="",
            images=[{"type": "image_url", "image_url": {"url": "data:image/png;base64,QUJD"}}],
        )
        writer, completions = make_writer(json.dumps(SONG_JSON), image, cover_image_model="img-model")

        draft = await writer.generate_song(SongInputs())

        assert draft.cover_image_base64 == "QUJD"
        assert completions.requests[1]["model"] == "img-model"

    @pytest.mark.asyncio
    async def test_cover_art_failure_keeps_song(self):
        """A broken image call never fails song generation."""
        writer, _ = make_writer(json.dumps(SONG_JSON), RuntimeError("no images today"), cover_image_model="img")
        draft = await writer.generate_song(SongInputs())
        assert draft.title == "Neon Rain"
        assert draft.cover_image_base64 is None

    @pytest.mark.asyncio
    async def test_provider_errors_are_wrapped(self):
        error = openai.APIConnectionError(request=httpx.Request("POST", "https://openrouter.ai/api/v1"))
        writer, _ = make_writer(error)
        with pytest.raises(ProviderError):
            await writer.generate_song(SongInputs())

    @pytest.mark.asyncio
    async def test_garbage_reply_is_malformed(self):
        writer, _ = make_writer("I can't help with that.")
        with pytest.raises(MalformedResponseError):
            await writer.generate_song(SongInputs())

    @pytest.mark.asyncio
    async def test_analysis_with_parent_requests_comparison(self):
        writer, completions = make_writer(json.dumps(ANALYSIS_JSON))

        analysis = await writer.analyze_song(snapshot(), parent_lyrics="old words")

        assert analysis.overall_score == 74
        assert analysis.sonic_analysis.cinema_audit.object_count == 4
        assert analysis.comparison_review.verdict == "Sidegrade"
        request = completions.requests[0]
        assert COMPARISON_ADDENDUM in request["messages"][0]["content"]
        assert "old words" in request["messages"][1]["content"]

    @pytest.mark.asyncio
    async def test_analysis_without_parent_drops_comparison(self):
        """A comparison is only meaningful against a previous version."""
        writer, completions = make_writer(json.dumps(ANALYSIS_JSON))
        analysis = await writer.analyze_song(snapshot())
        assert analysis.comparison_review is None
        assert COMPARISON_ADDENDUM not in completions.requests[0]["messages"][0]["content"]

    @pytest.mark.asyncio
    async def test_variations_trimmed_to_two(self):
        variations = [{"id": str(i), "type": "t", "lyrics": "l"} for i in range(3)]
        writer, completions = make_writer(json.dumps({"variations": variations}))

        result = await writer.generate_variations(snapshot())

        assert [v.id for v in result] == ["0", "1"]
        assert completions.requests[0]["model"] == writer.variation_model

    @pytest.mark.asyncio
    async def test_too_few_variations_is_malformed(self):
        writer, _ = make_writer(json.dumps({"variations": [{"id": "A", "type": "t", "lyrics": "l"}]}))
        with pytest.raises(MalformedResponseError):
            await writer.generate_variations(snapshot())

    @pytest.mark.asyncio
    async def test_rewrite_sends_critique(self):
        writer, completions = make_writer(
            json.dumps({"lyrics": "lo lo", "technical_explanation": "opened the vowels"})
        )
        snap = snapshot(improvements=(LineImprovement(original="la", improved="lo"),))

        result = await writer.rewrite_song(snap)

        assert result == RewriteResult(lyrics="lo lo", technical_explanation="opened the vowels")
        assert '"improved": "lo"' in completions.requests[0]["messages"][1]["content"]

    @pytest.mark.asyncio
    async def test_evaluate_line_change(self):
        writer, _ = make_writer('{"verdict": "Worse", "score_change": -3, "explanation": "flat"}')
        evaluation = await writer.evaluate_line_change("a", "b", "context")
        assert evaluation.verdict is LineVerdict.WORSE
        assert evaluation.score_change == -3

    def test_models_from_environment(self, monkeypatch):
        monkeypatch.setenv("SONGWRITER_MODEL", "vendor/writer")
        monkeypatch.setenv("VARIATION_MODEL", "vendor/fast")
        writer = OpenRouterSongwriter(client=object())
        assert writer.model_name == "vendor/writer"
        assert writer.variation_model == "vendor/fast"


class TestMockSongwriter:
    @pytest.mark.asyncio
    async def test_mock_draft_echoes_inputs(self):
        draft = await MockSongwriter().generate_song(SongInputs(topic="the night bus", genre="Dream Pop"))
        assert draft.style_prompt.startswith("Dream Pop")
        assert "the night bus" in draft.technical_explanation

    @pytest.mark.asyncio
    async def test_mock_rewrite_applies_improvements(self):
        writer = MockSongwriter()
        snap = snapshot(
            lyrics="first line\nsecond line",
            improvements=(LineImprovement(original="second line", improved="better line"),),
        )
        result = await writer.rewrite_song(snap)
        assert result.lyrics == "first line\nbetter line"

    @pytest.mark.asyncio
    async def test_mock_analysis_and_variations(self):
        writer = MockSongwriter()
        analysis = await writer.analyze_song(snapshot(), parent_lyrics="older")
        assert analysis.comparison_review is not None
        assert len(await writer.generate_variations(snapshot())) == 2
        unchanged = await writer.evaluate_line_change("same", "same", "")
        assert unchanged.verdict is LineVerdict.NEUTRAL
