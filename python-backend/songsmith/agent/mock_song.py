"""Mock songwriter for development and testing."""

from __future__ import annotations

import logging

from songsmith.models.analysis import (
    CinemaAudit,
    ComparisonReview,
    LineEvaluation,
    LineImprovement,
    LineVerdict,
    RewriteResult,
    ScoreComponent,
    SongAnalysis,
    SongVariation,
    SonicAnalysis,
)
from songsmith.models.snapshot import SongSnapshot
from songsmith.models.song import SongDraft, SongInputs

log = logging.getLogger(__name__)

MOCK_LYRICS = """\
[Intro – soft piano, 2/10 energy]
(Whispered) Mm, mm...

[Verse 1 – male lead, stripped back, 4/10 energy]
(M) The coffee cup is cold on the coaster where you left it
(M) Your jacket on the hook still smells like rain
(M) I keep the porch light on, I know I shouldn't
(M) Talking to the static on the kitchen radio again

[Chorus – full band, harmonies, 7/10 energy]
(M+F) So leave the light on low
(M+F) I'm not ready to let go
(M+F) The house is full of you
(M+F) And nothing else will do

[Bridge – half-time, 5/10 energy]
(F) Maybe the light was never for you
(F) Maybe it was so I could find my way through

[Chorus – peak energy, 9/10 energy]
(M+F) So leave the light on LOW
(M+F) I'm finally letting go

[Outro – piano alone, 2/10 energy]
[End]
"""


def get_mock_draft(inputs: SongInputs | None = None) -> SongDraft:
    """Return a mock song draft; topic and genre are echoed when provided."""
    inputs = inputs or SongInputs()
    genre = inputs.genre or "Indie Folk"
    return SongDraft(
        title="Porch Light",
        style_prompt=f"{genre}, warm acoustic guitar, soft piano, brushed drums, intimate male vocals, 84 BPM",
        negative_prompt="live, muffled, off-key, heavy distortion",
        lyrics=MOCK_LYRICS,
        technical_explanation=(
            f"Written about {inputs.topic or 'waiting for someone to come home'}. "
            "Verses sit low so the chorus lift lands; the bridge flips who the light is for."
        ),
        cover_art_prompt="Oil painting of a lone porch light at dusk, amber glow, deep blue sky",
    )


def get_mock_analysis(lyrics: str, parent_lyrics: str | None = None) -> SongAnalysis:
    review = None
    if parent_lyrics is not None:
        review = ComparisonReview(
            verdict="Clear Upgrade" if lyrics != parent_lyrics else "Sidegrade",
            score_delta=6 if lyrics != parent_lyrics else 0,
            improvements=["Stronger concrete imagery in the first verse"],
            missed_opportunities=["Chorus still ends on a closed vowel"],
        )
    return SongAnalysis(
        overall_score=72,
        projected_score=84,
        summary="Grounded, specific verses let down by a generic chorus.",
        score_breakdown=[
            ScoreComponent(category="Imagery", score=82, reason="Cup, jacket and radio do real work"),
            ScoreComponent(category="Hook", score=61, reason="The chorus resolves too predictably"),
            ScoreComponent(category="Structure", score=74, reason="The bridge shifts perspective"),
        ],
        theme_analysis="Waiting as denial; the porch light anchors the whole song.",
        story_arc="Moves from clinging to letting go, resolved in the final chorus.",
        sonic_analysis=SonicAnalysis(
            phonetics="Chorus lines end on 'low' and 'go', open vowels that belt well.",
            density="Verses are wordy, chorus is sparse. Good contrast.",
            cinema_audit=CinemaAudit(
                score="C",
                object_count=5,
                objects=["coffee cup", "coaster", "jacket", "porch light", "radio"],
                analysis="Enough props to picture the room; the chorus has none.",
            ),
        ),
        strengths=["Specific opening image", "Bridge reframes the hook"],
        weaknesses=["Chorus leans on cliché", "Second verse missing"],
        line_by_line_improvements=[
            LineImprovement(
                original="(M+F) And nothing else will do",
                improved="(M+F) And every room still hums with you",
                reason="Replace the cliché with a sensory detail",
            ),
        ],
        commercial_viability="Strong fit for acoustic and mood playlists.",
        comparison_review=review,
    )


class MockSongwriter:
    """Deterministic stand-in for the LLM songwriter. Never touches the network."""

    async def generate_song(self, inputs: SongInputs) -> SongDraft:
        log.info("Using mock song draft")
        return get_mock_draft(inputs)

    async def analyze_song(
        self, snapshot: SongSnapshot, parent_lyrics: str | None = None
    ) -> SongAnalysis:
        return get_mock_analysis(snapshot.lyrics, parent_lyrics)

    async def generate_variations(self, snapshot: SongSnapshot) -> list[SongVariation]:
        return [
            SongVariation(
                id="A",
                type="More Rhythmic",
                lyrics=snapshot.lyrics.replace("[Verse 1", "[Verse 1 – syncopated, triplet flow"),
                explanation="Tighter, syncopated phrasing in the verses.",
            ),
            SongVariation(
                id="B",
                type="Stripped Back",
                lyrics=snapshot.lyrics.replace("full band", "solo piano"),
                explanation="Darker, sparser arrangement with the chorus held back.",
            ),
        ]

    async def rewrite_song(self, snapshot: SongSnapshot) -> RewriteResult:
        lyrics = snapshot.lyrics
        applied = 0
        for improvement in snapshot.improvements:
            if improvement.original in lyrics:
                lyrics = lyrics.replace(improvement.original, improvement.improved)
                applied += 1
        return RewriteResult(
            lyrics=lyrics,
            technical_explanation=f"Applied {applied} of {len(snapshot.improvements)} line improvements.",
        )

    async def evaluate_line_change(
        self, original_line: str, new_line: str, song_context: str
    ) -> LineEvaluation:
        if original_line.strip() == new_line.strip():
            return LineEvaluation(verdict=LineVerdict.NEUTRAL, explanation="The line is unchanged.")
        return LineEvaluation(
            verdict=LineVerdict.BETTER,
            score_change=1,
            explanation="The new line is more specific.",
        )
