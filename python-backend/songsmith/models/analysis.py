"""Critique, variation and rewrite models returned by the songwriting collaborators."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class ImprovementSource(str, Enum):
    """Who proposed a line improvement."""

    AI = "AI"
    USER = "User"


class ScoreComponent(BaseModel):
    """One category of the score breakdown."""

    category: str = Field(description="Scoring category, e.g. 'Imagery', 'Hook'")
    score: float = Field(description="Category score")
    reason: str = Field(default="", description="Why the category scored this way")


class CinemaAudit(BaseModel):
    """Concrete-imagery audit: physical objects ('props') named in the lyrics."""

    score: str = Field(default="", description="Letter grade, e.g. 'A', 'C', 'F'")
    object_count: int = Field(default=0, ge=0, description="Number of physical objects found")
    objects: list[str] = Field(default_factory=list, description="The objects themselves")
    analysis: str = Field(default="", description="Commentary on the visual grounding")


class SonicAnalysis(BaseModel):
    """Producer's-ear notes on how the lyrics will sing."""

    phonetics: str = Field(default="", description="Open vs closed vowels, plosives, mouthfeel")
    density: str = Field(default="", description="Syllabic density and section contrast")
    cinema_audit: CinemaAudit = Field(default_factory=CinemaAudit)


class LineImprovement(BaseModel):
    """A suggested (or user-applied) rewrite of a single lyric line."""

    original: str
    improved: str
    reason: str = ""
    source: ImprovementSource = Field(
        default=ImprovementSource.AI,
        description="AI for critic suggestions, User for manual line edits",
    )


class ComparisonReview(BaseModel):
    """Verdict comparing a derived version against the lyrics it was derived from."""

    verdict: str = Field(description="e.g. 'Clear Upgrade', 'Sidegrade'")
    score_delta: float = Field(default=0, description="Score change relative to the previous version")
    improvements: list[str] = Field(default_factory=list)
    missed_opportunities: list[str] = Field(
        default_factory=list, description="Regressions or improvements that were not applied"
    )


class SongAnalysis(BaseModel):
    """Structured critique of one song."""

    model_config = ConfigDict(frozen=True)

    overall_score: float = Field(description="Score out of 100")
    projected_score: float = Field(description="Predicted score once improvements are applied")
    summary: str = ""
    score_breakdown: list[ScoreComponent] = Field(default_factory=list)
    theme_analysis: str = ""
    story_arc: str = ""
    sonic_analysis: SonicAnalysis = Field(default_factory=SonicAnalysis)
    strengths: list[str] = Field(default_factory=list)
    weaknesses: list[str] = Field(default_factory=list)
    line_by_line_improvements: list[LineImprovement] = Field(default_factory=list)
    commercial_viability: str = ""
    comparison_review: ComparisonReview | None = Field(
        default=None, description="Only present when a previous version's lyrics were supplied"
    )

    def with_improvement(self, improvement: LineImprovement) -> SongAnalysis:
        """Return a copy with one more line improvement appended."""
        return self.model_copy(
            update={"line_by_line_improvements": [*self.line_by_line_improvements, improvement]}
        )


class SongVariation(BaseModel):
    """An alternative full-lyric draft."""

    id: str
    type: str = Field(description="Short label, e.g. 'More Rhythmic'")
    lyrics: str
    explanation: str = Field(default="", description="What changed creatively and why")


class RewriteResult(BaseModel):
    """Full content replacement produced by the rewrite collaborator."""

    lyrics: str
    technical_explanation: str


class LineVerdict(str, Enum):
    BETTER = "Better"
    WORSE = "Worse"
    NEUTRAL = "Neutral"


class LineEvaluation(BaseModel):
    """Critic's opinion of a single manual line change."""

    verdict: LineVerdict
    score_change: float = 0
    explanation: str = ""
