"""
Career Report Data Models
"""

from pydantic import BaseModel, ConfigDict, Field

from ivy_guide.models.conversation import Insights
from ivy_guide.models.profile import StudentProfile


class RecommendedPath(BaseModel):
    """A recommended career path with its justification bullets."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    name: str
    why_it_fits: list[str] = Field(default_factory=list, alias="whyItFits")
    application_readiness: list[str] = Field(
        default_factory=list, alias="applicationReadiness"
    )


class ReportRequest(BaseModel):
    """Input for the report synthesis service."""

    profile: StudentProfile
    insights: Insights


class ReportSynthesis(BaseModel):
    """Output of the report synthesis service."""

    model_config = ConfigDict(populate_by_name=True)

    interests: list[str] = Field(default_factory=list)
    strengths: list[str] = Field(default_factory=list)
    recommended_paths: list[RecommendedPath] = Field(
        default_factory=list, alias="recommendedPaths"
    )


class FinalReport(BaseModel):
    """Read-only snapshot produced at the evaluating -> report transition."""

    model_config = ConfigDict(frozen=True)

    profile: StudentProfile
    interests: tuple[str, ...]
    strengths: tuple[str, ...]
    constraints: tuple[str, ...]
    career_clusters: tuple[str, ...]
    recommended_paths: tuple[RecommendedPath, ...]
    generated_at: str

    @classmethod
    def from_synthesis(
        cls,
        profile: StudentProfile,
        insights: Insights,
        synthesis: ReportSynthesis,
        generated_at: str,
    ) -> "FinalReport":
        """Combine the curated service output with the accumulated session insights."""
        return cls(
            profile=profile.model_copy(),
            interests=tuple(synthesis.interests),
            strengths=tuple(synthesis.strengths),
            constraints=tuple(insights.constraints),
            career_clusters=tuple(insights.career_clusters),
            recommended_paths=tuple(synthesis.recommended_paths),
            generated_at=generated_at,
        )
