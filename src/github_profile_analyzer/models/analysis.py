from typing import Annotated, Any, Literal

from pydantic import BeforeValidator, Field, model_validator

from github_profile_analyzer.clients.models.github import CamelModel, GitHubDataPayload


def coerce_score(value: Any) -> Any:  # pyright: ignore[reportAny]
    """Models return scores as floats or numeric strings about as often as integers."""

    if isinstance(value, str) and value.strip():
        try:
            value = float(value)
        except ValueError:
            return value

    if isinstance(value, float):
        return round(value)

    return value


Score = Annotated[int, BeforeValidator(coerce_score)]


def _lowercase(value: Any) -> Any:  # pyright: ignore[reportAny]
    return value.strip().lower() if isinstance(value, str) else value


class ScoreBreakdown(CamelModel):
    professionalism: Score = 0
    documentation: Score = 0
    technical_breadth: Score = 0
    community_engagement: Score = 0
    code_quality: Score = 0


class ReadmeCritique(CamelModel):
    repo_name: str = ""
    score: Score = 0
    strengths: list[str] = Field(default_factory=list)
    improvements: list[str] = Field(default_factory=list)


class ActionItem(CamelModel):
    title: str = ""
    description: str = ""
    priority: Annotated[Literal["high", "medium", "low"], BeforeValidator(_lowercase)] = "medium"
    category: Annotated[Literal["profile", "repository", "documentation", "community"], BeforeValidator(_lowercase)] = "profile"


class LanguageConfidence(CamelModel):
    language: str = ""
    percentage: float = 0
    confidence: Annotated[Literal["expert", "proficient", "familiar", "beginner"], BeforeValidator(_lowercase)] = "familiar"


class PortfolioHealth(CamelModel):
    high_impact: list[str] = Field(default_factory=list)
    clutter: list[str] = Field(default_factory=list)


class ProjectEnhancement(CamelModel):
    repo_name: str = ""
    suggestions: list[str] = Field(default_factory=list)


class RoadmapStep(CamelModel):
    step: int = 0
    title: str = ""
    description: str = ""


class RecruiterInsights(CamelModel):
    headline: str = ""
    portfolio_health: PortfolioHealth = Field(default_factory=PortfolioHealth)
    project_enhancements: list[ProjectEnhancement] = Field(default_factory=list)
    roadmap: list[RoadmapStep] = Field(default_factory=list)


class AnalysisResult(CamelModel):
    """The model's assessment of a profile, relayed to the client as-is."""

    profile_score: Score = 0
    score_breakdown: ScoreBreakdown = Field(default_factory=ScoreBreakdown)
    current_bio: str = ""
    suggested_bio: str = ""
    readme_critiques: list[ReadmeCritique] = Field(default_factory=list)
    suggested_skills: list[str] = Field(default_factory=list)
    action_items: list[ActionItem] = Field(default_factory=list)
    language_confidence: list[LanguageConfidence] = Field(default_factory=list)
    top_improvements: list[str] = Field(default_factory=list)
    summary: str = ""
    contribution_score: Score | None = None
    hiring_insights: RecruiterInsights = Field(default_factory=RecruiterInsights)


class InsufficientDataSignal(CamelModel):
    """The model declared that there was not enough data to assess the profile."""

    error: Literal["insufficient_data"] = "insufficient_data"


type AnalysisOutcome = AnalysisResult | InsufficientDataSignal


def _as_text(value: Any) -> Any:  # pyright: ignore[reportAny]
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)  # pyright: ignore[reportAny]


def _as_list(value: Any) -> Any:  # pyright: ignore[reportAny]
    if value is None:
        return []
    return value if isinstance(value, list) else [value]


def _as_expertise_areas(value: Any) -> Any:  # pyright: ignore[reportAny]
    """Areas keyed by title, `{"Kernel": "Schedulers"}`, are as common as a list of objects."""

    if isinstance(value, dict) and not ({"title", "description"} & value.keys()):
        return [{"title": key, "description": item} for key, item in value.items()]  # pyright: ignore[reportUnknownVariableType]
    return _as_list(value)


def _as_single_object(value: Any) -> Any:  # pyright: ignore[reportAny]
    if isinstance(value, list):
        return value[0] if value else None  # pyright: ignore[reportUnknownVariableType]
    return value


Text = Annotated[str, BeforeValidator(_as_text)]


class ExpertiseArea(CamelModel):
    title: Text = ""
    description: Text = ""

    @model_validator(mode="before")
    @classmethod
    def _from_text(cls, value: Any) -> Any:  # pyright: ignore[reportAny]
        return value if isinstance(value, dict | cls) else {"title": value}


class ProjectIdea(CamelModel):
    title: Text = ""
    description: Text = ""
    tech_stack: Annotated[list[Text], BeforeValidator(_as_list)] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _from_text(cls, value: Any) -> Any:  # pyright: ignore[reportAny]
        return value if isinstance(value, dict | cls) else {"title": value}


class GrowthRoadmap(CamelModel):
    """Suggestions for a user who contributes to other projects but owns none.

    Any JSON object is accepted. Scalars where lists are expected are wrapped and missing fields stay empty."""

    expertise_areas: Annotated[list[ExpertiseArea], BeforeValidator(_as_expertise_areas)] = Field(default_factory=list)
    project_idea: Annotated[ProjectIdea | None, BeforeValidator(_as_single_object)] = None


class FullAnalysisResponse(CamelModel):
    mode: Literal["full"] = "full"
    github_data: GitHubDataPayload
    analysis: AnalysisResult
    low_data: bool = False
    cached: bool = False

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude={"cached"} if not self.cached else None)


class GrowthResponse(CamelModel):
    mode: Literal["growth"] = "growth"
    github_data: GitHubDataPayload
    roadmap: GrowthRoadmap | None = None
    cached: bool = False

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude={"cached"} if not self.cached else None)


type AnalysisResponse = FullAnalysisResponse | GrowthResponse


class InsufficientDataResponse(CamelModel):
    error: Literal["insufficient_data"] = "insufficient_data"
    github_data: GitHubDataPayload

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class ErrorResponse(CamelModel):
    error: str
    status: int
    reset_timestamp: int | None = None

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
