from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from config import MatchMode
from models.profile import Profile, normalize_hackathon_goals


# ── Reasoning-service analyses ───────────────────────────────────────────

class ProjectMatchAnalysis(BaseModel):
    """Shape expected back from a project-compatibility comparison."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    compatibility_score: float = Field(ge=0.0, le=1.0, alias="compatibilityScore")
    reasoning: str = ""
    suggested_roles: list[str] = Field(default=[], alias="suggestedRoles")
    potential_challenges: list[str] = Field(default=[], alias="potentialChallenges")


class GoalMatchAnalysis(BaseModel):
    """Shape expected back from a hackathon-goal comparison."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    goal_compatibility: float = Field(ge=0.0, le=1.0, alias="goalCompatibility")
    team_vibe_match: float = Field(ge=0.0, le=1.0, alias="teamVibeMatch")
    overall_compatibility: float = Field(ge=0.0, le=1.0, alias="overallCompatibility")
    reasoning: str = ""


class PromptMatch(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(alias="userId")
    score: float = Field(ge=0.0, le=100.0)
    reasoning: str = ""


# ── Ranking output ───────────────────────────────────────────────────────

class ScoreBreakdown(BaseModel):
    model_config = ConfigDict(frozen=True)

    skill_similarity: float
    field_similarity: float
    project_compatibility: Optional[float] = None
    goal_compatibility: Optional[float] = None
    team_vibe_match: Optional[float] = None
    fallback_applied: bool = False


class MatchAnalysis(BaseModel):
    model_config = ConfigDict(frozen=True)

    project_analysis: Optional[ProjectMatchAnalysis] = None
    goal_analysis: Optional[GoalMatchAnalysis] = None


class MatchResult(BaseModel):
    """One ranked candidate. Created per ranking call and never mutated."""
    model_config = ConfigDict(frozen=True)

    match: Profile
    score: float
    breakdown: ScoreBreakdown
    analysis: Optional[MatchAnalysis] = None


class MatchFilters(BaseModel):
    max_team_size: Optional[int] = Field(default=None, ge=1)
    min_availability: Optional[int] = Field(default=None, ge=0)
    project_idea_query: Optional[str] = None
    goal_query: Optional[list[str]] = None

    @field_validator("goal_query")
    @classmethod
    def _canonical_goals(cls, v: Optional[list[str]]) -> Optional[list[str]]:
        return None if v is None else normalize_hackathon_goals(v)


class RankingStatsOut(BaseModel):
    candidates_received: int
    excluded: dict[str, int]
    scored: int
    fallbacks_applied: int
    external_calls: int
    external_failures: int
    external_failure_rate: float


# ── Request / response schemas ──────────────────────────────────────────

class MatchRequest(BaseModel):
    """Body of POST /match — rank a caller-supplied pool."""
    current_user: Optional[Profile] = None
    candidates: list[Profile] = []
    filters: MatchFilters = MatchFilters()
    mode: MatchMode = MatchMode.basic
    exclude_ids: Optional[list[str]] = None
    seed: Optional[int] = None


class MatchResponse(BaseModel):
    query_uid: str
    mode: MatchMode
    total_candidates: int
    matches: list[MatchResult]
    stats: RankingStatsOut


class PromptMatchRequest(BaseModel):
    prompt: str
    candidates: list[Profile]


class PromptMatchResponse(BaseModel):
    matches: list[PromptMatch]


class ProjectSuggestionRequest(BaseModel):
    skills: list[str] = []
    interests: list[str] = []
    hackathon_goals: list[str] = []


class ProjectSuggestionResponse(BaseModel):
    suggestions: list[str]


class SkillExtractionRequest(BaseModel):
    project_description: str


class SkillExtractionResponse(BaseModel):
    skills: list[str]
