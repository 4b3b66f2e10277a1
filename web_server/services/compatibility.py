import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Protocol, TypeVar

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from config import NEUTRAL_SCORE
from models.matching import GoalMatchAnalysis, ProjectMatchAnalysis, PromptMatch
from models.profile import Profile
from services.stats import RankingStats

logger = logging.getLogger(__name__)

T = TypeVar("T")

FALLBACK_PROJECT_SUGGESTIONS = [
    "AI-powered productivity app using React and TensorFlow",
    "Blockchain-based voting system with smart contracts",
    "IoT environmental monitoring dashboard",
]
PROMPT_FALLBACK_REASONING = "Unable to analyze compatibility at this time"

_prompt_matches = TypeAdapter(list[PromptMatch])


class _ProjectIdea(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: str
    description: str
    tech_stack: list[str] = Field(default=[], alias="techStack")
    difficulty: Optional[str] = None


class _ProjectIdeas(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    project_ideas: list[_ProjectIdea] = Field(alias="projectIdeas")


class _ExtractedSkills(BaseModel):
    skills: list[str] = []


class ReasoningClient(Protocol):
    """Contract of the external reasoning service. Every method may raise."""

    async def compare_projects(
        self, project_a: str, project_b: str, skills_a: list[str], skills_b: list[str]
    ) -> Any: ...

    async def compare_goals(
        self, goals_a: list[str], goals_b: list[str], skills_a: list[str], skills_b: list[str]
    ) -> Any: ...

    async def suggest_projects(
        self, skills: list[str], interests: list[str], goals: list[str]
    ) -> Any: ...

    async def extract_skills(self, project_description: str) -> Any: ...

    async def rank_by_prompt(self, prompt_text: str, candidates: list[dict]) -> Any: ...


# ── Signals ──────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class ProjectSignal:
    score: float = NEUTRAL_SCORE
    analysis: Optional[ProjectMatchAnalysis] = None


@dataclass(frozen=True)
class GoalSignal:
    goal_compatibility: float = NEUTRAL_SCORE
    team_vibe_match: float = NEUTRAL_SCORE
    analysis: Optional[GoalMatchAnalysis] = None


# ── Analyzer ─────────────────────────────────────────────────────────────

class CompatibilityAnalyzer:
    """Project and goal compatibility backed by an external reasoning client.

    Every call is bounded by ``timeout`` seconds. Any failure (timeout,
    transport error, malformed or out-of-range answer) is logged and replaced
    by the neutral default; nothing raised by the client reaches the caller.
    With ``client=None`` every signal is the neutral default.
    """

    def __init__(self, client: Optional[ReasoningClient] = None, timeout: float = 5.0):
        self.client = client
        self.timeout = timeout

    @property
    def enabled(self) -> bool:
        return self.client is not None

    async def _guarded(
        self,
        operation: str,
        call: Callable[[], Awaitable[Any]],
        parse: Callable[[Any], T],
        stats: Optional[RankingStats] = None,
    ) -> Optional[T]:
        if stats is not None:
            stats.external_calls += 1
        try:
            raw = await asyncio.wait_for(call(), timeout=self.timeout)
            return parse(raw)
        except asyncio.TimeoutError:
            logger.warning("%s timed out after %.1fs", operation, self.timeout)
        except ValidationError as e:
            logger.warning("%s returned an unexpected shape: %d error(s)", operation, e.error_count())
        except Exception as e:
            logger.warning("%s failed: %s: %s", operation, type(e).__name__, e)
        if stats is not None:
            stats.external_failures += 1
        return None

    async def project_compatibility(
        self,
        project_a: Optional[str],
        project_b: Optional[str],
        skills_a: list[str],
        skills_b: list[str],
        stats: Optional[RankingStats] = None,
    ) -> ProjectSignal:
        if self.client is None or not (project_a and project_a.strip()) or not (project_b and project_b.strip()):
            return ProjectSignal()

        analysis = await self._guarded(
            "compare_projects",
            lambda: self.client.compare_projects(project_a, project_b, skills_a, skills_b),
            ProjectMatchAnalysis.model_validate,
            stats,
        )
        if analysis is None:
            return ProjectSignal()
        return ProjectSignal(score=analysis.compatibility_score, analysis=analysis)

    async def goal_compatibility(
        self,
        goals_a: list[str],
        goals_b: list[str],
        skills_a: list[str],
        skills_b: list[str],
        stats: Optional[RankingStats] = None,
    ) -> GoalSignal:
        if self.client is None or not goals_a or not goals_b:
            return GoalSignal()

        analysis = await self._guarded(
            "compare_goals",
            lambda: self.client.compare_goals(goals_a, goals_b, skills_a, skills_b),
            GoalMatchAnalysis.model_validate,
            stats,
        )
        if analysis is None:
            return GoalSignal()
        return GoalSignal(
            goal_compatibility=analysis.goal_compatibility,
            team_vibe_match=analysis.team_vibe_match,
            analysis=analysis,
        )

    # ── Profile helpers ──────────────────────────────────────────────────

    async def suggest_projects(
        self,
        skills: list[str],
        interests: list[str],
        goals: list[str],
    ) -> list[str]:
        """Three project ideas as ``"title: description (stack)"`` strings."""
        if self.client is None:
            return list(FALLBACK_PROJECT_SUGGESTIONS)

        ideas = await self._guarded(
            "suggest_projects",
            lambda: self.client.suggest_projects(skills, interests, goals),
            _ProjectIdeas.model_validate,
        )
        if ideas is None or not ideas.project_ideas:
            return list(FALLBACK_PROJECT_SUGGESTIONS)
        return [
            f"{idea.title}: {idea.description} ({', '.join(idea.tech_stack)})"
            for idea in ideas.project_ideas
        ]

    async def extract_skills(self, project_description: str) -> list[str]:
        if self.client is None or not project_description.strip():
            return []

        extracted = await self._guarded(
            "extract_skills",
            lambda: self.client.extract_skills(project_description),
            _ExtractedSkills.model_validate,
        )
        return extracted.skills if extracted is not None else []

    async def rank_by_prompt(self, prompt_text: str, candidates: list[Profile]) -> list[PromptMatch]:
        """Rank candidates against a free-text project prompt (scores 0-100).

        On failure every candidate gets a score of 50 in input order. Entries
        for ids that are not among the candidates are dropped.
        """
        if not candidates:
            return []

        fallback = [
            PromptMatch(user_id=c.id, score=50, reasoning=PROMPT_FALLBACK_REASONING)
            for c in candidates
        ]
        if self.client is None:
            return fallback

        payload = [_prompt_candidate(c) for c in candidates]
        matches = await self._guarded(
            "rank_by_prompt",
            lambda: self.client.rank_by_prompt(prompt_text, payload),
            _prompt_matches.validate_python,
        )
        if matches is None:
            return fallback

        known = {c.id for c in candidates}
        ranked = [m for m in matches if m.user_id in known]
        ranked.sort(key=lambda m: m.score, reverse=True)
        return ranked


def _prompt_candidate(p: Profile) -> dict:
    """Only the fields the prompt ranking needs, to keep the request small."""
    return {
        "id": p.id,
        "name": p.name or "Anonymous",
        "skills": p.skills,
        "interests": p.interests,
        "bio": p.bio or "",
        "major": p.major or "",
        "school": p.school or "",
        "technical_skills": {
            "uiux": p.uiux or 0,
            "frontend": p.frontend or 0,
            "backend": p.backend or 0,
            "hardware": p.hardware or 0,
            "cyber": p.cyber or 0,
            "management": p.management or 0,
            "pitching": p.pitching or 0,
        },
    }
