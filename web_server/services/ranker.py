import asyncio
import logging
import random
from typing import Iterable, Optional

from config import BasicWeights, EnhancedWeights, FieldPolicy, MatchMode, Settings, get_settings
from models.matching import MatchAnalysis, MatchFilters, MatchResult, ScoreBreakdown
from models.profile import Profile
from services.compatibility import CompatibilityAnalyzer, GoalSignal, ProjectSignal
from services.filters import filter_candidates
from services.similarity import cosine_similarity, field_similarity, is_low_signal, low_signal_score
from services.stats import RankingStats
from services.vector_space import build_skill_space

logger = logging.getLogger(__name__)


class InvalidMatchInput(ValueError):
    """Ranking cannot proceed with the inputs given."""


# ── Weighted combination ─────────────────────────────────────────────────

def basic_score(skill_sim: float, field_sim: float, weights: BasicWeights = BasicWeights()) -> float:
    return weights.skill * skill_sim + weights.field * field_sim


def enhanced_score(
    skill_sim: float,
    field_sim: float,
    project: float,
    goal: float,
    vibe: float,
    weights: EnhancedWeights = EnhancedWeights(),
) -> float:
    return (
        weights.skill * skill_sim
        + weights.field * field_sim
        + weights.project * project
        + weights.goal * goal
        + weights.vibe * vibe
    )


# ── Ranker ───────────────────────────────────────────────────────────────

class MatchRanker:
    """Filters, scores and orders candidates for one user.

    ``analyzer`` supplies the AI-derived signals in enhanced mode and ``rng``
    drives the low-signal fallback in basic mode; both are injected so that a
    ranking is reproducible given the same service answers and seed.
    """

    def __init__(
        self,
        analyzer: Optional[CompatibilityAnalyzer] = None,
        rng: Optional[random.Random] = None,
        settings: Optional[Settings] = None,
    ):
        self.analyzer = analyzer or CompatibilityAnalyzer()
        self.rng = rng or random.Random()
        self.settings = settings or get_settings()
        self.basic_weights = BasicWeights()
        self.enhanced_weights = EnhancedWeights()

    async def rank(
        self,
        current_user: Optional[Profile],
        candidates: list[Profile],
        filters: Optional[MatchFilters] = None,
        *,
        mode: MatchMode = MatchMode.basic,
        exclude_ids: Optional[Iterable[str]] = None,
        stats: Optional[RankingStats] = None,
    ) -> list[MatchResult]:
        """Return every surviving candidate, best first.

        ``exclude_ids=None`` means the pool was already pre-filtered by the
        caller; pass the already-decided ids to have them removed here.
        """
        if mode == MatchMode.enhanced:
            return await self.rank_enhanced(
                current_user, candidates, filters, exclude_ids=exclude_ids, stats=stats
            )
        return self.rank_basic(current_user, candidates, filters, exclude_ids=exclude_ids, stats=stats)

    def rank_basic(
        self,
        current_user: Optional[Profile],
        candidates: list[Profile],
        filters: Optional[MatchFilters] = None,
        *,
        exclude_ids: Optional[Iterable[str]] = None,
        stats: Optional[RankingStats] = None,
    ) -> list[MatchResult]:
        """Skills and fields only: ``0.5 * skill + 0.5 * field``."""
        stats = stats if stats is not None else RankingStats()
        pool = self._prepare(current_user, candidates, filters, exclude_ids, stats)
        space = build_skill_space([current_user, *pool])
        user_vec = space.vectors[0]
        policy = self.settings.field_policy_for(MatchMode.basic)

        results = []
        for cand, cand_vec in zip(pool, space.vectors[1:]):
            skill_sim = cosine_similarity(user_vec, cand_vec)
            field_sim = field_similarity(current_user, cand, policy)

            fallback = is_low_signal(skill_sim, field_sim)
            if fallback:
                score = low_signal_score(self.rng)
                stats.fallbacks_applied += 1
            else:
                score = basic_score(skill_sim, field_sim, self.basic_weights)

            logger.debug(
                "basic match %s: skill=%.4f field=%.4f score=%.4f fallback=%s",
                cand.id, skill_sim, field_sim, score, fallback,
            )
            results.append(MatchResult(
                match=cand,
                score=score,
                breakdown=ScoreBreakdown(
                    skill_similarity=skill_sim,
                    field_similarity=field_sim,
                    fallback_applied=fallback,
                ),
            ))

        return self._finish(current_user, results, MatchMode.basic, stats)

    async def rank_enhanced(
        self,
        current_user: Optional[Profile],
        candidates: list[Profile],
        filters: Optional[MatchFilters] = None,
        *,
        exclude_ids: Optional[Iterable[str]] = None,
        stats: Optional[RankingStats] = None,
    ) -> list[MatchResult]:
        """Skills, fields and the AI-derived project and goal signals."""
        stats = stats if stats is not None else RankingStats()
        filters = filters or MatchFilters()
        pool = self._prepare(current_user, candidates, filters, exclude_ids, stats)
        space = build_skill_space([current_user, *pool])
        user_vec = space.vectors[0]
        policy = self.settings.field_policy_for(MatchMode.enhanced)
        limit = asyncio.Semaphore(max(1, self.settings.max_concurrency))

        # gather keeps input order; ordering below depends on scores only
        results = await asyncio.gather(*(
            self._score_enhanced(current_user, cand, user_vec, cand_vec, filters, policy, limit, stats)
            for cand, cand_vec in zip(pool, space.vectors[1:])
        ))

        return self._finish(current_user, list(results), MatchMode.enhanced, stats)

    # ── Internals ────────────────────────────────────────────────────────

    def _prepare(
        self,
        current_user: Optional[Profile],
        candidates: list[Profile],
        filters: Optional[MatchFilters],
        exclude_ids: Optional[Iterable[str]],
        stats: RankingStats,
    ) -> list[Profile]:
        if current_user is None:
            raise InvalidMatchInput("A current user profile is required to rank candidates")
        if not isinstance(current_user, Profile):
            raise InvalidMatchInput(f"current_user must be a Profile, got {type(current_user).__name__}")
        if not isinstance(candidates, (list, tuple)):
            raise InvalidMatchInput(f"candidates must be a list of profiles, got {type(candidates).__name__}")
        for cand in candidates:
            if not isinstance(cand, Profile):
                raise InvalidMatchInput(f"candidates must contain only profiles, got {type(cand).__name__}")

        stats.candidates_received = len(candidates)
        return filter_candidates(
            current_user,
            candidates,
            filters,
            exclude_ids=exclude_ids,
            require_complete=self.settings.require_complete_profiles,
            stats=stats,
        )

    async def _score_enhanced(
        self,
        current_user: Profile,
        cand: Profile,
        user_vec: list[int],
        cand_vec: list[int],
        filters: MatchFilters,
        policy: FieldPolicy,
        limit: asyncio.Semaphore,
        stats: RankingStats,
    ) -> MatchResult:
        skill_sim = cosine_similarity(user_vec, cand_vec)
        field_sim = field_similarity(current_user, cand, policy)

        async with limit:
            project, goal = await asyncio.gather(
                self._project_signal(current_user, cand, filters, stats),
                self._goal_signal(current_user, cand, filters, stats),
            )

        score = enhanced_score(
            skill_sim,
            field_sim,
            project.score,
            goal.goal_compatibility,
            goal.team_vibe_match,
            self.enhanced_weights,
        )
        logger.debug(
            "enhanced match %s: skill=%.4f field=%.4f project=%.4f goal=%.4f vibe=%.4f score=%.4f",
            cand.id, skill_sim, field_sim, project.score,
            goal.goal_compatibility, goal.team_vibe_match, score,
        )

        analysis = None
        if project.analysis is not None or goal.analysis is not None:
            analysis = MatchAnalysis(project_analysis=project.analysis, goal_analysis=goal.analysis)

        return MatchResult(
            match=cand,
            score=score,
            breakdown=ScoreBreakdown(
                skill_similarity=skill_sim,
                field_similarity=field_sim,
                project_compatibility=project.score,
                goal_compatibility=goal.goal_compatibility,
                team_vibe_match=goal.team_vibe_match,
            ),
            analysis=analysis,
        )

    async def _project_signal(
        self,
        current_user: Profile,
        cand: Profile,
        filters: MatchFilters,
        stats: RankingStats,
    ) -> ProjectSignal:
        # An explicit query replaces the user's own project idea for this comparison
        reference = filters.project_idea_query or current_user.project_ideas
        return await self.analyzer.project_compatibility(
            reference, cand.project_ideas, current_user.skills, cand.skills, stats
        )

    async def _goal_signal(
        self,
        current_user: Profile,
        cand: Profile,
        filters: MatchFilters,
        stats: RankingStats,
    ) -> GoalSignal:
        reference = filters.goal_query or current_user.hackathon_goals
        return await self.analyzer.goal_compatibility(
            reference, cand.hackathon_goals, current_user.skills, cand.skills, stats
        )

    def _finish(
        self,
        current_user: Profile,
        results: list[MatchResult],
        mode: MatchMode,
        stats: RankingStats,
    ) -> list[MatchResult]:
        stats.scored = len(results)
        # sorted() is stable, so equal scores keep input order
        ranked = sorted(results, key=lambda r: r.score, reverse=True)
        logger.info(
            "Ranked %d of %d candidates for %s (%s mode): %d fallback(s), %d/%d external failure(s)",
            stats.scored, stats.candidates_received, current_user.id, mode.value,
            stats.fallbacks_applied, stats.external_failures, stats.external_calls,
            extra={"ranking_stats": stats.as_dict()},
        )
        return ranked
