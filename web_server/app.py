import logging
import random
from contextlib import asynccontextmanager
from typing import Optional

import httpx
from fastapi import Depends, FastAPI, HTTPException, Query, Request

from config import MatchMode, get_settings
from db import connect_db, close_db
from models.matching import (
    MatchFilters,
    MatchRequest,
    MatchResponse,
    PromptMatchRequest,
    PromptMatchResponse,
    ProjectSuggestionRequest,
    ProjectSuggestionResponse,
    RankingStatsOut,
    SkillExtractionRequest,
    SkillExtractionResponse,
)
from models.profile import HACKATHON_GOALS, get_profile, get_swiped_ids, list_profiles
from services.compatibility import CompatibilityAnalyzer
from services.ranker import InvalidMatchInput, MatchRanker
from services.reasoning_client import build_reasoning_client
from services.stats import RankingStats

settings = get_settings()
logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await connect_db()
    async with httpx.AsyncClient(timeout=settings.reasoning_timeout_seconds) as http:
        client = build_reasoning_client(
            http,
            settings.openrouter_api_key,
            model=settings.openrouter_model,
            url=settings.openrouter_url,
        )
        if client is None:
            logger.warning("OPENROUTER_API_KEY not set; AI signals fall back to neutral scores")
        app.state.analyzer = CompatibilityAnalyzer(client, timeout=settings.reasoning_timeout_seconds)
        yield
    await close_db()


app = FastAPI(title="HackMatch API", lifespan=lifespan)


def get_analyzer(request: Request) -> CompatibilityAnalyzer:
    analyzer = getattr(request.app.state, "analyzer", None)
    if analyzer is None:
        # Started without lifespan (e.g. a bare TestClient): neutral signals only
        analyzer = CompatibilityAnalyzer(timeout=settings.reasoning_timeout_seconds)
    return analyzer


def _make_ranker(analyzer: CompatibilityAnalyzer, seed: Optional[int]) -> MatchRanker:
    return MatchRanker(analyzer=analyzer, rng=random.Random(seed), settings=settings)


def _stats_out(stats: RankingStats) -> RankingStatsOut:
    return RankingStatsOut(**stats.as_dict())


# ── Matching endpoints ─────────────────────────────────────────────────


@app.post("/match", response_model=MatchResponse)
async def match_pool(body: MatchRequest, analyzer: CompatibilityAnalyzer = Depends(get_analyzer)):
    """Rank a caller-supplied candidate pool for a caller-supplied user."""
    ranker = _make_ranker(analyzer, body.seed)
    stats = RankingStats()
    try:
        ranked = await ranker.rank(
            body.current_user,
            body.candidates,
            body.filters,
            mode=body.mode,
            exclude_ids=body.exclude_ids,
            stats=stats,
        )
    except InvalidMatchInput as e:
        raise HTTPException(status_code=400, detail=str(e))

    return MatchResponse(
        query_uid=body.current_user.id,
        mode=body.mode,
        total_candidates=stats.candidates_received,
        matches=ranked,
        stats=_stats_out(stats),
    )


@app.get("/profiles/{uid}/matches", response_model=MatchResponse)
async def match_profile(
    uid: str,
    mode: MatchMode = Query(MatchMode.basic),
    max_team_size: Optional[int] = Query(None, ge=1),
    min_availability: Optional[int] = Query(None, ge=0),
    project_idea_query: Optional[str] = Query(None),
    goal_query: Optional[list[str]] = Query(None),
    seed: Optional[int] = Query(None),
    analyzer: CompatibilityAnalyzer = Depends(get_analyzer),
):
    """Rank the stored pool for a stored user, skipping anyone already swiped."""
    current_user = await get_profile(uid)
    if current_user is None:
        raise HTTPException(status_code=404, detail="Profile not found")

    candidates = await list_profiles()
    swiped = await get_swiped_ids(uid)

    filters = MatchFilters(
        max_team_size=max_team_size,
        min_availability=min_availability,
        project_idea_query=project_idea_query or None,
        goal_query=goal_query or None,
    )
    ranker = _make_ranker(analyzer, seed)
    stats = RankingStats()
    try:
        ranked = await ranker.rank(
            current_user, candidates, filters, mode=mode, exclude_ids=swiped, stats=stats
        )
    except InvalidMatchInput as e:
        raise HTTPException(status_code=400, detail=str(e))

    return MatchResponse(
        query_uid=uid,
        mode=mode,
        total_candidates=stats.candidates_received,
        matches=ranked,
        stats=_stats_out(stats),
    )


@app.post("/match/prompt", response_model=PromptMatchResponse)
async def match_by_prompt(
    body: PromptMatchRequest,
    analyzer: CompatibilityAnalyzer = Depends(get_analyzer),
):
    matches = await analyzer.rank_by_prompt(body.prompt, body.candidates)
    return PromptMatchResponse(matches=matches)


# ── Project helper endpoints ───────────────────────────────────────────


@app.get("/goals", response_model=list[str])
async def list_goals():
    return list(HACKATHON_GOALS)


@app.post("/projects/suggestions", response_model=ProjectSuggestionResponse)
async def suggest_projects(
    body: ProjectSuggestionRequest,
    analyzer: CompatibilityAnalyzer = Depends(get_analyzer),
):
    suggestions = await analyzer.suggest_projects(body.skills, body.interests, body.hackathon_goals)
    return ProjectSuggestionResponse(suggestions=suggestions)


@app.post("/projects/extract-skills", response_model=SkillExtractionResponse)
async def extract_skills(
    body: SkillExtractionRequest,
    analyzer: CompatibilityAnalyzer = Depends(get_analyzer),
):
    skills = await analyzer.extract_skills(body.project_description)
    return SkillExtractionResponse(skills=skills)
