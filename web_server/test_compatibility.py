import asyncio
import json
from unittest.mock import AsyncMock

import httpx
import pytest

from conftest import FakeReasoningClient, make_profile
from services.compatibility import (
    FALLBACK_PROJECT_SUGGESTIONS,
    PROMPT_FALLBACK_REASONING,
    CompatibilityAnalyzer,
)
from services.reasoning_client import OpenRouterReasoningClient, ReasoningServiceError, extract_json
from services.stats import RankingStats

PROJECT_OK = {
    "compatibilityScore": 0.9,
    "reasoning": "Both want to build health tooling",
    "suggestedRoles": ["Frontend", "ML"],
    "potentialChallenges": ["Scope"],
}
GOALS_OK = {
    "goalCompatibility": 0.8,
    "teamVibeMatch": 0.6,
    "overallCompatibility": 0.7,
    "reasoning": "Both want to win",
}


# ── Project compatibility ───────────────────────────────────────────────

def test_no_client_gives_neutral_signals():
    analyzer = CompatibilityAnalyzer()
    project = asyncio.run(analyzer.project_compatibility("a", "b", [], []))
    goal = asyncio.run(analyzer.goal_compatibility(["Make new friends"], ["Make new friends"], [], []))
    assert project.score == 0.5 and project.analysis is None
    assert (goal.goal_compatibility, goal.team_vibe_match) == (0.5, 0.5)


def test_missing_text_is_neutral_without_calling_service():
    client = FakeReasoningClient(default_project=PROJECT_OK)
    analyzer = CompatibilityAnalyzer(client)

    signal = asyncio.run(analyzer.project_compatibility("Health app", None, [], []))
    blank = asyncio.run(analyzer.project_compatibility("Health app", "   ", [], []))

    assert signal.score == 0.5
    assert blank.score == 0.5
    assert client.project_calls == []


def test_project_score_and_analysis_pass_through():
    client = FakeReasoningClient(projects={"Fitness tracker": PROJECT_OK})
    analyzer = CompatibilityAnalyzer(client)
    stats = RankingStats()

    signal = asyncio.run(
        analyzer.project_compatibility("Health app", "Fitness tracker", ["React"], ["PyTorch"], stats)
    )

    assert signal.score == 0.9
    assert signal.analysis.suggested_roles == ["Frontend", "ML"]
    assert client.project_calls == [("Health app", "Fitness tracker", ["React"], ["PyTorch"])]
    assert stats.external_calls == 1
    assert stats.external_failures == 0


@pytest.mark.parametrize("answer", [
    RuntimeError("connection reset"),
    "not json at all",
    ["compatibilityScore", 0.9],
    {"reasoning": "no score"},
    {"compatibilityScore": 1.7},
    {"compatibilityScore": -0.2},
])
def test_project_failures_fall_back_to_neutral(answer):
    client = FakeReasoningClient(default_project=answer)
    analyzer = CompatibilityAnalyzer(client)
    stats = RankingStats()

    signal = asyncio.run(analyzer.project_compatibility("x", "y", [], [], stats))

    assert signal.score == 0.5
    assert signal.analysis is None
    assert stats.external_failures == 1
    assert stats.external_failure_rate == 1.0


def test_slow_service_times_out_to_neutral():
    client = FakeReasoningClient(default_project=(1.0, PROJECT_OK))
    analyzer = CompatibilityAnalyzer(client, timeout=0.01)
    stats = RankingStats()

    signal = asyncio.run(analyzer.project_compatibility("x", "y", [], [], stats))

    assert signal.score == 0.5
    assert stats.external_failures == 1


# ── Goal compatibility ──────────────────────────────────────────────────

def test_goal_scores_pass_through():
    client = FakeReasoningClient(default_goal=GOALS_OK)
    analyzer = CompatibilityAnalyzer(client)

    signal = asyncio.run(
        analyzer.goal_compatibility(["Win the competition"], ["Win the competition"], [], [])
    )

    assert signal.goal_compatibility == 0.8
    assert signal.team_vibe_match == 0.6
    assert signal.analysis.overall_compatibility == 0.7


def test_goal_failure_and_missing_goals_are_neutral():
    client = FakeReasoningClient(default_goal=ValueError("boom"))
    analyzer = CompatibilityAnalyzer(client)

    failed = asyncio.run(analyzer.goal_compatibility(["Make new friends"], ["Make new friends"], [], []))
    missing = asyncio.run(analyzer.goal_compatibility([], ["Make new friends"], [], []))

    assert (failed.goal_compatibility, failed.team_vibe_match) == (0.5, 0.5)
    assert (missing.goal_compatibility, missing.team_vibe_match) == (0.5, 0.5)
    assert len(client.goal_calls) == 1


# ── Profile helpers ─────────────────────────────────────────────────────

def test_suggest_projects_formats_ideas():
    client = AsyncMock()
    client.suggest_projects.return_value = {
        "projectIdeas": [
            {"title": "StudyBuddy", "description": "Pair students", "techStack": ["React", "FastAPI"]},
        ]
    }
    analyzer = CompatibilityAnalyzer(client)

    ideas = asyncio.run(analyzer.suggest_projects(["React"], ["EdTech"], ["Make new friends"]))

    assert ideas == ["StudyBuddy: Pair students (React, FastAPI)"]


def test_suggest_projects_falls_back_on_failure():
    client = AsyncMock()
    client.suggest_projects.side_effect = httpx.ConnectError("unreachable")
    analyzer = CompatibilityAnalyzer(client)

    assert asyncio.run(analyzer.suggest_projects([], [], [])) == FALLBACK_PROJECT_SUGGESTIONS


def test_extract_skills():
    client = AsyncMock()
    client.extract_skills.return_value = {"skills": ["Flutter", "Firebase"]}
    analyzer = CompatibilityAnalyzer(client)

    assert asyncio.run(analyzer.extract_skills("A Flutter app on Firebase")) == ["Flutter", "Firebase"]

    client.extract_skills.return_value = {"skills": "Flutter"}
    assert asyncio.run(analyzer.extract_skills("A Flutter app on Firebase")) == []


def test_rank_by_prompt_sorts_and_drops_unknown_ids():
    alice = make_profile(id="alice", skills=["Python"])
    bob = make_profile(id="bob", skills=["React"])
    client = AsyncMock()
    client.rank_by_prompt.return_value = [
        {"userId": "alice", "score": 40, "reasoning": "ok"},
        {"userId": "mallory", "score": 99, "reasoning": "not a candidate"},
        {"userId": "bob", "score": 85, "reasoning": "great frontend"},
    ]
    analyzer = CompatibilityAnalyzer(client)

    ranked = asyncio.run(analyzer.rank_by_prompt("A React dashboard", [alice, bob]))

    assert [m.user_id for m in ranked] == ["bob", "alice"]
    sent = client.rank_by_prompt.call_args.args[1]
    assert [c["id"] for c in sent] == ["alice", "bob"]


def test_rank_by_prompt_failure_keeps_input_order_at_fifty():
    alice = make_profile(id="alice")
    bob = make_profile(id="bob")
    client = AsyncMock()
    client.rank_by_prompt.return_value = {"oops": True}
    analyzer = CompatibilityAnalyzer(client)

    ranked = asyncio.run(analyzer.rank_by_prompt("anything", [alice, bob]))

    assert [(m.user_id, m.score) for m in ranked] == [("alice", 50), ("bob", 50)]
    assert ranked[0].reasoning == PROMPT_FALLBACK_REASONING


# ── OpenRouter client ───────────────────────────────────────────────────

def test_extract_json_handles_fences_and_surrounding_text():
    assert extract_json('```json\n{"a": 1}\n```') == {"a": 1}
    assert extract_json('Sure! Here it is: {"a": [1, 2]} hope that helps') == {"a": [1, 2]}
    assert extract_json('[{"userId": "x", "score": 1}]') == [{"userId": "x", "score": 1}]
    with pytest.raises(ReasoningServiceError):
        extract_json("I cannot help with that")
    with pytest.raises(ReasoningServiceError):
        extract_json("{not: valid}")


def _completion(content: str) -> dict:
    return {"choices": [{"message": {"content": content}}]}


def test_openrouter_client_posts_and_decodes():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["auth"] = request.headers["Authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json=_completion("```json\n" + json.dumps(PROJECT_OK) + "\n```"))

    async def run():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            client = OpenRouterReasoningClient(http, "test-key", model="test/model")
            return await client.compare_projects("Health app", "Fitness tracker", ["React"], [])

    result = asyncio.run(run())

    assert result == PROJECT_OK
    assert seen["auth"] == "Bearer test-key"
    assert seen["body"]["model"] == "test/model"
    assert "Fitness tracker" in seen["body"]["messages"][0]["content"]


def test_openrouter_http_error_is_raised_and_defaulted_by_analyzer():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, json={"error": "overloaded"})

    async def run():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            client = OpenRouterReasoningClient(http, "test-key")
            with pytest.raises(httpx.HTTPStatusError):
                await client.compare_goals(["Win the competition"], ["Win the competition"], [], [])
            analyzer = CompatibilityAnalyzer(client)
            return await analyzer.goal_compatibility(
                ["Win the competition"], ["Win the competition"], [], []
            )

    signal = asyncio.run(run())
    assert (signal.goal_compatibility, signal.team_vibe_match) == (0.5, 0.5)
