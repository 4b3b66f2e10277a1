import asyncio
from itertools import count
from typing import Any, Optional

from models.profile import Profile

_ids = count(1)


def make_profile(**fields: Any) -> Profile:
    """A named profile with nothing else filled in unless given."""
    fields.setdefault("id", f"user-{next(_ids)}")
    fields.setdefault("name", f"Hacker {fields['id']}")
    return Profile(**fields)


class FakeReasoningClient:
    """Scripted stand-in for the external reasoning service.

    ``projects`` / ``goals`` map the candidate-side argument (project text or
    tuple of goals) to either a response payload, an exception to raise, or a
    ``(delay_seconds, payload)`` pair.
    """

    def __init__(
        self,
        projects: Optional[dict] = None,
        goals: Optional[dict] = None,
        default_project: Any = None,
        default_goal: Any = None,
    ):
        self.projects = projects or {}
        self.goals = goals or {}
        self.default_project = default_project
        self.default_goal = default_goal
        self.project_calls: list[tuple] = []
        self.goal_calls: list[tuple] = []

    async def _answer(self, scripted: Any) -> Any:
        if isinstance(scripted, tuple):
            delay, scripted = scripted
            await asyncio.sleep(delay)
        if isinstance(scripted, BaseException):
            raise scripted
        return scripted

    async def compare_projects(self, project_a, project_b, skills_a, skills_b):
        self.project_calls.append((project_a, project_b, skills_a, skills_b))
        return await self._answer(self.projects.get(project_b, self.default_project))

    async def compare_goals(self, goals_a, goals_b, skills_a, skills_b):
        self.goal_calls.append((goals_a, goals_b, skills_a, skills_b))
        return await self._answer(self.goals.get(tuple(goals_b), self.default_goal))

    async def suggest_projects(self, skills, interests, goals):
        raise NotImplementedError

    async def extract_skills(self, project_description):
        raise NotImplementedError

    async def rank_by_prompt(self, prompt_text, candidates):
        raise NotImplementedError
