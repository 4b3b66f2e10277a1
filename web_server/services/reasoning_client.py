import json
import re
from typing import Any, Optional

import httpx


class ReasoningServiceError(Exception):
    """The reasoning service could not produce a usable JSON answer."""


def extract_json(content: str) -> Any:
    """Pull the first JSON object or array out of a model reply."""
    # Strip markdown fences if present
    content = re.sub(r"^```(?:json)?\s*", "", content.strip())
    content = re.sub(r"\s*```$", "", content.strip())

    match = re.search(r"\{[\s\S]*\}|\[[\s\S]*\]", content)
    if match is None:
        raise ReasoningServiceError("No JSON found in reasoning service reply")
    try:
        return json.loads(match.group(0))
    except json.JSONDecodeError as e:
        raise ReasoningServiceError(f"Malformed JSON from reasoning service: {e}") from e


def _join(items: list[str]) -> str:
    return ", ".join(items) or "none"


class OpenRouterReasoningClient:
    """Chat-completions client for the external reasoning service.

    Each operation returns the raw decoded JSON; callers validate its shape.
    Network, HTTP and parse errors are raised, never swallowed here.
    """

    def __init__(
        self,
        http: httpx.AsyncClient,
        api_key: str,
        model: str = "google/gemini-2.0-flash-001",
        url: str = "https://openrouter.ai/api/v1/chat/completions",
        temperature: float = 0.2,
    ):
        self.http = http
        self.api_key = api_key
        self.model = model
        self.url = url
        self.temperature = temperature

    async def _complete_json(self, prompt: str) -> Any:
        resp = await self.http.post(
            self.url,
            headers={
                "Authorization": f"Bearer {self.api_key}",
                "Content-Type": "application/json",
            },
            json={
                "model": self.model,
                "messages": [{"role": "user", "content": prompt}],
                "temperature": self.temperature,
            },
        )
        resp.raise_for_status()
        try:
            content = resp.json()["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError, ValueError) as e:
            raise ReasoningServiceError(f"Unexpected completion payload: {e}") from e
        return extract_json(content)

    async def compare_projects(
        self,
        project_a: str,
        project_b: str,
        skills_a: list[str],
        skills_b: list[str],
    ) -> Any:
        prompt = f"""You are matching hackathon teammates. Compare two people's project ideas and skills.

PERSON A project ideas: {project_a}
PERSON A skills: {_join(skills_a)}

PERSON B project ideas: {project_b}
PERSON B skills: {_join(skills_b)}

Return ONLY valid JSON with these keys:
"compatibilityScore": number between 0 and 1,
"reasoning": string,
"suggestedRoles": list of strings,
"potentialChallenges": list of strings"""
        return await self._complete_json(prompt)

    async def compare_goals(
        self,
        goals_a: list[str],
        goals_b: list[str],
        skills_a: list[str],
        skills_b: list[str],
    ) -> Any:
        prompt = f"""You are matching hackathon teammates. Compare two people's hackathon goals.

PERSON A goals: {_join(goals_a)}
PERSON A skills: {_join(skills_a)}

PERSON B goals: {_join(goals_b)}
PERSON B skills: {_join(skills_b)}

Return ONLY valid JSON with these keys:
"goalCompatibility": number between 0 and 1,
"teamVibeMatch": number between 0 and 1,
"overallCompatibility": number between 0 and 1,
"reasoning": string"""
        return await self._complete_json(prompt)

    async def suggest_projects(
        self,
        skills: list[str],
        interests: list[str],
        goals: list[str],
    ) -> Any:
        prompt = f"""Suggest 3 hackathon project ideas for this person.

Skills: {_join(skills)}
Interests: {_join(interests)}
Hackathon goals: {_join(goals)}

Return ONLY valid JSON: {{"projectIdeas": [{{"title": string, "description": string, "techStack": list of strings, "difficulty": "beginner" | "intermediate" | "advanced"}}]}}"""
        return await self._complete_json(prompt)

    async def extract_skills(self, project_description: str) -> Any:
        prompt = f"""List the technical skills and technologies this project needs.

{project_description}

Return ONLY valid JSON: {{"skills": list of strings}}"""
        return await self._complete_json(prompt)

    async def rank_by_prompt(self, prompt_text: str, candidates: list[dict]) -> Any:
        prompt = f"""Rate each potential hackathon teammate for this project prompt from 0 to 100.

PROJECT PROMPT: "{prompt_text}"

TEAMMATES:
{json.dumps(candidates, indent=2)}

Return ONLY a JSON array: [{{"userId": string, "score": number, "reasoning": string}}]"""
        return await self._complete_json(prompt)


def build_reasoning_client(
    http: httpx.AsyncClient,
    api_key: Optional[str],
    model: str,
    url: str,
) -> Optional[OpenRouterReasoningClient]:
    """Return a client, or None when no API key is configured."""
    if not api_key:
        return None
    return OpenRouterReasoningClient(http, api_key, model=model, url=url)
