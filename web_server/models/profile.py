import logging
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from db import get_db

logger = logging.getLogger(__name__)


# ── Canonical goals ──────────────────────────────────────────────────────

HACKATHON_GOALS: tuple[str, ...] = (
    "Win the competition",
    "Learn new technologies",
    "Network with other developers",
    "Build a portfolio project",
    "Have fun and be creative",
    "Solve a real-world problem",
    "Get mentorship and feedback",
    "Explore entrepreneurship",
    "Improve technical skills",
    "Make new friends",
)


def normalize_hackathon_goals(goals: list[str]) -> list[str]:
    """Keep only canonical goals, preserving input order."""
    return [g for g in goals if g in HACKATHON_GOALS]


# Discrete fields compared one-to-one when scoring profile agreement
MATCH_FIELDS: tuple[str, ...] = (
    "school", "year", "major",
    "uiux", "pitching", "management",
    "hardware", "cyber", "frontend", "backend",
)

Rating = Optional[int]


# ── Profile ──────────────────────────────────────────────────────────────

class Profile(BaseModel):
    """A user profile as it takes part in matching. Read-only once loaded."""
    model_config = ConfigDict(extra="ignore", frozen=True)

    id: str
    name: Optional[str] = None
    bio: Optional[str] = None
    interests: list[str] = []
    photos: list[str] = []
    github_url: Optional[str] = None
    devpost_url: Optional[str] = None
    linkedin_url: Optional[str] = None

    school: Optional[str] = None
    year: Optional[str] = None
    major: Optional[str] = None
    uiux: Rating = Field(default=None, ge=1, le=3)
    frontend: Rating = Field(default=None, ge=1, le=3)
    backend: Rating = Field(default=None, ge=1, le=3)
    hardware: Rating = Field(default=None, ge=1, le=3)
    cyber: Rating = Field(default=None, ge=1, le=3)
    pitching: Rating = Field(default=None, ge=1, le=3)
    management: Rating = Field(default=None, ge=1, le=3)

    skills: list[str] = []

    project_ideas: Optional[str] = None
    hackathon_goals: list[str] = []
    preferred_team_size: Optional[int] = Field(default=None, ge=1)
    availability_hours: Optional[int] = Field(default=None, ge=0)

    @field_validator("interests", "photos", "skills", "hackathon_goals", mode="before")
    @classmethod
    def _none_as_empty(cls, v):
        # Stored documents use null for "never filled in"
        return [] if v is None else v

    @field_validator("hackathon_goals")
    @classmethod
    def _canonical_goals(cls, v: list[str]) -> list[str]:
        return normalize_hackathon_goals(v)

    @property
    def social_links(self) -> list[str]:
        return [u for u in (self.github_url, self.devpost_url, self.linkedin_url) if u]


# ── Candidate pool reads ─────────────────────────────────────────────────

def _load(doc: dict) -> Optional[Profile]:
    try:
        return Profile(**doc)
    except ValidationError as e:
        # A malformed stored profile is not a candidate
        logger.warning("Skipping invalid profile %s: %d error(s)", doc.get("id"), e.error_count())
        return None


async def get_profile(uid: str) -> Optional[Profile]:
    """Fetch a single profile by id. Returns None if not found or invalid."""
    db = get_db()
    doc = await db.profiles.find_one({"id": uid}, {"_id": 0})
    if doc is None:
        return None
    return _load(doc)


async def list_profiles() -> list[Profile]:
    """Fetch every valid stored profile in insertion order."""
    db = get_db()
    cursor = db.profiles.find({}, {"_id": 0})
    docs = await cursor.to_list(length=None)
    profiles = (_load(doc) for doc in docs)
    return [p for p in profiles if p is not None]


async def get_swiped_ids(uid: str) -> set[str]:
    """Ids of every profile this user has already liked or passed on."""
    db = get_db()
    cursor = db.swipes.find({"swiper_id": uid}, {"_id": 0, "swiped_id": 1})
    docs = await cursor.to_list(length=None)
    return {doc["swiped_id"] for doc in docs}
