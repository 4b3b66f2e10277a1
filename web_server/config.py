import os
from dataclasses import dataclass
from enum import Enum
from functools import lru_cache

from dotenv import load_dotenv

load_dotenv()


class FieldPolicy(str, Enum):
    """Denominator used when scoring agreement over discrete profile fields."""
    strict = "strict"
    comparable = "comparable"


class MatchMode(str, Enum):
    basic = "basic"
    enhanced = "enhanced"


# ── Fixed weights ────────────────────────────────────────────────────────

@dataclass(frozen=True)
class BasicWeights:
    skill: float = 0.5
    field: float = 0.5


@dataclass(frozen=True)
class EnhancedWeights:
    skill: float = 0.25
    field: float = 0.20
    project: float = 0.25
    goal: float = 0.20
    vibe: float = 0.10


NEUTRAL_SCORE = 0.5
LOW_SIGNAL_FLOOR = 0.1
LOW_SIGNAL_SPAN = 0.2


# ── Environment settings ─────────────────────────────────────────────────

def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    mongodb_url: str = "mongodb://localhost:27017"
    mongodb_db: str = "hackmatch"
    openrouter_api_key: str = ""
    openrouter_model: str = "google/gemini-2.0-flash-001"
    openrouter_url: str = "https://openrouter.ai/api/v1/chat/completions"
    reasoning_timeout_seconds: float = 5.0
    max_concurrency: int = 8
    basic_field_policy: FieldPolicy = FieldPolicy.strict
    enhanced_field_policy: FieldPolicy = FieldPolicy.comparable
    require_complete_profiles: bool = True
    log_level: str = "INFO"

    def field_policy_for(self, mode: MatchMode) -> FieldPolicy:
        if mode == MatchMode.enhanced:
            return self.enhanced_field_policy
        return self.basic_field_policy


@lru_cache
def get_settings() -> Settings:
    """Read settings from the environment (and .env) once per process."""
    return Settings(
        mongodb_url=os.getenv("MONGODB_URL", "mongodb://localhost:27017"),
        mongodb_db=os.getenv("MONGODB_DB", "hackmatch"),
        openrouter_api_key=os.getenv("OPENROUTER_API_KEY", ""),
        openrouter_model=os.getenv("OPENROUTER_MODEL", "google/gemini-2.0-flash-001"),
        openrouter_url=os.getenv(
            "OPENROUTER_URL", "https://openrouter.ai/api/v1/chat/completions"
        ),
        reasoning_timeout_seconds=float(os.getenv("REASONING_TIMEOUT_SECONDS", "5.0")),
        max_concurrency=int(os.getenv("MATCH_MAX_CONCURRENCY", "8")),
        basic_field_policy=FieldPolicy(os.getenv("BASIC_FIELD_POLICY", "strict")),
        enhanced_field_policy=FieldPolicy(os.getenv("ENHANCED_FIELD_POLICY", "comparable")),
        require_complete_profiles=_env_bool("REQUIRE_COMPLETE_PROFILES", True),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )
