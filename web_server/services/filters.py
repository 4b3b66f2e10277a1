import logging
from typing import Iterable, Optional

from models.matching import MatchFilters
from models.profile import Profile
from services.stats import RankingStats

logger = logging.getLogger(__name__)


def is_profile_complete(profile: Profile) -> bool:
    """A profile with no name and nothing else to show is not a candidate."""
    if profile.name and profile.name.strip():
        return True
    return bool((profile.bio and profile.bio.strip()) or profile.interests or profile.social_links)


def exclusion_reason(
    current_user: Profile,
    candidate: Profile,
    filters: MatchFilters,
    exclude_ids: Optional[set[str]] = None,
    require_complete: bool = True,
) -> Optional[str]:
    """Why a candidate is dropped before scoring, or None if it survives."""
    if require_complete and not is_profile_complete(candidate):
        return "incomplete"
    if candidate.id == current_user.id:
        return "self"
    if exclude_ids and candidate.id in exclude_ids:
        return "already_decided"
    if (
        filters.max_team_size is not None
        and candidate.preferred_team_size is not None
        and candidate.preferred_team_size > filters.max_team_size
    ):
        return "team_size"
    if (
        filters.min_availability is not None
        and candidate.availability_hours is not None
        and candidate.availability_hours < filters.min_availability
    ):
        return "availability"
    return None


def filter_candidates(
    current_user: Profile,
    candidates: Iterable[Profile],
    filters: Optional[MatchFilters] = None,
    exclude_ids: Optional[Iterable[str]] = None,
    require_complete: bool = True,
    stats: Optional[RankingStats] = None,
) -> list[Profile]:
    """Drop candidates that fail any hard constraint. Input order is kept."""
    filters = filters or MatchFilters()
    excluded = set(exclude_ids) if exclude_ids is not None else None

    kept: list[Profile] = []
    for cand in candidates:
        reason = exclusion_reason(current_user, cand, filters, excluded, require_complete)
        if reason is None:
            kept.append(cand)
            continue
        logger.debug("Excluding candidate %s: %s", cand.id, reason)
        if stats is not None:
            stats.excluded[reason] += 1
    return kept
