import math
import random
from typing import Sequence

from config import LOW_SIGNAL_FLOOR, LOW_SIGNAL_SPAN, FieldPolicy
from models.profile import MATCH_FIELDS, Profile

# ── Skill similarity ─────────────────────────────────────────────────────

def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine of two equal-length vectors; 0.0 when either has no magnitude."""
    if not a or not b:
        return 0.0
    dot = sum(x * y for x, y in zip(a, b))
    mag_a = math.sqrt(sum(x * x for x in a))
    mag_b = math.sqrt(sum(x * x for x in b))
    if mag_a == 0.0 or mag_b == 0.0:
        return 0.0
    return dot / (mag_a * mag_b)

# ── Field agreement ──────────────────────────────────────────────────────

def field_similarity(a: Profile, b: Profile, policy: FieldPolicy) -> float:
    """Fraction of discrete fields on which both profiles agree.

    A field agrees only when both sides have a value and the values are
    equal. ``FieldPolicy.strict`` divides by every field, so fields missing on
    either side count against the score. ``FieldPolicy.comparable`` divides
    only by fields present on both sides and returns 0.0 when there are none.
    """
    matched = 0
    comparable = 0
    for name in MATCH_FIELDS:
        va = getattr(a, name)
        vb = getattr(b, name)
        if va is None or vb is None:
            continue
        comparable += 1
        if va == vb:
            matched += 1

    if policy == FieldPolicy.strict:
        return matched / len(MATCH_FIELDS)
    if comparable == 0:
        return 0.0
    return matched / comparable

# ── Low-signal fallback ──────────────────────────────────────────────────

def low_signal_score(rng: random.Random) -> float:
    """Baseline in [0.1, 0.3] for candidates with nothing comparable."""
    return LOW_SIGNAL_FLOOR + rng.random() * LOW_SIGNAL_SPAN


def is_low_signal(skill_sim: float, field_sim: float) -> bool:
    return skill_sim == 0.0 and field_sim == 0.0
