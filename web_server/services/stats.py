from collections import Counter
from dataclasses import dataclass, field


@dataclass
class RankingStats:
    """Counters for a single ranking call.

    Owned by the caller of ``rank``; each call should get a fresh instance.
    """
    candidates_received: int = 0
    excluded: Counter = field(default_factory=Counter)
    scored: int = 0
    fallbacks_applied: int = 0
    external_calls: int = 0
    external_failures: int = 0

    @property
    def external_failure_rate(self) -> float:
        if self.external_calls == 0:
            return 0.0
        return self.external_failures / self.external_calls

    def as_dict(self) -> dict:
        return {
            "candidates_received": self.candidates_received,
            "excluded": dict(self.excluded),
            "scored": self.scored,
            "fallbacks_applied": self.fallbacks_applied,
            "external_calls": self.external_calls,
            "external_failures": self.external_failures,
            "external_failure_rate": round(self.external_failure_rate, 4),
        }
