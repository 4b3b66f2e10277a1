"""Per-call term-frequency vector space over profile skill tokens.

The vocabulary is rebuilt for every ranking call from the current user and
the surviving candidates. Coordinates are only meaningful inside that call;
only the cosine similarity derived from them is.
"""
from dataclasses import dataclass, field

from models.profile import Profile


@dataclass(frozen=True)
class SkillSpace:
    vocabulary: list[str] = field(default_factory=list)
    # One vector per input profile, same order as the input
    vectors: list[list[int]] = field(default_factory=list)


def tokenize_skills(skills: list[str]) -> list[str]:
    """Split comma-joined entries, then lower-case and trim each token.

    Empty tokens are dropped; repeats are kept. ``["React, Python"]`` and
    ``["React", "Python"]`` tokenize the same.
    """
    tokens = (t.strip().lower() for s in skills for t in s.split(","))
    return [t for t in tokens if t]


def build_skill_space(profiles: list[Profile]) -> SkillSpace:
    """Build the shared vocabulary and one TF vector per profile.

    ``profiles`` is the current user followed by the candidates. Vocabulary
    order is first-seen order across that sequence.
    """
    tokenized = [tokenize_skills(p.skills) for p in profiles]

    index: dict[str, int] = {}
    for tokens in tokenized:
        for token in tokens:
            if token not in index:
                index[token] = len(index)

    vectors = []
    for tokens in tokenized:
        vec = [0] * len(index)
        for token in tokens:
            vec[index[token]] += 1
        vectors.append(vec)

    return SkillSpace(vocabulary=list(index), vectors=vectors)
