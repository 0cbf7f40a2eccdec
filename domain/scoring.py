"""Similarity between a query and the recipes a gateway hands back."""

from collections import Counter
from enum import Enum
from typing import Iterable

from domain.ingredients import mentions
from domain.models import IngredientQuery, RecipeCandidate


PERFECT_MATCH = 0.9
GOOD_MATCH = 0.7


class MatchMode(Enum):
    include = "include"
    exclude = "exclude"


class MatchTier(Enum):
    perfect = "perfect"
    good = "good"
    partial = "partial"
    suggested = "suggested"


def similarity(
    query: IngredientQuery,
    candidate: RecipeCandidate,
    *,
    mode: MatchMode = MatchMode.include,
) -> float:
    if not query:
        return 0.0
    hits = sum(1 for term in query.lowered if mentions(candidate.ingredients, term))
    if mode is MatchMode.exclude:
        hits = len(query) - hits
    return hits / len(query)


def score(
    query: IngredientQuery,
    candidates: Iterable[RecipeCandidate],
    *,
    mode: MatchMode = MatchMode.include,
) -> list[RecipeCandidate]:
    """Attach a score to every candidate that lacks one.

    Scores already supplied by the repository are kept as they are.
    """
    return [
        c
        if c.similarity_score is not None
        else c.replace(similarity_score=similarity(query, c, mode=mode))
        for c in candidates
    ]


def is_match(candidate: RecipeCandidate) -> bool:
    return (candidate.similarity_score or 0.0) > 0.0


def rank(candidates: Iterable[RecipeCandidate]) -> list[RecipeCandidate]:
    """Score descending, then rating descending. Stable."""
    return sorted(
        candidates,
        key=lambda c: (c.similarity_score or 0.0, c.average_rating),
        reverse=True,
    )


def by_rating(candidates: Iterable[RecipeCandidate]) -> list[RecipeCandidate]:
    return sorted(candidates, key=lambda c: c.average_rating, reverse=True)


def tier_of(candidate: RecipeCandidate) -> MatchTier:
    if candidate.is_suggested:
        return MatchTier.suggested
    value = candidate.similarity_score or 0.0
    if value >= PERFECT_MATCH:
        return MatchTier.perfect
    if value >= GOOD_MATCH:
        return MatchTier.good
    return MatchTier.partial


def breakdown(candidates: Iterable[RecipeCandidate]) -> dict[MatchTier, int]:
    counts = Counter(tier_of(c) for c in candidates)
    return {tier: counts.get(tier, 0) for tier in MatchTier}
