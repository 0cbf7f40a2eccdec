"""Display-side re-sorting and filtering of a result set. Never re-queries."""

from datetime import timezone
from enum import Enum
from typing import Iterable

from domain.models import RecipeCandidate


class SortOption(Enum):
    best_match = "best_match"
    highest_rated = "highest_rated"
    newest = "newest"


class Duration(Enum):
    all = "all"
    quick = "quick"
    medium = "medium"
    long = "long"


DURATION_MARKERS = {
    Duration.quick: ("<", "15", "10"),
    Duration.medium: ("30", "20"),
    Duration.long: (">", "60", "hour"),
}


def _created(candidate: RecipeCandidate) -> float:
    if candidate.created_at is None:
        return float("-inf")
    created = candidate.created_at
    if created.tzinfo is None:
        created = created.replace(tzinfo=timezone.utc)
    return created.timestamp()


def sort_results(
    items: Iterable[RecipeCandidate],
    option: SortOption = SortOption.best_match,
) -> list[RecipeCandidate]:
    match option:
        case SortOption.best_match:
            return sorted(
                items,
                key=lambda c: (not c.is_suggested, c.similarity_score or 0.0),
                reverse=True,
            )
        case SortOption.highest_rated:
            return sorted(items, key=lambda c: c.average_rating, reverse=True)
        case SortOption.newest:
            return sorted(items, key=_created, reverse=True)


def matches_duration(candidate: RecipeCandidate, duration: Duration) -> bool:
    if duration is Duration.all:
        return True
    if not candidate.total_time:
        return False
    text = candidate.total_time.lower()
    return any(marker in text for marker in DURATION_MARKERS[duration])


def apply_filters(
    items: Iterable[RecipeCandidate],
    *,
    duration: Duration = Duration.all,
    min_rating: float = 0.0,
) -> list[RecipeCandidate]:
    return [
        c
        for c in items
        if matches_duration(c, duration)
        and (min_rating <= 0 or c.average_rating >= min_rating)
    ]
