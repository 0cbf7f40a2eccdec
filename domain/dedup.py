from typing import Iterable

from domain.models import RecipeCandidate


def deduplicate(candidates: Iterable[RecipeCandidate]) -> list[RecipeCandidate]:
    """Collapse candidates sharing a normalized title.

    The higher rated one wins, ties keep the first seen. A winner takes the
    slot of the title's first appearance. Untitled candidates are dropped.
    """
    kept: dict[str, RecipeCandidate] = {}
    for candidate in candidates:
        if not candidate.title:
            continue
        key = candidate.title_key
        current = kept.get(key)
        if current is None or candidate.average_rating > current.average_rating:
            # dict assignment to an existing key keeps its position
            kept[key] = candidate
    return list(kept.values())


def merge_new(
    accumulated: Iterable[RecipeCandidate],
    incoming: Iterable[RecipeCandidate],
) -> list[RecipeCandidate]:
    """Incoming candidates whose ids are not accumulated yet."""
    seen = {c.id for c in accumulated}
    fresh: list[RecipeCandidate] = []
    for candidate in incoming:
        if candidate.id in seen:
            continue
        seen.add(candidate.id)
        fresh.append(candidate)
    return fresh
