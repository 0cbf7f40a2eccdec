from typing import Iterable

from domain.models import IngredientQuery, RecipeCandidate


def parse_ingredients(raw: str | None) -> IngredientQuery:
    """Comma separated text to a query. Blank input gives an empty query."""
    if not raw:
        return IngredientQuery()
    return IngredientQuery(part.strip() for part in raw.split(",") if part.strip())


def mentions(ingredients: Iterable[str], term: str) -> bool:
    term = term.lower()
    return any(term in ingredient.lower() for ingredient in ingredients)


def matching_ingredients(
    candidate: RecipeCandidate,
    terms: Iterable[str],
) -> list[str]:
    """Ingredients of the candidate that overlap any term, in either direction."""
    lowered = [t.strip().lower() for t in terms if t.strip()]
    if not lowered:
        return []
    matches: list[str] = []
    for ingredient in candidate.ingredients:
        norm = ingredient.strip().lower()
        if norm and any(t in norm or norm in t for t in lowered):
            matches.append(ingredient)
    return matches


def highlight(matches: list[str], *, limit: int = 3) -> str:
    if not matches:
        return ""
    shown = ", ".join(matches[:limit])
    rest = len(matches) - limit
    return f"{shown}, +{rest} more" if rest > 0 else shown
