from typing import Iterable

from jinja2 import Environment

from domain.ingredients import highlight, matching_ingredients
from domain.models import RecipeCandidate, ResultSet, SearchKind
from domain.scoring import breakdown


class RecipeCard:
    def __init__(
        self,
        recipe: RecipeCandidate,
        *,
        terms: Iterable[str],
        kind: SearchKind,
    ) -> None:
        self.recipe = recipe
        self.terms = tuple(terms)
        self.kind = kind

    @property
    def title(self) -> str:
        return self.recipe.title

    @property
    def rating(self) -> str:
        return f"{self.recipe.average_rating:.1f}"

    @property
    def score(self) -> str | None:
        if self.recipe.similarity_score is None or self.recipe.is_suggested:
            return None
        return f"{round(self.recipe.similarity_score * 100)}%"

    @property
    def matching(self) -> str:
        if self.kind is not SearchKind.ingredients:
            return ""
        return highlight(matching_ingredients(self.recipe, self.terms))

    @property
    def allergens(self) -> str:
        """Excluded ingredients the recipe still has. Only suggestions can."""
        if self.kind is not SearchKind.allergens:
            return ""
        return highlight(matching_ingredients(self.recipe, self.terms))


class SearchResultsView:
    def __init__(
        self,
        result_set: ResultSet,
        *,
        items: Iterable[RecipeCandidate],
        kind: SearchKind,
        raw_query: str,
        environment: Environment,
        error: str | None = None,
        template_name: str = "search-results.html",
    ) -> None:
        self.result_set = result_set
        self.items = list(items)
        self.kind = kind
        self.raw_query = raw_query
        self.error = error
        self.env = environment
        self.name = template_name

    def _cards(self, suggested: bool) -> list[RecipeCard]:
        terms = self.result_set.query.terms
        return [
            RecipeCard(r, terms=terms, kind=self.kind)
            for r in self.items
            if r.is_suggested is suggested
        ]

    @property
    def exact(self) -> list[RecipeCard]:
        return self._cards(False)

    @property
    def suggested(self) -> list[RecipeCard]:
        return self._cards(True)

    @property
    def breakdown(self) -> dict[str, int]:
        if not self.result_set.query:
            return {}
        counts = breakdown(self.items)
        return {tier.value: n for tier, n in counts.items() if n}

    @property
    def title(self) -> str:
        if not self.raw_query.strip():
            return "All recipes"
        if self.kind is SearchKind.allergens:
            return f'Recipes without "{self.raw_query}"'
        return f'Search results for "{self.raw_query}"'

    @property
    def count(self) -> int:
        return len(self.items)

    @property
    def has_suggestions(self) -> bool:
        return any(r.is_suggested for r in self.items)

    def render(self) -> str:
        return self.env.get_template(self.name).render(view=self)
