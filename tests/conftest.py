import asyncio
from datetime import datetime, timedelta
import itertools
from typing import Any, Callable, Iterable

import pytest

from domain.errors import GatewayError
from domain.ingredients import mentions
from domain.models import RecipeCandidate


_ids = itertools.count(1)


def make_recipe(
    title: str,
    ingredients: Iterable[str] = (),
    *,
    rating: float = 0.0,
    id: str | None = None,
    age_days: int | None = None,
    **kwargs: Any,
) -> RecipeCandidate:
    created_at = (
        datetime(2024, 6, 1) - timedelta(days=age_days) if age_days is not None else None
    )
    return RecipeCandidate(
        id=f"r{next(_ids)}" if id is None else id,
        title=title,
        ingredients=ingredients,
        average_rating=rating,
        created_at=created_at,
        **kwargs,
    )


class FakeGateway:
    """In memory recipe repository that records every call."""

    def __init__(self, recipes: Iterable[RecipeCandidate] = ()) -> None:
        self.recipes = list(recipes)
        self.calls: list[tuple[str, Any]] = []
        self.failing: set[str] = set()
        self.delays: dict[str, float] = {}

    async def _answer(self, name: str, arg: Any, found: list[RecipeCandidate]):
        self.calls.append((name, arg))
        if name in self.delays:
            await asyncio.sleep(self.delays[name])
        if name in self.failing:
            raise GatewayError(f"{name} is down")
        return found

    def _by_rating(self, recipes: Iterable[RecipeCandidate]) -> list[RecipeCandidate]:
        return sorted(recipes, key=lambda r: r.average_rating, reverse=True)

    async def connect(self) -> None:
        pass

    async def disconnect(self) -> None:
        pass

    async def query_by_ingredients(self, terms: Iterable[str]) -> list[RecipeCandidate]:
        terms = list(terms)
        found = [
            r for r in self.recipes if any(mentions(r.ingredients, t) for t in terms)
        ]
        return await self._answer("query_by_ingredients", terms, self._by_rating(found))

    async def query_excluding_ingredients(
        self, terms: Iterable[str]
    ) -> list[RecipeCandidate]:
        terms = list(terms)
        found = [
            r
            for r in self.recipes
            if not any(mentions(r.ingredients, t) for t in terms)
        ]
        return await self._answer(
            "query_excluding_ingredients", terms, self._by_rating(found)
        )

    async def query_top_rated(self, limit: int) -> list[RecipeCandidate]:
        return await self._answer(
            "query_top_rated", limit, self._by_rating(self.recipes)[:limit]
        )

    async def query_newest(self, limit: int) -> list[RecipeCandidate]:
        found = sorted(
            self.recipes,
            key=lambda r: r.created_at or datetime.min,
            reverse=True,
        )
        return await self._answer("query_newest", limit, found[:limit])


FILLERS = [
    ("Beef Stew", ["beef", "carrot", "potato"], 4.9),
    ("Pasta Carbonara", ["pasta", "egg", "bacon"], 4.7),
    ("Greek Salad", ["tomato", "cucumber", "feta"], 4.6),
    ("Mushroom Risotto", ["arborio", "mushroom", "parmesan"], 4.5),
    ("Fish Tacos", ["cod", "tortilla", "cabbage"], 4.4),
    ("Lentil Soup", ["lentils", "onion", "cumin"], 4.3),
    ("Pancakes", ["flour", "milk", "egg"], 4.2),
    ("Veggie Curry", ["chickpeas", "coconut milk", "spinach"], 4.1),
    ("Pad Thai", ["noodles", "peanuts", "tofu"], 4.0),
    ("Shakshuka", ["egg", "tomato", "pepper"], 3.9),
    ("Banana Bread", ["banana", "flour", "butter"], 3.8),
    ("Caesar Salad", ["romaine", "croutons", "parmesan"], 3.7),
    ("Minestrone", ["beans", "pasta", "celery"], 3.6),
    ("Pork Dumplings", ["pork", "cabbage", "ginger"], 3.5),
    ("Ratatouille", ["aubergine", "courgette", "tomato"], 3.4),
    ("Apple Pie", ["apple", "flour", "cinnamon"], 3.3),
    ("Falafel", ["chickpeas", "parsley", "garlic"], 3.2),
]


@pytest.fixture
def recipe() -> Callable[..., RecipeCandidate]:
    return make_recipe


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def pantry() -> FakeGateway:
    """Twenty recipes, three of them with both chicken and rice."""
    recipes = [
        make_recipe("Chicken Fried Rice", ["chicken thigh", "rice", "egg"], rating=4.0, age_days=1),
        make_recipe("Chicken Biryani", ["Chicken", "basmati rice", "yoghurt"], rating=4.8, age_days=2),
        make_recipe("Arroz con Pollo", ["chicken", "rice", "saffron"], rating=3.1, age_days=3),
    ]
    recipes += [
        make_recipe(title, ingredients, rating=rating, age_days=10 + i)
        for i, (title, ingredients, rating) in enumerate(FILLERS)
    ]
    return FakeGateway(recipes)
