import json
import logging
from datetime import datetime
from typing import Any, Iterable

from databases import Database
from databases.interfaces import Record

from domain.errors import GatewayError
from domain.models import RecipeCandidate


logger = logging.getLogger(__name__)


CREATE_RECIPES_TABLE = """
CREATE TABLE IF NOT EXISTS Recipes (
    id VARCHAR(64) PRIMARY KEY,
    title VARCHAR(256) NOT NULL,
    ingredients VARCHAR(4000) NOT NULL,
    average_rating REAL NOT NULL DEFAULT 0,
    total_time VARCHAR(64),
    created_at VARCHAR(32)
)
"""


CREATE_RECIPE = """
INSERT INTO Recipes(id, title, ingredients, average_rating, total_time, created_at)
VALUES (:id, :title, :ingredients, :average_rating, :total_time, :created_at)
"""


SELECT_RECIPES = "SELECT * FROM Recipes"


TOP_RATED = f"{SELECT_RECIPES} ORDER BY average_rating DESC, title LIMIT :limit"


NEWEST = f"{SELECT_RECIPES} ORDER BY created_at IS NULL, created_at DESC LIMIT :limit"


def _like(term: str) -> str:
    escaped = term.lower().replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def ingredient_filter(terms: Iterable[str], *, exclude: bool = False) -> tuple[str, dict[str, str]]:
    """SQL for "any term appears" or, excluding, "no term appears"."""
    values = {f"t{i}": _like(term) for i, term in enumerate(terms)}
    clauses = [f"lower(ingredients) LIKE :{name} ESCAPE '\\'" for name in values]
    if exclude:
        where = " AND ".join(f"NOT ({c})" for c in clauses)
    else:
        where = " OR ".join(clauses)
    query = f"{SELECT_RECIPES} WHERE {where} ORDER BY average_rating DESC, title"
    return query, values


def _to_candidate(record: Record) -> RecipeCandidate:
    created_at = record["created_at"]
    return RecipeCandidate(
        id=record["id"],
        title=record["title"],
        ingredients=json.loads(record["ingredients"]),
        average_rating=record["average_rating"] or 0.0,
        total_time=record["total_time"],
        created_at=datetime.fromisoformat(created_at) if created_at else None,
    )


class RecipesRepository:
    """Recipes repository."""

    def __init__(self, db: Database) -> None:
        self.db = db

    async def connect(self) -> None:
        await self.db.connect()
        await self.create_db()

    async def disconnect(self) -> None:
        await self.db.disconnect()

    async def create_db(self) -> None:
        await self.db.execute(  # pyright: ignore[reportUnknownMemberType]
            query=CREATE_RECIPES_TABLE
        )

    async def add(self, recipe: RecipeCandidate) -> RecipeCandidate:
        await self.db.execute(  # pyright: ignore[reportUnknownMemberType]
            CREATE_RECIPE,
            values={
                "id": recipe.id,
                "title": recipe.title,
                "ingredients": json.dumps(list(recipe.ingredients), ensure_ascii=False),
                "average_rating": recipe.average_rating,
                "total_time": recipe.total_time,
                "created_at": recipe.created_at.isoformat() if recipe.created_at else None,
            },
        )
        return recipe

    async def _fetch(self, query: str, values: dict[str, Any]) -> list[RecipeCandidate]:
        try:
            result = await self.db.fetch_all(  # pyright: ignore[reportUnknownMemberType]
                query, values=values
            )
        except Exception as e:
            raise GatewayError(f"Problem querying recipes. {e!r}") from e
        logger.debug("%d recipes for %s", len(result), query)
        return [_to_candidate(r) for r in result]

    async def query_by_ingredients(self, terms: Iterable[str]) -> list[RecipeCandidate]:
        terms = list(terms)
        if not terms:
            return []
        return await self._fetch(*ingredient_filter(terms))

    async def query_excluding_ingredients(
        self, terms: Iterable[str]
    ) -> list[RecipeCandidate]:
        terms = list(terms)
        if not terms:
            return await self._fetch(
                f"{SELECT_RECIPES} ORDER BY average_rating DESC, title", {}
            )
        return await self._fetch(*ingredient_filter(terms, exclude=True))

    async def query_top_rated(self, limit: int) -> list[RecipeCandidate]:
        return await self._fetch(TOP_RATED, {"limit": limit})

    async def query_newest(self, limit: int) -> list[RecipeCandidate]:
        return await self._fetch(NEWEST, {"limit": limit})
