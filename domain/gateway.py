import logging
from datetime import datetime
from typing import Any, Iterable, Protocol

import httpx
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError

from domain.errors import GatewayError
from domain.models import RecipeCandidate


logger = logging.getLogger(__name__)


TIMEOUT = 60
RECIPES_ENDPOINT = "recipes"


class RecipeGateway(Protocol):
    async def connect(self) -> None:
        ...

    async def disconnect(self) -> None:
        ...

    async def query_by_ingredients(self, terms: Iterable[str]) -> list[RecipeCandidate]:
        ...

    async def query_excluding_ingredients(
        self, terms: Iterable[str]
    ) -> list[RecipeCandidate]:
        ...

    async def query_top_rated(self, limit: int) -> list[RecipeCandidate]:
        ...

    async def query_newest(self, limit: int) -> list[RecipeCandidate]:
        ...


class RecipePayload(BaseModel):
    """One recipe as the recipe API serialises it."""

    model_config = ConfigDict(
        populate_by_name=True, extra="ignore", coerce_numbers_to_str=True
    )

    id: str = Field(validation_alias=AliasChoices("_id", "id"))
    title: str
    ingredients: list[str] = []
    average_rating: float | None = Field(default=None, alias="averageRating")
    created_at: datetime | None = Field(default=None, alias="createdAt")
    total_time: str | None = Field(default=None, alias="totalTime")
    similarity_score: float | None = Field(default=None, alias="similarityScore")

    def to_candidate(self) -> RecipeCandidate:
        return RecipeCandidate(
            id=self.id,
            title=self.title,
            ingredients=self.ingredients,
            average_rating=self.average_rating or 0.0,
            created_at=self.created_at,
            total_time=self.total_time,
            similarity_score=self.similarity_score,
        )


def parse_page(body: Any) -> list[RecipeCandidate]:
    """Candidates from a `{"data": [...], "count": n}` body.

    A body without a `data` list holds no candidates. Items that do not
    validate are skipped.
    """
    data = body.get("data") if isinstance(body, dict) else None
    if not isinstance(data, list):
        logger.warning("Recipe response without a data list: %r", body)
        return []

    candidates: list[RecipeCandidate] = []
    for item in data:
        try:
            payload = RecipePayload.model_validate(item)
        except ValidationError as e:
            logger.warning("Skipping malformed recipe: %s", e)
            continue
        candidates.append(payload.to_candidate())
    return candidates


def recipe_api_client_factory(
    base_url: str,
    token: str | None = None,
    timeout: float = TIMEOUT,
) -> httpx.AsyncClient:
    headers = {"Content-Type": "application/json"}
    if token:
        headers["Authorization"] = f"Bearer {token}"
    return httpx.AsyncClient(base_url=base_url, headers=headers, timeout=timeout)


class HttpRecipeGateway:
    """Recipe repository reached over its REST api."""

    def __init__(
        self,
        *,
        base_url: str | None = None,
        token: str | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        if client is None and base_url is None:
            raise ValueError("Provide a base url or a client.")
        self._client = (
            recipe_api_client_factory(base_url, token)  # type: ignore[arg-type]
            if client is None
            else client
        )

    async def connect(self) -> None:
        pass

    async def disconnect(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, url: str, **kwargs: Any) -> list[RecipeCandidate]:
        try:
            resp = await self._client.request(method, url, **kwargs)
            resp.raise_for_status()
            body = resp.json()
        except httpx.HTTPError as e:
            raise GatewayError(f"Problem querying recipes. {e!r}") from e
        except ValueError as e:
            raise GatewayError(f"Recipe response is not json. {e}") from e
        if isinstance(body, dict) and body.get("error"):
            raise GatewayError(f"Problem querying recipes. {body['error']}")
        return parse_page(body)

    async def query_by_ingredients(self, terms: Iterable[str]) -> list[RecipeCandidate]:
        return await self._request(
            "POST", f"{RECIPES_ENDPOINT}/search", json={"ingredients": list(terms)}
        )

    async def query_excluding_ingredients(
        self, terms: Iterable[str]
    ) -> list[RecipeCandidate]:
        return await self._request(
            "POST",
            f"{RECIPES_ENDPOINT}/search",
            json={"excludeIngredients": list(terms)},
        )

    async def query_top_rated(self, limit: int) -> list[RecipeCandidate]:
        return await self._request(
            "GET", RECIPES_ENDPOINT, params={"sort": "-averageRating", "limit": limit}
        )

    async def query_newest(self, limit: int) -> list[RecipeCandidate]:
        return await self._request(
            "GET", RECIPES_ENDPOINT, params={"sort": "-createdAt", "limit": limit}
        )
