import json

import httpx
import pytest

from domain.errors import GatewayError
from domain.gateway import HttpRecipeGateway, parse_page


RECIPE = {
    "_id": "abc",
    "title": "Mock Chicken Recipe",
    "ingredients": ["Chicken breast", "Garlic", "Lemon"],
    "averageRating": 4.8,
    "totalTime": "45 minutes",
    "createdAt": "2024-05-01T10:00:00Z",
}


def gateway_for(handler) -> HttpRecipeGateway:
    client = httpx.AsyncClient(
        base_url="http://recipes.test/api/",
        transport=httpx.MockTransport(handler),
    )
    return HttpRecipeGateway(client=client)


def test_parse_page() -> None:
    got = parse_page({"success": True, "data": [RECIPE], "count": 1})
    assert len(got) == 1
    recipe = got[0]
    assert recipe.id == "abc"
    assert recipe.average_rating == 4.8
    assert recipe.total_time == "45 minutes"
    assert recipe.created_at is not None and recipe.created_at.year == 2024
    assert recipe.similarity_score is None
    assert recipe.is_suggested is False


def test_parse_page_keeps_scores_and_leaves_flags_to_search() -> None:
    item = {**RECIPE, "similarityScore": 0.75, "isSuggested": True}
    got = parse_page({"data": [item]})
    assert got[0].similarity_score == 0.75
    assert got[0].is_suggested is False


def test_parse_page_accepts_numeric_ids() -> None:
    got = parse_page({"data": [{**RECIPE, "_id": 42}, {"id": 7, "title": "Toast"}]})
    assert [r.id for r in got] == ["42", "7"]


@pytest.mark.parametrize(
    "body",
    (
        {"success": True},
        {"data": None},
        {"data": {"_id": "abc"}},
        [RECIPE],
        "nope",
    ),
)
def test_parse_page_malformed_shapes(body) -> None:
    assert parse_page(body) == []


def test_parse_page_skips_bad_items() -> None:
    no_title = {"_id": "x"}
    plain_id = {"id": "y", "title": "Toast", "averageRating": None}
    got = parse_page({"data": [no_title, RECIPE, "junk", plain_id]})
    assert [r.id for r in got] == ["abc", "y"]
    assert got[1].average_rating == 0.0


@pytest.mark.asyncio
async def test_query_by_ingredients_posts_terms() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"success": True, "data": [RECIPE], "count": 1})

    got = await gateway_for(handler).query_by_ingredients(["chicken", "lemon"])

    assert [r.title for r in got] == ["Mock Chicken Recipe"]
    assert seen[0].method == "POST"
    assert seen[0].url.path == "/api/recipes/search"
    assert json.loads(seen[0].content) == {"ingredients": ["chicken", "lemon"]}


@pytest.mark.asyncio
async def test_query_excluding_posts_exclusions() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"data": []})

    assert await gateway_for(handler).query_excluding_ingredients(["peanut"]) == []
    assert json.loads(seen[0].content) == {"excludeIngredients": ["peanut"]}


@pytest.mark.parametrize(
    "method,sort",
    (
        ("query_top_rated", "-averageRating"),
        ("query_newest", "-createdAt"),
    ),
)
@pytest.mark.asyncio
async def test_listing_queries(method: str, sort: str) -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"data": [RECIPE], "count": 1})

    got = await getattr(gateway_for(handler), method)(15)

    assert len(got) == 1
    assert seen[0].method == "GET"
    assert seen[0].url.path == "/api/recipes"
    assert seen[0].url.params["sort"] == sort
    assert seen[0].url.params["limit"] == "15"


@pytest.mark.parametrize(
    "response",
    (
        httpx.Response(500, json={"error": "boom"}),
        httpx.Response(200, text="<html>not json</html>"),
        httpx.Response(200, json={"success": False, "error": "Bad query"}),
    ),
)
@pytest.mark.asyncio
async def test_transport_errors(response: httpx.Response) -> None:
    gateway = gateway_for(lambda request: response)
    with pytest.raises(GatewayError):
        await gateway.query_top_rated(15)


@pytest.mark.asyncio
async def test_network_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("Network Error", request=request)

    with pytest.raises(GatewayError):
        await gateway_for(handler).query_by_ingredients(["egg"])


def test_needs_url_or_client() -> None:
    with pytest.raises(ValueError):
        HttpRecipeGateway()
