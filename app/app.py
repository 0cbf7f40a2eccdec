import contextlib
from enum import Enum
import functools
import logging
from typing import Any, Awaitable, Callable
import uuid

from databases import Database
from jinja2 import Environment, FileSystemLoader, select_autoescape
from rich.logging import RichHandler
from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import HTMLResponse, JSONResponse, Response
from starlette.routing import Route

from app import config
from app.html.search_results import SearchResultsView
from domain.cache import ResultCache, SessionStore
from domain.errors import SearchFailed, SearchSuperseded
from domain.gateway import HttpRecipeGateway, RecipeGateway
from domain.ingredients import parse_ingredients
from domain.models import RecipeCandidate, ResultSet, SearchKind
from domain.refine import Duration, SortOption, apply_filters, sort_results
from domain.repository import RecipesRepository
from domain.search import RecipeSearch


CONFIG = config.Config()


logging.basicConfig(
    level=CONFIG.log_level,
    format="%(message)s",
    datefmt="[%X]",
    handlers=[RichHandler(rich_tracebacks=True)],
)
logger = logging.getLogger(__name__)


SEARCH_FAILED = "Search failed."


QUERY_PARAMS = {
    SearchKind.ingredients: "ingredients",
    SearchKind.allergens: "allergens",
}


def gateway_factory(cfg: config.Config) -> RecipeGateway:
    if cfg.recipe_api_url:
        return HttpRecipeGateway(base_url=cfg.recipe_api_url, token=cfg.recipe_api_token)
    return RecipesRepository(Database(cfg.db_url))


def aHTMLResponse(route: Callable[..., Awaitable[str | tuple[str, int]]]):
    @functools.wraps(route)
    async def wrapper(*args: Any, **kwargs: Any) -> HTMLResponse:
        resp = await route(*args, **kwargs)
        if not isinstance(resp, tuple):
            html, code = resp, 200
        else:
            html, code = resp
        return HTMLResponse(html, status_code=code)

    return wrapper


class SessionCookie(BaseHTTPMiddleware):
    """Gives every browser a session id, kept in a cookie."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        name = request.app.state.config.session_cookie
        session_id = request.cookies.get(name)
        new = not session_id
        request.state.session_id = uuid.uuid4().hex if new else session_id
        response = await call_next(request)
        if new:
            response.set_cookie(
                name, request.state.session_id, httponly=True, samesite="lax"
            )
        return response


def recipe_search(request: Request) -> RecipeSearch:
    state = request.app.state
    store = state.sessions[request.state.session_id]
    return RecipeSearch(
        state.gateway,
        caches={kind: ResultCache(store, kind) for kind in SearchKind},
        target_floor=state.config.target_floor,
        min_results_before_broaden=state.config.min_results_before_broaden,
        broaden_timeout=state.config.broaden_timeout,
    )


async def run_search(request: Request, kind: SearchKind) -> tuple[ResultSet, str]:
    """Search when the query string carries a query, restore otherwise."""
    searcher = recipe_search(request)
    raw = request.query_params.get(QUERY_PARAMS[kind])
    if raw is None:
        return await searcher.restore(kind)
    match kind:
        case SearchKind.ingredients:
            return await searcher.search(raw), raw
        case SearchKind.allergens:
            return await searcher.search_excluding(raw), raw


def _option[E: Enum](enum: type[E], value: str | None, default: E) -> E:
    try:
        return enum(value) if value else default
    except ValueError:
        return default


def refine(request: Request, result_set: ResultSet) -> list[RecipeCandidate]:
    params = request.query_params
    sort = _option(SortOption, params.get("sort"), SortOption.best_match)
    duration = _option(Duration, params.get("duration"), Duration.all)
    try:
        min_rating = float(params.get("min_rating") or 0)
    except ValueError:
        min_rating = 0.0
    items = sort_results(result_set.items, sort)
    return apply_filters(items, duration=duration, min_rating=min_rating)


async def _search_page(request: Request, kind: SearchKind) -> tuple[str, int]:
    error, code = None, 200
    try:
        result_set, raw = await run_search(request, kind)
    except SearchFailed:
        raw = request.query_params.get(QUERY_PARAMS[kind]) or ""
        result_set = ResultSet(query=parse_ingredients(raw))
        error, code = SEARCH_FAILED, 502
    except SearchSuperseded:
        raw = request.query_params.get(QUERY_PARAMS[kind]) or ""
        result_set = ResultSet(query=parse_ingredients(raw))
        error, code = "A newer search replaced this one.", 409

    view = SearchResultsView(
        result_set,
        items=refine(request, result_set),
        kind=kind,
        raw_query=raw,
        environment=request.app.state.templates,
        error=error,
    )
    return view.render(), code


@aHTMLResponse
async def search(request: Request) -> tuple[str, int]:
    return await _search_page(request, SearchKind.ingredients)


@aHTMLResponse
async def allergen_search(request: Request) -> tuple[str, int]:
    return await _search_page(request, SearchKind.allergens)


async def _search_api(request: Request, kind: SearchKind) -> JSONResponse:
    try:
        result_set, raw = await run_search(request, kind)
    except SearchFailed:
        return JSONResponse({"success": False, "error": SEARCH_FAILED}, status_code=502)
    except SearchSuperseded:
        return JSONResponse({"success": False, "error": "Superseded."}, status_code=409)
    return JSONResponse({"success": True, "raw_query": raw, **result_set.to_dict()})


async def search_api(request: Request) -> JSONResponse:
    return await _search_api(request, SearchKind.ingredients)


async def allergen_search_api(request: Request) -> JSONResponse:
    return await _search_api(request, SearchKind.allergens)


def create_app(
    *,
    cfg: config.Config | None = None,
    gateway: RecipeGateway | None = None,
) -> Starlette:
    cfg = CONFIG if cfg is None else cfg
    gateway = gateway_factory(cfg) if gateway is None else gateway

    @contextlib.asynccontextmanager
    async def lifespan(app: Starlette):
        await app.state.gateway.connect()
        yield
        await app.state.gateway.disconnect()

    app = Starlette(
        debug=True if cfg.env == config.Env.local else False,
        routes=[
            Route("/search", search),
            Route("/allergen-search", allergen_search),
            Route("/api/search", search_api),
            Route("/api/allergen-search", allergen_search_api),
        ],
        middleware=[Middleware(SessionCookie)],
        lifespan=lifespan,
    )

    app.state.config = cfg
    app.state.gateway = gateway
    app.state.sessions = SessionStore(max_sessions=cfg.max_sessions)
    app.state.templates = Environment(
        loader=FileSystemLoader(cfg.html_dir),
        autoescape=select_autoescape(),
    )
    return app


app = create_app()
