"""Ingredient search with progressive broadening.

A search runs up to three stages, one after another:

1. exact: the user's terms against the repository, scored and deduplicated.
2. partial: when exact found fewer than `min_results_before_broaden`, a
   single probe term taken from the primary term.
3. popular: when still under `target_floor`, the top rated recipes.

Anything from stages 2 and 3 is flagged as suggested and ranked after the
exact matches. Only a failure of the exact stage fails the search. An
ingredient search whose primary term is a single letter skips straight to
the popular stage.
"""

import asyncio
import logging
from typing import Awaitable, Callable

from domain import dedup, scoring
from domain.cache import ResultCache
from domain.errors import SearchFailed, SearchSuperseded
from domain.gateway import RecipeGateway
from domain.ingredients import parse_ingredients
from domain.models import (
    CacheEntry,
    IngredientQuery,
    RecipeCandidate,
    ResultSet,
    SearchKind,
)


logger = logging.getLogger(__name__)


TARGET_FLOOR = 15
MIN_RESULTS_BEFORE_BROADEN = 5
PROBE_MIN_LENGTH = 3
SHORT_TERM_LENGTH = 1


type ProbeStrategy = Callable[[IngredientQuery], str | None]


def first_long_word_probe(query: IngredientQuery) -> str | None:
    """First word of the primary term longer than 3 characters, else the term."""
    primary = query.primary
    if primary is None:
        return None
    for word in primary.split():
        if len(word) > PROBE_MIN_LENGTH:
            return word
    return primary


class RecipeSearch:
    def __init__(
        self,
        gateway: RecipeGateway,
        *,
        caches: dict[SearchKind, ResultCache] | None = None,
        target_floor: int = TARGET_FLOOR,
        min_results_before_broaden: int = MIN_RESULTS_BEFORE_BROADEN,
        probe: ProbeStrategy = first_long_word_probe,
        broaden_timeout: float | None = None,
    ) -> None:
        self.gateway = gateway
        self.caches = {} if caches is None else caches
        self.target_floor = target_floor
        self.min_results_before_broaden = min_results_before_broaden
        self.probe = probe
        self.broaden_timeout = broaden_timeout

    async def search(self, raw: str | None) -> ResultSet:
        return await self._run(raw, SearchKind.ingredients)

    async def search_excluding(self, raw: str | None) -> ResultSet:
        return await self._run(raw, SearchKind.allergens)

    async def restore(self, kind: SearchKind) -> tuple[ResultSet, str]:
        """Result set to show on re-entry without a new query.

        The cached one when there is one, the default listing otherwise.
        Returns the set and the raw query it came from.
        """
        cache = self.caches.get(kind)
        entry = cache.get() if cache is not None else None
        if entry is not None:
            return entry.result_set, entry.raw_query
        try:
            return await self._browse(kind), ""
        except Exception as e:
            raise SearchFailed("Search failed.") from e

    def _query_for(
        self, kind: SearchKind
    ) -> Callable[[list[str]], Awaitable[list[RecipeCandidate]]]:
        match kind:
            case SearchKind.ingredients:
                return self.gateway.query_by_ingredients
            case SearchKind.allergens:
                return self.gateway.query_excluding_ingredients

    async def _browse(self, kind: SearchKind) -> ResultSet:
        match kind:
            case SearchKind.ingredients:
                found = await self.gateway.query_newest(self.target_floor)
            case SearchKind.allergens:
                found = await self.gateway.query_top_rated(self.target_floor)
        return ResultSet(query=IngredientQuery(), items=dedup.deduplicate(found))

    async def _run(self, raw: str | None, kind: SearchKind) -> ResultSet:
        query = parse_ingredients(raw)
        cache = self.caches.get(kind)
        token = cache.begin() if cache is not None else None

        try:
            if not query:
                result_set = await self._browse(kind)
            else:
                result_set = await self._broaden(query, kind)
        except Exception as e:
            logger.error("%s search for %r failed: %r", kind.value, raw, e)
            if cache is not None and token is not None:
                cache.commit(token, None)
            raise SearchFailed("Search failed.") from e

        if cache is not None and token is not None:
            # The default listing is not worth restoring, an empty query clears.
            entry = (
                CacheEntry(result_set=result_set, raw_query=raw or "")
                if query
                else None
            )
            if not cache.commit(token, entry):
                logger.info("Dropping superseded %s search for %r", kind.value, raw)
                raise SearchSuperseded(query.canonical)

        return result_set

    def _too_short(self, query: IngredientQuery, kind: SearchKind) -> bool:
        primary = query.primary or ""
        return kind is SearchKind.ingredients and len(primary) <= SHORT_TERM_LENGTH

    async def _broaden(self, query: IngredientQuery, kind: SearchKind) -> ResultSet:
        fetch = self._query_for(kind)
        mode = (
            scoring.MatchMode.exclude
            if kind is SearchKind.allergens
            else scoring.MatchMode.include
        )

        exact: list[RecipeCandidate] = []
        suggested: list[RecipeCandidate] = []

        short = self._too_short(query, kind)
        if short:
            # One letter matches nearly everything, popular recipes only.
            logger.debug("%s too short, skipping to popular", query.canonical)
        else:
            found = await fetch(list(query.terms))
            scored = scoring.score(query, found, mode=mode)
            exact = dedup.deduplicate(
                c.replace(is_suggested=False) for c in scored if scoring.is_match(c)
            )
            logger.debug(
                "%s exact stage: %d of %d", query.canonical, len(exact), len(found)
            )

        if not short and len(exact) < self.min_results_before_broaden:
            probe = self.probe(query)
            if probe:
                extra = await self._stage(
                    "partial", fetch([probe]), exact + suggested
                )
                suggested.extend(extra)
                logger.debug("%s partial stage (%r): %d", query.canonical, probe, len(extra))

        if len(exact) + len(suggested) < self.target_floor:
            extra = await self._stage(
                "popular",
                self.gateway.query_top_rated(self.target_floor),
                exact + suggested,
            )
            suggested.extend(extra)
            logger.debug("%s popular stage: %d", query.canonical, len(extra))

        items = scoring.rank(exact) + scoring.by_rating(suggested)
        return ResultSet(query=query, items=items)

    async def _stage(
        self,
        name: str,
        pending: Awaitable[list[RecipeCandidate]],
        accumulated: list[RecipeCandidate],
    ) -> list[RecipeCandidate]:
        """Run one broadening stage. Failures count as no results."""
        deficit = max(self.target_floor - len(accumulated), 0)
        try:
            found = await asyncio.wait_for(pending, self.broaden_timeout)
        except Exception:
            logger.warning("Broadening stage %s failed", name, exc_info=True)
            return []
        # By id against what is shown, then by title among the rest.
        fresh = dedup.deduplicate(dedup.merge_new(accumulated, found))
        return [c.replace(is_suggested=True) for c in scoring.by_rating(fresh)[:deficit]]
