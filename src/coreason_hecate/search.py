# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_hecate

import re
from enum import Enum
from typing import Callable, Dict, List, Optional

from loguru import logger
from pydantic import BaseModel, Field

from coreason_hecate.concept_index import ExactMatchIndex
from coreason_hecate.interfaces import ConceptLookup, Embedder, PointStore
from coreason_hecate.results import ResultAccumulator
from coreason_hecate.schemas import SearchFilters, SearchResponse

DEFAULT_LIMIT = 100
FALLBACK_MULTIPLIER = 3
MAX_FALLBACK_LIMIT = 150
EXPANSION_SCORE_THRESHOLD = 0.50
EXPANSION_LIMIT = 150

_INT32_MIN, _INT32_MAX = -(2**31), 2**31 - 1
_INTEGER = re.compile(r"[+-]?[0-9]+")


class SearchState(str, Enum):
    CACHE_HIT = "cache_hit"
    RELATIONAL_HIT = "relational_hit"
    SEMANTIC_FALLBACK = "semantic_fallback"
    EXPANSION = "expansion"
    DONE = "done"


class SearchOutcome(BaseModel):
    """
    Result of one search together with the path taken through the cascade.
    """

    query: str
    limit: int
    path: List[SearchState] = Field(default_factory=list)
    candidate_names: List[str] = Field(default_factory=list)
    point_ids: List[str] = Field(default_factory=list)
    results: List[SearchResponse] = Field(default_factory=list)


def parse_concept_number(text: str) -> Optional[int]:
    """Returns the query as a 32-bit integer, or None if it is not one."""
    if not _INTEGER.fullmatch(text):
        return None
    number = int(text)
    if number < _INT32_MIN or number > _INT32_MAX:
        return None
    return number


class HecateSearcher:
    """
    The Search Orchestrator. Resolves a query to ranked, deduplicated result groups.

    Cascade:
    1. Exact-match index hit on the lowercased query -> expansion.
    2. Otherwise resolve candidate names relationally (by number or code); any hit -> expansion.
    3. Otherwise embed the query and return the nearest neighbours directly.

    Expansion fetches the matched points and their recommend-query neighbours.
    """

    def __init__(
        self,
        lookup: ConceptLookup,
        vector_index: PointStore,
        exact_index: ExactMatchIndex,
        embedder: Embedder,
    ):
        self.lookup = lookup
        self.vector_index = vector_index
        self.exact_index = exact_index
        self.embedder = embedder

        self._handlers: Dict[SearchState, Callable[[SearchOutcome, SearchFilters], SearchState]] = {
            SearchState.CACHE_HIT: self._on_cache_hit,
            SearchState.RELATIONAL_HIT: self._on_relational_hit,
            SearchState.SEMANTIC_FALLBACK: self._on_semantic_fallback,
            SearchState.EXPANSION: self._on_expansion,
        }

    def search(
        self, query: str, filters: Optional[SearchFilters] = None, limit: Optional[int] = None
    ) -> List[SearchResponse]:
        return self.run(query, filters=filters, limit=limit).results

    def run(self, query: str, filters: Optional[SearchFilters] = None, limit: Optional[int] = None) -> SearchOutcome:
        text = query.strip()
        outcome = SearchOutcome(query=text, limit=DEFAULT_LIMIT if limit is None else limit)
        filters = filters or SearchFilters()
        logger.info(f"Received search request for {text!r}")

        if not text or outcome.limit <= 0:
            outcome.path.append(SearchState.DONE)
            return outcome

        state = self._initial_state(outcome)
        while state is not SearchState.DONE:
            outcome.path.append(state)
            state = self._handlers[state](outcome, filters)
        outcome.path.append(SearchState.DONE)

        logger.info(f"Search for {text!r} returned {len(outcome.results)} groups via {outcome.path[-2].value}")
        return outcome

    def _initial_state(self, outcome: SearchOutcome) -> SearchState:
        cached = self.exact_index.get(outcome.query.lower())
        if cached is not None:
            outcome.point_ids = list(cached)
            return SearchState.CACHE_HIT

        logger.info("Nothing found in exact-match index")
        number = parse_concept_number(outcome.query)
        if number is not None:
            outcome.candidate_names = self.lookup.get_concept_names_by_number(number)
        else:
            outcome.candidate_names = self.lookup.get_concept_names_by_string(outcome.query)

        if outcome.candidate_names:
            return SearchState.RELATIONAL_HIT
        return SearchState.SEMANTIC_FALLBACK

    def _on_cache_hit(self, outcome: SearchOutcome, filters: SearchFilters) -> SearchState:
        return SearchState.EXPANSION

    def _on_relational_hit(self, outcome: SearchOutcome, filters: SearchFilters) -> SearchState:
        ids: List[str] = []
        for name in outcome.candidate_names:
            lower = name.lower()
            cached = self.exact_index.get(lower)
            if cached is not None:
                ids.extend(cached)
            else:
                ids.extend(p.point_id for p in self.vector_index.scroll("concept_name_lower", lower))
        outcome.point_ids = list(dict.fromkeys(ids))
        return SearchState.EXPANSION

    def _on_semantic_fallback(self, outcome: SearchOutcome, filters: SearchFilters) -> SearchState:
        # Over-fetch to leave room for post-retrieval filtering
        search_limit = min(outcome.limit * FALLBACK_MULTIPLIER, MAX_FALLBACK_LIMIT)
        vector = self.embedder.embed(outcome.query)
        neighbours = self.vector_index.search(vector, search_limit)

        accumulator = ResultAccumulator(filters)
        accumulator.add_points(neighbours)
        outcome.results = accumulator.finish(outcome.limit)
        return SearchState.DONE

    def _on_expansion(self, outcome: SearchOutcome, filters: SearchFilters) -> SearchState:
        if not outcome.point_ids:
            logger.warning(f"No vector index points found for {outcome.query!r}")
            return SearchState.DONE

        fetched = self.vector_index.fetch(outcome.point_ids)
        neighbours = self.vector_index.recommend(
            outcome.point_ids, score_threshold=EXPANSION_SCORE_THRESHOLD, limit=EXPANSION_LIMIT
        )

        accumulator = ResultAccumulator(filters)
        accumulator.add_points(fetched)
        accumulator.add_points(neighbours)
        outcome.results = accumulator.finish(outcome.limit)
        return SearchState.DONE
