# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_hecate

from typing import Dict, List, Optional

from loguru import logger
from pydantic import ValidationError

from coreason_hecate.schemas import Concept, SearchFilters, SearchResponse, VectorPoint

# Fetched points carry no similarity; they are exact hits.
EXACT_MATCH_SCORE = 1.0


def point_to_response(point: VectorPoint) -> Optional[SearchResponse]:
    """
    Builds a result group from a point payload.

    Returns None for points whose payload is missing or unusable. Malformed concepts inside
    an otherwise valid payload are dropped individually.
    """
    payload = point.payload
    if not payload or not isinstance(payload.get("concept_name"), str):
        logger.warning(f"Skipping point {point.point_id}: payload has no concept_name")
        return None

    raw_concepts = payload.get("concepts")
    if not isinstance(raw_concepts, list):
        logger.warning(f"Skipping point {point.point_id}: payload has no concepts")
        return None

    concepts: List[Concept] = []
    for raw in raw_concepts:
        try:
            concepts.append(Concept.model_validate(raw))
        except ValidationError as e:
            logger.warning(f"Dropping malformed concept in point {point.point_id}: {e.error_count()} errors")

    name = payload["concept_name"]
    return SearchResponse(
        concept_name=name,
        concept_name_lower=name.lower(),
        score=point.score if point.score is not None else EXACT_MATCH_SCORE,
        concepts=concepts,
    )


class ResultAccumulator:
    """
    Merges result groups by lowercased name, keeping first-seen order and score.
    """

    def __init__(self, filters: Optional[SearchFilters] = None):
        self.filters = filters or SearchFilters()
        self._groups: Dict[str, SearchResponse] = {}

    def add(self, group: SearchResponse) -> bool:
        """
        Filters the group's concepts and merges it. Returns False if filtering emptied it.
        """
        concepts = [c for c in group.concepts if self.filters.matches(c)]
        if not concepts:
            return False

        existing = self._groups.get(group.concept_name_lower)
        if existing is not None:
            existing.append_concepts(concepts)
        else:
            self._groups[group.concept_name_lower] = group.model_copy(update={"concepts": concepts})
        return True

    def add_points(self, points: List[VectorPoint]) -> None:
        for point in points:
            group = point_to_response(point)
            if group is not None:
                self.add(group)

    def finish(self, limit: int) -> List[SearchResponse]:
        """Stable sort by score descending, truncated to `limit`."""
        results = sorted(self._groups.values(), key=lambda g: g.score, reverse=True)
        return results[:limit]

    def __len__(self) -> int:
        return len(self._groups)
