# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_hecate

from typing import Callable, Dict, List, Optional, Set

from loguru import logger

from coreason_hecate.concept_index import ExactMatchIndex
from coreason_hecate.errors import VocabularyError
from coreason_hecate.interfaces import ConceptLookup, PointStore
from coreason_hecate.results import point_to_response
from coreason_hecate.schemas import (
    ConceptRecommendations,
    ConceptSetExpression,
    ConceptSetItem,
    RecommendedConcept,
)

MAX_EXAMPLES = 50
RECOMMEND_SCORE_THRESHOLD = 0.50
RECOMMEND_LIMIT = 500


def collect_cached_point_ids(
    items: List[ConceptSetItem], exact_index: ExactMatchIndex, purpose: str
) -> List[str]:
    """
    First cached point per concept name; further variants of the same name add nothing.
    """
    point_ids: List[str] = []
    for item in items:
        name = item.concept.concept_name
        cached = exact_index.get(name.lower())
        if cached:
            point_ids.append(cached[0])
        else:
            logger.warning(f"{purpose}: concept '{name}' ({item.concept.concept_id}) not found in cache")
    return point_ids


def limit_examples(point_ids: List[str], limit: int, kind: str) -> List[str]:
    if len(point_ids) > limit:
        logger.info(f"Limited {kind} examples from {len(point_ids)} to {limit}")
    return point_ids[:limit]


class ConceptRecommender:
    """
    Suggests concepts similar to the included items of a concept set and unlike its excluded items.

    Suggestions never repeat a concept already reachable from the expression and stay within the
    domains the expression uses. Vocabulary is left to the caller to filter.
    """

    def __init__(self, lookup: ConceptLookup, vector_index: PointStore, exact_index: ExactMatchIndex):
        self.lookup = lookup
        self.vector_index = vector_index
        self.exact_index = exact_index

    def recommend(self, expression: ConceptSetExpression, limit_per_concept: int = 50) -> ConceptRecommendations:
        """
        Args:
            expression: The parsed concept set expression.
            limit_per_concept: Maximum suggestions per source concept (currently unused).
        """
        existing = self.existing_concepts(expression)
        logger.info(f"Found {len(existing)} existing concepts in set to exclude from recommendations")

        top_level_included = [item for item in expression.items if not item.is_excluded]
        excluded = [item for item in expression.items if item.is_excluded]
        allowed_domains = {item.concept.domain_id for item in expression.items}
        used_vocabularies = sorted({item.concept.vocabulary_id for item in expression.items})
        logger.info(f"Allowed domains for recommendations: {sorted(allowed_domains)}")

        positive = collect_cached_point_ids(top_level_included, self.exact_index, "Positive example")
        negative = collect_cached_point_ids(excluded, self.exact_index, "Negative example")
        if not positive:
            return ConceptRecommendations()

        positive = limit_examples(positive, MAX_EXAMPLES, "positive")
        negative = limit_examples(negative, MAX_EXAMPLES, "negative")

        points = self.vector_index.recommend(
            positive, negative, score_threshold=RECOMMEND_SCORE_THRESHOLD, limit=RECOMMEND_LIMIT
        )
        logger.info(f"Recommend query returned {len(points)} points")

        source_concept_id = top_level_included[0].concept.concept_id
        recommendations: List[RecommendedConcept] = []
        already_in_set = wrong_domain = 0
        for point in points:
            group = point_to_response(point)
            if group is None:
                continue
            for concept in group.concepts:
                if concept.concept_id in existing:
                    already_in_set += 1
                    continue
                if concept.domain_id not in allowed_domains:
                    wrong_domain += 1
                    continue
                recommendations.append(
                    RecommendedConcept(
                        concept_id=concept.concept_id,
                        concept_name=concept.concept_name,
                        vocabulary_id=concept.vocabulary_id,
                        domain_id=concept.domain_id,
                        concept_class_id=concept.concept_class_id,
                        concept_code=concept.concept_code,
                        standard_concept=concept.standard_concept or "",
                        invalid_reason=concept.invalid_reason,
                        similarity_score=group.score,
                        source_concept_id=source_concept_id,
                    )
                )

        logger.info(
            f"Filtering results: {len(recommendations)} passed filters, "
            f"{already_in_set} already in set, {wrong_domain} wrong domain"
        )

        recommendations.sort(key=lambda r: r.similarity_score, reverse=True)
        return ConceptRecommendations(
            recommendations=recommendations,
            total_count=len(recommendations),
            used_vocabularies=used_vocabularies,
        )

    def existing_concepts(self, expression: ConceptSetExpression) -> Set[int]:
        """
        Every concept reachable from the expression, included or excluded.

        Expansion failures are skipped; the set then holds what could be gathered.
        """
        existing: Set[int] = {item.concept.concept_id for item in expression.items}

        descendant_ids = [item.concept.concept_id for item in expression.items if item.include_descendants]
        mapped_ids = [item.concept.concept_id for item in expression.items if item.include_mapped]

        for ids, expand in (
            (descendant_ids, self.lookup.get_batch_descendant_concepts),
            (mapped_ids, self.lookup.get_batch_mapped_concepts),
        ):
            if not ids:
                continue
            expanded = self._safe_expand(expand, ids)
            for related in (expanded or {}).values():
                existing.update(related)

        return existing

    @staticmethod
    def _safe_expand(
        expand: Callable[[List[int]], Dict[int, List[int]]], ids: List[int]
    ) -> Optional[Dict[int, List[int]]]:
        try:
            return expand(ids)
        except VocabularyError as e:
            logger.warning(f"Skipping expansion of {len(ids)} concepts for recommendations: {e}")
            return None
