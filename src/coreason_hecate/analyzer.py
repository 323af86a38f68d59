# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_hecate

from typing import Callable, Dict, List, Optional, Set, Union

from loguru import logger
from pydantic import ValidationError

from coreason_hecate.concept_index import ExactMatchIndex
from coreason_hecate.errors import HecateError, PoolExhaustedError, VocabularyError
from coreason_hecate.interfaces import ConceptLookup, PointStore
from coreason_hecate.recommender import ConceptRecommender
from coreason_hecate.schemas import (
    ConceptGatheringResult,
    ConceptSetExpression,
    ConceptSetWithMetadata,
    ValidationResult,
)

RECOMMENDATIONS_PER_CONCEPT = 50

ParsedConceptSet = Union[ConceptSetExpression, ConceptSetWithMetadata]


def parse_concept_set(raw_text: str) -> ParsedConceptSet:
    """
    Parses either a bare expression ({"items": [...]}) or one wrapped with metadata
    ({"id": ..., "name": ..., "expression": {"items": [...]}}).
    """
    try:
        return ConceptSetExpression.model_validate_json(raw_text)
    except ValidationError:
        pass

    try:
        return ConceptSetWithMetadata.model_validate_json(raw_text)
    except ValidationError as e:
        raise ValueError("Unable to parse concept set") from e


def gather_direct_concepts(expression: ConceptSetExpression) -> ConceptGatheringResult:
    """
    Direct concept IDs by exclusion flag. Items with include_mapped also seed the mapped lists.
    """
    result = ConceptGatheringResult()
    for item in expression.items:
        concept_id = item.concept.concept_id
        if item.is_excluded:
            result.excluded_concepts.append(concept_id)
            if item.include_mapped:
                result.excluded_mapped.append(concept_id)
        else:
            result.included_concepts.append(concept_id)
            if item.include_mapped:
                result.included_mapped.append(concept_id)

    logger.info(
        f"Gathered direct concepts - Included: {len(result.included_concepts)}, "
        f"Excluded: {len(result.excluded_concepts)}"
    )
    return result


def find_duplicate_ids(expression: ConceptSetExpression) -> List[int]:
    seen: Set[int] = set()
    duplicates: Set[int] = set()
    for item in expression.items:
        concept_id = item.concept.concept_id
        if concept_id in seen:
            duplicates.add(concept_id)
        seen.add(concept_id)
    return sorted(duplicates)


def apply_exclusions(summary: ConceptGatheringResult) -> None:
    """
    Sorts and deduplicates the derived lists, then removes every excluded ID from every included list.
    """
    for field in ("included_descendants", "excluded_descendants", "included_mapped", "excluded_mapped"):
        setattr(summary, field, sorted(set(getattr(summary, field))))

    all_excluded = set(summary.excluded_concepts) | set(summary.excluded_descendants) | set(summary.excluded_mapped)
    summary.included_concepts = [c for c in summary.included_concepts if c not in all_excluded]
    summary.included_descendants = [c for c in summary.included_descendants if c not in all_excluded]
    summary.included_mapped = [c for c in summary.included_mapped if c not in all_excluded]


class ConceptSetAnalyzer:
    """
    Validates a concept set expression and computes its final included/excluded concept IDs.

    Hierarchy expansion is batched: one descendant query and one "Maps to" query per call,
    whatever the size of the expression. When a vector index and exact-match index are
    available the result also carries recommendations.
    """

    def __init__(
        self,
        lookup: ConceptLookup,
        vector_index: Optional[PointStore] = None,
        exact_index: Optional[ExactMatchIndex] = None,
    ):
        self.lookup = lookup
        self.recommender: Optional[ConceptRecommender] = None
        if vector_index is not None and exact_index is not None:
            self.recommender = ConceptRecommender(lookup, vector_index, exact_index)

    def analyze(self, raw_text: str) -> ValidationResult:
        logger.info("Starting concept set analysis")
        result = ValidationResult()

        if not raw_text.strip():
            result.add_error("Concept set cannot be empty")
            return result

        try:
            parsed = parse_concept_set(raw_text)
        except ValueError as e:
            result.add_error(f"Invalid concept set format: {e}")
            return result
        expression = parsed.expression if isinstance(parsed, ConceptSetWithMetadata) else parsed

        if not expression.items:
            result.add_error("Concept set expression contains no items")
            return result

        summary = gather_direct_concepts(expression)
        if not (summary.included_concepts or summary.included_descendants or summary.included_mapped):
            result.add_warning("No concepts are included in this concept set")

        duplicates = find_duplicate_ids(expression)
        if duplicates:
            result.add_warning(
                "Duplicate concept IDs found in expression: " + ", ".join(str(d) for d in duplicates)
            )

        self._expand(
            result,
            expression,
            "include_descendants",
            self.lookup.get_batch_descendant_concepts,
            "descendants",
            summary.included_descendants,
            summary.excluded_descendants,
        )
        self._expand(
            result,
            expression,
            "include_mapped",
            self.lookup.get_batch_mapped_concepts,
            "mapped concepts",
            summary.included_mapped,
            summary.excluded_mapped,
        )

        apply_exclusions(summary)
        logger.info(
            f"Final counts - Included concepts: {len(summary.included_concepts)}, "
            f"Included descendants: {len(summary.included_descendants)}, "
            f"Included mapped: {len(summary.included_mapped)}, "
            f"Excluded concepts: {len(summary.excluded_concepts)}, "
            f"Excluded descendants: {len(summary.excluded_descendants)}, "
            f"Excluded mapped: {len(summary.excluded_mapped)}"
        )
        result.concept_summary = summary

        if self.recommender is not None:
            try:
                result.recommendations = self.recommender.recommend(
                    expression, limit_per_concept=RECOMMENDATIONS_PER_CONCEPT
                )
            except PoolExhaustedError:
                raise
            except HecateError as e:
                logger.warning(f"Could not generate recommendations: {e}")
                result.add_warning(f"Could not generate recommendations: {e}")

        logger.info("Concept set analysis completed")
        return result

    @staticmethod
    def _expand(
        result: ValidationResult,
        expression: ConceptSetExpression,
        flag: str,
        lookup: Callable[[List[int]], Dict[int, List[int]]],
        kind: str,
        included: List[int],
        excluded: List[int],
    ) -> None:
        """
        Routes each item's related concepts into the included or excluded list.

        A failed lookup becomes a warning; what was already gathered is kept.
        """
        items = [item for item in expression.items if getattr(item, flag)]
        if not items:
            return

        try:
            related = lookup(list(dict.fromkeys(item.concept.concept_id for item in items)))
        except VocabularyError as e:
            logger.warning(f"Could not get {kind} for concepts: {e}")
            result.add_warning(f"Could not get {kind} for concepts: {e}")
            return

        for item in items:
            found = related.get(item.concept.concept_id)
            if found is None:
                continue
            logger.info(f"Found {len(found)} {kind} for concept {item.concept.concept_id}")
            (excluded if item.is_excluded else included).extend(found)
