# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_hecate

from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Concept(BaseModel):
    """
    OMOP Concept as stored in the vector index payload and returned by search.
    """

    concept_id: int
    concept_name: str
    domain_id: str
    vocabulary_id: str
    concept_class_id: str
    standard_concept: Optional[str] = None
    concept_code: str
    invalid_reason: Optional[str] = None
    valid_start_date: Optional[str] = None
    valid_end_date: Optional[str] = None

    @classmethod
    def from_row(cls, row: Tuple[Any, ...]) -> "Concept":
        """
        Creates a Concept instance from a DuckDB row tuple.
        Assumes row order: id, name, domain, vocab, class, standard, code, invalid_reason.
        """
        return cls(
            concept_id=row[0],
            concept_name=row[1],
            domain_id=row[2],
            vocabulary_id=row[3],
            concept_class_id=row[4],
            standard_concept=row[5],
            concept_code=row[6],
            invalid_reason=row[7] if len(row) > 7 else None,
        )


class RelatedConcept(BaseModel):
    relationship_id: str
    concept_id: int
    concept_name: str
    vocabulary_id: str


class SearchResponse(BaseModel):
    """
    One row of search output: every concept sharing a (case-insensitive) name.
    """

    concept_name: str
    concept_name_lower: str
    score: float
    concepts: List[Concept]

    def append_concepts(self, concepts: List[Concept]) -> None:
        self.concepts.extend(concepts)


def split_filter_values(value: Any) -> Optional[List[str]]:
    """
    Accepts a single string (comma-separated values allowed) or a list of strings.
    """
    if value is None:
        return None
    if isinstance(value, str):
        value = [value]
    values: List[str] = []
    for raw in value:
        values.extend(part.strip() for part in str(raw).split(",") if part.strip())
    return values


class SearchFilters(BaseModel):
    """
    Optional post-retrieval filters. An absent filter imposes no constraint.
    """

    vocabulary_id: Optional[List[str]] = None
    domain_id: Optional[List[str]] = None
    concept_class_id: Optional[List[str]] = None
    standard_concept: Optional[str] = None

    @field_validator("vocabulary_id", "domain_id", "concept_class_id", mode="before")
    @classmethod
    def _split(cls, value: Any) -> Optional[List[str]]:
        return split_filter_values(value)

    def matches(self, concept: Concept) -> bool:
        if not _matches_any(self.vocabulary_id, concept.vocabulary_id):
            return False

        if self.standard_concept is not None:
            if concept.standard_concept is None:
                if self.standard_concept != "":
                    return False
            elif concept.standard_concept != self.standard_concept:
                return False

        if not _matches_any(self.domain_id, concept.domain_id):
            return False

        return _matches_any(self.concept_class_id, concept.concept_class_id)


def _matches_any(allowed: Optional[List[str]], value: str) -> bool:
    if allowed is None:
        return True
    lowered = value.lower()
    return any(a.lower() == lowered for a in allowed)


class VectorPoint(BaseModel):
    """
    A point returned by the vector index. `score` is None for direct fetches.
    """

    point_id: str
    score: Optional[float] = None
    payload: Optional[Dict[str, Any]] = None


# --- Concept set expressions (ATLAS export format) ---


class ConceptSetConcept(BaseModel):
    """
    Concept as it appears in an ATLAS concept set expression (upper case keys).
    """

    concept_id: int = Field(alias="CONCEPT_ID", ge=-(2**31), le=2**31 - 1)
    concept_name: str = Field(alias="CONCEPT_NAME")
    vocabulary_id: str = Field(alias="VOCABULARY_ID")
    domain_id: str = Field(alias="DOMAIN_ID")
    concept_class_id: str = Field(alias="CONCEPT_CLASS_ID")
    standard_concept: Optional[str] = Field(None, alias="STANDARD_CONCEPT")
    standard_concept_caption: Optional[str] = Field(None, alias="STANDARD_CONCEPT_CAPTION")
    invalid_reason: Optional[str] = Field(None, alias="INVALID_REASON")
    invalid_reason_caption: Optional[str] = Field(None, alias="INVALID_REASON_CAPTION")
    concept_code: Optional[str] = Field(None, alias="CONCEPT_CODE")

    model_config = ConfigDict(populate_by_name=True, strict=True)


class ConceptSetItem(BaseModel):
    concept: ConceptSetConcept
    is_excluded: bool = Field(alias="isExcluded")
    include_descendants: bool = Field(alias="includeDescendants")
    include_mapped: bool = Field(alias="includeMapped")

    model_config = ConfigDict(populate_by_name=True, strict=True)


class ConceptSetExpression(BaseModel):
    items: List[ConceptSetItem]


class ConceptSetWithMetadata(BaseModel):
    id: Optional[int] = None
    name: Optional[str] = None
    expression: ConceptSetExpression


class ConceptGatheringResult(BaseModel):
    """
    Concept IDs gathered from an expression, split by inclusion and origin.
    """

    included_concepts: List[int] = Field(default_factory=list)
    included_descendants: List[int] = Field(default_factory=list)
    included_mapped: List[int] = Field(default_factory=list)
    excluded_concepts: List[int] = Field(default_factory=list)
    excluded_descendants: List[int] = Field(default_factory=list)
    excluded_mapped: List[int] = Field(default_factory=list)

    @property
    def total_included(self) -> int:
        return len(self.included_concepts) + len(self.included_descendants) + len(self.included_mapped)

    @property
    def total_excluded(self) -> int:
        return len(self.excluded_concepts) + len(self.excluded_descendants) + len(self.excluded_mapped)

    def summary(self) -> Dict[str, int]:
        return {
            "included_concepts_count": len(self.included_concepts),
            "included_descendants_count": len(self.included_descendants),
            "included_mapped_count": len(self.included_mapped),
            "excluded_concepts_count": len(self.excluded_concepts),
            "excluded_descendants_count": len(self.excluded_descendants),
            "excluded_mapped_count": len(self.excluded_mapped),
            "total_included": self.total_included,
            "total_excluded": self.total_excluded,
        }


class RecommendedConcept(BaseModel):
    concept_id: int
    concept_name: str
    vocabulary_id: str
    domain_id: str
    concept_class_id: str
    concept_code: str
    standard_concept: str
    invalid_reason: Optional[str] = None
    similarity_score: float
    # The top-level concept that led to this recommendation
    source_concept_id: int


class ConceptRecommendations(BaseModel):
    recommendations: List[RecommendedConcept] = Field(default_factory=list)
    total_count: int = 0
    used_vocabularies: List[str] = Field(default_factory=list)


class ValidationResult(BaseModel):
    """
    Outcome of analyzing one concept set. Only errors affect validity.
    """

    valid: bool = True
    errors: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    concept_summary: Optional[ConceptGatheringResult] = None
    recommendations: Optional[ConceptRecommendations] = None

    def add_error(self, error: str) -> None:
        self.errors.append(error)
        self.valid = False

    def add_warning(self, warning: str) -> None:
        self.warnings.append(warning)

    def to_response(self) -> Dict[str, Any]:
        """Serializes to the analysis response shape (counts instead of ID lists)."""
        return {
            "valid": self.valid,
            "errors": list(self.errors),
            "warnings": list(self.warnings),
            "concept_summary": self.concept_summary.summary() if self.concept_summary else None,
            "recommendations": self.recommendations.model_dump() if self.recommendations else None,
        }


class Manifest(BaseModel):
    version: str
    source_date: str
    checksums: Dict[str, str]
