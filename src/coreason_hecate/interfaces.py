# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_hecate

from typing import Any, Dict, List, Optional, Protocol, Sequence

from coreason_hecate.schemas import Concept, RelatedConcept, VectorPoint


class Embedder(Protocol):
    """
    Protocol for text embedding models.
    """

    def embed(self, text: str) -> List[float]:
        """
        Embeds a single string into a vector.
        """
        ...

    def embed_batch(self, texts: List[str]) -> List[List[float]]:
        """
        Embeds a list of strings into a list of vectors.
        """
        ...


class ConceptLookup(Protocol):
    """
    Relational vocabulary lookups consumed by search and concept set analysis.
    """

    def get_concept_names_by_number(self, number: int) -> List[str]: ...

    def get_concept_names_by_string(self, text: str) -> List[str]: ...

    def get_concept_by_id(self, concept_id: int) -> Concept: ...

    def get_concept_relationships(self, concept_id: int) -> List[RelatedConcept]: ...

    def get_concept_phoebe(self, concept_id: int) -> List[RelatedConcept]: ...

    def get_batch_descendant_concepts(self, concept_ids: Sequence[int]) -> Dict[int, List[int]]: ...

    def get_batch_mapped_concepts(self, concept_ids: Sequence[int]) -> Dict[int, List[int]]: ...


class PointStore(Protocol):
    """
    Similarity index holding one point per distinct concept name.
    """

    def fetch(self, point_ids: Sequence[str]) -> List[VectorPoint]: ...

    def search(self, vector: List[float], limit: int) -> List[VectorPoint]: ...

    def scroll(self, field: str, value: Any, limit: Optional[int] = None) -> List[VectorPoint]: ...

    def recommend(
        self,
        positive: Sequence[str],
        negative: Sequence[str] = (),
        score_threshold: Optional[float] = None,
        limit: int = 10,
    ) -> List[VectorPoint]: ...
