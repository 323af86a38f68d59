# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_hecate

from typing import Any, List, Optional

from loguru import logger

from coreason_hecate.analyzer import ConceptSetAnalyzer
from coreason_hecate.concept_index import ExactMatchIndex
from coreason_hecate.config import HecateSettings
from coreason_hecate.embedders import SapBertEmbedder
from coreason_hecate.loader import HecateLoader
from coreason_hecate.schemas import Concept, RelatedConcept, SearchFilters, SearchResponse, ValidationResult
from coreason_hecate.search import HecateSearcher
from coreason_hecate.utils.logger import configure_logging
from coreason_hecate.vector_index import VectorIndex
from coreason_hecate.vocabulary import ConnectionPool, VocabularyRepository


class HecateContext:
    """
    Process-wide holder of the loaded pack and the services built on it.

    The exact-match index is built once here and shared read-only by every request.
    """

    _instance: Optional["HecateContext"] = None

    def __init__(self, settings: HecateSettings):
        configure_logging(settings.log_level)
        logger.info(f"Initializing Hecate Context with pack: {settings.pack_path}")
        self.settings = settings
        self.loader = HecateLoader(settings.pack_path)
        self.duckdb_conn, self.lancedb_conn = self.loader.load()

        self.pool = ConnectionPool(self.duckdb_conn, size=settings.pool_size, timeout=settings.pool_timeout)
        self.vocabulary = VocabularyRepository(self.pool)
        self.vector_index = VectorIndex(self.lancedb_conn, table_name=settings.vector_table)
        self.exact_index = ExactMatchIndex.from_vector_index(self.vector_index)

        self.embedder = SapBertEmbedder(model_name=settings.embedding_model, device=settings.device)

        self.searcher = HecateSearcher(self.vocabulary, self.vector_index, self.exact_index, self.embedder)
        self.analyzer = ConceptSetAnalyzer(self.vocabulary, self.vector_index, self.exact_index)

    @classmethod
    def initialize(cls, settings: HecateSettings) -> None:
        cls._instance = cls(settings)

    @classmethod
    def get_instance(cls) -> "HecateContext":
        if cls._instance is None:
            raise RuntimeError("HecateContext not initialized. Call initialize() first.")
        return cls._instance


# --- Public API Functions ---


def initialize(pack_path: Optional[str] = None, **overrides: Any) -> None:
    """Initializes Hecate from environment settings, optionally overriding the pack path."""
    settings = HecateSettings.from_env()
    if pack_path is not None:
        overrides["pack_path"] = pack_path
    HecateContext.initialize(settings.model_copy(update=overrides))


def hecate_search(
    query: str, filters: Optional[SearchFilters] = None, limit: Optional[int] = None
) -> List[SearchResponse]:
    """
    Resolves a query to ranked concept groups.
    """
    ctx = HecateContext.get_instance()
    return ctx.searcher.search(query, filters=filters, limit=limit)


def hecate_analyze_concept_set(raw_text: str) -> ValidationResult:
    """
    Validates a concept set expression and suggests additional concepts.
    """
    ctx = HecateContext.get_instance()
    return ctx.analyzer.analyze(raw_text)


def hecate_get_concept(concept_id: int) -> Concept:
    ctx = HecateContext.get_instance()
    return ctx.vocabulary.get_concept_by_id(concept_id)


def hecate_get_relationships(concept_id: int) -> List[RelatedConcept]:
    ctx = HecateContext.get_instance()
    return ctx.vocabulary.get_concept_relationships(concept_id)


def hecate_get_phoebe(concept_id: int) -> List[RelatedConcept]:
    ctx = HecateContext.get_instance()
    return ctx.vocabulary.get_concept_phoebe(concept_id)
