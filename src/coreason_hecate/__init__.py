# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_hecate

"""
coreason-hecate
"""

__version__ = "0.1.0"
__author__ = "Gowtham A Rao"
__email__ = "gowtham.rao@coreason.ai"

from .analyzer import ConceptSetAnalyzer
from .concept_index import ExactMatchIndex
from .loader import HecateLoader
from .pipeline import (
    hecate_analyze_concept_set,
    hecate_get_concept,
    hecate_get_phoebe,
    hecate_get_relationships,
    hecate_search,
    initialize,
)
from .recommender import ConceptRecommender
from .search import HecateSearcher
from .vector_index import VectorIndex
from .vocabulary import VocabularyRepository

__all__ = [
    "HecateLoader",
    "HecateSearcher",
    "ConceptSetAnalyzer",
    "ConceptRecommender",
    "ExactMatchIndex",
    "VectorIndex",
    "VocabularyRepository",
    "initialize",
    "hecate_search",
    "hecate_analyze_concept_set",
    "hecate_get_concept",
    "hecate_get_relationships",
    "hecate_get_phoebe",
]
