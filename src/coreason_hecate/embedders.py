# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_hecate

from typing import List

from sentence_transformers import SentenceTransformer

from coreason_hecate.config import DEFAULT_EMBEDDING_MODEL
from coreason_hecate.interfaces import Embedder
from coreason_hecate.utils.logger import logger


class SapBertEmbedder(Embedder):
    """
    Embeds concept names with SapBERT via SentenceTransformer.
    Vectors are L2-normalized so cosine similarity is a dot product.
    Reference: cambridgeltl/SapBERT-from-PubMedBERT-fulltext
    """

    def __init__(self, model_name: str = DEFAULT_EMBEDDING_MODEL, device: str = "cpu") -> None:
        logger.info(f"Loading embedding model: {model_name} on {device}")
        try:
            self.model = SentenceTransformer(model_name, device=device)
        except Exception as e:
            logger.error(f"Failed to load model {model_name}: {e}")
            raise RuntimeError(f"Could not load embedding model: {e}") from e

    def embed(self, text: str) -> List[float]:
        vector = self.model.encode(text, convert_to_numpy=True, normalize_embeddings=True)
        return [float(x) for x in vector.tolist()]

    def embed_batch(self, texts: List[str]) -> List[List[float]]:
        if not texts:
            return []

        vectors = self.model.encode(texts, convert_to_numpy=True, normalize_embeddings=True, show_progress_bar=False)
        return [[float(x) for x in vec.tolist()] for vec in vectors]
