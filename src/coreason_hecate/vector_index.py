# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_hecate

import json
from typing import Any, Dict, List, Optional, Sequence

import numpy as np
from loguru import logger

from coreason_hecate.errors import VectorIndexError
from coreason_hecate.schemas import VectorPoint

SCROLLABLE_FIELDS = ("point_id", "concept_name", "concept_name_lower")


def _sql_literal(value: Any) -> str:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return "'" + str(value).replace("'", "''") + "'"


def _sql_list(values: Sequence[Any]) -> str:
    return ", ".join(_sql_literal(v) for v in values)


class VectorIndex:
    """
    Similarity index over the LanceDB `points` table.

    Each row is one distinct concept name: point_id, concept_name, concept_name_lower,
    payload (JSON with every concept sharing that name) and its embedding vector.
    Scores are cosine similarities (1 - cosine distance).
    """

    def __init__(self, lancedb_conn: Any, table_name: str = "points", scroll_limit: int = 10):
        self.lancedb_conn = lancedb_conn
        self.table_name = table_name
        self.scroll_limit = scroll_limit

        # Verify table exists
        try:
            self.table = self.lancedb_conn.open_table(self.table_name)
        except Exception as e:
            logger.error(f"Failed to open LanceDB table '{self.table_name}': {e}")
            raise ValueError(f"LanceDB table '{self.table_name}' not found.") from e

    def fetch(self, point_ids: Sequence[str]) -> List[VectorPoint]:
        """
        Retrieves the payloads of the given points, in request order. Unknown IDs are ignored.
        """
        ids = list(dict.fromkeys(point_ids))
        if not ids:
            return []

        rows = self._run(
            lambda: self.table.search()
            .where(f"point_id IN ({_sql_list(ids)})")
            .select(["point_id", "payload"])
            .limit(len(ids))
            .to_list()
        )
        by_id = {row["point_id"]: row for row in rows}
        return [self._to_point(by_id[i]) for i in ids if i in by_id]

    def search(self, vector: List[float], limit: int) -> List[VectorPoint]:
        """Nearest neighbours of `vector`, best first."""
        rows = self._run(
            lambda: self.table.search(vector)
            .distance_type("cosine")
            .select(["point_id", "payload"])
            .limit(limit)
            .to_list()
        )
        return [self._to_point(row, score=1.0 - row["_distance"]) for row in rows]

    def scroll(self, field: str, value: Any, limit: Optional[int] = None) -> List[VectorPoint]:
        """
        Attribute scan: points whose `field` equals `value` exactly.
        """
        if field not in SCROLLABLE_FIELDS:
            raise ValueError(f"Field '{field}' cannot be scanned")

        rows = self._run(
            lambda: self.table.search()
            .where(f"{field} = {_sql_literal(value)}")
            .select(["point_id", "payload"])
            .limit(limit or self.scroll_limit)
            .to_list()
        )
        return [self._to_point(row) for row in rows]

    def recommend(
        self,
        positive: Sequence[str],
        negative: Sequence[str] = (),
        score_threshold: Optional[float] = None,
        limit: int = 10,
    ) -> List[VectorPoint]:
        """
        Points similar to the positive examples and dissimilar to the negative ones.

        The query vector is mean(positive) + (mean(positive) - mean(negative)) when negatives
        are given, otherwise mean(positive). The examples themselves are never returned.
        """
        positive_ids = list(dict.fromkeys(positive))
        negative_ids = list(dict.fromkeys(negative))
        if not positive_ids:
            raise VectorIndexError("At least one positive example is required")

        vectors = self._vectors(positive_ids + negative_ids)
        positive_vectors = [vectors[i] for i in positive_ids if i in vectors]
        negative_vectors = [vectors[i] for i in negative_ids if i in vectors]
        if not positive_vectors:
            raise VectorIndexError(f"None of the {len(positive_ids)} positive examples exist in the index")

        query = np.mean(positive_vectors, axis=0)
        if negative_vectors:
            query = query + (query - np.mean(negative_vectors, axis=0))

        examples = positive_ids + negative_ids
        rows = self._run(
            lambda: self.table.search(query.tolist())
            .distance_type("cosine")
            .where(f"point_id NOT IN ({_sql_list(examples)})", prefilter=True)
            .select(["point_id", "payload"])
            .limit(limit)
            .to_list()
        )

        points = [self._to_point(row, score=1.0 - row["_distance"]) for row in rows]
        if score_threshold is not None:
            points = [p for p in points if p.score is not None and p.score >= score_threshold]
        return points

    def _vectors(self, point_ids: List[str]) -> Dict[str, np.ndarray]:
        rows = self._run(
            lambda: self.table.search()
            .where(f"point_id IN ({_sql_list(point_ids)})")
            .select(["point_id", "vector"])
            .limit(len(point_ids))
            .to_list()
        )
        return {row["point_id"]: np.asarray(row["vector"], dtype=np.float32) for row in rows}

    def all_names(self) -> Dict[str, List[str]]:
        """
        Groups every point ID by lowercased name. Used once at startup to build the exact-match index.
        """
        rows = self._run(lambda: self.table.to_arrow().select(["point_id", "concept_name_lower"]).to_pylist())
        names: Dict[str, List[str]] = {}
        for row in rows:
            names.setdefault(row["concept_name_lower"], []).append(row["point_id"])
        return names

    def _run(self, query: Any) -> Any:
        try:
            return query()
        except Exception as e:
            logger.error(f"Vector index query failed on '{self.table_name}': {e}")
            raise VectorIndexError(f"Vector index query failed: {e}", cause=e) from e

    @staticmethod
    def _to_point(row: Dict[str, Any], score: Optional[float] = None) -> VectorPoint:
        payload: Optional[Dict[str, Any]] = None
        raw = row.get("payload")
        if isinstance(raw, str):
            try:
                decoded = json.loads(raw)
                payload = decoded if isinstance(decoded, dict) else None
            except json.JSONDecodeError:
                logger.warning(f"Point {row.get('point_id')} has an unreadable payload")
        elif isinstance(raw, dict):
            payload = raw
        return VectorPoint(point_id=str(row["point_id"]), score=score, payload=payload)
