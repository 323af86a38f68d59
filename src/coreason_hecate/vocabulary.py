# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_hecate

import queue
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Sequence

import duckdb
from loguru import logger

from coreason_hecate.errors import ConceptNotFoundError, PoolExhaustedError, VocabularyError
from coreason_hecate.schemas import Concept, RelatedConcept

_CONCEPT_COLUMNS = """
    concept_id,
    concept_name,
    domain_id,
    vocabulary_id,
    concept_class_id,
    standard_concept,
    concept_code,
    invalid_reason
"""


class ConnectionPool:
    """
    Bounded pool of DuckDB cursors sharing one underlying database.

    Callers that cannot obtain a cursor within `timeout` seconds get a PoolExhaustedError.
    """

    def __init__(self, duckdb_conn: duckdb.DuckDBPyConnection, size: int = 4, timeout: float = 5.0):
        if size < 1:
            raise ValueError("Pool size must be at least 1")
        self.timeout = timeout
        self._available: "queue.Queue[duckdb.DuckDBPyConnection]" = queue.Queue(maxsize=size)
        for _ in range(size):
            self._available.put(duckdb_conn.cursor())

    @contextmanager
    def connection(self) -> Iterator[duckdb.DuckDBPyConnection]:
        try:
            con = self._available.get(timeout=self.timeout)
        except queue.Empty as e:
            logger.error(f"No vocabulary connection available after {self.timeout}s")
            raise PoolExhaustedError("Vocabulary connection pool exhausted", cause=e) from e
        try:
            yield con
        finally:
            self._available.put(con)


class VocabularyRepository:
    """
    Read-only access to the OMOP vocabulary tables (concept, concept_ancestor, concept_relationship).

    Every method issues a single query; batch methods take all concept IDs at once.
    """

    def __init__(self, pool: ConnectionPool):
        self.pool = pool

        # Verify table exists
        try:
            with self.pool.connection() as con:
                con.execute("SELECT 1 FROM concept LIMIT 1")
                row = con.execute(
                    "SELECT count(*) FROM information_schema.tables WHERE lower(table_name) = 'concept_recommended'"
                ).fetchone()
        except duckdb.Error as e:
            logger.error(f"Table 'concept' not found or invalid: {e}")
            raise ValueError("Table 'concept' is missing in the vocabulary.") from e

        self.has_recommended = bool(row and row[0])

    def _fetchall(self, query: str, params: Sequence[Any]) -> List[Any]:
        with self.pool.connection() as con:
            try:
                return con.execute(query, list(params)).fetchall()
            except duckdb.Error as e:
                logger.error(f"Vocabulary query failed: {e}")
                raise VocabularyError(f"Vocabulary query failed: {e}", cause=e) from e

    def get_concept_names_by_number(self, number: int) -> List[str]:
        """
        Names of concepts whose ID is `number` or whose code is its string form.
        """
        logger.info(f"Checking vocabulary for {number}")
        rows = self._fetchall(
            """
            SELECT DISTINCT concept_name
            FROM concept
            WHERE concept_id = ? OR concept_code = ?
            ORDER BY concept_name
            """,
            [number, str(number)],
        )
        return [r[0] for r in rows]

    def get_concept_names_by_string(self, text: str) -> List[str]:
        """
        Names of concepts whose code matches `text` case-insensitively.
        """
        logger.info(f"Checking vocabulary for {text!r}")
        rows = self._fetchall(
            """
            SELECT DISTINCT concept_name
            FROM concept
            WHERE lower(concept_code) = lower(?)
            ORDER BY concept_name
            """,
            [text],
        )
        return [r[0] for r in rows]

    def get_concept_by_id(self, concept_id: int) -> Concept:
        rows = self._fetchall(f"SELECT {_CONCEPT_COLUMNS} FROM concept WHERE concept_id = ?", [concept_id])
        if not rows:
            raise ConceptNotFoundError(f"Concept {concept_id} not found")
        return Concept.from_row(rows[-1])

    def get_concept_relationships(self, concept_id: int) -> List[RelatedConcept]:
        rows = self._fetchall(
            """
            SELECT cr.relationship_id, c.concept_id, c.concept_name, c.vocabulary_id
            FROM concept_relationship cr
            JOIN concept c ON cr.concept_id_2 = c.concept_id
            WHERE cr.concept_id_1 = ?
              AND cr.invalid_reason IS NULL
            ORDER BY cr.relationship_id, c.concept_id
            """,
            [concept_id],
        )
        return [self._related(r) for r in rows]

    def get_concept_phoebe(self, concept_id: int) -> List[RelatedConcept]:
        """
        PHOEBE recommended concepts. Empty when the vocabulary ships no concept_recommended table.
        """
        if not self.has_recommended:
            return []
        rows = self._fetchall(
            """
            SELECT cr.relationship_id, c.concept_id, c.concept_name, c.vocabulary_id
            FROM concept_recommended cr
            JOIN concept c ON cr.concept_id_2 = c.concept_id
            WHERE cr.concept_id_1 = ?
            ORDER BY cr.relationship_id, c.concept_id
            """,
            [concept_id],
        )
        return [self._related(r) for r in rows]

    def get_batch_descendant_concepts(self, concept_ids: Sequence[int]) -> Dict[int, List[int]]:
        """
        Maps every requested ID to its descendants (excluding itself).
        """
        ids = list(dict.fromkeys(concept_ids))
        if not ids:
            return {}

        logger.info(f"Getting descendant concepts for {len(ids)} concepts")
        rows = self._fetchall(
            f"""
            SELECT ancestor_concept_id, descendant_concept_id
            FROM concept_ancestor
            WHERE ancestor_concept_id IN ({",".join(["?"] * len(ids))})
              AND min_levels_of_separation > 0
            ORDER BY ancestor_concept_id, descendant_concept_id
            """,
            ids,
        )
        return self._group(ids, rows)

    def get_batch_mapped_concepts(self, concept_ids: Sequence[int]) -> Dict[int, List[int]]:
        """
        Maps every requested ID to the source concepts that "Maps to" it.
        """
        ids = list(dict.fromkeys(concept_ids))
        if not ids:
            return {}

        logger.info(f"Getting mapped concepts for {len(ids)} concepts")
        rows = self._fetchall(
            f"""
            SELECT cr.concept_id_2, cr.concept_id_1
            FROM concept_relationship cr
            WHERE cr.concept_id_2 IN ({",".join(["?"] * len(ids))})
              AND cr.relationship_id = 'Maps to'
              AND cr.invalid_reason IS NULL
            ORDER BY cr.concept_id_2, cr.concept_id_1
            """,
            ids,
        )
        return self._group(ids, rows)

    @staticmethod
    def _group(ids: List[int], rows: List[Any]) -> Dict[int, List[int]]:
        grouped: Dict[int, List[int]] = {concept_id: [] for concept_id in ids}
        for key, value in rows:
            grouped.setdefault(key, []).append(value)
        return grouped

    @staticmethod
    def _related(row: Any) -> RelatedConcept:
        return RelatedConcept(relationship_id=row[0], concept_id=row[1], concept_name=row[2], vocabulary_id=row[3])
