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
import uuid
from itertools import groupby
from pathlib import Path
from typing import Any, Dict, Iterator, List, Tuple, Union

import duckdb
import lancedb
from loguru import logger

from coreason_hecate.interfaces import Embedder
from coreason_hecate.loader import MANIFEST_FILENAME, VOCAB_FILENAME, compute_sha256

# Stable point IDs: the same concept name always gets the same UUID.
POINT_NAMESPACE = uuid.UUID("6f1d2c1e-8f3b-5a4e-9c7d-0b2a4e6f8a10")

_STRING_COLUMNS = {
    "CONCEPT": {"concept_code": "VARCHAR", "standard_concept": "VARCHAR", "invalid_reason": "VARCHAR"},
    "CONCEPT_RELATIONSHIP": {"relationship_id": "VARCHAR", "invalid_reason": "VARCHAR"},
}


def point_id_for(concept_name: str) -> str:
    return str(uuid.uuid5(POINT_NAMESPACE, concept_name))


class HecateBuilder:
    """
    Offline builder that compiles raw Athena CSVs into a Hecate pack.

    Artifacts: vocab.duckdb, a LanceDB points table (one point per distinct concept name,
    payload listing every concept with that name) and manifest.json.
    """

    REQUIRED_FILES = ["CONCEPT.csv", "CONCEPT_RELATIONSHIP.csv", "CONCEPT_ANCESTOR.csv"]
    OPTIONAL_FILES = ["CONCEPT_RECOMMENDED.csv"]

    def __init__(self, source_dir: Union[str, Path], output_dir: Union[str, Path]):
        self.source_dir = Path(source_dir)
        self.output_dir = Path(output_dir)

    def _verify_source_files(self) -> None:
        if not self.source_dir.exists():
            raise FileNotFoundError(f"Source directory not found: {self.source_dir}")

        for filename in self.REQUIRED_FILES:
            if not (self.source_dir / filename).exists():
                raise FileNotFoundError(f"Required file not found: {filename}")

    def build_vocab(self) -> Path:
        """
        Builds vocab.duckdb from the source CSVs and indexes the lookup columns.
        """
        self._verify_source_files()
        self.output_dir.mkdir(parents=True, exist_ok=True)

        db_path = self.output_dir / VOCAB_FILENAME
        db_path.unlink(missing_ok=True)
        logger.info(f"Building vocab artifact at {db_path}")

        con = None
        try:
            con = duckdb.connect(str(db_path))
            for filename in self.REQUIRED_FILES:
                self._load_table(con, filename.removesuffix(".csv"))
            for filename in self.OPTIONAL_FILES:
                if (self.source_dir / filename).exists():
                    self._load_table(con, filename.removesuffix(".csv"))
            self._create_indexes(con)

            con.close()
            con = None
            logger.info("Vocab build complete.")
            return db_path

        except Exception as e:
            logger.error(f"Failed to build vocab artifact: {e}")
            if con:
                con.close()
            db_path.unlink(missing_ok=True)
            raise RuntimeError(f"Build failed: {e}") from e

    def _load_table(self, con: duckdb.DuckDBPyConnection, table_name: str) -> None:
        file_path = self.source_dir / f"{table_name}.csv"
        logger.info(f"Loading {table_name} from {file_path}")

        # Codes look numeric in many vocabularies; keep them as text.
        types = _STRING_COLUMNS.get(table_name)
        options = "header=True"
        if types:
            options += ", types=" + "{" + ", ".join(f"'{k}': '{v}'" for k, v in types.items()) + "}"
        con.execute(f"CREATE TABLE {table_name} AS SELECT * FROM read_csv_auto('{file_path}', {options})")
        logger.info(f"Loaded {table_name}")

    def _create_indexes(self, con: duckdb.DuckDBPyConnection) -> None:
        logger.info("Creating indexes...")
        con.execute("CREATE INDEX idx_concept_id ON CONCEPT(concept_id)")
        con.execute("CREATE INDEX idx_concept_code ON CONCEPT(concept_code)")
        con.execute("CREATE INDEX idx_ancestor_id ON CONCEPT_ANCESTOR(ancestor_concept_id)")
        con.execute("CREATE INDEX idx_cr_concept_1 ON CONCEPT_RELATIONSHIP(concept_id_1)")
        con.execute("CREATE INDEX idx_cr_concept_2 ON CONCEPT_RELATIONSHIP(concept_id_2)")
        logger.info("Indexes created.")

    def build_points(self, embedder: Embedder, table_name: str = "points", batch_size: int = 10000) -> int:
        """
        Builds the LanceDB points table from vocab.duckdb, embedding each distinct concept name once.

        Returns:
            The number of points written.
        """
        db_path = self.output_dir / VOCAB_FILENAME
        if not db_path.exists():
            raise FileNotFoundError(f"Vocab artifact not found at: {db_path}. Run build_vocab() first.")

        logger.info(f"Building points in LanceDB at {self.output_dir}")
        con = duckdb.connect(str(db_path), read_only=True)
        try:
            cursor = con.execute("""
                SELECT
                    concept_id,
                    concept_name,
                    domain_id,
                    vocabulary_id,
                    concept_class_id,
                    standard_concept,
                    concept_code,
                    invalid_reason
                FROM CONCEPT
                WHERE concept_name IS NOT NULL AND concept_name != ''
                ORDER BY concept_name, concept_id
            """)

            lance_db = lancedb.connect(str(self.output_dir))
            table = None
            written = 0
            for batch in self._point_batches(cursor, embedder, batch_size):
                if table is None:
                    table = lance_db.create_table(table_name, data=batch, mode="overwrite")
                else:
                    table.add(batch)
                written += len(batch)
                logger.info(f"Processed batch of {len(batch)} points")

            if table is None:
                raise ValueError("No concepts with a name found in the vocabulary")

            logger.info(f"Points table '{table_name}' built with {written} points.")
            return written

        except Exception as e:
            logger.error(f"Failed to build points: {e}")
            raise RuntimeError(f"Points build failed: {e}") from e
        finally:
            con.close()

    def _point_batches(
        self, cursor: duckdb.DuckDBPyConnection, embedder: Embedder, batch_size: int
    ) -> Iterator[List[Dict[str, Any]]]:
        groups: List[Tuple[str, List[Dict[str, Any]]]] = []
        for name, rows in groupby(self._rows(cursor, batch_size), key=lambda r: r[1]):
            groups.append((name, [self._concept_payload(r) for r in rows]))
            if len(groups) >= batch_size:
                yield self._embed_groups(groups, embedder)
                groups = []
        if groups:
            yield self._embed_groups(groups, embedder)

    @staticmethod
    def _rows(cursor: duckdb.DuckDBPyConnection, batch_size: int) -> Iterator[Tuple[Any, ...]]:
        while True:
            rows = cursor.fetchmany(batch_size)
            if not rows:
                return
            yield from rows

    @staticmethod
    def _concept_payload(row: Tuple[Any, ...]) -> Dict[str, Any]:
        return {
            "concept_id": row[0],
            "concept_name": row[1],
            "domain_id": row[2],
            "vocabulary_id": row[3],
            "concept_class_id": row[4],
            "standard_concept": row[5],
            "concept_code": "" if row[6] is None else str(row[6]),
            "invalid_reason": row[7],
        }

    @staticmethod
    def _embed_groups(groups: List[Tuple[str, List[Dict[str, Any]]]], embedder: Embedder) -> List[Dict[str, Any]]:
        try:
            embeddings = embedder.embed_batch([name for name, _ in groups])
        except Exception as e:
            logger.error(f"Failed to embed batch: {e}")
            raise

        return [
            {
                "point_id": point_id_for(name),
                "concept_name": name,
                "concept_name_lower": name.lower(),
                "payload": json.dumps({"concept_name": name, "concepts": concepts}),
                "vector": embeddings[i],
            }
            for i, (name, concepts) in enumerate(groups)
        ]

    def generate_manifest(self, version: str = "v1.0", source_date: str = "2025-01-01") -> Path:
        """
        Writes manifest.json with checksums for the vocab database and every LanceDB table directory.
        """
        checksums: Dict[str, str] = {}

        vocab_path = self.output_dir / VOCAB_FILENAME
        if vocab_path.exists():
            checksums[VOCAB_FILENAME] = compute_sha256(vocab_path)

        for table_dir in sorted(self.output_dir.glob("*.lance")):
            checksums[table_dir.name] = compute_sha256(table_dir)

        manifest_path = self.output_dir / MANIFEST_FILENAME
        with open(manifest_path, "w") as f:
            json.dump({"version": version, "source_date": source_date, "checksums": checksums}, f, indent=2)

        return manifest_path
