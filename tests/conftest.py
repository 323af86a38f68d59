# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_hecate

import csv
from pathlib import Path
from typing import Generator, List

import duckdb
import lancedb
import pytest
from fakes import MockEmbedder

from coreason_hecate.build import HecateBuilder
from coreason_hecate.interfaces import Embedder
from coreason_hecate.vector_index import VectorIndex
from coreason_hecate.vocabulary import ConnectionPool, VocabularyRepository

# --- Sample vocabulary ---
# 317009: Asthma (SNOMED, standard)
# 45576876: Asthma (ICD10CM, non-standard) -> Maps to 317009
# 4051466: Allergic asthma, 4155469: Childhood asthma (descendants of 317009)
# 312327: Acute myocardial infarction
# 1503297: Metformin, 1125315: Acetaminophen (Drug)

CONCEPT_ROWS = [
    [317009, "Asthma", "Condition", "SNOMED", "Clinical Finding", "S", "195967001", ""],
    [45576876, "Asthma", "Condition", "ICD10CM", "4-char billing code", "", "J45.9", ""],
    [4051466, "Allergic asthma", "Condition", "SNOMED", "Clinical Finding", "S", "389145006", ""],
    [4155469, "Childhood asthma", "Condition", "SNOMED", "Clinical Finding", "S", "233678006", ""],
    [312327, "Acute myocardial infarction", "Condition", "SNOMED", "Clinical Finding", "S", "22298006", ""],
    [1503297, "Metformin", "Drug", "RxNorm", "Ingredient", "S", "6809", ""],
    [1125315, "Acetaminophen", "Drug", "RxNorm", "Ingredient", "S", "161", ""],
]

ANCESTOR_ROWS = [
    [317009, 317009, 0, 0],
    [317009, 4051466, 1, 1],
    [317009, 4155469, 1, 2],
]

RELATIONSHIP_ROWS = [
    [45576876, 317009, "Maps to", "1970-01-01", "2099-12-31", ""],
    [317009, 45576876, "Mapped from", "1970-01-01", "2099-12-31", ""],
    [4051466, 317009, "Is a", "1970-01-01", "2099-12-31", ""],
    [4155469, 317009, "Is a", "1970-01-01", "2099-12-31", "D"],
]

RECOMMENDED_ROWS = [
    [317009, 4051466, "Patient context"],
]


def _write_csv(path: Path, header: List[str], rows: List[List[object]]) -> None:
    with open(path, "w", newline="") as f:
        writer = csv.writer(f)
        writer.writerow(header)
        writer.writerows(rows)


# --- Fixtures ---


@pytest.fixture
def mock_embedder() -> Embedder:
    return MockEmbedder()


@pytest.fixture
def source_csvs(tmp_path: Path) -> Path:
    src = tmp_path / "athena_src"
    src.mkdir()

    _write_csv(
        src / "CONCEPT.csv",
        [
            "concept_id",
            "concept_name",
            "domain_id",
            "vocabulary_id",
            "concept_class_id",
            "standard_concept",
            "concept_code",
            "invalid_reason",
        ],
        CONCEPT_ROWS,
    )
    _write_csv(
        src / "CONCEPT_ANCESTOR.csv",
        ["ancestor_concept_id", "descendant_concept_id", "min_levels_of_separation", "max_levels_of_separation"],
        ANCESTOR_ROWS,
    )
    _write_csv(
        src / "CONCEPT_RELATIONSHIP.csv",
        ["concept_id_1", "concept_id_2", "relationship_id", "valid_start_date", "valid_end_date", "invalid_reason"],
        RELATIONSHIP_ROWS,
    )
    _write_csv(src / "CONCEPT_RECOMMENDED.csv", ["concept_id_1", "concept_id_2", "relationship_id"], RECOMMENDED_ROWS)

    return src


@pytest.fixture
def synthetic_hecate_pack(tmp_path: Path, source_csvs: Path, mock_embedder: Embedder) -> Generator[Path, None, None]:
    """
    A complete Hecate pack built from the sample vocabulary:
    - vocab.duckdb
    - points.lance (one point per distinct concept name)
    - manifest.json
    """
    pack_dir = tmp_path / "hecate_vtest"
    builder = HecateBuilder(source_csvs, pack_dir)
    builder.build_vocab()
    builder.build_points(mock_embedder)
    builder.generate_manifest(version="vTest_Q1")
    yield pack_dir


@pytest.fixture
def vocab_repository(synthetic_hecate_pack: Path) -> Generator[VocabularyRepository, None, None]:
    con = duckdb.connect(str(synthetic_hecate_pack / "vocab.duckdb"), read_only=True)
    yield VocabularyRepository(ConnectionPool(con, size=2, timeout=0.1))
    con.close()


@pytest.fixture
def vector_index(synthetic_hecate_pack: Path) -> VectorIndex:
    return VectorIndex(lancedb.connect(str(synthetic_hecate_pack)))
