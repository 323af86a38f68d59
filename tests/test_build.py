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
from pathlib import Path
from typing import List

import duckdb
import lancedb
import pytest
from fakes import MockEmbedder

from coreason_hecate.build import HecateBuilder, point_id_for
from coreason_hecate.loader import compute_sha256


class FailingEmbedder(MockEmbedder):
    """Embedder that raises an error."""

    def embed_batch(self, texts: List[str]) -> List[List[float]]:
        raise ValueError("Embedding failed")


def test_builder_initialization(tmp_path: Path) -> None:
    builder = HecateBuilder(source_dir=tmp_path, output_dir=tmp_path)
    assert builder.source_dir == tmp_path
    assert builder.output_dir == tmp_path


def test_point_ids_are_stable() -> None:
    assert point_id_for("Asthma") == point_id_for("Asthma")
    assert point_id_for("Asthma") != point_id_for("asthma")


def test_build_vocab_success(source_csvs: Path, tmp_path: Path) -> None:
    """Test successful build of DuckDB artifact."""
    output_dir = tmp_path / "output"
    db_path = HecateBuilder(source_csvs, output_dir).build_vocab()

    assert db_path == output_dir / "vocab.duckdb"
    con = duckdb.connect(str(db_path), read_only=True)
    try:
        count = con.execute("SELECT count(*) FROM concept").fetchone()
        assert count is not None and count[0] == 7

        # Codes stay text even when they look numeric
        code = con.execute("SELECT concept_code FROM concept WHERE concept_id = 1503297").fetchone()
        assert code == ("6809",)

        recommended = con.execute("SELECT count(*) FROM concept_recommended").fetchone()
        assert recommended == (1,)
    finally:
        con.close()


def test_build_vocab_without_optional_table(source_csvs: Path, tmp_path: Path) -> None:
    (source_csvs / "CONCEPT_RECOMMENDED.csv").unlink()
    db_path = HecateBuilder(source_csvs, tmp_path / "output").build_vocab()

    con = duckdb.connect(str(db_path), read_only=True)
    try:
        rows = con.execute("SELECT table_name FROM information_schema.tables WHERE table_schema = 'main'").fetchall()
    finally:
        con.close()
    tables = {row[0].lower() for row in rows}
    assert tables == {"concept", "concept_ancestor", "concept_relationship"}


def test_build_vocab_missing_source(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError, match="Source directory not found"):
        HecateBuilder(tmp_path / "missing", tmp_path / "output").build_vocab()


def test_build_vocab_missing_required_file(source_csvs: Path, tmp_path: Path) -> None:
    (source_csvs / "CONCEPT_ANCESTOR.csv").unlink()
    with pytest.raises(FileNotFoundError, match="CONCEPT_ANCESTOR.csv"):
        HecateBuilder(source_csvs, tmp_path / "output").build_vocab()


def test_build_vocab_bad_csv_cleans_up(source_csvs: Path, tmp_path: Path) -> None:
    (source_csvs / "CONCEPT.csv").write_text("concept_id,concept_code\nnot-a-number,\"unterminated\n")
    output_dir = tmp_path / "output"
    with pytest.raises(RuntimeError, match="Build failed"):
        HecateBuilder(source_csvs, output_dir).build_vocab()
    assert not (output_dir / "vocab.duckdb").exists()


def test_build_points_groups_by_name(source_csvs: Path, tmp_path: Path) -> None:
    """Test that each distinct concept name becomes one point."""
    output_dir = tmp_path / "output"
    builder = HecateBuilder(source_csvs, output_dir)
    builder.build_vocab()

    written = builder.build_points(MockEmbedder(), batch_size=2)
    assert written == 6

    table = lancedb.connect(str(output_dir)).open_table("points")
    rows = {row["concept_name"]: row for row in table.to_arrow().to_pylist()}
    assert len(rows) == 6

    asthma = rows["Asthma"]
    assert asthma["point_id"] == point_id_for("Asthma")
    assert asthma["concept_name_lower"] == "asthma"
    assert len(asthma["vector"]) == 128

    payload = json.loads(asthma["payload"])
    assert payload["concept_name"] == "Asthma"
    assert [c["concept_id"] for c in payload["concepts"]] == [317009, 45576876]
    assert payload["concepts"][0]["concept_code"] == "195967001"
    assert payload["concepts"][1]["standard_concept"] is None


def test_build_points_requires_vocab(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError, match="Run build_vocab"):
        HecateBuilder(tmp_path, tmp_path / "output").build_points(MockEmbedder())


def test_build_points_embedding_failure(source_csvs: Path, tmp_path: Path) -> None:
    builder = HecateBuilder(source_csvs, tmp_path / "output")
    builder.build_vocab()
    with pytest.raises(RuntimeError, match="Points build failed: Embedding failed"):
        builder.build_points(FailingEmbedder())


def test_generate_manifest(source_csvs: Path, tmp_path: Path) -> None:
    output_dir = tmp_path / "output"
    builder = HecateBuilder(source_csvs, output_dir)
    builder.build_vocab()
    builder.build_points(MockEmbedder())

    manifest_path = builder.generate_manifest(version="v2", source_date="2025-06-01")
    manifest = json.loads(manifest_path.read_text())

    assert manifest["version"] == "v2"
    assert manifest["source_date"] == "2025-06-01"
    assert manifest["checksums"] == {
        "vocab.duckdb": compute_sha256(output_dir / "vocab.duckdb"),
        "points.lance": compute_sha256(output_dir / "points.lance"),
    }
