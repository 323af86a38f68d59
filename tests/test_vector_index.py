# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_hecate

from pathlib import Path

import lancedb
import pytest
from fakes import MockEmbedder

from coreason_hecate.build import point_id_for
from coreason_hecate.concept_index import ExactMatchIndex
from coreason_hecate.errors import VectorIndexError
from coreason_hecate.vector_index import VectorIndex

ASTHMA = point_id_for("Asthma")
METFORMIN = point_id_for("Metformin")
NAMES = [
    "Acetaminophen",
    "Acute myocardial infarction",
    "Allergic asthma",
    "Asthma",
    "Childhood asthma",
    "Metformin",
]


def test_fetch_keeps_request_order(vector_index: VectorIndex) -> None:
    points = vector_index.fetch([METFORMIN, "missing", ASTHMA, METFORMIN])
    assert [p.point_id for p in points] == [METFORMIN, ASTHMA]
    assert all(p.score is None for p in points)

    asthma = points[1].payload
    assert asthma is not None
    assert asthma["concept_name"] == "Asthma"
    assert sorted(c["concept_id"] for c in asthma["concepts"]) == [317009, 45576876]


def test_fetch_nothing(vector_index: VectorIndex) -> None:
    assert vector_index.fetch([]) == []


def test_search_ranks_by_cosine_similarity(vector_index: VectorIndex) -> None:
    points = vector_index.search(MockEmbedder().embed("Metformin"), 3)
    assert len(points) == 3
    assert points[0].point_id == METFORMIN
    assert points[0].score == pytest.approx(1.0, abs=1e-4)
    scores = [p.score for p in points]
    assert scores == sorted(scores, reverse=True)  # type: ignore[type-var]


def test_scroll_exact_name(vector_index: VectorIndex) -> None:
    points = vector_index.scroll("concept_name_lower", "asthma")
    assert [p.point_id for p in points] == [ASTHMA]
    assert vector_index.scroll("concept_name_lower", "Asthma") == []


def test_scroll_quotes_values(vector_index: VectorIndex) -> None:
    assert vector_index.scroll("concept_name", "Crohn's disease") == []


def test_scroll_rejects_unknown_field(vector_index: VectorIndex) -> None:
    with pytest.raises(ValueError, match="cannot be scanned"):
        vector_index.scroll("payload", "x")


def test_recommend_excludes_examples(vector_index: VectorIndex) -> None:
    points = vector_index.recommend([ASTHMA], [METFORMIN], score_threshold=None, limit=10)
    ids = {p.point_id for p in points}
    assert ASTHMA not in ids
    assert METFORMIN not in ids
    assert len(points) == len(NAMES) - 2
    assert all(p.score is not None for p in points)


def test_recommend_applies_threshold(vector_index: VectorIndex) -> None:
    assert vector_index.recommend([ASTHMA], score_threshold=1.01) == []

    points = vector_index.recommend([ASTHMA], score_threshold=0.5, limit=2)
    assert len(points) <= 2
    assert all(p.score is not None and p.score >= 0.5 for p in points)


def test_recommend_requires_positive_examples(vector_index: VectorIndex) -> None:
    with pytest.raises(VectorIndexError):
        vector_index.recommend([])
    with pytest.raises(VectorIndexError, match="positive examples"):
        vector_index.recommend(["missing"])


def test_all_names(vector_index: VectorIndex) -> None:
    names = vector_index.all_names()
    assert sorted(names) == sorted(n.lower() for n in NAMES)
    assert names["asthma"] == [ASTHMA]


def test_exact_match_index_from_vector_index(vector_index: VectorIndex) -> None:
    index = ExactMatchIndex.from_vector_index(vector_index)
    assert len(index) == len(NAMES)
    assert index.get("ASTHMA") == (ASTHMA,)


def test_missing_table(synthetic_hecate_pack: Path) -> None:
    with pytest.raises(ValueError, match="not found"):
        VectorIndex(lancedb.connect(str(synthetic_hecate_pack)), table_name="nope")


def test_unreadable_payload_is_dropped() -> None:
    point = VectorIndex._to_point({"point_id": "p1", "payload": "{not json"})
    assert point.point_id == "p1"
    assert point.payload is None

    point = VectorIndex._to_point({"point_id": "p2", "payload": "[1, 2]"}, score=0.4)
    assert point.payload is None
    assert point.score == 0.4
