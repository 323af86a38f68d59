# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_hecate

import pytest
from pydantic import ValidationError

from coreason_hecate.config import DEFAULT_EMBEDDING_MODEL, HecateSettings


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "HECATE_PACK_PATH",
        "HECATE_VECTOR_TABLE",
        "HECATE_EMBEDDING_MODEL",
        "HECATE_DEVICE",
        "HECATE_POOL_SIZE",
        "HECATE_POOL_TIMEOUT",
        "HECATE_LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)


def test_defaults() -> None:
    settings = HecateSettings.from_env()
    assert settings.pack_path == "./data/hecate_pack"
    assert settings.vector_table == "points"
    assert settings.embedding_model == DEFAULT_EMBEDDING_MODEL
    assert settings.device == "cpu"
    assert settings.pool_size == 4
    assert settings.pool_timeout == 5.0
    assert settings.log_level == "INFO"


def test_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("HECATE_PACK_PATH", "/srv/hecate")
    monkeypatch.setenv("HECATE_VECTOR_TABLE", "meddra")
    monkeypatch.setenv("HECATE_DEVICE", "cuda")
    monkeypatch.setenv("HECATE_POOL_SIZE", "16")
    monkeypatch.setenv("HECATE_POOL_TIMEOUT", "0.5")
    monkeypatch.setenv("HECATE_LOG_LEVEL", "DEBUG")

    settings = HecateSettings.from_env()
    assert settings.pack_path == "/srv/hecate"
    assert settings.vector_table == "meddra"
    assert settings.device == "cuda"
    assert settings.pool_size == 16
    assert settings.pool_timeout == 0.5
    assert settings.log_level == "DEBUG"


def test_invalid_pool_size(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("HECATE_POOL_SIZE", "0")
    with pytest.raises(ValidationError):
        HecateSettings.from_env()


def test_non_numeric_timeout(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("HECATE_POOL_TIMEOUT", "soon")
    with pytest.raises(ValueError):
        HecateSettings.from_env()
