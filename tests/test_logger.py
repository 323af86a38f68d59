# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_hecate

import importlib

import pytest
from loguru import logger

from coreason_hecate.utils.logger import configure_logging


def test_logger_module_installs_sink(monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]) -> None:
    """Test that importing the logger module installs a stderr sink at the configured level."""
    monkeypatch.setenv("HECATE_LOG_LEVEL", "WARNING")
    import coreason_hecate.utils.logger

    importlib.reload(coreason_hecate.utils.logger)
    logger.info("hidden message")
    logger.warning("visible message")

    err = capsys.readouterr().err
    assert "visible message" in err
    assert "WARNING" in err
    assert "hidden message" not in err

    with capsys.disabled():
        configure_logging("INFO")


def test_configure_logging_replaces_sinks(capsys: pytest.CaptureFixture[str]) -> None:
    configure_logging("error")
    configure_logging("error")
    logger.warning("not shown")
    logger.error("shown once")

    err = capsys.readouterr().err
    assert err.count("shown once") == 1
    assert "not shown" not in err

    with capsys.disabled():
        configure_logging("INFO")
