# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_hecate

import coreason_hecate


def test_public_api_exposure() -> None:
    """
    Verify that the core functions and classes are exposed at the package level.
    """
    for symbol in coreason_hecate.__all__:
        assert hasattr(coreason_hecate, symbol), f"{symbol} not exposed in coreason_hecate"


def test_api_functions_callable() -> None:
    for name in ("initialize", "hecate_search", "hecate_analyze_concept_set", "hecate_get_concept"):
        assert callable(getattr(coreason_hecate, name))


def test_version_exposure() -> None:
    assert coreason_hecate.__version__ == "0.1.0"
