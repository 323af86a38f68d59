# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_hecate

from typing import Optional


class HecateError(Exception):
    """
    Base error for failures of the external collaborators (vocabulary store, vector index).

    Input problems are never raised; they are reported in-band on the result objects.
    """

    http_status: int = 500

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.message = message
        self.cause = cause


class PoolExhaustedError(HecateError):
    """No vocabulary connection became available within the pool timeout."""

    http_status = 503


class VocabularyError(HecateError):
    """A query against the relational vocabulary store failed."""

    http_status = 500


class ConceptNotFoundError(HecateError):
    http_status = 404


class VectorIndexError(HecateError):
    """A query against the vector index failed or was malformed."""

    http_status = 502
