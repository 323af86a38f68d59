# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_hecate

import os

from pydantic import BaseModel, Field

DEFAULT_EMBEDDING_MODEL = "cambridgeltl/SapBERT-from-PubMedBERT-fulltext"


class HecateSettings(BaseModel):
    """
    Runtime configuration, read from HECATE_* environment variables.
    """

    pack_path: str = "./data/hecate_pack"
    vector_table: str = "points"
    embedding_model: str = DEFAULT_EMBEDDING_MODEL
    device: str = "cpu"
    pool_size: int = Field(default=4, ge=1)
    pool_timeout: float = Field(default=5.0, gt=0)
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "HecateSettings":
        defaults = cls()
        return cls(
            pack_path=os.getenv("HECATE_PACK_PATH", defaults.pack_path),
            vector_table=os.getenv("HECATE_VECTOR_TABLE", defaults.vector_table),
            embedding_model=os.getenv("HECATE_EMBEDDING_MODEL", defaults.embedding_model),
            device=os.getenv("HECATE_DEVICE", defaults.device),
            pool_size=int(os.getenv("HECATE_POOL_SIZE", str(defaults.pool_size))),
            pool_timeout=float(os.getenv("HECATE_POOL_TIMEOUT", str(defaults.pool_timeout))),
            log_level=os.getenv("HECATE_LOG_LEVEL", defaults.log_level),
        )
