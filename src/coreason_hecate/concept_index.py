# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_hecate

from types import MappingProxyType
from typing import Iterable, Mapping, Optional, Tuple

from loguru import logger

from coreason_hecate.vector_index import VectorIndex


class ExactMatchIndex:
    """
    Read-only mapping from lowercased concept name to the vector index points carrying that name.

    Built once at startup and shared by every request; nothing mutates it afterwards.
    """

    def __init__(self, entries: Mapping[str, Iterable[str]]):
        frozen = {name.lower(): tuple(str(i) for i in ids) for name, ids in entries.items()}
        self._entries: Mapping[str, Tuple[str, ...]] = MappingProxyType(frozen)

    @classmethod
    def from_mapping(cls, entries: Mapping[str, Iterable[str]]) -> "ExactMatchIndex":
        return cls(entries)

    @classmethod
    def from_vector_index(cls, vector_index: VectorIndex) -> "ExactMatchIndex":
        logger.info(f"Building exact-match index from '{vector_index.table_name}'")
        index = cls(vector_index.all_names())
        logger.info(f"Exact-match index holds {len(index)} names")
        return index

    def get(self, name: str) -> Optional[Tuple[str, ...]]:
        """Point IDs for `name` (matched case-insensitively), or None."""
        return self._entries.get(name.lower())

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name.lower() in self._entries

    def __len__(self) -> int:
        return len(self._entries)
