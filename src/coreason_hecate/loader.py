# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_hecate

import hashlib
import json
import os
from pathlib import Path
from typing import Any, List, Tuple, Union

import duckdb
import lancedb
from loguru import logger

from coreason_hecate.schemas import Manifest

VOCAB_FILENAME = "vocab.duckdb"
MANIFEST_FILENAME = "manifest.json"


def compute_sha256(path: Path) -> str:
    """
    SHA256 of a file, or a deterministic digest of a directory (relative paths + file hashes, sorted).
    """
    if not path.is_dir():
        sha256 = hashlib.sha256()
        with open(path, "rb") as f:
            for block in iter(lambda: f.read(4096), b""):
                sha256.update(block)
        return sha256.hexdigest()

    entries: List[Tuple[str, Path]] = []
    for root, _, files in os.walk(path):
        for file in files:
            full = Path(root) / file
            entries.append((str(full.relative_to(path)), full))
    entries.sort(key=lambda x: x[0])

    sha256 = hashlib.sha256()
    for rel, full in entries:
        sha256.update(rel.encode("utf-8"))
        sha256.update(compute_sha256(full).encode("utf-8"))
    return sha256.hexdigest()


class HecateLoader:
    """
    Loads a Hecate pack (vocab.duckdb + LanceDB points table) after verifying its manifest checksums.
    """

    def __init__(self, pack_path: Union[str, Path]):
        self.pack_path = Path(pack_path)
        if not self.pack_path.exists():
            raise FileNotFoundError(f"Hecate pack not found at: {self.pack_path}")

        self.manifest_path = self.pack_path / MANIFEST_FILENAME
        self.manifest: Manifest | None = None

    def load_manifest(self) -> Manifest:
        if not self.manifest_path.exists():
            raise FileNotFoundError(f"Manifest not found at: {self.manifest_path}")

        try:
            with open(self.manifest_path, "r") as f:
                data = json.load(f)
            self.manifest = Manifest(**data)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in manifest: {e}") from e
        except Exception as e:
            raise ValueError(f"Failed to parse manifest: {e}") from e

        return self.manifest

    def verify_integrity(self) -> bool:
        """
        Verifies the checksum of every artifact listed in the manifest.
        Raises ValueError on mismatch, path traversal or symlinked artifacts.
        """
        manifest = self.manifest or self.load_manifest()
        logger.info(f"Verifying integrity for Hecate pack: {manifest.version}")

        pack_root = self.pack_path.resolve()
        for filename, expected_hash in manifest.checksums.items():
            file_path = self.pack_path / filename

            if not file_path.resolve().is_relative_to(pack_root):
                raise ValueError(f"Security Violation: Path traversal detected in {filename}")

            if not file_path.exists():
                raise FileNotFoundError(f"Artifact not found: {filename}")

            if file_path.is_symlink():
                raise ValueError(f"Security Violation: Symlinks not allowed for artifact {filename}")

            calculated_hash = compute_sha256(file_path)
            if calculated_hash != expected_hash:
                logger.error(f"Checksum mismatch for {filename}. Expected {expected_hash}, got {calculated_hash}")
                raise ValueError(f"Integrity check failed for {filename}")

        logger.info("Integrity check passed.")
        return True

    def load(self) -> Tuple[duckdb.DuckDBPyConnection, Any]:
        """
        Verifies integrity and returns (read-only DuckDB connection, LanceDB connection).
        """
        self.verify_integrity()

        duckdb_path = self.pack_path / VOCAB_FILENAME
        logger.info(f"Connecting to DuckDB at {duckdb_path}")
        try:
            con = duckdb.connect(str(duckdb_path), read_only=True)
            con.execute("SELECT 1")
        except Exception as e:
            logger.error(f"Failed to connect to DuckDB: {e}")
            raise ValueError(f"Failed to initialize DuckDB connection: {e}") from e

        logger.info(f"Connecting to LanceDB at {self.pack_path}")
        try:
            lance_db = lancedb.connect(str(self.pack_path))
        except Exception as e:
            logger.error(f"Failed to connect to LanceDB: {e}")
            raise ValueError(f"Failed to initialize LanceDB connection: {e}") from e

        return con, lance_db
