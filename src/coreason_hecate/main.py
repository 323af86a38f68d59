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
import sys
from pathlib import Path
from typing import Annotated, List, Optional

import typer
from loguru import logger

from coreason_hecate import __version__
from coreason_hecate.build import HecateBuilder
from coreason_hecate.embedders import SapBertEmbedder
from coreason_hecate.pipeline import hecate_analyze_concept_set, hecate_search, initialize
from coreason_hecate.schemas import SearchFilters

app = typer.Typer(
    name="coreason-hecate",
    help="CLI for coreason-hecate: semantic search and concept set analysis over OMOP vocabularies.",
    add_completion=False,
)


@app.command()
def build(
    source: Annotated[Path, typer.Option("--source", "-s", help="Path to source CSV directory", exists=True)],
    output: Annotated[Path, typer.Option("--output", "-o", help="Path to output directory")],
    device: Annotated[str, typer.Option("--device", "-d", help="Device for embedding (cpu/cuda)")] = "cpu",
) -> None:
    """
    Build a Hecate pack from raw Athena CSVs.
    """
    logger.info(f"Starting Hecate Build from {source} to {output}")

    try:
        builder = HecateBuilder(source, output)
        builder.build_vocab()

        logger.info(f"Initializing embedder on {device}...")
        embedder = SapBertEmbedder(device=device)
        builder.build_points(embedder)

        builder.generate_manifest()
        logger.info("Hecate Build Completed Successfully.")

    except Exception:
        logger.exception("Hecate Build Failed")
        sys.exit(1)


@app.command()
def search(
    query: Annotated[str, typer.Argument(help="Concept name, code or ID")],
    pack: Annotated[Path, typer.Option("--pack", "-p", help="Path to Hecate pack directory", exists=True)],
    vocabulary: Annotated[Optional[List[str]], typer.Option("--vocabulary", help="Vocabulary filter")] = None,
    domain: Annotated[Optional[List[str]], typer.Option("--domain", help="Domain filter")] = None,
    concept_class: Annotated[Optional[List[str]], typer.Option("--concept-class", help="Concept class filter")] = None,
    standard: Annotated[Optional[str], typer.Option("--standard", help="Standard concept flag (S, C or '')")] = None,
    limit: Annotated[Optional[int], typer.Option("--limit", "-l", help="Maximum number of results")] = None,
) -> None:
    """
    Search concepts and print the result groups as JSON.
    """
    try:
        initialize(str(pack))
        filters = SearchFilters(
            vocabulary_id=vocabulary or None,
            domain_id=domain or None,
            concept_class_id=concept_class or None,
            standard_concept=standard,
        )
        results = hecate_search(query, filters=filters, limit=limit)
        typer.echo(json.dumps([r.model_dump() for r in results], indent=2))
    except Exception:
        logger.exception("Search Failed")
        sys.exit(1)


@app.command()
def analyze(
    concept_set: Annotated[str, typer.Argument(help="Path to a concept set JSON file, or '-' for stdin")],
    pack: Annotated[Path, typer.Option("--pack", "-p", help="Path to Hecate pack directory", exists=True)],
) -> None:
    """
    Analyze a concept set expression and print the validation result as JSON.
    """
    try:
        raw_text = sys.stdin.read() if concept_set == "-" else Path(concept_set).read_text()
        initialize(str(pack))
        result = hecate_analyze_concept_set(raw_text)
        typer.echo(json.dumps(result.to_response(), indent=2))
    except Exception:
        logger.exception("Analysis Failed")
        sys.exit(1)


@app.command()
def version() -> None:
    """Print the version of coreason-hecate."""
    typer.echo(f"coreason-hecate v{__version__}")


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()  # pragma: no cover
