# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_hecate

from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Dict, List, Optional, cast

from fastapi import FastAPI, Query, Request
from fastapi.responses import JSONResponse
from loguru import logger
from pydantic import BaseModel

from coreason_hecate.config import HecateSettings
from coreason_hecate.errors import HecateError
from coreason_hecate.pipeline import HecateContext
from coreason_hecate.schemas import Concept, RelatedConcept, SearchFilters, SearchResponse


class AnalyzeRequest(BaseModel):
    concept_set: str


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Loads the Hecate pack and builds the exact-match index on startup.
    """
    settings = HecateSettings.from_env()
    logger.info(f"Initializing Hecate Server with pack: {settings.pack_path}")

    try:
        HecateContext.initialize(settings)
        app.state.context = HecateContext.get_instance()
        logger.info("Hecate search engine loaded successfully.")
    except Exception as e:
        logger.exception("Failed to initialize Hecate search engine.")
        raise RuntimeError(f"Server initialization failed: {e}") from e

    yield

    logger.info("Shutting down Hecate Server.")


app = FastAPI(title="Coreason Hecate API", lifespan=lifespan)


@app.exception_handler(HecateError)
async def hecate_error_handler(request: Request, exc: HecateError) -> JSONResponse:
    logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.http_status, content={"error": exc.message, "code": exc.http_status})


def _context() -> HecateContext:
    return cast(HecateContext, app.state.context)


@app.get("/health")
async def health_check() -> dict[str, str]:
    return {"status": "ready"}


@app.get("/api/search", response_model=List[SearchResponse])
def search(
    q: str,
    vocabulary_id: Optional[List[str]] = Query(None),
    domain_id: Optional[List[str]] = Query(None),
    concept_class_id: Optional[List[str]] = Query(None),
    standard_concept: Optional[str] = None,
    limit: Optional[int] = Query(None, ge=0),
) -> List[SearchResponse]:
    """
    Search concepts by name, code or ID, with optional post-retrieval filters.
    """
    filters = SearchFilters(
        vocabulary_id=vocabulary_id,
        domain_id=domain_id,
        concept_class_id=concept_class_id,
        standard_concept=standard_concept,
    )
    return _context().searcher.search(q, filters=filters, limit=limit)


@app.get("/api/concepts/{concept_id}", response_model=List[Concept])
def get_concept_by_id(concept_id: int) -> List[Concept]:
    logger.info(f"Get concept {concept_id}")
    return [_context().vocabulary.get_concept_by_id(concept_id)]


@app.get("/api/concepts/{concept_id}/relationships", response_model=List[RelatedConcept])
def get_concept_relationships(concept_id: int) -> List[RelatedConcept]:
    logger.info(f"Get concept {concept_id} relationships")
    return _context().vocabulary.get_concept_relationships(concept_id)


@app.get("/api/concepts/{concept_id}/phoebe", response_model=List[RelatedConcept])
def get_concept_phoebe(concept_id: int) -> List[RelatedConcept]:
    logger.info(f"Get concept {concept_id} phoebe")
    return _context().vocabulary.get_concept_phoebe(concept_id)


@app.post("/api/conceptsets/analyze")
def analyze_concept_set(request: AnalyzeRequest) -> Dict[str, Any]:
    """
    Validate a concept set expression; problems are reported in the body, not as HTTP errors.
    """
    return _context().analyzer.analyze(request.concept_set).to_response()
