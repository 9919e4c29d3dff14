#!/usr/bin/env python3

"""
FastAPI server for family graph queries over GEDCOM snapshots.

This server provides endpoints for:
- The full family graph and its JSON export
- Ancestor, split ancestor and descendant trees
- Siblings, relationship paths and consanguinity checks
- Pre-create validation of new relationships
- Cache invalidation and signed change events
"""

import logging
import os
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Header, HTTPException, Query, Request
from fastapi.responses import Response
from pydantic import BaseModel, Field

from .celery_app import warm_graph_cache
from .config import config
from .graph_context import GraphContext
from .graph_errors import GraphError, NotFoundError, RelationshipValidationError
from .graph_models import (
    AncestorTree,
    ConsanguinityResult,
    DescendantTree,
    FamilyGraph,
    Person,
    RelationshipPath,
    RelationshipType,
    SiblingInfo,
    SplitAncestorTree,
)
from .graph_service import (
    export_graph_json,
    find_relationship_path,
    get_ancestor_tree,
    get_consanguinity,
    get_descendant_tree,
    get_full_graph,
    get_siblings,
    get_split_ancestor_tree,
    invalidate_cache,
    search_persons,
    validate_relationship,
)
from .graph_traversal import (
    DEFAULT_ANCESTOR_DEPTH,
    DEFAULT_DESCENDANT_DEPTH,
    DEFAULT_PATH_DEPTH,
    DEFAULT_SPLIT_DEPTH,
)
from .signature_utils import verify_signature
from .snapshot_files import _snapshot_contexts, forget_snapshot, get_file_cache, get_or_load_snapshot


# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title="Family Graph API",
    description="Relationship graph queries over GEDCOM family snapshots",
    version="1.0.0"
)


# Add middleware to ensure UTF-8 charset in responses
@app.middleware("http")
async def add_utf8_charset(request: Request, call_next):
    response = await call_next(request)
    if "application/json" in response.headers.get("content-type", ""):
        response.headers["content-type"] = "application/json; charset=utf-8"
    return response


# ===== Models =====
class PersonSearchResponse(BaseModel):
    """Response model for person search"""
    total: int
    persons: List[Person]


class ValidateRelationshipRequest(BaseModel):
    """Request model for POST /relationships/validate"""
    person_a: str = Field(..., description="Child for PARENT edges, first spouse for SPOUSE edges")
    person_b: str = Field(..., description="Parent for PARENT edges, second spouse for SPOUSE edges")
    type: RelationshipType
    metadata: Dict[str, Any] = Field(default_factory=dict)


class ValidateRelationshipResponse(BaseModel):
    valid: bool
    metadata: Dict[str, Any] = Field(default_factory=dict)


class EventRequest(BaseModel):
    """Request model for POST /events endpoint"""
    file: str = Field(..., description="Snapshot that changed (local path or s3:// key)")
    user_id: Optional[str] = Field(None, description="User that made the change")


class EventResponse(BaseModel):
    """Response model for POST /events endpoint"""
    status: str
    message: str
    task_id: Optional[str] = None


# ===== Snapshot Context Management =====
def get_snapshot(file_path: str) -> GraphContext:
    """
    Get or load the graph context for a snapshot.

    Raises:
        HTTPException 404 when the file cannot be found, 500 when it cannot be parsed
    """
    try:
        return get_or_load_snapshot(file_path)
    except GraphError as e:
        status_code = 404 if e.error_code == "FILE_NOT_FOUND" else 500
        logger.error(f"Failed to load snapshot {file_path}: {e.message}")
        raise HTTPException(status_code=status_code, detail=e.to_dict())
    except Exception as e:
        logger.error(f"Failed to load snapshot {file_path}: {e}")
        raise HTTPException(
            status_code=500,
            detail=f"Failed to load GEDCOM file: {str(e)}"
        )


def raise_for_graph_error(e: GraphError):
    """Map engine errors to HTTP status codes"""
    if isinstance(e, NotFoundError):
        raise HTTPException(status_code=404, detail=e.to_dict())
    if isinstance(e, RelationshipValidationError):
        raise HTTPException(status_code=422, detail=e.to_dict())
    raise HTTPException(status_code=500, detail=e.to_dict())


# ===== API Endpoints =====

@app.get("/", summary="Root endpoint")
async def root():
    """Root endpoint with API information"""
    return {
        "service": "Family Graph API",
        "version": "1.0.0",
        "endpoints": [
            "/graph",
            "/graph/export",
            "/persons/search",
            "/persons/{id}/ancestors",
            "/persons/{id}/ancestors/split",
            "/persons/{id}/descendants",
            "/persons/{id}/siblings",
            "/relationships/path",
            "/relationships/consanguinity",
            "/relationships/validate",
            "/cache/invalidate",
            "/cache/clean",
            "/events",
            "/health"
        ]
    }


@app.get("/graph", response_model=FamilyGraph, summary="Get the full family graph")
async def get_graph(
    file: str = Query(..., description="Path to GEDCOM file (local path or S3 URL)")
):
    """Nodes, edges, family groups and stats for every connected person."""
    try:
        graph_ctx = get_snapshot(file)
        return get_full_graph(graph_ctx)
    except HTTPException:
        raise
    except GraphError as e:
        raise_for_graph_error(e)
    except Exception as e:
        logger.error(f"Error building graph for {file}: {e}")
        raise HTTPException(
            status_code=500,
            detail=f"Error building graph: {str(e)}"
        )


@app.get("/graph/export", summary="Download the full family graph as JSON")
async def export_graph(
    file: str = Query(..., description="Path to GEDCOM file (local path or S3 URL)")
):
    try:
        graph_ctx = get_snapshot(file)
        return Response(
            content=export_graph_json(graph_ctx),
            media_type="application/json",
            headers={"Content-Disposition": 'attachment; filename="family-graph.json"'}
        )
    except HTTPException:
        raise
    except GraphError as e:
        raise_for_graph_error(e)
    except Exception as e:
        logger.error(f"Error exporting graph for {file}: {e}")
        raise HTTPException(
            status_code=500,
            detail=f"Error exporting graph: {str(e)}"
        )


@app.get("/persons/search", response_model=PersonSearchResponse, summary="Search persons by name")
async def search(
    q: str = Query(..., min_length=1, description="Name fragment(s); accents are ignored"),
    file: str = Query(..., description="Path to GEDCOM file (local path or S3 URL)"),
    limit: int = Query(20, ge=1, le=200)
):
    try:
        graph_ctx = get_snapshot(file)
        persons = search_persons(q, graph_ctx, limit)
        return PersonSearchResponse(total=len(persons), persons=persons)
    except HTTPException:
        raise
    except GraphError as e:
        raise_for_graph_error(e)
    except Exception as e:
        logger.error(f"Error searching persons for '{q}': {e}")
        raise HTTPException(
            status_code=500,
            detail=f"Error searching persons: {str(e)}"
        )


@app.get("/persons/{person_id}/ancestors", response_model=AncestorTree, summary="Get ancestor tree")
async def get_ancestors(
    person_id: str,
    file: str = Query(..., description="Path to GEDCOM file (local path or S3 URL)"),
    max_depth: int = Query(DEFAULT_ANCESTOR_DEPTH, description="Generations to climb (clamped to 1..20)")
):
    """
    Ancestor tree of a person. The root is generation 0 and ancestors have
    negative generations. An unknown person yields an empty tree.
    """
    try:
        graph_ctx = get_snapshot(file)
        return get_ancestor_tree(person_id, graph_ctx, max_depth)
    except HTTPException:
        raise
    except GraphError as e:
        raise_for_graph_error(e)
    except Exception as e:
        logger.error(f"Error getting ancestors for {person_id}: {e}")
        raise HTTPException(
            status_code=500,
            detail=f"Error getting ancestors: {str(e)}"
        )


@app.get("/persons/{person_id}/ancestors/split", response_model=SplitAncestorTree, summary="Get paternal and maternal trees")
async def get_split_ancestors(
    person_id: str,
    file: str = Query(..., description="Path to GEDCOM file (local path or S3 URL)"),
    max_depth: int = Query(DEFAULT_SPLIT_DEPTH, description="Generations to climb (clamped to 1..20)")
):
    try:
        graph_ctx = get_snapshot(file)
        return get_split_ancestor_tree(person_id, graph_ctx, max_depth)
    except HTTPException:
        raise
    except GraphError as e:
        raise_for_graph_error(e)
    except Exception as e:
        logger.error(f"Error getting split ancestors for {person_id}: {e}")
        raise HTTPException(
            status_code=500,
            detail=f"Error getting split ancestors: {str(e)}"
        )


@app.get("/persons/{person_id}/descendants", response_model=DescendantTree, summary="Get descendant tree")
async def get_descendants(
    person_id: str,
    file: str = Query(..., description="Path to GEDCOM file (local path or S3 URL)"),
    max_depth: int = Query(DEFAULT_DESCENDANT_DEPTH, description="Generations to descend (clamped to 1..20)")
):
    try:
        graph_ctx = get_snapshot(file)
        return get_descendant_tree(person_id, graph_ctx, max_depth)
    except HTTPException:
        raise
    except GraphError as e:
        raise_for_graph_error(e)
    except Exception as e:
        logger.error(f"Error getting descendants for {person_id}: {e}")
        raise HTTPException(
            status_code=500,
            detail=f"Error getting descendants: {str(e)}"
        )


@app.get("/persons/{person_id}/siblings", response_model=List[SiblingInfo], summary="Get siblings")
async def get_person_siblings(
    person_id: str,
    file: str = Query(..., description="Path to GEDCOM file (local path or S3 URL)")
):
    """Full and half siblings of a person; 404 if the person does not exist."""
    try:
        graph_ctx = get_snapshot(file)
        return get_siblings(person_id, graph_ctx)
    except HTTPException:
        raise
    except GraphError as e:
        raise_for_graph_error(e)
    except Exception as e:
        logger.error(f"Error getting siblings for {person_id}: {e}")
        raise HTTPException(
            status_code=500,
            detail=f"Error getting siblings: {str(e)}"
        )


@app.get("/relationships/path", response_model=RelationshipPath, summary="Find relationship path")
async def get_relationship_path(
    from_id: str = Query(..., alias="from", description="Person the description is about"),
    to_id: str = Query(..., alias="to", description="Reference person"),
    file: str = Query(..., description="Path to GEDCOM file (local path or S3 URL)"),
    max_depth: int = Query(DEFAULT_PATH_DEPTH, description="Maximum number of hops"),
    locale: Optional[str] = Query(None, description="Locale of the description (e.g. en, id)")
):
    """Shortest relationship path between two people with a localized description."""
    try:
        graph_ctx = get_snapshot(file)
        path = find_relationship_path(from_id, to_id, graph_ctx, max_depth, locale)
        if path is None:
            raise HTTPException(
                status_code=404,
                detail=f"No relationship path found between {from_id} and {to_id}"
            )
        return path
    except HTTPException:
        raise
    except GraphError as e:
        raise_for_graph_error(e)
    except Exception as e:
        logger.error(f"Error finding path {from_id} -> {to_id}: {e}")
        raise HTTPException(
            status_code=500,
            detail=f"Error finding relationship path: {str(e)}"
        )


@app.get("/relationships/consanguinity", response_model=ConsanguinityResult, summary="Check consanguinity")
async def check_consanguinity(
    person_a: str = Query(...),
    person_b: str = Query(...),
    file: str = Query(..., description="Path to GEDCOM file (local path or S3 URL)")
):
    try:
        graph_ctx = get_snapshot(file)
        return get_consanguinity(person_a, person_b, graph_ctx)
    except HTTPException:
        raise
    except GraphError as e:
        raise_for_graph_error(e)
    except Exception as e:
        logger.error(f"Error checking consanguinity {person_a}-{person_b}: {e}")
        raise HTTPException(
            status_code=500,
            detail=f"Error checking consanguinity: {str(e)}"
        )


@app.post("/relationships/validate", response_model=ValidateRelationshipResponse, summary="Validate a new relationship")
async def validate_new_relationship(
    request: ValidateRelationshipRequest,
    file: str = Query(..., description="Path to GEDCOM file (local path or S3 URL)")
):
    """
    Run the pre-create checks for a relationship without persisting it.

    Returns the metadata to store with the edge. Rejected edges return 422
    with a machine-readable reason.
    """
    try:
        graph_ctx = get_snapshot(file)
        metadata = validate_relationship(request.person_a, request.person_b, request.type, graph_ctx, request.metadata)
        return ValidateRelationshipResponse(valid=True, metadata=metadata)
    except HTTPException:
        raise
    except GraphError as e:
        raise_for_graph_error(e)
    except Exception as e:
        logger.error(f"Error validating relationship {request.person_a}-{request.person_b}: {e}")
        raise HTTPException(
            status_code=500,
            detail=f"Error validating relationship: {str(e)}"
        )


@app.post("/cache/invalidate", summary="Invalidate the graph cache")
async def invalidate_graph_cache(
    file: str = Query(..., description="Path to GEDCOM file (local path or S3 URL)")
):
    try:
        graph_ctx = get_snapshot(file)
        invalidated = invalidate_cache(graph_ctx)
        return {"status": "success", "invalidated": invalidated}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error invalidating cache for {file}: {e}")
        raise HTTPException(
            status_code=500,
            detail=f"Error invalidating cache: {str(e)}"
        )


@app.post("/cache/clean", summary="Clean old snapshot files")
async def clean_snapshot_files():
    """Remove downloaded snapshot files older than FAMILY_GRAPH_SNAPSHOT_TTL_HOURS"""
    try:
        removed = get_file_cache().clean_old_files()
        return {"status": "success", "removed": removed}
    except Exception as e:
        logger.error(f"Error cleaning snapshot files: {e}")
        raise HTTPException(
            status_code=500,
            detail=f"Error cleaning cache: {str(e)}"
        )


@app.post("/events", response_model=EventResponse, summary="Handle a snapshot change event")
async def create_event(
    request: EventRequest,
    x_signature: str = Header(..., description="HMAC-SHA256 signature of request body")
):
    """
    Receive a signed change event, drop every cached view of the snapshot
    and queue a background cache warm-up.

    The request body must be signed with HMAC-SHA256 using the SECRET_KEY.
    The signature must be provided in the X-Signature header.
    """
    try:
        request_data = request.model_dump()
        if not verify_signature(request_data, x_signature):
            logger.warning(f"Invalid signature for event: {request_data}")
            raise HTTPException(
                status_code=401,
                detail="Invalid signature"
            )

        file_cache = get_file_cache()
        if request.file.startswith("s3://"):
            try:
                found = file_cache.exists_in_s3(request.file)
            except GraphError as e:
                raise HTTPException(status_code=400, detail=e.to_dict())
            if not found:
                raise HTTPException(
                    status_code=404,
                    detail=f"File not found in S3: {request.file}"
                )

        graph_ctx = _snapshot_contexts.get(request.file)
        if graph_ctx is not None:
            invalidate_cache(graph_ctx)
        forget_snapshot(request.file)
        file_cache.evict(request.file)

        task = warm_graph_cache.delay(request.file, request.user_id)
        logger.info(f"Queued cache warm-up task {task.id} for {request.file}")

        return EventResponse(
            status="ok",
            message="Cache invalidated, warm-up queued",
            task_id=task.id
        )
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error processing event request: {e}")
        raise HTTPException(
            status_code=500,
            detail=f"Error processing request: {str(e)}"
        )


@app.get("/health", summary="Health check")
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "timestamp": datetime.now().isoformat(),
        "cache_backend": config.CACHE_BACKEND,
        "loaded_snapshots": len(_snapshot_contexts),
        "s3_configured": bool(config.S3_BUCKET)
    }


# ===== Application Entry Point =====

def main():
    """Run the FastAPI server"""
    import uvicorn

    port = int(os.getenv("PORT", "8000"))
    host = os.getenv("HOST", "0.0.0.0")

    logger.info(f"Starting Family Graph API server on {host}:{port}")
    logger.info(f"Cache backend: {config.CACHE_BACKEND}")
    logger.info(f"S3 bucket: {config.S3_BUCKET or 'Not configured'}")

    uvicorn.run(app, host=host, port=port)


if __name__ == "__main__":
    main()
