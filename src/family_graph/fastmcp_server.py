#!/usr/bin/env python3

import argparse
import logging
import os
import sys
from pathlib import Path

# Check if script is being run directly
if __name__ == "__main__" and __package__ is None:
    # Add the parent directory to sys.path
    sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
    # Set the package name to allow relative imports
    __package__ = "family_graph"

from fastmcp import FastMCP, Context

from .graph_context import get_graph_context, set_graph_context
from .graph_errors import GraphError
from .graph_service import (
    find_relationship_path as _find_relationship_path,
    get_ancestor_tree,
    get_consanguinity as _get_consanguinity,
    get_descendant_tree,
    get_full_graph,
    get_siblings as _get_siblings,
    get_split_ancestor_tree,
    search_persons,
)
from .graph_traversal import (
    DEFAULT_ANCESTOR_DEPTH,
    DEFAULT_DESCENDANT_DEPTH,
    DEFAULT_PATH_DEPTH,
    DEFAULT_SPLIT_DEPTH,
)
from .snapshot_files import load_snapshot_context

# Set up logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Create the FastMCP server instance
mcp = FastMCP("family-graph-mcp-server")

NO_SNAPSHOT_ERROR = GraphError(
    "No family snapshot loaded. Please load a GEDCOM file first.",
    error_code="NO_SNAPSHOT_LOADED",
    recovery_suggestion="Load a GEDCOM file first using the 'load_family_snapshot' tool"
)


def _loaded_context(ctx: Context):
    graph_ctx = get_graph_context(ctx)
    if not graph_ctx.is_loaded():
        return None
    return graph_ctx


@mcp.tool()
async def load_family_snapshot(file_path: str, ctx: Context) -> dict:
    """Load a GEDCOM file (local path or s3:// key) as the session's family graph"""
    if not file_path:
        error = GraphError(
            "File path is required",
            error_code="MISSING_FILE_PATH",
            recovery_suggestion="Provide a valid file path to a GEDCOM file"
        )
        return error.to_dict()

    if not file_path.startswith("s3://") and Path(file_path).is_dir():
        error = GraphError(
            f"Path is not a file: {file_path}",
            error_code="NOT_A_FILE",
            recovery_suggestion="Provide a path to a GEDCOM file, not a directory"
        )
        return error.to_dict()

    try:
        graph_ctx = set_graph_context(ctx, load_snapshot_context(file_path))
    except GraphError as e:
        return e.to_dict()
    except Exception as e:
        logger.error(f"Error loading snapshot {file_path}: {e}")
        error = GraphError(
            f"Error loading GEDCOM file: {str(e)}",
            error_code="LOAD_ERROR",
            recovery_suggestion="Check file permissions and format"
        )
        return error.to_dict()

    return {
        "status": "success",
        "message": f"Successfully loaded GEDCOM file: {file_path}",
        "persons": len(graph_ctx.person_store.get_all()),
        "relationships": len(graph_ctx.relationship_store.get_all())
    }


@mcp.tool()
async def find_person(name: str, ctx: Context, limit: int = 20) -> dict:
    """Find persons whose names contain every word of the query"""
    graph_ctx = _loaded_context(ctx)
    if graph_ctx is None:
        return NO_SNAPSHOT_ERROR.to_dict()

    persons = search_persons(name, graph_ctx, limit)
    if not persons:
        return {
            "status": "not_found",
            "message": f"No persons found matching: {name}"
        }
    return {
        "status": "success",
        "count": len(persons),
        "persons": [person.model_dump(mode="json") for person in persons]
    }


@mcp.tool()
async def get_ancestors(person_id: str, ctx: Context, max_depth: int = DEFAULT_ANCESTOR_DEPTH) -> dict:
    """Get the ancestor tree of a person (root at generation 0, ancestors negative)"""
    graph_ctx = _loaded_context(ctx)
    if graph_ctx is None:
        return NO_SNAPSHOT_ERROR.to_dict()
    return get_ancestor_tree(person_id, graph_ctx, max_depth).model_dump(mode="json")


@mcp.tool()
async def get_descendants(person_id: str, ctx: Context, max_depth: int = DEFAULT_DESCENDANT_DEPTH) -> dict:
    """Get the descendant tree of a person"""
    graph_ctx = _loaded_context(ctx)
    if graph_ctx is None:
        return NO_SNAPSHOT_ERROR.to_dict()
    return get_descendant_tree(person_id, graph_ctx, max_depth).model_dump(mode="json")


@mcp.tool()
async def get_split_ancestors(person_id: str, ctx: Context, max_depth: int = DEFAULT_SPLIT_DEPTH) -> dict:
    """Get separate paternal and maternal ancestor trees"""
    graph_ctx = _loaded_context(ctx)
    if graph_ctx is None:
        return NO_SNAPSHOT_ERROR.to_dict()
    return get_split_ancestor_tree(person_id, graph_ctx, max_depth).model_dump(mode="json")


@mcp.tool()
async def find_relationship_path(from_id: str, to_id: str, ctx: Context,
                                 max_depth: int = DEFAULT_PATH_DEPTH, locale: str = None) -> dict:
    """Find how two people are related and describe it (locale: en, id)"""
    graph_ctx = _loaded_context(ctx)
    if graph_ctx is None:
        return NO_SNAPSHOT_ERROR.to_dict()

    path = _find_relationship_path(from_id, to_id, graph_ctx, max_depth, locale)
    if path is None:
        return {
            "status": "not_found",
            "message": f"No relationship path found between {from_id} and {to_id} within {max_depth} steps",
            "recovery_suggestion": "Increase max_depth or check the person IDs"
        }
    return path.model_dump(mode="json")


@mcp.tool()
async def get_siblings(person_id: str, ctx: Context) -> dict:
    """Get full and half siblings of a person"""
    graph_ctx = _loaded_context(ctx)
    if graph_ctx is None:
        return NO_SNAPSHOT_ERROR.to_dict()

    try:
        siblings = _get_siblings(person_id, graph_ctx)
    except GraphError as e:
        return e.to_dict()
    return {
        "status": "success",
        "count": len(siblings),
        "siblings": [sibling.model_dump(mode="json") for sibling in siblings]
    }


@mcp.tool()
async def get_family_graph(ctx: Context) -> dict:
    """Get the full family graph with family groups and stats"""
    graph_ctx = _loaded_context(ctx)
    if graph_ctx is None:
        return NO_SNAPSHOT_ERROR.to_dict()
    return get_full_graph(graph_ctx).model_dump(mode="json")


@mcp.tool()
async def get_consanguinity(person_a: str, person_b: str, ctx: Context) -> dict:
    """Check whether two people are already related, e.g. before a marriage"""
    graph_ctx = _loaded_context(ctx)
    if graph_ctx is None:
        return NO_SNAPSHOT_ERROR.to_dict()

    try:
        return _get_consanguinity(person_a, person_b, graph_ctx).model_dump(mode="json")
    except GraphError as e:
        return e.to_dict()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Family Graph MCP Server")
    parser.add_argument(
        "--transport",
        choices=["stdio", "streamable-http"],
        default="streamable-http",
        help="Transport method for the MCP server (default: streamable-http)"
    )
    parser.add_argument(
        "--host",
        default="127.0.0.1",
        help="Host for streamable-http transport (default: 127.0.0.1)"
    )
    parser.add_argument(
        "--port",
        type=int,
        default=8000,
        help="Port for streamable-http transport (default: 8000)"
    )

    args = parser.parse_args()

    if args.transport == "stdio":
        mcp.run(transport="stdio")
    else:
        mcp.run(transport="http", host=args.host, port=args.port)
