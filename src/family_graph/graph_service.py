#!/usr/bin/env python3

"""
Request-level entry points shared by the HTTP API, the MCP tools and the
background worker.

Full graphs and trees are cached as JSON through the context's GraphCache.
Tree keys embed a generation token; invalidation deletes the full-graph key
and rotates the token so every tree key written before it is orphaned.
A cache that misbehaves is logged and bypassed.
"""

import json
import logging
import uuid
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ValidationError

from .graph_assembly import (
    build_ancestor_tree,
    build_descendant_tree,
    build_full_graph,
    build_split_ancestor_tree,
)
from .graph_errors import NotFoundError
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
from .graph_relations import (
    assess_consanguinity,
    classify_path,
    degree_label,
    find_nearest_common_ancestors,
    get_siblings as _get_siblings,
    nearest_only,
)
from .graph_traversal import (
    DEFAULT_ANCESTOR_DEPTH,
    DEFAULT_DESCENDANT_DEPTH,
    DEFAULT_PATH_DEPTH,
    DEFAULT_SPLIT_DEPTH,
    clamp_depth,
    find_shortest_path,
)
from .graph_validation import validate_new_parent_edge, validate_new_spouse_edge
from .kinship_narrator import DefaultRelationshipFormatter

# Set up logging
logger = logging.getLogger(__name__)

VERSION_TTL_SECONDS = 86400

default_formatter = DefaultRelationshipFormatter()


def _graph_key(graph_ctx) -> str:
    return f"{graph_ctx.cache_namespace}:graph"


def _version_key(graph_ctx) -> str:
    return f"{graph_ctx.cache_namespace}:version"


def _generation_token(graph_ctx) -> Optional[str]:
    cache = graph_ctx.cache
    try:
        token = cache.get(_version_key(graph_ctx))
        if token is None:
            token = uuid.uuid4().hex
            cache.set(_version_key(graph_ctx), token, VERSION_TTL_SECONDS)
        return token
    except Exception as e:
        logger.warning(f"Graph cache unavailable while reading generation token: {e}")
        return None


def _tree_key(graph_ctx, kind: str, person_id: str, depth: int) -> Optional[str]:
    token = _generation_token(graph_ctx)
    if token is None:
        return None
    return f"{graph_ctx.cache_namespace}:{token}:{kind}:{person_id}:{depth}"


def _cache_read(graph_ctx, key: Optional[str], model_cls):
    if graph_ctx.cache is None or key is None:
        return None
    try:
        blob = graph_ctx.cache.get(key)
    except Exception as e:
        logger.warning(f"Graph cache read failed for {key}: {e}")
        return None
    if blob is None:
        return None
    try:
        return model_cls.model_validate_json(blob)
    except ValidationError as e:
        logger.warning(f"Discarding corrupt cache entry {key}: {e}")
        return None


def _cache_write(graph_ctx, key: Optional[str], value: BaseModel):
    if graph_ctx.cache is None or key is None:
        return
    try:
        graph_ctx.cache.set(key, value.model_dump_json(), graph_ctx.cache_ttl)
    except Exception as e:
        logger.warning(f"Graph cache write failed for {key}: {e}")


def _cached(graph_ctx, key_fn, model_cls, build):
    key = key_fn() if graph_ctx.cache is not None else None
    cached = _cache_read(graph_ctx, key, model_cls)
    if cached is not None:
        logger.debug(f"Graph cache hit: {key}")
        return cached
    value = build()
    _cache_write(graph_ctx, key, value)
    return value


def get_full_graph(graph_ctx) -> FamilyGraph:
    return _cached(graph_ctx, lambda: _graph_key(graph_ctx), FamilyGraph, lambda: build_full_graph(graph_ctx))


def get_ancestor_tree(person_id: str, graph_ctx, max_depth: int = DEFAULT_ANCESTOR_DEPTH) -> AncestorTree:
    depth = clamp_depth(max_depth, DEFAULT_ANCESTOR_DEPTH)
    return _cached(
        graph_ctx,
        lambda: _tree_key(graph_ctx, "ancestors", person_id, depth),
        AncestorTree,
        lambda: build_ancestor_tree(person_id, graph_ctx, depth),
    )


def get_split_ancestor_tree(person_id: str, graph_ctx, max_depth: int = DEFAULT_SPLIT_DEPTH) -> SplitAncestorTree:
    depth = clamp_depth(max_depth, DEFAULT_SPLIT_DEPTH)
    return _cached(
        graph_ctx,
        lambda: _tree_key(graph_ctx, "split", person_id, depth),
        SplitAncestorTree,
        lambda: build_split_ancestor_tree(person_id, graph_ctx, depth),
    )


def get_descendant_tree(person_id: str, graph_ctx, max_depth: int = DEFAULT_DESCENDANT_DEPTH) -> DescendantTree:
    depth = clamp_depth(max_depth, DEFAULT_DESCENDANT_DEPTH)
    return _cached(
        graph_ctx,
        lambda: _tree_key(graph_ctx, "descendants", person_id, depth),
        DescendantTree,
        lambda: build_descendant_tree(person_id, graph_ctx, depth),
    )


def describe_path(path: List[str], graph_ctx, locale: Optional[str] = None, relationship=None) -> str:
    """Narrate a path with the configured narrator, or the plain formatter when there is none"""
    degree = len(path) - 1
    if graph_ctx.narrator is not None:
        return graph_ctx.narrator.describe(path, degree, locale or graph_ctx.default_locale, graph_ctx, relationship)

    label = None
    if degree > 0:
        nearest = nearest_only(find_nearest_common_ancestors(path[0], path[-1], graph_ctx))
        if nearest:
            label = degree_label(nearest[0].total_degree)
    return default_formatter.describe(degree, label)


def find_relationship_path(from_id: str, to_id: str, graph_ctx, max_depth: int = DEFAULT_PATH_DEPTH,
                           locale: Optional[str] = None) -> Optional[RelationshipPath]:
    """Shortest path between two people with its category and description.

    Returns:
        RelationshipPath, or None when the two are not connected within max_depth
    """
    path = find_shortest_path(from_id, to_id, graph_ctx, max_depth)
    if path is None:
        return None

    relationship = classify_path(path, graph_ctx)
    return RelationshipPath(
        from_person=from_id,
        to_person=to_id,
        path=path,
        relationship=relationship,
        description=describe_path(path, graph_ctx, locale, relationship),
        degree=len(path) - 1,
    )


def get_siblings(person_id: str, graph_ctx) -> List[SiblingInfo]:
    return _get_siblings(person_id, graph_ctx)


def get_consanguinity(person_a: str, person_b: str, graph_ctx, max_depth: int = 10) -> ConsanguinityResult:
    for person_id in (person_a, person_b):
        if graph_ctx.person_store.get_by_id(person_id) is None:
            raise NotFoundError(person_id)
    return assess_consanguinity(person_a, person_b, graph_ctx, max_depth)


def search_persons(query: str, graph_ctx, limit: int = 20) -> List[Person]:
    return graph_ctx.person_store.search(query, limit)


def validate_relationship(person_a: str, person_b: str, rel_type: RelationshipType, graph_ctx,
                          metadata: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Validate a relationship before it is created; returns the metadata to persist"""
    if RelationshipType(rel_type) == RelationshipType.PARENT:
        return validate_new_parent_edge(person_a, person_b, graph_ctx, metadata)
    return validate_new_spouse_edge(person_a, person_b, graph_ctx, metadata)


def invalidate_cache(graph_ctx) -> bool:
    """Drop the cached full graph and orphan every cached tree.

    Returns:
        False when the cache backend failed; the next read recomputes anyway
    """
    if graph_ctx.cache is None:
        return True
    try:
        graph_ctx.cache.delete(_graph_key(graph_ctx))
        graph_ctx.cache.set(_version_key(graph_ctx), uuid.uuid4().hex, VERSION_TTL_SECONDS)
    except Exception as e:
        logger.warning(f"Graph cache invalidation failed for {graph_ctx.cache_namespace}: {e}")
        return False
    logger.info(f"Graph cache invalidated for {graph_ctx.cache_namespace}")
    return True


def export_graph_json(graph_ctx) -> str:
    """Serialize the full graph for download"""
    graph = get_full_graph(graph_ctx)
    return json.dumps(graph.model_dump(mode="json"), ensure_ascii=False, indent=2)
