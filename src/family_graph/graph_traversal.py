#!/usr/bin/env python3

"""
Breadth-first traversal primitives over the relationship store.

Ancestor and descendant searches walk PARENT edges one generation at a time
and issue a single batched store call per generation. The shortest-path
search treats PARENT and SPOUSE edges as undirected.
"""

import logging
from collections import deque
from typing import Dict, List, Optional

from .graph_models import RelationshipType

# Set up logging
logger = logging.getLogger(__name__)

MAX_TREE_DEPTH = 20
DEFAULT_ANCESTOR_DEPTH = 5
DEFAULT_DESCENDANT_DEPTH = 10
DEFAULT_SPLIT_DEPTH = 10
DEFAULT_PATH_DEPTH = 20


def clamp_depth(max_depth: Optional[int], default: int, upper: int = MAX_TREE_DEPTH) -> int:
    """Non-positive or missing depths take the default; large depths are capped"""
    if max_depth is None or max_depth <= 0:
        return default
    return min(max_depth, upper)


def _walk_generations(start: str, graph_ctx, max_depth: int, upward: bool) -> Dict[str, int]:
    relationship_store = graph_ctx.relationship_store
    generations: Dict[str, int] = {}
    visited = {start}
    frontier = [start]

    for generation in range(1, max_depth + 1):
        if not frontier:
            break

        frontier_set = set(frontier)
        next_frontier = []
        for edge in relationship_store.list_by_people(frontier):
            if edge.type != RelationshipType.PARENT:
                continue
            # PARENT edges point child (person_a) -> parent (person_b)
            if upward:
                source, target = edge.person_a, edge.person_b
            else:
                source, target = edge.person_b, edge.person_a
            if source not in frontier_set or target in visited:
                continue
            visited.add(target)
            generations[target] = generation
            next_frontier.append(target)

        logger.debug(f"{'Ancestor' if upward else 'Descendant'} level {generation} from {start}: {len(next_frontier)} people")
        frontier = next_frontier

    return generations


def find_ancestors(start: str, graph_ctx, max_depth: int = DEFAULT_ANCESTOR_DEPTH, clamp: bool = True) -> Dict[str, int]:
    """Find ancestors of start, mapping person id to generation (1 = parent).

    Args:
        start: Person ID to start from
        graph_ctx: Context holding the relationship store
        max_depth: Number of generations to climb
        clamp: When False the depth is used as given (exhaustive internal searches)

    Returns:
        Ordered dict of ancestor id -> hop count, in discovery order; start is never included
    """
    if clamp:
        max_depth = clamp_depth(max_depth, DEFAULT_ANCESTOR_DEPTH)
    return _walk_generations(start, graph_ctx, max_depth, upward=True)


def find_descendants(start: str, graph_ctx, max_depth: int = DEFAULT_DESCENDANT_DEPTH, clamp: bool = True) -> Dict[str, int]:
    """Find descendants of start, mapping person id to generation (1 = child)."""
    if clamp:
        max_depth = clamp_depth(max_depth, DEFAULT_DESCENDANT_DEPTH)
    return _walk_generations(start, graph_ctx, max_depth, upward=False)


def find_shortest_path(from_id: str, to_id: str, graph_ctx, max_depth: int = DEFAULT_PATH_DEPTH) -> Optional[List[str]]:
    """Find the shortest chain of people linking from_id to to_id.

    Every edge is walked in both directions. Nodes at max_depth are not
    expanded, so a path longer than max_depth is reported as missing.

    Returns:
        List of person IDs from from_id to to_id inclusive, or None when unreachable
    """
    if from_id == to_id:
        return [from_id]
    if max_depth is None or max_depth <= 0:
        max_depth = DEFAULT_PATH_DEPTH

    relationship_store = graph_ctx.relationship_store
    depth = {from_id: 0}
    previous: Dict[str, str] = {}
    queue = deque([from_id])
    found = False

    while queue and not found:
        current = queue.popleft()
        if depth[current] >= max_depth:
            continue

        for edge in relationship_store.list_by_person(current):
            neighbor = edge.other(current)
            if neighbor in depth:
                continue
            depth[neighbor] = depth[current] + 1
            previous[neighbor] = current
            if neighbor == to_id:
                found = True
                break
            queue.append(neighbor)

    if not found:
        logger.debug(f"No path from {from_id} to {to_id} within {max_depth} hops")
        return None

    path = [to_id]
    while path[-1] != from_id:
        path.append(previous[path[-1]])
    path.reverse()
    return path
