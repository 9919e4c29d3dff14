#!/usr/bin/env python3

import logging
from typing import Dict, List, Optional, Set

from .graph_errors import NotFoundError
from .graph_models import (
    CommonAncestor,
    ConsanguinityResult,
    DerivedRelationType,
    RelationshipType,
    SiblingInfo,
    SiblingType,
)
from .graph_traversal import find_ancestors, find_shortest_path

# Set up logging
logger = logging.getLogger(__name__)

DEGREE_LABELS = {
    2: DerivedRelationType.SIBLING,
    3: DerivedRelationType.UNCLE_AUNT,
    4: DerivedRelationType.COUSIN,
}

# (steps up, steps down) from the first person of a path to the last
PATH_SHAPES = {
    (1, 0): DerivedRelationType.CHILD,
    (0, 1): DerivedRelationType.PARENT,
    (2, 0): DerivedRelationType.GRANDCHILD,
    (0, 2): DerivedRelationType.GRANDPARENT,
    (1, 1): DerivedRelationType.SIBLING,
    (1, 2): DerivedRelationType.UNCLE_AUNT,
    (2, 1): DerivedRelationType.NEPHEW_NIECE,
    (2, 2): DerivedRelationType.COUSIN,
}


def _parents_by_child(edges, children: Set[str]) -> Dict[str, Set[str]]:
    parents: Dict[str, Set[str]] = {child: set() for child in children}
    for edge in edges:
        if edge.type == RelationshipType.PARENT and edge.person_a in parents:
            parents[edge.person_a].add(edge.person_b)
    return parents


def get_siblings(person_id: str, graph_ctx) -> List[SiblingInfo]:
    """Get the siblings of a person, classified FULL or HALF.

    A sibling is FULL when its set of parents equals the subject's set of
    parents, and HALF when the two sets only overlap.

    Raises:
        NotFoundError: If the subject does not exist
    """
    if graph_ctx.person_store.get_by_id(person_id) is None:
        raise NotFoundError(person_id)

    relationship_store = graph_ctx.relationship_store
    my_parents = _parents_by_child(relationship_store.list_by_person(person_id), {person_id})[person_id]
    if not my_parents:
        return []

    # Children of my parents, in the order the store returns them
    shared_counts: Dict[str, int] = {}
    for edge in relationship_store.list_by_people(sorted(my_parents)):
        if edge.type != RelationshipType.PARENT or edge.person_b not in my_parents:
            continue
        if edge.person_a == person_id:
            continue
        shared_counts[edge.person_a] = shared_counts.get(edge.person_a, 0) + 1

    if not shared_counts:
        return []

    candidate_ids = list(shared_counts)
    candidate_parents = _parents_by_child(relationship_store.list_by_people(candidate_ids), set(candidate_ids))
    persons = {p.id: p for p in graph_ctx.person_store.get_by_ids(candidate_ids)}

    siblings = []
    for candidate_id in candidate_ids:
        person = persons.get(candidate_id)
        if person is None:
            logger.debug(f"Skipping sibling candidate {candidate_id}: not in person store")
            continue
        sibling_type = SiblingType.FULL if candidate_parents[candidate_id] == my_parents else SiblingType.HALF
        siblings.append(SiblingInfo(person=person, sibling_type=sibling_type))
    return siblings


def find_nearest_common_ancestors(person_a: str, person_b: str, graph_ctx, max_depth: int = 20) -> List[CommonAncestor]:
    """Intersect the ancestor sets of two people.

    Neither person counts as their own ancestor, so a direct line (parent,
    grandparent) has no common ancestor and stays unlabelled.

    Returns:
        Common ancestors ordered nearest first
    """
    ancestors_a = find_ancestors(person_a, graph_ctx, max_depth)
    ancestors_b = find_ancestors(person_b, graph_ctx, max_depth)

    common = [
        CommonAncestor(
            ancestor_id=ancestor_id,
            depth_from_a=depth_a,
            depth_from_b=ancestors_b[ancestor_id],
            total_degree=depth_a + ancestors_b[ancestor_id],
        )
        for ancestor_id, depth_a in ancestors_a.items()
        if ancestor_id in ancestors_b
    ]
    common.sort(key=lambda c: (c.total_degree, max(c.depth_from_a, c.depth_from_b), c.ancestor_id))
    return common


def degree_label(degree: int) -> Optional[DerivedRelationType]:
    """Map a common-ancestor degree to a kinship label; None means generic 'related'"""
    return DEGREE_LABELS.get(degree)


def nearest_only(common: List[CommonAncestor]) -> List[CommonAncestor]:
    """Keep only the common ancestors at the minimal total degree"""
    if not common:
        return []
    best = common[0].total_degree
    return [c for c in common if c.total_degree == best]


def assess_consanguinity(person_a: str, person_b: str, graph_ctx, max_depth: int = 10) -> ConsanguinityResult:
    """Check whether two people are already connected in the graph.

    Any connecting path within max_depth counts, including paths through
    marriages. An empty common_ancestors list marks a connection by marriage
    or a direct line.
    """
    result = ConsanguinityResult(person_a=person_a, person_b=person_b)
    if person_a == person_b:
        return result

    path = find_shortest_path(person_a, person_b, graph_ctx, max_depth)
    if path is None:
        return result

    nearest = nearest_only(find_nearest_common_ancestors(person_a, person_b, graph_ctx, max_depth))
    result.is_consanguineous = True
    result.degree = len(path) - 1
    result.common_ancestors = [c.ancestor_id for c in nearest]
    if nearest:
        result.label = degree_label(nearest[0].total_degree)
    logger.debug(f"Consanguinity {person_a}-{person_b}: degree {result.degree}, common ancestors {result.common_ancestors}")
    return result


def classify_path(path: List[str], graph_ctx) -> Optional[DerivedRelationType]:
    """Classify path[0] relative to path[-1] from the shape of a blood-only path.

    The path must climb through parents and then descend through children;
    paths that cross a marriage or change direction twice are not classified.
    """
    if not path or len(path) < 2:
        return None

    edges = graph_ctx.relationship_store.list_by_people(path)
    steps = []
    for current, following in zip(path, path[1:]):
        step = None
        for edge in edges:
            if edge.type != RelationshipType.PARENT or not edge.connects(current, following):
                continue
            step = "up" if edge.person_a == current else "down"
            break
        if step is None:
            return None
        steps.append(step)

    ups = 0
    while ups < len(steps) and steps[ups] == "up":
        ups += 1
    if any(step != "down" for step in steps[ups:]):
        return None
    return PATH_SHAPES.get((ups, len(steps) - ups))
