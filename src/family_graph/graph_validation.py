#!/usr/bin/env python3

import logging
from typing import Any, Dict, Iterable, Optional

from .graph_errors import (
    CycleError,
    DuplicateParentRoleError,
    DuplicateRelationshipError,
    InvalidAgeOrderError,
    NotFoundError,
    SelfRelationError,
)
from .graph_models import ParentMetadata, Person, Relationship, RelationshipType, SpouseMetadata, parse_metadata
from .graph_relations import assess_consanguinity
from .graph_traversal import find_descendants

# Set up logging
logger = logging.getLogger(__name__)

# Upper bound for the descendant search behind cycle detection; not clamped
CYCLE_SEARCH_DEPTH = 100
SPOUSE_CONSANGUINITY_DEPTH = 10


def check_self_relation(person_a: str, person_b: str):
    if person_a == person_b:
        raise SelfRelationError()


def check_duplicate_pair(existing: Iterable[Relationship], person_a: str, person_b: str, rel_type: RelationshipType):
    """Reject a second live edge of the same type for the same pair.

    PARENT edges are compared with direction, SPOUSE edges without.
    """
    for edge in existing:
        if edge.type != rel_type:
            continue
        if rel_type == RelationshipType.PARENT:
            same = edge.person_a == person_a and edge.person_b == person_b
        else:
            same = edge.connects(person_a, person_b)
        if same:
            raise DuplicateRelationshipError(
                f"{rel_type.value} relationship between {person_a} and {person_b} already exists"
            )


def check_cycle(parent_id: str, child_descendants: Iterable[str]):
    if parent_id in set(child_descendants):
        raise CycleError()


def check_age_order(child: Person, parent: Person):
    if child.birth_date is None or parent.birth_date is None:
        return
    if parent.birth_date > child.birth_date:
        raise InvalidAgeOrderError(
            f"Invalid relationship: parent {parent.id} (born {parent.birth_date.isoformat()}) "
            f"is younger than child {child.id} (born {child.birth_date.isoformat()})"
        )


def check_duplicate_role(child_id: str, child_edges: Iterable[Relationship], role):
    if role is None:
        return
    for edge in child_edges:
        if edge.type == RelationshipType.PARENT and edge.person_a == child_id and edge.role == role:
            raise DuplicateParentRoleError(f"Person {child_id} already has a {role.value.lower()}")


def _require_person(person_id: str, graph_ctx) -> Person:
    person = graph_ctx.person_store.get_by_id(person_id)
    if person is None:
        raise NotFoundError(person_id)
    return person


def validate_new_parent_edge(child_id: str, parent_id: str, graph_ctx,
                             metadata: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Run every pre-create check for a PARENT edge (child_id -> parent_id).

    Returns:
        The metadata to persist, with the role normalized

    Raises:
        RelationshipValidationError subclass or NotFoundError
    """
    check_self_relation(child_id, parent_id)
    child = _require_person(child_id, graph_ctx)
    parent = _require_person(parent_id, graph_ctx)

    child_edges = graph_ctx.relationship_store.list_by_person(child_id)
    check_duplicate_pair(child_edges, child_id, parent_id, RelationshipType.PARENT)

    descendants = find_descendants(child_id, graph_ctx, CYCLE_SEARCH_DEPTH, clamp=False)
    check_cycle(parent_id, descendants)
    check_age_order(child, parent)

    parent_meta = parse_metadata(ParentMetadata, metadata)
    check_duplicate_role(child_id, child_edges, parent_meta.role)

    result = dict(metadata or {})
    if parent_meta.role is not None:
        result["role"] = parent_meta.role.value
    else:
        result.pop("role", None)
    logger.info(f"Validated PARENT edge {child_id} -> {parent_id}")
    return result


def validate_new_spouse_edge(person_a: str, person_b: str, graph_ctx,
                             metadata: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Run every pre-create check for a SPOUSE edge and enrich its metadata.

    Consanguinity is flagged whenever the two people are already connected
    within a bounded distance. The spouse order defaults to the next order
    for person_a.
    """
    check_self_relation(person_a, person_b)
    _require_person(person_a, graph_ctx)
    _require_person(person_b, graph_ctx)

    a_edges = graph_ctx.relationship_store.list_by_person(person_a)
    check_duplicate_pair(a_edges, person_a, person_b, RelationshipType.SPOUSE)

    result = dict(metadata or {})
    consanguinity = assess_consanguinity(person_a, person_b, graph_ctx, SPOUSE_CONSANGUINITY_DEPTH)
    result["is_consanguineous"] = consanguinity.is_consanguineous
    if consanguinity.is_consanguineous:
        result["consanguinity_degree"] = consanguinity.degree
        result["common_ancestors"] = consanguinity.common_ancestors
        logger.info(f"Marriage {person_a}-{person_b} is consanguineous (degree {consanguinity.degree})")

    if parse_metadata(SpouseMetadata, metadata).spouse_order is None:
        existing = sum(1 for edge in a_edges if edge.type == RelationshipType.SPOUSE)
        result["spouse_order"] = existing + 1
    return result
