#!/usr/bin/env python3

"""
Assembly of renderable graph structures: the full family graph with family
groups and stats, ancestor and descendant trees, and the paternal/maternal
split ancestor tree.
"""

import logging
from collections import deque
from typing import Dict, Iterable, List, Optional, Set, Tuple

from .graph_models import (
    AncestorTree,
    DescendantTree,
    FamilyGraph,
    FamilyGroup,
    GraphEdge,
    GraphNode,
    GraphStats,
    ParentRole,
    Person,
    Relationship,
    RelationshipType,
    SplitAncestorTree,
)
from .graph_traversal import (
    DEFAULT_ANCESTOR_DEPTH,
    DEFAULT_DESCENDANT_DEPTH,
    DEFAULT_SPLIT_DEPTH,
    clamp_depth,
    find_ancestors,
    find_descendants,
)

# Set up logging
logger = logging.getLogger(__name__)


def to_graph_node(person: Person, generation: Optional[int] = None) -> GraphNode:
    return GraphNode(
        id=person.id,
        first_name=person.first_name,
        last_name=person.last_name,
        nickname=person.nickname,
        gender=person.gender,
        avatar_url=person.avatar_url,
        is_alive=person.is_alive,
        birth_year=person.birth_date.year if person.birth_date else None,
        death_year=person.death_date.year if person.death_date else None,
        generation=generation,
    )


def to_graph_edge(relationship: Relationship, spouse_order: Optional[int] = None) -> GraphEdge:
    edge = GraphEdge(
        id=relationship.id,
        source=relationship.person_a,
        target=relationship.person_b,
        type=relationship.type,
        metadata=dict(relationship.metadata),
    )
    if relationship.type == RelationshipType.SPOUSE:
        spouse_meta = relationship.spouse_metadata()
        edge.is_consanguineous = spouse_meta.is_consanguineous
        edge.spouse_order = spouse_order if spouse_order is not None else spouse_meta.spouse_order
    else:
        edge.child_order = relationship.parent_metadata().child_order
    return edge


def invert_generations(nodes: List[GraphNode]) -> List[GraphNode]:
    """Negate generations so older ancestors sort above the root"""
    for node in nodes:
        if node.generation is not None:
            node.generation = -node.generation
    return nodes


def compute_spouse_orders(relationships: Iterable[Relationship]) -> Dict[str, int]:
    """Assign an order to every SPOUSE edge.

    An explicit spouse_order in the metadata wins. Otherwise marriages are
    counted for both partners, whichever side they are listed on, and an
    edge takes the larger of the two running counts.
    """
    orders: Dict[str, int] = {}
    seen: Dict[str, int] = {}
    for relationship in relationships:
        if relationship.type != RelationshipType.SPOUSE:
            continue
        for partner in (relationship.person_a, relationship.person_b):
            seen[partner] = seen.get(partner, 0) + 1
        explicit = relationship.spouse_metadata().spouse_order
        if explicit is not None:
            orders[relationship.id] = explicit
        else:
            orders[relationship.id] = max(seen[relationship.person_a], seen[relationship.person_b])
    return orders


def compute_generations(node_ids: Iterable[str], relationships: Iterable[Relationship]) -> Dict[str, int]:
    """Depth of each person below its topmost ancestor (Kahn ordering).

    People caught in a cyclic PARENT chain never reach in-degree zero and get
    no generation.
    """
    node_ids = list(node_ids)
    node_set = set(node_ids)
    children: Dict[str, List[str]] = {node_id: [] for node_id in node_ids}
    in_degree: Dict[str, int] = {node_id: 0 for node_id in node_ids}
    for relationship in relationships:
        if relationship.type != RelationshipType.PARENT:
            continue
        child, parent = relationship.person_a, relationship.person_b
        if child not in node_set or parent not in node_set:
            continue
        children[parent].append(child)
        in_degree[child] += 1

    generations = {node_id: 0 for node_id in node_ids if in_degree[node_id] == 0}
    queue = deque(generations)
    while queue:
        parent = queue.popleft()
        for child in children[parent]:
            generations[child] = max(generations.get(child, 0), generations[parent] + 1)
            in_degree[child] -= 1
            if in_degree[child] == 0:
                queue.append(child)

    return {node_id: generations[node_id] for node_id in node_ids if in_degree[node_id] == 0}


def build_family_groups(relationships: List[Relationship], node_ids: Set[str],
                        spouse_orders: Dict[str, int]) -> List[FamilyGroup]:
    """Group children by the exact set of parents declared for them"""
    parents_of: Dict[str, List[str]] = {}
    child_orders: Dict[str, int] = {}
    for relationship in relationships:
        if relationship.type != RelationshipType.PARENT:
            continue
        child, parent = relationship.person_a, relationship.person_b
        if child not in node_ids or parent not in node_ids:
            continue
        parents_of.setdefault(child, [])
        if parent not in parents_of[child]:
            parents_of[child].append(parent)
        order = relationship.parent_metadata().child_order
        if order is not None:
            child_orders[child] = min(order, child_orders.get(child, order))

    members: Dict[Tuple[str, ...], List[str]] = {}
    for child, parents in parents_of.items():
        members.setdefault(tuple(sorted(parents)), []).append(child)

    couple_orders: Dict[frozenset, int] = {}
    for relationship in relationships:
        if relationship.type == RelationshipType.SPOUSE and relationship.id in spouse_orders:
            couple_orders.setdefault(frozenset((relationship.person_a, relationship.person_b)),
                                     spouse_orders[relationship.id])

    groups = []
    for parents, group_children in members.items():
        ordered = sorted((c for c in group_children if c in child_orders), key=lambda c: child_orders[c])
        ordered += [c for c in group_children if c not in child_orders]
        groups.append(FamilyGroup(
            id="family:" + "+".join(parents),
            parents=list(parents),
            children=ordered,
            spouse_order=couple_orders.get(frozenset(parents), 1) if len(parents) == 2 else 1,
        ))
    groups.sort(key=lambda g: g.spouse_order)
    return groups


def build_full_graph(graph_ctx) -> FamilyGraph:
    """Build the whole family graph. People without any live edge are left out."""
    persons = graph_ctx.person_store.get_all()
    relationships = graph_ctx.relationship_store.get_all()

    connected = set()
    for relationship in relationships:
        connected.add(relationship.person_a)
        connected.add(relationship.person_b)
    connected_persons = [p for p in persons if p.id in connected]
    node_ids = {p.id for p in connected_persons}

    generations = compute_generations([p.id for p in connected_persons], relationships)
    nodes = [to_graph_node(p, generations.get(p.id)) for p in connected_persons]

    spouse_orders = compute_spouse_orders(
        r for r in relationships if r.person_a in node_ids and r.person_b in node_ids
    )
    edges = [
        to_graph_edge(r, spouse_orders.get(r.id))
        for r in relationships
        if r.person_a in node_ids and r.person_b in node_ids
    ]
    groups = build_family_groups(relationships, node_ids, spouse_orders)

    living = sum(1 for p in connected_persons if p.is_alive)
    stats = GraphStats(
        total_persons=len(connected_persons),
        total_relationships=len(relationships),
        max_generation=max(generations.values(), default=0),
        living_persons=living,
        deceased_persons=len(connected_persons) - living,
    )
    logger.info(f"Built family graph: {stats.total_persons} people, {len(edges)} edges, {len(groups)} groups")
    return FamilyGraph(nodes=nodes, edges=edges, groups=groups, stats=stats)


def _nodes_for(generations: Dict[str, int], graph_ctx) -> List[GraphNode]:
    persons = graph_ctx.person_store.get_by_ids(list(generations))
    return [to_graph_node(p, generations[p.id]) for p in persons]


def _edges_within(node_ids: List[str], graph_ctx) -> List[GraphEdge]:
    """Fetch every edge touching the nodes in one call and keep the internal ones"""
    if not node_ids:
        return []
    node_set = set(node_ids)
    return [
        to_graph_edge(r)
        for r in graph_ctx.relationship_store.list_by_people(node_ids)
        if r.person_a in node_set and r.person_b in node_set
    ]


def build_ancestor_tree(person_id: str, graph_ctx, max_depth: int = DEFAULT_ANCESTOR_DEPTH) -> AncestorTree:
    """Ancestor tree rooted at person_id; the root is generation 0 and ancestors are negative"""
    depth = clamp_depth(max_depth, DEFAULT_ANCESTOR_DEPTH)
    if graph_ctx.person_store.get_by_id(person_id) is None:
        return AncestorTree(root_person=person_id, max_depth=depth)

    generations = {person_id: 0}
    generations.update(find_ancestors(person_id, graph_ctx, depth))
    nodes = invert_generations(_nodes_for(generations, graph_ctx))
    return AncestorTree(
        root_person=person_id,
        ancestors=nodes,
        edges=_edges_within([n.id for n in nodes], graph_ctx),
        max_depth=depth,
    )


def build_descendant_tree(person_id: str, graph_ctx, max_depth: int = DEFAULT_DESCENDANT_DEPTH) -> DescendantTree:
    """Descendant tree rooted at person_id with positive generations"""
    depth = clamp_depth(max_depth, DEFAULT_DESCENDANT_DEPTH)
    if graph_ctx.person_store.get_by_id(person_id) is None:
        return DescendantTree(root_person=person_id, max_depth=depth)

    generations = {person_id: 0}
    generations.update(find_descendants(person_id, graph_ctx, depth))
    nodes = _nodes_for(generations, graph_ctx)
    return DescendantTree(
        root_person=person_id,
        descendants=nodes,
        edges=_edges_within([n.id for n in nodes], graph_ctx),
        max_depth=depth,
    )


def _lineage_tree(person_id: str, parent_id: str, graph_ctx, depth: int) -> AncestorTree:
    generations = {person_id: 0, parent_id: 1}
    if depth > 1:
        for ancestor_id, generation in find_ancestors(parent_id, graph_ctx, depth - 1, clamp=False).items():
            generations.setdefault(ancestor_id, generation + 1)
    nodes = invert_generations(_nodes_for(generations, graph_ctx))
    return AncestorTree(
        root_person=person_id,
        ancestors=nodes,
        edges=_edges_within([n.id for n in nodes], graph_ctx),
        max_depth=depth,
    )


def build_split_ancestor_tree(person_id: str, graph_ctx, max_depth: int = DEFAULT_SPLIT_DEPTH) -> SplitAncestorTree:
    """Separate paternal and maternal ancestor trees.

    The father and mother are located by the role stored on the PARENT edge;
    a parent edge without a role belongs to neither side.
    """
    depth = clamp_depth(max_depth, DEFAULT_SPLIT_DEPTH)
    if graph_ctx.person_store.get_by_id(person_id) is None:
        return SplitAncestorTree()

    father_id = mother_id = None
    for relationship in graph_ctx.relationship_store.list_by_person(person_id):
        if relationship.type != RelationshipType.PARENT or relationship.person_a != person_id:
            continue
        if relationship.role == ParentRole.FATHER and father_id is None:
            father_id = relationship.person_b
        elif relationship.role == ParentRole.MOTHER and mother_id is None:
            mother_id = relationship.person_b

    split = SplitAncestorTree()
    if father_id is not None:
        split.paternal = _lineage_tree(person_id, father_id, graph_ctx, depth)
    if mother_id is not None:
        split.maternal = _lineage_tree(person_id, mother_id, graph_ctx, depth)
    return split
