#!/usr/bin/env python3

from datetime import date
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, ValidationError


class Gender(str, Enum):
    MALE = "MALE"
    FEMALE = "FEMALE"
    UNKNOWN = "UNKNOWN"


class RelationshipType(str, Enum):
    PARENT = "PARENT"
    SPOUSE = "SPOUSE"


class ParentRole(str, Enum):
    FATHER = "FATHER"
    MOTHER = "MOTHER"


class SiblingType(str, Enum):
    FULL = "FULL"
    HALF = "HALF"


class DerivedRelationType(str, Enum):
    """Coarse kinship category of the first person relative to the second"""
    PARENT = "PARENT"
    CHILD = "CHILD"
    SIBLING = "SIBLING"
    GRANDPARENT = "GRANDPARENT"
    GRANDCHILD = "GRANDCHILD"
    UNCLE_AUNT = "UNCLE_AUNT"
    NEPHEW_NIECE = "NEPHEW_NIECE"
    COUSIN = "COUSIN"


class Person(BaseModel):
    """Model for a person as returned by the person store"""
    id: str
    first_name: str
    last_name: Optional[str] = None
    nickname: Optional[str] = None
    gender: Gender = Gender.UNKNOWN
    birth_date: Optional[date] = None
    birth_place: Optional[str] = None
    death_date: Optional[date] = None
    death_place: Optional[str] = None
    avatar_url: Optional[str] = None
    is_alive: bool = True

    @property
    def full_name(self) -> str:
        if self.last_name:
            return f"{self.first_name} {self.last_name}"
        return self.first_name


class ParentMetadata(BaseModel):
    """Typed view over the metadata of a PARENT edge"""
    role: Optional[ParentRole] = None
    child_order: Optional[int] = None


class SpouseMetadata(BaseModel):
    """Typed view over the metadata of a SPOUSE edge"""
    marriage_date: Optional[date] = None
    marriage_place: Optional[str] = None
    divorce_date: Optional[date] = None
    spouse_order: Optional[int] = None
    is_consanguineous: bool = False
    consanguinity_degree: Optional[int] = None
    common_ancestors: List[str] = Field(default_factory=list)


def parse_metadata(model_cls, metadata: Optional[Dict[str, Any]]):
    """Parse metadata into model_cls, dropping any field that does not validate.

    Stored metadata is free-form JSON written by other services, so a single
    malformed value must not hide the rest of the record.
    """
    if not isinstance(metadata, dict):
        return model_cls()
    known = {key: value for key, value in metadata.items() if key in model_cls.model_fields}
    try:
        return model_cls.model_validate(known)
    except ValidationError:
        valid = {}
        for key, value in known.items():
            try:
                model_cls.model_validate({key: value})
                valid[key] = value
            except ValidationError:
                continue
        return model_cls.model_validate(valid)


class Relationship(BaseModel):
    """Model for a kinship edge.

    For PARENT edges person_a is the child and person_b the parent.
    SPOUSE edges are undirected.
    """
    id: str
    person_a: str
    person_b: str
    type: RelationshipType
    metadata: Dict[str, Any] = Field(default_factory=dict)
    created_by: Optional[str] = None

    def parent_metadata(self) -> ParentMetadata:
        return parse_metadata(ParentMetadata, self.metadata)

    def spouse_metadata(self) -> SpouseMetadata:
        return parse_metadata(SpouseMetadata, self.metadata)

    @property
    def role(self) -> Optional[ParentRole]:
        if self.type != RelationshipType.PARENT:
            return None
        return self.parent_metadata().role

    def other(self, person_id: str) -> str:
        """Return the endpoint opposite to person_id"""
        return self.person_b if self.person_a == person_id else self.person_a

    def connects(self, first_id: str, second_id: str) -> bool:
        return {self.person_a, self.person_b} == {first_id, second_id}


class GraphNode(BaseModel):
    """Renderable node of a family graph or tree"""
    id: str
    first_name: str
    last_name: Optional[str] = None
    nickname: Optional[str] = None
    gender: Gender = Gender.UNKNOWN
    avatar_url: Optional[str] = None
    is_alive: bool = True
    birth_year: Optional[int] = None
    death_year: Optional[int] = None
    generation: Optional[int] = None


class GraphEdge(BaseModel):
    """Renderable edge with ordering and consanguinity annotations"""
    id: str
    source: str
    target: str
    type: RelationshipType
    metadata: Dict[str, Any] = Field(default_factory=dict)
    is_consanguineous: bool = False
    spouse_order: Optional[int] = None
    child_order: Optional[int] = None


class FamilyGroup(BaseModel):
    """A set of parents together with the children declared for exactly that set"""
    id: str
    parents: List[str] = Field(default_factory=list)
    children: List[str] = Field(default_factory=list)
    spouse_order: int = 1


class GraphStats(BaseModel):
    total_persons: int = 0
    total_relationships: int = 0
    max_generation: int = 0
    living_persons: int = 0
    deceased_persons: int = 0


class FamilyGraph(BaseModel):
    nodes: List[GraphNode] = Field(default_factory=list)
    edges: List[GraphEdge] = Field(default_factory=list)
    groups: List[FamilyGroup] = Field(default_factory=list)
    stats: GraphStats = Field(default_factory=GraphStats)


class AncestorTree(BaseModel):
    root_person: str
    ancestors: List[GraphNode] = Field(default_factory=list)
    edges: List[GraphEdge] = Field(default_factory=list)
    max_depth: int


class SplitAncestorTree(BaseModel):
    paternal: Optional[AncestorTree] = None
    maternal: Optional[AncestorTree] = None


class DescendantTree(BaseModel):
    root_person: str
    descendants: List[GraphNode] = Field(default_factory=list)
    edges: List[GraphEdge] = Field(default_factory=list)
    max_depth: int


class RelationshipPath(BaseModel):
    """Shortest relationship path between two people"""
    from_person: str
    to_person: str
    path: List[str] = Field(default_factory=list)
    relationship: Optional[DerivedRelationType] = None
    description: str = ""
    degree: int = 0


class SiblingInfo(BaseModel):
    person: Person
    sibling_type: SiblingType


class CommonAncestor(BaseModel):
    ancestor_id: str
    depth_from_a: int
    depth_from_b: int
    total_degree: int


class ConsanguinityResult(BaseModel):
    """Blood-relation assessment for a pair of people"""
    person_a: str
    person_b: str
    is_consanguineous: bool = False
    degree: Optional[int] = None
    common_ancestors: List[str] = Field(default_factory=list)
    label: Optional[DerivedRelationType] = None
