#!/usr/bin/env python3

import logging
from typing import Dict, Iterable, List, Optional, Protocol, Set

from unidecode import unidecode

from .graph_models import Person, Relationship

# Set up logging
logger = logging.getLogger(__name__)


class PersonStore(Protocol):
    """Read access to live person records."""

    def get_by_id(self, person_id: str) -> Optional[Person]: ...

    def get_by_ids(self, person_ids: Iterable[str]) -> List[Person]: ...

    def get_all(self) -> List[Person]: ...

    def search(self, query: str, limit: int = 20) -> List[Person]: ...


class RelationshipStore(Protocol):
    """Read access to live relationship edges."""

    def list_by_person(self, person_id: str) -> List[Relationship]: ...

    def list_by_people(self, person_ids: Iterable[str]) -> List[Relationship]: ...

    def get_all(self) -> List[Relationship]: ...

    def get_by_id(self, relationship_id: str) -> Optional[Relationship]: ...


def normalize_search_text(text: str) -> str:
    """Lowercase, strip and transliterate to ASCII for accent-insensitive matching"""
    if not text:
        return ""
    return unidecode(text).lower().strip()


class InMemoryPersonStore:
    """Person store backed by a dict. Soft-deleted records are hidden from every read."""

    def __init__(self, persons: Iterable[Person] = ()):
        self._persons: Dict[str, Person] = {}
        self._deleted: Set[str] = set()
        for person in persons:
            self.add(person)

    def add(self, person: Person) -> Person:
        self._persons[person.id] = person
        self._deleted.discard(person.id)
        return person

    def soft_delete(self, person_id: str) -> bool:
        if person_id not in self._persons:
            return False
        self._deleted.add(person_id)
        return True

    def _is_live(self, person_id: str) -> bool:
        return person_id in self._persons and person_id not in self._deleted

    def get_by_id(self, person_id: str) -> Optional[Person]:
        if not self._is_live(person_id):
            return None
        return self._persons[person_id]

    def get_by_ids(self, person_ids: Iterable[str]) -> List[Person]:
        result = []
        seen = set()
        for person_id in person_ids:
            if person_id in seen or not self._is_live(person_id):
                continue
            seen.add(person_id)
            result.append(self._persons[person_id])
        return result

    def get_all(self) -> List[Person]:
        return [p for pid, p in self._persons.items() if pid not in self._deleted]

    def search(self, query: str, limit: int = 20) -> List[Person]:
        """Match every query token against first, last and nick names"""
        tokens = normalize_search_text(query).split()
        if not tokens:
            return []

        matches = []
        for person in self.get_all():
            haystack = normalize_search_text(
                " ".join(filter(None, [person.first_name, person.last_name, person.nickname]))
            )
            if all(token in haystack for token in tokens):
                matches.append(person)
                if len(matches) >= limit:
                    break
        return matches


class InMemoryRelationshipStore:
    """Relationship store with a per-person index. Edges touching a deleted
    person are hidden as well as soft-deleted edges themselves."""

    def __init__(self, relationships: Iterable[Relationship] = (), person_store: Optional[InMemoryPersonStore] = None):
        self._relationships: Dict[str, Relationship] = {}
        self._by_person: Dict[str, List[str]] = {}
        self._sequence: Dict[str, int] = {}
        self._deleted: Set[str] = set()
        self._person_store = person_store
        for relationship in relationships:
            self.add(relationship)

    def add(self, relationship: Relationship) -> Relationship:
        if relationship.id not in self._relationships:
            self._sequence[relationship.id] = len(self._sequence)
            for person_id in (relationship.person_a, relationship.person_b):
                self._by_person.setdefault(person_id, []).append(relationship.id)
        self._relationships[relationship.id] = relationship
        self._deleted.discard(relationship.id)
        return relationship

    def soft_delete(self, relationship_id: str) -> bool:
        if relationship_id not in self._relationships:
            return False
        self._deleted.add(relationship_id)
        return True

    def _is_live(self, relationship: Relationship) -> bool:
        if relationship.id in self._deleted:
            return False
        if self._person_store is not None:
            return (self._person_store.get_by_id(relationship.person_a) is not None
                    and self._person_store.get_by_id(relationship.person_b) is not None)
        return True

    def get_by_id(self, relationship_id: str) -> Optional[Relationship]:
        relationship = self._relationships.get(relationship_id)
        if relationship is None or not self._is_live(relationship):
            return None
        return relationship

    def list_by_person(self, person_id: str) -> List[Relationship]:
        return self.list_by_people([person_id])

    def list_by_people(self, person_ids: Iterable[str]) -> List[Relationship]:
        """Return every live edge touching any of person_ids, each edge once, in insertion order"""
        edge_ids = set()
        for person_id in person_ids:
            edge_ids.update(self._by_person.get(person_id, ()))
        ordered = sorted(edge_ids, key=self._sequence.__getitem__)
        relationships = (self._relationships[relationship_id] for relationship_id in ordered)
        return [r for r in relationships if self._is_live(r)]

    def get_all(self) -> List[Relationship]:
        return [r for r in self._relationships.values() if self._is_live(r)]
