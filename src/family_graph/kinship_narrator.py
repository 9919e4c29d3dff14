#!/usr/bin/env python3

import logging
from typing import List, Optional

from .graph_models import DerivedRelationType, Gender, RelationshipType
from .translations import TranslationService

# Set up logging
logger = logging.getLogger(__name__)

GENDERED_KEYS = {
    DerivedRelationType.PARENT: {Gender.MALE: "FATHER", Gender.FEMALE: "MOTHER"},
    DerivedRelationType.CHILD: {Gender.MALE: "SON", Gender.FEMALE: "DAUGHTER"},
    DerivedRelationType.SIBLING: {Gender.MALE: "BROTHER", Gender.FEMALE: "SISTER"},
    DerivedRelationType.GRANDPARENT: {Gender.MALE: "GRANDFATHER", Gender.FEMALE: "GRANDMOTHER"},
    DerivedRelationType.GRANDCHILD: {Gender.MALE: "GRANDSON", Gender.FEMALE: "GRANDDAUGHTER"},
    DerivedRelationType.UNCLE_AUNT: {Gender.MALE: "UNCLE", Gender.FEMALE: "AUNT"},
    DerivedRelationType.NEPHEW_NIECE: {Gender.MALE: "NEPHEW", Gender.FEMALE: "NIECE"},
    DerivedRelationType.COUSIN: {Gender.MALE: "COUSIN", Gender.FEMALE: "COUSIN"},
}

DEFAULT_LABELS = {
    DerivedRelationType.SIBLING: "Siblings",
    DerivedRelationType.UNCLE_AUNT: "Uncle/Aunt - Nephew/Niece",
    DerivedRelationType.COUSIN: "First Cousins",
}

UNKNOWN_NAME = "Unknown"


def fill_template(template: str, **values) -> str:
    """Substitute {name} placeholders and collapse doubled spaces"""
    result = template
    for name, value in values.items():
        result = result.replace("{" + name + "}", str(value))
    while "  " in result:
        result = result.replace("  ", " ")
    return result.strip()


class DefaultRelationshipFormatter:
    """Plain English description used when no narrator is configured"""

    def describe(self, degree: int, label: Optional[DerivedRelationType] = None) -> str:
        if degree == 0:
            return "Self"
        if label in DEFAULT_LABELS:
            return DEFAULT_LABELS[label]
        return f"Related (degree {degree})"


class KinshipNarrator:
    """Localized, gendered description of a relationship path.

    The phrase describes the first person of the path relative to the last
    one. Missing translations degrade to English, then to the raw key, then
    to the generic RELATED template.
    """

    def __init__(self, translations: TranslationService):
        self.translations = translations

    def _t(self, locale: str, key: str) -> str:
        return self.translations.translate(locale, key)

    def _lineage(self, path: List[str], graph_ctx, locale: str) -> str:
        if len(path) >= 2:
            first, second = path[0], path[1]
            for edge in graph_ctx.relationship_store.list_by_person(first):
                if edge.type == RelationshipType.PARENT and edge.person_a == first and edge.person_b == second:
                    parent = graph_ctx.person_store.get_by_id(second)
                    if parent is not None and parent.gender == Gender.MALE:
                        return self._t(locale, "LINEAGE_PATERNAL")
                    if parent is not None and parent.gender == Gender.FEMALE:
                        return self._t(locale, "LINEAGE_MATERNAL")
                    break
        return self._t(locale, "LINEAGE_MIXED")

    def describe(self, path: List[str], degree: int, locale: str, graph_ctx,
                 relationship: Optional[DerivedRelationType] = None) -> str:
        if not path:
            return ""

        persons = {p.id: p for p in graph_ctx.person_store.get_by_ids([path[0], path[-1]])}
        person_a = persons.get(path[0])
        person_b = persons.get(path[-1])
        name_a = person_a.first_name if person_a else UNKNOWN_NAME
        name_b = person_b.first_name if person_b else UNKNOWN_NAME

        if degree == 0:
            return fill_template(self._t(locale, "SELF"), A=name_a, B=name_b)

        rel_key = relationship.value if relationship else ""
        if relationship in GENDERED_KEYS and person_a is not None:
            rel_key = GENDERED_KEYS[relationship].get(person_a.gender, rel_key)

        rel_name = self._t(locale, rel_key) if rel_key else ""
        if not rel_key or not self.translations.has(locale, rel_key):
            if rel_key:
                logger.debug(f"No translation for '{rel_key}' in locale '{locale}'")
            template = self._t(locale, "RELATED")
        else:
            template = self._t(locale, "RELATED_FULL")

        return fill_template(
            template,
            A=name_a,
            B=name_b,
            relationship=rel_name,
            degree=degree,
            lineage=self._lineage(path, graph_ctx, locale),
        )
