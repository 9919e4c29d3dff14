#!/usr/bin/env python3

"""
Builds in-memory person and relationship stores from a GEDCOM file.

Individuals become persons keyed by their GEDCOM pointer (e.g. @I1@).
Each family yields a SPOUSE edge between HUSB and WIFE and one PARENT edge
from every CHIL to each parent, with the role taken from the HUSB/WIFE tag
and the child order from the CHIL position.
"""

import logging
import os
import re
import tempfile
from datetime import date
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import chardet
from gedcom.element.family import FamilyElement
from gedcom.element.individual import IndividualElement
from gedcom.parser import Parser
from nameparser import HumanName

from .graph_errors import DataAccessError
from .graph_models import Gender, ParentRole, Person, Relationship, RelationshipType
from .graph_stores import InMemoryPersonStore, InMemoryRelationshipStore

# Set up logging
logger = logging.getLogger(__name__)

MONTHS = {
    "JAN": 1, "FEB": 2, "MAR": 3, "APR": 4, "MAY": 5, "JUN": 6,
    "JUL": 7, "AUG": 8, "SEP": 9, "OCT": 10, "NOV": 11, "DEC": 12,
}
DATE_QUALIFIERS = ("ABT", "ABOUT", "EST", "CAL", "BEF", "BEFORE", "AFT", "AFTER", "BET", "BETWEEN", "FROM", "TO", "INT")
DATE_PATTERN = re.compile(r"^(?:(\d{1,2})\s+)?(?:([A-Z]{3})\s+)?(\d{3,4})\b")


def parse_gedcom_date(value: Optional[str]) -> Optional[date]:
    """Parse a GEDCOM date to the earliest calendar day it can denote.

    Handles "15 MAR 1850", "MAR 1850", "1850" and qualified forms such as
    "ABT 1850" or "BET 1850 AND 1860" (the first date is used).
    """
    if not value:
        return None

    text = value.strip().upper()
    words = text.split()
    while words and words[0] in DATE_QUALIFIERS:
        words = words[1:]
    match = DATE_PATTERN.match(" ".join(words))
    if not match:
        return None

    day, month_name, year = match.groups()
    month = MONTHS.get(month_name, 1) if month_name else 1
    try:
        return date(int(year), month, int(day) if day and month_name else 1)
    except ValueError:
        return None


def _decode_gedcom_bytes(raw_data: bytes) -> str:
    detected = chardet.detect(raw_data)
    detected_encoding = detected.get("encoding") or "utf-8"
    confidence = detected.get("confidence", 0)
    logger.info(f"Detected encoding: {detected_encoding} (confidence: {confidence})")

    for encoding in (detected_encoding, "utf-8"):
        try:
            return raw_data.decode(encoding)
        except (UnicodeDecodeError, LookupError) as e:
            logger.debug(f"Failed to decode with {encoding}: {e}")
    logger.warning("Falling back to UTF-8 with replacement characters")
    return raw_data.decode("utf-8", errors="replace")


def _event_details(element) -> Tuple[Optional[str], Optional[str]]:
    event_date = None
    event_place = None
    for child in element.get_child_elements():
        if child.get_tag() == "DATE":
            event_date = child.get_value()
        elif child.get_tag() == "PLAC":
            event_place = child.get_value()
    return event_date, event_place


def split_plain_name(name: str) -> Tuple[str, str, Optional[str]]:
    """Split a NAME value written without /surname/ slashes.

    Titles and suffixes are dropped, middle names stay with the given name
    and a quoted part becomes the nickname.
    """
    parsed = HumanName(name)
    given = " ".join(filter(None, [parsed.first, parsed.middle]))
    return given, parsed.last, parsed.nickname or None


def _person_from_element(element: IndividualElement) -> Person:
    person_id = element.get_pointer()
    first_name, last_name = element.get_name()
    nickname = None
    if first_name and not last_name:
        first_name, last_name, nickname = split_plain_name(first_name)
    gender = Gender.UNKNOWN
    birth_date = birth_place = death_date = death_place = None
    avatar_url = None
    has_death = False

    for child in element.get_child_elements():
        tag = child.get_tag()
        if tag == "NAME":
            for name_child in child.get_child_elements():
                if name_child.get_tag() == "NICK":
                    nickname = name_child.get_value() or None
        elif tag == "SEX":
            gender = {"M": Gender.MALE, "F": Gender.FEMALE}.get((child.get_value() or "").strip().upper(), Gender.UNKNOWN)
        elif tag == "BIRT":
            raw_date, birth_place = _event_details(child)
            birth_date = parse_gedcom_date(raw_date)
        elif tag == "DEAT":
            has_death = True
            raw_date, death_place = _event_details(child)
            death_date = parse_gedcom_date(raw_date)
        elif tag == "OBJE" and avatar_url is None:
            for obje_child in child.get_child_elements():
                if obje_child.get_tag() == "FILE":
                    avatar_url = obje_child.get_value() or None

    return Person(
        id=person_id,
        first_name=first_name or person_id,
        last_name=last_name or None,
        nickname=nickname,
        gender=gender,
        birth_date=birth_date,
        birth_place=birth_place or None,
        death_date=death_date,
        death_place=death_place or None,
        avatar_url=avatar_url,
        is_alive=not has_death,
    )


def _relationships_from_family(element: FamilyElement) -> List[Relationship]:
    family_id = element.get_pointer()
    husband = wife = None
    children: List[str] = []
    spouse_meta: Dict[str, Any] = {}

    for child in element.get_child_elements():
        tag = child.get_tag()
        value = child.get_value()
        if tag == "HUSB":
            husband = value
        elif tag == "WIFE":
            wife = value
        elif tag == "CHIL" and value not in children:
            children.append(value)
        elif tag == "MARR":
            raw_date, place = _event_details(child)
            marriage_date = parse_gedcom_date(raw_date)
            if marriage_date:
                spouse_meta["marriage_date"] = marriage_date.isoformat()
            if place:
                spouse_meta["marriage_place"] = place
        elif tag == "DIV":
            raw_date, _ = _event_details(child)
            divorce_date = parse_gedcom_date(raw_date)
            if divorce_date:
                spouse_meta["divorce_date"] = divorce_date.isoformat()

    relationships = []
    if husband and wife and husband != wife:
        relationships.append(Relationship(
            id=f"{family_id}:SPOUSE",
            person_a=husband,
            person_b=wife,
            type=RelationshipType.SPOUSE,
            metadata=spouse_meta,
        ))

    for order, child_id in enumerate(children, start=1):
        for parent_id, role in ((husband, ParentRole.FATHER), (wife, ParentRole.MOTHER)):
            if not parent_id:
                continue
            if parent_id == child_id:
                logger.warning(f"Skipping self parent link for {child_id} in {family_id}")
                continue
            relationships.append(Relationship(
                id=f"{family_id}:{child_id}:{role.value}",
                person_a=child_id,
                person_b=parent_id,
                type=RelationshipType.PARENT,
                metadata={"role": role.value, "child_order": order},
            ))
    return relationships


def load_gedcom_file(file_path: str) -> Tuple[InMemoryPersonStore, InMemoryRelationshipStore]:
    """Load and parse a GEDCOM file into fresh in-memory stores.

    Raises:
        DataAccessError: If the file is missing or cannot be parsed
    """
    if not Path(file_path).exists():
        logger.error(f"GEDCOM file not found: {file_path}")
        raise DataAccessError(f"GEDCOM file not found: {file_path}", error_code="FILE_NOT_FOUND",
                              recovery_suggestion="Check the snapshot path")

    with open(file_path, "rb") as f:
        content = _decode_gedcom_bytes(f.read())

    # The parser reads from disk, so hand it a clean UTF-8 copy
    with tempfile.NamedTemporaryFile(mode="w", suffix=".ged", encoding="utf-8", delete=False) as tf:
        tf.write(content)
        utf8_path = tf.name

    try:
        parser = Parser()
        parser.parse_file(utf8_path, False)
        root_elements = parser.get_root_child_elements()
    except Exception as e:
        logger.error(f"Error parsing GEDCOM file {file_path}: {e}")
        raise DataAccessError(f"Failed to parse GEDCOM file: {e}", error_code="GEDCOM_PARSE_ERROR") from e
    finally:
        os.unlink(utf8_path)

    person_store = InMemoryPersonStore()
    relationship_store = InMemoryRelationshipStore(person_store=person_store)
    families = []
    for elem in root_elements:
        if isinstance(elem, IndividualElement):
            person_store.add(_person_from_element(elem))
        elif isinstance(elem, FamilyElement):
            families.append(elem)

    for family in families:
        for relationship in _relationships_from_family(family):
            relationship_store.add(relationship)

    logger.info(f"Loaded GEDCOM file {file_path}: {len(person_store.get_all())} persons, "
                f"{len(relationship_store.get_all())} relationships")
    return person_store, relationship_store
