import os
import sys
import tempfile
import unittest
from datetime import date
from pathlib import Path

# Add the parent directory to sys.path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from src.family_graph.gedcom_data_access import load_gedcom_file, parse_gedcom_date, split_plain_name
from src.family_graph.graph_context import GraphContext
from src.family_graph.graph_errors import DataAccessError
from src.family_graph.graph_models import Gender, ParentRole, RelationshipType
from src.family_graph.graph_relations import classify_path
from src.family_graph.graph_traversal import find_shortest_path


class TestParseGedcomDate(unittest.TestCase):

    def test_full_date(self):
        self.assertEqual(parse_gedcom_date("15 MAR 1850"), date(1850, 3, 15))

    def test_partial_dates_use_earliest_day(self):
        self.assertEqual(parse_gedcom_date("MAR 1850"), date(1850, 3, 1))
        self.assertEqual(parse_gedcom_date("1850"), date(1850, 1, 1))

    def test_qualified_dates(self):
        self.assertEqual(parse_gedcom_date("ABT 1850"), date(1850, 1, 1))
        self.assertEqual(parse_gedcom_date("bef 2 jan 1900"), date(1900, 1, 2))
        self.assertEqual(parse_gedcom_date("BET 1850 AND 1860"), date(1850, 1, 1))

    def test_unparseable(self):
        self.assertIsNone(parse_gedcom_date(None))
        self.assertIsNone(parse_gedcom_date(""))
        self.assertIsNone(parse_gedcom_date("sometime"))
        self.assertIsNone(parse_gedcom_date("31 FEB 1850"))


class TestSplitPlainName(unittest.TestCase):

    def test_title_and_suffix_are_dropped(self):
        self.assertEqual(split_plain_name("Dr. John Quincy Adams Jr."), ("John Quincy", "Adams", None))

    def test_quoted_nickname(self):
        self.assertEqual(split_plain_name('John "Jack" Kennedy'), ("John", "Kennedy", "Jack"))

    def test_plain_name_in_file(self):
        content = "0 HEAD\n1 CHAR UTF-8\n0 @I1@ INDI\n1 NAME Mary Ann Jones\n1 SEX F\n0 TRLR\n"
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "plain.ged"
            path.write_text(content, encoding="utf-8")
            persons, _ = load_gedcom_file(str(path))
        mary = persons.get_by_id("@I1@")
        self.assertEqual(mary.first_name, "Mary Ann")
        self.assertEqual(mary.last_name, "Jones")


class TestLoadGedcomFile(unittest.TestCase):

    def setUp(self):
        self.sample_ged_path = Path(__file__).parent / "sample.ged"
        self.persons, self.relationships = load_gedcom_file(str(self.sample_ged_path))

    def test_persons(self):
        self.assertEqual(len(self.persons.get_all()), 6)
        john = self.persons.get_by_id("@I1@")
        self.assertEqual(john.first_name, "John")
        self.assertEqual(john.last_name, "Smith")
        self.assertEqual(john.gender, Gender.MALE)
        self.assertEqual(john.birth_date, date(1940, 1, 1))
        self.assertEqual(john.birth_place, "London, England")
        self.assertFalse(john.is_alive)

    def test_nickname_and_avatar(self):
        mary = self.persons.get_by_id("@I2@")
        self.assertEqual(mary.nickname, "Molly")
        self.assertEqual(mary.avatar_url, "https://example.org/photos/mary.jpg")
        self.assertTrue(mary.is_alive)

    def test_relationship_edges(self):
        edges = {edge.id: edge for edge in self.relationships.get_all()}
        self.assertEqual(len(edges), 8)

        marriage = edges["@F1@:SPOUSE"]
        self.assertEqual(marriage.type, RelationshipType.SPOUSE)
        self.assertEqual(marriage.spouse_metadata().marriage_date, date(1962, 6, 1))
        self.assertEqual(marriage.spouse_metadata().marriage_place, "London, England")
        self.assertEqual(edges["@F2@:SPOUSE"].spouse_metadata().divorce_date, date(2001, 1, 1))

        anne_mother = edges["@F1@:@I4@:MOTHER"]
        self.assertEqual(anne_mother.person_a, "@I4@")
        self.assertEqual(anne_mother.person_b, "@I2@")
        self.assertEqual(anne_mother.role, ParentRole.MOTHER)
        self.assertEqual(anne_mother.parent_metadata().child_order, 2)

    def test_loaded_graph_is_traversable(self):
        graph_ctx = GraphContext(person_store=self.persons, relationship_store=self.relationships)
        path = find_shortest_path("@I6@", "@I4@", graph_ctx)
        self.assertEqual(len(path), 4)
        self.assertIsNotNone(classify_path(path, graph_ctx))

    def test_missing_file(self):
        with self.assertRaises(DataAccessError) as cm:
            load_gedcom_file("/nonexistent/file.ged")
        self.assertEqual(cm.exception.error_code, "FILE_NOT_FOUND")

    def test_latin1_file(self):
        content = "0 HEAD\n1 CHAR ANSI\n0 @I1@ INDI\n1 NAME Ren\xe9 /Dupont/\n1 SEX M\n0 TRLR\n"
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "latin1.ged"
            path.write_bytes(content.encode("latin-1"))
            persons, _ = load_gedcom_file(str(path))
        self.assertEqual(persons.get_by_id("@I1@").last_name, "Dupont")


if __name__ == '__main__':
    unittest.main()
