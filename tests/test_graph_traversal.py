import os
import sys
import unittest

# Add the parent directory to sys.path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from src.family_graph.graph_traversal import (
    clamp_depth,
    find_ancestors,
    find_descendants,
    find_shortest_path,
)
from tests.family_builders import CountingRelationshipStore, FamilyBuilder, cousins_family


class TestAncestorTraversal(unittest.TestCase):

    def test_no_parent_edges_means_no_ancestors(self):
        family = FamilyBuilder()
        family.person("A")
        family.person("B")
        family.spouse("A", "B")
        graph_ctx = family.context()
        for depth in (1, 5, 20):
            self.assertEqual(find_ancestors("A", graph_ctx, depth), {})

    def test_child_father_grandfather_scenario(self):
        family = FamilyBuilder()
        family.man("Child")
        family.man("Father")
        family.man("Grandfather")
        graph_ctx = family.context()

        family.parent("Child", "Father")
        self.assertEqual(find_ancestors("Child", graph_ctx, 5), {"Father": 1})

        family.parent("Father", "Grandfather")
        self.assertEqual(find_ancestors("Child", graph_ctx, 5), {"Father": 1, "Grandfather": 2})

    def test_generation_is_hop_distance(self):
        graph_ctx = cousins_family().context()
        ancestors = find_ancestors("C1", graph_ctx, 5)
        self.assertEqual(ancestors, {"F1": 1, "M1": 1, "G1": 2, "G2": 2})
        self.assertNotIn("C1", ancestors)

    def test_depth_limits_generations(self):
        graph_ctx = cousins_family().context()
        self.assertEqual(set(find_ancestors("C1", graph_ctx, 1)), {"F1", "M1"})

    def test_pedigree_collapse_has_no_duplicates(self):
        # Cousins F and M marry; their child shares great-grandparents on both sides
        family = FamilyBuilder()
        for pid in ("GG", "A", "B", "F", "M", "K"):
            family.person(pid)
        family.parent("A", "GG")
        family.parent("B", "GG")
        family.parent("F", "A")
        family.parent("M", "B")
        family.parent("K", "F")
        family.parent("K", "M")
        ancestors = find_ancestors("K", family.context(), 10)
        self.assertEqual(ancestors, {"F": 1, "M": 1, "A": 2, "B": 2, "GG": 3})

    def test_cyclic_data_terminates(self):
        family = FamilyBuilder()
        for pid in ("A", "B", "C"):
            family.person(pid)
        family.parent("A", "B")
        family.parent("B", "C")
        family.parent("C", "A")
        ancestors = find_ancestors("A", family.context(), 20)
        self.assertEqual(ancestors, {"B": 1, "C": 2})

    def test_one_batched_call_per_generation(self):
        family = cousins_family()
        counting = CountingRelationshipStore(family.relationships)
        graph_ctx = family.context()
        graph_ctx.relationship_store = counting

        find_ancestors("C1", graph_ctx, 10)

        self.assertTrue(all(call[0] == "list_by_people" for call in counting.calls))
        # parents, grandparents, then one empty level
        self.assertEqual(len(counting.calls), 3)


class TestDescendantTraversal(unittest.TestCase):

    def test_descendants_mirror_ancestors(self):
        graph_ctx = cousins_family().context()
        descendants = find_descendants("G1", graph_ctx, 10)
        self.assertEqual(descendants, {"F1": 1, "F2": 1, "C1": 2, "C2": 2, "D1": 2})
        self.assertNotIn("G1", descendants)

    def test_spouses_are_not_descendants(self):
        graph_ctx = cousins_family().context()
        self.assertNotIn("M1", find_descendants("G1", graph_ctx, 10))

    def test_unclamped_depth_goes_past_limit(self):
        family = FamilyBuilder()
        chain = [f"P{i}" for i in range(30)]
        for pid in chain:
            family.person(pid)
        for child, parent in zip(chain[1:], chain):
            family.parent(child, parent)
        graph_ctx = family.context()

        self.assertEqual(len(find_descendants("P0", graph_ctx, 100)), 20)
        self.assertEqual(len(find_descendants("P0", graph_ctx, 100, clamp=False)), 29)


class TestClampDepth(unittest.TestCase):

    def test_clamp_depth(self):
        self.assertEqual(clamp_depth(0, 5), 5)
        self.assertEqual(clamp_depth(-3, 10), 10)
        self.assertEqual(clamp_depth(None, 5), 5)
        self.assertEqual(clamp_depth(7, 5), 7)
        self.assertEqual(clamp_depth(50, 5), 20)

    def test_non_positive_depth_uses_default(self):
        family = FamilyBuilder()
        chain = [f"P{i}" for i in range(8)]
        for pid in chain:
            family.person(pid)
        for child, parent in zip(chain, chain[1:]):
            family.parent(child, parent)
        graph_ctx = family.context()
        self.assertEqual(len(find_ancestors("P0", graph_ctx, 0)), 5)
        self.assertEqual(len(find_descendants("P7", graph_ctx, -1)), 7)


class TestShortestPath(unittest.TestCase):

    def setUp(self):
        self.graph_ctx = cousins_family().context()

    def test_path_to_self(self):
        self.assertEqual(find_shortest_path("C1", "C1", self.graph_ctx, 5), ["C1"])

    def test_child_father_path(self):
        family = FamilyBuilder()
        family.person("Child")
        family.person("Father")
        family.parent("Child", "Father")
        self.assertEqual(find_shortest_path("Child", "Father", family.context(), 5), ["Child", "Father"])

    def test_cousin_path(self):
        path = find_shortest_path("C1", "D1", self.graph_ctx)
        self.assertEqual(len(path) - 1, 4)
        self.assertEqual(path[0], "C1")
        self.assertEqual(path[-1], "D1")
        self.assertEqual(len(set(path)), len(path))

    def test_degree_is_symmetric(self):
        pairs = [("C1", "D1"), ("C2", "G2"), ("M1", "M2"), ("C1", "F2")]
        for a, b in pairs:
            forward = find_shortest_path(a, b, self.graph_ctx)
            backward = find_shortest_path(b, a, self.graph_ctx)
            self.assertEqual(len(forward), len(backward), f"{a}<->{b}")

    def test_spouse_edges_are_walked(self):
        self.assertEqual(find_shortest_path("M1", "F1", self.graph_ctx), ["M1", "F1"])

    def test_unreachable_returns_none(self):
        family = cousins_family()
        family.person("Stranger")
        self.assertIsNone(find_shortest_path("C1", "Stranger", family.context()))

    def test_max_depth_cuts_long_paths(self):
        self.assertIsNone(find_shortest_path("C1", "D1", self.graph_ctx, 3))
        self.assertIsNotNone(find_shortest_path("C1", "D1", self.graph_ctx, 4))


if __name__ == '__main__':
    unittest.main()
