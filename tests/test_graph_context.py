import os
import sys
import unittest
from types import SimpleNamespace
from unittest.mock import patch

# Add the parent directory to sys.path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from src.family_graph import graph_context as graph_context_module
from src.family_graph.graph_cache import MemoryGraphCache
from src.family_graph.graph_context import GraphContext, get_graph_context, new_graph_context, set_graph_context
from src.family_graph.kinship_narrator import KinshipNarrator


class TestGraphContext(unittest.TestCase):

    def test_defaults(self):
        graph_ctx = GraphContext()
        self.assertEqual(graph_ctx.person_store.get_all(), [])
        self.assertEqual(graph_ctx.relationship_store.get_all(), [])
        self.assertIsNone(graph_ctx.cache)
        self.assertIsNone(graph_ctx.narrator)
        self.assertEqual(graph_ctx.cache_namespace, "family")
        self.assertFalse(graph_ctx.is_loaded())

    def test_new_context_is_wired_from_config(self):
        with patch.object(graph_context_module.config, 'CACHE_BACKEND', 'memory'), \
                patch.object(graph_context_module.config, 'NARRATOR_ENABLED', True), \
                patch.object(graph_context_module.config, 'DEFAULT_LOCALE', 'id'):
            graph_ctx = new_graph_context(source_file="family.ged")
        self.assertIsInstance(graph_ctx.cache, MemoryGraphCache)
        self.assertIsInstance(graph_ctx.narrator, KinshipNarrator)
        self.assertEqual(graph_ctx.default_locale, "id")
        self.assertTrue(graph_ctx.is_loaded())

    def test_narrator_can_be_disabled(self):
        with patch.object(graph_context_module.config, 'NARRATOR_ENABLED', False):
            self.assertIsNone(new_graph_context().narrator)


class TestSessionBinding(unittest.TestCase):

    def tearDown(self):
        graph_context_module.graph_context = None

    def test_context_is_bound_per_session(self):
        first = SimpleNamespace(session=SimpleNamespace(), session_id="s1")
        second = SimpleNamespace(session=SimpleNamespace(), session_id="s2")
        loaded = GraphContext(source_file="family.ged")

        self.assertIs(set_graph_context(first, loaded), loaded)
        self.assertIs(get_graph_context(first), loaded)
        self.assertIsNot(get_graph_context(second), loaded)
        self.assertFalse(get_graph_context(second).is_loaded())

    def test_global_context_without_session(self):
        ctx = SimpleNamespace(session=None)
        created = get_graph_context(ctx)
        self.assertIs(get_graph_context(ctx), created)
        loaded = set_graph_context(ctx, GraphContext(source_file="family.ged"))
        self.assertIs(get_graph_context(ctx), loaded)


if __name__ == '__main__':
    unittest.main()
