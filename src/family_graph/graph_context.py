#!/usr/bin/env python3

import logging
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Optional

from .config import config
from .graph_cache import GraphCache, MemoryGraphCache, RedisGraphCache
from .graph_stores import InMemoryPersonStore, InMemoryRelationshipStore, PersonStore, RelationshipStore
from .kinship_narrator import KinshipNarrator
from .translations import TranslationService

# Set up logging
logger = logging.getLogger(__name__)


@dataclass
class GraphContext:
    """Stores and collaborators for one family graph"""
    person_store: PersonStore = field(default_factory=InMemoryPersonStore)
    relationship_store: RelationshipStore = field(default_factory=InMemoryRelationshipStore)
    cache: Optional[GraphCache] = None
    narrator: Optional[KinshipNarrator] = None
    cache_ttl: int = 300
    default_locale: str = "en"
    source_file: Optional[str] = None

    # Prefix for every cache key; one namespace per loaded snapshot
    cache_namespace: str = "family"

    def is_loaded(self) -> bool:
        return self.source_file is not None


def create_graph_cache() -> Optional[GraphCache]:
    """Build the cache backend selected by FAMILY_GRAPH_CACHE_BACKEND"""
    backend = config.CACHE_BACKEND
    if backend == "none":
        return None
    if backend == "redis":
        return RedisGraphCache(config.REDIS_URL)
    if backend != "memory":
        logger.warning(f"Unknown cache backend '{backend}', using memory")
    return MemoryGraphCache(maxsize=config.CACHE_MAX_ENTRIES)


@lru_cache(maxsize=None)
def load_translations(locales_dir: str) -> TranslationService:
    return TranslationService.from_directory(locales_dir)


def create_narrator() -> Optional[KinshipNarrator]:
    if not config.NARRATOR_ENABLED:
        return None
    return KinshipNarrator(load_translations(config.LOCALES_DIR))


def new_graph_context(person_store=None, relationship_store=None, source_file: Optional[str] = None) -> GraphContext:
    """Create a context wired with the configured cache and narrator"""
    if person_store is None:
        person_store = InMemoryPersonStore()
    if relationship_store is None:
        relationship_store = InMemoryRelationshipStore(person_store=person_store)
    return GraphContext(
        person_store=person_store,
        relationship_store=relationship_store,
        cache=create_graph_cache(),
        narrator=create_narrator(),
        cache_ttl=config.CACHE_TTL_SECONDS,
        default_locale=config.DEFAULT_LOCALE,
        source_file=source_file,
    )


graph_context: GraphContext = None


def get_graph_context(ctx):
    """Return the GraphContext bound to an MCP session, creating it on first use"""
    global graph_context

    session = getattr(ctx, "session", None)
    if session:
        logger.info(f"session:{session} id:{ctx.session_id}")
        graph_ctx = getattr(session, "_graph_context", None)
    else:
        graph_ctx = graph_context
        logger.info("No session - using global context")

    if graph_ctx is None:
        graph_ctx = new_graph_context()
        if session:
            setattr(session, "_graph_context", graph_ctx)
        else:
            graph_context = graph_ctx

    return graph_ctx


def set_graph_context(ctx, graph_ctx: GraphContext):
    """Bind a freshly loaded GraphContext to the MCP session"""
    global graph_context

    session = getattr(ctx, "session", None)
    if session:
        setattr(session, "_graph_context", graph_ctx)
    else:
        graph_context = graph_ctx
    return graph_ctx
