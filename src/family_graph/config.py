#!/usr/bin/env python3

import os
from pathlib import Path

BUNDLED_LOCALES_DIR = str(Path(__file__).parent / "locales")


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


class Config:
    """Application configuration"""
    CACHE_BACKEND = os.getenv("FAMILY_GRAPH_CACHE_BACKEND", "memory").lower()
    CACHE_TTL_SECONDS = int(os.getenv("FAMILY_GRAPH_CACHE_TTL_SECONDS", "300"))
    CACHE_MAX_ENTRIES = int(os.getenv("FAMILY_GRAPH_CACHE_MAX_ENTRIES", "1024"))
    REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")

    LOCALES_DIR = os.getenv("FAMILY_GRAPH_LOCALES_DIR", BUNDLED_LOCALES_DIR)
    DEFAULT_LOCALE = os.getenv("FAMILY_GRAPH_DEFAULT_LOCALE", "en")
    NARRATOR_ENABLED = _env_flag("FAMILY_GRAPH_NARRATOR", "on")

    SNAPSHOT_CACHE_DIR = os.getenv("FAMILY_GRAPH_SNAPSHOT_CACHE_DIR", "/tmp/family_graph_cache")
    SNAPSHOT_TTL_HOURS = int(os.getenv("FAMILY_GRAPH_SNAPSHOT_TTL_HOURS", "24"))
    S3_BUCKET = os.getenv("FAMILY_GRAPH_S3_BUCKET", "")
    S3_REGION = os.getenv("FAMILY_GRAPH_S3_REGION", "us-east-1")
    S3_ENDPOINT_URL = os.getenv("FAMILY_GRAPH_S3_ENDPOINT_URL") or None

    WEBHOOK_URL = os.getenv("WEBHOOK_URL", "")


config = Config()
