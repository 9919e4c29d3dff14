#!/usr/bin/env python3

"""
Resolution of GEDCOM snapshot files, local or on S3, and the registry of
graph contexts loaded from them.
"""

import hashlib
import logging
from datetime import datetime, timedelta
from pathlib import Path
from typing import Dict, Optional

import boto3
from botocore.exceptions import ClientError

from .config import config
from .gedcom_data_access import load_gedcom_file
from .graph_context import GraphContext, new_graph_context
from .graph_errors import DataAccessError, GraphError

# Set up logging
logger = logging.getLogger(__name__)


def s3_key_for(file_path: str) -> str:
    """Strip the s3:// scheme and bucket prefix from a snapshot path"""
    return file_path.replace("s3://", "").replace(f"{config.S3_BUCKET}/", "")


class FileCache:
    """Handles snapshot file caching operations"""

    def __init__(self):
        self.cache_dir = Path(config.SNAPSHOT_CACHE_DIR)
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        self.s3_client = None
        if config.S3_BUCKET:
            try:
                self.s3_client = boto3.client(
                    's3',
                    region_name=config.S3_REGION,
                    endpoint_url=config.S3_ENDPOINT_URL
                )
                logger.info(f"S3 client initialized for bucket: {config.S3_BUCKET}")
            except Exception as e:
                logger.warning(f"Failed to initialize S3 client: {e}")

    def _get_cached_file_path(self, file_path: str) -> Path:
        cache_key = hashlib.md5(file_path.encode()).hexdigest()
        ext = Path(file_path).suffix or '.ged'
        return self.cache_dir / f"{cache_key}{ext}"

    def _is_cache_valid(self, cached_path: Path) -> bool:
        if not cached_path.exists():
            return False
        file_age = datetime.now() - datetime.fromtimestamp(cached_path.stat().st_mtime)
        return file_age < timedelta(hours=config.SNAPSHOT_TTL_HOURS)

    def _download_from_s3(self, s3_path: str, local_path: Path) -> bool:
        if not self.s3_client:
            logger.error("S3 client not initialized")
            return False

        s3_key = s3_key_for(s3_path)
        try:
            logger.info(f"Downloading from S3: s3://{config.S3_BUCKET}/{s3_key}")
            self.s3_client.download_file(config.S3_BUCKET, s3_key, str(local_path))
            logger.info(f"Successfully downloaded to {local_path}")
            return True
        except ClientError as e:
            logger.error(f"Failed to download from S3: {e}")
            return False

    def exists_in_s3(self, s3_path: str) -> bool:
        """Check a snapshot key with HEAD; other S3 errors propagate"""
        if not self.s3_client:
            raise GraphError("S3 bucket not configured", error_code="S3_NOT_CONFIGURED")
        try:
            self.s3_client.head_object(Bucket=config.S3_BUCKET, Key=s3_key_for(s3_path))
            return True
        except ClientError as e:
            if e.response.get('Error', {}).get('Code', '') in ('404', 'NoSuchKey', 'NotFound'):
                return False
            raise

    def get_file(self, file_path: str) -> Optional[Path]:
        """
        Get file from cache or download it if needed.

        Args:
            file_path: Can be a local path or S3 URL (s3://bucket/key)

        Returns:
            Path to local file, or None if file cannot be retrieved
        """
        local_file = Path(file_path)
        if local_file.exists() and local_file.is_file():
            logger.info(f"Using local file: {file_path}")
            return local_file

        cached_path = self._get_cached_file_path(file_path)
        if self._is_cache_valid(cached_path):
            logger.info(f"Using cached file: {cached_path}")
            return cached_path

        if file_path.startswith("s3://") or config.S3_BUCKET:
            if self._download_from_s3(file_path, cached_path):
                return cached_path

        logger.error(f"File not found: {file_path}")
        return None

    def evict(self, file_path: str):
        cached_path = self._get_cached_file_path(file_path)
        if cached_path.exists():
            cached_path.unlink()
            logger.info(f"Evicted cached snapshot: {cached_path}")

    def clean_old_files(self) -> int:
        """Remove cached files older than the TTL; returns how many were removed"""
        if not self.cache_dir.exists():
            return 0

        removed = 0
        current_time = datetime.now()
        ttl = timedelta(hours=config.SNAPSHOT_TTL_HOURS)
        for cached_file in self.cache_dir.glob("*"):
            if cached_file.is_file():
                file_age = current_time - datetime.fromtimestamp(cached_file.stat().st_mtime)
                if file_age > ttl:
                    cached_file.unlink()
                    removed += 1
                    logger.info(f"Removed old cached file: {cached_file}")
        return removed


_file_cache: Optional[FileCache] = None

# Loaded contexts, keyed by the requested snapshot path
_snapshot_contexts: Dict[str, GraphContext] = {}


def get_file_cache() -> FileCache:
    global _file_cache
    if _file_cache is None:
        _file_cache = FileCache()
    return _file_cache


def snapshot_namespace(file_path: str) -> str:
    return "family:" + hashlib.md5(file_path.encode()).hexdigest()[:12]


def load_snapshot_context(file_path: str) -> GraphContext:
    """Resolve and parse a snapshot into a new GraphContext (no memoization)"""
    local_path = get_file_cache().get_file(file_path)
    if local_path is None:
        raise DataAccessError(f"GEDCOM file not found: {file_path}", error_code="FILE_NOT_FOUND",
                              recovery_suggestion="Use a local path or an s3:// key in the configured bucket")

    person_store, relationship_store = load_gedcom_file(str(local_path))
    graph_ctx = new_graph_context(person_store, relationship_store, source_file=file_path)
    graph_ctx.cache_namespace = snapshot_namespace(file_path)
    return graph_ctx


def get_or_load_snapshot(file_path: str) -> GraphContext:
    """Return the memoized context for a snapshot, loading it on first use"""
    if file_path in _snapshot_contexts:
        return _snapshot_contexts[file_path]

    graph_ctx = load_snapshot_context(file_path)
    _snapshot_contexts[file_path] = graph_ctx
    logger.info(f"Loaded snapshot: {file_path}")
    return graph_ctx


def forget_snapshot(file_path: str) -> bool:
    """Drop a memoized context so the next request reloads the snapshot"""
    return _snapshot_contexts.pop(file_path, None) is not None
