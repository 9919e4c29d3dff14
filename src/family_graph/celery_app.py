#!/usr/bin/env python3

"""
Celery configuration and background tasks for family graph cache warm-up.
"""

import logging

import httpx
from celery import Celery
from celery.exceptions import Retry

from .config import config
from .graph_service import get_full_graph, invalidate_cache
from .signature_utils import generate_signature
from .snapshot_files import get_file_cache, load_snapshot_context


# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Initialize Celery app
celery_app = Celery(
    "family_graph_worker",
    broker=config.REDIS_URL,
    backend=config.REDIS_URL
)

# Celery configuration
celery_app.conf.update(
    task_serializer='json',
    accept_content=['json'],
    result_serializer='json',
    timezone='UTC',
    enable_utc=True,
    task_track_started=True,
    task_time_limit=600,
    task_soft_time_limit=540,
    worker_prefetch_multiplier=1,
    worker_max_tasks_per_child=1000,
)


def notify_webhook(payload: dict) -> int:
    """POST a signed payload to WEBHOOK_URL; returns the HTTP status"""
    headers = {
        "X-Signature": generate_signature(payload),
        "Content-Type": "application/json"
    }
    with httpx.Client(timeout=30.0) as client:
        response = client.post(config.WEBHOOK_URL, json=payload, headers=headers)
    return response.status_code


@celery_app.task(bind=True, max_retries=5, default_retry_delay=60)
def warm_graph_cache(self, file_path: str, user_id: str = None):
    """
    Rebuild the cached full graph for a snapshot after it changed.

    Args:
        file_path: Snapshot path (local or s3://)
        user_id: Optional user to echo back in the webhook payload

    Returns:
        Graph stats of the rebuilt graph
    """
    try:
        logger.info(f"Warming graph cache for {file_path}")
        if config.CACHE_BACKEND != "redis":
            logger.warning(f"Cache backend is '{config.CACHE_BACKEND}'; warm-up will not be shared with the API")

        get_file_cache().evict(file_path)
        graph_ctx = load_snapshot_context(file_path)
        invalidate_cache(graph_ctx)
        graph = get_full_graph(graph_ctx)

        result = {
            "status": "success",
            "file": file_path,
            "stats": graph.stats.model_dump(),
        }
        if user_id is not None:
            result["user_id"] = user_id

        if config.WEBHOOK_URL:
            status_code = notify_webhook(result)
            if status_code not in (200, 201):
                logger.error(f"Webhook returned status {status_code}")
                raise self.retry(
                    exc=Exception(f"Webhook returned status {status_code}"),
                    countdown=60 * (self.request.retries + 1)
                )
            logger.info(f"Webhook sent for {file_path}")

        logger.info(f"Graph cache warmed for {file_path}: {graph.stats.total_persons} persons")
        return result

    except Retry:
        raise
    except Exception as e:
        logger.error(f"Error warming graph cache for {file_path}: {e}")
        if self.request.retries < self.max_retries:
            logger.info(f"Retrying task (attempt {self.request.retries + 1}/{self.max_retries})")
            raise self.retry(exc=e, countdown=60 * (self.request.retries + 1))
        logger.error(f"Max retries exceeded for {file_path}")
        raise
