#!/usr/bin/env python3

"""
HMAC-SHA256 signing for change events and worker webhooks.

Producers sign the JSON body of a change event with the shared SECRET_KEY
and send the hex digest in the X-Signature header.
"""

import hashlib
import hmac
import json
import logging
import os
from typing import Any, Dict, Union

# Set up logging
logger = logging.getLogger(__name__)


def get_secret_key() -> str:
    """
    Get the shared secret used for event signatures.

    Raises:
        ValueError: If SECRET_KEY environment variable is not set
    """
    secret_key = os.getenv("SECRET_KEY")
    if not secret_key:
        raise ValueError("SECRET_KEY environment variable is not set")
    return secret_key


def canonical_message(data: Union[Dict[str, Any], str]) -> str:
    """Strings are signed as-is; payloads as compact JSON in field order"""
    if isinstance(data, str):
        return data
    return json.dumps(data, sort_keys=False, separators=(',', ':'), ensure_ascii=False)


def generate_signature(data: Union[Dict[str, Any], str]) -> str:
    return hmac.new(
        get_secret_key().encode('utf-8'),
        canonical_message(data).encode('utf-8'),
        hashlib.sha256
    ).hexdigest()


def verify_signature(data: Union[Dict[str, Any], str], provided_signature: str) -> bool:
    """Constant-time check of a provided signature; False when no secret is configured"""
    if not provided_signature:
        return False
    try:
        expected_signature = generate_signature(data)
    except ValueError as e:
        logger.warning(f"Cannot verify signature: {e}")
        return False
    return hmac.compare_digest(expected_signature, provided_signature)
