"""
Shared utility functions for routers and services
"""
import json
import logging
import secrets
import string
import time
import uuid
from datetime import datetime
from typing import Optional

logger = logging.getLogger(__name__)

SLUG_ALPHABET = string.ascii_lowercase + string.digits
SLUG_LENGTH = 12


def utc_now() -> datetime:
    """Naive UTC timestamp, matching what the models store."""
    return datetime.utcnow()


def now_millis() -> int:
    return int(time.time() * 1000)


def new_id(prefix: str) -> str:
    """Opaque string id such as `user_3f2a...`"""
    return f"{prefix}_{uuid.uuid4().hex}"


def generate_slug() -> str:
    """12 random characters from [a-z0-9], used for public CV links and email tokens"""
    return "".join(secrets.choice(SLUG_ALPHABET) for _ in range(SLUG_LENGTH))


def log_endpoint_event(endpoint: str, user_id: Optional[str] = None, result: str = "success", details: Optional[dict] = None):
    """Log endpoint execution to app.log"""
    logger.info(f"{endpoint} | user={user_id or 'none'} | {result} | {json.dumps(details or {}, default=str)}")
