"""Advisory Redis cache for page reads.

``page:{page_id}`` is a hash keyed by requesting user id, so an access level
cached for one user is never served to another. ``user_pages:{user_id}`` holds
the owner's page list. Every helper swallows Redis errors after logging them;
callers treat a failure as a cache miss.
"""
import json
import logging
from typing import Any, Optional

from app.core.config import settings
from app.core.redis_client import get_redis

logger = logging.getLogger(__name__)


def page_key(page_id: int) -> str:
    return f"page:{page_id}"


def user_pages_key(user_id: int) -> str:
    return f"user_pages:{user_id}"


async def get_cached_page(page_id: int, user_id: int) -> Optional[dict]:
    try:
        redis_client = await get_redis()
        value = await redis_client.hget(page_key(page_id), str(user_id))
    except Exception:
        logger.warning("Page cache read failed for page %s", page_id, exc_info=True)
        return None
    if value is None:
        return None
    logger.debug("Cache hit for page %s user %s", page_id, user_id)
    return json.loads(value)


async def set_cached_page(page_id: int, user_id: int, data: dict) -> None:
    key = page_key(page_id)
    try:
        redis_client = await get_redis()
        await redis_client.hset(key, str(user_id), json.dumps(data))
        # TTL starts at the first cached view, later writes do not extend it
        await redis_client.expire(key, settings.PAGE_CACHE_TTL_SECONDS, nx=True)
    except Exception:
        logger.warning("Page cache write failed for page %s", page_id, exc_info=True)


async def get_cached_user_pages(user_id: int) -> Optional[list]:
    try:
        redis_client = await get_redis()
        value = await redis_client.get(user_pages_key(user_id))
    except Exception:
        logger.warning("Page list cache read failed for user %s", user_id, exc_info=True)
        return None
    return json.loads(value) if value is not None else None


async def set_cached_user_pages(user_id: int, data: list) -> None:
    try:
        redis_client = await get_redis()
        await redis_client.setex(user_pages_key(user_id), settings.PAGE_CACHE_TTL_SECONDS, json.dumps(data))
    except Exception:
        logger.warning("Page list cache write failed for user %s", user_id, exc_info=True)


async def _delete(*keys: Any) -> None:
    try:
        redis_client = await get_redis()
        await redis_client.delete(*keys)
    except Exception:
        logger.warning("Cache invalidation failed for %s", keys, exc_info=True)


async def invalidate_user_pages(user_id: int) -> None:
    await _delete(user_pages_key(user_id))


async def invalidate_page(page_id: int, owner_id: int) -> None:
    """Drop every cached view of a page and the owner's page list"""
    await _delete(page_key(page_id), user_pages_key(owner_id))
