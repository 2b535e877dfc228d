"""
Redis cache for the most recent chat turns of each (content section, learner) pair.

The database stays the source of truth: readers fall back to it on a miss,
writers invalidate and bump a version counter. Caching is off unless REDIS_URL
is set; a malformed URL or an unreachable server disables it for the rest of
the process.
"""

import os
import json
import asyncio
import logging
from typing import Any, Dict, List, Optional

import redis.asyncio as aioredis
from redis.exceptions import WatchError

logger = logging.getLogger(__name__)

_redis_client = None
_redis_available = None
_redis_lock = asyncio.Lock()

TURNS_KEY_PREFIX = "lesson-chat"
TURNS_TTL_SECONDS = 6 * 60 * 60
MAX_CACHED_TURNS = 20


async def _connection():
    """Shared connection, created on first use. None when caching is off."""
    global _redis_client, _redis_available
    if _redis_available is False:
        return None
    if _redis_client is not None:
        return _redis_client

    async with _redis_lock:
        if _redis_available is False or _redis_client is not None:
            return _redis_client

        url = os.getenv("REDIS_URL")
        if not url:
            logger.info("REDIS_URL not set, chat turns are read from the database")
            _redis_available = False
            return None

        try:
            client = aioredis.from_url(url, decode_responses=True)
            await client.ping()
        except Exception as e:
            logger.warning(f"Redis at {url} unusable, chat cache disabled: {e}")
            _redis_available = False
            return None

        _redis_client = client
        _redis_available = True
        logger.info(f"Chat cache connected: {url}")
        return _redis_client


def _turns_key(content_id: str, user_key: str) -> str:
    return f"{TURNS_KEY_PREFIX}:{content_id}:{user_key}"


def _version_key(content_id: str, user_key: str) -> str:
    return f"{_turns_key(content_id, user_key)}:version"


async def get_recent_turns(content_id: str, user_key: str, limit: int) -> Optional[List[Dict[str, Any]]]:
    """Newest `limit` cached turns, oldest first; None when nothing is cached."""
    r = await _connection()
    if r is None:
        return None
    try:
        raw = await r.lrange(_turns_key(content_id, user_key), -limit, -1)
    except Exception as e:
        logger.warning(f"Chat cache read failed for {content_id}: {e}")
        return None
    return [json.loads(turn) for turn in raw] if raw else None


async def turns_version(content_id: str, user_key: str) -> Optional[str]:
    """Counter bumped by every invalidate. Read it before loading turns from the database."""
    r = await _connection()
    if r is None:
        return None
    try:
        return await r.get(_version_key(content_id, user_key))
    except Exception as e:
        logger.warning(f"Chat cache version read failed for {content_id}: {e}")
        return None


async def cache_turns(
    content_id: str,
    user_key: str,
    turns: List[Dict[str, Any]],
    version: Optional[str] = None,
) -> bool:
    """
    Replace the cached window with `turns` (oldest first).

    Skipped when the version has moved since `version` was read, so a turn
    appended during the database read is never hidden by an older window.
    """
    r = await _connection()
    if r is None or not turns:
        return False
    key = _turns_key(content_id, user_key)
    version_key = _version_key(content_id, user_key)
    try:
        async with r.pipeline(transaction=True) as pipe:
            await pipe.watch(version_key)
            if await pipe.get(version_key) != version:
                logger.debug(f"Chat cache for {content_id} changed during read, not refilling")
                return False
            pipe.multi()
            pipe.delete(key)
            pipe.rpush(key, *[json.dumps(turn, default=str) for turn in turns[-MAX_CACHED_TURNS:]])
            pipe.expire(key, TURNS_TTL_SECONDS)
            await pipe.execute()
    except WatchError:
        logger.debug(f"Chat cache for {content_id} changed during refill, not refilling")
        return False
    except Exception as e:
        logger.warning(f"Chat cache write failed for {content_id}: {e}")
        return False
    return True


async def invalidate(content_id: str, user_key: str) -> None:
    r = await _connection()
    if r is None:
        return
    version_key = _version_key(content_id, user_key)
    try:
        async with r.pipeline(transaction=True) as pipe:
            pipe.incr(version_key)
            pipe.expire(version_key, TURNS_TTL_SECONDS)
            pipe.delete(_turns_key(content_id, user_key))
            await pipe.execute()
    except Exception as e:
        logger.warning(f"Chat cache invalidation failed for {content_id}: {e}")
