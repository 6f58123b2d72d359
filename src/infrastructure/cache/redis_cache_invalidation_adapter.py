"""
RedisCacheInvalidationAdapter - ICacheInvalidation Port 구현체

캐시 삭제 작업을 delete 워커 큐(Redis list)에 적재.
실제 삭제는 delete 워커 소관. Redis 미설정/장애 시 경고만.
"""
from __future__ import annotations

import json
import logging

from libs.redis.client import get_redis_client
from src.application.ports.cache import ICacheInvalidation

logger = logging.getLogger(__name__)

CACHE_DELETE_QUEUE = "v1-deletes"
DELETE_TYPE_CACHE_BY_RESOURCE = "cacheByResource"


class RedisCacheInvalidationAdapter(ICacheInvalidation):
    """ICacheInvalidation 구현 (Redis list queue)"""

    def __init__(self, queue: str = CACHE_DELETE_QUEUE) -> None:
        self._queue = queue

    def invalidate(self, resource: str) -> None:
        client = get_redis_client()
        if not client:
            logger.debug("Redis unavailable, cache delete skipped: %s", resource)
            return

        payload = {"type": DELETE_TYPE_CACHE_BY_RESOURCE, "resource": resource}
        try:
            client.rpush(self._queue, json.dumps(payload))
            logger.info("Cache delete queued: resource=%s", resource)
        except Exception as e:
            logger.warning("Redis cache delete enqueue failed resource=%s: %s", resource, e)
