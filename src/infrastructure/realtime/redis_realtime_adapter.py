"""
RedisRealtimeAdapter - IRealtime Port 구현체

realtime 서버가 구독하는 Redis 채널에 JSON 메시지 publish.
Redis 미설정/장애 시 로그만 남기고 무시 (fire-and-forget).
"""
from __future__ import annotations

import json
import logging
from typing import Any

from libs.redis.client import get_redis_client
from src.application.ports.realtime import IRealtime

logger = logging.getLogger(__name__)

REALTIME_CHANNEL = "realtime"


class RedisRealtimeAdapter(IRealtime):
    """IRealtime 구현 (Redis pub/sub)"""

    def __init__(self, channel: str = REALTIME_CHANNEL) -> None:
        self._channel = channel

    def publish(
        self,
        project_id: str,
        events: list[str],
        payload: dict[str, Any],
        channels: list[str],
        roles: list[str],
    ) -> None:
        client = get_redis_client()
        if not client:
            logger.debug("Redis unavailable, realtime event dropped: %s", events[:1])
            return

        message = {
            "project": project_id,
            "roles": roles,
            "data": {
                "events": events,
                "channels": channels,
                "payload": payload,
            },
        }
        try:
            client.publish(self._channel, json.dumps(message, default=str))
            logger.debug("Realtime published: event=%s channels=%s", events[:1], channels)
        except Exception as e:
            logger.warning("Redis realtime publish failed: %s", e)
