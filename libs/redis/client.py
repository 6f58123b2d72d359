"""
Redis 클라이언트 (job 프로세스당 1회 연결 시도)

접속 정보:
- REDIS_URL 이 있으면 그대로 사용 (redis://, rediss://)
- 없으면 REDIS_HOST / REDIS_PORT / REDIS_PASSWORD / REDIS_DB

미설정 또는 ping 실패 시 None. realtime / cache delete 어댑터는 None 이면 건너뛴다.
실패 결과도 기억해서 같은 job 안에서 상태 전이마다 재접속하지 않는다.
"""

from __future__ import annotations

import logging
import os
from typing import Optional

import redis

logger = logging.getLogger(__name__)

SOCKET_TIMEOUT_SECONDS = 5

_UNSET = object()
_client: object = _UNSET


def _connect() -> Optional[redis.Redis]:
    url = os.getenv("REDIS_URL")
    host = os.getenv("REDIS_HOST")
    if not url and not host:
        logger.debug("REDIS_URL / REDIS_HOST not set, realtime / cache delete disabled")
        return None

    options = dict(
        decode_responses=True,
        socket_timeout=SOCKET_TIMEOUT_SECONDS,
        socket_connect_timeout=SOCKET_TIMEOUT_SECONDS,
    )
    if url:
        client = redis.Redis.from_url(url, **options)
        target = url.rsplit("@", 1)[-1]
    else:
        client = redis.Redis(
            host=host,
            port=int(os.getenv("REDIS_PORT", "6379")),
            password=os.getenv("REDIS_PASSWORD") or None,
            db=int(os.getenv("REDIS_DB", "0")),
            **options,
        )
        target = f"{host}:{os.getenv('REDIS_PORT', '6379')}"

    try:
        client.ping()
    except redis.RedisError as e:
        logger.warning("Redis connection failed target=%s (events will be dropped): %s", target, e)
        return None

    logger.info("Redis connected target=%s", target)
    return client


def get_redis_client() -> Optional[redis.Redis]:
    global _client
    if _client is _UNSET:
        _client = _connect()
    return _client  # type: ignore[return-value]


def is_redis_available() -> bool:
    return get_redis_client() is not None


def reset_redis_state() -> None:
    """테스트용: 다음 호출에서 다시 연결"""
    global _client
    _client = _UNSET
