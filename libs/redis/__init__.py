"""
Redis 연결 레이어

Rendition worker 에서는 부가 채널 용도로만 사용:
- realtime 이벤트 publish
- cache delete 작업 enqueue

Redis 미설정/장애 시 두 기능 모두 no-op (job 결과에는 영향 없음).
"""

from libs.redis.client import get_redis_client, is_redis_available, reset_redis_state

__all__ = [
    "get_redis_client",
    "is_redis_available",
    "reset_redis_state",
]
