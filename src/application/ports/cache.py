"""
Cache Invalidation Port (인터페이스)

리소스 단위 캐시 삭제 이벤트 발행 (예: preview/<id>). 실제 삭제는 외부 워커 소관.
"""
from __future__ import annotations

from abc import ABC, abstractmethod


class ICacheInvalidation(ABC):
    @abstractmethod
    def invalidate(self, resource: str) -> None:
        pass
