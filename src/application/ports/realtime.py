"""
Realtime Port (인터페이스)

상태 전이마다 1회 발행. fire-and-forget (실패해도 예외 없음).
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class IRealtime(ABC):
    @abstractmethod
    def publish(
        self,
        project_id: str,
        events: list[str],
        payload: dict[str, Any],
        channels: list[str],
        roles: list[str],
    ) -> None:
        pass
