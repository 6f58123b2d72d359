"""
Rendition Repository Port (인터페이스)

레코드 스토어 (videos / renditions / segments / subtitles / previews).
Worker는 이 포트를 통해서만 레코드를 생성/변경.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Optional

from src.domain.rendition.entities import (
    Bucket,
    File,
    Preview,
    PreviewType,
    Rendition,
    Segment,
    Subtitle,
    SubtitleSegment,
    SubtitleStatus,
)


class IRenditionRepository(ABC):
    """Rendition 레코드 Repository 추상 인터페이스"""

    # --------------------------------------------------
    # Source
    # --------------------------------------------------

    @abstractmethod
    def get_bucket(self, bucket_id: str) -> Bucket:
        pass

    @abstractmethod
    def get_file(self, bucket: Bucket, file_id: str) -> File:
        pass

    @abstractmethod
    def update_video(self, video_id: str, patch: dict[str, Any]) -> None:
        """부분 업데이트. patch에는 None이 아닌 필드만 담는다."""
        pass

    # --------------------------------------------------
    # Rendition / Segment
    # --------------------------------------------------

    @abstractmethod
    def create_rendition(self, rendition: Rendition) -> Rendition:
        """생성 후 id가 채워진 Rendition 반환."""
        pass

    @abstractmethod
    def update_rendition(self, rendition: Rendition) -> None:
        pass

    @abstractmethod
    def create_segment(self, segment: Segment) -> None:
        pass

    # --------------------------------------------------
    # Subtitle
    # --------------------------------------------------

    @abstractmethod
    def find_subtitles(self, video_id: str, status: SubtitleStatus = SubtitleStatus.QUEUED) -> list[Subtitle]:
        pass

    @abstractmethod
    def update_subtitle(self, subtitle: Subtitle) -> None:
        pass

    def claim_subtitle(self, subtitle: Subtitle) -> bool:
        """
        QUEUED → STARTED 즉시 기록.
        다른 job이 먼저 가져갔으면 False.
        기본 구현: 상태 쓰기 (조건부 갱신은 구현체에서 override).
        """
        subtitle.claim()
        self.update_subtitle(subtitle)
        return True

    @abstractmethod
    def create_subtitle_segment(self, segment: SubtitleSegment) -> None:
        pass

    # --------------------------------------------------
    # Preview
    # --------------------------------------------------

    @abstractmethod
    def find_preview(self, video_id: str, type: PreviewType, name: str) -> Optional[Preview]:
        pass

    @abstractmethod
    def create_preview(self, preview: Preview) -> Preview:
        pass

    @abstractmethod
    def update_preview(self, preview: Preview) -> None:
        pass
