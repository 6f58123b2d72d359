# PATH: src/infrastructure/db/http_rendition_repository.py
#
# PURPOSE:
# - backend internal rendition-worker API 기반 IRenditionRepository 구현
# - worker는 서버 내부 구현/DB를 알지 않는다 (프로젝트 단위 레코드 스토어)
#
# ENDPOINTS (prefix: /internal/rendition-worker/projects/{projectId})
# - GET   /buckets/{bucketId}/                  , /buckets/{bucketId}/files/{fileId}/
# - PATCH /videos/{videoId}/
# - POST  /renditions/                          , PATCH /renditions/{id}/
# - POST  /renditions/{id}/segments/
# - GET   /videos/{videoId}/subtitles/?status=  , PATCH /subtitles/{id}/
# - POST  /subtitles/{id}/claim/                (200 claimed / 409 already claimed)
# - POST  /subtitles/{id}/segments/
# - GET   /videos/{videoId}/previews/?type=&name= (404 = 없음)
# - POST  /videos/{videoId}/previews/           , PATCH /previews/{id}/
#
# DESIGN:
# - timeout 명시, 실패는 raise_for_status 로 전파
# - X-Worker-Token / X-Worker-Id 헤더

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import requests

from src.application.ports.rendition_repository import IRenditionRepository
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

logger = logging.getLogger("rendition_worker.http")


class HttpRenditionRepository(IRenditionRepository):
    def __init__(
        self,
        *,
        base_url: str,
        worker_token: str,
        project_id: str,
        worker_id: Optional[str] = None,
        timeout_seconds: float = 10.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        if not base_url:
            raise ValueError("base_url is required")
        if not worker_token:
            raise ValueError("worker_token is required")

        self._base_url = f"{str(base_url).rstrip('/')}/internal/rendition-worker/projects/{project_id}"
        self._timeout = float(timeout_seconds or 10.0)
        self._headers = {
            "X-Worker-Token": str(worker_token),
            "Content-Type": "application/json",
        }
        if worker_id:
            self._headers["X-Worker-Id"] = str(worker_id)
        self._session = session or requests.Session()

    @classmethod
    def from_config(cls, cfg, project_id: str) -> "HttpRenditionRepository":
        return cls(
            base_url=cfg.API_BASE_URL,
            worker_token=cfg.WORKER_TOKEN,
            worker_id=cfg.WORKER_ID,
            timeout_seconds=cfg.HTTP_TIMEOUT_SECONDS,
            project_id=project_id,
        )

    def close(self) -> None:
        try:
            self._session.close()
        except Exception as e:
            logger.debug("[HTTP] session close failed: %s", e)

    def _request(self, method: str, path: str, **kwargs) -> requests.Response:
        return self._session.request(
            method,
            f"{self._base_url}/{path.lstrip('/')}",
            headers=self._headers,
            timeout=self._timeout,
            **kwargs,
        )

    def _json(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        resp = self._request(method, path, **kwargs)
        resp.raise_for_status()
        return resp.json() if resp.content else {}

    # --------------------------------------------------
    # Source
    # --------------------------------------------------

    def get_bucket(self, bucket_id: str) -> Bucket:
        return Bucket.from_dict(self._json("GET", f"buckets/{bucket_id}/"))

    def get_file(self, bucket: Bucket, file_id: str) -> File:
        return File.from_dict(self._json("GET", f"buckets/{bucket.id}/files/{file_id}/"))

    def update_video(self, video_id: str, patch: Dict[str, Any]) -> None:
        self._json("PATCH", f"videos/{video_id}/", json=patch)

    # --------------------------------------------------
    # Rendition / Segment
    # --------------------------------------------------

    def create_rendition(self, rendition: Rendition) -> Rendition:
        data = self._json("POST", "renditions/", json=rendition.to_dict(drop_none=True))
        rendition.id = data.get("$id") or rendition.id
        return rendition

    def update_rendition(self, rendition: Rendition) -> None:
        self._json("PATCH", f"renditions/{rendition.id}/", json=rendition.to_dict())

    def create_segment(self, segment: Segment) -> None:
        self._json("POST", f"renditions/{segment.rendition_id}/segments/", json=segment.to_dict(drop_none=True))

    # --------------------------------------------------
    # Subtitle
    # --------------------------------------------------

    def find_subtitles(self, video_id: str, status: SubtitleStatus = SubtitleStatus.QUEUED) -> list[Subtitle]:
        data = self._json("GET", f"videos/{video_id}/subtitles/", params={"status": SubtitleStatus(status).value})
        items = data.get("documents", []) if isinstance(data, dict) else data
        return [Subtitle.from_dict(d) for d in items or []]

    def update_subtitle(self, subtitle: Subtitle) -> None:
        self._json("PATCH", f"subtitles/{subtitle.id}/", json=subtitle.to_dict())

    def claim_subtitle(self, subtitle: Subtitle) -> bool:
        """조건부 claim (QUEUED 인 경우만 STARTED). 409 = 다른 job 이 선점."""
        resp = self._request("POST", f"subtitles/{subtitle.id}/claim/")
        if resp.status_code == 409:
            return False
        resp.raise_for_status()
        subtitle.claim()
        return True

    def create_subtitle_segment(self, segment: SubtitleSegment) -> None:
        self._json("POST", f"subtitles/{segment.subtitle_id}/segments/", json=segment.to_dict(drop_none=True))

    # --------------------------------------------------
    # Preview
    # --------------------------------------------------

    def find_preview(self, video_id: str, type: PreviewType, name: str) -> Optional[Preview]:
        resp = self._request(
            "GET",
            f"videos/{video_id}/previews/",
            params={"type": PreviewType(type).value, "name": name},
        )
        if resp.status_code == 404:
            return None
        resp.raise_for_status()
        data = resp.json() if resp.content else None
        return Preview.from_dict(data) if data else None

    def create_preview(self, preview: Preview) -> Preview:
        data = self._json("POST", f"videos/{preview.video_id}/previews/", json=preview.to_dict(drop_none=True))
        preview.id = data.get("$id") or preview.id
        return preview

    def update_preview(self, preview: Preview) -> None:
        self._json("PATCH", f"previews/{preview.id}/", json=preview.to_dict())
