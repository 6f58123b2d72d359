"""
RenditionPublisher - Rendition 상태 저장 + realtime 발행

흐름:
1. create: Rendition 생성 (STARTED) → create 이벤트
2. progress: 3의 배수 & 증가한 값만 저장/발행
3. ended → uploading(progress=100, path) → ready
4. failed: ERROR + metadata {code, message[:255]}

모든 전이는 저장 후 1회 발행. payload 에서 metadata 제외,
권한은 bucket(+file, fileSecurity 인 경우) 기준.
"""
from __future__ import annotations

import logging
from typing import Optional

from src.application.ports.realtime import IRealtime
from src.application.ports.rendition_repository import IRenditionRepository
from src.application.rendition.events import generate_events, merge_permissions, resolve_target
from src.domain.rendition.entities import Bucket, File, Rendition
from src.domain.rendition.errors import error_code

logger = logging.getLogger(__name__)

REALTIME_PROJECT = "console"
EVENT_PATTERN = "videos.[videoId].renditions.[renditionId].{action}"


class RenditionPublisher:
    """Rendition 상태 전이 저장 + 이벤트 발행"""

    def __init__(
        self,
        repo: IRenditionRepository,
        realtime: IRealtime,
        bucket: Bucket,
        file: File,
    ) -> None:
        self._repo = repo
        self._realtime = realtime
        self._permissions = merge_permissions(bucket, file)

    def create(self, rendition: Rendition) -> Rendition:
        created = self._repo.create_rendition(rendition)
        logger.info("[PUBLISH] Rendition created rendition_id=%s name=%s", created.id, created.name)
        self.send(created, "create")
        return created

    def progress(self, rendition: Rendition, percentage: int) -> bool:
        if not rendition.record_progress(percentage):
            return False
        self._save(rendition)
        return True

    def ended(self, rendition: Rendition) -> None:
        rendition.end()
        self._save(rendition)

    def uploading(self, rendition: Rendition, path: str) -> None:
        rendition.begin_upload(path)
        self._save(rendition)

    def ready(self, rendition: Rendition) -> None:
        rendition.ready()
        self._save(rendition)

    def failed(self, rendition: Rendition, exc: BaseException) -> None:
        rendition.fail(error_code(exc), str(exc))
        self._save(rendition)

    def _save(self, rendition: Rendition) -> None:
        self._repo.update_rendition(rendition)
        self.send(rendition, "update")

    def send(self, rendition: Rendition, action: str = "update") -> Optional[list[str]]:
        """realtime 발행 (fire-and-forget). 발행한 이벤트 목록 반환."""
        payload = rendition.to_payload()
        payload["$permissions"] = list(self._permissions)

        events = generate_events(
            EVENT_PATTERN.format(action=action),
            {"videoId": rendition.video_id, "renditionId": rendition.id},
        )
        target = resolve_target(events[0], payload)
        try:
            self._realtime.publish(
                REALTIME_PROJECT,
                events,
                payload,
                target["channels"],
                target["roles"],
            )
        except Exception as e:
            logger.warning("[PUBLISH] realtime publish failed rendition_id=%s: %s", rendition.id, e)
            return None
        return events
