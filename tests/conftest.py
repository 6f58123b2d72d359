"""공용 fixture: 인메모리 레코드 스토어 / realtime / cache, 로컬 디바이스, 설정."""

from __future__ import annotations

import itertools
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest

from apps.worker.rendition_worker.config import Config
from libs.redis.client import reset_redis_state
from src.application.ports.cache import ICacheInvalidation
from src.application.ports.realtime import IRealtime
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
from src.infrastructure.storage.local_adapter import LocalStorageAdapter


class InMemoryRepository(IRenditionRepository):
    """레코드 스토어 대역. 저장 시점의 Rendition 상태를 history 로 남긴다."""

    def __init__(self) -> None:
        self._ids = itertools.count(1)
        self.buckets: Dict[str, Bucket] = {}
        self.files: Dict[str, File] = {}
        self.video_patches: List[Dict[str, Any]] = []
        self.renditions: Dict[str, Rendition] = {}
        self.history: List[Dict[str, Any]] = []
        self.segments: List[Segment] = []
        self.subtitles: Dict[str, Subtitle] = {}
        self.subtitle_segments: List[SubtitleSegment] = []
        self.previews: Dict[str, Preview] = {}

    def _next_id(self, prefix: str) -> str:
        return f"{prefix}{next(self._ids)}"

    def get_bucket(self, bucket_id: str) -> Bucket:
        return self.buckets[bucket_id]

    def get_file(self, bucket: Bucket, file_id: str) -> File:
        return self.files[file_id]

    def update_video(self, video_id: str, patch: Dict[str, Any]) -> None:
        self.video_patches.append(dict(patch))

    def create_rendition(self, rendition: Rendition) -> Rendition:
        rendition.id = self._next_id("r")
        self.renditions[rendition.id] = rendition
        self.history.append(rendition.to_dict())
        return rendition

    def update_rendition(self, rendition: Rendition) -> None:
        self.renditions[rendition.id] = rendition
        self.history.append(rendition.to_dict())

    def create_segment(self, segment: Segment) -> None:
        self.segments.append(segment)

    def find_subtitles(self, video_id: str, status: SubtitleStatus = SubtitleStatus.QUEUED) -> List[Subtitle]:
        return [s for s in self.subtitles.values() if s.video_id == video_id and s.status == status]

    def update_subtitle(self, subtitle: Subtitle) -> None:
        self.subtitles[subtitle.id] = subtitle

    def create_subtitle_segment(self, segment: SubtitleSegment) -> None:
        self.subtitle_segments.append(segment)

    def find_preview(self, video_id: str, type: PreviewType, name: str) -> Optional[Preview]:
        for p in self.previews.values():
            if p.video_id == video_id and p.type == type and p.name == name:
                return p
        return None

    def create_preview(self, preview: Preview) -> Preview:
        preview.id = self._next_id("p")
        self.previews[preview.id] = preview
        return preview

    def update_preview(self, preview: Preview) -> None:
        self.previews[preview.id] = preview

    @property
    def statuses(self) -> List[str]:
        return [h["status"] for h in self.history]


class FakeRealtime(IRealtime):
    def __init__(self, fail: bool = False) -> None:
        self.messages: List[Dict[str, Any]] = []
        self.fail = fail

    def publish(self, project_id, events, payload, channels, roles) -> None:
        if self.fail:
            raise ConnectionError("realtime down")
        self.messages.append(
            {
                "project": project_id,
                "events": list(events),
                "payload": dict(payload),
                "channels": list(channels),
                "roles": list(roles),
            }
        )


class FakeCache(ICacheInvalidation):
    def __init__(self) -> None:
        self.resources: List[str] = []

    def invalidate(self, resource: str) -> None:
        self.resources.append(resource)


def make_config(tmp_path: Path, **overrides) -> Config:
    values = dict(
        API_BASE_URL="http://api.test",
        WORKER_TOKEN="token",
        WORKER_ID="worker-test",
        HTTP_TIMEOUT_SECONDS=5.0,
        TEMP_DIR=str(tmp_path / "tmp"),
        FFMPEG_BIN="ffmpeg",
        FFPROBE_BIN="ffprobe",
        FFPROBE_TIMEOUT_SECONDS=10,
        FFMPEG_TIMEOUT_SECONDS=60,
        FFMPEG_THREADS=2,
        SEGMENT_SECONDS=6,
        STORAGE_DEVICE="local",
        STORAGE_ROOT=str(tmp_path / "storage"),
        R2_BUCKET="",
        R2_ENDPOINT_URL="",
        R2_ACCESS_KEY="",
        R2_SECRET_KEY="",
        R2_REGION="auto",
        UPLOAD_MAX_CONCURRENCY=2,
        PREVIEW_BASE_URL="http://cdn.test/",
        REALTIME_CHANNEL="realtime",
        CACHE_DELETE_QUEUE="v1-deletes",
    )
    values.update(overrides)
    return Config(**values)


@pytest.fixture
def repo() -> InMemoryRepository:
    return InMemoryRepository()


@pytest.fixture
def realtime() -> FakeRealtime:
    return FakeRealtime()


@pytest.fixture
def cache() -> FakeCache:
    return FakeCache()


@pytest.fixture
def config(tmp_path: Path) -> Config:
    return make_config(tmp_path)


@pytest.fixture
def files_device(tmp_path: Path) -> LocalStorageAdapter:
    root = tmp_path / "storage" / "uploads" / "app-p1"
    root.mkdir(parents=True)
    return LocalStorageAdapter(str(root))


@pytest.fixture
def video_device(tmp_path: Path) -> LocalStorageAdapter:
    root = tmp_path / "storage" / "videos" / "app-p1"
    root.mkdir(parents=True)
    return LocalStorageAdapter(str(root))


@pytest.fixture(autouse=True)
def _reset_redis():
    reset_redis_state()
    yield
    reset_redis_state()
