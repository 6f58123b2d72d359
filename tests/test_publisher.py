"""Realtime 이벤트 / 권한 / RenditionPublisher 테스트."""

from __future__ import annotations

from src.application.rendition.events import generate_events, merge_permissions, resolve_target
from src.application.rendition.publisher import REALTIME_PROJECT, RenditionPublisher
from src.domain.rendition.entities import (
    Bucket,
    File,
    OutputFormat,
    Profile,
    Rendition,
    Video,
)
from src.domain.rendition.errors import TranscodeError
from tests.conftest import FakeRealtime

BUCKET_PERMS = ['read("any")', 'update("team:t1")']
FILE_PERMS = ['read("user:u1")']


def _publisher(repo, realtime, file_security: bool = False) -> RenditionPublisher:
    bucket = Bucket(id="b1", file_security=file_security, permissions=list(BUCKET_PERMS))
    file = File(id="f1", bucket_id="b1", path="/f1.mp4", permissions=list(FILE_PERMS))
    return RenditionPublisher(repo, realtime, bucket, file)


def _new_rendition() -> Rendition:
    profile = Profile(id="pr1", width=640, height=360, video_bit_rate=800, audio_bit_rate=96)
    return Rendition.start(Video(id="v1"), profile, OutputFormat.DASH)


class TestEvents:
    """이벤트 이름 / channels / roles."""

    def test_generate_events(self) -> None:
        events = generate_events(
            "videos.[videoId].renditions.[renditionId].update",
            {"videoId": "v1", "renditionId": "r1"},
        )

        assert events == [
            "videos.v1.renditions.r1.update",
            "videos.v1.renditions.r1",
            "videos.v1",
            "videos.v1.renditions.*.update",
            "videos.v1.renditions.*",
            "videos.*.renditions.r1.update",
            "videos.*.renditions.r1",
            "videos.*",
            "videos.*.renditions.*.update",
            "videos.*.renditions.*",
        ]

    def test_resolve_target(self) -> None:
        target = resolve_target(
            "videos.v1.renditions.r1.update",
            {"$permissions": ['read("any")', 'update("any")', 'read("team:t1")', 'read("any")']},
        )

        assert target["channels"] == ["videos", "videos.v1", "videos.v1.renditions.r1"]
        assert target["roles"] == ["any", "team:t1"]

    def test_merge_permissions(self) -> None:
        bucket = Bucket(id="b1", permissions=list(BUCKET_PERMS))
        file = File(id="f1", permissions=list(FILE_PERMS))

        assert merge_permissions(bucket, file) == BUCKET_PERMS
        bucket.file_security = True
        assert merge_permissions(bucket, file) == BUCKET_PERMS + FILE_PERMS


class TestRenditionPublisher:
    """저장 후 1회 발행, payload 에 metadata 없음."""

    def test_lifecycle_publishes_once_per_transition(self, repo, realtime) -> None:
        publisher = _publisher(repo, realtime)
        r = publisher.create(_new_rendition())

        publisher.progress(r, 3)
        publisher.progress(r, 4)
        publisher.ended(r)
        publisher.uploading(r, "/videos/v1/x/")
        publisher.ready(r)

        assert repo.statuses == ["started", "started", "ended", "uploading", "ready"]
        assert [m["payload"]["status"] for m in realtime.messages] == repo.statuses
        assert realtime.messages[0]["events"][0] == f"videos.v1.renditions.{r.id}.create"
        assert realtime.messages[1]["events"][0] == f"videos.v1.renditions.{r.id}.update"
        assert all(m["project"] == REALTIME_PROJECT for m in realtime.messages)

    def test_payload_permissions_and_roles(self, repo, realtime) -> None:
        publisher = _publisher(repo, realtime, file_security=True)
        r = publisher.create(_new_rendition())
        r.metadata = {"mpd": "<MPD/>"}
        publisher.ended(r)

        message = realtime.messages[-1]
        assert "metadata" not in message["payload"]
        assert message["payload"]["$permissions"] == BUCKET_PERMS + FILE_PERMS
        assert message["roles"] == ["any", "user:u1"]

    def test_failed_records_code_and_message(self, repo, realtime) -> None:
        publisher = _publisher(repo, realtime)
        r = publisher.create(_new_rendition())
        publisher.failed(r, TranscodeError("ffmpeg exited 1"))

        assert repo.renditions[r.id].metadata == {"code": "transcode_error", "message": "ffmpeg exited 1"}
        assert repo.statuses == ["started", "error"]

    def test_realtime_failure_does_not_raise(self, repo) -> None:
        publisher = _publisher(repo, FakeRealtime(fail=True))
        r = publisher.create(_new_rendition())

        assert publisher.send(r) is None
        publisher.ended(r)
        assert repo.statuses == ["started", "ended"]
