"""
Rendition 도메인 엔티티: 순수 파이썬 (requests/boto3/ffmpeg 미사용)

레코드 스토어는 camelCase 속성 문서를 주고받는다.
엔티티는 snake_case 필드를 갖고 from_dict / to_dict 로 변환한다.
상태 전이 규칙은 엔티티 메서드로 표현 (위반 시 ValueError).
"""
from __future__ import annotations

from dataclasses import dataclass, field, fields
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional


class RenditionStatus(str, Enum):
    STARTED = "started"
    ENDED = "ended"
    UPLOADING = "uploading"
    READY = "ready"
    ERROR = "error"


# 허용 전이. ERROR는 종료 상태.
RENDITION_TRANSITIONS = {
    RenditionStatus.STARTED: (RenditionStatus.ENDED, RenditionStatus.ERROR),
    RenditionStatus.ENDED: (RenditionStatus.UPLOADING, RenditionStatus.ERROR),
    RenditionStatus.UPLOADING: (RenditionStatus.READY, RenditionStatus.ERROR),
    RenditionStatus.READY: (),
    RenditionStatus.ERROR: (),
}


class SubtitleStatus(str, Enum):
    """자막 상태. 대기 중인 자막은 빈 문자열로 저장된다."""
    QUEUED = ""
    STARTED = "started"
    READY = "ready"


class OutputFormat(str, Enum):
    HLS = "hls"
    DASH = "dash"


class PreviewType(str, Enum):
    PREVIEW = "preview"
    SPRITE = "sprite"


ACTION_PREVIEW = "preview"
ACTION_TIMELINE = "timeline"

# Error metadata message 상한
ERROR_MESSAGE_LIMIT = 255


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(p[:1].upper() + p[1:] for p in rest)


def _key(f) -> str:
    return f.metadata.get("key") or _camel(f.name)


def _encode(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    return value


class _Document:
    """camelCase 문서 <-> dataclass 변환 공통 구현."""

    @classmethod
    def from_dict(cls, data: Optional[dict]):
        data = data or {}
        kwargs = {}
        for f in fields(cls):
            k = _key(f)
            if k in data:
                kwargs[f.name] = data[k]
        return cls(**kwargs)

    def to_dict(self, *, drop_none: bool = False) -> dict[str, Any]:
        out: dict[str, Any] = {}
        for f in fields(self):
            v = getattr(self, f.name)
            if drop_none and v is None:
                continue
            out[_key(f)] = _encode(v)
        return out


@dataclass
class Video(_Document):
    """원본 영상 디스크립터. Prober가 최초 1회 메타데이터를 채운다."""
    id: str = field(default="", metadata={"key": "$id"})
    bucket_id: Optional[str] = None
    file_id: Optional[str] = None
    size: Optional[int] = None
    duration: Optional[int] = None  # ms
    format: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None
    aspect_ratio: Optional[str] = None
    video_format: Optional[str] = None
    video_format_profile: Optional[str] = None
    video_frame_rate: Optional[str] = None
    video_frame_rate_mode: Optional[str] = None
    video_bit_rate: Optional[int] = None
    audio_format: Optional[str] = None
    audio_sample_rate: Optional[str] = None
    audio_bit_rate: Optional[int] = None
    preview_id: Optional[str] = None

    def has_metadata(self) -> bool:
        return bool(self.duration)


@dataclass
class Profile(_Document):
    id: str = field(default="", metadata={"key": "$id"})
    name: Optional[str] = None
    width: int = 0
    height: int = 0
    video_bit_rate: int = 0  # kbps
    audio_bit_rate: int = 0  # kbps

    @property
    def rendition_name(self) -> str:
        return f"{self.width}X{self.height}@{int(self.video_bit_rate) + int(self.audio_bit_rate)}"


@dataclass
class Bucket(_Document):
    id: str = field(default="", metadata={"key": "$id"})
    internal_id: Optional[str] = field(default=None, metadata={"key": "$internalId"})
    name: Optional[str] = None
    file_security: bool = False
    permissions: list = field(default_factory=list, metadata={"key": "$permissions"})


@dataclass
class File(_Document):
    """버킷 파일 디스크립터. 암호화/압축 정보 포함."""
    id: str = field(default="", metadata={"key": "$id"})
    bucket_id: Optional[str] = None
    name: Optional[str] = None
    path: str = ""
    mime_type: Optional[str] = None
    size_original: Optional[int] = None
    algorithm: str = "none"
    open_ssl_cipher: Optional[str] = field(default=None, metadata={"key": "openSSLCipher"})
    open_ssl_version: Optional[str] = field(default=None, metadata={"key": "openSSLVersion"})
    open_ssl_iv: Optional[str] = field(default=None, metadata={"key": "openSSLIV"})
    open_ssl_tag: Optional[str] = field(default=None, metadata={"key": "openSSLTag"})
    permissions: list = field(default_factory=list, metadata={"key": "$permissions"})

    @property
    def is_encrypted(self) -> bool:
        return bool(self.open_ssl_cipher)

    @property
    def is_compressed(self) -> bool:
        return (self.algorithm or "none") != "none"


@dataclass
class Rendition(_Document):
    """
    Rendition = 1 job 인스턴스.
    STARTED → ENDED → UPLOADING → READY, 또는 → ERROR (종료).
    """
    id: Optional[str] = field(default=None, metadata={"key": "$id"})
    video_id: str = ""
    profile_id: str = ""
    name: str = ""
    status: RenditionStatus = RenditionStatus.STARTED
    progress: int = 0
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None
    output: OutputFormat = OutputFormat.HLS
    path: Optional[str] = None
    metadata: Optional[dict] = None
    target_duration: Optional[int] = None
    width: Optional[int] = None
    height: Optional[int] = None
    video_bit_rate: Optional[int] = None
    audio_bit_rate: Optional[int] = None

    def __post_init__(self) -> None:
        self.status = RenditionStatus(self.status)
        self.output = OutputFormat(self.output)

    @classmethod
    def start(cls, video: Video, profile: Profile, output: OutputFormat, now: Optional[datetime] = None) -> "Rendition":
        return cls(
            video_id=video.id,
            profile_id=profile.id,
            name=profile.rendition_name,
            status=RenditionStatus.STARTED,
            started_at=now or utcnow(),
            output=OutputFormat(output),
            width=profile.width,
            height=profile.height,
            video_bit_rate=profile.video_bit_rate,
            audio_bit_rate=profile.audio_bit_rate,
        )

    def is_terminal(self) -> bool:
        return not RENDITION_TRANSITIONS[self.status]

    def _transition(self, target: RenditionStatus) -> None:
        if target not in RENDITION_TRANSITIONS[self.status]:
            raise ValueError(f"Cannot move rendition {self.id} from {self.status.value} to {target.value}")
        self.status = target

    def record_progress(self, percentage: int) -> bool:
        """
        3의 배수이면서 감소하지 않는 값만 반영.
        반영했으면 True (호출부가 저장/발행).
        """
        if self.status != RenditionStatus.STARTED:
            raise ValueError(f"Cannot record progress for rendition {self.id}: status={self.status.value}")
        pct = int(percentage)
        if pct % 3 != 0 or pct <= self.progress or pct > 100:
            return False
        self.progress = pct
        return True

    def end(self, now: Optional[datetime] = None) -> None:
        self._transition(RenditionStatus.ENDED)
        self.ended_at = now or utcnow()

    def begin_upload(self, path: str) -> None:
        self._transition(RenditionStatus.UPLOADING)
        self.progress = 100
        self.path = path

    def ready(self) -> None:
        self._transition(RenditionStatus.READY)

    def fail(self, code: str, message: str) -> None:
        self._transition(RenditionStatus.ERROR)
        self.metadata = {
            "code": code,
            "message": (message or "")[:ERROR_MESSAGE_LIMIT],
        }

    def to_payload(self) -> dict[str, Any]:
        """realtime payload: 불투명 metadata 제외."""
        payload = self.to_dict()
        payload.pop("metadata", None)
        return payload


@dataclass(frozen=True)
class Segment(_Document):
    """Rendition 세그먼트. 생성 후 변경하지 않는다."""
    rendition_id: str = ""
    stream_id: Optional[int] = None
    file_name: str = ""
    path: str = ""
    duration: Optional[float] = None
    is_init: Optional[bool] = None


@dataclass
class Subtitle(_Document):
    id: str = field(default="", metadata={"key": "$id"})
    video_id: str = ""
    bucket_id: Optional[str] = None
    file_id: Optional[str] = None
    name: str = ""
    code: str = ""
    status: SubtitleStatus = SubtitleStatus.QUEUED
    path: Optional[str] = None
    target_duration: Optional[int] = None

    def __post_init__(self) -> None:
        self.status = SubtitleStatus(self.status or "")

    def claim(self) -> None:
        """QUEUED → STARTED (작업 전에 즉시 기록)."""
        if self.status != SubtitleStatus.QUEUED:
            raise ValueError(f"Cannot claim subtitle {self.id}: status={self.status.value!r}")
        self.status = SubtitleStatus.STARTED

    def ready(self, path: str, target_duration: Optional[int] = None) -> None:
        if self.status != SubtitleStatus.STARTED:
            raise ValueError(f"Cannot finish subtitle {self.id}: status={self.status.value!r}")
        self.status = SubtitleStatus.READY
        self.path = path
        if target_duration is not None:
            self.target_duration = target_duration


@dataclass(frozen=True)
class SubtitleSegment(_Document):
    subtitle_id: str = ""
    file_name: str = ""
    path: str = ""
    duration: Optional[float] = None


@dataclass
class Preview(_Document):
    """(video_id, type, name) 기준 upsert."""
    id: Optional[str] = field(default=None, metadata={"key": "$id"})
    video_id: str = ""
    type: PreviewType = PreviewType.PREVIEW
    name: str = ""
    path: str = ""
    second: Optional[float] = None

    def __post_init__(self) -> None:
        self.type = PreviewType(self.type)


@dataclass
class RenditionJob:
    """큐에서 전달되는 job 입력: {video, profile, project, action, output, second}"""
    video: Video
    profile: Profile
    project_id: str
    action: str
    output: OutputFormat = OutputFormat.HLS
    second: float = 0.0

    @classmethod
    def from_dict(cls, payload: dict) -> "RenditionJob":
        project = payload.get("project") or {}
        project_id = project.get("$id") if isinstance(project, dict) else str(project)
        if not project_id:
            raise ValueError("job payload missing project id")
        action = payload.get("action")
        if not action:
            raise ValueError("job payload missing action")
        return cls(
            video=Video.from_dict(payload.get("video")),
            profile=Profile.from_dict(payload.get("profile")),
            project_id=str(project_id),
            action=str(action),
            output=OutputFormat(payload.get("output") or OutputFormat.HLS.value),
            second=float(payload.get("second") or 0),
        )

    @property
    def is_preview(self) -> bool:
        return self.action == ACTION_PREVIEW

    @property
    def is_timeline(self) -> bool:
        return self.action == ACTION_TIMELINE
