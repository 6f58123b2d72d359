# PATH: apps/worker/rendition_worker/video/manifest.py
#
# PURPOSE:
# - ffmpeg 가 만든 manifest 에서 세그먼트 / variant 구조 복원
#   - DASH MPD (SegmentList: Initialization / SegmentURL)
#   - HLS media / subtitle playlist (#EXT-X-TARGETDURATION, #EXTINF)
#   - HLS master playlist (#EXT-X-STREAM-INF / #EXT-X-MEDIA)
#
# DESIGN:
# - 라인 단위 스캐너. 명시적 토큰(prefix)만 본다.
# - parse_* 는 텍스트만 받는 순수 함수, 파일 읽기는 read_manifest 하나.

from __future__ import annotations

import logging
import re
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import List, Optional

from src.domain.rendition.errors import ManifestParseError

logger = logging.getLogger("rendition_worker.manifest")

_STRIP_CHARS = str.maketrans("", "", ",\r\n")

_SEGMENT_URL_MARKER = '<SegmentURL media="'
_INIT_MARKER = '<Initialization sourceURL="'
_RE_MEDIA_ATTR = re.compile(r'(?:media|sourceURL)="([^"]*)"')

TARGET_DURATION_TAG = "#EXT-X-TARGETDURATION:"
EXTINF_TAG = "#EXTINF:"

STREAM_VIDEO = "video"
STREAM_AUDIO = "audio"
STREAM_SUBTITLE = "subtitle"


@dataclass(frozen=True)
class DashSegment:
    stream_id: int
    file_name: str
    is_init: bool


@dataclass
class DashManifest:
    metadata: str = ""
    segments: List[DashSegment] = field(default_factory=list)


@dataclass(frozen=True)
class HlsSegment:
    file_name: str
    duration: float


@dataclass
class HlsPlaylist:
    target_duration: int = 0
    segments: List[HlsSegment] = field(default_factory=list)


@dataclass
class HlsVariant:
    """master playlist 의 variant (video / audio / subtitle)."""
    id: Optional[int]
    path: str
    type: str
    language: Optional[str] = None
    resolution: Optional[str] = None
    bandwidth: Optional[str] = None
    codecs: Optional[str] = None

    def to_dict(self) -> dict:
        return {k: v for k, v in asdict(self).items() if v is not None}


def read_manifest(path: Path) -> str:
    try:
        return Path(path).read_text(encoding="utf-8", errors="replace")
    except OSError as e:
        raise ManifestParseError(f"manifest not readable: {path}: {e}") from e


# --------------------------------------------------
# DASH
# --------------------------------------------------

def _dash_file_name(line: str) -> str:
    m = _RE_MEDIA_ATTR.search(line)
    if m:
        return m.group(1).strip()
    for marker in (_SEGMENT_URL_MARKER, _INIT_MARKER, '"/>', '" />'):
        line = line.replace(marker, "")
    return line.strip()


def parse_dash_manifest(text: str) -> DashManifest:
    """
    <AdaptationSet 마다 stream index 증가 (0부터).
    SegmentURL / Initialization 라인은 세그먼트, 나머지는 metadata 로 이어붙임.
    """
    stream_id = -1
    segments: List[DashSegment] = []
    metadata: List[str] = []

    for raw in text.splitlines():
        line = raw.translate(_STRIP_CHARS)
        if "<AdaptationSet" in line:
            stream_id += 1

        if "SegmentURL" not in line and "Initialization" not in line:
            metadata.append(line)
            continue

        segments.append(
            DashSegment(
                stream_id=stream_id,
                file_name=_dash_file_name(line),
                is_init="Initialization" in line,
            )
        )

    joined = "\n".join(metadata)
    return DashManifest(metadata=joined + "\n" if joined.strip() else "", segments=segments)


# --------------------------------------------------
# HLS media / subtitle playlist
# --------------------------------------------------

def _number(value: str, what: str) -> float:
    try:
        return float(value)
    except ValueError:
        raise ManifestParseError(f"invalid {what}: {value!r}") from None


def parse_hls_playlist(text: str) -> HlsPlaylist:
    """
    #EXTINF 다음에 나오는 첫 .ts / .vtt 라인과 짝지음.
    짝지은 뒤 pending duration 은 비운다 (다음 세그먼트로 새지 않게).
    """
    playlist = HlsPlaylist()
    pending: Optional[str] = None

    for raw in text.splitlines():
        line = raw.strip()
        if not line:
            continue

        if line.startswith(TARGET_DURATION_TAG):
            value = line[len(TARGET_DURATION_TAG):].translate(_STRIP_CHARS).strip()
            playlist.target_duration = int(_number(value, "target duration"))
            continue

        if line.startswith(EXTINF_TAG):
            # "#EXTINF:<duration>,[title]"
            pending = line[len(EXTINF_TAG):].split(",", 1)[0].strip()
            continue

        if line.startswith("#"):
            continue

        if ".ts" in line or ".vtt" in line:
            if pending:
                playlist.segments.append(
                    HlsSegment(
                        file_name=line.translate(_STRIP_CHARS),
                        duration=_number(pending, "segment duration"),
                    )
                )
                pending = None

    return playlist


# --------------------------------------------------
# HLS master playlist
# --------------------------------------------------

def _stream_id(path: str) -> Optional[int]:
    """<videoId>_<n>_... → n"""
    parts = path.split("_")
    if len(parts) > 1 and parts[1].isdigit():
        return int(parts[1])
    return None


def parse_hls_master(text: str, video_id: str) -> List[HlsVariant]:
    """
    LANGUAGE / BANDWIDTH / RESOLUTION / CODECS 속성 수집 후
    m3u8 경로 라인(또는 URI 를 가진 #EXT-X-MEDIA)에서 variant 생성.
    """
    variants: List[HlsVariant] = []
    attrs: dict = {}

    for raw in text.splitlines():
        line = raw.replace('"', "").strip()
        if not line:
            continue

        tokens = line.split(",")
        for i, token in enumerate(tokens):
            key, sep, value = token.partition("=")
            if not sep:
                continue
            # "#EXT-X-STREAM-INF:BANDWIDTH" → "BANDWIDTH"
            key = key.rsplit(":", 1)[-1].strip()
            if key == "LANGUAGE":
                attrs["language"] = value
            elif key == "BANDWIDTH":
                attrs["bandwidth"] = value
            elif key == "RESOLUTION":
                attrs["resolution"] = value
            elif key == "CODECS":
                # CODECS=avc1.xxx,mp4a.40.2 → 쉼표로 나뉜 두 토큰 복원
                nxt = tokens[i + 1] if i + 1 < len(tokens) else ""
                attrs["codecs"] = f"{value},{nxt}" if nxt and "=" not in nxt else value

        end = line.find("m3u8")
        if end == -1:
            continue
        start = line.find(video_id) if video_id else -1
        if start == -1 or start > end:
            logger.debug("[MANIFEST] playlist line without video id skipped: %s", line)
            continue

        path = line[start:end + 4]
        if "TYPE=AUDIO" in line:
            variant = HlsVariant(id=_stream_id(path), path=path, type=STREAM_AUDIO, language=attrs.get("language") or None)
        # 자막 트랙은 video 로 분류하지 않는다: 세그먼트는 SubtitleSegment 로 따로 저장
        elif "TYPE=SUBTITLES" in line:
            variant = HlsVariant(id=_stream_id(path), path=path, type=STREAM_SUBTITLE, language=attrs.get("language") or None)
        else:
            variant = HlsVariant(
                id=_stream_id(path),
                path=path,
                type=STREAM_VIDEO,
                resolution=attrs.get("resolution") or None,
                bandwidth=attrs.get("bandwidth") or None,
                codecs=attrs.get("codecs") or None,
            )
        variants.append(variant)
        attrs = {}

    return variants


def load_dash_manifest(path: Path) -> DashManifest:
    return parse_dash_manifest(read_manifest(path))


def load_hls_playlist(path: Path) -> HlsPlaylist:
    return parse_hls_playlist(read_manifest(path))


def load_hls_master(path: Path, video_id: str) -> List[HlsVariant]:
    return parse_hls_master(read_manifest(path), video_id)
