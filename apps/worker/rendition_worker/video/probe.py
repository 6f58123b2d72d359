# PATH: apps/worker/rendition_worker/video/probe.py
#
# PURPOSE:
# - 원본 영상 메타데이터 1회 추출 (Video.duration 비어 있을 때만)
# - duration(ms) / container / video track / audio track
# - None 이 아닌 필드만 부분 업데이트로 저장

from __future__ import annotations

import logging
from fractions import Fraction
from typing import Any, Optional

import ffmpeg

from src.application.ports.rendition_repository import IRenditionRepository
from src.domain.rendition.entities import Video
from src.domain.rendition.errors import ProbeError
from apps.worker.rendition_worker.utils import trim_tail

logger = logging.getLogger("rendition_worker.probe")


def _int(value: Any) -> Optional[int]:
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return None


def _frame_rate(value: Optional[str]) -> Optional[float]:
    """"30000/1001" → 29.97"""
    if not value:
        return None
    try:
        rate = Fraction(value)
    except (ValueError, ZeroDivisionError):
        return None
    if rate <= 0:
        return None
    return round(float(rate), 3)


def _num_str(value: Optional[float]) -> Optional[str]:
    if value is None:
        return None
    return str(int(value)) if float(value).is_integer() else str(value)


def extract_metadata(info: dict) -> dict[str, Any]:
    """
    ffprobe JSON → Video 필드 (snake_case).
    같은 종류 트랙이 여럿이면 뒤 트랙이 앞 트랙을 덮어쓴다 (단일 트랙 가정).
    """
    fmt = info.get("format") or {}
    duration = fmt.get("duration")
    format_name = (fmt.get("format_name") or "").split(",")[0]

    meta: dict[str, Any] = {
        "duration": int(round(float(duration) * 1000)) if duration not in (None, "", "N/A") else None,
        "format": format_name or None,
    }

    for stream in info.get("streams") or []:
        kind = stream.get("codec_type")
        if kind == "video":
            avg = _frame_rate(stream.get("avg_frame_rate"))
            real = _frame_rate(stream.get("r_frame_rate"))
            mode = None
            if avg is not None and real is not None:
                mode = "Constant" if avg == real else "Variable"
            meta.update(
                height=_int(stream.get("height")),
                width=_int(stream.get("width")),
                aspect_ratio=stream.get("display_aspect_ratio") or None,
                video_format=stream.get("codec_name") or None,
                video_format_profile=stream.get("profile") or None,
                video_frame_rate=_num_str(avg if avg is not None else real),
                video_frame_rate_mode=mode,
                video_bit_rate=_int(stream.get("bit_rate")),
            )
        elif kind == "audio":
            meta.update(
                audio_format=stream.get("codec_name") or None,
                audio_sample_rate=str(stream["sample_rate"]) if stream.get("sample_rate") else None,
                audio_bit_rate=_int(stream.get("bit_rate")),
            )
    return meta


def probe_media(input_path: str, *, ffprobe_bin: str, timeout: int) -> dict:
    try:
        info = ffmpeg.probe(input_path, cmd=ffprobe_bin, timeout=timeout)
    except ffmpeg.Error as e:
        stderr = e.stderr.decode("utf-8", "replace") if isinstance(e.stderr, bytes) else str(e.stderr or "")
        raise ProbeError(f"Not a valid video file {input_path}: {trim_tail(stderr, 500)}") from e
    except Exception as e:
        raise ProbeError(f"ffprobe failed {input_path}: {e}") from e

    if not info.get("streams"):
        raise ProbeError(f"Not a valid video file {input_path}: no streams")
    return info


def probe_video_metadata(
    *,
    video: Video,
    input_path: str,
    repo: IRenditionRepository,
    ffprobe_bin: str,
    timeout: int,
) -> dict[str, Any]:
    """
    duration 이 이미 있으면 no-op (빈 patch).
    그 외: probe → video 에 반영 → None 이 아닌 필드만 update_video.
    """
    if video.has_metadata():
        logger.info("[PROBE] Metadata already present video_id=%s, skipping", video.id)
        return {}

    info = probe_media(input_path, ffprobe_bin=ffprobe_bin, timeout=timeout)
    meta = extract_metadata(info)

    for name, value in meta.items():
        if value is not None:
            setattr(video, name, value)

    patch = {k: v for k, v in video.to_dict(drop_none=True).items() if k != "$id"}
    repo.update_video(video.id, patch)

    logger.info(
        "[PROBE] video_id=%s width=%s height=%s duration=%.1fs size=%.2fMiB "
        "video_bit_rate=%.1fkb/s audio_bit_rate=%.1fkb/s",
        video.id,
        video.width,
        video.height,
        (video.duration or 0) / 1000,
        (video.size or 0) / 1024 / 1024,
        (video.video_bit_rate or 0) / 1000,
        (video.audio_bit_rate or 0) / 1000,
    )
    return patch
