# PATH: apps/worker/rendition_worker/video/timeline.py
#
# PURPOSE:
# - 스크러빙용 sprite sheet (5x5 타일) + WebVTT cue sheet 생성
#
# CUE 규칙:
# - sprite 생성 순서대로, 각 sprite 안에서는 col(바깥) / row(안쪽)
# - payload: <spriteURL>#xywh=row*w,col*h,w,h
# - 타임스탬프는 HH:MM:SS, cue 하나가 interval 초, cue 사이는 빈 줄

from __future__ import annotations

import logging
import math
from pathlib import Path
from typing import List, Sequence, Tuple

from apps.worker.rendition_worker.utils import ensure_dir, guess_content_type, iter_files
from apps.worker.rendition_worker.video.transcoder import run_ffmpeg
from src.application.ports.rendition_repository import IRenditionRepository
from src.application.ports.storage import IStorageDevice
from src.domain.rendition.entities import Preview, PreviewType, Video

logger = logging.getLogger("rendition_worker.timeline")

DEFAULT_INTERVAL = 2
# (from, to] 초 → interval 초. 오름차순, 첫 매칭 사용
INTERVAL_RANGES: Tuple[Tuple[float, float, int], ...] = (
    (120, 600, 5),
    (600, 1800, 10),
    (1800, 3600, 20),
    (3600, math.inf, 30),
)

TILE_WIDTH = 160
TILE_COLUMNS = 5
TILE_ROWS = 5
CUE_SHEET_NAME = "timeline.vtt"


def choose_interval(duration_ms: int) -> int:
    seconds = (duration_ms or 0) / 1000
    for lower, upper, interval in INTERVAL_RANGES:
        if lower < seconds <= upper:
            return interval
    return DEFAULT_INTERVAL


def sprite_sheet_count(duration_ms: int, interval: int) -> int:
    seconds = (duration_ms or 0) / 1000
    return int(math.ceil((seconds / interval) / (TILE_COLUMNS * TILE_ROWS)))


def tile_size(width: int, height: int) -> Tuple[int, int]:
    """폭 160 고정, 높이는 원본 비율 (반올림)."""
    aspect = width / height
    return TILE_WIDTH, int(math.floor(TILE_WIDTH / aspect + 0.5))


def _hms(seconds: int) -> str:
    h, rem = divmod(int(seconds), 3600)
    m, s = divmod(rem, 60)
    return f"{h:02d}:{m:02d}:{s:02d}"


def build_cue_sheet(sprite_urls: Sequence[str], interval: int, width: int, height: int) -> Tuple[str, int]:
    """(WebVTT 텍스트, cue 개수)"""
    lines = ["WEBVTT"]
    counter = 0
    for url in sprite_urls:
        for col in range(TILE_COLUMNS):
            for row in range(TILE_ROWS):
                lines.append(
                    f"\n\n{_hms(counter * interval)} --> {_hms((counter + 1) * interval)}\n"
                    f"{url}#xywh={row * width},{col * height},{width},{height}"
                )
                counter += 1
    return "".join(lines), counter


def build_timeline_command(
    *,
    ffmpeg_bin: str,
    input_path: str,
    out_dir: Path,
    interval: int,
    width: int,
    height: int,
) -> List[str]:
    vf = (
        f"select=isnan(prev_selected_t)+gte(t-prev_selected_t\\,{interval}),"
        f"scale={width}:{height},"
        f"tile={TILE_COLUMNS}x{TILE_ROWS}"
    )
    return [
        ffmpeg_bin,
        "-y",
        "-hide_banner",
        "-loglevel", "error",
        "-i", input_path,
        "-vsync", "vfr",
        "-vf", vf,
        "-qscale:v", "3",
        str(out_dir / "sprite%d.jpg"),
    ]


def generate_timeline(
    *,
    video: Video,
    input_path: str,
    out_dir: Path,
    repo: IRenditionRepository,
    video_device: IStorageDevice,
    base_url: str,
    ffmpeg_bin: str,
    timeout: int,
) -> int:
    """
    sprite sheet + cue sheet 생성/업로드. 생성한 cue 개수 반환.
    cue 가 하나도 없으면 업로드 없이 종료.
    """
    if not video.width or not video.height:
        logger.warning("[TIMELINE] Missing dimensions video_id=%s, skipping", video.id)
        return 0

    interval = choose_interval(video.duration or 0)
    sheets = sprite_sheet_count(video.duration or 0, interval)
    width, height = tile_size(int(video.width), int(video.height))
    if sheets <= 0:
        logger.info("[TIMELINE] Nothing to sample video_id=%s duration=%s", video.id, video.duration)
        return 0

    ensure_dir(out_dir)
    logger.info(
        "[TIMELINE] Generating sprites video_id=%s interval=%ss sheets=%s tile=%sx%s",
        video.id, interval, sheets, width, height,
    )
    run_ffmpeg(
        build_timeline_command(
            ffmpeg_bin=ffmpeg_bin,
            input_path=input_path,
            out_dir=out_dir,
            interval=interval,
            width=width,
            height=height,
        ),
        timeout=timeout,
        what="timeline",
    )

    path = video_device.get_path(video.id) + "/timeline/"
    urls: List[str] = []
    for n in range(1, sheets + 1):
        name = f"sprite{n}.jpg"
        sprite = repo.find_preview(video.id, PreviewType.SPRITE, name)
        if sprite is None:
            sprite = repo.create_preview(
                Preview(video_id=video.id, type=PreviewType.SPRITE, name=name, path=path)
            )
        urls.append(f"{base_url}v1/videos/{video.id}/preview/{sprite.id}/")

    data, cues = build_cue_sheet(urls, interval, width, height)
    if cues == 0:
        return 0

    video_device.write(path + CUE_SHEET_NAME, data.encode("utf-8"), "text/vtt")
    logger.info("[TIMELINE] Uploading timeline vtt video_id=%s cues=%s", video.id, cues)

    for sprite_file in iter_files(out_dir):
        logger.info("[TIMELINE] Uploading %s", sprite_file.name)
        video_device.upload(str(sprite_file), path + sprite_file.name, guess_content_type(sprite_file.name))
    return cues
