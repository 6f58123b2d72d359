# PATH: apps/worker/rendition_worker/video/subtitles.py
#
# PURPOSE:
# - 대기(QUEUED) 자막 claim → 원본 가져오기 → WebVTT 변환
# - 인코딩 후 자막 세그먼트 저장 + READY 처리
#
# DESIGN:
# - claim 은 작업 전에 즉시 STARTED 기록 (repo.claim_subtitle)
# - 다른 job 이 먼저 가져간 자막은 건너뜀

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Sequence

from apps.worker.rendition_worker.retrieve import retrieve
from apps.worker.rendition_worker.video.manifest import load_hls_playlist
from apps.worker.rendition_worker.video.transcoder import (
    SubtitleTrack,
    run_ffmpeg,
    subtitle_playlist_name,
)
from src.application.ports.rendition_repository import IRenditionRepository
from src.application.ports.storage import IStorageDevice
from src.domain.rendition.entities import OutputFormat, SubtitleSegment, SubtitleStatus, Video
from src.domain.rendition.errors import ProbeError

logger = logging.getLogger("rendition_worker.subtitles")


def build_webvtt_command(*, ffmpeg_bin: str, src: Path, dst: Path) -> List[str]:
    return [
        ffmpeg_bin,
        "-y",
        "-i", str(src),
        "-c:s", "webvtt",
        "-f", "webvtt",
        str(dst),
    ]


def prepare_subtitles(
    *,
    video: Video,
    repo: IRenditionRepository,
    files_device: IStorageDevice,
    local_device: IStorageDevice,
    in_dir: Path,
    ffmpeg_bin: str,
    timeout: int,
) -> List[SubtitleTrack]:
    """QUEUED 자막을 claim 하고 in/<subtitleId>.vtt 로 준비."""
    tracks: List[SubtitleTrack] = []

    for subtitle in repo.find_subtitles(video.id, SubtitleStatus.QUEUED):
        if not repo.claim_subtitle(subtitle):
            logger.info("[SUBTITLE] Already claimed subtitle_id=%s, skipping", subtitle.id)
            continue

        bucket = repo.get_bucket(subtitle.bucket_id)
        file = repo.get_file(bucket, subtitle.file_id)
        src = retrieve(file=file, files_device=files_device, local_device=local_device, in_dir=in_dir)
        dst = in_dir / f"{subtitle.id}.vtt"

        ext = src.suffix.lower()
        if ext == ".srt":
            logger.info("[SUBTITLE] Converting srt to webvtt subtitle_id=%s", subtitle.id)
            run_ffmpeg(
                build_webvtt_command(ffmpeg_bin=ffmpeg_bin, src=src, dst=dst),
                timeout=timeout,
                error=ProbeError,
                what=f"subtitle convert ({subtitle.id})",
            )
        elif ext == ".vtt":
            if src != dst:
                local_device.transfer(str(src), str(dst), local_device)
        else:
            raise ProbeError(f"Unsupported subtitle format {ext!r} subtitle_id={subtitle.id}")

        tracks.append(SubtitleTrack(subtitle=subtitle, path=dst))

    logger.info("[SUBTITLE] Prepared %d subtitle(s) video_id=%s", len(tracks), video.id)
    return tracks


def publish_subtitles(
    *,
    tracks: Sequence[SubtitleTrack],
    output: OutputFormat,
    video_id: str,
    out_dir: Path,
    subtitles_path: str,
    repo: IRenditionRepository,
    local_device: IStorageDevice,
) -> None:
    """
    HLS: 자막 playlist 파싱 → SubtitleSegment 저장 + targetDuration
    DASH: WebVTT 파일을 out/ 로 그대로 복사 (업로드 대상)
    이후 자막 READY + path 기록.
    """
    for track in tracks:
        subtitle = track.subtitle
        target_duration = None

        if OutputFormat(output) == OutputFormat.HLS:
            playlist = load_hls_playlist(out_dir / subtitle_playlist_name(video_id, subtitle.code))
            for segment in playlist.segments:
                repo.create_subtitle_segment(
                    SubtitleSegment(
                        subtitle_id=subtitle.id,
                        file_name=segment.file_name,
                        path=subtitles_path,
                        duration=segment.duration,
                    )
                )
            target_duration = playlist.target_duration
        else:
            local_device.transfer(str(track.path), str(out_dir / f"{subtitle.id}.vtt"), local_device)

        subtitle.ready(subtitles_path, target_duration)
        repo.update_subtitle(subtitle)
        logger.info("[SUBTITLE] Subtitle ready subtitle_id=%s code=%s", subtitle.id, subtitle.code)
