from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

from apps.worker.rendition_worker.utils import ensure_dir, guess_content_type
from apps.worker.rendition_worker.video.transcoder import run_ffmpeg
from src.application.ports.cache import ICacheInvalidation
from src.application.ports.rendition_repository import IRenditionRepository
from src.application.ports.storage import IStorageDevice
from src.domain.rendition.entities import Preview, PreviewType, Video

logger = logging.getLogger("rendition_worker.preview")

PREVIEW_NAME = "preview.jpg"


def build_preview_command(
    *,
    ffmpeg_bin: str,
    input_path: str,
    output_path: Path,
    at_seconds: float,
    width: Optional[int],
    height: Optional[int],
) -> List[str]:
    cmd = [
        ffmpeg_bin,
        "-y",
        "-ss", f"{at_seconds:.3f}",
        "-i", input_path,
        "-frames:v", "1",
    ]
    if width and height:
        cmd += ["-vf", f"scale={int(width)}:{int(height)}"]
    cmd += ["-q:v", "2", str(output_path)]
    return cmd


def generate_preview(
    *,
    video: Video,
    input_path: str,
    out_dir: Path,
    at_seconds: float,
    ffmpeg_bin: str,
    timeout: int,
) -> Optional[Path]:
    """저장된 원본 해상도로 at_seconds 지점 프레임 1장 추출. 결과 없으면 None."""
    ensure_dir(out_dir)
    output_path = out_dir / PREVIEW_NAME
    run_ffmpeg(
        build_preview_command(
            ffmpeg_bin=ffmpeg_bin,
            input_path=input_path,
            output_path=output_path,
            at_seconds=at_seconds,
            width=video.width,
            height=video.height,
        ),
        timeout=timeout,
        what="preview",
    )
    if not output_path.exists() or output_path.stat().st_size == 0:
        logger.warning("[PREVIEW] No frame extracted video_id=%s second=%s", video.id, at_seconds)
        return None
    return output_path


def publish_preview(
    *,
    video: Video,
    image: Path,
    at_seconds: float,
    repo: IRenditionRepository,
    video_device: IStorageDevice,
    cache: ICacheInvalidation,
) -> Preview:
    """
    업로드 후 (video_id, preview, name) 기준 upsert.
    - 신규: Video.previewId 갱신
    - 기존: second 갱신 + preview/<id> 캐시 삭제 이벤트
    """
    path = video_device.get_path(video.id) + "/preview/"
    logger.info("[PREVIEW] Uploading %s video_id=%s", image.name, video.id)
    video_device.upload(str(image), path + image.name, guess_content_type(image.name))

    preview = repo.find_preview(video.id, PreviewType.PREVIEW, image.name)
    if preview is None:
        preview = repo.create_preview(
            Preview(
                video_id=video.id,
                type=PreviewType.PREVIEW,
                name=image.name,
                path=path,
                second=at_seconds,
            )
        )
        video.preview_id = preview.id
        repo.update_video(video.id, {"previewId": preview.id})
        return preview

    preview.second = at_seconds
    repo.update_preview(preview)
    cache.invalidate(f"preview/{preview.id}")
    return preview
