from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Optional

from apps.worker.rendition_worker.utils import guess_content_type, iter_files
from src.application.ports.storage import IStorageDevice

logger = logging.getLogger("rendition_worker.upload")


def is_subtitle_file(name: str) -> bool:
    return "_subtitles_" in name or ".vtt" in name


def upload_outputs(
    *,
    out_dir: Path,
    device: IStorageDevice,
    rendition_path: str,
    subtitles_path: str,
    on_first_upload: Optional[Callable[[], None]] = None,
) -> int:
    """
    out/ 의 파일을 디렉토리 순회 순서대로 1회 업로드 (순차, 재시도 없음).
    - 자막 파일(_subtitles_ / .vtt) → subtitles_path
    - 그 외 → rendition_path
    첫 파일 업로드 직후 on_first_upload 호출. 업로드 개수 반환.
    """
    count = 0
    for f in iter_files(out_dir):
        dest = subtitles_path if is_subtitle_file(f.name) else rendition_path
        logger.info("[UPLOAD] Uploading %s -> %s", f.name, dest)
        device.upload(str(f), dest + f.name, guess_content_type(f.name))
        if count == 0 and on_first_upload is not None:
            on_first_upload()
        count += 1
    return count
