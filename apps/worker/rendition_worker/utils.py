from __future__ import annotations

import logging
import os
import shutil
import tempfile
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator

logger = logging.getLogger("rendition_worker")


@dataclass(frozen=True)
class Workspace:
    """job 전용 작업 디렉토리: base/in (원본) + base/out (산출물)"""
    base: Path
    in_dir: Path
    out_dir: Path


@contextmanager
def job_workspace(base_dir: str, prefix: str = "job-") -> Iterator[Workspace]:
    """
    job 단위 임시 디렉토리.
    성공/예외/SystemExit(SIGTERM) 모두 finally 에서 삭제.
    삭제 실패는 로그만 남기고 job 결과에는 영향 없음.
    """
    Path(base_dir).mkdir(parents=True, exist_ok=True)
    base = Path(tempfile.mkdtemp(prefix=prefix, dir=base_dir))
    ws = Workspace(base=base, in_dir=base / "in", out_dir=base / "out")
    try:
        ensure_dir(ws.in_dir)
        ensure_dir(ws.out_dir)
        yield ws
    finally:
        remove_workspace(ws.base)


def remove_workspace(path: Path) -> bool:
    try:
        shutil.rmtree(path)
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.error("[WORKSPACE] Failed removing files from [%s]: %s", path, e)
        return False
    logger.info("[WORKSPACE] Removing files from [%s]", path)
    return True


def ensure_dir(path: Path) -> None:
    path.mkdir(parents=True, exist_ok=True)


def iter_files(path: Path) -> Iterator[Path]:
    """디렉토리 순회 순서 그대로 파일만 (하위 디렉토리 제외)."""
    with os.scandir(path) as it:
        for entry in it:
            if entry.is_file():
                yield Path(entry.path)


def trim_tail(s: str, limit: int = 2000) -> str:
    if not s:
        return ""
    return s[-limit:] if len(s) > limit else s


def guess_content_type(name: str) -> str:
    n = name.lower()
    if n.endswith(".m3u8"):
        return "application/vnd.apple.mpegurl"
    if n.endswith(".ts"):
        return "video/MP2T"
    if n.endswith(".mpd"):
        return "application/dash+xml"
    if n.endswith(".m4s"):
        return "video/iso.segment"
    if n.endswith(".mp4"):
        return "video/mp4"
    if n.endswith(".vtt"):
        return "text/vtt"
    if n.endswith(".jpg") or n.endswith(".jpeg"):
        return "image/jpeg"
    if n.endswith(".png"):
        return "image/png"
    if n.endswith(".json"):
        return "application/json"
    return "application/octet-stream"


def cache_control_for_object(name: str) -> str:
    """
    Cache-Control 전략

    - playlist / manifest (.m3u8, .mpd): "no-cache"
    - 세그먼트 (.ts, .m4s, .vtt): rendition 생성 후 변경되지 않으므로 immutable
    - 이미지 (preview / sprite): 7d 캐시 (preview는 같은 이름으로 덮어쓰므로 cache delete 이벤트로 무효화)
    """
    n = name.lower()
    if n.endswith(".m3u8") or n.endswith(".mpd"):
        return "no-cache"
    if n.endswith(".ts") or n.endswith(".m4s") or n.endswith(".vtt"):
        return "public, max-age=31536000, immutable"
    if n.endswith(".jpg") or n.endswith(".jpeg") or n.endswith(".png"):
        return "public, max-age=604800"
    return "public, max-age=3600"
