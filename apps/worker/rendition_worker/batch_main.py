"""
Rendition Worker - 배치 엔트리포인트

1 job = 1 process = exit.
job payload(JSON)는 RENDITION_JOB env 또는 argv[1] 의 파일 경로로 전달.

exit code:
- 0: 처리 완료 (Rendition ERROR 기록 포함, 결과는 레코드에 남음)
- 1: payload 없음 / Rendition 생성 전 치명적 오류 (재시도 대상)
"""

from __future__ import annotations

import json
import logging
import os
import signal
import sys
import time
from typing import Optional

from apps.worker.rendition_worker.config import load_config
from apps.worker.rendition_worker.video.processor import RenditionJobProcessor
from src.domain.rendition.entities import RenditionJob
from src.infrastructure.cache.redis_cache_invalidation_adapter import RedisCacheInvalidationAdapter
from src.infrastructure.db.http_rendition_repository import HttpRenditionRepository
from src.infrastructure.realtime.redis_realtime_adapter import RedisRealtimeAdapter
from src.infrastructure.storage import get_files_device, get_video_device

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] [RENDITION-WORKER] %(message)s",
)
logger = logging.getLogger("rendition_worker_batch")


def _log_json(event: str, **kwargs) -> None:
    log = {"event": event, **kwargs}
    logger.info(json.dumps(log, default=str))


def _handle_signal(sig, frame):
    # SystemExit: workspace finally 정리 경로를 탄다
    logger.warning("Received signal %s, shutting down", sig)
    raise SystemExit(128 + sig)


def _load_payload(argv: list[str]) -> Optional[dict]:
    raw = os.environ.get("RENDITION_JOB")
    if not raw and len(argv) > 1:
        with open(argv[1], "r", encoding="utf-8") as f:
            raw = f.read()
    if not raw:
        return None
    return json.loads(raw)


def main(argv: Optional[list[str]] = None) -> int:
    argv = sys.argv if argv is None else argv
    signal.signal(signal.SIGTERM, _handle_signal)
    signal.signal(signal.SIGINT, _handle_signal)

    try:
        payload = _load_payload(argv)
    except (OSError, ValueError) as e:
        _log_json("BATCH_MAIN_ERROR", error=f"invalid job payload: {e}")
        return 1
    if not payload:
        _log_json("BATCH_MAIN_ERROR", error="RENDITION_JOB or argv[1] required")
        return 1

    try:
        job = RenditionJob.from_dict(payload)
    except (TypeError, ValueError) as e:
        _log_json("BATCH_MAIN_ERROR", error=f"invalid job payload: {e}")
        return 1

    cfg = load_config()
    repo = HttpRenditionRepository.from_config(cfg, job.project_id)
    processor = RenditionJobProcessor(
        cfg=cfg,
        repo=repo,
        realtime=RedisRealtimeAdapter(cfg.REALTIME_CHANNEL),
        cache=RedisCacheInvalidationAdapter(cfg.CACHE_DELETE_QUEUE),
        files_device=get_files_device(cfg, job.project_id),
        video_device=get_video_device(cfg, job.project_id),
    )

    start_time = time.time()
    _log_json(
        "BATCH_JOB_START",
        video_id=job.video.id,
        profile_id=job.profile.id,
        project_id=job.project_id,
        action=job.action,
        output=job.output.value,
    )

    try:
        result = processor.run(job)
    except Exception as e:
        logger.exception("BATCH_JOB_FAILED | video_id=%s | error=%s", job.video.id, e)
        _log_json("BATCH_JOB_FAILED", video_id=job.video.id, action=job.action, error=str(e)[:2000])
        return 1
    finally:
        repo.close()

    _log_json(
        "BATCH_JOB_COMPLETED",
        video_id=job.video.id,
        action=job.action,
        result=result,
        duration_sec=round(time.time() - start_time, 2),
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
