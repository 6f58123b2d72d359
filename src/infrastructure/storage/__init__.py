# PATH: src/infrastructure/storage/__init__.py
# 스토리지 디바이스 어댑터 + 프로젝트별 디바이스 팩토리
#   files device: <root>/uploads/app-<projectId>  (버킷 원본 파일)
#   video device: <root>/videos/app-<projectId>   (rendition / preview / timeline 산출물)

from __future__ import annotations

from src.application.ports.storage import IStorageDevice
from src.infrastructure.storage.local_adapter import LocalStorageAdapter
from src.infrastructure.storage.r2_adapter import R2StorageAdapter, _get_s3_client

STORAGE_UPLOADS = "uploads"
STORAGE_VIDEOS = "videos"


def get_device(cfg, kind: str, project_id: str) -> IStorageDevice:
    root = f"{cfg.STORAGE_ROOT}/{kind}/app-{project_id}"
    if cfg.STORAGE_DEVICE == "r2":
        client = _get_s3_client(
            endpoint_url=cfg.R2_ENDPOINT_URL,
            access_key=cfg.R2_ACCESS_KEY,
            secret_key=cfg.R2_SECRET_KEY,
            region=cfg.R2_REGION,
        )
        return R2StorageAdapter(
            bucket=cfg.R2_BUCKET,
            root=root,
            client=client,
            max_concurrency=cfg.UPLOAD_MAX_CONCURRENCY,
        )
    return LocalStorageAdapter(root)


def get_files_device(cfg, project_id: str) -> IStorageDevice:
    return get_device(cfg, STORAGE_UPLOADS, project_id)


def get_video_device(cfg, project_id: str) -> IStorageDevice:
    return get_device(cfg, STORAGE_VIDEOS, project_id)


__all__ = [
    "LocalStorageAdapter",
    "R2StorageAdapter",
    "get_files_device",
    "get_video_device",
]
