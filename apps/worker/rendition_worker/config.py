from __future__ import annotations

import os
import sys
from dataclasses import dataclass


def _require(name: str) -> str:
    v = os.environ.get(name)
    if not v:
        raise RuntimeError(f"Missing required env: {name}")
    return v


def _float(name: str, default: str) -> float:
    try:
        return float(os.environ.get(name, default))
    except Exception:
        return float(default)


def _int(name: str, default: str) -> int:
    try:
        return int(os.environ.get(name, default))
    except Exception:
        return int(default)


@dataclass(frozen=True)
class Config:
    # API (record store)
    API_BASE_URL: str
    WORKER_TOKEN: str
    WORKER_ID: str
    HTTP_TIMEOUT_SECONDS: float

    # Temp (job workspace)
    TEMP_DIR: str

    # ffmpeg / ffprobe
    FFMPEG_BIN: str
    FFPROBE_BIN: str
    FFPROBE_TIMEOUT_SECONDS: int
    FFMPEG_TIMEOUT_SECONDS: int
    FFMPEG_THREADS: int

    # HLS / DASH
    SEGMENT_SECONDS: int

    # Storage device
    STORAGE_DEVICE: str
    STORAGE_ROOT: str

    # R2 (S3 compatible)
    R2_BUCKET: str
    R2_ENDPOINT_URL: str
    R2_ACCESS_KEY: str
    R2_SECRET_KEY: str
    R2_REGION: str
    UPLOAD_MAX_CONCURRENCY: int

    # Timeline sprite URL
    PREVIEW_BASE_URL: str

    # Redis (realtime / cache delete)
    REALTIME_CHANNEL: str
    CACHE_DELETE_QUEUE: str


def load_config() -> Config:
    try:
        storage_device = os.environ.get("STORAGE_DEVICE", "local").lower()
        r2 = storage_device == "r2"
        base_url = os.environ.get("PREVIEW_BASE_URL", "http://localhost/")
        return Config(
            API_BASE_URL=_require("API_BASE_URL").rstrip("/"),
            WORKER_TOKEN=_require("INTERNAL_WORKER_TOKEN"),
            WORKER_ID=os.environ.get("WORKER_ID", "rendition-worker-1"),
            HTTP_TIMEOUT_SECONDS=_float("RENDITION_WORKER_HTTP_TIMEOUT", "10.0"),

            TEMP_DIR=os.environ.get("RENDITION_WORKER_TEMP_DIR", "/tmp/rendition-worker"),

            FFMPEG_BIN=os.environ.get("FFMPEG_BIN", "ffmpeg"),
            FFPROBE_BIN=os.environ.get("FFPROBE_BIN", "ffprobe"),
            FFPROBE_TIMEOUT_SECONDS=_int("FFPROBE_TIMEOUT_SECONDS", "60"),
            FFMPEG_TIMEOUT_SECONDS=_int("FFMPEG_TIMEOUT_SECONDS", "21600"),  # 6h default
            FFMPEG_THREADS=_int("FFMPEG_THREADS", "12"),

            SEGMENT_SECONDS=_int("SEGMENT_SECONDS", "8"),

            STORAGE_DEVICE=storage_device,
            STORAGE_ROOT=os.environ.get("STORAGE_ROOT", "/storage").rstrip("/"),

            # r2 디바이스일 때만 필수
            R2_BUCKET=_require("R2_BUCKET") if r2 else os.environ.get("R2_BUCKET", ""),
            R2_ENDPOINT_URL=_require("R2_ENDPOINT_URL") if r2 else os.environ.get("R2_ENDPOINT_URL", ""),
            R2_ACCESS_KEY=_require("R2_ACCESS_KEY") if r2 else os.environ.get("R2_ACCESS_KEY", ""),
            R2_SECRET_KEY=_require("R2_SECRET_KEY") if r2 else os.environ.get("R2_SECRET_KEY", ""),
            R2_REGION=os.environ.get("R2_REGION", "auto"),
            UPLOAD_MAX_CONCURRENCY=_int("UPLOAD_MAX_CONCURRENCY", "8"),

            PREVIEW_BASE_URL=base_url if base_url.endswith("/") else base_url + "/",

            REALTIME_CHANNEL=os.environ.get("REALTIME_CHANNEL", "realtime"),
            CACHE_DELETE_QUEUE=os.environ.get("CACHE_DELETE_QUEUE", "v1-deletes"),
        )
    except Exception as e:
        print(f"[fatal] config error: {e}", file=sys.stderr)
        sys.exit(1)
