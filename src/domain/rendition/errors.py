"""
Rendition 도메인 오류: 순수 파이썬

code는 Rendition.metadata.code 로 그대로 기록된다.
"""
from __future__ import annotations


class RenditionWorkerError(Exception):
    """Rendition 파이프라인 오류 기반 클래스."""
    code = "rendition_error"


class StorageError(RenditionWorkerError):
    """원격 스토리지 읽기/쓰기/전송 실패."""
    code = "storage_error"


class CryptoError(RenditionWorkerError):
    """복호화 실패 (키 없음, 태그 불일치 등)."""
    code = "crypto_error"


class ProbeError(RenditionWorkerError):
    """읽을 수 없거나 유효하지 않은 미디어."""
    code = "probe_error"


class TranscodeError(RenditionWorkerError):
    """ffmpeg 실패 / 타임아웃 / 산출물 없음."""
    code = "transcode_error"


class ManifestParseError(RenditionWorkerError):
    """playlist / MPD 파싱 실패."""
    code = "manifest_parse_error"


INTERNAL_ERROR_CODE = "internal_error"


def error_code(exc: BaseException) -> str:
    """도메인 오류는 자기 code, 그 외는 internal_error."""
    if isinstance(exc, RenditionWorkerError):
        return exc.code
    return INTERNAL_ERROR_CODE
