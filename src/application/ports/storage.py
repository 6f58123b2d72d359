# PATH: src/application/ports/storage.py
# 스토리지 디바이스 포트: 로컬 파일시스템 / R2(S3 호환) 공통 계약

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

from src.domain.rendition.errors import StorageError


class IStorageDevice(ABC):
    """
    프로젝트 단위 스토리지 디바이스.
    path는 디바이스 루트를 포함한 전체 경로 (get_path로 생성).
    실패 시 StorageError.
    """

    is_local: bool = False

    @abstractmethod
    def get_root(self) -> str:
        ...

    def get_path(self, filename: str) -> str:
        """루트 기준 전체 경로."""
        return f"{self.get_root().rstrip('/')}/{filename.lstrip('/')}"

    @abstractmethod
    def read(self, path: str) -> bytes:
        """객체 전체를 바이트로 읽기."""
        ...

    @abstractmethod
    def write(self, path: str, data: bytes, content_type: Optional[str] = None) -> bool:
        ...

    @abstractmethod
    def download(self, path: str, local_path: str) -> None:
        """객체를 로컬 파일로 (메모리 버퍼링 없이)."""
        ...

    @abstractmethod
    def upload(self, local_path: str, path: str, content_type: Optional[str] = None) -> None:
        """로컬 파일을 디바이스 경로로 (메모리 버퍼링 없이)."""
        ...

    def transfer(self, path: str, destination: str, device: "IStorageDevice") -> bool:
        """
        디바이스 간 전송.
        기본 구현: 대상이 로컬이면 download, 원본이 로컬이면 대상 upload.
        """
        if device.is_local:
            self.download(path, destination)
            return True
        if self.is_local:
            device.upload(path, destination)
            return True
        raise StorageError(f"remote to remote transfer not supported: {path} -> {destination}")
