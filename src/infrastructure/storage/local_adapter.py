# PATH: src/infrastructure/storage/local_adapter.py
# 로컬 파일시스템 디바이스: IStorageDevice 구현
# job workspace(in/out) 와 STORAGE_DEVICE=local 프로젝트 스토리지에서 사용

from __future__ import annotations

import shutil
from pathlib import Path
from typing import Optional

from src.application.ports.storage import IStorageDevice
from src.domain.rendition.errors import StorageError


class LocalStorageAdapter(IStorageDevice):
    """로컬 디스크 IStorageDevice 구현. path는 절대 경로."""

    is_local = True

    def __init__(self, root: str = "/") -> None:
        self._root = root

    def get_root(self) -> str:
        return self._root

    def read(self, path: str) -> bytes:
        try:
            return Path(path).read_bytes()
        except OSError as e:
            raise StorageError(f"local read failed: {path}: {e}") from e

    def write(self, path: str, data: bytes, content_type: Optional[str] = None) -> bool:
        try:
            p = Path(path)
            p.parent.mkdir(parents=True, exist_ok=True)
            p.write_bytes(data)
        except OSError as e:
            raise StorageError(f"local write failed: {path}: {e}") from e
        return True

    def download(self, path: str, local_path: str) -> None:
        self._copy(path, local_path)

    def upload(self, local_path: str, path: str, content_type: Optional[str] = None) -> None:
        self._copy(local_path, path)

    def _copy(self, src: str, dst: str) -> None:
        try:
            Path(dst).parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(src, dst)
        except OSError as e:
            raise StorageError(f"local copy failed: {src} -> {dst}: {e}") from e
