from __future__ import annotations

import logging
import os
from pathlib import Path

from apps.worker.rendition_worker.utils import ensure_dir, trim_tail
from libs.compression import decompress
from libs.crypto import decrypt, get_key
from src.application.ports.storage import IStorageDevice
from src.domain.rendition.entities import File
from src.domain.rendition.errors import StorageError

logger = logging.getLogger("rendition_worker.retrieve")


def retrieve(
    *,
    file: File,
    files_device: IStorageDevice,
    local_device: IStorageDevice,
    in_dir: Path,
) -> Path:
    """
    원본 파일을 job workspace(in/)로 가져온다.

    - 암호화/압축 파일: 전체 read → 복호화(cipher, 버전별 키, iv/tag) → 압축 해제 → 로컬 write
    - 그 외: 디바이스 간 transfer (메모리 버퍼링 없음)
    - tmp(.part) -> atomic rename
    - 결과 파일명은 원본 path 의 basename
    """
    if not file.path:
        raise StorageError(f"file {file.id} has no storage path")

    ensure_dir(in_dir)
    dst = in_dir / os.path.basename(file.path)
    tmp = dst.with_name(dst.name + ".part")

    logger.info(
        "[RETRIEVE] Transferring %s to %s encrypted=%s algorithm=%s",
        file.path, in_dir, file.is_encrypted, file.algorithm,
    )

    if file.is_encrypted or file.is_compressed:
        data = files_device.read(file.path)

        if file.is_encrypted:
            data = decrypt(
                data,
                file.open_ssl_cipher,
                get_key(file.open_ssl_version),
                file.open_ssl_iv or "",
                file.open_ssl_tag or "",
            )

        try:
            data = decompress(data, file.algorithm)
        except Exception as e:
            raise StorageError(f"decompress failed algorithm={file.algorithm}: {trim_tail(str(e))}") from e

        if not local_device.write(str(tmp), data, file.mime_type):
            raise StorageError(f"local write failed: {tmp}")
    else:
        if not files_device.transfer(file.path, str(tmp), local_device):
            raise StorageError(f"storage transfer failed: {file.path}")

    try:
        tmp.replace(dst)
    except OSError as e:
        raise StorageError(f"retrieved file missing: {tmp}") from e

    return dst
