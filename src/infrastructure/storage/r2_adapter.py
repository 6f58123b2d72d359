# PATH: src/infrastructure/storage/r2_adapter.py
# R2(S3 호환) 객체 스토리지 디바이스: IStorageDevice 구현
# 프로젝트 루트는 버킷 내 key prefix 로 표현

from __future__ import annotations

import logging
from typing import Any, Optional

import boto3
from boto3.s3.transfer import TransferConfig
from botocore.exceptions import BotoCoreError, ClientError

from apps.worker.rendition_worker.utils import cache_control_for_object, guess_content_type, trim_tail
from src.application.ports.storage import IStorageDevice
from src.domain.rendition.errors import StorageError

logger = logging.getLogger(__name__)


def _get_s3_client(*, endpoint_url: str, access_key: str, secret_key: str, region: str) -> Any:
    """R2/S3 클라이언트 생성."""
    return boto3.client(
        "s3",
        endpoint_url=endpoint_url,
        aws_access_key_id=access_key,
        aws_secret_access_key=secret_key,
        region_name=region or "auto",
    )


class R2StorageAdapter(IStorageDevice):
    """R2(S3 호환) IStorageDevice 구현."""

    def __init__(
        self,
        *,
        bucket: str,
        root: str,
        client: Any,
        max_concurrency: int = 8,
    ) -> None:
        self._bucket = bucket
        self._root = root.strip("/")
        self._s3 = client
        self._transfer_cfg = TransferConfig(
            max_concurrency=max_concurrency,
            multipart_threshold=8 * 1024 * 1024,
            multipart_chunksize=8 * 1024 * 1024,
            use_threads=True,
        )

    def get_root(self) -> str:
        return self._root

    @staticmethod
    def _key(path: str) -> str:
        return path.lstrip("/")

    def read(self, path: str) -> bytes:
        try:
            resp = self._s3.get_object(Bucket=self._bucket, Key=self._key(path))
            return resp["Body"].read()
        except (BotoCoreError, ClientError) as e:
            raise StorageError(f"r2 read failed key={path} err={trim_tail(str(e))}") from e

    def write(self, path: str, data: bytes, content_type: Optional[str] = None) -> bool:
        try:
            self._s3.put_object(
                Bucket=self._bucket,
                Key=self._key(path),
                Body=data,
                ContentType=content_type or guess_content_type(path),
                CacheControl=cache_control_for_object(path),
            )
        except (BotoCoreError, ClientError) as e:
            raise StorageError(f"r2 write failed key={path} err={trim_tail(str(e))}") from e
        return True

    def download(self, path: str, local_path: str) -> None:
        try:
            self._s3.download_file(
                Bucket=self._bucket,
                Key=self._key(path),
                Filename=local_path,
                Config=self._transfer_cfg,
            )
        except (BotoCoreError, ClientError) as e:
            raise StorageError(f"r2 download failed key={path} err={trim_tail(str(e))}") from e

    def upload(self, local_path: str, path: str, content_type: Optional[str] = None) -> None:
        extra = {
            "ContentType": content_type or guess_content_type(path),
            "CacheControl": cache_control_for_object(path),
        }
        try:
            self._s3.upload_file(
                Filename=local_path,
                Bucket=self._bucket,
                Key=self._key(path),
                ExtraArgs=extra,
                Config=self._transfer_cfg,
            )
        except (BotoCoreError, ClientError) as e:
            raise StorageError(f"r2 upload failed key={path} err={trim_tail(str(e))}") from e
        logger.debug("r2 uploaded key=%s", path)
