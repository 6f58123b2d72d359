from __future__ import annotations

import gzip

import zstandard

ALGORITHM_NONE = "none"
ALGORITHM_GZIP = "gzip"
ALGORITHM_ZSTD = "zstd"

# 업로드 측 기본 레벨
ZSTD_LEVEL = 3
GZIP_LEVEL = 9


def decompress(data: bytes, algorithm: str) -> bytes:
    """algorithm 이 none/빈 값이면 그대로 반환. 모르는 알고리즘은 ValueError."""
    algorithm = (algorithm or ALGORITHM_NONE).lower()
    if algorithm == ALGORITHM_NONE:
        return data
    if algorithm == ALGORITHM_ZSTD:
        # content size 헤더가 없는 프레임도 허용
        return zstandard.ZstdDecompressor().decompressobj().decompress(data)
    if algorithm == ALGORITHM_GZIP:
        return gzip.decompress(data)
    raise ValueError(f"Unsupported compression algorithm: {algorithm}")


def compress(data: bytes, algorithm: str) -> bytes:
    algorithm = (algorithm or ALGORITHM_NONE).lower()
    if algorithm == ALGORITHM_NONE:
        return data
    if algorithm == ALGORITHM_ZSTD:
        return zstandard.ZstdCompressor(level=ZSTD_LEVEL).compress(data)
    if algorithm == ALGORITHM_GZIP:
        return gzip.compress(data, compresslevel=GZIP_LEVEL)
    raise ValueError(f"Unsupported compression algorithm: {algorithm}")
