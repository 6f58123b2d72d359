"""
스토리지 압축 알고리즘 (zstd / gzip)

업로드 시 압축 저장된 파일 복원용.
"""

from libs.compression.algorithms import ALGORITHM_NONE, compress, decompress

__all__ = [
    "ALGORITHM_NONE",
    "compress",
    "decompress",
]
