"""
OpenSSL 호환 AES-GCM 복호화

스토리지에 암호화 저장된 파일 복원용.
키는 환경변수 OPENSSL_KEY_V<version> 에서 버전별로 조회.
"""

from libs.crypto.openssl import decrypt, encrypt, get_key

__all__ = [
    "decrypt",
    "encrypt",
    "get_key",
]
