"""
OpenSSL(openssl_encrypt / openssl_decrypt) 호환 AES-GCM

- 암호문은 base64 텍스트 (OpenSSL options=0 형식)
- 키 문자열은 cipher 키 길이에 맞춰 자르거나 0x00 으로 채움 (OpenSSL 동작과 동일)
- iv / tag 는 hex 로 레코드에 저장된다
"""

from __future__ import annotations

import base64
import binascii
import os
from typing import Optional, Tuple

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from src.domain.rendition.errors import CryptoError

KEY_ENV_PREFIX = "OPENSSL_KEY_V"

# cipher 이름 → 키 길이(bytes)
_GCM_KEY_LENGTHS = {
    "aes-128-gcm": 16,
    "aes-192-gcm": 24,
    "aes-256-gcm": 32,
}


def get_key(version: Optional[str]) -> str:
    """버전별 키 조회. 없으면 CryptoError."""
    name = f"{KEY_ENV_PREFIX}{version or ''}"
    key = os.environ.get(name)
    if not key:
        raise CryptoError(f"Missing encryption key: {name}")
    return key


def _normalize_key(cipher: str, key: str) -> bytes:
    try:
        length = _GCM_KEY_LENGTHS[cipher.lower()]
    except KeyError:
        raise CryptoError(f"Unsupported cipher: {cipher}") from None
    raw = key.encode("utf-8")
    return raw[:length].ljust(length, b"\x00")


def _unhex(value: str, what: str) -> bytes:
    try:
        return binascii.unhexlify(value or "")
    except (binascii.Error, ValueError) as e:
        raise CryptoError(f"Invalid {what} hex") from e


def decrypt(data: bytes, cipher: str, key: str, iv_hex: str, tag_hex: str) -> bytes:
    aes = AESGCM(_normalize_key(cipher, key))
    iv = _unhex(iv_hex, "iv")
    tag = _unhex(tag_hex, "tag")
    try:
        ciphertext = base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError) as e:
        raise CryptoError("Ciphertext is not base64") from e
    try:
        return aes.decrypt(iv, ciphertext + tag, None)
    except InvalidTag as e:
        raise CryptoError(f"Decryption failed for cipher {cipher}") from e
    except ValueError as e:
        raise CryptoError(f"Decryption failed for cipher {cipher}: {e}") from e


def encrypt(data: bytes, cipher: str, key: str, iv: Optional[bytes] = None) -> Tuple[bytes, str, str]:
    """
    decrypt 의 역연산. (base64 암호문, iv hex, tag hex) 반환.
    업로드 측 저장 형식과 동일.
    """
    aes = AESGCM(_normalize_key(cipher, key))
    iv = iv or os.urandom(12)
    sealed = aes.encrypt(iv, data, None)
    ciphertext, tag = sealed[:-16], sealed[-16:]
    return base64.b64encode(ciphertext), iv.hex(), tag.hex()
