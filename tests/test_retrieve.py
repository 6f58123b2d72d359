"""원본 가져오기 (복호화 / 압축 해제 / 직접 전송) + crypto / compression."""

from __future__ import annotations

import os
from pathlib import Path

import pytest
from hypothesis import HealthCheck, given, settings, strategies as st

from apps.worker.rendition_worker.retrieve import retrieve
from libs.compression import compress, decompress
from libs.crypto import decrypt, encrypt, get_key
from src.domain.rendition.entities import File
from src.domain.rendition.errors import CryptoError, StorageError
from src.infrastructure.storage.local_adapter import LocalStorageAdapter

KEY = "test-master-key-for-openssl-gcm"


def _store(files_device: LocalStorageAdapter, name: str, raw: bytes, *, algorithm: str, cipher) -> File:
    """업로드 측 저장 파이프라인: compress → encrypt → write"""
    data = compress(raw, algorithm)
    iv = tag = None
    if cipher:
        data, iv, tag = encrypt(data, cipher, KEY)
    path = files_device.get_path(name)
    files_device.write(path, data)
    return File(
        id="f1",
        path=path,
        algorithm=algorithm,
        open_ssl_cipher=cipher,
        open_ssl_version="1" if cipher else None,
        open_ssl_iv=iv,
        open_ssl_tag=tag,
    )


class TestRetrieve:
    """retrieve 는 저장 파이프라인의 역연산."""

    @pytest.mark.parametrize("algorithm", ["none", "gzip", "zstd"])
    @pytest.mark.parametrize("cipher", [None, "aes-128-gcm"])
    def test_round_trip(self, tmp_path, monkeypatch, files_device, algorithm, cipher) -> None:
        monkeypatch.setenv("OPENSSL_KEY_V1", KEY)
        raw = os.urandom(4096) + b"\x00" * 4096
        file = _store(files_device, "f1.mp4", raw, algorithm=algorithm, cipher=cipher)

        local = retrieve(
            file=file,
            files_device=files_device,
            local_device=LocalStorageAdapter("/"),
            in_dir=tmp_path / "in",
        )

        assert local == tmp_path / "in" / "f1.mp4"
        assert local.read_bytes() == raw
        assert not (tmp_path / "in" / "f1.mp4.part").exists()

    @given(raw=st.binary(max_size=2048), algorithm=st.sampled_from(["none", "gzip", "zstd"]))
    @settings(max_examples=30, suppress_health_check=[HealthCheck.function_scoped_fixture])
    def test_round_trip_property(self, tmp_path, monkeypatch, files_device, raw, algorithm) -> None:
        monkeypatch.setenv("OPENSSL_KEY_V1", KEY)
        file = _store(files_device, "blob.bin", raw, algorithm=algorithm, cipher="aes-256-gcm")

        local = retrieve(
            file=file,
            files_device=files_device,
            local_device=LocalStorageAdapter("/"),
            in_dir=tmp_path / "prop",
        )

        assert local.read_bytes() == raw

    def test_missing_key(self, tmp_path, monkeypatch, files_device) -> None:
        monkeypatch.setenv("OPENSSL_KEY_V1", KEY)
        file = _store(files_device, "f1.mp4", b"data", algorithm="none", cipher="aes-128-gcm")
        monkeypatch.delenv("OPENSSL_KEY_V1")

        with pytest.raises(CryptoError):
            retrieve(file=file, files_device=files_device, local_device=LocalStorageAdapter("/"), in_dir=tmp_path / "in")

    def test_tampered_tag(self, tmp_path, monkeypatch, files_device) -> None:
        monkeypatch.setenv("OPENSSL_KEY_V1", KEY)
        file = _store(files_device, "f1.mp4", b"data", algorithm="none", cipher="aes-128-gcm")
        file.open_ssl_tag = "00" * 16

        with pytest.raises(CryptoError):
            retrieve(file=file, files_device=files_device, local_device=LocalStorageAdapter("/"), in_dir=tmp_path / "in")

    def test_missing_remote_file(self, tmp_path, files_device) -> None:
        file = File(id="f1", path=files_device.get_path("nope.mp4"))

        with pytest.raises(StorageError):
            retrieve(file=file, files_device=files_device, local_device=LocalStorageAdapter("/"), in_dir=tmp_path / "in")

    def test_corrupt_compressed_data(self, tmp_path, files_device) -> None:
        path = files_device.get_path("f1.mp4")
        files_device.write(path, b"not gzip at all")
        file = File(id="f1", path=path, algorithm="gzip")

        with pytest.raises(StorageError):
            retrieve(file=file, files_device=files_device, local_device=LocalStorageAdapter("/"), in_dir=tmp_path / "in")


class TestCrypto:
    def test_key_lookup(self, monkeypatch) -> None:
        monkeypatch.setenv("OPENSSL_KEY_V2", "k2")
        assert get_key("2") == "k2"
        with pytest.raises(CryptoError):
            get_key("9")

    def test_unsupported_cipher(self) -> None:
        with pytest.raises(CryptoError):
            decrypt(b"", "aes-128-cbc", KEY, "00", "00")

    def test_ciphertext_is_base64(self) -> None:
        ciphertext, iv, tag = encrypt(b"hello", "aes-128-gcm", KEY, iv=b"\x01" * 12)

        assert iv == "01" * 12
        assert len(tag) == 32
        assert decrypt(ciphertext, "aes-128-gcm", KEY, iv, tag) == b"hello"
        with pytest.raises(CryptoError):
            decrypt(b"!!not base64!!", "aes-128-gcm", KEY, iv, tag)


class TestCompression:
    @given(raw=st.binary(max_size=4096))
    @settings(max_examples=50)
    def test_zstd_and_gzip(self, raw: bytes) -> None:
        for algorithm in ("zstd", "gzip"):
            assert decompress(compress(raw, algorithm), algorithm) == raw

    def test_none_passthrough(self) -> None:
        assert decompress(b"abc", "none") == b"abc"
        assert decompress(b"abc", "") == b"abc"

    def test_unknown_algorithm(self) -> None:
        with pytest.raises(ValueError):
            decompress(b"abc", "lz4")
