"""Tests for machine-bound secret sealing."""

from __future__ import annotations

import base64
from pathlib import Path

import pytest

from lingua.services.secret_box import SecretBox


class TestSealAndOpen:
    def test_round_trip(self, secret_box: SecretBox):
        token = secret_box.seal("pässwörd-123")

        assert token.startswith("v1:")
        assert "pässwörd" not in token
        assert secret_box.open(token) == "pässwörd-123"

    def test_random_nonce(self, secret_box: SecretBox):
        assert secret_box.seal("same") != secret_box.seal("same")

    def test_same_salt_opens_across_instances(self, tmp_path: Path, logger):
        salt_path = tmp_path / "salt"
        first = SecretBox(logger=logger, salt_path=salt_path, iterations=1_000)
        second = SecretBox(logger=logger, salt_path=salt_path, iterations=1_000)

        assert second.open(first.seal("carry over")) == "carry over"

    def test_other_salt_cannot_open(self, tmp_path: Path, logger):
        first = SecretBox(logger=logger, salt_path=tmp_path / "a", iterations=1_000)
        second = SecretBox(logger=logger, salt_path=tmp_path / "b", iterations=1_000)

        with pytest.raises(ValueError):
            second.open(first.seal("not yours"))


class TestRejectsBadTokens:
    def test_tampered_ciphertext(self, secret_box: SecretBox):
        token = secret_box.seal("secret")
        blob = bytearray(base64.urlsafe_b64decode(token[3:]))
        blob[-1] ^= 0x01
        tampered = "v1:" + base64.urlsafe_b64encode(bytes(blob)).decode("ascii")

        with pytest.raises(ValueError):
            secret_box.open(tampered)

    def test_unknown_prefix(self, secret_box: SecretBox):
        with pytest.raises(ValueError, match="Unrecognised"):
            secret_box.open("plaintext-password")

    def test_truncated(self, secret_box: SecretBox):
        short = "v1:" + base64.urlsafe_b64encode(b"too short").decode("ascii")

        with pytest.raises(ValueError, match="truncated"):
            secret_box.open(short)


class TestSaltFile:
    def test_created_once(self, tmp_path: Path, logger):
        salt_path = tmp_path / "nested" / "salt"
        box = SecretBox(logger=logger, salt_path=salt_path, iterations=1_000)

        box.seal("x")

        assert salt_path.exists()
        assert len(salt_path.read_bytes()) == 32

    def test_wrong_length_regenerated(self, tmp_path: Path, logger):
        salt_path = tmp_path / "salt"
        salt_path.write_bytes(b"short")
        box = SecretBox(logger=logger, salt_path=salt_path, iterations=1_000)

        box.seal("x")

        assert len(salt_path.read_bytes()) == 32
