"""
Machine-bound secret sealing.

Seals short secrets (the password of a signup queued while offline)
with AES-256-GCM so they are never written to local storage in
plaintext.

Security model
--------------
- The key is derived at runtime from machine identity (hostname + OS
  username) via PBKDF2-HMAC-SHA256 with a per-installation random salt
  file.  The key itself is never persisted.
- GCM provides confidentiality and integrity: a tampered token fails
  to open instead of yielding garbage.
- A copied database is useless on another machine or OS account.

Token layout: ``v1:`` followed by URL-safe base64 of
``nonce (16) || tag (16) || ciphertext``.
"""

from __future__ import annotations

import base64
import getpass
import os
import socket
import stat
from pathlib import Path
from typing import Optional

from Crypto.Cipher import AES
from Crypto.Hash import SHA256
from Crypto.Protocol.KDF import PBKDF2

from lingua.logger import StructuredLogger

_TOKEN_PREFIX: str = "v1:"
_NONCE_LEN: int = 16
_TAG_LEN: int = 16


class SecretBox:
    """Seal and open short secrets with a machine-bound AES-GCM key.

    Parameters
    ----------
    logger:
        Structured logger instance.
    salt_path:
        Location of the per-installation salt file.  Defaults to
        ``~/.lingua_secret_salt``.
    iterations:
        PBKDF2 iteration count.
    """

    _KEY_LENGTH: int = 32  # 256 bits
    _DEFAULT_ITERATIONS: int = 600_000

    def __init__(
        self,
        logger: StructuredLogger,
        salt_path: Optional[Path] = None,
        iterations: int = _DEFAULT_ITERATIONS,
    ) -> None:
        self._logger = logger
        self._salt_path: Path = salt_path or Path.home() / ".lingua_secret_salt"
        self._iterations = iterations
        self._key: Optional[bytes] = None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def seal(self, plaintext: str) -> str:
        """Encrypt *plaintext* and return a printable token.

        Raises
        ------
        OSError
            If the salt file cannot be created or read.
        """
        cipher = AES.new(self._derive_key(), AES.MODE_GCM, nonce=os.urandom(_NONCE_LEN))
        ciphertext, tag = cipher.encrypt_and_digest(plaintext.encode("utf-8"))
        blob = cipher.nonce + tag + ciphertext
        return _TOKEN_PREFIX + base64.urlsafe_b64encode(blob).decode("ascii")

    def open(self, token: str) -> str:
        """Decrypt a token produced by :meth:`seal`.

        Raises
        ------
        ValueError
            If the token is malformed, tampered with, or was sealed
            under a different machine identity.
        """
        if not token.startswith(_TOKEN_PREFIX):
            raise ValueError("Unrecognised sealed-secret format.")
        try:
            blob = base64.urlsafe_b64decode(token[len(_TOKEN_PREFIX):].encode("ascii"))
        except (ValueError, UnicodeEncodeError) as exc:
            raise ValueError(f"Sealed secret is not valid base64: {exc}") from exc
        if len(blob) < _NONCE_LEN + _TAG_LEN:
            raise ValueError("Sealed secret is truncated.")

        nonce = blob[:_NONCE_LEN]
        tag = blob[_NONCE_LEN:_NONCE_LEN + _TAG_LEN]
        ciphertext = blob[_NONCE_LEN + _TAG_LEN:]
        cipher = AES.new(self._derive_key(), AES.MODE_GCM, nonce=nonce)
        plaintext: bytes = cipher.decrypt_and_verify(ciphertext, tag)
        return plaintext.decode("utf-8")

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _derive_key(self) -> bytes:
        """Derive (once) the 256-bit AES key from machine identity."""
        if self._key is None:
            password: str = f"{socket.gethostname()}:{getpass.getuser()}"
            self._key = PBKDF2(
                password=password,
                salt=self._get_or_create_salt(),
                dkLen=self._KEY_LENGTH,
                count=self._iterations,
                hmac_hash_module=SHA256,
            )
        return self._key

    def _get_or_create_salt(self) -> bytes:
        """Return the per-installation salt, creating it on first use."""
        if self._salt_path.exists():
            data: bytes = self._salt_path.read_bytes()
            if len(data) == 32:
                return data
            self._logger.warning(
                "Salt file has unexpected length (%d); regenerating.", len(data),
            )
        salt: bytes = os.urandom(32)
        self._salt_path.parent.mkdir(parents=True, exist_ok=True)
        self._salt_path.write_bytes(salt)
        if os.name == "posix":
            self._salt_path.chmod(stat.S_IRUSR | stat.S_IWUSR)  # 0o600
        self._logger.info("Per-installation secret salt created at %s.", self._salt_path)
        return salt
