"""
At-rest encryption for provider credentials.

Blob format (text column friendly):
    base64(nonce) "." base64(tag) "." base64(ciphertext)

- AES-256-GCM, 12-byte random nonce per call, 16-byte tag
- key = scrypt(master_secret, salt=b"dispatch-ai-config"), derived once per cipher
"""
from __future__ import annotations

import base64
import binascii
import os
from typing import Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.scrypt import Scrypt

from app.core.config import get_master_secret

from .errors import InvalidCredentialFormatError, MasterSecretMissingError

KDF_SALT = b"dispatch-ai-config"
NONCE_BYTES = 12
TAG_BYTES = 16
SEPARATOR = "."


def _derive_key(secret: str) -> bytes:
    kdf = Scrypt(salt=KDF_SALT, length=32, n=2**14, r=8, p=1)
    return kdf.derive(secret.encode("utf-8"))


def _b64(raw: bytes) -> str:
    return base64.b64encode(raw).decode("ascii")


def _unb64(seg: str) -> bytes:
    return base64.b64decode(seg.encode("ascii"), validate=True)


class SecretCipher:
    def __init__(self, master_secret: str) -> None:
        if not master_secret or not master_secret.strip():
            raise MasterSecretMissingError()
        self._aead = AESGCM(_derive_key(master_secret.strip()))

    @classmethod
    def from_env(cls) -> "SecretCipher":
        return cls(get_master_secret())

    def encrypt(self, plaintext: str) -> str:
        nonce = os.urandom(NONCE_BYTES)
        sealed = self._aead.encrypt(nonce, plaintext.encode("utf-8"), None)
        ciphertext, tag = sealed[:-TAG_BYTES], sealed[-TAG_BYTES:]
        return SEPARATOR.join([_b64(nonce), _b64(tag), _b64(ciphertext)])

    def decrypt(self, blob: str) -> str:
        parts = blob.split(SEPARATOR) if isinstance(blob, str) else []
        # empty ciphertext is legal (empty plaintext); nonce and tag never are
        if len(parts) != 3 or not parts[0] or not parts[1]:
            raise InvalidCredentialFormatError()
        try:
            nonce, tag, ciphertext = (_unb64(p) for p in parts)
        except (binascii.Error, ValueError):
            raise InvalidCredentialFormatError()
        if len(nonce) != NONCE_BYTES or len(tag) != TAG_BYTES:
            raise InvalidCredentialFormatError()
        try:
            raw = self._aead.decrypt(nonce, ciphertext + tag, None)
            return raw.decode("utf-8")
        except (InvalidTag, UnicodeDecodeError):
            raise InvalidCredentialFormatError()


def mask_credential(plaintext: Optional[str]) -> Optional[str]:
    """Display-only form of a secret; never fed back into decrypt()."""
    if not plaintext:
        return None
    s = plaintext.strip()
    if len(s) <= 8:
        return f"{s[:2]}***{s[-2:]}"
    return f"{s[:4]}...{s[-6:]}"
