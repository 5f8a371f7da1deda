"""Конвертное шифрование содержимого документов.

AES-256-GCM: для каждого вызова генерируется свежий 96-битный nonce,
шифртекст и 128-битный тег аутентификации хранятся раздельно.
"""
import base64
import json
import os
from dataclasses import dataclass
from typing import Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from app.core.exceptions import AuthenticationFailed, MalformedEnvelopeError

KEY_SIZE = 32
NONCE_SIZE = 12
TAG_SIZE = 16

SERVER_SCHEME = "server-aes-256-gcm"


@dataclass(frozen=True)
class EncryptedPayload:
    """Результат шифрования: шифртекст, nonce и тег"""
    ciphertext: bytes
    nonce: bytes
    tag: bytes


class EnvelopeCipher:
    """AEAD-шифрование произвольного payload под 256-битным ключом"""

    def encrypt(self, plaintext: bytes, key: bytes) -> EncryptedPayload:
        """Шифрование с новым случайным nonce"""
        self._check_key(key)
        nonce = os.urandom(NONCE_SIZE)
        sealed = AESGCM(key).encrypt(nonce, plaintext, None)
        return EncryptedPayload(
            ciphertext=sealed[:-TAG_SIZE],
            nonce=nonce,
            tag=sealed[-TAG_SIZE:]
        )

    def decrypt(self, ciphertext: bytes, key: bytes, nonce: bytes, tag: bytes) -> bytes:
        """Расшифровка; при несовпадении тега - AuthenticationFailed"""
        self._check_key(key)
        if len(nonce) != NONCE_SIZE:
            raise MalformedEnvelopeError(f"Nonce must be {NONCE_SIZE} bytes, got {len(nonce)}")
        if len(tag) != TAG_SIZE:
            raise MalformedEnvelopeError(f"Tag must be {TAG_SIZE} bytes, got {len(tag)}")

        try:
            return AESGCM(key).decrypt(nonce, ciphertext + tag, None)
        except InvalidTag:
            raise AuthenticationFailed("Authentication tag mismatch")

    @staticmethod
    def _check_key(key: bytes) -> None:
        if len(key) != KEY_SIZE:
            raise MalformedEnvelopeError(f"Key must be {KEY_SIZE} bytes, got {len(key)}")


@dataclass(frozen=True)
class KeyMaterial:
    """Метаданные серверного шифрования, хранятся в encrypted_key_material"""
    epoch: int
    nonce: bytes
    tag: bytes

    def to_json(self) -> str:
        return json.dumps({
            "scheme": SERVER_SCHEME,
            "epoch": self.epoch,
            "nonce": base64.b64encode(self.nonce).decode("ascii"),
            "tag": base64.b64encode(self.tag).decode("ascii"),
        }, separators=(",", ":"))

    @classmethod
    def parse(cls, raw: Optional[str]) -> Optional["KeyMaterial"]:
        """Разбор метаданных; None для клиентского (непрозрачного) шифрования"""
        if not raw:
            return None
        try:
            data = json.loads(raw)
        except ValueError:
            return None
        if not isinstance(data, dict) or data.get("scheme") != SERVER_SCHEME:
            return None

        try:
            return cls(
                epoch=int(data["epoch"]),
                nonce=base64.b64decode(data["nonce"], validate=True),
                tag=base64.b64decode(data["tag"], validate=True)
            )
        except (KeyError, TypeError, ValueError):
            raise MalformedEnvelopeError("Server key material is corrupted")


def claims_server_scheme(raw: Optional[str]) -> bool:
    """Метаданные помечены как серверные, независимо от их целостности"""
    if not raw:
        return False
    try:
        data = json.loads(raw)
    except ValueError:
        return False
    return isinstance(data, dict) and data.get("scheme") == SERVER_SCHEME
