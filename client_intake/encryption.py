"""
Banking Data Encryption Module

AES-256-GCM protection of the banking fields (IBAN, SWIFT/BIC) at rest.

An encrypted field is base64(nonce || ciphertext || tag) with a fresh 12-byte
nonce per call and the 16-byte GCM tag appended by the cipher. Records written
before encryption was introduced hold plaintext; is_encrypted() tells the two
apart so reads keep working on un-migrated rows.
"""

import base64
import binascii
import logging
import os
import re
import threading
from typing import Dict, Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from .config import get_config


logger = logging.getLogger(__name__)

NONCE_SIZE = 12
TAG_SIZE = 16
KEY_SIZE = 32
MIN_CIPHERTEXT_BYTES = NONCE_SIZE + TAG_SIZE

DECRYPTION_ERROR_MARKER = "[Error de desencriptación]"

_PLAINTEXT_IBAN_RE = re.compile(r"^[A-Za-z]{2}[A-Za-z0-9]+$")
_PLAINTEXT_SWIFT_RE = re.compile(r"^[A-Za-z0-9]{8}$|^[A-Za-z0-9]{11}$")
_MAX_IBAN_LENGTH = 34


class EncryptionConfigError(ValueError):
    """The encryption key is missing or malformed"""


class DecryptionError(ValueError):
    """Ciphertext is corrupt, truncated or was sealed under another key"""


def load_encryption_key(encoded_key: Optional[str]) -> bytes:
    """
    Decode the configured base64 key into 32 raw bytes.

    Raises:
        EncryptionConfigError: key missing, not base64 or of the wrong size
    """
    if not encoded_key:
        raise EncryptionConfigError("ENCRYPTION_KEY not configured")
    try:
        key = base64.b64decode(encoded_key.strip(), validate=True)
    except (binascii.Error, ValueError) as e:
        raise EncryptionConfigError(f"ENCRYPTION_KEY is not valid base64: {e}") from e
    if len(key) != KEY_SIZE:
        raise EncryptionConfigError(
            f"ENCRYPTION_KEY must decode to {KEY_SIZE} bytes, got {len(key)}"
        )
    return key


def generate_encryption_key() -> str:
    """Generate a new base64-encoded AES-256 key for ENCRYPTION_KEY"""
    return base64.b64encode(AESGCM.generate_key(bit_length=256)).decode("ascii")


class BankingDataCipher:
    """AES-256-GCM cipher for individual banking field values"""

    def __init__(self, key: bytes):
        if len(key) != KEY_SIZE:
            raise EncryptionConfigError(f"AES-256 key must be {KEY_SIZE} bytes, got {len(key)}")
        self._aesgcm = AESGCM(key)

    @classmethod
    def from_encoded_key(cls, encoded_key: Optional[str]) -> 'BankingDataCipher':
        return cls(load_encryption_key(encoded_key))

    def encrypt(self, plaintext: str) -> str:
        """Encrypt with a fresh random nonce; equal inputs give different outputs"""
        nonce = os.urandom(NONCE_SIZE)
        sealed = self._aesgcm.encrypt(nonce, plaintext.encode("utf-8"), None)
        return base64.b64encode(nonce + sealed).decode("ascii")

    def decrypt(self, ciphertext: str) -> str:
        """
        Decrypt a value produced by encrypt().

        Raises:
            DecryptionError: on bad base64, short input, tag mismatch or bad UTF-8
        """
        try:
            combined = base64.b64decode(ciphertext, validate=True)
        except (binascii.Error, ValueError) as e:
            raise DecryptionError(f"Ciphertext is not valid base64: {e}") from e

        if len(combined) < MIN_CIPHERTEXT_BYTES:
            raise DecryptionError(
                f"Ciphertext too short: {len(combined)} bytes, need at least {MIN_CIPHERTEXT_BYTES}"
            )

        nonce, sealed = combined[:NONCE_SIZE], combined[NONCE_SIZE:]
        try:
            return self._aesgcm.decrypt(nonce, sealed, None).decode("utf-8")
        except InvalidTag as e:
            raise DecryptionError("Authentication tag mismatch") from e
        except UnicodeDecodeError as e:
            raise DecryptionError("Decrypted data is not valid UTF-8") from e


def is_encrypted(value: Optional[str]) -> bool:
    """
    Classify a stored banking value as ciphertext (True) or legacy plaintext.

    Values shaped like an IBAN (two letters then alphanumerics, at most 34
    characters) or a SWIFT/BIC (8 or 11 alphanumerics) are plaintext. Anything
    else counts as ciphertext only if it is strict base64 of at least
    nonce + tag bytes.
    """
    if not value:
        return False

    compact = value.replace(" ", "")
    if len(compact) <= _MAX_IBAN_LENGTH and _PLAINTEXT_IBAN_RE.match(compact):
        return False
    if _PLAINTEXT_SWIFT_RE.match(compact):
        return False

    try:
        decoded = base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError):
        return False
    return len(decoded) >= MIN_CIPHERTEXT_BYTES


def encrypt_fields(cipher: BankingDataCipher, iban: Optional[str] = None,
                   swift_bic: Optional[str] = None) -> Dict[str, str]:
    """Encrypt the banking fields that are present"""
    result = {}
    for name, value in (("iban", iban), ("swift_bic", swift_bic)):
        if value:
            result[name] = cipher.encrypt(value)
    return result


def decrypt_field(cipher: BankingDataCipher, name: str, value: str) -> str:
    """
    Decrypt one stored field, passing legacy plaintext through unchanged.
    A failed decryption yields DECRYPTION_ERROR_MARKER.
    """
    if not is_encrypted(value):
        return value
    try:
        return cipher.decrypt(value)
    except DecryptionError as e:
        logger.error(f"{name} decryption failed: {e}")
        return DECRYPTION_ERROR_MARKER


def decrypt_fields(cipher: BankingDataCipher, iban: Optional[str] = None,
                   swift_bic: Optional[str] = None) -> Dict[str, str]:
    """Decrypt each present field independently; one failure never blocks the other"""
    result = {}
    for name, value in (("iban", iban), ("swift_bic", swift_bic)):
        if value:
            result[name] = decrypt_field(cipher, name, value)
    return result


_cipher: Optional[BankingDataCipher] = None
_cipher_lock = threading.Lock()


def get_cipher() -> BankingDataCipher:
    """
    Process-wide cipher built from the configured key on first use.

    A failed load is not cached, so every call raises EncryptionConfigError
    until the key is configured.
    """
    global _cipher
    with _cipher_lock:
        if _cipher is None:
            _cipher = BankingDataCipher.from_encoded_key(get_config().encryption_key)
            logger.info("Banking data cipher initialized")
        return _cipher


def reset_cipher() -> None:
    """Drop the cached cipher so the next call reloads the key"""
    global _cipher
    with _cipher_lock:
        _cipher = None
