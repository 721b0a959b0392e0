"""
Credential encryption for third-party integrations.

AES-256-GCM with a random 16-byte IV. The key is derived from the
``ENCRYPTION_KEY`` setting with PBKDF2-HMAC-SHA256. Ciphertexts are stored as
``iv:tag:ciphertext`` (hex).
"""

import logging
import os
from functools import lru_cache
from typing import Mapping, Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from repairtix.config.settings import get_settings
from repairtix.errors import EncryptionError

logger = logging.getLogger(__name__)

IV_LENGTH = 16
TAG_LENGTH = 16
KEY_LENGTH = 32
PBKDF2_ITERATIONS = 100_000
KEY_SALT = b"repair-tix-salt"


@lru_cache(maxsize=4)
def _derive_key(secret: str) -> bytes:
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=KEY_LENGTH,
        salt=KEY_SALT,
        iterations=PBKDF2_ITERATIONS,
    )
    return kdf.derive(secret.encode("utf-8"))


def get_encryption_key() -> bytes:
    """
    Derive the AES key from configuration.

    Raises:
        EncryptionError: If ENCRYPTION_KEY is not configured
    """
    secret = get_settings().ENCRYPTION_KEY
    if not secret:
        raise EncryptionError("ENCRYPTION_KEY environment variable is required")
    return _derive_key(secret)


def encrypt(plaintext: str) -> str:
    """
    Encrypt a secret value.

    Args:
        plaintext: Non-empty string

    Returns:
        ``iv:tag:ciphertext`` in hex
    """
    if not plaintext:
        raise EncryptionError("Cannot encrypt empty string")

    iv = os.urandom(IV_LENGTH)
    sealed = AESGCM(get_encryption_key()).encrypt(iv, plaintext.encode("utf-8"), None)
    ciphertext, tag = sealed[:-TAG_LENGTH], sealed[-TAG_LENGTH:]
    return f"{iv.hex()}:{tag.hex()}:{ciphertext.hex()}"


def decrypt(encrypted_data: str) -> str:
    """
    Decrypt a value produced by :func:`encrypt`.

    Raises:
        EncryptionError: On empty input, malformed input, wrong key or tampering
    """
    if not encrypted_data:
        raise EncryptionError("Cannot decrypt empty string")

    parts = encrypted_data.split(":")
    if len(parts) != 3:
        raise EncryptionError("Invalid encrypted data format. Expected format: iv:tag:encrypted")

    try:
        iv, tag, ciphertext = (bytes.fromhex(part) for part in parts)
    except ValueError as e:
        raise EncryptionError(f"Invalid encrypted data encoding: {e}") from e

    try:
        plaintext = AESGCM(get_encryption_key()).decrypt(iv, ciphertext + tag, None)
    except (InvalidTag, ValueError) as e:
        raise EncryptionError("Failed to decrypt data") from e

    return plaintext.decode("utf-8")


def looks_encrypted(value: str) -> bool:
    return len(value.split(":")) == 3


def encrypt_credentials(credentials: Mapping[str, Optional[str]]) -> dict[str, str]:
    """Encrypt every non-empty value. ``None`` is dropped, ``""`` kept as-is."""
    encrypted: dict[str, str] = {}
    for key, value in credentials.items():
        if value is None:
            continue
        if value == "":
            encrypted[key] = ""
        elif value.strip():
            encrypted[key] = encrypt(value)
    return encrypted


def decrypt_credentials(encrypted: Mapping[str, Optional[str]]) -> dict[str, str]:
    """
    Decrypt a credentials mapping.

    Values that do not look encrypted are returned unchanged (legacy plaintext).
    Values that look encrypted but fail to decrypt are skipped with a warning.
    """
    if any(value and looks_encrypted(value) for value in encrypted.values()):
        # Missing key is a configuration error, not a bad credential
        get_encryption_key()

    decrypted: dict[str, str] = {}
    for key, value in encrypted.items():
        if value is None:
            continue
        if value == "":
            decrypted[key] = ""
            continue
        if not value.strip():
            continue

        if not looks_encrypted(value):
            decrypted[key] = value
            continue

        try:
            decrypted[key] = decrypt(value)
        except EncryptionError as e:
            logger.warning(f"Failed to decrypt credential {key}, skipping: {e}")

    return decrypted
