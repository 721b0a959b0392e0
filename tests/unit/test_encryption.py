"""
Unit tests for credential encryption.
"""

import pytest

from repairtix.config.settings import get_settings
from repairtix.errors import EncryptionError
from repairtix.utils.encryption import decrypt, decrypt_credentials, encrypt, encrypt_credentials

pytestmark = pytest.mark.unit


class TestEncryptDecrypt:
    def test_round_trip(self):
        """Test that encrypt then decrypt returns the input."""
        secret = "SG.live-api-key-1234567890"

        encrypted = encrypt(secret)

        assert encrypted != secret
        assert decrypt(encrypted) == secret

    def test_format_is_iv_tag_ciphertext(self):
        """Test that ciphertext has the iv:tag:ciphertext format."""
        iv, tag, ciphertext = encrypt("value").split(":")

        assert len(bytes.fromhex(iv)) == 16
        assert len(bytes.fromhex(tag)) == 16
        assert len(bytes.fromhex(ciphertext)) == len("value")

    def test_random_iv(self):
        """Test that each encryption uses a fresh IV."""
        assert encrypt("same") != encrypt("same")

    def test_empty_values_rejected(self):
        """Test that empty values cannot be encrypted or decrypted."""
        with pytest.raises(EncryptionError):
            encrypt("")
        with pytest.raises(EncryptionError):
            decrypt("")

    def test_malformed_input(self):
        """Test that malformed ciphertext is rejected."""
        with pytest.raises(EncryptionError) as exc_info:
            decrypt("not-encrypted")

        assert "Invalid encrypted data format" in str(exc_info.value)

    def test_tampered_ciphertext(self):
        """Test that tampered ciphertext is rejected."""
        iv, tag, ciphertext = encrypt("secret-value").split(":")
        flipped = f"{int(ciphertext[0], 16) ^ 1:x}" + ciphertext[1:]

        with pytest.raises(EncryptionError) as exc_info:
            decrypt(f"{iv}:{tag}:{flipped}")

        assert "Failed to decrypt" in str(exc_info.value)

    def test_missing_key_is_configuration_error(self, monkeypatch):
        """Test that a missing encryption key is a configuration error."""
        monkeypatch.setattr(get_settings(), "ENCRYPTION_KEY", None)

        with pytest.raises(EncryptionError) as exc_info:
            encrypt("value")

        assert "ENCRYPTION_KEY" in str(exc_info.value)


class TestCredentialDicts:
    def test_encrypt_drops_none_and_keeps_empty(self):
        """Test that None is dropped and empty strings are kept."""
        encrypted = encrypt_credentials({"apiKey": "key-123", "fromEmail": "", "unused": None})

        assert set(encrypted) == {"apiKey", "fromEmail"}
        assert encrypted["fromEmail"] == ""
        assert decrypt(encrypted["apiKey"]) == "key-123"

    def test_decrypt_passes_plaintext_through(self):
        """Test that legacy plaintext values pass through decryption."""
        decrypted = decrypt_credentials({"apiKey": encrypt("key-123"), "legacy": "plain-value", "empty": ""})

        assert decrypted == {"apiKey": "key-123", "legacy": "plain-value", "empty": ""}

    def test_decrypt_skips_undecryptable_values(self):
        """Test that undecryptable values are skipped."""
        decrypted = decrypt_credentials({"good": encrypt("ok"), "bad": "00:11:22"})

        assert decrypted == {"good": "ok"}
