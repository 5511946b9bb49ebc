"""
Authenticated encryption of token payloads.

Token maps are serialized to JSON and sealed with AES-256-GCM. Every call to
encrypt draws a fresh 96-bit nonce, so callers never supply one.
"""

import secrets
from typing import Any, Dict, Optional, Tuple

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from ..config import AppConfig, get_config
from ..constants import EnvironmentVariable, Limits
from ..exceptions import ConfigError, DecryptionError
from .json_utils import dumps, loads


class TokenCipher:
    """Encrypts and decrypts token maps with a single 256-bit key."""

    def __init__(self, key: bytes):
        if not isinstance(key, (bytes, bytearray)) or len(key) != Limits.ENCRYPTION_KEY_BYTES:
            raise ConfigError(
                f"Encryption key must be exactly {Limits.ENCRYPTION_KEY_BYTES} bytes",
                setting=EnvironmentVariable.CREDENTIAL_ENCRYPTION_KEY.value,
            )
        self._aead = AESGCM(bytes(key))

    @classmethod
    def from_hex(cls, hex_key: Optional[str]) -> "TokenCipher":
        """
        Build a cipher from a 64-character hex key.

        Raises:
            ConfigError: If the key is absent, the wrong length, or not hex
        """
        setting = EnvironmentVariable.CREDENTIAL_ENCRYPTION_KEY.value
        if not hex_key:
            raise ConfigError(f"{setting} is not configured", setting=setting)

        hex_key = hex_key.strip()
        if len(hex_key) != Limits.ENCRYPTION_KEY_BYTES * 2:
            raise ConfigError(
                f"{setting} must be {Limits.ENCRYPTION_KEY_BYTES * 2} hex characters",
                setting=setting,
                length=len(hex_key),
            )
        try:
            key = bytes.fromhex(hex_key)
        except ValueError as e:
            raise ConfigError(f"{setting} is not valid hex", setting=setting, cause=e) from e
        return cls(key)

    @classmethod
    def from_config(cls, config: Optional[AppConfig] = None) -> "TokenCipher":
        config = config or get_config()
        return cls.from_hex(config.security.encryption_key)

    def encrypt(self, plain_tokens: Dict[str, Any]) -> Tuple[bytes, bytes]:
        """
        Seal a token map.

        Args:
            plain_tokens: JSON-serializable token map

        Returns:
            Tuple of (ciphertext with tag, nonce)
        """
        nonce = secrets.token_bytes(Limits.NONCE_BYTES)
        plaintext = dumps(plain_tokens).encode("utf-8")
        ciphertext = self._aead.encrypt(nonce, plaintext, None)
        return ciphertext, nonce

    def decrypt(self, ciphertext: bytes, nonce: bytes) -> Dict[str, Any]:
        """
        Open a sealed token map.

        Raises:
            DecryptionError: On tag mismatch, wrong key or nonce, or malformed input
        """
        if not ciphertext or not nonce or len(nonce) != Limits.NONCE_BYTES:
            raise DecryptionError(
                "Malformed ciphertext or nonce",
                nonce_length=len(nonce) if nonce else 0,
            )

        try:
            plaintext = self._aead.decrypt(bytes(nonce), bytes(ciphertext), None)
        except InvalidTag as e:
            raise DecryptionError("Token ciphertext failed authentication", cause=e) from e

        try:
            tokens = loads(plaintext.decode("utf-8"))
        except ValueError as e:
            raise DecryptionError("Decrypted tokens are not valid JSON", cause=e) from e

        if not isinstance(tokens, dict):
            raise DecryptionError("Decrypted tokens are not a JSON object")
        return tokens
