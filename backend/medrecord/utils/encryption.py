"""
Encryption utilities for PHI (Protected Health Information).
Uses AES-256-GCM for encryption at rest.
"""
import os
import base64
import hashlib
import hmac
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

NONCE_SIZE = 12  # 96-bit nonce for GCM


class PHIEncryptor:
    """Handles encryption/decryption of PHI data at rest."""

    def __init__(self, key_b64: str = None):
        key_b64 = key_b64 or os.getenv('PHI_ENCRYPTION_KEY')
        if not key_b64:
            raise ValueError("PHI_ENCRYPTION_KEY environment variable not set")
        self._key = base64.b64decode(key_b64)
        if len(self._key) != 32:
            raise ValueError("PHI_ENCRYPTION_KEY must be 32 bytes (256 bits)")
        self._aesgcm = AESGCM(self._key)

    @property
    def key(self) -> bytes:
        return self._key

    def encrypt(self, plaintext: str) -> str:
        """Return base64 of nonce + ciphertext."""
        if not plaintext:
            return plaintext

        nonce = os.urandom(NONCE_SIZE)
        ciphertext = self._aesgcm.encrypt(nonce, plaintext.encode('utf-8'), None)
        return base64.b64encode(nonce + ciphertext).decode('utf-8')

    def decrypt(self, encrypted_b64: str) -> str:
        if not encrypted_b64:
            return encrypted_b64

        encrypted_data = base64.b64decode(encrypted_b64)
        nonce = encrypted_data[:NONCE_SIZE]
        ciphertext = encrypted_data[NONCE_SIZE:]
        return self._aesgcm.decrypt(nonce, ciphertext, None).decode('utf-8')


_encryptor = None


def get_encryptor() -> PHIEncryptor:
    """Get or create the PHI encryptor singleton."""
    global _encryptor
    if _encryptor is None:
        _encryptor = PHIEncryptor()
    return _encryptor


def encrypt_phi(value: str) -> str:
    return get_encryptor().encrypt(value)


def decrypt_phi(value: str) -> str:
    return get_encryptor().decrypt(value)


def hash_email(email: str) -> str:
    """Deterministic HMAC-SHA256 of a normalized email, keyed with the PHI key,
    so accounts can be looked up without decrypting every row."""
    key = get_encryptor().key
    return hmac.new(key, email.strip().lower().encode('utf-8'), hashlib.sha256).hexdigest()
