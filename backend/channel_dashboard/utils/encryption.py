"""AES-256-GCM encryption for stored OAuth credentials."""
import base64
import os
from functools import lru_cache

from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from channel_dashboard.config import settings


class TokenEncryptor:
    def __init__(self, key_hex: str):
        self.aesgcm = AESGCM(bytes.fromhex(key_hex))

    def encrypt(self, plaintext: str) -> str:
        nonce = os.urandom(12)
        ciphertext = self.aesgcm.encrypt(nonce, plaintext.encode(), None)
        return base64.b64encode(nonce + ciphertext).decode()

    def decrypt(self, token: str) -> str:
        data = base64.b64decode(token)
        nonce, ciphertext = data[:12], data[12:]
        return self.aesgcm.decrypt(nonce, ciphertext, None).decode()


@lru_cache
def get_token_encryptor(key_hex: str | None = None) -> TokenEncryptor | None:
    """Encryptor for ENCRYPTION_KEY, or None when no key is configured."""
    key_hex = settings.ENCRYPTION_KEY if key_hex is None else key_hex
    return TokenEncryptor(key_hex) if key_hex else None


def seal(plaintext: str, encryptor: TokenEncryptor | None) -> str:
    """Encrypt a credential for storage; stored as-is without an encryptor."""
    if not plaintext or encryptor is None:
        return plaintext
    return encryptor.encrypt(plaintext)


def unseal(stored: str, encryptor: TokenEncryptor | None) -> str:
    if not stored or encryptor is None:
        return stored
    return encryptor.decrypt(stored)
