import secrets
from cryptography.fernet import Fernet, InvalidToken
from typing import Optional
import os
import base64
import hashlib
from .logger import get_logger

logger = get_logger(__name__)

def _b64url(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode('utf-8').rstrip('=')

def generate_code_verifier() -> str:
    """Generate a PKCE code verifier from 32 random bytes."""
    return _b64url(os.urandom(32))

def generate_code_challenge(code_verifier: str) -> str:
    """Derive the S256 PKCE challenge for a verifier."""
    return _b64url(hashlib.sha256(code_verifier.encode('utf-8')).digest())

def generate_oauth_state() -> str:
    """Generate an opaque OAuth state value."""
    return secrets.token_hex(16)

class TokenCipher:
    """Encrypts token values at rest with Fernet."""

    def __init__(self, key: str):
        try:
            key_bytes = base64.urlsafe_b64decode(key)
            if len(key_bytes) != 32:
                raise ValueError(f"Invalid key length: {len(key_bytes)} bytes. Expected 32 bytes.")
            self.cipher_suite = Fernet(key.encode())
        except Exception as e:
            logger.error(f"Invalid encryption key format: {str(e)}")
            raise ValueError("Encryption key must be 32 url-safe base64-encoded bytes") from e

    def encrypt(self, data: Optional[str]) -> Optional[str]:
        """Encrypt string data."""
        if data is None:
            return None
        return self.cipher_suite.encrypt(data.encode()).decode()

    def decrypt(self, encrypted_data: Optional[str]) -> Optional[str]:
        """Decrypt a value; values that are not Fernet tokens are returned as-is."""
        if encrypted_data is None:
            return None
        try:
            return self.cipher_suite.decrypt(encrypted_data.encode()).decode()
        except InvalidToken:
            # Documents written before encryption was enabled hold plaintext
            logger.debug("Stored token is not encrypted, using it as plaintext")
            return encrypted_data
