"""
Fernet decryption of stored GitHub access tokens.

The identity collaborator stores each user's OAuth token encrypted. The
secret is never read from ambient state: a TokenCipher is built from the
Settings resolved at start-up and handed to whoever needs it.

The configured secret may be a ready Fernet key or any passphrase; a
passphrase is stretched with PBKDF2 (SHA-256, 100,000 iterations).
"""
import base64
import binascii
from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

_KDF_SALT = b"templatehub:github-token"


def _derive_key(secret: str) -> bytes:
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=32,
        salt=_KDF_SALT,
        iterations=100_000,
    )
    return base64.urlsafe_b64encode(kdf.derive(secret.encode()))


def _is_fernet_key(secret: str) -> bool:
    try:
        return len(base64.urlsafe_b64decode(secret.encode())) == 32
    except (binascii.Error, ValueError):
        return False


class TokenCipher:
    def __init__(self, secret: str):
        if not secret:
            raise ValueError(
                "TOKEN_ENCRYPTION_KEY is not configured. Generate one with: "
                "python -c \"from cryptography.fernet import Fernet; print(Fernet.generate_key().decode())\""
            )
        key = secret.encode() if _is_fernet_key(secret) else _derive_key(secret)
        self._fernet = Fernet(key)

    def encrypt(self, plaintext: str) -> str:
        if not plaintext:
            return ""
        return self._fernet.encrypt(plaintext.encode()).decode()

    def decrypt(self, ciphertext: str) -> str:
        """
        Decrypt a stored token handle.

        Raises:
            ValueError: If the handle is empty, or was encrypted with another key
        """
        if not ciphertext:
            raise ValueError("No access token stored for this user")
        try:
            return self._fernet.decrypt(ciphertext.encode()).decode()
        except InvalidToken:
            raise ValueError("Access token decryption failed - invalid key or corrupted data")
