"""Cryptographic utilities for secrets stored at rest.

Provides key derivation plus symmetric encryption and decryption of short
secrets such as upstream provider passwords.
"""

from base64 import urlsafe_b64encode
from typing import Union

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

PBKDF2_ITERATIONS = 390000


class DecryptionError(ValueError):
    """Raised when a stored secret cannot be decrypted with the current key."""


def generate_key(password: Union[str, bytes], salt: Union[str, bytes]) -> bytes:
    """Generate encryption key from password using PBKDF2.

    Args:
        password: Password string or bytes
        salt: Salt for key derivation

    Returns:
        Derived Fernet key (urlsafe base64)
    """
    if isinstance(password, str):
        password = password.encode()

    if isinstance(salt, str):
        salt = salt.encode()

    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=32,
        salt=salt,
        iterations=PBKDF2_ITERATIONS,
    )
    return urlsafe_b64encode(kdf.derive(password))


def encrypt_data(data: Union[str, bytes], key: Union[str, bytes]) -> str:
    """Encrypt data using Fernet symmetric encryption.

    Args:
        data: Data to encrypt (string or bytes)
        key: Fernet key

    Returns:
        Fernet token as text
    """
    if isinstance(data, str):
        data = data.encode()

    if isinstance(key, str):
        key = key.encode()

    return Fernet(key).encrypt(data).decode()


def decrypt_data(token: Union[str, bytes], key: Union[str, bytes]) -> str:
    """Decrypt data using Fernet symmetric encryption.

    Args:
        token: Fernet token produced by encrypt_data
        key: Fernet key

    Returns:
        Decrypted data as string

    Raises:
        DecryptionError: If the token is malformed or was made with another key
    """
    if isinstance(token, str):
        token = token.encode()

    if isinstance(key, str):
        key = key.encode()

    try:
        return Fernet(key).decrypt(token).decode()
    except InvalidToken as e:
        raise DecryptionError("Stored secret could not be decrypted") from e


class SecretBox:
    """Encrypts and decrypts secrets with a key derived once from a passphrase."""

    def __init__(self, passphrase: str, salt: str) -> None:
        self._key = generate_key(passphrase, salt)

    def encrypt(self, plaintext: str) -> str:
        return encrypt_data(plaintext, self._key)

    def decrypt(self, token: str) -> str:
        return decrypt_data(token, self._key)
