"""Security module for encrypting secrets at rest."""

from .crypto import DecryptionError, SecretBox, decrypt_data, encrypt_data, generate_key

__all__ = [
    "SecretBox",
    "DecryptionError",
    "encrypt_data",
    "decrypt_data",
    "generate_key",
]
