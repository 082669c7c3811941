"""Helper utilities for hashing passwords and encrypting user contact details."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

import bcrypt
from cryptography.fernet import Fernet

BCRYPT_ROUNDS = 12
SENSITIVE_KEY_ENV = "SENSITIVE_DATA_KEY"
SENSITIVE_KEY_FILE = Path(__file__).with_name("sensitive_key.txt")

_sensitive_cipher: Optional[Fernet] = None


def hash_password(password: str) -> str:
    """Hash the provided password using bcrypt with a per-password salt."""

    if not isinstance(password, str):
        raise TypeError("Password must be a string.")
    salt = bcrypt.gensalt(rounds=BCRYPT_ROUNDS)
    hashed = bcrypt.hashpw(password.encode("utf-8"), salt)
    return hashed.decode("utf-8")


def verify_password(password: str, stored_hash: str) -> bool:
    """Check a plaintext password against its bcrypt hash."""

    return bcrypt.checkpw(password.encode("utf-8"), stored_hash.encode("utf-8"))


def _load_sensitive_key() -> bytes:
    """Read the Fernet key from the environment or the key file, creating the file on first use."""

    env_key = os.getenv(SENSITIVE_KEY_ENV)
    if env_key:
        return env_key.strip().encode("utf-8")
    if SENSITIVE_KEY_FILE.exists():
        return SENSITIVE_KEY_FILE.read_bytes().strip()
    key_bytes = Fernet.generate_key()
    SENSITIVE_KEY_FILE.write_bytes(key_bytes)
    return key_bytes


def _get_sensitive_cipher() -> Fernet:
    global _sensitive_cipher
    if _sensitive_cipher is None:
        _sensitive_cipher = Fernet(_load_sensitive_key())
    return _sensitive_cipher


def encrypt_sensitive_value(value: Optional[str]) -> str:
    """Encrypt contact details before they are written to the users table."""

    cipher = _get_sensitive_cipher()
    return cipher.encrypt((value or "").encode("utf-8")).decode("utf-8")


def decrypt_sensitive_value(value: str) -> str:
    """Decrypt a value produced by :func:`encrypt_sensitive_value`."""

    cipher = _get_sensitive_cipher()
    return cipher.decrypt(value.encode("utf-8")).decode("utf-8")
