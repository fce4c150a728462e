"""Password hashing (passlib pbkdf2_sha256)."""

import secrets
import string

from passlib.hash import pbkdf2_sha256

_TEMP_ALPHABET = string.ascii_letters + string.digits


def hash_password(password: str) -> str:
    return pbkdf2_sha256.hash(password)


def verify_password(password: str, hashed: str) -> bool:
    try:
        return pbkdf2_sha256.verify(password, hashed)
    except ValueError:
        # Malformed hash in the DB
        return False


def generate_temp_password(length: int = 12) -> str:
    """Random password handed to a user after an admin reset."""
    return "".join(secrets.choice(_TEMP_ALPHABET) for _ in range(length))
