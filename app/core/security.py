"""
Хеширование паролей (bcrypt)
"""

import bcrypt

from app.core.config import BCRYPT_ROUNDS

# bcrypt учитывает только первые 72 байта
_BCRYPT_MAX_BYTES = 72


def _encode(password: str) -> bytes:
    return password.encode("utf-8")[:_BCRYPT_MAX_BYTES]


def get_password_hash(password: str) -> str:
    """Hash a password."""
    salt = bcrypt.gensalt(rounds=BCRYPT_ROUNDS)
    return bcrypt.hashpw(_encode(password), salt).decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against a hash."""
    return bcrypt.checkpw(_encode(plain_password), hashed_password.encode("utf-8"))
