"""
Password hashing with bcrypt.

Hashes are stored as UTF-8 strings in ``users.password_hash``; the raw
password never leaves this module.
"""

import bcrypt

BCRYPT_ROUNDS = 12


def hash_password(plain_password: str, rounds: int = BCRYPT_ROUNDS) -> str:
    """Hash a plain-text password with bcrypt."""
    salt = bcrypt.gensalt(rounds=rounds)
    return bcrypt.hashpw(plain_password.encode("utf-8"), salt).decode("utf-8")


def verify_password(plain_password: str, password_hash: str) -> bool:
    """Verify a plain-text password against a bcrypt hash.

    Returns False for empty or non-bcrypt hashes instead of raising.
    """
    if not password_hash or not password_hash.startswith(("$2b$", "$2a$", "$2y$")):
        return False
    return bcrypt.checkpw(
        plain_password.encode("utf-8"),
        password_hash.encode("utf-8"),
    )
