from __future__ import annotations

from argon2 import PasswordHasher
from argon2.exceptions import HashingError, InvalidHashError, VerificationError

_hasher = PasswordHasher()


def hash_password(plain: str) -> str:
    if not plain:
        raise ValueError("password is required")
    try:
        return _hasher.hash(plain)
    except HashingError as exc:
        raise ValueError("failed to hash password") from exc


def verify_password(plain: str, hashed: str | None) -> bool:
    """False for a wrong password, an empty input, or a stored value that is not an argon2 hash."""
    if not plain or not hashed:
        return False
    try:
        return _hasher.verify(hashed, plain)
    except (VerificationError, InvalidHashError):
        return False


def needs_rehash(hashed: str) -> bool:
    # Hashes made under older argon2 parameters get upgraded at the next login.
    try:
        return _hasher.check_needs_rehash(hashed)
    except InvalidHashError:
        return True
