"""
Cryptographic utilities for generating database identifiers and credentials
"""
import secrets
from typing import Protocol

# Lowercase alphanumerics only: every generated value is safe to embed in DDL
ALPHABET = "0123456789abcdefghijklmnopqrstuvwxyz"

DATABASE_PREFIX = "db"
DATABASE_RANDOM_LENGTH = 40
USERNAME_PREFIX = "u"
USERNAME_RANDOM_LENGTH = 16
PASSWORD_LENGTH = 64


class CredentialGenerationError(Exception):
    """Raised when the secure random source cannot produce a value"""


def random_string(length: int) -> str:
    """
    Generate a random string from the fixed alphabet

    Args:
        length: Number of characters

    Returns:
        str: `length` characters drawn uniformly from ALPHABET

    Raises:
        CredentialGenerationError: if the OS random source fails
    """
    if length <= 0:
        raise CredentialGenerationError(f"cannot generate a {length}-character value")

    try:
        value = "".join(secrets.choice(ALPHABET) for _ in range(length))
    except (OSError, NotImplementedError) as e:
        raise CredentialGenerationError(f"secure random source failed: {e}") from e

    if len(value) != length:
        raise CredentialGenerationError("secure random source returned a short value")
    return value


class RandomNameSource(Protocol):
    """Source of generated names for databases, roles and passwords"""

    def database_name(self) -> str: ...

    def username(self) -> str: ...

    def password(self) -> str: ...


class SecureNameSource:
    """Production name source backed by the `secrets` module"""

    def database_name(self) -> str:
        return DATABASE_PREFIX + random_string(DATABASE_RANDOM_LENGTH)

    def username(self) -> str:
        return USERNAME_PREFIX + random_string(USERNAME_RANDOM_LENGTH)

    def password(self) -> str:
        return random_string(PASSWORD_LENGTH)
