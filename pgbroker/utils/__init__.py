"""
Utility functions and helpers
"""
from .crypto import (
    ALPHABET, CredentialGenerationError, RandomNameSource, SecureNameSource, random_string
)

__all__ = [
    "ALPHABET",
    "CredentialGenerationError",
    "RandomNameSource",
    "SecureNameSource",
    "random_string"
]
