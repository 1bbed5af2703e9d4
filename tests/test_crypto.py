"""
Tests for credential generation
"""
import re
import pytest
from unittest.mock import patch

from pgbroker.utils.crypto import (
    ALPHABET, CredentialGenerationError, SecureNameSource, random_string
)


class TestRandomString:
    """Test the random string generator"""

    def test_length_and_alphabet(self):
        value = random_string(64)

        assert len(value) == 64
        assert set(value) <= set(ALPHABET)

    def test_alphabet_is_ddl_safe(self):
        """Test the alphabet has no SQL metacharacters or uppercase"""
        assert re.fullmatch(r"[0-9a-z]+", ALPHABET)

    def test_values_differ(self):
        assert random_string(40) != random_string(40)

    def test_zero_length_rejected(self):
        with pytest.raises(CredentialGenerationError):
            random_string(0)

    def test_random_source_failure_is_an_error(self):
        """Test a failing OS random source never yields an empty credential"""
        with patch("pgbroker.utils.crypto.secrets.choice", side_effect=OSError("no entropy")):
            with pytest.raises(CredentialGenerationError, match="no entropy"):
                random_string(16)


class TestSecureNameSource:
    """Test generated name formats"""

    def test_database_name(self):
        assert re.fullmatch(r"db[0-9a-z]{40}", SecureNameSource().database_name())

    def test_username(self):
        assert re.fullmatch(r"u[0-9a-z]{16}", SecureNameSource().username())

    def test_password(self):
        assert re.fullmatch(r"[0-9a-z]{64}", SecureNameSource().password())

    def test_names_fit_columns(self):
        """Test generated values fit the control table column widths"""
        from pgbroker.models.broker import DB_NAME_LENGTH, USERNAME_LENGTH, PASSWORD_LENGTH

        names = SecureNameSource()
        assert len(names.database_name()) == DB_NAME_LENGTH
        assert len(names.username()) == USERNAME_LENGTH
        assert len(names.password()) == PASSWORD_LENGTH
