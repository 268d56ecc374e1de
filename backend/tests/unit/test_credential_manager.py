"""Tests for services.credential_manager."""

import sys
from unittest.mock import MagicMock, patch

from services.credential_manager import (
    CREDENTIAL_KEYS,
    SERVICE_NAME,
    delete_credential,
    get_credential,
    set_credential,
)


# ---------------------------------------------------------------------------
# get_credential
# ---------------------------------------------------------------------------


class TestGetCredential:
    def test_returns_value(self):
        mock_keyring = MagicMock()
        mock_keyring.get_password.return_value = "ab" * 32
        with patch.dict(sys.modules, {"keyring": mock_keyring}):
            result = get_credential("CONFIG_ENCRYPTION_KEY")
        assert result == "ab" * 32
        mock_keyring.get_password.assert_called_once_with(SERVICE_NAME, "CONFIG_ENCRYPTION_KEY")

    def test_returns_none_when_not_found(self):
        mock_keyring = MagicMock()
        mock_keyring.get_password.return_value = None
        with patch.dict(sys.modules, {"keyring": mock_keyring}):
            assert get_credential("CRON_SECRET") is None

    def test_returns_none_when_keyring_not_installed(self):
        with patch.dict(sys.modules, {"keyring": None}):
            assert get_credential("CRON_SECRET") is None

    def test_returns_none_on_keyring_exception(self):
        mock_keyring = MagicMock()
        mock_keyring.get_password.side_effect = Exception("keyring locked")
        with patch.dict(sys.modules, {"keyring": mock_keyring}):
            assert get_credential("CRON_SECRET") is None


# ---------------------------------------------------------------------------
# set_credential
# ---------------------------------------------------------------------------


class TestSetCredential:
    def test_stores_value(self):
        mock_keyring = MagicMock()
        with patch.dict(sys.modules, {"keyring": mock_keyring}):
            result = set_credential("CRON_SECRET", "s3cret")
        assert result is True
        mock_keyring.set_password.assert_called_once_with(SERVICE_NAME, "CRON_SECRET", "s3cret")

    def test_rejects_non_credential_key(self):
        mock_keyring = MagicMock()
        with patch.dict(sys.modules, {"keyring": mock_keyring}):
            result = set_credential("DATABASE_URL", "sqlite://")
        assert result is False
        mock_keyring.set_password.assert_not_called()

    def test_rejects_empty_value(self):
        mock_keyring = MagicMock()
        with patch.dict(sys.modules, {"keyring": mock_keyring}):
            result = set_credential("CRON_SECRET", "   ")
        assert result is False
        mock_keyring.set_password.assert_not_called()

    def test_returns_false_when_keyring_not_installed(self):
        with patch.dict(sys.modules, {"keyring": None}):
            assert set_credential("CRON_SECRET", "s3cret") is False

    def test_returns_false_on_keyring_exception(self):
        mock_keyring = MagicMock()
        mock_keyring.set_password.side_effect = Exception("denied")
        with patch.dict(sys.modules, {"keyring": mock_keyring}):
            assert set_credential("CRON_SECRET", "s3cret") is False


# ---------------------------------------------------------------------------
# delete_credential
# ---------------------------------------------------------------------------


class TestDeleteCredential:
    def test_deletes_value(self):
        mock_keyring = MagicMock()
        with patch.dict(sys.modules, {"keyring": mock_keyring}):
            assert delete_credential("CRON_SECRET") is True
        mock_keyring.delete_password.assert_called_once_with(SERVICE_NAME, "CRON_SECRET")

    def test_rejects_non_credential_key(self):
        mock_keyring = MagicMock()
        with patch.dict(sys.modules, {"keyring": mock_keyring}):
            assert delete_credential("LOG_LEVEL") is False
        mock_keyring.delete_password.assert_not_called()

    def test_returns_false_on_keyring_exception(self):
        mock_keyring = MagicMock()
        mock_keyring.delete_password.side_effect = Exception("not found")
        with patch.dict(sys.modules, {"keyring": mock_keyring}):
            assert delete_credential("CRON_SECRET") is False


# ---------------------------------------------------------------------------
# CREDENTIAL_KEYS
# ---------------------------------------------------------------------------


class TestCredentialKeys:
    def test_contains_expected_keys(self):
        assert CREDENTIAL_KEYS == {"CONFIG_ENCRYPTION_KEY", "CRON_SECRET"}

    def test_excludes_non_secret_keys(self):
        assert "DATABASE_URL" not in CREDENTIAL_KEYS
        assert "SYNC_TIMEZONE" not in CREDENTIAL_KEYS
        assert "LOG_LEVEL" not in CREDENTIAL_KEYS

    def test_is_frozen(self):
        assert isinstance(CREDENTIAL_KEYS, frozenset)
