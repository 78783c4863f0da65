"""Tests for matchday.secrets module."""

from unittest.mock import patch

import pytest

from matchday import secrets


def test_get_secret_fallback_to_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """When keyring returns None, fall back to os.environ."""
    monkeypatch.setenv("MAKE_WEBHOOK_URL", "https://hook.example.test/env")
    with patch("matchday.secrets.keyring") as mock_kr:
        mock_kr.get_password.return_value = None
        assert secrets.get_secret("MAKE_WEBHOOK_URL") == "https://hook.example.test/env"


def test_get_secret_prefers_keyring(monkeypatch: pytest.MonkeyPatch) -> None:
    """When keyring has value, it takes precedence over env."""
    monkeypatch.setenv("MAKE_WEBHOOK_URL", "from-env")
    with patch("matchday.secrets.keyring") as mock_kr:
        mock_kr.get_password.return_value = "from-keyring"
        assert secrets.get_secret("MAKE_WEBHOOK_URL") == "from-keyring"
        mock_kr.get_password.assert_called_once_with("matchday", "MAKE_WEBHOOK_URL")


def test_get_secret_keyring_error_falls_back(monkeypatch: pytest.MonkeyPatch) -> None:
    """When keyring raises KeyringError, fall back to env."""
    from keyring.errors import KeyringError

    monkeypatch.setenv("ALERT_WEBHOOK_URL", "from-env")
    with patch("matchday.secrets.keyring.get_password", side_effect=KeyringError("fail")):
        assert secrets.get_secret("ALERT_WEBHOOK_URL") == "from-env"


def test_get_secret_missing_everywhere(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("MATCHDAY_UNSET_SECRET", raising=False)
    with patch("matchday.secrets.keyring") as mock_kr:
        mock_kr.get_password.return_value = None
        assert secrets.get_secret("MATCHDAY_UNSET_SECRET") is None


def test_set_and_delete_use_matchday_service() -> None:
    with patch("matchday.secrets.keyring") as mock_kr:
        secrets.set_secret("MAKE_WEBHOOK_URL", "https://hook.example.test/x")
        mock_kr.set_password.assert_called_once_with(
            "matchday", "MAKE_WEBHOOK_URL", "https://hook.example.test/x"
        )
        assert secrets.delete_secret("MAKE_WEBHOOK_URL") is True
        mock_kr.delete_password.assert_called_once_with("matchday", "MAKE_WEBHOOK_URL")


def test_delete_missing_secret_returns_false() -> None:
    from keyring.errors import PasswordDeleteError

    with patch(
        "matchday.secrets.keyring.delete_password", side_effect=PasswordDeleteError("absent")
    ):
        assert secrets.delete_secret("MAKE_WEBHOOK_URL") is False
