"""Tests for matchday.settings: defaults, YAML overlay, dot-path access."""

from pathlib import Path

import pytest

from matchday.settings import (
    get_default_settings,
    get_setting,
    load_settings,
    reload_settings,
)


@pytest.fixture(autouse=True)
def _clear_settings_cache() -> None:
    """Ensure clean settings cache for each test."""
    reload_settings()
    yield
    reload_settings()


def test_defaults_without_file(tmp_path: Path) -> None:
    settings = load_settings(tmp_path)
    assert get_setting(settings, "webhook.retry_attempts") == 3
    assert get_setting(settings, "webhook.retry_delay") == 2.0
    assert get_setting(settings, "webhook.rate_limit_interval") == 1.0
    assert get_setting(settings, "webhook.timeout") == 30.0
    assert get_setting(settings, "webhook.alert_on_exhaustion") is True
    assert get_setting(settings, "idempotency.namespace") == "MAKE_IDEMPOTENCY_KEYS"
    assert get_setting(settings, "idempotency.durable_ttl") == 86400
    assert get_setting(settings, "idempotency.live_window") == 300
    assert get_setting(settings, "batches.lookahead_days") == 10


def test_yaml_overlay_is_deep_merged(tmp_path: Path) -> None:
    (tmp_path / "settings.yaml").write_text(
        "webhook:\n  retry_attempts: 5\n  url_secret: null\nclub:\n  name: Test FC\n",
        encoding="utf-8",
    )
    settings = load_settings(tmp_path)
    assert get_setting(settings, "webhook.retry_attempts") == 5
    # null values in the file keep the default
    assert get_setting(settings, "webhook.url_secret") == "MAKE_WEBHOOK_URL"
    assert get_setting(settings, "webhook.retry_delay") == 2.0
    assert get_setting(settings, "club.name") == "Test FC"
    assert get_setting(settings, "club.system_version") == "6.2.0"


def test_invalid_yaml_falls_back_to_defaults(tmp_path: Path) -> None:
    (tmp_path / "settings.yaml").write_text("webhook: [unclosed", encoding="utf-8")
    settings = load_settings(tmp_path)
    assert get_setting(settings, "webhook.retry_attempts") == 3


def test_settings_are_cached_until_reload(tmp_path: Path) -> None:
    first = load_settings(tmp_path)
    assert load_settings(tmp_path) is first
    reload_settings()
    assert load_settings(tmp_path) is not first


def test_get_setting_missing_path_returns_default() -> None:
    settings = get_default_settings()
    assert get_setting(settings, "webhook.nope", "fallback") == "fallback"
    assert get_setting(settings, "club.name.deeper", 1) == 1


def test_default_settings_are_independent_copies() -> None:
    a = get_default_settings()
    a["webhook"]["retry_attempts"] = 99
    assert get_default_settings()["webhook"]["retry_attempts"] == 3
