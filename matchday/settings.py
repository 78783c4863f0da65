"""Load application settings from config/settings.yaml."""

from pathlib import Path
from typing import Any

import yaml

_DEFAULTS: dict[str, Any] = {
    "club": {
        "name": "Syston Tigers",
        "season": "2024/25",
        "system_version": "6.2.0",
    },
    "webhook": {
        # Secret name, resolved via keyring then environment
        "url_secret": "MAKE_WEBHOOK_URL",
        "timeout": 30.0,
        "retry_attempts": 3,
        "retry_delay": 2.0,
        "rate_limit_interval": 1.0,
        "alert_on_exhaustion": True,
        # Log payloads instead of sending them
        "simulation_mode": False,
    },
    "idempotency": {
        "path": "data/idempotency.json",
        "namespace": "MAKE_IDEMPOTENCY_KEYS",
        "cache_ttl": 21600,
        "durable_ttl": 86400,
        # Live match events: repeats are suppressed only within this window
        "live_namespace": "MAKE_LIVE_EVENT_KEYS",
        "live_window": 300,
    },
    "batches": {
        # Default window when --from/--to are omitted
        "lookahead_days": 10,
        "lookback_days": 7,
    },
    "event_bus": {
        "retry_base_delay": 1.0,
    },
    "rows": {
        "db_path": "data/matches.db",
    },
    "alerts": {
        "webhook_url_secret": "ALERT_WEBHOOK_URL",
    },
    "logging": {
        "file": "data/logs/matchday.log",
        "level": "INFO",
        "log_to_console": False,
        "max_bytes": 10485760,  # 10 MB
        "backup_count": 3,
    },
}

_cached: dict[str, Any] | None = None


def _deep_merge(base: dict[str, Any], overlay: dict[str, Any]) -> dict[str, Any]:
    """Merge overlay into base recursively. Mutates base."""
    for key, value in overlay.items():
        if value is None:
            continue
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
    return base


def get_default_settings() -> dict[str, Any]:
    """Return a deep copy of default settings."""
    return _deep_copy_nested(_DEFAULTS)


def get_setting(settings: dict[str, Any], path: str, default: Any = None) -> Any:
    """Get a nested value by dot path (e.g. 'webhook.retry_attempts')."""
    current: Any = settings
    for part in path.split("."):
        if not isinstance(current, dict) or part not in current:
            return default
        current = current[part]
    return current


def reload_settings() -> None:
    """Clear the settings cache. Call after config files change."""
    global _cached
    _cached = None


def load_settings(config_dir: Path | None = None) -> dict[str, Any]:
    """Load settings from config/settings.yaml. Returns merged defaults + file values."""
    global _cached
    if _cached is not None:
        return _cached

    if config_dir is None:
        config_dir = Path(__file__).resolve().parent.parent / "config"
    path = config_dir / "settings.yaml"

    result = get_default_settings()

    if path.exists():
        try:
            data = yaml.safe_load(path.read_text(encoding="utf-8"))
            if isinstance(data, dict):
                _deep_merge(result, data)
        except (yaml.YAMLError, OSError):
            pass

    _cached = result
    return result


def _deep_copy_nested(obj: Any) -> Any:
    """Return a deep copy of nested dicts/lists for defaults."""
    if isinstance(obj, dict):
        return {k: _deep_copy_nested(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_deep_copy_nested(x) for x in obj]
    return obj
