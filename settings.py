"""
Runtime settings for platform clients and the stats reconciler.

Values are resolved in this order, later sources winning:
built-in defaults, an optional YAML file, REPOPULSE_* environment variables,
and finally overrides applied at runtime with configure() (e.g. from CLI flags).
"""
import os
from dataclasses import dataclass, fields, replace
from typing import Any, Dict, Optional

import yaml

CONFIG_FILENAME = 'repopulse.yaml'


@dataclass(frozen=True)
class Settings:
    request_timeout_seconds: float = 5.0
    stats_max_attempts: int = 3
    stats_backoff_seconds: float = 1.0
    page_size: int = 100
    max_pages: int = 50
    calendar_concurrency: int = 1
    github_url: str = 'https://api.github.com'
    gitlab_url: str = 'https://gitlab.com/api/v4'
    bitbucket_url: str = 'https://api.bitbucket.org/2.0'


# setting name -> environment variable
ENV_VARS = {
    'request_timeout_seconds': 'REPOPULSE_TIMEOUT',
    'stats_max_attempts': 'REPOPULSE_STATS_MAX_ATTEMPTS',
    'stats_backoff_seconds': 'REPOPULSE_STATS_BACKOFF',
    'page_size': 'REPOPULSE_PAGE_SIZE',
    'max_pages': 'REPOPULSE_MAX_PAGES',
    'calendar_concurrency': 'REPOPULSE_CALENDAR_CONCURRENCY',
    'github_url': 'REPOPULSE_GITHUB_URL',
    'gitlab_url': 'REPOPULSE_GITLAB_URL',
    'bitbucket_url': 'REPOPULSE_BITBUCKET_URL',
}

_FIELD_TYPES = {f.name: type(getattr(Settings(), f.name)) for f in fields(Settings)}

# runtime overrides (set from CLI at startup)
_runtime_overrides: Dict[str, Any] = {}
_runtime_config_path: Optional[str] = None


def _coerce(name: str, value: Any) -> Any:
    kind = _FIELD_TYPES[name]
    if kind is str:
        return str(value).rstrip('/')
    try:
        return kind(value)
    except (TypeError, ValueError):
        raise ValueError(f"Invalid value for setting '{name}': {value!r}")


def load_file(path: Optional[str] = None) -> Dict[str, Any]:
    """Read settings from a YAML mapping. Unknown keys are ignored; a missing default file yields {}."""
    explicit = bool(path)
    if not path:
        path = os.getenv('REPOPULSE_CONFIG') or os.path.join(os.getcwd(), CONFIG_FILENAME)
    if not os.path.exists(path):
        if explicit:
            raise FileNotFoundError(f"Config file not found: {path}")
        return {}
    with open(path, 'r', encoding='utf-8') as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Config file {path} must contain a mapping")
    return {k: _coerce(k, v) for k, v in data.items() if k in _FIELD_TYPES}


def _from_env() -> Dict[str, Any]:
    values = {}
    for name, var in ENV_VARS.items():
        raw = os.getenv(var)
        if raw is not None and raw != '':
            values[name] = _coerce(name, raw)
    return values


def configure(**overrides: Any) -> None:
    """Apply runtime overrides. None values are ignored so CLI flags can be passed through as-is."""
    for name, value in overrides.items():
        if name not in _FIELD_TYPES:
            raise TypeError(f"Unknown setting: {name}")
        if value is not None:
            _runtime_overrides[name] = _coerce(name, value)


def use_file(path: Optional[str]) -> None:
    """Make get_settings() read this YAML file instead of the default location. Fails early if it is missing or invalid."""
    global _runtime_config_path
    if path:
        load_file(path)
    _runtime_config_path = path or None


def reset() -> None:
    global _runtime_config_path
    _runtime_overrides.clear()
    _runtime_config_path = None


def get_settings(path: Optional[str] = None) -> Settings:
    """Resolve the effective settings."""
    merged: Dict[str, Any] = {}
    merged.update(load_file(path or _runtime_config_path))
    merged.update(_from_env())
    merged.update(_runtime_overrides)
    return replace(Settings(), **merged)


__all__ = ["Settings", "configure", "use_file", "reset", "get_settings", "load_file"]
