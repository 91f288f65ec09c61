"""YAML configuration loader with env var interpolation."""

import os
import re
from dataclasses import asdict
from pathlib import Path
from typing import Optional

import yaml

from credwarden.config_schema import (
    Config, LoggingConfig, SecurityPolicyConfig, ServerConfig
)
from credwarden.exceptions import ConfigError

# Allowed ranges for integer security options (inclusive).
SECURITY_BOUNDS = {
    "pbkdf2_iterations": (10000, 1000000),
    "password_history_count": (0, 50),
    "max_login_attempts": (1, 20),
    "lockout_duration_minutes": (1, 1440),
    "password_min_length": (8, 128),
    "password_max_length": (8, 1024),
    "password_expiry_days": (0, 365),
    "session_timeout_minutes": (5, 1440),
}

CHARACTER_CLASS_OPTIONS = (
    "password_require_uppercase",
    "password_require_lowercase",
    "password_require_numbers",
    "password_require_special",
)

_BOOL_OPTIONS = CHARACTER_CLASS_OPTIONS + ("reject_weak_patterns",)


def load_config(cli_path: "Optional[str]" = None) -> Config:
    """Load configuration from YAML file.

    Search order:
    1. CLI-specified path
    2. ./credwarden.yaml
    3. ~/.config/credwarden/config.yaml
    4. /etc/credwarden/config.yaml

    Built-in defaults are used when no file is found.
    """
    search_paths = [
        Path("./credwarden.yaml"),
        Path.home() / ".config" / "credwarden" / "config.yaml",
        Path("/etc/credwarden/config.yaml"),
    ]

    if cli_path:
        config_path = Path(cli_path)
        if not config_path.exists():
            raise ConfigError(f"Config file not found: {cli_path}")
        return _parse_config(config_path)

    for path in search_paths:
        if path.exists():
            return _parse_config(path)

    return Config()


def _parse_config(path: Path) -> Config:
    """Parse YAML config file."""
    try:
        with open(path) as f:
            raw = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}")

    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ConfigError(f"Config must be a YAML mapping, got {type(raw).__name__}")

    return Config(
        security=parse_security(raw.get("security") or {}),
        server=_parse_server(raw.get("server") or {}),
        logging=_parse_logging(raw.get("logging") or {}),
    )


def parse_security(raw: dict, base: Optional[SecurityPolicyConfig] = None) -> SecurityPolicyConfig:
    """Build a validated SecurityPolicyConfig from a mapping.

    Keys missing from raw keep their value from base (or the defaults).
    """
    if not isinstance(raw, dict):
        raise ConfigError("security section must be a mapping")

    known = SecurityPolicyConfig.option_names()
    unknown = sorted(set(raw) - set(known))
    if unknown:
        raise ConfigError(f"Unknown security option(s): {', '.join(unknown)}")

    values = asdict(base or SecurityPolicyConfig())
    for name, value in raw.items():
        value = _interpolate(value)
        if name in _BOOL_OPTIONS:
            values[name] = _to_bool(name, value)
        else:
            values[name] = _to_int(name, value)

    policy = SecurityPolicyConfig(**values)
    validate_security(policy)
    return policy


def validate_security(policy: SecurityPolicyConfig) -> None:
    """Check a policy against the allowed ranges.

    Raises:
        ConfigError: Listing every out-of-range option.
    """
    errors = []
    for name, (low, high) in SECURITY_BOUNDS.items():
        value = getattr(policy, name)
        if not low <= value <= high:
            errors.append(f"{name} must be between {low} and {high}, got {value}")

    if policy.password_max_length < policy.password_min_length:
        errors.append("password_max_length must not be below password_min_length")

    if not any(getattr(policy, name) for name in CHARACTER_CLASS_OPTIONS):
        errors.append("At least one password character class requirement must be enabled")

    if errors:
        raise ConfigError("; ".join(errors))


def _parse_server(raw: dict) -> ServerConfig:
    """Parse server section."""
    defaults = ServerConfig()
    login_delay = _to_int(
        "server.login_delay_max_seconds",
        _interpolate(raw.get("login_delay_max_seconds", defaults.login_delay_max_seconds)),
    )
    reauth_age = _to_int(
        "server.reauth_max_age_minutes",
        _interpolate(raw.get("reauth_max_age_minutes", defaults.reauth_max_age_minutes)),
    )
    if login_delay < 0:
        raise ConfigError("server.login_delay_max_seconds must not be negative")
    if reauth_age < 1:
        raise ConfigError("server.reauth_max_age_minutes must be at least 1")

    return ServerConfig(
        host=_interpolate(raw.get("host", defaults.host)),
        port=_to_int("server.port", _interpolate(raw.get("port", defaults.port))),
        base_url=_interpolate(raw.get("base_url", defaults.base_url)),
        db_path=_interpolate(raw.get("db_path", defaults.db_path)),
        secure_cookies=_to_bool(
            "server.secure_cookies",
            _interpolate(raw.get("secure_cookies", defaults.secure_cookies)),
        ),
        login_delay_max_seconds=login_delay,
        reauth_max_age_minutes=reauth_age,
    )


def _parse_logging(raw: dict) -> LoggingConfig:
    """Parse logging section."""
    defaults = LoggingConfig()
    return LoggingConfig(
        level=_interpolate(raw.get("level", defaults.level)),
        path=_interpolate(raw.get("path", defaults.path)),
    )


def _to_int(name: str, value) -> int:
    if isinstance(value, bool):
        raise ConfigError(f"{name} must be an integer, got {value!r}")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ConfigError(f"{name} must be an integer, got {value!r}")


def _to_bool(name: str, value) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "yes", "1", "on"):
        return True
    if isinstance(value, str) and value.strip().lower() in ("false", "no", "0", "off"):
        return False
    raise ConfigError(f"{name} must be a boolean, got {value!r}")


def _interpolate(value):
    """Expand ${VAR} references in a string value."""
    if value is None:
        return None
    if not isinstance(value, str):
        return value

    pattern = re.compile(r'\$\{([^}]+)\}')

    def replacer(match):
        var_name = match.group(1)
        env_value = os.environ.get(var_name)
        if env_value is None:
            raise ConfigError(f"Environment variable not set: {var_name}")
        return env_value

    return pattern.sub(replacer, value)
