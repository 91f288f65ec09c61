"""Configuration data classes."""

from dataclasses import dataclass, field, fields


@dataclass(frozen=True)
class SecurityPolicyConfig:
    """Security policy snapshot handed to every credential operation."""
    pbkdf2_iterations: int = 100000
    password_history_count: int = 5
    max_login_attempts: int = 5
    lockout_duration_minutes: int = 15
    password_min_length: int = 12
    password_max_length: int = 128
    password_require_uppercase: bool = True
    password_require_lowercase: bool = True
    password_require_numbers: bool = True
    password_require_special: bool = True
    password_expiry_days: int = 90
    session_timeout_minutes: int = 30
    reject_weak_patterns: bool = True

    @classmethod
    def option_names(cls):
        """Names of all recognized security options, in declaration order."""
        return [f.name for f in fields(cls)]


@dataclass
class ServerConfig:
    """HTTP server settings."""
    host: str = "0.0.0.0"
    port: int = 8080
    base_url: str = "/"
    db_path: str = "./credwarden.db"
    secure_cookies: bool = False
    login_delay_max_seconds: int = 16
    reauth_max_age_minutes: int = 15


@dataclass
class LoggingConfig:
    """Logging settings."""
    level: str = "INFO"
    path: str = "./logs"


@dataclass
class Config:
    """Top-level configuration."""
    security: SecurityPolicyConfig = field(default_factory=SecurityPolicyConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
