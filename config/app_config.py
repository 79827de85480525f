"""
Unified Configuration System for the AIOB portal

This module provides a centralized configuration system for the onboarding client: backend
location and timeouts, authentication policy, resilience thresholds, UI defaults and logging.
Values can be overridden through Streamlit secrets or environment variables.
"""

from dataclasses import dataclass, field
from typing import Dict, Any, Optional, List
import streamlit as st
import os
from pathlib import Path

DEFAULT_BACKEND_URL = "http://localhost:5002/api/v1"


@dataclass
class APIConfig:
    """Backend API configuration settings"""
    base_url: str = DEFAULT_BACKEND_URL
    connect_timeout: float = 10.0
    read_timeout: float = 30.0

    @classmethod
    def from_env(cls) -> 'APIConfig':
        """Load API config from environment variables"""
        return cls(
            base_url=os.getenv("BACKEND_BASE_URL", DEFAULT_BACKEND_URL),
            connect_timeout=float(os.getenv("BACKEND_CONNECT_TIMEOUT", "10")),
            read_timeout=float(os.getenv("BACKEND_READ_TIMEOUT", "30"))
        )

    @classmethod
    def from_secrets(cls) -> 'APIConfig':
        """Load API config from Streamlit secrets"""
        # In test environment, prefer environment variables
        if os.getenv("PYTEST_CURRENT_TEST") is not None:
            return cls.from_env()

        try:
            return cls(
                base_url=st.secrets.get("BACKEND_BASE_URL", DEFAULT_BACKEND_URL),
                connect_timeout=float(st.secrets.get("BACKEND_CONNECT_TIMEOUT", 10)),
                read_timeout=float(st.secrets.get("BACKEND_READ_TIMEOUT", 30))
            )
        except Exception:
            # No secrets.toml available
            return cls.from_env()

    @property
    def timeout(self) -> tuple:
        """(connect, read) timeout tuple for requests"""
        return (self.connect_timeout, self.read_timeout)


@dataclass
class AuthConfig:
    """Authentication and onboarding policy"""
    otp_length: int = 6
    otp_resend_seconds: int = 30
    min_mobile_digits: int = 10
    signup_min_password_length: int = 6
    reset_min_password_length: int = 8
    allowed_roles: List[str] = field(default_factory=lambda: ["Client", "Consultant"])
    persist_session: bool = True
    show_dev_otp: bool = False


@dataclass
class ResilienceConfig:
    """Circuit breaker settings for backend calls"""
    failure_threshold: int = 5
    recovery_timeout: int = 30


@dataclass
class UIConfig:
    """User interface configuration"""
    app_title: str = "AIOB"
    tagline: str = "Welcome back! Please login to continue."
    default_role: str = "Client"
    default_login_mode: str = "otp"
    support_email: str = "support@aiob.example"


@dataclass
class LoggingConfig:
    """Logging and monitoring configuration"""
    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    enable_file_logging: bool = True
    log_file: str = "logs/app.log"


@dataclass
class AppConfig:
    """Main application configuration"""
    api: APIConfig = field(default_factory=APIConfig)
    auth: AuthConfig = field(default_factory=AuthConfig)
    resilience: ResilienceConfig = field(default_factory=ResilienceConfig)
    ui: UIConfig = field(default_factory=UIConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    # Environment settings
    environment: str = field(default_factory=lambda: os.getenv("APP_ENV", "development"))
    debug: bool = field(default_factory=lambda: os.getenv("DEBUG", "false").lower() == "true")

    @classmethod
    def load(cls) -> 'AppConfig':
        """Load configuration with environment overrides"""
        config = cls()

        config.api = APIConfig.from_secrets()

        if config.environment == "production":
            config.debug = False
            config.logging.level = "WARNING"
            config.auth.show_dev_otp = False
        elif config.environment == "development":
            config.debug = True
            config.logging.level = "DEBUG"

        return config

    def validate(self) -> List[str]:
        """Validate configuration and return list of errors"""
        errors = []

        if not self.api.base_url:
            errors.append("Backend base URL is required")
        elif not self.api.base_url.startswith(("http://", "https://")):
            errors.append(f"Backend base URL must be http(s): {self.api.base_url}")

        if self.auth.otp_length <= 0:
            errors.append("OTP length must be positive")

        if self.auth.otp_resend_seconds < 0:
            errors.append("OTP resend countdown cannot be negative")

        if not self.auth.allowed_roles:
            errors.append("At least one allowed role is required")
        elif "Admin" in self.auth.allowed_roles:
            errors.append("Admin accounts cannot use the portal client")

        if self.logging.enable_file_logging:
            log_dir = Path(self.logging.log_file).parent
            if not log_dir.exists():
                log_dir.mkdir(parents=True, exist_ok=True)

        return errors

    def to_dict(self) -> Dict[str, Any]:
        """Non-secret summary for diagnostics"""
        return {
            "environment": self.environment,
            "debug": self.debug,
            "base_url": self.api.base_url,
            "allowed_roles": list(self.auth.allowed_roles),
            "otp_resend_seconds": self.auth.otp_resend_seconds,
        }


# Global configuration instance
_config: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """Get the global configuration instance"""
    global _config
    if _config is None:
        _config = AppConfig.load()

        errors = _config.validate()
        if errors:
            import warnings
            for error in errors:
                warnings.warn(f"Configuration error: {error}")

    return _config


def reload_config() -> AppConfig:
    """Reload configuration (useful for testing)"""
    global _config
    _config = None
    return get_config()


def get_backend_url() -> str:
    """Get the backend base URL"""
    return get_config().api.base_url
