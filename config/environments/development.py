"""
Development environment configuration overrides
"""

from dataclasses import dataclass
from config.app_config import AppConfig


@dataclass
class DevelopmentConfig(AppConfig):
    """Development environment configuration"""

    def __post_init__(self):

        self.environment = "development"
        self.debug = True

        # More verbose logging in development
        self.logging.level = "DEBUG"
        self.logging.enable_file_logging = True
        self.logging.log_file = "logs/dev-app.log"

        self.ui.app_title = "AIOB (DEV)"

        # Local backends echo the OTP in the send-otp response
        self.auth.show_dev_otp = True

        # Fail fast less eagerly while the backend is restarted often
        self.resilience.failure_threshold = 10
        self.resilience.recovery_timeout = 10


def get_development_config() -> DevelopmentConfig:
    """Get development-specific configuration"""
    return DevelopmentConfig()
