"""
Production environment configuration overrides
"""

from dataclasses import dataclass
from config.app_config import AppConfig, APIConfig


@dataclass
class ProductionConfig(AppConfig):
    """Production environment configuration"""

    def __post_init__(self):

        self.environment = "production"
        self.debug = False

        # Production logging - less verbose, focus on errors
        self.logging.level = "INFO"
        self.logging.enable_file_logging = True
        self.logging.log_file = "logs/prod-app.log"

        self.ui.app_title = "AIOB"
        self.api = APIConfig.from_secrets()

        # Never echo one-time codes outside development
        self.auth.show_dev_otp = False

        self.resilience.failure_threshold = 5
        self.resilience.recovery_timeout = 60


def get_production_config() -> ProductionConfig:
    """Get production-specific configuration"""
    return ProductionConfig()
