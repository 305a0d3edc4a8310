"""
Configuration settings for the marketplace ledger
"""
import os
import logging
from typing import Optional
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)

DEFAULT_FEE_PERCENT = 5
DEFAULT_LEDGER_ADDRESS = 'marketplace'
DEFAULT_GATEWAY_TIMEOUT = 30


class ConfigurationError(Exception):
    """Raised when configuration is invalid or incomplete"""
    pass


class Config:
    """Marketplace configuration"""

    def __init__(self):
        self.platform_fee_percent = os.getenv('MARKETPLACE_FEE_PERCENT', str(DEFAULT_FEE_PERCENT))
        self.admin = os.getenv('MARKETPLACE_ADMIN', '')
        self.ledger_address = os.getenv('MARKETPLACE_ADDRESS', DEFAULT_LEDGER_ADDRESS)

        # Settlement gateway (optional, in-memory balances are used without it)
        self.gateway_url = os.getenv('MARKETPLACE_GATEWAY_URL', '').rstrip('/')
        self.gateway_token = os.getenv('MARKETPLACE_GATEWAY_TOKEN', '')
        self.gateway_timeout = os.getenv('MARKETPLACE_GATEWAY_TIMEOUT', str(DEFAULT_GATEWAY_TIMEOUT))

    @property
    def fee_percent(self) -> int:
        try:
            return int(self.platform_fee_percent)
        except ValueError:
            raise ConfigurationError(
                f"MARKETPLACE_FEE_PERCENT must be an integer, got {self.platform_fee_percent!r}"
            )

    @property
    def timeout(self) -> float:
        try:
            return float(self.gateway_timeout)
        except ValueError:
            raise ConfigurationError(
                f"MARKETPLACE_GATEWAY_TIMEOUT must be a number, got {self.gateway_timeout!r}"
            )

    def validate(self):
        """Validate required configuration"""
        if not self.admin:
            raise ConfigurationError("MARKETPLACE_ADMIN not set")
        if self.fee_percent < 0:
            raise ConfigurationError("MARKETPLACE_FEE_PERCENT must not be negative")
        if self.fee_percent > 100:
            logger.warning(f"Platform fee of {self.fee_percent}% exceeds the sale price")
        if not self.ledger_address:
            raise ConfigurationError("MARKETPLACE_ADDRESS must not be empty")
        if self.gateway_url and not self.gateway_token:
            raise ConfigurationError("MARKETPLACE_GATEWAY_TOKEN not set")
        if self.timeout <= 0:
            raise ConfigurationError("MARKETPLACE_GATEWAY_TIMEOUT must be positive")


# Global configuration instance
_config: Optional[Config] = None


def get_config() -> Config:
    """Get the global configuration instance"""
    global _config
    if _config is None:
        _config = Config()
    return _config
