"""
Configuration management for the voice curfew bot
Centralized configuration with environment variable loading
"""

import os
import logging
from typing import Dict, Any

logger = logging.getLogger(__name__)

class Config:
    """Centralized configuration management"""

    def __init__(self):
        # Load environment variables
        self._load_environment()

    def _load_environment(self):
        """Load all environment variables"""

        # Discord Configuration
        self.discord_token = os.getenv('DISCORD_TOKEN') or os.getenv('BOT_TOKEN')

        # Server Configuration
        self.port = int(os.getenv('PORT', '3000'))
        self.host = os.getenv('HOST', '0.0.0.0')
        self.environment = os.getenv('ENVIRONMENT', 'development')

        # Curfew Settings
        self.default_timezone = os.getenv('DEFAULT_TIMEZONE', '+0530')
        self.sweep_interval = int(os.getenv('SWEEP_INTERVAL_SECONDS', '60'))

        # Logging
        self.log_level = os.getenv('LOG_LEVEL', 'INFO').upper()

    def validate(self):
        """Validate critical configuration values"""

        required_vars = {
            'DISCORD_TOKEN': self.discord_token,
        }

        missing = []
        for var_name, value in required_vars.items():
            if not value:
                missing.append(var_name)

        if missing:
            error_msg = f"Missing required environment variables: {', '.join(missing)}"
            logger.error(error_msg)
            raise ValueError(error_msg)

        if self.sweep_interval <= 0:
            raise ValueError("SWEEP_INTERVAL_SECONDS must be positive")

        logger.info("✅ Configuration validation passed")

    def get_bot_config(self) -> Dict[str, Any]:
        """Get bot configuration"""
        return {
            'token': self.discord_token,
            'default_timezone': self.default_timezone,
            'sweep_interval': self.sweep_interval,
        }

    def get_flask_config(self) -> Dict[str, Any]:
        """Get Flask configuration"""
        return {
            'host': self.host,
            'port': self.port,
        }
