import logging
import os

from dotenv import load_dotenv

load_dotenv()


class AppConfig:
    """
    Main application configuration

    Logging and status API settings for the fleet simulator
    """

    # Logging configuration
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')
    LOG_FILE = os.getenv('LOG_FILE', './logs/fleet_simulator.log')
    LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    LOG_DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

    # Status API (Flask)
    STATUS_API_ENABLED = os.getenv('STATUS_API_ENABLED', 'True').lower() == 'true'
    STATUS_API_HOST = os.getenv('STATUS_API_HOST', '0.0.0.0')
    STATUS_API_PORT = int(os.getenv('STATUS_API_PORT', 5000))

    @classmethod
    def get_log_level(cls) -> int:
        """Convert string log level to logging constant"""
        levels = {
            'DEBUG': logging.DEBUG,
            'INFO': logging.INFO,
            'WARNING': logging.WARNING,
            'ERROR': logging.ERROR,
            'CRITICAL': logging.CRITICAL
        }
        return levels.get(cls.LOG_LEVEL.upper(), logging.INFO)
