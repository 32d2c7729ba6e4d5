import logging
import logging.handlers
import os

from fleetsim.config import AppConfig


def setup_logging(config=AppConfig):
    """
    Configure logging for the entire application

    Sets up:
    - Console handler (stdout)
    - File handler (rotating, 10MB max, 5 backups)
    - Consistent formatting
    - Configurable log level

    Args:
        config: Settings object exposing LOG_FILE, LOG_LEVEL, LOG_FORMAT,
                LOG_DATE_FORMAT and get_log_level()
    """
    # Create a logs directory if it doesn't exist
    log_dir = os.path.dirname(config.LOG_FILE)
    if log_dir and not os.path.exists(log_dir):
        os.makedirs(log_dir)

    root_logger = logging.getLogger()
    root_logger.setLevel(config.get_log_level())

    # Clear any existing handlers
    root_logger.handlers = []

    formatter = logging.Formatter(
        config.LOG_FORMAT,
        datefmt=config.LOG_DATE_FORMAT
    )

    # Console handler (stdout)
    console_handler = logging.StreamHandler()
    console_handler.setLevel(config.get_log_level())
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    # File handler (rotating, 10MB max, 5 backups)
    try:
        file_handler = logging.handlers.RotatingFileHandler(
            config.LOG_FILE,
            maxBytes=10 * 1024 * 1024,  # 10MB
            backupCount=5
        )
        file_handler.setLevel(config.get_log_level())
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)
    except OSError as e:
        root_logger.warning(f"Could not create file handler: {e}")

    root_logger.info("=" * 80)
    root_logger.info("Device Fleet Simulator Starting")
    root_logger.info(f"Log Level: {config.LOG_LEVEL}")
    root_logger.info(f"Log File: {config.LOG_FILE}")
    root_logger.info("=" * 80)
