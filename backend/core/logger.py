import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path


def setup_logger(name: str = 'studio_stats', log_level: str = None):
    """Setup application logger"""
    logger = logging.getLogger(name)

    # Don't add handlers if they already exist
    if logger.handlers:
        return logger

    if log_level is None:
        log_level = os.getenv('LOG_LEVEL', 'INFO').upper()

    logger.setLevel(getattr(logging, log_level, logging.INFO))

    formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    console_handler = logging.StreamHandler()
    console_handler.setLevel(logger.level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    # File handler (for production). LOG_DIR="" disables it.
    log_dir_setting = os.getenv('LOG_DIR')
    if log_dir_setting == '':
        return logger
    log_dir = Path(log_dir_setting) if log_dir_setting else Path(__file__).resolve().parent.parent / 'logs'
    log_dir.mkdir(parents=True, exist_ok=True)

    file_handler = RotatingFileHandler(
        log_dir / os.getenv('LOG_FILE', 'stats.log'),
        maxBytes=10 * 1024 * 1024,  # 10MB
        backupCount=5
    )
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)

    return logger


# Create default logger instance
logger = setup_logger()
