"""Centralized logging configuration for the application."""
import logging
import os
from logging.handlers import RotatingFileHandler
from datetime import datetime
import pytz
from urlcoin.core.config import get_settings


class KSTFormatter(logging.Formatter):
    """Formatter rendering record timestamps in Korea Standard Time."""

    kst = pytz.timezone('Asia/Seoul')

    def formatTime(self, record, datefmt=None):
        dt = datetime.fromtimestamp(record.created, tz=self.kst)
        if datefmt:
            return dt.strftime(datefmt)
        else:
            return dt.strftime('%Y-%m-%d %H:%M:%S %Z')


def _rotating_handler(path: str, level: int, formatter: logging.Formatter,
                      max_bytes: int = 10 * 1024 * 1024, backup_count: int = 10) -> RotatingFileHandler:
    handler = RotatingFileHandler(path, maxBytes=max_bytes, backupCount=backup_count, encoding='utf-8')
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def setup_logging():
    """Configure application-wide logging with file and console handlers."""
    settings = get_settings()

    # Ensure logs directory exists
    logs_dir = settings.log_dir
    os.makedirs(logs_dir, exist_ok=True)

    kst_formatter = KSTFormatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    # Configure root logger
    root_logger = logging.getLogger()
    root_logger.setLevel(logging.INFO)

    # Remove existing handlers
    root_logger.handlers.clear()

    # Console handler (INFO level)
    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.INFO)
    console_handler.setFormatter(kst_formatter)
    root_logger.addHandler(console_handler)

    # Main application log file (INFO level, rotating)
    root_logger.addHandler(
        _rotating_handler(os.path.join(logs_dir, "app.log"), logging.INFO, kst_formatter)
    )

    # Error log file (ERROR level only, rotating)
    root_logger.addHandler(
        _rotating_handler(os.path.join(logs_dir, "error.log"), logging.ERROR, kst_formatter, backup_count=5)
    )

    # Market log file (price updates and ranking snapshots)
    market_logger = logging.getLogger('market')
    market_logger.handlers.clear()
    market_logger.addHandler(
        _rotating_handler(os.path.join(logs_dir, "market.log"), logging.INFO, kst_formatter, backup_count=20)
    )

    # Trading log file (settlements and rewards)
    trading_logger = logging.getLogger('trading')
    trading_logger.handlers.clear()
    trading_logger.addHandler(
        _rotating_handler(os.path.join(logs_dir, "trading.log"), logging.INFO, kst_formatter, backup_count=20)
    )

    logging.info(f"Logging system initialized - logs saved to '{logs_dir}/' directory")
