"""
Logging configuration for the CoverCraft API.

Provides structured logging without exposing secrets.
"""
import logging
import sys
from pathlib import Path
from logging.handlers import RotatingFileHandler
from typing import Any, Dict, Mapping


def setup_logging(log_level: str = "INFO", log_dir: str = "logs"):
    """
    Configure application logging.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_dir: Directory for the rotating log file
    """
    level = getattr(logging, log_level.upper(), logging.INFO)

    # Create logs directory if it doesn't exist
    log_path = Path(log_dir)
    log_path.mkdir(parents=True, exist_ok=True)

    # Configure root logger
    logger = logging.getLogger()
    logger.setLevel(level)

    # Remove existing handlers
    logger.handlers.clear()

    # Console handler with simple format
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_formatter = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )
    console_handler.setFormatter(console_formatter)

    # File handler with detailed format
    file_handler = RotatingFileHandler(
        log_path / "covercraft.log",
        maxBytes=10 * 1024 * 1024,  # 10MB
        backupCount=5
    )
    file_handler.setLevel(level)
    file_formatter = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )
    file_handler.setFormatter(file_formatter)

    # Add handlers
    logger.addHandler(console_handler)
    logger.addHandler(file_handler)

    # Set levels for third-party libraries
    logging.getLogger("uvicorn").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("stripe").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("openai").setLevel(logging.WARNING)


def mask_secret(value: str, min_length: int = 9) -> str:
    """
    Mask a secret for display, keeping its first 6 and last 4 characters.

    Values shorter than min_length are fully masked.
    """
    if not value:
        return ""
    if len(value) < min_length:
        return "***"
    return f"{value[:6]}...{value[-4:]}"


SENSITIVE_KEY_PARTS = ("authorization", "cookie", "signature", "secret", "token", "password", "api_key", "apikey")


def sanitize_log_data(data: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Copy of a mapping (e.g. request headers) with credential-bearing values redacted.

    A key is sensitive when its lower-cased name contains any of
    SENSITIVE_KEY_PARTS, so "stripe-signature" and "X-Signature" both match.
    """
    return {
        key: "***REDACTED***" if any(part in key.lower() for part in SENSITIVE_KEY_PARTS) else value
        for key, value in data.items()
    }
