import logging
import os
from datetime import datetime
from typing import Optional

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"


def setup_logging(level=logging.INFO, log_dir: Optional[str] = None):
    """Setup basic logging configuration

    Args:
        level: Log level name or number
        log_dir: Optional directory for the daily pipeline log file

    Returns:
        logging.Logger: The package logger
    """
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)

    handlers = [logging.StreamHandler()]

    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
        handlers.append(
            logging.FileHandler(
                os.path.join(
                    log_dir, f"pipeline_{datetime.now().strftime('%Y-%m-%d')}.log"
                )
            )
        )

    logging.basicConfig(level=level, format=LOG_FORMAT, handlers=handlers, force=True)
    return logging.getLogger("icm_extractor")


def describe_error(error: BaseException) -> str:
    """Render an exception with the HTTP details requests attaches to it"""
    details = [f"{type(error).__name__}: {error}"]

    response = getattr(error, "response", None)
    if response is not None:
        details.append(f"status: {response.status_code}")
        details.append(f"url: {response.url}")

    return ", ".join(details)
