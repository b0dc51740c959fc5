"""Logging for the service log and the HTTP access log."""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

from .config import AppConfig, LoggingConfig

ACCESS_LOGGER_NAME = "iperfmon.access"

SERVICE_FORMAT = "%(asctime)s [%(levelname)s] %(name)s - %(message)s"


def _rotating_handler(path: Path, settings: LoggingConfig, formatter: logging.Formatter) -> RotatingFileHandler:
    handler = RotatingFileHandler(path, maxBytes=settings.max_bytes, backupCount=settings.backup_count)
    handler.setFormatter(formatter)
    return handler


def _reset(logger: logging.Logger) -> None:
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()


def configure_logging(config: AppConfig) -> None:
    settings = config.logging
    log_dir = config.paths.logs_dir
    log_dir.mkdir(parents=True, exist_ok=True)

    service_formatter = logging.Formatter(fmt=SERVICE_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, settings.level.upper(), logging.INFO))
    _reset(root_logger)
    root_logger.addHandler(_rotating_handler(log_dir / settings.file_name, settings, service_formatter))
    console_handler = logging.StreamHandler()
    console_handler.setFormatter(service_formatter)
    root_logger.addHandler(console_handler)

    # Access lines are preformatted in combined log format by the web app.
    access_formatter = logging.Formatter(fmt="%(message)s")
    access_logger = logging.getLogger(ACCESS_LOGGER_NAME)
    access_logger.setLevel(logging.INFO)
    access_logger.propagate = False
    _reset(access_logger)
    access_logger.addHandler(_rotating_handler(log_dir / settings.access_file_name, settings, access_formatter))
    access_console = logging.StreamHandler()
    access_console.setFormatter(access_formatter)
    access_logger.addHandler(access_console)

    # APScheduler logs every job execution at INFO; werkzeug duplicates the access log.
    logging.getLogger("apscheduler").setLevel(logging.WARNING)
    logging.getLogger("werkzeug").setLevel(logging.WARNING)
