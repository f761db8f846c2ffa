import json
import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

_MAX_BYTES = 10 * 1024 * 1024   # 10 MB
_BACKUP_COUNT = 5
_CONSOLE_FMT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


class JsonFormatter(logging.Formatter):
    """
    Formatter that outputs JSON strings after parsing the LogRecord.
    """
    def format(self, record):
        log_record = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "name": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "funcName": record.funcName,
            "line": record.lineno
        }
        if record.exc_info and record.exc_info[0] is not None:
            log_record["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_record)


def _resolve_log_dir(log_dir: Optional[str]) -> Path:
    """Pick the logs directory: explicit argument, then config.json paths.logs_dir, then ./logs."""
    if log_dir:
        return Path(log_dir)

    # Read config.json directly; common.config imports this module.
    config_file = Path("config.json")
    if config_file.exists():
        try:
            with open(config_file, "r") as fh:
                configured = json.load(fh).get("paths", {}).get("logs_dir")
            if configured:
                return Path(configured)
        except (OSError, ValueError):
            pass  # fall back to ./logs
    return Path("logs")


def setup_logger(name: str, log_dir: Optional[str] = None, level: int = logging.DEBUG, console_output: bool = True) -> logging.Logger:
    """
    Sets up a logger with both file and console handlers.

    Args:
        name: Name of the logger
        log_dir: Directory to store log files (default: config paths.logs_dir)
        level: Logging level
        console_output: Whether to output to console

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)

    # Avoid adding handlers multiple times
    if logger.handlers:
        return logger

    # Create logs directory if it doesn't exist
    log_path = _resolve_log_dir(log_dir)
    log_path.mkdir(parents=True, exist_ok=True)

    # File Handler - JSON formatted
    file_handler = RotatingFileHandler(
        log_path / f"{name}.jsonl",
        maxBytes=_MAX_BYTES,
        backupCount=_BACKUP_COUNT
    )
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(JsonFormatter())
    logger.addHandler(file_handler)

    # Console Handler - Human readable
    if console_output:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(logging.INFO)
        console_handler.setFormatter(logging.Formatter(_CONSOLE_FMT))
        logger.addHandler(console_handler)

    return logger


def get_logger(name: str) -> logging.Logger:
    """Convenience function to get a logger with default settings"""
    return setup_logger(name)
