"""
Logging configuration for groomnet.

One ``setup_logging`` call configures the ``groomnet`` logger hierarchy with a
console handler, an optional rotating file handler and an optional JSON
formatter. Every option can come from an argument or from a ``GROOMNET_LOG_*``
environment variable; arguments take precedence.
"""

import logging
import logging.handlers
import os
import sys
import time
import json
from pathlib import Path
from typing import Optional, Dict, Any
from datetime import datetime


DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s.%(funcName)s:%(lineno)d | %(message)s"
DEFAULT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
DEFAULT_MAX_FILE_SIZE = 10 * 1024 * 1024  # 10MB
DEFAULT_BACKUP_COUNT = 5

ROOT_LOGGER_NAME = "groomnet"

ENV_LOG_LEVEL = "GROOMNET_LOG_LEVEL"
ENV_LOG_FILE = "GROOMNET_LOG_FILE"
ENV_LOG_DIR = "GROOMNET_LOG_DIR"
ENV_LOG_FORMAT = "GROOMNET_LOG_FORMAT"
ENV_LOG_CONSOLE = "GROOMNET_LOG_CONSOLE"
ENV_LOG_JSON = "GROOMNET_LOG_JSON"

_STANDARD_RECORD_KEYS = {
    "name", "msg", "args", "levelname", "levelno", "pathname",
    "filename", "module", "lineno", "funcName", "created",
    "msecs", "relativeCreated", "thread", "threadName",
    "processName", "process", "exc_info", "exc_text",
    "stack_info", "message", "taskName"
}


class JSONFormatter(logging.Formatter):
    """Format log records as one JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        log_obj = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "function": record.funcName,
            "line": record.lineno,
            "message": record.getMessage(),
        }

        if record.exc_info:
            log_obj["exception"] = self.formatException(record.exc_info)

        # extra= fields passed by callers
        for key, value in record.__dict__.items():
            if key not in _STANDARD_RECORD_KEYS:
                log_obj[key] = value

        return json.dumps(log_obj, default=str)


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger for a groomnet module.

    Parameters
    ----------
    name : str
        Logger name, normally ``__name__``

    Returns
    -------
    logging.Logger
        Logger inheriting the handlers installed by ``setup_logging``
    """
    return logging.getLogger(name)


def setup_logging(
    level: Optional[str] = None,
    log_file: Optional[str] = None,
    log_dir: Optional[str] = None,
    console: Optional[bool] = None,
    json_format: Optional[bool] = None,
    format_string: Optional[str] = None,
    force_setup: bool = False
) -> logging.Logger:
    """
    Configure the ``groomnet`` logger hierarchy.

    Parameters
    ----------
    level : str, optional
        DEBUG, INFO, WARNING, ERROR or CRITICAL. Falls back to
        GROOMNET_LOG_LEVEL, then INFO.
    log_file : str, optional
        Log file path. Falls back to GROOMNET_LOG_FILE, then to
        ``groomnet.log`` inside ``log_dir`` when a directory is known.
    log_dir : str, optional
        Directory for the log file. Falls back to GROOMNET_LOG_DIR.
        No file logging happens when neither a file nor a directory is set.
    console : bool, optional
        Log to stdout. Falls back to GROOMNET_LOG_CONSOLE, then True.
    json_format : bool, optional
        Emit JSON lines. Falls back to GROOMNET_LOG_JSON, then False.
    format_string : str, optional
        Format for plain-text records. Falls back to GROOMNET_LOG_FORMAT.
    force_setup : bool, default False
        Reconfigure even if handlers are already installed.

    Returns
    -------
    logging.Logger
        The configured ``groomnet`` logger

    Raises
    ------
    ValueError
        If the level name is not a valid logging level

    Examples
    --------
    >>> logger = setup_logging(level="DEBUG", log_dir="logs")
    """
    root_logger = logging.getLogger(ROOT_LOGGER_NAME)

    if not force_setup and root_logger.handlers:
        return root_logger

    if force_setup:
        for handler in list(root_logger.handlers):
            root_logger.removeHandler(handler)
            handler.close()

    config = _resolve_logging_config(
        level=level,
        log_file=log_file,
        log_dir=log_dir,
        console=console,
        json_format=json_format,
        format_string=format_string
    )

    log_level = getattr(logging, config["level"].upper(), None)
    if not isinstance(log_level, int):
        raise ValueError(f"Invalid logging level: {config['level']}")
    root_logger.setLevel(log_level)

    if config["json_format"]:
        formatter = JSONFormatter()
    else:
        formatter = logging.Formatter(fmt=config["format_string"], datefmt=DEFAULT_DATE_FORMAT)

    if config["console"]:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(formatter)
        root_logger.addHandler(console_handler)

    if config["log_file"]:
        log_path = Path(config["log_file"])
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.handlers.RotatingFileHandler(
            filename=str(log_path),
            maxBytes=DEFAULT_MAX_FILE_SIZE,
            backupCount=DEFAULT_BACKUP_COUNT,
            encoding="utf-8"
        )
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    root_logger.propagate = False

    root_logger.info(
        "Logging configured: level=%s, console=%s, file=%s, json=%s",
        config["level"], config["console"],
        config["log_file"] or "None", config["json_format"]
    )

    return root_logger


def _resolve_logging_config(**kwargs) -> Dict[str, Any]:
    """Merge explicit arguments, environment variables and defaults."""
    def _get_bool_env(env_var: str, default: bool) -> bool:
        value = os.getenv(env_var, "").lower()
        if value in ("true", "yes", "1", "on"):
            return True
        elif value in ("false", "no", "0", "off"):
            return False
        return default

    level = kwargs.get("level") or os.getenv(ENV_LOG_LEVEL, DEFAULT_LOG_LEVEL)

    log_dir = kwargs.get("log_dir") or os.getenv(ENV_LOG_DIR)
    log_file = kwargs.get("log_file") or os.getenv(ENV_LOG_FILE)
    if not log_file and log_dir:
        log_file = os.path.join(log_dir, "groomnet.log")

    console = kwargs.get("console")
    if console is None:
        console = _get_bool_env(ENV_LOG_CONSOLE, True)

    json_format = kwargs.get("json_format")
    if json_format is None:
        json_format = _get_bool_env(ENV_LOG_JSON, False)

    format_string = kwargs.get("format_string") or os.getenv(ENV_LOG_FORMAT, DEFAULT_LOG_FORMAT)

    return {
        "level": level,
        "log_file": log_file,
        "console": console,
        "json_format": json_format,
        "format_string": format_string,
    }


def configure_external_library_logging(libraries: Optional[Dict[str, str]] = None) -> None:
    """
    Set log levels for chatty third-party libraries.

    Parameters
    ----------
    libraries : Dict[str, str], optional
        Library logger name -> level name. Defaults quiet networkit,
        matplotlib and numba to WARNING.
    """
    config = libraries or {
        "networkit": "WARNING",
        "matplotlib": "WARNING",
        "numba": "WARNING",
    }

    for library_name, level in config.items():
        library_level = getattr(logging, level.upper(), None)
        if isinstance(library_level, int):
            logging.getLogger(library_name).setLevel(library_level)


def log_function_entry(func_name: str, **kwargs) -> None:
    """Log entry into a public function with its parameters at DEBUG level."""
    logger = get_logger(f"{ROOT_LOGGER_NAME}.debug")
    if logger.isEnabledFor(logging.DEBUG):
        param_str = ", ".join(f"{k}={v}" for k, v in kwargs.items())
        logger.debug("Entering %s(%s)", func_name, param_str)


def log_performance_metric(
    operation: str,
    duration: float,
    details: Optional[Dict[str, Any]] = None
) -> None:
    """
    Log the duration of an operation to the ``groomnet.performance`` logger.

    Parameters
    ----------
    operation : str
        Name of the timed operation
    duration : float
        Duration in seconds
    details : Dict[str, Any], optional
        Extra information such as node and edge counts
    """
    logger = get_logger(f"{ROOT_LOGGER_NAME}.performance")

    message = f"Performance: {operation} completed in {duration:.3f}s"
    if details:
        message += " (" + ", ".join(f"{k}={v}" for k, v in details.items()) + ")"

    logger.info(message, extra={"operation": operation, "duration": duration})


class LoggingTimer:
    """
    Context manager that logs how long the wrapped block took.

    Examples
    --------
    >>> with LoggingTimer("betweenness_centrality", {"nodes": 137}):
    ...     pass
    """

    def __init__(self, operation: str, details: Optional[Dict[str, Any]] = None):
        self.operation = operation
        self.details = details or {}
        self.start_time = None

    def __enter__(self):
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.start_time is not None:
            log_performance_metric(self.operation, time.perf_counter() - self.start_time, self.details)
        return False
