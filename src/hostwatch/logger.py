"""Logging setup for hostwatch."""

import logging
import logging.handlers
import os

ROOT_LOGGER_NAME = "hostwatch"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_FILE_MAX_BYTES = 10 * 1024 * 1024
LOG_FILE_BACKUPS = 5

_configured: dict[str, logging.Logger] = {}


def _level(level_name: str) -> int:
    level = logging.getLevelName(str(level_name).upper())
    if isinstance(level, int):
        return level
    logging.getLogger(ROOT_LOGGER_NAME).warning("Invalid log level name %r, using INFO", level_name)
    return logging.INFO


def setup_logger(
    name: str = ROOT_LOGGER_NAME,
    console_level_name: str = "INFO",
    log_file_path: str | None = None,
) -> logging.Logger:
    """
    Send ``name`` records to the console and, optionally, a rotating file.

    The file always records DEBUG and above. Repeated calls for the same
    name return the configured logger without adding handlers.
    """
    if name in _configured:
        return _configured[name]

    logger = logging.getLogger(name)
    console_level = _level(console_level_name)
    logger.setLevel(logging.DEBUG if log_file_path else console_level)
    logger.propagate = False
    logger.handlers.clear()

    formatter = logging.Formatter(LOG_FORMAT)
    console_handler = logging.StreamHandler()
    console_handler.setLevel(console_level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file_path:
        try:
            log_dir = os.path.dirname(log_file_path)
            if log_dir:
                os.makedirs(log_dir, exist_ok=True)
            file_handler = logging.handlers.RotatingFileHandler(
                log_file_path,
                maxBytes=LOG_FILE_MAX_BYTES,
                backupCount=LOG_FILE_BACKUPS,
                encoding="utf-8",
            )
        except OSError as e:
            logger.error("Failed to set up file logging to %s: %s", log_file_path, e)
        else:
            file_handler.setLevel(logging.DEBUG)
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)

    _configured[name] = logger
    return logger


def get_logger(name: str = ROOT_LOGGER_NAME) -> logging.Logger:
    """Return a logger under the hostwatch hierarchy."""
    if name == ROOT_LOGGER_NAME or name.startswith(ROOT_LOGGER_NAME + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


def reset_logger(name: str = ROOT_LOGGER_NAME) -> None:
    """Remove handlers installed by setup_logger so it can be reconfigured."""
    logger = _configured.pop(name, None)
    if logger is None:
        return
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)
