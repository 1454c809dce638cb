"""
ShardFuzz Logging Configuration
Console + rotating file logging with secret redaction and a per-run error log
"""
import logging
import os
import re
import sys
from logging.handlers import RotatingFileHandler, TimedRotatingFileHandler

from shardfuzz.fuzzconfig import LOG_DIR

os.makedirs(LOG_DIR, exist_ok=True)

ROOT_LOGGER_NAME = 'shardfuzz'

# Secrets that end up in URLs and headers. Group 1 is kept, group 2 is redacted.
SENSITIVE_PATTERNS = [
    r'(discord(?:app)?\.com/api/webhooks/\d+/)([\w-]+)',
    r'(api\.telegram\.org/bot)(\d+:[\w-]+)',
    r'(bot[_-]?token[=:]\s*)(\S+)',
    r'(password=)([^&\s]+)',
    r'(api[_-]?key=)([^&\s]+)',
    r'(token=)([^&\s]+)',
    r'(Authorization: )(.+)',
]
_COMPILED_PATTERNS = [re.compile(p, re.IGNORECASE) for p in SENSITIVE_PATTERNS]


class SecureFormatter(logging.Formatter):
    """Formatter that redacts sensitive information"""

    def format(self, record):
        message = super().format(record)
        for pattern in _COMPILED_PATTERNS:
            message = pattern.sub(r'\1[REDACTED]', message)
        return message


def get_logger(name, level=logging.INFO, log_to_file=True):
    """
    Get a configured logger instance

    Args:
        name: Logger name, placed under the ``shardfuzz`` namespace
        level: Logging level
        log_to_file: Whether to log to file

    Returns:
        logging.Logger: Configured logger
    """
    if not name.startswith(ROOT_LOGGER_NAME):
        name = f"{ROOT_LOGGER_NAME}.{name}"
    logger = logging.getLogger(name)

    # Avoid duplicate handlers
    if logger.handlers:
        return logger

    logger.setLevel(level)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.INFO)
    console_handler.setFormatter(SecureFormatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%H:%M:%S'
    ))
    logger.addHandler(console_handler)

    if log_to_file:
        module_name = name.split('.')[-1]
        log_file = os.path.join(LOG_DIR, f"{module_name}.log")

        # Rotating file handler (max 10MB per file, keep 5 backups)
        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=10*1024*1024,
            backupCount=5,
            encoding='utf-8'
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(SecureFormatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(pathname)s:%(lineno)d - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        ))
        logger.addHandler(file_handler)

    return logger


def setup_application_logging():
    """Setup main application logging configuration"""

    app_format = SecureFormatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    # Daily rotating handler (keeps 30 days of logs)
    app_handler = TimedRotatingFileHandler(
        os.path.join(LOG_DIR, "shardfuzz.log"),
        when='midnight',
        interval=1,
        backupCount=30,
        encoding='utf-8'
    )
    app_handler.setFormatter(app_format)

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.INFO)
    root_logger.handlers.clear()
    root_logger.addHandler(app_handler)

    # Error-only log
    error_handler = RotatingFileHandler(
        os.path.join(LOG_DIR, "errors.log"),
        maxBytes=5*1024*1024,
        backupCount=3,
        encoding='utf-8'
    )
    error_handler.setLevel(logging.ERROR)
    error_handler.setFormatter(app_format)
    root_logger.addHandler(error_handler)

    # Suppress noisy libraries
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("requests").setLevel(logging.WARNING)

    return root_logger


def open_run_error_log(path):
    """
    Attach the run-scoped error log to the ``shardfuzz`` logger.

    The file is truncated so each run starts with an empty log. The caller
    owns the returned handler and must pass it to ``close_run_error_log``.
    """
    directory = os.path.dirname(os.path.abspath(path))
    os.makedirs(directory, exist_ok=True)

    handler = logging.FileHandler(path, mode='w', encoding='utf-8')
    handler.setLevel(logging.ERROR)
    handler.setFormatter(SecureFormatter(
        '%(asctime)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    ))
    logging.getLogger(ROOT_LOGGER_NAME).addHandler(handler)
    return handler


def close_run_error_log(handler):
    logging.getLogger(ROOT_LOGGER_NAME).removeHandler(handler)
    handler.close()


# Create loggers for main modules (can be imported directly)
orchestrate_logger = get_logger('orchestrate', level=logging.DEBUG)
splitter_logger = get_logger('splitter', level=logging.DEBUG)
runner_logger = get_logger('runner', level=logging.DEBUG)
aggregator_logger = get_logger('aggregator', level=logging.DEBUG)
notifier_logger = get_logger('notifier', level=logging.DEBUG)
monitor_logger = get_logger('monitor', level=logging.DEBUG)


def set_console_level(level):
    """Change the console threshold of every shardfuzz logger (used by --verbose)"""
    for name, logger in logging.Logger.manager.loggerDict.items():
        if not name.startswith(ROOT_LOGGER_NAME) or not isinstance(logger, logging.Logger):
            continue
        for handler in logger.handlers:
            if type(handler) is logging.StreamHandler:
                handler.setLevel(level)
