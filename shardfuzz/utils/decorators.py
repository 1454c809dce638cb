"""
ShardFuzz Utility Decorators
Common decorators for logging and validation
"""

import functools
import logging
import time
from typing import Any, Callable

from shardfuzz.utils.error_handler import validate_url

logger = logging.getLogger(__name__)


def log_execution(log_args: bool = False, log_time: bool = True):
    """Decorator to log function execution"""
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args, **kwargs) -> Any:
            start_time = time.time()

            if log_args:
                logger.debug(f"Executing {func.__name__} with args={args}, kwargs={kwargs}")
            else:
                logger.debug(f"Executing {func.__name__}")

            try:
                result = func(*args, **kwargs)
            except Exception as e:
                logger.error(f"{func.__name__} failed: {e}")
                raise

            if log_time:
                logger.debug(f"{func.__name__} completed in {time.time() - start_time:.3f}s")

            return result

        return wrapper
    return decorator


def validate_target_url(func: Callable) -> Callable:
    """Decorator to validate the target URL argument before execution.

    Works for plain functions ``f(target, ...)`` and methods ``f(self, target, ...)``.
    """
    @functools.wraps(func)
    def wrapper(*args, **kwargs) -> Any:
        if args and isinstance(args[0], str):
            target = args[0]
        elif len(args) > 1:
            target = args[1]
        else:
            target = kwargs.get('target')
        validate_url(target)
        return func(*args, **kwargs)
    return wrapper
