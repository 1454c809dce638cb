"""
ShardFuzz Error Handling Utilities
Error taxonomy, target validation and contextual error logging
"""

import logging
from typing import Optional
from urllib.parse import urlparse

logger = logging.getLogger(__name__)


# Custom Exceptions
class ShardFuzzError(Exception):
    """Base exception for ShardFuzz"""

    def __init__(self, message, context: Optional[dict] = None):
        super().__init__(message)
        self.context = context or {}


class FatalError(ShardFuzzError):
    """Errors that abort the whole run"""
    pass


class FatalInputError(FatalError):
    """Missing/unreadable target list or wordlist, or missing engine"""
    pass


class ShardSplitError(FatalError):
    """Wordlist could not be partitioned"""
    pass


class EngineInvocationError(ShardFuzzError):
    """ffuf exited non-zero (or could not be started) for one shard"""

    def __init__(self, message, exit_status=None, context: Optional[dict] = None):
        super().__init__(message, context)
        self.exit_status = exit_status


class ShardValidationError(ShardFuzzError):
    """Shard report missing, empty, not JSON or without a "results" key"""
    pass


class MergeError(ShardFuzzError):
    """Combined report could not be produced for a target"""
    pass


class NotificationTransportError(ShardFuzzError):
    """Webhook/bot call failed. Logged only."""
    pass


class ValidationError(ShardFuzzError):
    """Input validation errors"""
    pass


# URL validation
def validate_url(url: str, require_scheme: bool = True) -> bool:
    """
    Validate URL format

    Args:
        url: URL to validate
        require_scheme: Whether to require http:// or https://

    Returns:
        bool: True if URL is valid

    Raises:
        ValidationError: If URL is invalid
    """
    if not url or not isinstance(url, str):
        raise ValidationError("URL must be a non-empty string")

    url = url.strip()

    if len(url) > 2048:
        raise ValidationError("URL exceeds maximum length of 2048 characters")

    if any(char in url for char in ['\x00', '\r', '\n', '\t']):
        raise ValidationError("URL contains invalid characters")

    try:
        result = urlparse(url)
    except ValueError as e:
        raise ValidationError(f"Invalid URL format: {e}")

    if require_scheme:
        if not result.scheme:
            raise ValidationError("URL must include scheme (http:// or https://)")
        if result.scheme not in ('http', 'https'):
            raise ValidationError("URL scheme must be http:// or https://")

    if not result.netloc:
        raise ValidationError("URL must include a hostname")

    if result.hostname in ('localhost', '127.0.0.1', '0.0.0.0'):
        logger.warning(f"URL points to localhost/internal IP: {url}")

    return True


# Error logging with context
def log_error_with_context(error: Exception, context: dict = None,
                           level: str = 'error', exc_info: bool = False) -> None:
    """
    Log error with additional context

    Args:
        error: Exception to log
        context: Additional context dictionary, merged over ``error.context``
        level: Log level ('debug', 'info', 'warning', 'error', 'critical')
        exc_info: Attach the traceback
    """
    log_method = getattr(logger, level.lower(), logger.error)

    merged = dict(getattr(error, 'context', None) or {})
    merged.update(context or {})

    context_str = ""
    if merged:
        context_str = " | Context: " + ", ".join(f"{k}={v}" for k, v in merged.items())

    log_method(f"{error.__class__.__name__}: {error}{context_str}", exc_info=exc_info)
