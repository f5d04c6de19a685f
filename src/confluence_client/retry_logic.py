"""Retry logic with exponential backoff for Confluence API rate limits.

Only 429 responses are retried (1s, 2s, 4s, or the server's Retry-After when it
asks for longer). Every other error propagates on the first attempt; the sync
pipeline itself never retries.
"""

import time
import logging
from typing import Callable, Optional, TypeVar

from .errors import APIAccessError

logger = logging.getLogger(__name__)

T = TypeVar('T')

MAX_RETRIES = 3


def retry_on_rate_limit(func: Callable[..., T], *args, **kwargs) -> T:
    """Call ``func`` and retry it while Confluence answers 429.

    Args:
        func: The function to execute with retry logic
        *args: Positional arguments to pass to the function
        **kwargs: Keyword arguments to pass to the function

    Returns:
        The return value of the function

    Raises:
        APIAccessError: If the rate limit persists after MAX_RETRIES retries
        Other exceptions: Passed through immediately without retry

    Example:
        >>> page = retry_on_rate_limit(client.get_page_by_id, page_id="123")
    """
    attempt = 0
    while True:
        try:
            return func(*args, **kwargs)
        except Exception as e:
            if not _is_rate_limit_error(e):
                raise
            if attempt >= MAX_RETRIES:
                logger.error(f"Rate limit persisted after {MAX_RETRIES} retries, giving up")
                raise APIAccessError(f"Confluence API failure (after {MAX_RETRIES} retries)") from e

            wait_time = max(2 ** attempt, _retry_after_seconds(e) or 0)
            attempt += 1
            logger.info(f"Rate limit hit, retrying in {wait_time}s (retry {attempt}/{MAX_RETRIES})")
            time.sleep(wait_time)


def _response_error(exception: Exception) -> Exception:
    """The HTTP error behind an exception; the Confluence client keeps it as ``reason``."""
    reason = getattr(exception, 'reason', None)
    return reason if isinstance(reason, Exception) else exception


def _status_code(exception: Exception) -> Optional[int]:
    exception = _response_error(exception)
    status = getattr(exception, 'status_code', None)
    if isinstance(status, int):
        return status
    response = getattr(exception, 'response', None)
    status = getattr(response, 'status_code', None)
    return status if isinstance(status, int) else None


def _retry_after_seconds(exception: Exception) -> Optional[int]:
    """Read a numeric Retry-After header from the failed response, if any."""
    response = getattr(_response_error(exception), 'response', None)
    headers = getattr(response, 'headers', None)
    if not headers:
        return None
    value = headers.get('Retry-After')
    if value is None or not str(value).isdigit():
        return None
    return int(value)


def _is_rate_limit_error(exception: Exception) -> bool:
    """Check if an exception represents a rate limit (429) error."""
    if _status_code(exception) == 429:
        return True
    # Some wrapped errors only carry the status in their message
    error_msg = str(exception).lower()
    return any(pattern in error_msg for pattern in (
        '429',
        'too many requests',
        'rate limit exceeded',
        'rate limited',
    ))
