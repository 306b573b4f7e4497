"""Error Handling Utilities

This module provides retry logic with exponential backoff for handling transient
failures in the document-retrieval layer. Parsing code never retries: malformed
markup degrades to plain text instead of raising.
"""

import time
from typing import Callable, Tuple, Type, TypeVar

import structlog


T = TypeVar('T')

logger = structlog.get_logger(__name__)


def retry_with_backoff(
    fn: Callable[[], T],
    max_retries: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 30.0,
    retryable_exceptions: Tuple[Type[Exception], ...] = (Exception,)
) -> T:
    """Execute a callable with exponential backoff retry logic.

    Used by the fetch layer for connection resets and read timeouts against
    remote org-social documents.

    Args:
        fn: Callable to execute (should take no arguments)
        max_retries: Maximum number of retry attempts (default: 3)
        base_delay: Initial delay in seconds (default: 1.0)
        max_delay: Maximum delay cap in seconds (default: 30.0)
        retryable_exceptions: Tuple of exception types to retry on (default: all exceptions)

    Returns:
        The result of fn() on successful execution

    Raises:
        The final exception if all retries are exhausted, or immediately if the exception
        type is not in retryable_exceptions

    Example:
        >>> def fetch_document():
        ...     return requests.get(url, timeout=10).text
        >>> text = retry_with_backoff(
        ...     fetch_document,
        ...     max_retries=2,
        ...     retryable_exceptions=(requests.ConnectionError,)
        ... )

    Backoff schedule (base_delay=1.0, max_delay=30.0):
        - Attempt 1: immediate
        - Attempt 2: wait 1.0s (base_delay * 2^0)
        - Attempt 3: wait 2.0s (base_delay * 2^1)
        - Attempt 4: wait 4.0s (base_delay * 2^2)
        - etc., capped at max_delay
    """
    last_exception = None

    for attempt in range(max_retries + 1):
        try:
            return fn()
        except Exception as e:
            # Non-retryable exception: propagate immediately
            if not isinstance(e, retryable_exceptions):
                raise

            last_exception = e

            if attempt >= max_retries:
                raise

            delay = min(base_delay * (2 ** attempt), max_delay)

            logger.debug(
                "retry_scheduled",
                attempt=attempt + 1,
                delay=delay,
                error=str(e),
                error_type=type(e).__name__
            )
            time.sleep(delay)

    # Unreachable: the loop either returns or raises
    if last_exception:
        raise last_exception
    raise RuntimeError("Unreachable code")
