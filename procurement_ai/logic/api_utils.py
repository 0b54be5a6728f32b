# procurement_ai/logic/api_utils.py

import time
from typing import Callable, Optional, TypeVar, TYPE_CHECKING
from functools import wraps

from .logging_utils import get_logger

if TYPE_CHECKING:
    from .circuit_breaker import CircuitBreaker

logger = get_logger(__name__)

T = TypeVar('T')


def _is_auth_error(exception: Exception) -> bool:
    """
    Detect if an exception is an authentication/authorization error.

    These errors should NOT be retried as they indicate invalid credentials
    or permissions, not transient network issues.

    Args:
        exception: The exception to check

    Returns:
        True if this is an auth error that should not be retried
    """
    exception_type = type(exception).__name__
    if exception_type in ['AuthenticationError', 'PermissionDeniedError', 'PermissionError', 'Unauthorized']:
        return True

    error_msg = str(exception).lower()
    auth_keywords = [
        'unauthorized', 'authentication', 'invalid api key',
        'invalid_api_key', 'incorrect api key',
        '401', '403', 'forbidden', 'permission denied',
        'access denied', 'invalid credentials'
    ]

    if any(keyword in error_msg for keyword in auth_keywords):
        return True

    # status_code attribute (openai/httpx style)
    if getattr(exception, 'status_code', None) in (401, 403):
        return True

    response = getattr(exception, 'response', None)
    if response is not None and getattr(response, 'status_code', None) in (401, 403):
        return True

    return False


def retry_with_exponential_backoff(
    max_retries: int = 3,
    initial_delay: float = 1.0,
    max_delay: float = 30.0,
    exponential_base: float = 2.0,
    exceptions: tuple = (Exception,),
    sleep: Callable[[float], None] = time.sleep,
) -> Callable:
    """
    Decorator for retrying a function with exponential backoff.

    Args:
        max_retries: Maximum number of retry attempts
        initial_delay: Initial delay in seconds before first retry
        max_delay: Maximum delay between retries in seconds
        exponential_base: Base for exponential backoff calculation
        exceptions: Tuple of exceptions to catch and retry
        sleep: Sleep function (injectable for tests)

    Returns:
        Decorated function with retry logic

    Example:
        @retry_with_exponential_backoff(max_retries=3, initial_delay=1.0)
        def call_api():
            return client.chat.completions.create(...)
    """

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @wraps(func)
        def wrapper(*args, **kwargs) -> T:
            retries = 0
            delay = initial_delay

            while True:
                try:
                    return func(*args, **kwargs)
                except exceptions as e:
                    # Bad credentials are not transient
                    if _is_auth_error(e):
                        logger.error(
                            f"{func.__name__} failed due to authentication error. "
                            f"Error: {type(e).__name__}: {str(e)}"
                        )
                        raise

                    retries += 1

                    if retries > max_retries:
                        logger.error(
                            f"{func.__name__} failed after {max_retries} retries. "
                            f"Last error: {type(e).__name__}: {str(e)}"
                        )
                        raise

                    wait_time = min(delay, max_delay)
                    logger.warning(
                        f"{func.__name__} failed (attempt {retries}/{max_retries}). "
                        f"Retrying in {wait_time:.1f}s... Error: {type(e).__name__}: {str(e)}"
                    )

                    sleep(wait_time)
                    delay *= exponential_base

        return wrapper

    return decorator


# OpenAI-specific retry configuration
OPENAI_RETRY_CONFIG = {
    "max_retries": 3,
    "initial_delay": 2.0,
    "max_delay": 30.0,
    "exponential_base": 2.0,
}


def call_with_fallback(
    primary_func: Callable[[], T],
    fallback_func: Callable[[], T],
    breaker: Optional["CircuitBreaker"] = None,
) -> T:
    """
    Run primary_func, falling back to fallback_func on any failure.

    When a circuit breaker is given it decides whether the primary is tried
    at all and records the outcome.
    """
    if breaker is not None:
        return breaker.call(primary_func=primary_func, fallback_func=fallback_func)

    try:
        return primary_func()
    except Exception as e:
        logger.warning(f"Primary call failed, using fallback: {type(e).__name__}: {e}")
        return fallback_func()
