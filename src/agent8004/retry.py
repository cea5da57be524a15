"""
Agent8004 Retry Mechanism Module

Wraps individual chain reads with exponential backoff while failing fast on
errors that prove the queried entity does not exist.

Classes:
    RetryConfig: Retry configuration data class

Functions:
    calculate_delay: Calculate retry delay
    is_nonexistent_token_error: Default permanent-failure classifier
    with_retry: Run one async operation under a retry policy
    retry_async: Asynchronous retry decorator

Predefined Configs:
    CHAIN_READ_RETRY_CONFIG: 3 attempts, 1s base delay, no jitter (1s, 2s, ...)
    NO_RETRY_CONFIG: No retry

Example:
    >>> from agent8004.retry import with_retry
    >>> owner = await with_retry(
    ...     lambda: adapter.call("identity", "ownerOf", [7]),
    ...     operation_name="ownerOf(7)",
    ... )

Note:
    - Every failure is retried unless the classifier marks it permanent
    - Permanent failures raise EntityNotFoundError after a single attempt
    - Exhausted transient failures raise RetryExhaustedError
    - The policy wraps one read, never a multi-step operation
"""

import asyncio
import logging
import random
from dataclasses import dataclass, field
from functools import wraps
from typing import Any, Awaitable, Callable, Optional, Tuple, Type, TypeVar

from .exceptions import (
    ContractFunctionNotFoundError,
    EntityNotFoundError,
    RetryExhaustedError,
    UserRejectedError,
)

logger = logging.getLogger("agent8004.retry")

T = TypeVar("T")

NONEXISTENT_TOKEN_MARKERS: Tuple[str, ...] = (
    "revert",
    "nonexistent",
    "invalid token",
    "query for nonexistent",
    "erc721: invalid token id",
    "token does not exist",
    "invalid token id",
    "token not found",
    "owner query for nonexistent token",
)
"""Lower-case substrings that mark a read as definitively "does not exist"."""


def _error_text(error: BaseException) -> str:
    """Concatenate message, reason and data of an error, lower-cased."""
    parts = [str(error)]
    for attr in ("message", "reason", "data"):
        value = getattr(error, attr, None)
        if value:
            parts.append(str(value))
    return " ".join(parts).lower()


def is_nonexistent_token_error(error: BaseException) -> bool:
    """
    Determine if an error proves the queried token does not exist.

    Inspects the error's message, ``reason`` and ``data`` for any of
    NONEXISTENT_TOKEN_MARKERS (case-insensitive substring match).

    Args:
        error: Caught exception

    Returns:
        True if the failure is permanent

    Example:
        >>> is_nonexistent_token_error(Exception("ERC721: invalid token ID"))
        True
        >>> is_nonexistent_token_error(TimeoutError("read timed out"))
        False
    """
    if isinstance(error, EntityNotFoundError):
        return True
    text = _error_text(error)
    return any(marker in text for marker in NONEXISTENT_TOKEN_MARKERS)


@dataclass
class RetryConfig:
    """
    Retry configuration data class.

    Attributes:
        max_attempts: Maximum number of attempts (including the first attempt)
        base_delay: Base delay time (seconds)
        max_delay: Maximum delay time (seconds)
        exponential_base: Exponential backoff base
        jitter: Whether to add random jitter
        jitter_factor: Jitter factor (0-1)
        is_permanent: Classifier returning True for errors that must not be retried
        non_retryable_exceptions: Exception types re-raised untouched on first sight

    Example:
        >>> config = RetryConfig(max_attempts=5, base_delay=0.5)

    Note:
        - Delay formula: delay = base_delay * (exponential_base ^ (attempt - 2))
        - Jitter range: delay ± (delay * jitter_factor)
    """

    max_attempts: int = 3
    """Maximum attempts (including first attempt)"""

    base_delay: float = 1.0
    """Base delay time (seconds)"""

    max_delay: float = 30.0
    """Maximum delay time (seconds)"""

    exponential_base: float = 2.0
    """Exponential backoff base"""

    jitter: bool = False
    """Whether to add random jitter"""

    jitter_factor: float = 0.1
    """Jitter factor (0-1)"""

    is_permanent: Callable[[BaseException], bool] = is_nonexistent_token_error
    """Permanent-failure classifier"""

    non_retryable_exceptions: Tuple[Type[BaseException], ...] = field(
        default_factory=lambda: (
            UserRejectedError,
            ContractFunctionNotFoundError,
        )
    )
    """Exception types that are neither retried nor reclassified"""


# ============ Predefined Configs ============

CHAIN_READ_RETRY_CONFIG = RetryConfig()
"""Chain read config: 3 attempts, waits of 1s then 2s"""

NO_RETRY_CONFIG = RetryConfig(max_attempts=1)
"""No retry config: attempt only once"""


def calculate_delay(attempt: int, config: RetryConfig) -> float:
    """
    Calculate the delay before the Nth attempt.

    Args:
        attempt: Attempt number about to start (starts from 1)
        config: Retry configuration

    Returns:
        Delay time (seconds), 0 for the first attempt

    Example:
        >>> config = RetryConfig(base_delay=1.0, exponential_base=2.0)
        >>> calculate_delay(1, config)
        0.0
        >>> calculate_delay(2, config)
        1.0
        >>> calculate_delay(3, config)
        2.0
    """
    if attempt <= 1:
        return 0.0

    delay = config.base_delay * (config.exponential_base ** (attempt - 2))
    delay = min(delay, config.max_delay)

    if config.jitter:
        jitter_range = delay * config.jitter_factor
        delay += random.uniform(-jitter_range, jitter_range)

    return max(0.0, delay)


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    config: Optional[RetryConfig] = None,
    operation_name: str = "operation",
) -> T:
    """
    Run an async operation under a retry policy.

    Args:
        operation: Zero-argument callable returning a fresh awaitable per attempt
        config: Retry configuration, defaults to CHAIN_READ_RETRY_CONFIG
        operation_name: Operation name, used for logging and errors

    Returns:
        The operation's result

    Raises:
        EntityNotFoundError: The classifier marked the failure permanent
        RetryExhaustedError: Transient failures persisted for every attempt
        Exception: Types listed in non_retryable_exceptions, unchanged
    """
    if config is None:
        config = CHAIN_READ_RETRY_CONFIG

    last_exception: Optional[BaseException] = None

    for attempt in range(1, config.max_attempts + 1):
        try:
            return await operation()
        except config.non_retryable_exceptions:
            raise
        except Exception as e:
            last_exception = e

            if config.is_permanent(e):
                logger.debug("Permanent failure in %s, not retrying: %s", operation_name, e)
                if isinstance(e, EntityNotFoundError):
                    raise
                raise EntityNotFoundError(operation_name, e) from e

            if attempt >= config.max_attempts:
                logger.warning(
                    "Retry exhausted for %s after %d attempts: %s",
                    operation_name,
                    attempt,
                    e,
                )
                raise RetryExhaustedError(operation_name, attempt, e) from e

            delay = calculate_delay(attempt + 1, config)
            logger.warning(
                "Retrying %s (attempt %d/%d) after %.2fs: %s",
                operation_name,
                attempt,
                config.max_attempts,
                delay,
                e,
            )
            await asyncio.sleep(delay)

    raise RetryExhaustedError(operation_name, config.max_attempts, last_exception)


def retry_async(
    config: Optional[RetryConfig] = None,
    operation_name: Optional[str] = None,
) -> Callable:
    """
    Asynchronous retry decorator.

    Same policy as with_retry, applied to every call of the decorated coroutine.

    Example:
        >>> @retry_async(operation_name="eth_chainId")
        ... async def read_chain_id():
        ...     return await w3.eth.chain_id
    """

    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        op_name = operation_name or func.__name__

        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            return await with_retry(lambda: func(*args, **kwargs), config, op_name)

        return wrapper

    return decorator
