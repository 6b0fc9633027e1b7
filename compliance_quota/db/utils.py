"""
Retry helpers for transient database errors.

Only idempotent store operations are wrapped. The conditional upload
increment and the trial flip are never retried: if the first attempt
committed but the acknowledgement was lost, a retry would count twice.
"""

import asyncio
import logging
from functools import wraps
from typing import Any, Awaitable, Callable, TypeVar

from sqlalchemy.exc import DisconnectionError, InterfaceError, OperationalError
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from compliance_quota.utils.env_utils import parse_float_env, parse_int_env

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Connection-level failures only; constraint and syntax errors are not transient
TRANSIENT_DB_ERRORS = (
    OperationalError,
    InterfaceError,
    DisconnectionError,
    asyncio.TimeoutError,
    ConnectionRefusedError,
    ConnectionResetError,
)


def _retrying() -> AsyncRetrying:
    return AsyncRetrying(
        stop=stop_after_attempt(parse_int_env("DB_RETRY_ATTEMPTS", 3)),
        wait=wait_exponential(
            multiplier=1,
            min=parse_float_env("DB_RETRY_MIN_WAIT", 0.5),
            max=parse_float_env("DB_RETRY_MAX_WAIT", 5.0),
        ),
        retry=retry_if_exception_type(TRANSIENT_DB_ERRORS),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )


def with_db_retry(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
    """
    Wrap an async store operation so transient connection errors are retried.

    The whole operation (session included) is re-run on each attempt, so
    it must be safe to execute more than once.
    """
    @wraps(func)
    async def wrapper(*args: Any, **kwargs: Any) -> T:
        async for attempt in _retrying():
            with attempt:
                result = await func(*args, **kwargs)
        return result

    return wrapper
