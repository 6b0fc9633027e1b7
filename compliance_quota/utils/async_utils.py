"""Helpers for calling blocking client libraries from async code."""

import asyncio
import functools
from typing import Any, Callable, TypeVar

T = TypeVar("T")


async def run_sync_in_executor(func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
    """
    Run ``func`` on the default thread pool and await its result.

    Used for the Stripe SDK and ``requests`` calls, which block.
    Exceptions raised by ``func`` propagate to the awaiting coroutine.
    """
    call = functools.partial(func, *args, **kwargs)
    return await asyncio.get_running_loop().run_in_executor(None, call)
