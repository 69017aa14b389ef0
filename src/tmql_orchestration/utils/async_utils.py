"""
Async utilities for tmql-orchestration.
"""

from __future__ import annotations

import asyncio
import functools
import inspect
from typing import Any, Awaitable, Callable, TypeVar

T = TypeVar("T")


def dual(func: Callable[..., Awaitable[T]]) -> Callable[..., T]:
    """
    Decorator: make a coroutine function usable from sync and async code.

    Outside an event loop the call blocks and returns the result; inside a
    running loop it returns the coroutine for the caller to await.

    Usage:
        @dual
        async def run(plan):
            ...

        run(plan)          # blocks in sync context
        await run(plan)    # works in async context
    """
    if not inspect.iscoroutinefunction(func):
        raise TypeError("@dual can only be applied to async def functions")

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        coro = func(*args, **kwargs)
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            return asyncio.run(coro)
        return coro

    return wrapper  # type: ignore[return-value]
