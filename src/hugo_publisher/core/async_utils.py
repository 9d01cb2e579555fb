"""Async utilities for bridging blocking file and HTTP calls to async handlers."""

import asyncio
from typing import Any, Callable, TypeVar

T = TypeVar("T")


async def run_sync(
    func: Callable[..., T], *args: Any, **kwargs: Any
) -> T:
    """Run a synchronous function in a thread pool without blocking the event loop.

    Every document read, snapshot write, and GitHub API call goes through
    this helper, so each one is a suspension point for the caller.

    Args:
        func: Synchronous function to call
        *args: Positional arguments for func
        **kwargs: Keyword arguments for func

    Returns:
        Result of func(*args, **kwargs)

    Example:
        content = await run_sync(vault.read, "posts/hello.md")
    """
    return await asyncio.to_thread(func, *args, **kwargs)
