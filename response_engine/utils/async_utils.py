"""Calling collaborators from the event loop.

Collaborators may implement their methods as coroutines or as plain blocking
callables.  Blocking ones are pushed to anyio's worker threads so one slow
analyzer cannot stall the other tasks of a turn.
"""

from __future__ import annotations

import functools
import inspect
from typing import Any, Callable, TypeVar

import anyio

R = TypeVar("R")


async def run_in_thread(func: Callable[..., R], *args: Any, **kwargs: Any) -> R:
    """Run a blocking ``func`` on an anyio worker thread."""
    # to_thread.run_sync takes positional arguments only
    call = functools.partial(func, *args, **kwargs) if kwargs else func
    return await anyio.to_thread.run_sync(call, *(() if kwargs else args))


async def call_collaborator(func: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
    """Await ``func(*args, **kwargs)`` whatever its calling convention."""
    if inspect.iscoroutinefunction(func):
        return await func(*args, **kwargs)
    result = await run_in_thread(func, *args, **kwargs)
    if inspect.isawaitable(result):
        return await result
    return result
