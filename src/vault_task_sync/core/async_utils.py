"""Bridge from async callers (MCP handlers, the scheduler) to the blocking engine."""

import asyncio
from typing import Any, Callable, TypeVar

T = TypeVar("T")


async def run_sync(
    func: Callable[..., T], *args: Any, **kwargs: Any
) -> T:
    """Call *func* in a worker thread and await its result.

    A sync run reads and rewrites vault files and calls the destination
    store synchronously; running it here keeps the event loop serving
    protocol traffic meanwhile.  Exceptions raised by *func* propagate.

    Example:
        report = await run_sync(engine.run, dry_run=True)
    """
    return await asyncio.to_thread(func, *args, **kwargs)
