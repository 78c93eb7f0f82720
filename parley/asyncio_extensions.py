"""
Some helper functions for common async tasks
"""

import asyncio
import inspect
import logging
from functools import wraps
from typing import Any, Callable, Coroutine, Iterable, Optional

logger = logging.getLogger(__name__)

AsyncFunc = Callable[..., Coroutine[Any, Any, Any]]


async def map_suppress(
    func: Callable[[Any], Coroutine[Any, Any, Any]],
    coll: Iterable[Any],
    logger: logging.Logger = logger,
    msg: str = ""
) -> list[Any]:
    """
    Call an async function on every item concurrently. Exceptions are logged
    and do not stop the other calls.
    """
    items = list(coll)
    results = await asyncio.gather(
        *(func(item) for item in items),
        return_exceptions=True
    )
    for item, result in zip(items, results):
        if isinstance(result, BaseException):
            logger.warning(
                "Unexpected error %s%s",
                msg,
                item,
                exc_info=result
            )
    return results


class _partial(object):
    """
    Like functools.partial but applies arguments to the end.
    """

    def __init__(self, func, *args):
        self.func = func
        self.args = args

    def __call__(self, *args):
        return self.func(*args, *self.args)


def synchronizedmethod(*args):
    """
    Create a method that will be wrapped with an async lock.

    # Params
    - `lock_name`: The name of the lock attribute that will be used. If the
        attribute doesn't exist or is None, a lock will be created. The default
        is to use a value based on the decorated function name.
    """
    # Invoked like @synchronizedmethod
    if args and inspect.isfunction(args[0]):
        return _synchronize_method(args[0])

    # Invoked like @synchronizedmethod() or @synchronizedmethod(args, ...)
    return _partial(_synchronize_method, *args)


def _synchronize_method(
    function: AsyncFunc,
    lock_name: Optional[str] = None
) -> AsyncFunc:
    """Wrap an async method with an async lock stored on the instance."""
    if lock_name is None:
        lock_name = f"#{function.__name__}_lock"

    @wraps(function)
    async def wrapped(obj, *args, **kwargs):
        lock = getattr(obj, lock_name, None)
        if lock is None:
            lock = asyncio.Lock()
            setattr(obj, lock_name, lock)

        async with lock:
            return await function(obj, *args, **kwargs)

    return wrapped
