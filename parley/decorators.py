"""
Helper decorators
"""

import logging
import time
from functools import wraps

_logger = logging.getLogger(__name__)


def with_logger(cls):
    """
    Add a `_logger` attribute to a class. The logger name will be the same as
    the class name.

    # Examples
    >>> @with_logger
    ... class Relay:
    ...    pass
    >>> assert Relay._logger.name == "Relay"
    """
    setattr(cls, "_logger", logging.getLogger(cls.__qualname__))
    return cls


def _timed_decorator(f, logger=_logger, limit=0.2):
    @wraps(f)
    def wrapper(*args, **kwargs):
        start = time.perf_counter()
        result = f(*args, **kwargs)
        elapsed = time.perf_counter() - start
        if elapsed >= limit:
            logger.warning("%s took %0.3f s to finish", f.__name__, elapsed)
        return result

    return wrapper


def timed(*args, **kwargs):
    """
    Log a warning if a synchronous function takes longer than `limit` seconds.
    The matchmaking operations run on the event loop thread, so a slow one
    stalls every connection.

    # Examples
    >>> from unittest import mock
    >>> log = mock.Mock()
    >>> @timed(logger=log, limit=0)
    ... def pair():
    ...    pass
    >>> pair()
    >>> log.warning.assert_called_once()
    """
    if len(args) == 1 and callable(args[0]):
        return _timed_decorator(args[0])
    else:
        return lambda f: _timed_decorator(f, *args, **kwargs)
