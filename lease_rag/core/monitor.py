import time
import inspect
from functools import wraps
from lease_rag.core.logger import logger


def track_latency(func):
    """
    Decorator to track latency of embedding and retrieval calls.
    Works for both plain and async callables.
    """

    if inspect.iscoroutinefunction(func):

        @wraps(func)
        async def async_wrapper(*args, **kwargs):
            start = time.perf_counter()
            try:
                return await func(*args, **kwargs)
            finally:
                end = time.perf_counter()
                logger.info(f"{func.__name__} latency: {(end-start)*1000:.2f} ms")

        return async_wrapper

    @wraps(func)
    def wrapper(*args, **kwargs):
        start = time.perf_counter()
        try:
            return func(*args, **kwargs)
        finally:
            end = time.perf_counter()
            logger.info(f"{func.__name__} latency: {(end-start)*1000:.2f} ms")

    return wrapper
