import functools
import logging
import time
from typing import Callable, TypeVar

import httpx
from supabase import Client

logger = logging.getLogger(__name__)

T = TypeVar("T")


def init_db(client: Client) -> bool:
    """Verify the Supabase connection at startup.

    Note: Schema is managed via Supabase migrations (database/schema.py), not here.
    A failed check is logged, not fatal: the managed store may still be
    waking up and every request re-tries on its own.
    """
    try:
        client.table("users").select("id").limit(1).execute()
        logger.info("Supabase connection verified")
        return True
    except Exception as e:
        logger.warning(f"Supabase connection check failed: {e}")
        logger.warning("Make sure migrations have been run and credentials are correct.")
        return False


def with_retry(max_retries: int = 2, delay: float = 0.1) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """Decorator that retries database operations on connection errors.

    Handles transient HTTP connection errors like "Server disconnected" from
    the PostgREST connection pool. Anything else propagates immediately.

    Args:
        max_retries: Maximum number of retry attempts (default 2)
        delay: Delay in seconds between retries (default 0.1)
    """
    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @functools.wraps(func)
        def wrapper(*args, **kwargs) -> T:
            last_error = None
            for attempt in range(max_retries + 1):
                try:
                    return func(*args, **kwargs)
                except (httpx.RemoteProtocolError, httpx.ConnectError) as e:
                    last_error = e
                    if attempt < max_retries:
                        logger.warning(
                            f"Connection error in {func.__name__}, retrying ({attempt + 1}/{max_retries}): {e}"
                        )
                        time.sleep(delay)
                    else:
                        logger.error(f"Connection error in {func.__name__} after {max_retries} retries: {e}")
                        raise
            raise last_error
        return wrapper
    return decorator
