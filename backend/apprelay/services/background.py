import logging
from typing import Any, Awaitable, Callable

logger = logging.getLogger(__name__)


async def run_logged(
    description: str, func: Callable[..., Awaitable[Any]], *args, **kwargs
) -> None:
    """
    Run a fire-and-forget task after the response was sent.

    Failures are logged here and never reach the client.
    """
    try:
        await func(*args, **kwargs)
    except Exception as e:
        logger.exception(f"Background task '{description}' failed: {e}")
