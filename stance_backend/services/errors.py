"""Error taxonomy and bounded backing-store calls."""

import asyncio
import logging
from typing import Awaitable, Optional, TypeVar

from sqlalchemy.exc import DBAPIError, OperationalError

from stance_backend.config import BACKING_STORE_TIMEOUT_SECONDS

logger = logging.getLogger(__name__)

T = TypeVar("T")


class InvalidInput(ValueError):
    """Malformed vote payload, rejected before persistence."""


class BackingStoreUnavailable(RuntimeError):
    """The backing store timed out or could not be reached."""


async def call_with_timeout(
    awaitable: Awaitable[T],
    operation: str,
    timeout: Optional[float] = None,
) -> T:
    """Await ``awaitable`` for at most ``timeout`` seconds.

    Timeouts and connection-level database errors come back as
    ``BackingStoreUnavailable``; anything else propagates unchanged.
    """
    seconds = BACKING_STORE_TIMEOUT_SECONDS if timeout is None else timeout
    try:
        return await asyncio.wait_for(awaitable, timeout=seconds)
    except asyncio.TimeoutError as exc:
        logger.warning("Backing store timed out after %ss during %s", seconds, operation)
        raise BackingStoreUnavailable(f"{operation} timed out") from exc
    except (OperationalError, DBAPIError, ConnectionError, OSError) as exc:
        logger.warning("Backing store unavailable during %s: %s", operation, exc)
        raise BackingStoreUnavailable(f"{operation} failed: {exc}") from exc
