"""
Retry helpers with exponential backoff.

Only transient failures are retried: database OperationalError (dropped
connection, serialization failure, lock timeout) and transport-level or 5xx
errors from outbound HTTP calls. Everything else propagates immediately.
"""

import asyncio
import logging
import time
from typing import Awaitable, Callable, TypeVar

import httpx
from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.orm import Session

from .config import RETRY_ATTEMPTS, RETRY_BASE_DELAY
from .exceptions import InfrastructureError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _is_transient_db_error(exc: Exception) -> bool:
    if isinstance(exc, OperationalError):
        return True
    # Postgres serialization_failure / deadlock_detected surface as DBAPIError
    code = getattr(getattr(exc, "orig", None), "pgcode", None)
    return isinstance(exc, DBAPIError) and code in ("40001", "40P01")


def run_in_transaction(
    db: Session,
    operation: Callable[[Session], T],
    max_retries: int = RETRY_ATTEMPTS,
    retry_delay: float = RETRY_BASE_DELAY,
) -> T:
    """
    Run `operation(db)` and commit it as one transaction.

    The operation must not commit itself. Any exception rolls the whole
    transaction back; transient database errors are retried with exponential
    backoff and surface as InfrastructureError once the attempts run out.
    """
    for attempt in range(max_retries):
        try:
            result = operation(db)
            db.commit()
            return result
        except Exception as e:
            db.rollback()
            if not _is_transient_db_error(e):
                raise
            logger.warning(f"🔄 Retry {attempt + 1}/{max_retries} for transaction: {str(e)}")
            if attempt == max_retries - 1:
                logger.error(f"❌ All retries failed for transaction: {str(e)}")
                raise InfrastructureError(
                    "The database is temporarily unavailable. Please try again."
                ) from e
        # Exponential backoff
        time.sleep(retry_delay * (2**attempt))
    raise InfrastructureError("The database is temporarily unavailable. Please try again.")


def _is_transient_http_error(exc: Exception) -> bool:
    if isinstance(exc, httpx.TransportError):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code >= 500 or exc.response.status_code == 429
    return False


async def retry_async(
    call: Callable[[], Awaitable[T]],
    description: str,
    max_retries: int = RETRY_ATTEMPTS,
    retry_delay: float = RETRY_BASE_DELAY,
) -> T:
    """Await `call()` retrying transient HTTP failures with exponential backoff"""
    for attempt in range(max_retries):
        try:
            return await call()
        except Exception as e:
            if not _is_transient_http_error(e):
                raise
            logger.warning(f"🔄 Retry {attempt + 1}/{max_retries} for {description}: {str(e)}")
            if attempt == max_retries - 1:
                logger.error(f"❌ All retries failed for {description}: {str(e)}")
                raise InfrastructureError(f"{description} is temporarily unavailable") from e
        await asyncio.sleep(retry_delay * (2**attempt))
    raise InfrastructureError(f"{description} is temporarily unavailable")
