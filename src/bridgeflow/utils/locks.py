"""Concurrency control for source-account signing.

Provides per-account locking so two transfers from the same account never
sign or send concurrently (they would race for the same nonce/sequence).
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional

logger = logging.getLogger(__name__)

# Global lock registry: "FAMILY:address" -> asyncio.Lock
_account_locks: dict[str, asyncio.Lock] = {}


class LockTimeoutError(Exception):
    """Raised when a lock cannot be acquired within the timeout period."""

    pass


def account_key(family: str, address: str) -> str:
    """Registry key for an account. EVM addresses are case-insensitive."""
    if family == "EVM":
        address = address.lower()
    return f"{family}:{address}"


def get_account_lock(key: str) -> asyncio.Lock:
    """Get or create the lock for an account key.

    Args:
        key: Account key from account_key()

    Returns:
        asyncio.Lock for the account
    """
    lock = _account_locks.get(key)
    if lock is None:
        lock = _account_locks[key] = asyncio.Lock()
    return lock


@asynccontextmanager
async def account_lock(
    family: str,
    address: str,
    timeout: Optional[float] = None,
    operation: str = "signing",
):
    """Exclusive access to an account for the duration of the block.

    Args:
        family: Execution family wire name (EVM, SVM, MVM)
        address: Account address on that family
        timeout: Maximum time to wait for the lock (None = wait forever)
        operation: Description for logging

    Example:
        async with account_lock("EVM", address, operation="dispatch"):
            tx_hash = await dispatcher.dispatch(request)
    """
    key = account_key(family, address)
    lock = get_account_lock(key)

    try:
        if timeout:
            await asyncio.wait_for(lock.acquire(), timeout=timeout)
        else:
            await lock.acquire()
    except asyncio.TimeoutError:
        logger.warning(f"Lock timeout for {key}: {operation}")
        raise LockTimeoutError(f"Could not acquire lock for {key} within {timeout}s")

    logger.debug(f"Lock acquired for {key}: {operation}")
    try:
        yield
    finally:
        lock.release()
        logger.debug(f"Lock released for {key}: {operation}")


def clear_account_locks() -> None:
    """Clear all account locks (useful for testing)."""
    _account_locks.clear()
