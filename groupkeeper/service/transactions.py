"""
Unit of work boundary for service operations.
"""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from groupkeeper.core.errors import DeadlineExceeded, Internal
from groupkeeper.storage.base import Storage, StorageError, UnitOfWork


@asynccontextmanager
async def unit_of_work(
    storage: Storage, timeout: float | None = None
) -> AsyncIterator[UnitOfWork]:
    """
    Open a transaction against `storage` for one operation. Everything done
    through the yielded unit of work commits together, or not at all.

    Parameters
    ----------
    storage
        The storage backend.
    timeout
        Seconds the caller is prepared to wait, including time spent waiting
        on group locks. None waits indefinitely.

    Raises
    ------
    DeadlineExceeded
        If the deadline passed before the unit of work committed; nothing is
        written.
    Internal
        If the storage backend failed; nothing is written.
    """
    try:
        async with asyncio.timeout(timeout):
            async with storage.transaction() as conn:
                yield conn
    except TimeoutError as e:
        raise DeadlineExceeded("Deadline exceeded before the operation completed") from e
    except StorageError as e:
        raise Internal("Storage failure") from e
