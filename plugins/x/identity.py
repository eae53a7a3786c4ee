# plugins/x/identity.py
"""
Cached identity of the authenticated user.

Operations acting on the caller's own account (likes, follows, bookmarks...)
need the caller's numeric user id. It is looked up once per process from
``GET /2/users/me`` and reused afterwards.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


class IdentityCache:
    """
    Single-flight memoization cell for the caller's user id.

    Concurrent first callers share one in-flight lookup. A successful result
    is kept for the lifetime of the process; a failed lookup is forgotten so
    the next caller can try again.

    Args:
        resolver (Callable[[], Awaitable[str]]): Coroutine function performing the lookup
    """

    def __init__(self, resolver: Callable[[], Awaitable[str]]):
        self._resolver = resolver
        self._lookup: Optional[asyncio.Future] = None

    @property
    def resolved(self) -> bool:
        return (
            self._lookup is not None
            and self._lookup.done()
            and not self._lookup.cancelled()
            and self._lookup.exception() is None
        )

    async def get(self) -> str:
        if self._lookup is None:
            logger.debug("Resolving authenticated user id")
            self._lookup = asyncio.ensure_future(self._resolver())
            self._lookup.add_done_callback(self._forget_failure)
        return await asyncio.shield(self._lookup)

    def _forget_failure(self, lookup: asyncio.Future) -> None:
        if lookup.cancelled() or lookup.exception() is not None:
            if self._lookup is lookup:
                self._lookup = None
        else:
            logger.info(f"Authenticated as user {lookup.result()}")
