"""Single-permit in-flight guard for command submissions."""

import asyncio
from contextlib import asynccontextmanager


class SessionBusyError(Exception):
    """A submission arrived while another one was still running."""
    pass


class InFlightGuard:
    """
    Rejects, never queues: a second holder while one is active raises
    SessionBusyError instead of waiting.
    """

    def __init__(self):
        self._lock = asyncio.Lock()

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    @asynccontextmanager
    async def hold(self):
        if self._lock.locked():
            raise SessionBusyError("Todavía estoy procesando el pedido anterior.")
        async with self._lock:
            yield
