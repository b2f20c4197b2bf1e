# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
"""Run-once shutdown sequence."""
import asyncio
from collections.abc import Awaitable, Callable

from loguru import logger


class ShutdownHandle:
    """Runs a stop callback at most once.

    Concurrent callers of run() wait for the single execution to finish.
    A callback may be attached after construction; running the handle before
    one is attached still consumes it.
    """

    def __init__(self, callback: Callable[[], Awaitable[None]] | None = None) -> None:
        self._callback = callback
        self._lock = asyncio.Lock()
        self._done = False
        self.invocations = 0

    @property
    def done(self) -> bool:
        return self._done

    def attach(self, callback: Callable[[], Awaitable[None]]) -> None:
        """Set the stop callback; ignored once the handle has run."""
        if not self._done:
            self._callback = callback

    async def run(self) -> None:
        async with self._lock:
            if self._done:
                return
            self._done = True
            if self._callback is None:
                return
            self.invocations += 1
            try:
                await self._callback()
            except Exception as e:
                logger.warning("Shutdown sequence failed", error=str(e))
