# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
"""Termination signal registration.

The orchestrator receives a SignalRegistrar instead of touching process-wide
signal state itself, so tests can deliver "signals" by calling the
registered callback.
"""
import asyncio
import signal
from collections.abc import Callable, Sequence
from typing import Protocol


TerminationCallback = Callable[[], None]
Unregister = Callable[[], None]


class SignalRegistrar(Protocol):
    """Installs one termination callback for the lifetime of a run."""

    def register(self, callback: TerminationCallback) -> Unregister:
        """Install callback and return a function that removes it again."""
        ...


class LoopSignalRegistrar:
    """Delivers SIGINT/SIGTERM to the callback on the running event loop."""

    def __init__(self, signals: Sequence[signal.Signals] = (signal.SIGINT, signal.SIGTERM)) -> None:
        self.signals = tuple(signals)

    def register(self, callback: TerminationCallback) -> Unregister:
        loop = asyncio.get_running_loop()
        try:
            for sig in self.signals:
                loop.add_signal_handler(sig, callback)
        except NotImplementedError:
            # Event loops without add_signal_handler (Windows)
            return self._register_fallback(loop, callback)

        def unregister() -> None:
            for sig in self.signals:
                loop.remove_signal_handler(sig)

        return unregister

    def _register_fallback(
        self,
        loop: asyncio.AbstractEventLoop,
        callback: TerminationCallback,
    ) -> Unregister:
        previous = {sig: signal.getsignal(sig) for sig in self.signals}

        def handler(signum: int, frame: object) -> None:
            loop.call_soon_threadsafe(callback)

        for sig in self.signals:
            signal.signal(sig, handler)

        def unregister() -> None:
            for sig, old in previous.items():
                signal.signal(sig, old)

        return unregister
