"""Tests for LoopSignalRegistrar."""
import asyncio
import os
import signal
import sys

import pytest

from asrun.lifecycle.signals import LoopSignalRegistrar


pytestmark = pytest.mark.skipif(sys.platform == "win32", reason="POSIX signals only")


async def test_signal_invokes_callback() -> None:
    received = asyncio.Event()
    registrar = LoopSignalRegistrar(signals=(signal.SIGUSR1,))

    unregister = registrar.register(received.set)
    try:
        os.kill(os.getpid(), signal.SIGUSR1)
        await asyncio.wait_for(received.wait(), timeout=2)
    finally:
        unregister()


async def test_unregister_restores_default_handler() -> None:
    registrar = LoopSignalRegistrar(signals=(signal.SIGUSR1,))

    unregister = registrar.register(lambda: None)
    unregister()

    assert signal.getsignal(signal.SIGUSR1) is signal.SIG_DFL
