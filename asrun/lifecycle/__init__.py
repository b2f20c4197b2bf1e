"""Run orchestration, shutdown handling and signal registration."""
from asrun.lifecycle.orchestrator import (
    EXIT_INTERRUPTED,
    EXIT_OK,
    LifecycleOrchestrator,
    RunResult,
)
from asrun.lifecycle.shutdown import ShutdownHandle
from asrun.lifecycle.signals import LoopSignalRegistrar, SignalRegistrar


__all__ = [
    "EXIT_INTERRUPTED",
    "EXIT_OK",
    "LifecycleOrchestrator",
    "LoopSignalRegistrar",
    "RunResult",
    "ShutdownHandle",
    "SignalRegistrar",
]
