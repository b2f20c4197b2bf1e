"""asrun: run a local application server with your deployment."""

__version__ = "0.1.0"

from asrun.config import RunSettings, load_settings  # noqa: E402
from asrun.lifecycle.orchestrator import LifecycleOrchestrator  # noqa: E402


__all__ = [
    "LifecycleOrchestrator",
    "RunSettings",
    "load_settings",
    "__version__",
]
