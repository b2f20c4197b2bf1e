from asrun.core.exceptions import (
    AsRunError as AsRunError,
    ConfigurationError as ConfigurationError,
    PreconditionError as PreconditionError,
)
from asrun.core.types import (
    RunPhase as RunPhase,
    ServerState as ServerState,
    ServerTopology as ServerTopology,
)
