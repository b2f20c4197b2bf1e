"""Application server process lifecycle."""
from asrun.server.installation import resolve_installation, validate_installation
from asrun.server.process import ServerProcess, StandaloneServer
from asrun.server.topology import create_server


__all__ = [
    "ServerProcess",
    "StandaloneServer",
    "create_server",
    "resolve_installation",
    "validate_installation",
]
