# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# asrun/core/exceptions.py
"""Custom exceptions for asrun.

Every fatal condition of a run derives from AsRunError so the CLI can report
it with a single handler. ShutdownWarning is the only one that is never
raised out of a run; it is logged when a best-effort stop fails.
"""
from pathlib import Path


class AsRunError(Exception):
    """Base exception for all asrun errors."""

    pass


class ConfigurationError(AsRunError):
    """Raised when required configuration is missing or invalid."""

    pass


class PreconditionError(AsRunError):
    """Raised when a file or directory the run depends on is missing.

    Attributes:
        path: Absolute path that failed the check.
    """

    def __init__(self, message: str, path: Path | str):
        self.path = Path(path)
        super().__init__(message)


class ProvisioningError(AsRunError):
    """Raised when a server distribution cannot be resolved or unpacked.

    Attributes:
        coordinate: The artifact coordinate being provisioned.
        cause: The underlying exception, if any.
    """

    def __init__(self, message: str, coordinate: str, cause: BaseException | None = None):
        self.coordinate = coordinate
        self.cause = cause
        super().__init__(message)


class ArtifactResolutionError(AsRunError):
    """Raised when no repository can supply an artifact."""

    def __init__(self, coordinate: str, reason: str):
        self.coordinate = coordinate
        self.reason = reason
        super().__init__(f"Could not resolve artifact {coordinate}: {reason}")


class StartupTimeoutError(AsRunError):
    """Raised when the server does not become ready within the startup timeout."""

    def __init__(self, elapsed: float, limit: float):
        """Initialize StartupTimeoutError.

        Args:
            elapsed: Seconds spent waiting for readiness.
            limit: Configured startup timeout in seconds.
        """
        self.elapsed = elapsed
        self.limit = limit
        super().__init__(
            f"Server did not start within {limit:g} seconds "
            f"(waited {elapsed:.1f} seconds)"
        )


class ServerExitedError(AsRunError):
    """Raised when the server process exits on its own."""

    def __init__(self, returncode: int | None):
        self.returncode = returncode
        super().__init__(f"Server process exited unexpectedly with code {returncode}")


class NotReadyError(AsRunError):
    """Raised when an operation requires a started server."""

    def __init__(self, operation: str, state: str):
        self.operation = operation
        self.state = state
        super().__init__(f"Cannot {operation} while the server is {state}")


class ManagementError(AsRunError):
    """Raised when a management operation fails or the server is unreachable."""

    def __init__(self, description: str, operation: str | None = None):
        self.description = description
        self.operation = operation
        super().__init__(description)


class DeploymentError(AsRunError):
    """Raised when the server rejects or fails a deployment."""

    def __init__(self, name: str, cause: BaseException | str):
        self.name = name
        self.cause = cause
        super().__init__(f"Deployment of '{name}' failed: {cause}")


class CommandError(AsRunError):
    """Raised when an administrative command fails."""

    def __init__(self, command: str, description: str):
        self.command = command
        self.description = description
        super().__init__(f"Command '{command}' failed: {description}")


class CommandParseError(CommandError):
    """Raised when a command string is not a valid management operation."""

    pass


class ShutdownWarning(AsRunError):
    """Logged when a best-effort server stop does not complete cleanly."""

    pass
