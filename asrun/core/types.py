# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
"""Shared type definitions for the asrun orchestrator.

Contains the state enums (ServerState, RunPhase, ServerTopology) and the
Pydantic models (ArtifactCoordinate, InstallationInfo, DeploymentRequest,
CommandBatch) passed between the provisioning, server and lifecycle layers.
"""
from enum import StrEnum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field


class ServerState(StrEnum):
    """Lifecycle state of a single server process.

    Attributes:
        NOT_STARTED: Process has not been launched.
        STARTING: Process launched, waiting for readiness.
        STARTED: Server reported ready and accepts management calls.
        STOPPING: Stop requested, process is being shut down.
        STOPPED: Process terminated and resources released.
        FAILED: Startup failed; terminal.
    """

    NOT_STARTED = "not_started"
    STARTING = "starting"
    STARTED = "started"
    STOPPING = "stopping"
    STOPPED = "stopped"
    FAILED = "failed"


class RunPhase(StrEnum):
    """Phase of an orchestrated run."""

    IDLE = "idle"
    PROVISIONING = "provisioning"
    VALIDATING = "validating"
    LAUNCHING = "launching"
    PRE_COMMANDS = "pre_commands"
    DEPLOYING = "deploying"
    POST_COMMANDS = "post_commands"
    RUNNING = "running"
    SHUT_DOWN = "shut_down"
    FAILED = "failed"


class ServerTopology(StrEnum):
    """Server operating mode selected in configuration."""

    STANDALONE = "standalone"
    DOMAIN = "domain"


class ArtifactCoordinate(BaseModel):
    """Repository coordinate of a server distribution archive.

    Attributes:
        group_id: Group id, e.g. 'org.jboss.as'.
        artifact_id: Artifact id, e.g. 'jboss-as-dist'.
        archive_type: Archive extension, e.g. 'zip'.
        version: Distribution version, e.g. '7.1.1.Final'.
    """

    model_config = ConfigDict(frozen=True)

    group_id: str
    artifact_id: str
    archive_type: str = "zip"
    version: str

    def __str__(self) -> str:
        return f"{self.group_id}:{self.artifact_id}:{self.archive_type}:{self.version}"

    @property
    def file_name(self) -> str:
        return f"{self.artifact_id}-{self.version}.{self.archive_type}"

    def relative_path(self) -> Path:
        """Path of the artifact inside a Maven-layout repository."""
        return Path(*self.group_id.split("."), self.artifact_id, self.version, self.file_name)


class InstallationInfo(BaseModel):
    """Everything needed to launch and talk to one server installation.

    Attributes:
        home: Installation root.
        modules_dir: Module repository passed to the module loader.
        bundles_dir: OSGi bundles directory.
        java_executable: JVM binary used to launch the server.
        java_home: JAVA_HOME exported to the server process, if known.
        jvm_args: Arguments passed to the JVM before the boot jar.
        server_config: Server configuration file name, or None for the default.
        startup_timeout: Seconds to wait for readiness.
        hostname: Management interface host.
        port: Management HTTP port.
        username: Management user, if the interface is secured.
        password: Management password.
    """

    model_config = ConfigDict(frozen=True)

    home: Path
    modules_dir: Path
    bundles_dir: Path
    java_executable: str
    java_home: str | None = None
    jvm_args: tuple[str, ...] = ()
    server_config: str | None = None
    startup_timeout: float = Field(default=60.0, gt=0)
    hostname: str = "localhost"
    port: int = Field(default=9990, ge=1, le=65535)
    username: str | None = None
    password: str | None = None

    @property
    def management_url(self) -> str:
        return f"http://{self.hostname}:{self.port}/management"


class DeploymentRequest(BaseModel):
    """An artifact to deploy and the name to deploy it under."""

    model_config = ConfigDict(frozen=True)

    file: Path
    name: str


class CommandBatch(BaseModel):
    """Ordered administrative commands run against a started server.

    Attributes:
        commands: Command strings in execution order.
        batch: Run all commands as one atomic composite operation.
    """

    model_config = ConfigDict(frozen=True)

    commands: tuple[str, ...] = ()
    batch: bool = False

    def __bool__(self) -> bool:
        return bool(self.commands)

    def __len__(self) -> int:
        return len(self.commands)
