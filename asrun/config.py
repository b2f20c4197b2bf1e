# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
"""Run configuration with environment variable and YAML file support."""
import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from asrun.core.types import ArtifactCoordinate, CommandBatch, ServerTopology


DEFAULT_SETTINGS_FILE = "asrun.yaml"

DEFAULT_REMOTE_REPOSITORIES = [
    "https://repository.jboss.org/nexus/content/groups/public/",
    "https://repo.maven.apache.org/maven2/",
]


class CommandsConfig(BaseModel):
    """Commands to run before or after the deployment.

    Attributes:
        commands: Management operations in CLI syntax, run in order.
        batch: Execute all commands as one atomic composite operation.
    """

    commands: list[str] = Field(default_factory=list)
    batch: bool = False

    def to_batch(self) -> CommandBatch:
        return CommandBatch(commands=tuple(self.commands), batch=self.batch)


class RunSettings(BaseSettings):
    """Settings for one ``asrun run`` invocation.

    All settings can be overridden via environment variables with the ASRUN_
    prefix. Example: ASRUN_STARTUP_TIMEOUT=120 overrides the startup timeout.
    Nested command lists use a double underscore:
    ASRUN_BEFORE_DEPLOYMENT__BATCH=true.
    """

    model_config = SettingsConfigDict(
        env_prefix="ASRUN_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
    )

    # Installation
    jboss_home: str | None = Field(
        default=None,
        description="Existing server installation; skips the download when set",
    )
    group_id: str = Field(default="org.jboss.as", description="Distribution group id")
    artifact_id: str = Field(default="jboss-as-dist", description="Distribution artifact id")
    archive_type: str = Field(default="zip", description="Distribution archive type")
    version: str = Field(default="7.1.1.Final", description="Distribution version")
    home_prefix: str = Field(
        default="jboss-as",
        description="Name prefix of the top-level directory inside the archive",
    )
    modules_path: str | None = Field(default=None, description="Modules directory")
    bundles_path: str | None = Field(default=None, description="Bundles directory")

    # Repository
    local_repository: Path = Field(
        default_factory=lambda: Path.home() / ".m2" / "repository",
        description="Local Maven-layout repository used as download cache",
    )
    remote_repositories: list[str] = Field(
        default_factory=lambda: list(DEFAULT_REMOTE_REPOSITORIES),
        description="Remote repositories tried in order",
    )

    # JVM
    jvm_args: str | None = Field(default=None, description="Space delimited JVM arguments")
    java_home: str | None = Field(default=None, description="JAVA_HOME override")
    server_config: str | None = Field(default=None, description="Server configuration file name")
    topology: ServerTopology = Field(default=ServerTopology.STANDALONE)

    # Timeouts
    startup_timeout: float = Field(default=60, gt=0, description="Seconds to wait for startup")
    shutdown_grace_period: float = Field(
        default=10.0,
        gt=0,
        description="Seconds to wait for a graceful stop before killing the process",
    )
    poll_interval: float = Field(
        default=0.5,
        gt=0,
        le=10,
        description="Seconds between readiness checks",
    )

    # Management connection
    hostname: str = Field(default="localhost", description="Management interface host")
    port: int = Field(default=9990, ge=1, le=65535, description="Management HTTP port")
    username: str | None = Field(default=None, description="Management user")
    password: str | None = Field(default=None, description="Management password")

    # Commands
    before_deployment: CommandsConfig = Field(default_factory=CommandsConfig)
    after_deployment: CommandsConfig = Field(default_factory=CommandsConfig)

    # Deployment
    project_dir: Path = Field(default_factory=Path.cwd, description="Project base directory")
    target_dir: Path | None = Field(default=None, description="Directory holding the deployment")
    filename: str | None = Field(default=None, description="Deployment file name")

    @field_validator("jboss_home", "jvm_args", "java_home", "server_config", "filename")
    @classmethod
    def _blank_is_unset(cls, value: str | None) -> str | None:
        if value is not None and not value.strip():
            return None
        return value

    @property
    def coordinate(self) -> ArtifactCoordinate:
        return ArtifactCoordinate(
            group_id=self.group_id,
            artifact_id=self.artifact_id,
            archive_type=self.archive_type,
            version=self.version,
        )

    @property
    def jvm_arg_list(self) -> list[str]:
        """JVM arguments split on whitespace."""
        return self.jvm_args.split() if self.jvm_args else []


def load_settings(
    config_path: Path | None = None,
    **overrides: Any,
) -> RunSettings:
    """Load run settings from YAML, environment and explicit overrides.

    Resolution order for the YAML file:
    1. Explicit config_path parameter (if provided; must exist)
    2. ASRUN_SETTINGS environment variable (if set; must exist)
    3. 'asrun.yaml' in the current directory, if present

    Explicit overrides win over the file, which wins over the environment.
    Overrides whose value is None are ignored.

    Args:
        config_path: Optional explicit path to the configuration file.
        **overrides: Field values, typically from CLI options.

    Returns:
        Validated RunSettings.

    Raises:
        FileNotFoundError: If an explicitly named configuration file does not exist.
        yaml.YAMLError: If the YAML file is malformed.
        pydantic.ValidationError: If the configuration fails validation.
    """
    required = True
    if config_path is None:
        env_path = os.environ.get("ASRUN_SETTINGS")
        if env_path:
            config_path = Path(env_path)
        else:
            config_path = Path(DEFAULT_SETTINGS_FILE)
            required = False

    data: dict[str, Any] = {}
    if config_path.exists():
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
    elif required:
        raise FileNotFoundError(f"Configuration file not found at {config_path}")

    data.update({k: v for k, v in overrides.items() if v is not None})
    return RunSettings(**data)
