# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
import asyncio
from pathlib import Path
from typing import Annotated

import typer
import yaml
from pydantic import ValidationError

from asrun import __version__
from asrun.config import RunSettings, load_settings
from asrun.core.exceptions import (
    AsRunError,
    CommandError,
    ConfigurationError,
    DeploymentError,
    PreconditionError,
    ProvisioningError,
    ServerExitedError,
    StartupTimeoutError,
)
from asrun.core.types import ServerTopology
from asrun.lifecycle.orchestrator import LifecycleOrchestrator
from asrun.logging import configure_logging


app = typer.Typer(help="Run an application server with your deployment")

_FAILURE_LABELS: list[tuple[type[AsRunError], str]] = [
    (PreconditionError, "Precondition failed"),
    (ConfigurationError, "Invalid configuration"),
    (ProvisioningError, "Provisioning failed"),
    (StartupTimeoutError, "Server startup failed"),
    (ServerExitedError, "Server failed"),
    (DeploymentError, "Deployment failed"),
    (CommandError, "Command failed"),
]


def _failure_label(error: AsRunError) -> str:
    for error_type, label in _FAILURE_LABELS:
        if isinstance(error, error_type):
            return label
    return "Run failed"


@app.callback()
def main_callback(
    log_level: Annotated[
        str,
        typer.Option("--log-level", help="Minimum log level (DEBUG, INFO, WARNING, ...)"),
    ] = "INFO",
) -> None:
    """
    asrun: run an application server with your deployment.
    """
    configure_logging(log_level.upper())


def _safe_load_settings(config_path: Path | None, **overrides: object) -> RunSettings:
    """Load settings, turning configuration problems into a clean exit.

    Raises:
        typer.Exit: If the settings file is missing or invalid.
    """
    try:
        return load_settings(config_path, **overrides)
    except FileNotFoundError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1) from None
    except (yaml.YAMLError, ValidationError) as e:
        typer.echo(f"Error loading settings: {e}", err=True)
        raise typer.Exit(code=1) from None


@app.command()
def run(
    config: Annotated[
        Path | None,
        typer.Option("--config", "-c", help="YAML settings file (default: asrun.yaml if present)"),
    ] = None,
    jboss_home: Annotated[
        str | None,
        typer.Option("--jboss-home", help="Existing server installation; skips the download"),
    ] = None,
    server_version: Annotated[
        str | None,
        typer.Option("--server-version", help="Server distribution version to download"),
    ] = None,
    modules_path: Annotated[str | None, typer.Option("--modules-path")] = None,
    bundles_path: Annotated[str | None, typer.Option("--bundles-path")] = None,
    jvm_args: Annotated[
        str | None,
        typer.Option("--jvm-args", help="Space delimited JVM arguments"),
    ] = None,
    java_home: Annotated[str | None, typer.Option("--java-home")] = None,
    server_config: Annotated[
        str | None,
        typer.Option("--server-config", help="Server configuration file, e.g. standalone-full.xml"),
    ] = None,
    startup_timeout: Annotated[
        float | None,
        typer.Option("--startup-timeout", help="Seconds to wait for the server (default: 60)"),
    ] = None,
    topology: Annotated[ServerTopology | None, typer.Option("--topology")] = None,
    hostname: Annotated[str | None, typer.Option("--hostname", help="Management host")] = None,
    port: Annotated[int | None, typer.Option("--port", "-p", help="Management HTTP port")] = None,
    username: Annotated[str | None, typer.Option("--username")] = None,
    password: Annotated[str | None, typer.Option("--password")] = None,
    project_dir: Annotated[Path | None, typer.Option("--project-dir")] = None,
    target_dir: Annotated[
        Path | None,
        typer.Option("--target-dir", help="Directory holding the deployment"),
    ] = None,
    filename: Annotated[
        str | None,
        typer.Option("--filename", help="Deployment file name"),
    ] = None,
) -> None:
    """Start the server, deploy the application and run until interrupted.

    Press CTRL + C to stop the server.
    """
    settings = _safe_load_settings(
        config,
        jboss_home=jboss_home,
        version=server_version,
        modules_path=modules_path,
        bundles_path=bundles_path,
        jvm_args=jvm_args,
        java_home=java_home,
        server_config=server_config,
        startup_timeout=startup_timeout,
        topology=topology,
        hostname=hostname,
        port=port,
        username=username,
        password=password,
        project_dir=project_dir,
        target_dir=target_dir,
        filename=filename,
    )

    orchestrator = LifecycleOrchestrator(settings)
    try:
        result = asyncio.run(orchestrator.run())
    except AsRunError as e:
        typer.echo(f"Error: {_failure_label(e)}: {e}", err=True)
        raise typer.Exit(code=1) from None

    raise typer.Exit(code=result.exit_code)


@app.command()
def version() -> None:
    """Print the asrun version."""
    typer.echo(__version__)


if __name__ == "__main__":
    app()
