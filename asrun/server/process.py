# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
"""Server process management.

A ServerProcess owns one child process and its ServerState. It is the only
place the state changes: start() moves NotStarted → Starting → Started (or
Failed), stop() moves to Stopping → Stopped.
"""
from __future__ import annotations

import asyncio
import contextlib
import os
import re
from abc import ABC, abstractmethod
from collections.abc import Callable
from pathlib import Path

from loguru import logger
from rich.console import Console
from rich.text import Text

from asrun.core.exceptions import (
    DeploymentError,
    ManagementError,
    NotReadyError,
    PreconditionError,
    ServerExitedError,
    ShutdownWarning,
    StartupTimeoutError,
)
from asrun.core.types import CommandBatch, InstallationInfo, ServerState
from asrun.management.client import HttpManagementClient, ManagementClient
from asrun.management.commands import execute_commands


ClientFactory = Callable[[InstallationInfo], ManagementClient]

SERVER_PREFIX = Text("[server] ", style="#5B9BD5")

_LEVEL_RE = re.compile(r"\b(FATAL|ERROR|WARN|WARNING|INFO|DEBUG|TRACE)\b")
_LEVEL_STYLES = {
    "FATAL": "#B5452F",
    "ERROR": "#B5452F",
    "WARN": "#E8A33D",
    "WARNING": "#E8A33D",
    "INFO": "#5B8A72",
    "DEBUG": "#88A896",
    "TRACE": "#88A896",
}

console = Console()


def _get_log_level_style(text: str) -> str:
    """Pick a style from the first log level word in a server log line."""
    match = _LEVEL_RE.search(text[:64])
    if match is None:
        return "#EFF8E2"
    return _LEVEL_STYLES[match.group(1)]


async def stream_output(stream: asyncio.StreamReader, prefix: Text) -> None:
    """Echo a child process stream line by line with a coloured prefix.

    Runs until EOF. Lines longer than the stream limit are replaced by a
    marker so the pipe keeps being drained.

    Args:
        stream: The asyncio stream to read from.
        prefix: The coloured prefix to prepend to each line.
    """
    while True:
        try:
            line = await stream.readline()
        except ValueError:
            # readline() has already discarded the oversized chunk; keep draining
            console.print(prefix + Text("[line exceeds buffer limit, truncated]", style="#E8A33D"))
            continue
        if not line:
            break
        text = line.decode(errors="replace").rstrip()
        if text:
            console.print(prefix + Text(text, style=_get_log_level_style(text)))


def default_client_factory(info: InstallationInfo) -> ManagementClient:
    return HttpManagementClient(info.management_url, info.username, info.password)


class ServerProcess(ABC):
    """One application server child process.

    Args:
        info: Resolved installation to launch.
        client_factory: Creates the management client for the process.
        poll_interval: Seconds between readiness checks.
        shutdown_grace_period: Seconds to wait at each stop escalation step.
    """

    def __init__(
        self,
        info: InstallationInfo,
        client_factory: ClientFactory = default_client_factory,
        poll_interval: float = 0.5,
        shutdown_grace_period: float = 10.0,
    ) -> None:
        self.info = info
        self._client_factory = client_factory
        self._poll_interval = poll_interval
        self._grace_period = shutdown_grace_period
        self._state = ServerState.NOT_STARTED
        self._process: asyncio.subprocess.Process | None = None
        self._client: ManagementClient | None = None
        self._output_task: asyncio.Task[None] | None = None
        self._stopping = False
        self._released = False
        # Serialises deployments and command batches
        self._lock = asyncio.Lock()

    @abstractmethod
    def build_command(self) -> list[str]:
        """Command line that launches the server."""

    def build_environment(self) -> dict[str, str]:
        env = {**os.environ, "JBOSS_HOME": str(self.info.home)}
        if self.info.java_home:
            env["JAVA_HOME"] = self.info.java_home
        return env

    @property
    def state(self) -> ServerState:
        return self._state

    @property
    def is_started(self) -> bool:
        """True while the server is ready for management calls."""
        return self._state is ServerState.STARTED

    @property
    def pid(self) -> int | None:
        return self._process.pid if self._process else None

    @property
    def returncode(self) -> int | None:
        return self._process.returncode if self._process else None

    def _not_ready(self, operation: str) -> NotReadyError:
        return NotReadyError(operation, self._state.value.replace("_", " "))

    async def start(self) -> None:
        """Launch the server and wait until it reports it is running.

        Raises:
            NotReadyError: If start() was already called.
            PreconditionError: If the JVM cannot be launched.
            StartupTimeoutError: If the server is not ready within the startup timeout.
            ServerExitedError: If the process exits during startup.
        """
        if self._state is not ServerState.NOT_STARTED:
            raise self._not_ready("start")

        command = self.build_command()
        self._state = ServerState.STARTING
        logger.info("Starting server", home=str(self.info.home), timeout=self.info.startup_timeout)
        logger.debug("Server command", command=" ".join(command))
        try:
            self._process = await asyncio.create_subprocess_exec(
                *command,
                cwd=self.info.home,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
                stdin=asyncio.subprocess.DEVNULL,
                env=self.build_environment(),
            )
        except OSError as e:
            self._state = ServerState.FAILED
            raise PreconditionError(
                f"Could not launch server with '{command[0]}': {e}", command[0]
            ) from e

        assert self._process.stdout is not None
        self._output_task = asyncio.create_task(
            stream_output(self._process.stdout, SERVER_PREFIX)
        )
        self._client = self._client_factory(self.info)
        await self._await_ready()

    async def _await_ready(self) -> None:
        """Poll the server state until running, exited or timed out."""
        assert self._process is not None and self._client is not None
        loop = asyncio.get_running_loop()
        limit = self.info.startup_timeout
        started_at = loop.time()

        while True:
            if self._state is not ServerState.STARTING:
                raise self._not_ready("finish startup")
            if self._process.returncode is not None:
                self._state = ServerState.FAILED
                raise ServerExitedError(self._process.returncode)

            remaining = limit - (loop.time() - started_at)
            try:
                state = await asyncio.wait_for(
                    self._client.server_state(),
                    timeout=max(remaining, self._poll_interval),
                )
            except TimeoutError:
                state = None
            if state == "running":
                self._state = ServerState.STARTED
                logger.success(
                    "Server started",
                    pid=self._process.pid,
                    seconds=round(loop.time() - started_at, 1),
                )
                return

            elapsed = loop.time() - started_at
            if elapsed >= limit:
                self._state = ServerState.FAILED
                raise StartupTimeoutError(elapsed, limit)
            await asyncio.sleep(min(self._poll_interval, limit - elapsed))

    def get_client(self) -> ManagementClient:
        """Management client of the started server.

        The client is closed by stop(); do not keep it across a stop.

        Raises:
            NotReadyError: If the server is not started.
        """
        if not self.is_started or self._client is None:
            raise self._not_ready("use the management client")
        return self._client

    async def deploy(self, file: Path, name: str) -> None:
        """Deploy file under the logical name and wait for the outcome.

        Raises:
            NotReadyError: If the server is not started.
            DeploymentError: If the server rejects or fails the deployment.
        """
        if not self.is_started:
            raise self._not_ready(f"deploy '{name}'")
        client = self.get_client()
        async with self._lock:
            logger.info("Deploying application", name=name, file=str(file))
            try:
                await client.deploy(file, name)
            except ManagementError as e:
                raise DeploymentError(name, e.description) from e
            except OSError as e:
                raise DeploymentError(name, e) from e
        logger.success("Application deployed", name=name)

    async def execute_commands(self, batch: CommandBatch) -> None:
        """Run a command batch; an empty batch is a no-op.

        Raises:
            NotReadyError: If the batch is not empty and the server is not started.
            CommandError: If a command fails.
        """
        if not batch:
            return
        client = self.get_client()
        async with self._lock:
            await execute_commands(client, batch)

    async def wait_for_exit(self) -> int | None:
        """Block until the child process exits.

        Returns:
            The exit code, or None if the process was never launched.
        """
        if self._process is None:
            return None
        return await self._process.wait()

    async def stop(self) -> None:
        """Stop the server; idempotent and never raises.

        A started server is asked to shut down through the management
        interface first. Each escalation step (terminate, kill) waits up to
        the grace period.
        """
        if self._state in (ServerState.STOPPING, ServerState.STOPPED):
            return
        if self._process is None or self._stopping or self._released:
            return

        self._stopping = True
        previous = self._state
        if previous is not ServerState.FAILED:
            self._state = ServerState.STOPPING
        logger.info("Stopping server", pid=self._process.pid)
        try:
            await self._terminate(graceful=previous is ServerState.STARTED)
        except Exception as e:
            warning = ShutdownWarning(f"Server did not stop cleanly: {e}")
            logger.warning(str(warning), pid=self._process.pid)
        finally:
            await self._release()
            if previous is not ServerState.FAILED:
                self._state = ServerState.STOPPED
        logger.info("Server stopped", returncode=self._process.returncode)

    async def _terminate(self, graceful: bool) -> None:
        process = self._process
        assert process is not None

        if graceful and process.returncode is None and self._client is not None:
            try:
                await asyncio.wait_for(self._client.shutdown(), timeout=self._grace_period)
            except Exception as e:
                # The connection may drop while the server goes down; escalate below
                logger.debug("Management shutdown request did not complete", error=str(e))
            if await self._wait_for_process(process):
                return

        for action in (process.terminate, process.kill):
            if process.returncode is not None:
                return
            with contextlib.suppress(ProcessLookupError):
                action()
            if await self._wait_for_process(process):
                return
        raise ShutdownWarning(f"process {process.pid} did not exit")

    async def _wait_for_process(self, process: asyncio.subprocess.Process) -> bool:
        try:
            await asyncio.wait_for(process.wait(), timeout=self._grace_period)
        except TimeoutError:
            return False
        return True

    async def _release(self) -> None:
        """Close the client and finish the output stream."""
        self._released = True
        if self._client is not None:
            try:
                await self._client.close()
            except Exception as e:
                logger.debug("Error closing management client", error=str(e))
        if self._output_task is not None:
            try:
                await asyncio.wait_for(self._output_task, timeout=1.0)
            except TimeoutError:
                pass
            except Exception as e:
                logger.debug("Output stream ended with error", error=str(e))


class StandaloneServer(ServerProcess):
    """A server started in standalone mode from a JBoss AS style installation."""

    def build_command(self) -> list[str]:
        info = self.info
        home = info.home
        command = [
            info.java_executable,
            "-D[Standalone]",
            *info.jvm_args,
            f"-Dorg.jboss.boot.log.file={home / 'standalone' / 'log' / 'boot.log'}",
            f"-Dlogging.configuration=file:{home / 'standalone' / 'configuration' / 'logging.properties'}",
            "-jar",
            str(home / "jboss-modules.jar"),
            "-mp",
            str(info.modules_dir),
            "-jaxpmodule",
            "javax.xml.jaxp-provider",
            "org.jboss.as.standalone",
            f"-Djboss.home.dir={home}",
            f"-Djboss.bundles.dir={info.bundles_dir}",
            f"-Djboss.bind.address.management={info.hostname}",
            f"-Djboss.management.http.port={info.port}",
        ]
        if info.server_config:
            command.append(f"--server-config={info.server_config}")
        return command
