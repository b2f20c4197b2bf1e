# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
"""Run orchestration: provision, start, deploy, wait, shut down.

Sequence of a run:

1. Resolve the deployment file from build metadata and check it exists.
2. Provision the server installation and validate its directories.
3. Construct the server and attach its stop to the shutdown handle.
4. Start the server and wait for readiness.
5. Run the pre-deployment commands.
6. Deploy the application.
7. Run the post-deployment commands.
8. Wait until a termination signal arrives or the server exits.

The termination callback is registered before step 1. Whatever happens, the
shutdown handle runs exactly once on the way out, so the child process is
never left behind.
"""
from __future__ import annotations

import asyncio
import contextlib
import os
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from loguru import logger

from asrun.config import RunSettings
from asrun.core.exceptions import AsRunError, PreconditionError, ServerExitedError
from asrun.core.types import DeploymentRequest, RunPhase
from asrun.lifecycle.shutdown import ShutdownHandle
from asrun.lifecycle.signals import LoopSignalRegistrar, SignalRegistrar
from asrun.logging import log_run_environment
from asrun.project import BuildMetadata, resolve_build_metadata
from asrun.provisioning.archive import ArchiveProvisioner
from asrun.provisioning.repository import MavenRepository
from asrun.server.installation import (
    EnvironmentReader,
    resolve_installation,
    validate_installation,
)
from asrun.server.process import ServerProcess
from asrun.server.topology import create_server


EXIT_OK = 0
EXIT_INTERRUPTED = 130

ServerFactory = Callable[..., ServerProcess]
MetadataResolver = Callable[[RunSettings], BuildMetadata]


def _metadata_from_settings(settings: RunSettings) -> BuildMetadata:
    return resolve_build_metadata(settings.project_dir, settings.target_dir, settings.filename)


@dataclass
class RunResult:
    """Outcome of a run that was not aborted by an error.

    Attributes:
        exit_code: 0 when stopped from Running, 130 when interrupted earlier.
        interrupted_phase: Phase the termination signal arrived in.
        phases: Every phase the run went through, in order.
    """

    exit_code: int
    interrupted_phase: RunPhase
    phases: list[RunPhase] = field(default_factory=list)


class LifecycleOrchestrator:
    """Drives one server run from provisioning to shutdown.

    Args:
        settings: Run settings.
        provisioner: Provides the installation root; defaults to a
            MavenRepository-backed ArchiveProvisioner.
        environ: Reads environment variables (JAVA_HOME).
        signals: Registers the termination callback.
        server_factory: Builds the ServerProcess for a topology.
        resolve_metadata: Resolves deployment file and name from settings.
    """

    def __init__(
        self,
        settings: RunSettings,
        provisioner: ArchiveProvisioner | None = None,
        environ: EnvironmentReader = os.environ.get,
        signals: SignalRegistrar | None = None,
        server_factory: ServerFactory = create_server,
        resolve_metadata: MetadataResolver = _metadata_from_settings,
    ) -> None:
        self.settings = settings
        self.provisioner = provisioner or ArchiveProvisioner(
            MavenRepository(settings.local_repository, settings.remote_repositories),
            home_prefix=settings.home_prefix,
        )
        self._environ = environ
        self._signals = signals or LoopSignalRegistrar()
        self._server_factory = server_factory
        self._resolve_metadata = resolve_metadata

        self.phase = RunPhase.IDLE
        self.phases: list[RunPhase] = [RunPhase.IDLE]
        self.server: ServerProcess | None = None
        self.deployment: DeploymentRequest | None = None
        self.shutdown = ShutdownHandle()
        self._terminated: asyncio.Event | None = None
        self._interrupted_phase: RunPhase | None = None

    def _enter(self, phase: RunPhase) -> None:
        self.phase = phase
        self.phases.append(phase)
        logger.debug("Run phase", phase=phase.value)

    def request_termination(self) -> None:
        """Termination callback; safe to call at any time and more than once."""
        if self._terminated is not None and not self._terminated.is_set():
            logger.info("Termination requested", phase=self.phase.value)
            self._interrupted_phase = self.phase
            self._terminated.set()

    async def run(self) -> RunResult:
        """Execute the whole run.

        Returns:
            RunResult once the run was terminated by a signal.

        Raises:
            AsRunError: The first fatal error; the server has been stopped.
        """
        self._terminated = asyncio.Event()
        self._interrupted_phase = None
        unregister = self._signals.register(self.request_termination)
        sequence = asyncio.create_task(self._run_sequence())
        terminated = asyncio.create_task(self._terminated.wait())
        try:
            await asyncio.wait({sequence, terminated}, return_when=asyncio.FIRST_COMPLETED)
            if not sequence.done():
                interrupted = self._interrupted_phase or self.phase
                sequence.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await sequence
                return self._finish_terminated(interrupted)
            returncode = sequence.result()
            raise ServerExitedError(returncode)
        except AsRunError as e:
            self._enter(RunPhase.FAILED)
            logger.error("Run failed", phase=self.phases[-2].value, error=str(e))
            raise
        finally:
            terminated.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await terminated
            if not sequence.done():
                sequence.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await sequence
            await self.shutdown.run()
            unregister()
            self._enter(RunPhase.SHUT_DOWN)

    def _finish_terminated(self, interrupted: RunPhase) -> RunResult:
        if interrupted is RunPhase.RUNNING:
            exit_code = EXIT_OK
        else:
            logger.warning("Run interrupted before the server was running", phase=interrupted.value)
            exit_code = EXIT_INTERRUPTED
        return RunResult(exit_code=exit_code, interrupted_phase=interrupted, phases=self.phases)

    async def _advance(self, phase: RunPhase) -> None:
        """Enter the next phase unless termination was already requested."""
        if self._terminated is not None and self._terminated.is_set():
            # Park until run() cancels the sequence
            await asyncio.get_running_loop().create_future()
        self._enter(phase)

    async def _stop_server(self) -> None:
        if self.server is not None:
            await self.server.stop()

    async def _run_sequence(self) -> int | None:
        """Run steps 1-8; returns the exit code if the server exits by itself."""
        settings = self.settings

        metadata = self._resolve_metadata(settings)
        if not metadata.file.exists():
            raise PreconditionError(
                f"The deployment '{metadata.file.absolute()}' could not be found.",
                metadata.file.absolute(),
            )
        self.deployment = DeploymentRequest(file=metadata.file, name=metadata.name)

        await self._advance(RunPhase.PROVISIONING)
        home = await self.provisioner.ensure_installation(
            settings.jboss_home,
            settings.coordinate,
            metadata.target_dir,
        )

        await self._advance(RunPhase.VALIDATING)
        info = resolve_installation(settings, home, self._environ)
        validate_installation(info)
        log_run_environment(info.java_home, str(info.home))

        await self._advance(RunPhase.LAUNCHING)
        self.server = self._server_factory(
            settings.topology,
            info,
            **self._server_options(),
        )
        self.shutdown.attach(self._stop_server)
        logger.info("Server is starting up. Press CTRL + C to stop the server.")
        await self.server.start()

        await self._advance(RunPhase.PRE_COMMANDS)
        await self.server.execute_commands(settings.before_deployment.to_batch())

        await self._advance(RunPhase.DEPLOYING)
        await self.server.deploy(self.deployment.file, self.deployment.name)

        await self._advance(RunPhase.POST_COMMANDS)
        await self.server.execute_commands(settings.after_deployment.to_batch())

        await self._advance(RunPhase.RUNNING)
        return await self.server.wait_for_exit()

    def _server_options(self) -> dict[str, Any]:
        return {
            "poll_interval": self.settings.poll_interval,
            "shutdown_grace_period": self.settings.shutdown_grace_period,
        }

