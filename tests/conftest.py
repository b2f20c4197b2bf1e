# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
"""Shared fixtures and fakes for the asrun test suite.

FakeServer launches a real (sleeping) Python child process so start/stop
behaviour is exercised against a genuine OS process, while
FakeManagementClient stands in for the server's management interface.
"""
import sys
import zipfile
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any

import pytest

from asrun.config import RunSettings
from asrun.core.exceptions import ManagementError
from asrun.core.types import InstallationInfo, ServerTopology
from asrun.server.process import ServerProcess


class FakeManagementClient:
    """In-memory ManagementClient.

    Args:
        ready_after: Number of server-state reads that report 'starting'
            before 'running' is returned.
        never_ready: Never report 'running'.
        fail_operations: Operation names that fail with ManagementError.
        deploy_error: Description of a deployment failure, if any.
    """

    def __init__(
        self,
        ready_after: int = 0,
        never_ready: bool = False,
        fail_operations: tuple[str, ...] = (),
        deploy_error: str | None = None,
    ) -> None:
        self.ready_after = ready_after
        self.never_ready = never_ready
        self.fail_operations = fail_operations
        self.deploy_error = deploy_error
        self.executed: list[dict[str, Any]] = []
        self.deployed: list[tuple[Path, str]] = []
        self.state_reads = 0
        self.shutdown_calls = 0
        self.closed = False
        # Awaited before the named call proceeds; used to pause a run mid-step
        self.hooks: dict[str, Callable[[], Awaitable[None]]] = {}

    async def _hook(self, name: str) -> None:
        hook = self.hooks.get(name)
        if hook is not None:
            await hook()

    async def execute(self, operation: dict[str, Any]) -> Any:
        self.executed.append(operation)
        await self._hook(f"execute:{operation['operation']}")
        if operation["operation"] in self.fail_operations:
            raise ManagementError(f"{operation['operation']} rejected", operation["operation"])
        return None

    async def server_state(self) -> str | None:
        self.state_reads += 1
        await self._hook("server_state")
        if self.never_ready:
            return None
        return "running" if self.state_reads > self.ready_after else "starting"

    async def deploy(self, file: Path, name: str) -> None:
        await self._hook("deploy")
        if self.deploy_error:
            raise ManagementError(self.deploy_error, "deploy")
        self.deployed.append((file, name))

    async def shutdown(self) -> None:
        self.shutdown_calls += 1

    async def close(self) -> None:
        self.closed = True


class FakeServer(ServerProcess):
    """ServerProcess whose child is a sleeping Python interpreter."""

    def build_command(self) -> list[str]:
        return [sys.executable, "-c", "import time; time.sleep(120)"]


class FakeSignals:
    """SignalRegistrar that lets a test deliver the termination signal."""

    def __init__(self) -> None:
        self.callback: Callable[[], None] | None = None
        self.registrations = 0
        self.unregistered = False

    def register(self, callback: Callable[[], None]) -> Callable[[], None]:
        self.registrations += 1
        self.callback = callback
        return self._unregister

    def _unregister(self) -> None:
        self.unregistered = True

    def fire(self) -> None:
        assert self.callback is not None, "no termination callback registered"
        self.callback()


@pytest.fixture
def server_home(tmp_path: Path) -> Path:
    """A minimal installation root with modules and bundles directories."""
    home = tmp_path / "jboss-as-7.1.1.Final"
    (home / "modules").mkdir(parents=True)
    (home / "bundles").mkdir()
    return home


@pytest.fixture
def installation_info(server_home: Path) -> InstallationInfo:
    return InstallationInfo(
        home=server_home,
        modules_dir=server_home / "modules",
        bundles_dir=server_home / "bundles",
        java_executable="java",
        startup_timeout=5,
    )


@pytest.fixture
def deployment_file(tmp_path: Path) -> Path:
    target = tmp_path / "project" / "target"
    target.mkdir(parents=True)
    war = target / "app.war"
    war.write_bytes(b"PK\x03\x04 fake war")
    return war


@pytest.fixture
def run_settings_factory(
    server_home: Path,
    deployment_file: Path,
) -> Callable[..., RunSettings]:
    """Factory for RunSettings pointing at the fake installation and deployment."""

    def _create(**overrides: Any) -> RunSettings:
        values: dict[str, Any] = {
            "jboss_home": str(server_home),
            "project_dir": deployment_file.parent.parent,
            "target_dir": deployment_file.parent,
            "filename": deployment_file.name,
            "startup_timeout": 5,
            "poll_interval": 0.01,
            "shutdown_grace_period": 0.3,
            "topology": ServerTopology.STANDALONE,
        }
        values.update(overrides)
        return RunSettings(**values)

    return _create


@pytest.fixture
def make_zip(tmp_path: Path) -> Callable[[dict[str, bytes | None]], Path]:
    """Create a zip archive; a None value makes a directory entry."""

    def _create(entries: dict[str, bytes | None], name: str = "dist.zip") -> Path:
        archive = tmp_path / name
        with zipfile.ZipFile(archive, "w") as zf:
            for entry, content in entries.items():
                if content is None:
                    zf.writestr(zipfile.ZipInfo(entry.rstrip("/") + "/"), b"")
                else:
                    zf.writestr(entry, content)
        return archive

    return _create
