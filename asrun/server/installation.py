# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
"""Resolution and validation of InstallationInfo."""
import os
from collections.abc import Callable
from pathlib import Path

from asrun.config import RunSettings
from asrun.core.exceptions import PreconditionError
from asrun.core.types import InstallationInfo


EnvironmentReader = Callable[[str], str | None]


def java_executable(java_home: str | None) -> str:
    """JVM binary below java_home, or plain 'java' to be found on PATH."""
    if not java_home:
        return "java"
    name = "java.exe" if os.name == "nt" else "java"
    return str(Path(java_home) / "bin" / name)


def resolve_installation(
    settings: RunSettings,
    home: Path,
    environ: EnvironmentReader,
) -> InstallationInfo:
    """Combine the installation root with settings and the environment.

    Modules and bundles default to ``<home>/modules`` and ``<home>/bundles``.
    JAVA_HOME is read from the environment unless overridden in settings.

    Args:
        settings: Run settings.
        home: Installation root returned by provisioning.
        environ: Reads environment variables.

    Returns:
        Unvalidated InstallationInfo.
    """
    java_home = settings.java_home or environ("JAVA_HOME")
    return InstallationInfo(
        home=home,
        modules_dir=Path(settings.modules_path) if settings.modules_path else home / "modules",
        bundles_dir=Path(settings.bundles_path) if settings.bundles_path else home / "bundles",
        java_executable=java_executable(java_home),
        java_home=java_home,
        jvm_args=tuple(settings.jvm_arg_list),
        server_config=settings.server_config,
        startup_timeout=settings.startup_timeout,
        hostname=settings.hostname,
        port=settings.port,
        username=settings.username,
        password=settings.password,
    )


def validate_installation(info: InstallationInfo) -> None:
    """Check the installation directories before anything is launched.

    Raises:
        PreconditionError: If home, modules or bundles is not a directory.
    """
    checks = [
        ("Server home", info.home),
        ("Modules path", info.modules_dir),
        ("Bundles path", info.bundles_dir),
    ]
    for label, path in checks:
        if not path.is_dir():
            raise PreconditionError(
                f"{label} '{path.absolute()}' is not a valid directory.", path.absolute()
            )
