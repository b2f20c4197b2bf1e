# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
"""Build metadata: where the deployment artifact lives and what it is called.

The deployment file name defaults to ``<finalName>.<packaging>`` and the
target directory to the project's build directory, both read from
``pom.xml``. Explicit overrides skip the POM entirely.
"""
import re
import xml.etree.ElementTree as ET
from pathlib import Path

from pydantic import BaseModel, ConfigDict

from asrun.core.exceptions import ConfigurationError


_PROPERTY_RE = re.compile(r"\$\{([^}]+)\}")


class ProjectBuild(BaseModel):
    """Build coordinates read from a project descriptor.

    Attributes:
        base_dir: Project base directory.
        artifact_id: Project artifact id.
        version: Project version.
        packaging: Packaging type, used as the deployment extension.
        final_name: Build output name without extension.
        build_dir: Build output directory.
    """

    model_config = ConfigDict(frozen=True)

    base_dir: Path
    artifact_id: str
    version: str
    packaging: str = "jar"
    final_name: str
    build_dir: Path


class BuildMetadata(BaseModel):
    """The three values the orchestrator needs from the build.

    Attributes:
        file: Absolute path of the deployment artifact.
        name: Logical deployment name.
        target_dir: Directory the artifact was resolved in.
    """

    model_config = ConfigDict(frozen=True)

    file: Path
    name: str
    target_dir: Path


def _text(element: ET.Element, path: str) -> str | None:
    found = element.find(path)
    if found is None or found.text is None:
        return None
    return found.text.strip()


def _interpolate(value: str, properties: dict[str, str]) -> str:
    """Replace ${...} references with known properties, leaving unknown ones intact."""
    return _PROPERTY_RE.sub(lambda m: properties.get(m.group(1), m.group(0)), value)


def read_pom(base_dir: Path) -> ProjectBuild:
    """Read build coordinates from ``base_dir/pom.xml``.

    Args:
        base_dir: Project directory containing pom.xml.

    Returns:
        ProjectBuild with defaults applied the way the build tool applies them.

    Raises:
        ConfigurationError: If pom.xml is missing, malformed, or has no artifactId.
    """
    pom = base_dir / "pom.xml"
    if not pom.is_file():
        raise ConfigurationError(
            f"No pom.xml found in '{base_dir.resolve()}'; set target_dir and filename explicitly"
        )
    try:
        root = ET.parse(pom).getroot()
    except ET.ParseError as e:
        raise ConfigurationError(f"Could not parse '{pom}': {e}") from e
    # POMs may or may not declare the POM namespace
    for element in root.iter():
        element.tag = element.tag.split("}", 1)[-1]

    artifact_id = _text(root, "artifactId")
    if not artifact_id:
        raise ConfigurationError(f"'{pom}' does not declare an artifactId")
    # A module may inherit its version from the parent
    version = _text(root, "version") or _text(root, "parent/version") or ""

    properties = {
        "project.artifactId": artifact_id,
        "artifactId": artifact_id,
        "project.version": version,
        "version": version,
        "project.basedir": str(base_dir),
        "basedir": str(base_dir),
    }
    props = root.find("properties")
    if props is not None:
        for prop in props:
            properties[prop.tag] = (prop.text or "").strip()

    build_dir = _interpolate(_text(root, "build/directory") or "target", properties)
    properties["project.build.directory"] = build_dir
    final_name = _interpolate(
        _text(root, "build/finalName") or f"{artifact_id}-{version}",
        properties,
    )

    build_path = Path(build_dir)
    if not build_path.is_absolute():
        build_path = base_dir / build_path

    return ProjectBuild(
        base_dir=base_dir,
        artifact_id=artifact_id,
        version=version,
        packaging=_text(root, "packaging") or "jar",
        final_name=final_name,
        build_dir=build_path,
    )


def resolve_build_metadata(
    project_dir: Path,
    target_dir: Path | None = None,
    filename: str | None = None,
) -> BuildMetadata:
    """Resolve the deployment file, its logical name and the target directory.

    The POM is only read for values that are not overridden.

    Args:
        project_dir: Project base directory.
        target_dir: Explicit directory holding the deployment.
        filename: Explicit deployment file name.

    Returns:
        BuildMetadata with an absolute file path. The file is not checked here.
    """
    project: ProjectBuild | None = None
    if target_dir is None or filename is None:
        project = read_pom(project_dir)

    if filename is None:
        assert project is not None
        filename = f"{project.final_name}.{project.packaging}"
    if target_dir is None:
        assert project is not None
        target_dir = project.build_dir
    elif not target_dir.is_absolute():
        target_dir = project_dir / target_dir

    target_dir = target_dir.absolute()
    return BuildMetadata(file=target_dir / filename, name=filename, target_dir=target_dir)
