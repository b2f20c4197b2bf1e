# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
"""Server distribution provisioning.

Either returns a pre-installed server home untouched, or resolves the
distribution archive through a repository and unpacks it below the build
directory. Re-provisioning always deletes the previous extraction first.
"""
from __future__ import annotations

import asyncio
import shutil
import zipfile
from pathlib import Path

from loguru import logger

from asrun.core.exceptions import ArtifactResolutionError, ProvisioningError
from asrun.core.types import ArtifactCoordinate
from asrun.provisioning.repository import ArtifactRepository


EXTRACT_DIR = "asrun-server"

_COPY_BUFFER_SIZE = 64 * 1024


def unpack_archive(archive: Path, destination: Path) -> None:
    """Extract every entry of a zip archive below destination.

    Directory entries are created with their parents; file entries are
    stream-copied. Output already written is left in place on failure.

    Args:
        archive: Zip file to extract.
        destination: Directory to extract into.

    Raises:
        OSError: On any I/O failure.
        zipfile.BadZipFile: If the archive is corrupt.
        ValueError: If an entry would be written outside destination.
    """
    root = destination.resolve()
    with zipfile.ZipFile(archive) as zf:
        for entry in zf.infolist():
            target = (root / entry.filename).resolve()
            if target != root and root not in target.parents:
                raise ValueError(f"Archive entry '{entry.filename}' escapes {root}")
            if entry.is_dir():
                target.mkdir(parents=True, exist_ok=True)
                continue
            target.parent.mkdir(parents=True, exist_ok=True)
            with zf.open(entry) as src, open(target, "wb") as out:
                shutil.copyfileobj(src, out, _COPY_BUFFER_SIZE)


class ArchiveProvisioner:
    """Guarantees a usable server installation exists on local disk.

    Args:
        repository: Resolves distribution coordinates to local archive files.
        home_prefix: Name prefix of the archive's top-level directory; the
            installation root is ``<home_prefix>-<version>``.
    """

    def __init__(self, repository: ArtifactRepository, home_prefix: str = "jboss-as") -> None:
        self.repository = repository
        self.home_prefix = home_prefix

    async def ensure_installation(
        self,
        explicit_home: str | None,
        coordinate: ArtifactCoordinate,
        destination_dir: Path,
    ) -> Path:
        """Return the installation root, provisioning it when needed.

        Args:
            explicit_home: Pre-installed server home. Returned unchanged when non-empty.
            coordinate: Distribution to resolve when no home is given.
            destination_dir: Directory below which the archive is unpacked.

        Returns:
            The installation root.

        Raises:
            ProvisioningError: If resolution or extraction fails.
        """
        if explicit_home:
            logger.debug("Using existing server installation", home=explicit_home)
            return Path(explicit_home)

        logger.info("Resolving server distribution", coordinate=str(coordinate))
        try:
            archive = await self.repository.resolve(coordinate)
        except ArtifactResolutionError as e:
            raise ProvisioningError(str(e), str(coordinate), e) from e

        target = destination_dir / EXTRACT_DIR
        logger.info("Extracting server distribution", archive=str(archive), target=str(target))
        try:
            await asyncio.to_thread(self._extract, archive, target)
        except (OSError, zipfile.BadZipFile, ValueError) as e:
            raise ProvisioningError(
                f"Error extracting '{archive.name}': {e}", str(coordinate), e
            ) from e

        return target.absolute() / f"{self.home_prefix}-{coordinate.version}"

    def _extract(self, archive: Path, target: Path) -> None:
        if target.exists():
            shutil.rmtree(target)
        target.mkdir(parents=True)
        unpack_archive(archive, target)
