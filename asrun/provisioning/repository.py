# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
"""Maven-layout artifact repository with remote download.

Artifacts are looked up in a local repository first. Missing artifacts are
streamed from the first remote repository that has them into the local
repository, so later runs resolve without network access.
"""
from __future__ import annotations

import os
import tempfile
from collections.abc import Sequence
from pathlib import Path
from typing import Protocol, runtime_checkable

import httpx
from loguru import logger

from asrun.core.exceptions import ArtifactResolutionError
from asrun.core.types import ArtifactCoordinate


@runtime_checkable
class ArtifactRepository(Protocol):
    """Resolves an artifact coordinate to a file on local disk."""

    async def resolve(self, coordinate: ArtifactCoordinate) -> Path:
        """Return the local path of the artifact.

        Raises:
            ArtifactResolutionError: If no repository can supply the artifact.
        """
        ...


class MavenRepository:
    """Resolves coordinates against a local Maven repository and remote mirrors.

    Args:
        local_repository: Root of the local Maven-layout repository.
        remote_urls: Remote repository base URLs, tried in order.
        timeout: Per-request timeout in seconds.
        transport: Optional httpx transport, used by tests.
    """

    def __init__(
        self,
        local_repository: Path,
        remote_urls: Sequence[str],
        timeout: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.local_repository = local_repository
        self.remote_urls = [url.rstrip("/") for url in remote_urls]
        self._timeout = httpx.Timeout(timeout, connect=10.0)
        self._transport = transport

    def local_path(self, coordinate: ArtifactCoordinate) -> Path:
        return self.local_repository / coordinate.relative_path()

    async def resolve(self, coordinate: ArtifactCoordinate) -> Path:
        """Resolve an artifact, downloading it if it is not in the local repository.

        Args:
            coordinate: Artifact to resolve.

        Returns:
            Path of the artifact in the local repository.

        Raises:
            ArtifactResolutionError: If no remote repository has the artifact.
        """
        target = self.local_path(coordinate)
        if target.is_file():
            logger.debug("Artifact found in local repository", path=str(target))
            return target

        if not self.remote_urls:
            raise ArtifactResolutionError(
                str(coordinate), f"not in {self.local_repository} and no remote repositories"
            )

        relative = coordinate.relative_path().as_posix()
        failures: list[str] = []
        async with httpx.AsyncClient(
            timeout=self._timeout,
            follow_redirects=True,
            transport=self._transport,
        ) as client:
            for base_url in self.remote_urls:
                url = f"{base_url}/{relative}"
                logger.info("Downloading artifact", coordinate=str(coordinate), url=url)
                try:
                    if await self._download(client, url, target):
                        return target
                    failures.append(f"{base_url}: not found")
                except (httpx.HTTPError, httpx.InvalidURL, OSError) as e:
                    logger.warning("Download failed", url=url, error=str(e))
                    failures.append(f"{base_url}: {e}")

        raise ArtifactResolutionError(str(coordinate), "; ".join(failures))

    async def _download(self, client: httpx.AsyncClient, url: str, target: Path) -> bool:
        """Stream url into target.

        Returns:
            True if downloaded, False if the repository does not have the artifact.

        Raises:
            httpx.HTTPStatusError: For non-404 error responses.
        """
        async with client.stream("GET", url) as response:
            if response.status_code == 404:
                return False
            response.raise_for_status()

            target.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=target.parent, suffix=".part")
            try:
                with os.fdopen(fd, "wb") as out:
                    async for chunk in response.aiter_bytes():
                        out.write(chunk)
                os.replace(tmp_name, target)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise

        logger.info("Artifact downloaded", path=str(target))
        return True
