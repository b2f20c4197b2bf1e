"""Tests for server distribution provisioning."""
from collections.abc import Callable
from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from asrun.core.exceptions import ArtifactResolutionError, ProvisioningError
from asrun.core.types import ArtifactCoordinate
from asrun.provisioning.archive import EXTRACT_DIR, ArchiveProvisioner, unpack_archive


@pytest.fixture
def coordinate() -> ArtifactCoordinate:
    return ArtifactCoordinate(
        group_id="org.jboss.as",
        artifact_id="jboss-as-dist",
        version="7.1.1.Final",
    )


@pytest.fixture
def distribution(make_zip: Callable[..., Path]) -> Path:
    return make_zip(
        {
            "jboss-as-7.1.1.Final/": None,
            "jboss-as-7.1.1.Final/modules/": None,
            "jboss-as-7.1.1.Final/bundles/": None,
            "jboss-as-7.1.1.Final/jboss-modules.jar": b"\xca\xfe\xba\xbe" * 1000,
            "jboss-as-7.1.1.Final/standalone/configuration/standalone.xml": b"<server/>",
        }
    )


class TestUnpackArchive:
    def test_extracts_files_and_directories(self, distribution: Path, tmp_path: Path) -> None:
        out = tmp_path / "out"
        out.mkdir()

        unpack_archive(distribution, out)

        home = out / "jboss-as-7.1.1.Final"
        assert (home / "modules").is_dir()
        assert (home / "bundles").is_dir()
        assert (home / "jboss-modules.jar").read_bytes() == b"\xca\xfe\xba\xbe" * 1000
        # Parent directories without their own entry are created too
        assert (home / "standalone" / "configuration" / "standalone.xml").read_bytes() == b"<server/>"

    def test_rejects_entries_outside_destination(
        self, make_zip: Callable[..., Path], tmp_path: Path
    ) -> None:
        archive = make_zip({"../escaped.txt": b"nope"}, name="evil.zip")
        out = tmp_path / "out"
        out.mkdir()

        with pytest.raises(ValueError, match="escapes"):
            unpack_archive(archive, out)
        assert not (tmp_path / "escaped.txt").exists()


class TestArchiveProvisioner:
    async def test_explicit_home_skips_repository(
        self, coordinate: ArtifactCoordinate, tmp_path: Path
    ) -> None:
        repository = AsyncMock()
        provisioner = ArchiveProvisioner(repository)

        home = await provisioner.ensure_installation("/opt/jboss", coordinate, tmp_path)

        assert home == Path("/opt/jboss")
        repository.resolve.assert_not_called()
        assert not (tmp_path / EXTRACT_DIR).exists()

    async def test_provisions_from_repository(
        self, coordinate: ArtifactCoordinate, distribution: Path, tmp_path: Path
    ) -> None:
        repository = AsyncMock()
        repository.resolve.return_value = distribution
        target = tmp_path / "target"

        home = await ArchiveProvisioner(repository).ensure_installation(None, coordinate, target)

        repository.resolve.assert_awaited_once_with(coordinate)
        assert home == (target / EXTRACT_DIR / "jboss-as-7.1.1.Final").absolute()
        assert home.is_absolute()
        assert (home / "modules").is_dir()

    async def test_empty_home_is_treated_as_unset(
        self, coordinate: ArtifactCoordinate, distribution: Path, tmp_path: Path
    ) -> None:
        repository = AsyncMock()
        repository.resolve.return_value = distribution

        await ArchiveProvisioner(repository).ensure_installation("", coordinate, tmp_path)

        repository.resolve.assert_awaited_once()

    async def test_reprovisioning_replaces_previous_extraction(
        self, coordinate: ArtifactCoordinate, distribution: Path, tmp_path: Path
    ) -> None:
        repository = AsyncMock()
        repository.resolve.return_value = distribution
        provisioner = ArchiveProvisioner(repository)

        home = await provisioner.ensure_installation(None, coordinate, tmp_path)
        stray = tmp_path / EXTRACT_DIR / "leftover.txt"
        stray.write_text("from an older run")

        again = await provisioner.ensure_installation(None, coordinate, tmp_path)

        assert again == home
        assert not stray.exists()
        assert (home / "jboss-modules.jar").exists()

    async def test_custom_home_prefix(
        self, make_zip: Callable[..., Path], tmp_path: Path
    ) -> None:
        archive = make_zip({"wildfly-10.1.0.Final/modules/": None}, name="wildfly.zip")
        repository = AsyncMock()
        repository.resolve.return_value = archive
        coordinate = ArtifactCoordinate(
            group_id="org.wildfly", artifact_id="wildfly-dist", version="10.1.0.Final"
        )

        home = await ArchiveProvisioner(repository, home_prefix="wildfly").ensure_installation(
            None, coordinate, tmp_path
        )

        assert home.name == "wildfly-10.1.0.Final"
        assert (home / "modules").is_dir()

    async def test_resolution_failure(self, coordinate: ArtifactCoordinate, tmp_path: Path) -> None:
        repository = AsyncMock()
        repository.resolve.side_effect = ArtifactResolutionError(str(coordinate), "not found")

        with pytest.raises(ProvisioningError) as exc_info:
            await ArchiveProvisioner(repository).ensure_installation(None, coordinate, tmp_path)

        assert exc_info.value.coordinate == "org.jboss.as:jboss-as-dist:zip:7.1.1.Final"
        assert isinstance(exc_info.value.cause, ArtifactResolutionError)

    async def test_corrupt_archive(self, coordinate: ArtifactCoordinate, tmp_path: Path) -> None:
        broken = tmp_path / "broken.zip"
        broken.write_bytes(b"this is not a zip file")
        repository = AsyncMock()
        repository.resolve.return_value = broken

        with pytest.raises(ProvisioningError, match="broken.zip"):
            await ArchiveProvisioner(repository).ensure_installation(None, coordinate, tmp_path)

    async def test_failed_extraction_leaves_earlier_entries(
        self, coordinate: ArtifactCoordinate, make_zip: Callable[..., Path], tmp_path: Path
    ) -> None:
        archive = make_zip(
            {
                "jboss-as-7.1.1.Final/first.txt": b"written before the failure",
                "../escaped.txt": b"nope",
            },
            name="partial.zip",
        )
        repository = AsyncMock()
        repository.resolve.return_value = archive
        target = tmp_path / "target"

        with pytest.raises(ProvisioningError, match="escapes"):
            await ArchiveProvisioner(repository).ensure_installation(None, coordinate, target)

        first = target / EXTRACT_DIR / "jboss-as-7.1.1.Final" / "first.txt"
        assert first.read_bytes() == b"written before the failure"
        assert not (target / "escaped.txt").exists()
