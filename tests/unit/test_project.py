"""Tests for build metadata resolution from pom.xml."""
from pathlib import Path

import pytest

from asrun.core.exceptions import ConfigurationError
from asrun.project import read_pom, resolve_build_metadata


NAMESPACED_POM = """<?xml version="1.0" encoding="UTF-8"?>
<project xmlns="http://maven.apache.org/POM/4.0.0">
  <modelVersion>4.0.0</modelVersion>
  <groupId>org.example</groupId>
  <artifactId>shop</artifactId>
  <version>1.2.0</version>
  <packaging>war</packaging>
  <properties>
    <release.suffix>-final</release.suffix>
  </properties>
  <build>
    <finalName>${project.artifactId}${release.suffix}</finalName>
  </build>
</project>
"""

PLAIN_POM = """<project>
  <parent>
    <groupId>org.example</groupId>
    <artifactId>parent</artifactId>
    <version>3.0</version>
  </parent>
  <artifactId>lib</artifactId>
</project>
"""


def write_pom(directory: Path, content: str) -> Path:
    directory.mkdir(parents=True, exist_ok=True)
    (directory / "pom.xml").write_text(content)
    return directory


class TestReadPom:
    def test_namespaced_pom_with_properties(self, tmp_path: Path) -> None:
        build = read_pom(write_pom(tmp_path / "shop", NAMESPACED_POM))

        assert build.artifact_id == "shop"
        assert build.version == "1.2.0"
        assert build.packaging == "war"
        assert build.final_name == "shop-final"
        assert build.build_dir == tmp_path / "shop" / "target"

    def test_defaults_and_parent_version(self, tmp_path: Path) -> None:
        build = read_pom(write_pom(tmp_path / "lib", PLAIN_POM))

        assert build.version == "3.0"
        assert build.packaging == "jar"
        assert build.final_name == "lib-3.0"

    def test_missing_pom(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigurationError, match="No pom.xml"):
            read_pom(tmp_path)

    def test_malformed_pom(self, tmp_path: Path) -> None:
        write_pom(tmp_path, "<project><artifactId>")
        with pytest.raises(ConfigurationError, match="Could not parse"):
            read_pom(tmp_path)

    def test_pom_without_artifact_id(self, tmp_path: Path) -> None:
        write_pom(tmp_path, "<project><version>1</version></project>")
        with pytest.raises(ConfigurationError, match="artifactId"):
            read_pom(tmp_path)


class TestResolveBuildMetadata:
    def test_from_pom(self, tmp_path: Path) -> None:
        project = write_pom(tmp_path / "shop", NAMESPACED_POM)

        metadata = resolve_build_metadata(project)

        assert metadata.name == "shop-final.war"
        assert metadata.target_dir == (project / "target").absolute()
        assert metadata.file == (project / "target" / "shop-final.war").absolute()

    def test_explicit_values_skip_pom(self, tmp_path: Path) -> None:
        metadata = resolve_build_metadata(tmp_path, Path("out"), "custom.ear")

        assert metadata.name == "custom.ear"
        assert metadata.target_dir == (tmp_path / "out").absolute()
        assert metadata.file == (tmp_path / "out" / "custom.ear").absolute()

    def test_filename_override_keeps_pom_target(self, tmp_path: Path) -> None:
        project = write_pom(tmp_path / "shop", NAMESPACED_POM)

        metadata = resolve_build_metadata(project, filename="shop.war")

        assert metadata.file == (project / "target" / "shop.war").absolute()

    def test_file_existence_is_not_checked(self, tmp_path: Path) -> None:
        metadata = resolve_build_metadata(tmp_path, tmp_path, "missing.war")
        assert not metadata.file.exists()
