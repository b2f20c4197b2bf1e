"""Server distribution resolution and extraction."""
from asrun.provisioning.archive import ArchiveProvisioner, unpack_archive
from asrun.provisioning.repository import ArtifactRepository, MavenRepository


__all__ = [
    "ArchiveProvisioner",
    "ArtifactRepository",
    "MavenRepository",
    "unpack_archive",
]
