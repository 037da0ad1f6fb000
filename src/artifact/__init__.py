"""Artifact coordinates, roles and updates."""

from .models import (
    Artifact,
    ArtifactAvailableVersions,
    ArtifactIdentifier,
    ArtifactType,
    ArtifactUpdate,
    GradleArtifactType,
    MavenArtifactType,
    RepositoryType,
)

__all__ = [
    "Artifact",
    "ArtifactAvailableVersions",
    "ArtifactIdentifier",
    "ArtifactType",
    "ArtifactUpdate",
    "GradleArtifactType",
    "MavenArtifactType",
    "RepositoryType",
]
