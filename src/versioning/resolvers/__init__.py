"""Available versions resolvers."""

from .base import ArtifactAvailableVersionsResolver, ArtifactAvailableVersionsResolveError
from .maven import MavenArtifactAvailableVersionsResolver

__all__ = [
    "ArtifactAvailableVersionsResolver",
    "ArtifactAvailableVersionsResolveError",
    "MavenArtifactAvailableVersionsResolver",
]
