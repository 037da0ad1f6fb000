"""Base interface for available versions resolvers."""

from abc import ABC, abstractmethod
from typing import Sequence

from artifact.models import Artifact, ArtifactAvailableVersions
from builds.models import Repository


class ArtifactAvailableVersionsResolveError(Exception):
    """Raised when the available versions of an artifact cannot be looked up."""


class ArtifactAvailableVersionsResolver(ABC):
    """Looks up the versions of an artifact published in a set of repositories."""

    @abstractmethod
    def resolve(self, artifact: Artifact, repositories: Sequence[Repository]) -> ArtifactAvailableVersions:
        """Resolve the available versions of an artifact.

        Args:
            artifact: Artifact to look up
            repositories: Repositories declared by the artifact's build

        Returns:
            The available versions in ascending order

        Raises:
            ArtifactAvailableVersionsResolveError: If no repository can be used.
        """
