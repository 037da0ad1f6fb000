"""Base interface for build resolvers."""

from abc import ABC, abstractmethod
from typing import FrozenSet

from .models import Build, BuildFile, BuildFileType


class BuildResolveError(Exception):
    """Raised when a build file cannot be resolved into a Build."""


class BuildResolver(ABC):
    """Turns a build file into the repositories and artifacts it declares."""

    @property
    @abstractmethod
    def file_types(self) -> FrozenSet[BuildFileType]:
        """Return the build file types this resolver handles."""

    @abstractmethod
    def resolve(self, build_file: BuildFile) -> Build:
        """Resolve a build file.

        Args:
            build_file: Build file of one of ``file_types``

        Returns:
            The resolved build

        Raises:
            BuildResolveError: If the build file is malformed or the build
                tool could not describe it.
        """
