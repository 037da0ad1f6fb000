"""Data models for build files and resolved builds."""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Iterable, Optional, Tuple

from artifact.models import Artifact, RepositoryType


class BuildFileType(Enum):
    """Build file kinds, valued by their file name."""
    MAVEN = "pom.xml"
    GRADLE_GROOVY = "build.gradle"
    GRADLE_KOTLIN = "build.gradle.kts"

    @property
    def file_name(self) -> str:
        return self.value

    @classmethod
    def from_file_name(cls, file_name: str) -> Optional["BuildFileType"]:
        """Return the type matching the file name exactly, or None."""
        for member in cls:
            if member.value == file_name:
                return member
        return None


@dataclass(frozen=True)
class BuildFile:
    """A build file found on disk."""
    type: BuildFileType
    file: Path


@dataclass(frozen=True)
class Repository:
    """A package repository declared by a build.

    ``auth`` holds the credentials of a matching Maven ``server`` entry; it
    is neither printed nor compared.
    """
    type: RepositoryType
    id: str
    url: str
    auth: Optional[Tuple[str, str]] = field(default=None, repr=False, compare=False)

    def __post_init__(self) -> None:
        if not self.id:
            raise ValueError("Invalid repository id: empty value")
        if not self.url:
            raise ValueError("Invalid repository url: empty value")


def _copy(name: str, items: Iterable) -> Tuple:
    copied = tuple(items)
    if any(item is None for item in copied):
        raise ValueError(f"Invalid {name}: contains a None element")
    return copied


@dataclass(frozen=True)
class Build:
    """Repositories and artifacts resolved from one build file."""
    file: BuildFile
    repositories: Tuple[Repository, ...]
    artifacts: Tuple[Artifact, ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "repositories", _copy("repositories", self.repositories))
        object.__setattr__(self, "artifacts", _copy("artifacts", self.artifacts))
