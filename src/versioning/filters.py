"""Version compatibility filters.

A factory builds, from the version currently declared by an artifact, a
filter deciding whether a candidate version is an acceptable update.
"""

import re
from abc import ABC, abstractmethod
from typing import Optional

# Trailing alphabetic qualifier, optionally followed by a number ("-jre", ".Final", "-rc1")
QUALIFIER_PATTERN = re.compile(r"^(?:.*[.\-\d])?([a-z]+)[.\-]?\d*$", re.IGNORECASE)

# Pre-release qualifiers, full or abbreviated
PRE_RELEASE_PATTERN = re.compile(
    r"^(?:.*[.\-\d])?(?:alpha|a|beta|b|milestone|m|rc|cr|snapshot)[.\-]?\d*$",
    re.IGNORECASE,
)

SNAPSHOT_SUFFIX = "-SNAPSHOT"


def _require_version(name: str, version: str) -> None:
    if not version:
        raise ValueError(f"Invalid {name}: empty value")


class VersionFilter(ABC):
    """Predicate over candidate version strings."""

    @abstractmethod
    def accept(self, version: str) -> bool:
        """Return True if the version is acceptable."""

    def __call__(self, version: str) -> bool:
        return self.accept(version)


class _SnapshotVersionFilter(VersionFilter):
    def accept(self, version: str) -> bool:
        _require_version("version", version)
        return version.endswith(SNAPSHOT_SUFFIX)


SNAPSHOT = _SnapshotVersionFilter()


class VersionFilterFactory(ABC):
    """Builds a :class:`VersionFilter` for a declared version."""

    @abstractmethod
    def create(self, artifact_version: str) -> VersionFilter:
        """Return the filter for candidates replacing ``artifact_version``."""


def find_qualifier(version: str) -> Optional[str]:
    """Return the trailing qualifier of a version, e.g. ``jre`` for ``31.1-jre``."""
    match = QUALIFIER_PATTERN.fullmatch(version)
    return match.group(1) if match else None


class QualifierVersionFilter(VersionFilter):
    """Accepts candidates sharing the declared qualifier, or without one."""

    def __init__(self, artifact_version: str):
        _require_version("artifact_version", artifact_version)
        self.artifact_version = artifact_version
        self.artifact_qualifier = find_qualifier(artifact_version)

    def accept(self, version: str) -> bool:
        _require_version("version", version)
        if self.artifact_qualifier is None:
            return True
        qualifier = find_qualifier(version)
        return qualifier is None or qualifier.lower() == self.artifact_qualifier.lower()


class QualifierVersionFilterFactory(VersionFilterFactory):
    """Keeps a ``-jre`` artifact from being updated to an ``-android`` flavor."""

    def create(self, artifact_version: str) -> VersionFilter:
        return QualifierVersionFilter(artifact_version)


class ReleaseVersionFilter(VersionFilter):
    """Rejects alpha, beta, milestone, release candidate and snapshot versions."""

    def accept(self, version: str) -> bool:
        _require_version("version", version)
        return PRE_RELEASE_PATTERN.fullmatch(version) is None


class ReleaseVersionFilterFactory(VersionFilterFactory):
    """The filter does not depend on the declared version."""

    def create(self, artifact_version: str) -> VersionFilter:
        _require_version("artifact_version", artifact_version)
        return ReleaseVersionFilter()


class _AllVersionFilter(VersionFilter):
    def __init__(self, filters):
        self.filters = tuple(filters)

    def accept(self, version: str) -> bool:
        _require_version("version", version)
        return all(f.accept(version) for f in self.filters)


class CompositeVersionFilterFactory(VersionFilterFactory):
    """Factory whose filters accept what every sub-factory's filter accepts."""

    def __init__(self, *factories: VersionFilterFactory):
        if not factories:
            raise ValueError("Invalid factories: at least one factory is required")
        if any(factory is None for factory in factories):
            raise ValueError("Invalid factories: contains a None element")
        self.factories = tuple(factories)

    def create(self, artifact_version: str) -> VersionFilter:
        _require_version("artifact_version", artifact_version)
        return _AllVersionFilter(factory.create(artifact_version) for factory in self.factories)


def default_version_filter_factory() -> VersionFilterFactory:
    """Qualifier compatibility combined with release-only candidates."""
    return CompositeVersionFilterFactory(QualifierVersionFilterFactory(), ReleaseVersionFilterFactory())
