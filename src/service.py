"""Update checking service tying build resolution, filters and version lookups together."""
from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Union

from artifact.models import Artifact, ArtifactUpdate
from builds.discovery import filter_build_files, find_build_files
from builds.gradle import GradleBuildResolver
from builds.maven import MavenBuildResolver, MavenModelBuilder
from builds.models import Build, BuildFile
from builds.resolver import BuildResolver
from builds.settings import load_settings
from common.logging_utils import extra_context, is_debug_enabled, Timer
from constants import Constants
from filters.artifact import ArtifactFilter, CompositeArtifactFilter
from filters.parser import parse_expressions, parse_file_if_exists
from versioning.filters import SNAPSHOT, VersionFilter, VersionFilterFactory, default_version_filter_factory
from versioning.resolvers.base import ArtifactAvailableVersionsResolver
from versioning.resolvers.maven import MavenArtifactAvailableVersionsResolver

logger = logging.getLogger(__name__)


def select_update_version(
    artifact: Artifact,
    available_versions: Sequence[str],
    artifact_filter: ArtifactFilter,
    version_filter: VersionFilter,
) -> Optional[str]:
    """Pick the version to report as the update of an artifact.

    The highest available version accepted by both filters is picked. It is
    not compared with the declared version: when the declared version is not
    the highest acceptable one, a lower version may be returned.

    Args:
        artifact: Artifact with a declared version
        available_versions: Known versions in ascending order
        artifact_filter: Filter applied to each candidate update version
        version_filter: Compatibility filter built from the declared version

    Returns:
        The picked version, None if nothing is acceptable or the pick is the
        declared version itself
    """
    for candidate in reversed(available_versions):
        if artifact_filter.accept_update(artifact, candidate) and version_filter.accept(candidate):
            return None if candidate == artifact.version else candidate
    return None


def is_checked(artifact: Artifact, artifact_filter: ArtifactFilter,
               ignore_snapshots: bool = False, ignore_inherited: bool = False) -> bool:
    """Return True if the artifact takes part in update checking."""
    if not artifact_filter.accept(artifact):
        return False
    if ignore_inherited and artifact.version_inherited:
        return False
    if artifact.version is None:
        return False
    return not (ignore_snapshots and SNAPSHOT.accept(artifact.version))


class Service:
    """Finds build files, resolves them and computes their artifact updates."""

    def __init__(
        self,
        build_resolvers: Optional[Iterable[BuildResolver]] = None,
        available_versions_resolver: Optional[ArtifactAvailableVersionsResolver] = None,
        version_filter_factory: Optional[VersionFilterFactory] = None,
        user_artifact_filter: Optional[ArtifactFilter] = None,
        max_workers: Optional[int] = None,
    ):
        settings = None
        if build_resolvers is None or available_versions_resolver is None:
            settings = load_settings()
        self.build_resolvers = tuple(
            build_resolvers if build_resolvers is not None
            else (MavenBuildResolver(MavenModelBuilder(settings=settings)), GradleBuildResolver())
        )
        self.available_versions_resolver = (
            available_versions_resolver or MavenArtifactAvailableVersionsResolver(settings)
        )
        self.version_filter_factory = version_filter_factory or default_version_filter_factory()
        self.user_artifact_filter = (
            user_artifact_filter if user_artifact_filter is not None else self.create_user_artifact_filter()
        )
        self.max_workers = max_workers or Constants.MAX_WORKERS

    @staticmethod
    def create_user_artifact_filter(home: Union[str, Path, None] = None) -> ArtifactFilter:
        """Parse the ignore file of the user home directory, if any."""
        return parse_file_if_exists(Path(home or Path.home()) / Constants.IGNORE_FILE_NAME)

    @staticmethod
    def create_build_artifact_filter(build_file: BuildFile) -> ArtifactFilter:
        """Parse the ignore file beside a build file, if any."""
        return parse_file_if_exists(Path(build_file.file).parent / Constants.IGNORE_FILE_NAME)

    @staticmethod
    def find_build_files(path: Union[str, Path], max_depth: Optional[int] = None) -> List[BuildFile]:
        return find_build_files(path, max_depth)

    @staticmethod
    def filter_build_files(build_files: Iterable[BuildFile], root: Union[str, Path, None] = None) -> List[BuildFile]:
        return filter_build_files(build_files, root)

    def find_build(self, build_file: BuildFile) -> Build:
        """Resolve a build file with the resolver handling its type.

        Raises:
            BuildResolveError: If the build file cannot be resolved.
        """
        for resolver in self.build_resolvers:
            if build_file.type in resolver.file_types:
                return resolver.resolve(build_file)
        raise ValueError(f"No build resolver for the {build_file.type.name} build file type")

    def create_artifact_filter(self, build: Build, filters: Iterable[str] = ()) -> ArtifactFilter:
        """Combine the user, build and command line filters of a build."""
        members = [self.user_artifact_filter, self.create_build_artifact_filter(build.file)]
        expressions = parse_expressions(filters)
        if expressions:
            members.append(CompositeArtifactFilter.any(*expressions))
        return CompositeArtifactFilter.all(*members)

    def find_artifact_updates(
        self,
        build: Build,
        filters: Iterable[str] = (),
        ignore_snapshots: bool = False,
        ignore_inherited: bool = False,
    ) -> List[ArtifactUpdate]:
        """Find the updates of a build's artifacts, in declaration order.

        Args:
            build: Resolved build
            filters: Command line expressions; when given, only matching
                artifacts and update versions are considered
            ignore_snapshots: Skip artifacts declaring a snapshot version
            ignore_inherited: Skip artifacts whose version is inherited

        Returns:
            One update per artifact having one

        Raises:
            ArtifactFilterParseError: If an ignore file or expression is malformed.
            ArtifactAvailableVersionsResolveError: If versions cannot be looked up.
        """
        artifact_filter = self.create_artifact_filter(build, filters)
        artifacts = [
            artifact for artifact in build.artifacts
            if is_checked(artifact, artifact_filter, ignore_snapshots, ignore_inherited)
        ]

        def _find_update(artifact: Artifact) -> Optional[ArtifactUpdate]:
            available = self.available_versions_resolver.resolve(artifact, build.repositories)
            update_version = select_update_version(
                artifact,
                available.available_versions,
                artifact_filter,
                self.version_filter_factory.create(artifact.version),
            )
            if update_version is None:
                return None
            return ArtifactUpdate(artifact, update_version)

        with Timer() as t:
            if artifacts:
                with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
                    results = list(executor.map(_find_update, artifacts))
            else:
                results = []
        updates = [update for update in results if update is not None]
        if is_debug_enabled(logger):
            logger.debug(
                "Artifact updates computed",
                extra=extra_context(
                    event="function_exit",
                    component="service",
                    action="find_artifact_updates",
                    target=str(build.file.file),
                    checked=len(artifacts),
                    count=len(updates),
                    duration_ms=t.duration_ms(),
                )
            )
        return updates
