"""Available versions resolver reading ``maven-metadata.xml`` from repositories."""

import logging
import threading
import xml.etree.ElementTree as ET
from typing import Dict, List, Optional, Sequence, Tuple

from artifact.models import Artifact, ArtifactAvailableVersions, ArtifactIdentifier, RepositoryType
from builds.models import Repository
from builds.settings import MavenSettings, load_settings
from common.http_client import robust_get, split_credentials
from common.logging_utils import extra_context, is_debug_enabled, safe_url
from constants import Constants
from ..ordering import sort_versions
from .base import ArtifactAvailableVersionsResolver, ArtifactAvailableVersionsResolveError

logger = logging.getLogger(__name__)


def metadata_url(repository_url: str, identifier: ArtifactIdentifier) -> str:
    """Build the ``maven-metadata.xml`` URL of an artifact in a repository."""
    group_path = identifier.group_id.replace(".", "/")
    return f"{repository_url.rstrip('/')}/{group_path}/{identifier.artifact_id}/{Constants.MAVEN_METADATA_FILE}"


def parse_metadata_versions(text: str) -> List[str]:
    """Return the ``versioning/versions/version`` values of a metadata document."""
    root = ET.fromstring(text)
    versions = []
    versioning = root.find("versioning")
    if versioning is not None:
        versions_elem = versioning.find("versions")
        if versions_elem is not None:
            for version_elem in versions_elem.findall("version"):
                ver_text = version_elem.text
                if ver_text and ver_text.strip():
                    versions.append(ver_text.strip())
    return versions


class MavenArtifactAvailableVersionsResolver(ArtifactAvailableVersionsResolver):
    """Resolver merging the versions listed by every usable repository.

    Plugin artifacts may come from any repository, other artifacts only from
    normal repositories. Metadata is cached per repository and coordinate.
    Repositories are rewritten by the Maven settings (mirrors, servers,
    profile repositories) before being requested.
    """

    def __init__(self, settings: Optional[MavenSettings] = None) -> None:
        self.settings = settings if settings is not None else load_settings()
        self._metadata_cache: Dict[Tuple[str, str], Optional[List[str]]] = {}
        self._metadata_cache_lock = threading.Lock()

    @staticmethod
    def usable_repositories(artifact: Artifact, repositories: Sequence[Repository]) -> List[Repository]:
        """Return the repositories an artifact may be looked up in."""
        if artifact.type.repository_type == RepositoryType.PLUGIN:
            return list(repositories)
        return [repository for repository in repositories if repository.type == RepositoryType.NORMAL]

    def _fetch_versions(self, repository: Repository, identifier: ArtifactIdentifier) -> Optional[List[str]]:
        """Fetch versions from one repository; None when it could not answer."""
        cache_key = (repository.url, str(identifier))
        with self._metadata_cache_lock:
            if cache_key in self._metadata_cache:
                return self._metadata_cache[cache_key]

        url, auth = split_credentials(repository.url)
        target = metadata_url(url, identifier)
        status_code, _, text = robust_get(
            target, auth=auth or repository.auth, **self.settings.request_options(url)
        )

        versions: Optional[List[str]]
        if status_code == 200:
            try:
                versions = parse_metadata_versions(text)
            except ET.ParseError as exc:
                logger.warning("Invalid metadata at %s: %s", safe_url(target), exc)
                versions = None
        elif status_code == 404:
            versions = []
        else:
            logger.warning(
                "Unable to fetch %s from the %s repository (status %s)",
                identifier, repository.id, status_code or "n/a",
            )
            versions = None

        if is_debug_enabled(logger):
            logger.debug(
                "Fetched Maven metadata",
                extra=extra_context(
                    event="function_exit",
                    component="maven_resolver",
                    action="fetch_versions",
                    outcome="success" if versions is not None else "failure",
                    status_code=status_code,
                    count=len(versions) if versions is not None else None,
                    target=safe_url(target),
                )
            )
        if versions is not None:
            with self._metadata_cache_lock:
                self._metadata_cache[cache_key] = versions
        return versions

    def resolve(self, artifact: Artifact, repositories: Sequence[Repository]) -> ArtifactAvailableVersions:
        logger.debug("Resolving %s artifact available versions", artifact.identifier)
        usable = self.usable_repositories(artifact, self.settings.apply(repositories))
        if not usable:
            raise ArtifactAvailableVersionsResolveError("No remote repository has been resolved")
        versions: List[str] = []
        for repository in usable:
            fetched = self._fetch_versions(repository, artifact.identifier)
            if fetched:
                versions.extend(fetched)
        return ArtifactAvailableVersions(artifact, tuple(sort_versions(versions)))
