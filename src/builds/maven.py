"""Maven build resolver.

Reads ``pom.xml`` files with ElementTree and rebuilds the parts of the
effective model needed to check updates: the parent chain (local files first,
then repositories), merged properties, managed dependency and plugin versions
(including imported BOMs) and declared repositories. Artifacts are extracted
from the raw model, so only what the file itself declares is reported; a
version missing from the raw model but supplied by management is flagged as
inherited.
"""
from __future__ import annotations

import logging
import os
import re
import threading
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, FrozenSet, List, Optional, Set, Tuple

from artifact.models import Artifact, ArtifactIdentifier, MavenArtifactType, RepositoryType
from common.http_client import robust_get, split_credentials
from common.logging_utils import extra_context, is_debug_enabled, safe_url
from constants import Constants
from .models import Build, BuildFile, BuildFileType, Repository
from .resolver import BuildResolver, BuildResolveError
from .settings import MavenSettings, load_settings

logger = logging.getLogger(__name__)

DEFAULT_PLUGIN_GROUP_ID = "org.apache.maven.plugins"
DEFAULT_RELATIVE_PATH = "../pom.xml"
MAX_MODEL_DEPTH = 16

_PROPERTY_PATTERN = re.compile(r"\$\{([^}]+)\}")

Coordinate = Tuple[str, str]


def _namespace(root: ET.Element) -> str:
    if root.tag.startswith("{"):
        return root.tag[: root.tag.index("}") + 1]
    return ""


def parse_pom(text: str, source: str) -> ET.Element:
    """Parse POM text, raising BuildResolveError on malformed XML."""
    try:
        root = ET.fromstring(text)
    except ET.ParseError as exc:
        raise BuildResolveError(f"Unable to parse the {source} POM: {exc}") from exc
    if not root.tag.endswith("project"):
        raise BuildResolveError(f"Unexpected root element in the {source} POM: {root.tag}")
    return root


@dataclass
class Pom:
    """One POM document, with helpers resolving namespaced child paths."""
    root: ET.Element
    source: str
    path: Optional[Path] = None
    parent: Optional["Pom"] = None
    ns: str = field(init=False, default="")

    def __post_init__(self) -> None:
        self.ns = _namespace(self.root)

    def _path(self, path: str) -> str:
        return "/".join(f"{self.ns}{segment}" for segment in path.split("/"))

    def find(self, path: str, element: Optional[ET.Element] = None) -> Optional[ET.Element]:
        return (self.root if element is None else element).find(self._path(path))

    def findall(self, path: str, element: Optional[ET.Element] = None) -> List[ET.Element]:
        return (self.root if element is None else element).findall(self._path(path))

    def text(self, path: str, element: Optional[ET.Element] = None) -> Optional[str]:
        node = self.find(path, element)
        if node is None or node.text is None:
            return None
        value = node.text.strip()
        return value or None

    @property
    def group_id(self) -> Optional[str]:
        return self.text("groupId") or self.text("parent/groupId")

    @property
    def artifact_id(self) -> Optional[str]:
        return self.text("artifactId")

    @property
    def version(self) -> Optional[str]:
        return self.text("version") or self.text("parent/version")

    def own_properties(self) -> Dict[str, str]:
        properties = {}
        node = self.find("properties")
        if node is not None:
            for child in node:
                name = child.tag[len(self.ns):] if child.tag.startswith(self.ns) else child.tag
                properties[name] = (child.text or "").strip()
        return properties


@dataclass
class EffectiveModel:
    """The raw POM of a build file together with what it inherits."""
    pom: Pom
    properties: Dict[str, str]
    managed_dependencies: Dict[Coordinate, str]
    managed_plugins: Dict[Coordinate, str]
    repositories: List[Repository]

    def interpolate(self, value: Optional[str]) -> Optional[str]:
        """Replace ``${...}`` references, leaving unknown ones untouched."""
        if value is None:
            return None
        for _ in range(MAX_MODEL_DEPTH):
            replaced = _PROPERTY_PATTERN.sub(lambda m: self.properties.get(m.group(1), m.group(0)), value)
            if replaced == value:
                break
            value = replaced
        return value


def _builtin_properties(pom: Pom) -> Dict[str, str]:
    properties = {}
    values = {
        "groupId": pom.group_id,
        "artifactId": pom.artifact_id,
        "version": pom.version,
        "parent.groupId": pom.text("parent/groupId"),
        "parent.artifactId": pom.text("parent/artifactId"),
        "parent.version": pom.text("parent/version"),
        "name": pom.text("name"),
        "packaging": pom.text("packaging") or "jar",
    }
    for key, value in values.items():
        if value is not None:
            properties[f"project.{key}"] = value
            properties[f"pom.{key}"] = value
    if pom.path is not None:
        basedir = str(pom.path.parent)
        properties["basedir"] = basedir
        properties["project.basedir"] = basedir
    for name, value in os.environ.items():
        properties[f"env.{name}"] = value
    return properties


class MavenModelBuilder:
    """Builds effective models, fetching missing parents and BOMs remotely."""

    def __init__(self, fetch_remote: bool = True, settings: Optional[MavenSettings] = None):
        self.fetch_remote = fetch_remote
        if settings is None:
            settings = load_settings() if fetch_remote else MavenSettings()
        self.settings = settings
        self._remote_cache: Dict[Tuple[str, str, str], Optional[Pom]] = {}
        self._remote_cache_lock = threading.Lock()

    def load(self, path: Path) -> Pom:
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as exc:
            raise BuildResolveError(f"Unable to read the {path} POM: {exc}") from exc
        return Pom(parse_pom(text, str(path)), str(path), path)

    def fetch(self, group_id: str, artifact_id: str, version: str,
              repositories: List[Repository]) -> Optional[Pom]:
        """Download a POM from the first normal repository that has it, Maven settings applied."""
        key = (group_id, artifact_id, version)
        with self._remote_cache_lock:
            if key in self._remote_cache:
                return self._remote_cache[key]
        pom = None
        if self.fetch_remote:
            group_path = group_id.replace(".", "/")
            for repository in self.settings.apply(repositories):
                if repository.type != RepositoryType.NORMAL:
                    continue
                url, auth = split_credentials(repository.url)
                target = f"{url.rstrip('/')}/{group_path}/{artifact_id}/{version}/{artifact_id}-{version}.pom"
                status_code, _, text = robust_get(
                    target, auth=auth or repository.auth, **self.settings.request_options(url)
                )
                if is_debug_enabled(logger):
                    logger.debug(
                        "Fetched remote POM",
                        extra=extra_context(
                            event="http_response",
                            component="maven_model",
                            action="fetch_pom",
                            status_code=status_code,
                            target=safe_url(target),
                        )
                    )
                if status_code == 200:
                    try:
                        pom = Pom(parse_pom(text, f"{group_id}:{artifact_id}:{version}"), target)
                    except BuildResolveError as exc:
                        logger.warning("%s", exc)
                        continue
                    break
            if pom is None:
                logger.warning("Unable to fetch the %s:%s:%s POM", group_id, artifact_id, version)
        with self._remote_cache_lock:
            self._remote_cache[key] = pom
        return pom

    def _local_parent(self, pom: Pom) -> Optional[Pom]:
        if pom.path is None or pom.find("parent") is None:
            return None
        relative = pom.find("parent/relativePath")
        if relative is not None and not (relative.text or "").strip():
            return None
        relative_path = pom.text("parent/relativePath") or DEFAULT_RELATIVE_PATH
        candidate = (pom.path.parent / relative_path)
        if candidate.is_dir():
            candidate = candidate / BuildFileType.MAVEN.file_name
        if not candidate.is_file():
            return None
        parent = self.load(candidate.resolve())
        if (parent.group_id, parent.artifact_id) != (pom.text("parent/groupId"), pom.text("parent/artifactId")):
            logger.debug("Ignoring the %s parent POM with mismatching coordinates", candidate)
            return None
        return parent

    def _link_parents(self, pom: Pom, repositories: List[Repository]) -> List[Pom]:
        """Return the chain from the POM to its farthest reachable ancestor."""
        chain = [pom]
        seen: Set[str] = {pom.source}
        current = pom
        while current.find("parent") is not None and len(chain) < MAX_MODEL_DEPTH:
            parent = self._local_parent(current)
            if parent is None:
                group_id = current.text("parent/groupId")
                artifact_id = current.text("parent/artifactId")
                version = current.text("parent/version")
                if not (group_id and artifact_id and version):
                    break
                properties = _builtin_properties(current)
                properties.update(current.own_properties())
                version = _PROPERTY_PATTERN.sub(lambda m: properties.get(m.group(1), m.group(0)), version)
                parent = self.fetch(group_id, artifact_id, version, repositories)
                if parent is None:
                    break
            if parent.source in seen:
                raise BuildResolveError(f"Cycle detected in the parent chain of {pom.source}")
            seen.add(parent.source)
            current.parent = parent
            chain.append(parent)
            current = parent
        return chain

    def _repositories(self, chain: List[Pom], properties: Dict[str, str]) -> List[Repository]:
        model = EffectiveModel(chain[0], properties, {}, {}, [])
        repositories: List[Repository] = []
        seen: Set[Tuple[RepositoryType, str]] = set()

        def _add(repository_type: RepositoryType, repository_id: Optional[str], url: Optional[str]) -> None:
            url = model.interpolate(url)
            if not url or "${" in url or (repository_type, url) in seen:
                return
            seen.add((repository_type, url))
            repositories.append(Repository(repository_type, repository_id or url, url))

        for pom in chain:
            for node in pom.findall("repositories/repository"):
                _add(RepositoryType.NORMAL, pom.text("id", node), pom.text("url", node))
            for node in pom.findall("pluginRepositories/pluginRepository"):
                _add(RepositoryType.PLUGIN, pom.text("id", node), pom.text("url", node))
        _add(RepositoryType.NORMAL, Constants.MAVEN_CENTRAL_ID, Constants.MAVEN_CENTRAL_URL)
        _add(RepositoryType.PLUGIN, Constants.MAVEN_CENTRAL_ID, Constants.MAVEN_CENTRAL_URL)
        return repositories

    def _managed_versions(self, model: EffectiveModel, chain: List[Pom], depth: int) -> None:
        # Nearest declaration wins, so ancestors never override descendants
        for pom in chain:
            for node in pom.findall("dependencyManagement/dependencies/dependency"):
                group_id = model.interpolate(pom.text("groupId", node))
                artifact_id = model.interpolate(pom.text("artifactId", node))
                version = model.interpolate(pom.text("version", node))
                if not (group_id and artifact_id and version):
                    continue
                if pom.text("scope", node) == "import" and pom.text("type", node) == "pom":
                    if depth < MAX_MODEL_DEPTH:
                        self._import_bom(model, group_id, artifact_id, version, depth)
                    continue
                model.managed_dependencies.setdefault((group_id, artifact_id), version)
            for path in ("build/pluginManagement/plugins/plugin", "build/plugins/plugin"):
                for node in pom.findall(path):
                    group_id = model.interpolate(pom.text("groupId", node)) or DEFAULT_PLUGIN_GROUP_ID
                    artifact_id = model.interpolate(pom.text("artifactId", node))
                    version = model.interpolate(pom.text("version", node))
                    if artifact_id and version:
                        model.managed_plugins.setdefault((group_id, artifact_id), version)

    def _import_bom(self, model: EffectiveModel, group_id: str, artifact_id: str,
                    version: str, depth: int) -> None:
        bom = self.fetch(group_id, artifact_id, version, model.repositories)
        if bom is None:
            return
        bom_model = self._build(bom, depth + 1, model.repositories)
        for coordinate, managed_version in bom_model.managed_dependencies.items():
            model.managed_dependencies.setdefault(coordinate, managed_version)

    def _build(self, pom: Pom, depth: int, repositories: List[Repository]) -> EffectiveModel:
        chain = self._link_parents(pom, repositories)
        properties: Dict[str, str] = {}
        for ancestor in reversed(chain):
            properties.update(ancestor.own_properties())
        properties.update(_builtin_properties(pom))
        model = EffectiveModel(pom, properties, {}, {}, [])
        model.repositories = self._repositories(chain, properties)
        self._managed_versions(model, chain, depth)
        return model

    def build(self, path: Path) -> EffectiveModel:
        """Build the effective model of a local POM file."""
        pom = self.load(path)
        # Repositories declared by the file itself are usable to fetch its parents
        properties = _builtin_properties(pom)
        properties.update(pom.own_properties())
        bootstrap = self._repositories([pom], properties)
        return self._build(pom, 0, bootstrap)


# Section paths relative to the project or to a profile, with their roles
_DEPENDENCY_MANAGEMENT = "dependencyManagement/dependencies/dependency"
_DEPENDENCIES = "dependencies/dependency"
_PLUGIN_MANAGEMENT = "build/pluginManagement/plugins/plugin"
_PLUGINS = "build/plugins/plugin"
_REPORTING_PLUGINS = "reporting/plugins/plugin"


class MavenBuildResolver(BuildResolver):
    """Resolver for ``pom.xml`` build files."""

    FILE_TYPES = frozenset({BuildFileType.MAVEN})

    def __init__(self, model_builder: Optional[MavenModelBuilder] = None):
        self.model_builder = model_builder or MavenModelBuilder()

    @property
    def file_types(self) -> FrozenSet[BuildFileType]:
        return self.FILE_TYPES

    def _artifact(self, model: EffectiveModel, artifact_type: MavenArtifactType, node: ET.Element,
                  managed: Dict[Coordinate, str], default_group_id: Optional[str] = None) -> Artifact:
        pom = model.pom
        group_id = model.interpolate(pom.text("groupId", node)) or default_group_id
        artifact_id = model.interpolate(pom.text("artifactId", node))
        if not group_id or not artifact_id:
            raise BuildResolveError(
                f"Missing groupId or artifactId in a {artifact_type.name.lower()} of {pom.source}"
            )
        version = model.interpolate(pom.text("version", node))
        inherited = False
        if version is None:
            version = managed.get((group_id, artifact_id))
            inherited = version is not None
        if version is not None and "${" in version:
            logger.warning("Unresolved version %s of %s:%s in %s", version, group_id, artifact_id, pom.source)
            version = None
        return Artifact(artifact_type, ArtifactIdentifier(group_id, artifact_id), version, inherited)

    def _plugins(self, model: EffectiveModel, element: ET.Element, path: str,
                 plugin_type: MavenArtifactType, dependency_type: Optional[MavenArtifactType],
                 dependencies: Dict[Coordinate, str]) -> List[Artifact]:
        pom = model.pom
        artifacts = []
        for node in pom.findall(path, element):
            artifacts.append(
                self._artifact(model, plugin_type, node, model.managed_plugins, DEFAULT_PLUGIN_GROUP_ID)
            )
            if dependency_type is not None:
                for dependency in pom.findall(_DEPENDENCIES, node):
                    artifacts.append(self._artifact(model, dependency_type, dependency, dependencies))
        return artifacts

    def extract_artifacts(self, model: EffectiveModel) -> List[Artifact]:
        """Extract the artifacts declared by the raw POM, in model order."""
        pom = model.pom
        root = pom.root
        artifacts: List[Artifact] = []
        managed = model.managed_dependencies

        parent = pom.find("parent")
        if parent is not None:
            artifacts.append(self._artifact(model, MavenArtifactType.PARENT, parent, {}))
        for node in pom.findall(_DEPENDENCY_MANAGEMENT, root):
            artifacts.append(self._artifact(model, MavenArtifactType.DEPENDENCY_MANAGEMENT_DEPENDENCY, node, {}))
        for node in pom.findall(_DEPENDENCIES, root):
            artifacts.append(self._artifact(model, MavenArtifactType.DEPENDENCY, node, managed))
        for node in pom.findall("build/extensions/extension", root):
            artifacts.append(self._artifact(model, MavenArtifactType.BUILD_EXTENSION, node, {}))
        artifacts.extend(self._plugins(
            model, root, _PLUGIN_MANAGEMENT,
            MavenArtifactType.BUILD_PLUGIN_MANAGEMENT_PLUGIN,
            MavenArtifactType.BUILD_PLUGIN_MANAGEMENT_PLUGIN_DEPENDENCY, managed,
        ))
        artifacts.extend(self._plugins(
            model, root, _PLUGINS,
            MavenArtifactType.BUILD_PLUGIN, MavenArtifactType.BUILD_PLUGIN_DEPENDENCY, managed,
        ))
        artifacts.extend(self._plugins(
            model, root, _REPORTING_PLUGINS, MavenArtifactType.REPORTING_PLUGIN, None, managed,
        ))

        for profile in pom.findall("profiles/profile"):
            profile_managed = {}
            for node in pom.findall(_DEPENDENCY_MANAGEMENT, profile):
                group_id = model.interpolate(pom.text("groupId", node))
                artifact_id = model.interpolate(pom.text("artifactId", node))
                version = model.interpolate(pom.text("version", node))
                if group_id and artifact_id and version:
                    profile_managed[(group_id, artifact_id)] = version
            profile_managed = {**managed, **profile_managed}

            artifacts.extend(self._plugins(
                model, profile, _PLUGIN_MANAGEMENT,
                MavenArtifactType.PROFILE_BUILD_PLUGIN_MANAGEMENT_PLUGIN,
                MavenArtifactType.PROFILE_BUILD_PLUGIN_MANAGEMENT_PLUGIN_DEPENDENCY, profile_managed,
            ))
            artifacts.extend(self._plugins(
                model, profile, _PLUGINS,
                MavenArtifactType.PROFILE_BUILD_PLUGIN, MavenArtifactType.PROFILE_BUILD_PLUGIN_DEPENDENCY,
                profile_managed,
            ))
            for node in pom.findall(_DEPENDENCY_MANAGEMENT, profile):
                artifacts.append(self._artifact(
                    model, MavenArtifactType.PROFILE_DEPENDENCY_MANAGEMENT_DEPENDENCY, node, {}
                ))
            for node in pom.findall(_DEPENDENCIES, profile):
                artifacts.append(self._artifact(model, MavenArtifactType.PROFILE_DEPENDENCY, node, profile_managed))
            artifacts.extend(self._plugins(
                model, profile, _REPORTING_PLUGINS, MavenArtifactType.PROFILE_REPORTING_PLUGIN, None,
                profile_managed,
            ))
        return artifacts

    def resolve(self, build_file: BuildFile) -> Build:
        if build_file.type not in self.FILE_TYPES:
            raise ValueError(f"Unsupported build file type: {build_file.type}")
        logger.info("Resolving the %s build", build_file.file)
        model = self.model_builder.build(Path(build_file.file))
        artifacts = self.extract_artifacts(model)
        if is_debug_enabled(logger):
            for repository in model.repositories:
                logger.debug("Repository: %s %s %s", repository.type.name, repository.id, safe_url(repository.url))
            for artifact in artifacts:
                logger.debug("Artifact: %s", artifact)
        return Build(build_file, model.repositories, artifacts)
