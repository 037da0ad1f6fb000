"""Data models for artifacts, their roles and their updates."""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Dict, Optional, Tuple, Union


class RepositoryType(Enum):
    """Kind of repository an artifact is looked up in."""
    NORMAL = "normal"
    PLUGIN = "plugin"


def _camel_case(name: str) -> str:
    head, *tail = name.lower().split("_")
    return head + "".join(part.capitalize() for part in tail)


class GradleArtifactType(Enum):
    """Gradle configuration an artifact was declared in or resolved for."""
    ANNOTATION_PROCESSOR = "annotation_processor"
    API = "api"
    COMPILE = "compile"
    COMPILE_CLASSPATH = "compile_classpath"
    COMPILE_ONLY = "compile_only"
    COMPILE_ONLY_API = "compile_only_api"
    IMPLEMENTATION = "implementation"
    RUNTIME = "runtime"
    RUNTIME_CLASSPATH = "runtime_classpath"
    RUNTIME_ONLY = "runtime_only"
    TEST_ANNOTATION_PROCESSOR = "test_annotation_processor"
    TEST_COMPILE = "test_compile"
    TEST_COMPILE_CLASSPATH = "test_compile_classpath"
    TEST_COMPILE_ONLY = "test_compile_only"
    TEST_IMPLEMENTATION = "test_implementation"
    TEST_RUNTIME = "test_runtime"
    TEST_RUNTIME_CLASSPATH = "test_runtime_classpath"
    TEST_RUNTIME_ONLY = "test_runtime_only"

    @property
    def repository_type(self) -> RepositoryType:
        return RepositoryType.NORMAL

    @property
    def dependencies_task_name(self) -> str:
        """Configuration name as printed by the Gradle ``dependencies`` task."""
        return _camel_case(self.name)

    @property
    def is_classpath(self) -> bool:
        return self in _GRADLE_CLASSPATH_AUTHORED

    @property
    def is_deprecated(self) -> bool:
        return self in _GRADLE_DEPRECATED

    @property
    def authored(self) -> Optional["GradleArtifactType"]:
        """Declaration configuration a classpath configuration stands for."""
        return _GRADLE_CLASSPATH_AUTHORED.get(self)

    @classmethod
    def from_task_name(cls, task_name: str) -> Optional["GradleArtifactType"]:
        """Return the type whose ``dependencies`` task name equals the argument."""
        for member in cls:
            if member.dependencies_task_name == task_name:
                return member
        return None


# Classpath configurations in precedence order, mapped to the configuration they collapse into
_GRADLE_CLASSPATH_AUTHORED: Dict[GradleArtifactType, GradleArtifactType] = {
    GradleArtifactType.COMPILE_CLASSPATH: GradleArtifactType.IMPLEMENTATION,
    GradleArtifactType.RUNTIME_CLASSPATH: GradleArtifactType.RUNTIME_ONLY,
    GradleArtifactType.TEST_COMPILE_CLASSPATH: GradleArtifactType.TEST_IMPLEMENTATION,
    GradleArtifactType.TEST_RUNTIME_CLASSPATH: GradleArtifactType.TEST_RUNTIME_ONLY,
}

_GRADLE_DEPRECATED = frozenset({
    GradleArtifactType.COMPILE,
    GradleArtifactType.RUNTIME,
    GradleArtifactType.TEST_COMPILE,
    GradleArtifactType.TEST_RUNTIME,
})


class MavenArtifactType(Enum):
    """Location of an artifact inside a Maven project model."""
    PARENT = "parent"
    DEPENDENCY_MANAGEMENT_DEPENDENCY = "dependency_management_dependency"
    DEPENDENCY = "dependency"
    BUILD_EXTENSION = "build_extension"
    BUILD_PLUGIN_MANAGEMENT_PLUGIN = "build_plugin_management_plugin"
    BUILD_PLUGIN_MANAGEMENT_PLUGIN_DEPENDENCY = "build_plugin_management_plugin_dependency"
    BUILD_PLUGIN = "build_plugin"
    BUILD_PLUGIN_DEPENDENCY = "build_plugin_dependency"
    REPORTING_PLUGIN = "reporting_plugin"
    PROFILE_BUILD_PLUGIN_MANAGEMENT_PLUGIN = "profile_build_plugin_management_plugin"
    PROFILE_BUILD_PLUGIN_MANAGEMENT_PLUGIN_DEPENDENCY = "profile_build_plugin_management_plugin_dependency"
    PROFILE_BUILD_PLUGIN = "profile_build_plugin"
    PROFILE_BUILD_PLUGIN_DEPENDENCY = "profile_build_plugin_dependency"
    PROFILE_DEPENDENCY_MANAGEMENT_DEPENDENCY = "profile_dependency_management_dependency"
    PROFILE_DEPENDENCY = "profile_dependency"
    PROFILE_REPORTING_PLUGIN = "profile_reporting_plugin"

    @property
    def repository_type(self) -> RepositoryType:
        if self in _MAVEN_PLUGIN_TYPES:
            return RepositoryType.PLUGIN
        return RepositoryType.NORMAL

    @property
    def is_classpath(self) -> bool:
        return False


_MAVEN_PLUGIN_TYPES = frozenset({
    MavenArtifactType.BUILD_PLUGIN_MANAGEMENT_PLUGIN,
    MavenArtifactType.BUILD_PLUGIN,
    MavenArtifactType.REPORTING_PLUGIN,
    MavenArtifactType.PROFILE_BUILD_PLUGIN_MANAGEMENT_PLUGIN,
    MavenArtifactType.PROFILE_BUILD_PLUGIN,
    MavenArtifactType.PROFILE_REPORTING_PLUGIN,
})


ArtifactType = Union[GradleArtifactType, MavenArtifactType]


def _require_non_empty(name: str, value: Optional[str]) -> None:
    if not value:
        raise ValueError(f"Invalid {name}: empty value")


@dataclass(frozen=True)
class ArtifactIdentifier:
    """Package coordinate, compared on both fields."""
    group_id: str
    artifact_id: str

    def __post_init__(self) -> None:
        _require_non_empty("group_id", self.group_id)
        _require_non_empty("artifact_id", self.artifact_id)

    def __str__(self) -> str:
        return f"{self.group_id}:{self.artifact_id}"


@dataclass(frozen=True)
class Artifact:
    """One declared dependency, plugin or parent of a build.

    ``version_inherited`` is only meaningful with a version and is forced to
    False otherwise.
    """
    type: ArtifactType
    identifier: ArtifactIdentifier
    version: Optional[str] = None
    version_inherited: bool = False

    def __post_init__(self) -> None:
        if self.version is not None:
            _require_non_empty("version", self.version)
        elif self.version_inherited:
            object.__setattr__(self, "version_inherited", False)

    def with_type(self, type_: ArtifactType) -> "Artifact":
        return replace(self, type=type_)

    def with_version_inherited(self, version_inherited: bool) -> "Artifact":
        return replace(self, version_inherited=version_inherited)


@dataclass(frozen=True)
class ArtifactUpdate:
    """An artifact together with the version reported as its update."""
    artifact: Artifact
    update_version: str

    def __post_init__(self) -> None:
        _require_non_empty("update_version", self.update_version)


@dataclass(frozen=True)
class ArtifactAvailableVersions:
    """Versions known for an artifact, in ascending order."""
    artifact: Artifact
    available_versions: Tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        versions = tuple(self.available_versions)
        for version in versions:
            _require_non_empty("available version", version)
        object.__setattr__(self, "available_versions", versions)
