"""Gradle build resolver.

Gradle exposes no stable model API to a non-JVM process, so the build is
described by running the ``repositories`` task (registered by the bundled
init script) and the ``dependencies`` report task, then parsing their
console output.
"""
from __future__ import annotations

import logging
import os
import re
import shutil
import subprocess
from pathlib import Path
from typing import FrozenSet, Iterable, Iterator, List, Optional

from artifact.models import Artifact, ArtifactIdentifier, GradleArtifactType, RepositoryType
from common.logging_utils import extra_context, is_debug_enabled, Timer
from constants import Constants
from .models import Build, BuildFile, BuildFileType, Repository
from .resolver import BuildResolver, BuildResolveError

logger = logging.getLogger(__name__)

INIT_SCRIPT = Path(__file__).with_name("init.gradle")

REPOSITORIES_TASK_LINE = "> Task :repositories"
DEPENDENCIES_TASK_LINE = "> Task :dependencies"
DEPENDENCIES_RULE = "-" * 60
# Until Gradle 6.7 the line reads "Root project", since 6.8 "Root project 'name'"
DEPENDENCIES_ROOT_PREFIX = "Root project"
DEPENDENCIES_FOOTER = "A web-based, searchable dependency report is available by adding the --scan option."
BRANCH_PREFIXES = ("+--- ", "\\--- ")
PADDING_PREFIXES = ("|    ", "     ")
NO_DEPENDENCIES = "No dependencies"
RESOLVED_ARROW = " -> "

_REPOSITORY_FORMAT_ERROR = 'Unexpected Gradle ":repositories" repository format'
_REPOSITORY_TYPE_FORMAT_ERROR = 'Unexpected Gradle ":repositories" repository type format'
_HEADER_FORMAT_ERROR = 'Unexpected Gradle ":dependencies" header format'
_ARTIFACT_FORMAT_ERROR = 'Unexpected Gradle ":dependencies" artifact format'

_GRADLE_BIN_PATTERN = re.compile(r"^(.*[/\\]+gradle-\d+\.\d+(?:\.\d+)?)[/\\]+bin[/\\]*$")

# Classpath configurations, from the one that wins to the one that loses
_CLASSPATH_PRECEDENCE = (
    GradleArtifactType.COMPILE_CLASSPATH,
    GradleArtifactType.RUNTIME_CLASSPATH,
    GradleArtifactType.TEST_COMPILE_CLASSPATH,
    GradleArtifactType.TEST_RUNTIME_CLASSPATH,
)


def _read_line(lines: Iterator[str]) -> Optional[str]:
    """Return the next line without its line terminator, or None at the end."""
    line = next(lines, None)
    if line is None:
        return None
    return line.rstrip("\r\n")


def _substring_before(text: str, separator: str) -> str:
    return text.split(separator, 1)[0]


def parse_repositories(lines: Iterable[str]) -> List[Repository]:
    """Parse the output of the ``repositories`` task.

    Lines are consumed up to the blank line closing the section, so the same
    iterator can then be handed to :func:`parse_artifacts`.

    Args:
        lines: Console output lines; pass an iterator to share its position

    Returns:
        Repositories in output order, empty if the task output is absent

    Raises:
        BuildResolveError: If a repository line is malformed.
    """
    lines = iter(lines)
    repositories: List[Repository] = []
    while True:
        line = _read_line(lines)
        if line is None:
            return repositories
        if line == REPOSITORIES_TASK_LINE:
            break
    while True:
        line = _read_line(lines)
        if line is None or not line:
            break
        if line.count(":") < 2:
            raise BuildResolveError(_REPOSITORY_FORMAT_ERROR)
        type_name, repository_id, url = line.split(":", 2)
        try:
            repository_type = RepositoryType[type_name]
        except KeyError as exc:
            raise BuildResolveError(_REPOSITORY_TYPE_FORMAT_ERROR) from exc
        try:
            repositories.append(Repository(repository_type, repository_id, url))
        except ValueError as exc:
            raise BuildResolveError(_REPOSITORY_FORMAT_ERROR) from exc
    return repositories


def _parse_artifact_line(line: str, artifact_type: GradleArtifactType) -> Artifact:
    if not line.startswith(BRANCH_PREFIXES):
        raise BuildResolveError(_ARTIFACT_FORMAT_ERROR)
    text = line.split("--- ", 1)[1]
    text = _substring_before(_substring_before(text, " ("), " FAILED")
    if text.count(RESOLVED_ARROW) > 1:
        raise BuildResolveError(_ARTIFACT_FORMAT_ERROR)
    declared, _, resolved_version = text.partition(RESOLVED_ARROW)
    colons = declared.count(":")
    if colons < 1 or colons > 2:
        raise BuildResolveError(_ARTIFACT_FORMAT_ERROR)
    parts = declared.split(":")
    version = parts[2] if len(parts) == 3 else (resolved_version or None)
    try:
        return Artifact(artifact_type, ArtifactIdentifier(parts[0], parts[1]), version or None)
    except ValueError as exc:
        raise BuildResolveError(_ARTIFACT_FORMAT_ERROR) from exc


def parse_artifacts(lines: Iterable[str]) -> List[Artifact]:
    """Parse the output of the ``dependencies`` task.

    Configurations whose name matches no :class:`GradleArtifactType` are
    skipped. Inside a known configuration only the first level of the tree is
    read; the declared version wins over the resolved one.

    Args:
        lines: Console output lines; pass an iterator to share its position

    Returns:
        Artifacts in output order, empty if the task output is absent

    Raises:
        BuildResolveError: If the report header or an artifact line is malformed.
    """
    lines = iter(lines)
    artifacts: List[Artifact] = []
    while True:
        line = _read_line(lines)
        if line is None:
            return artifacts
        if line == DEPENDENCIES_TASK_LINE:
            break

    header = [_read_line(lines) for _ in range(5)]
    if (
        header[0] != ""
        or header[1] != DEPENDENCIES_RULE
        or not (header[2] or "").startswith(DEPENDENCIES_ROOT_PREFIX)
        or header[3] != DEPENDENCIES_RULE
        or header[4] != ""
    ):
        raise BuildResolveError(_HEADER_FORMAT_ERROR)

    while True:
        line = _read_line(lines)
        if line is None or line == DEPENDENCIES_FOOTER:
            break
        artifact_type = GradleArtifactType.from_task_name(_substring_before(line, " - "))
        while True:
            line = _read_line(lines)
            if line is None or not line:
                break
            if artifact_type is None:
                continue
            if line == NO_DEPENDENCIES or line.startswith(PADDING_PREFIXES):
                continue
            artifacts.append(_parse_artifact_line(line, artifact_type))
    return artifacts


def filter_repositories(repositories: Iterable[Repository]) -> List[Repository]:
    """Drop local ``file:`` repositories, which hold no remote metadata."""
    return [repository for repository in repositories if not repository.url.startswith("file:")]


def _remove_first(artifacts: List[Artifact], artifact: Artifact) -> None:
    try:
        artifacts.remove(artifact)
    except ValueError:
        pass


def filter_artifacts(artifacts: Iterable[Artifact]) -> List[Artifact]:
    """Collapse classpath configurations into the configurations they stand for.

    A classpath record equal to a declared record is dropped, then among
    classpath configurations the earliest one in precedence order wins, and
    the survivors are renamed to their declaration configuration. Order is
    preserved and the function is idempotent.

    Args:
        artifacts: Artifacts parsed from the ``dependencies`` report

    Returns:
        A new list of normalized artifacts
    """
    result = list(artifacts)
    for artifact in [a for a in result if not a.type.is_classpath]:
        for classpath_type in _CLASSPATH_PRECEDENCE:
            _remove_first(result, artifact.with_type(classpath_type))
    for index, winner_type in enumerate(_CLASSPATH_PRECEDENCE[:-1]):
        for artifact in [a for a in result if a.type is winner_type]:
            for loser_type in _CLASSPATH_PRECEDENCE[index + 1:]:
                _remove_first(result, artifact.with_type(loser_type))
    return [
        artifact.with_type(artifact.type.authored) if artifact.type.is_classpath else artifact
        for artifact in result
    ]


def find_gradle_home() -> Optional[str]:
    """Return the Gradle installation from GRADLE_HOME, else from a PATH entry."""
    gradle_home = os.environ.get(Constants.ENV_GRADLE_HOME)
    if gradle_home:
        return gradle_home
    for segment in os.environ.get("PATH", "").split(os.pathsep):
        match = _GRADLE_BIN_PATTERN.search(segment)
        if match:
            return match.group(1)
    return None


def find_gradle_command(project_directory: Path) -> str:
    """Pick the Gradle executable for a project directory.

    Priority: configured command, project wrapper, installation home,
    ``gradle`` on the PATH.
    """
    if Constants.GRADLE_COMMAND:
        return str(Constants.GRADLE_COMMAND)
    wrapper = project_directory / ("gradlew.bat" if os.name == "nt" else "gradlew")
    if wrapper.is_file():
        return str(wrapper)
    gradle_home = find_gradle_home()
    if gradle_home:
        executable = Path(gradle_home) / "bin" / ("gradle.bat" if os.name == "nt" else "gradle")
        if executable.is_file():
            return str(executable)
    return shutil.which("gradle") or "gradle"


class GradleBuildResolver(BuildResolver):
    """Resolver for Groovy and Kotlin Gradle build files."""

    FILE_TYPES = frozenset({BuildFileType.GRADLE_GROOVY, BuildFileType.GRADLE_KOTLIN})

    @property
    def file_types(self) -> FrozenSet[BuildFileType]:
        return self.FILE_TYPES

    def run_tasks(self, build_file: BuildFile) -> str:
        """Run the ``repositories`` and ``dependencies`` tasks and return stdout.

        Raises:
            BuildResolveError: If Gradle cannot be started, times out or fails.
        """
        project_directory = build_file.file.parent
        command = [
            find_gradle_command(project_directory),
            "--console=plain",
            f"--init-script={INIT_SCRIPT}",
            "repositories",
            "dependencies",
        ]
        logger.info("Resolving the %s build", build_file.file)
        with Timer() as t:
            try:
                completed = subprocess.run(
                    command,
                    cwd=str(project_directory),
                    capture_output=True,
                    text=True,
                    timeout=Constants.GRADLE_TIMEOUT_SEC,
                    check=False,
                )
            except FileNotFoundError as exc:
                raise BuildResolveError(f"Gradle executable not found: {command[0]}") from exc
            except subprocess.TimeoutExpired as exc:
                raise BuildResolveError(
                    f"Gradle did not complete within {Constants.GRADLE_TIMEOUT_SEC} seconds"
                ) from exc
        if is_debug_enabled(logger):
            logger.debug(
                "Gradle run finished",
                extra=extra_context(
                    event="subprocess",
                    component="gradle",
                    action="run_tasks",
                    outcome="success" if completed.returncode == 0 else "failure",
                    return_code=completed.returncode,
                    duration_ms=t.duration_ms(),
                    target=str(build_file.file),
                )
            )
        if completed.returncode != 0:
            details = (completed.stderr or "").strip().splitlines()
            reason = details[-1] if details else f"exit code {completed.returncode}"
            raise BuildResolveError(f"Gradle build failed: {reason}")
        return completed.stdout

    def resolve(self, build_file: BuildFile) -> Build:
        if build_file.type not in self.FILE_TYPES:
            raise ValueError(f"Unsupported build file type: {build_file.type}")
        lines = iter(self.run_tasks(build_file).splitlines())

        repositories = filter_repositories(parse_repositories(lines))
        artifacts = filter_artifacts(parse_artifacts(lines))
        if is_debug_enabled(logger):
            for repository in repositories:
                logger.debug("Repository: %s", repository)
            for artifact in artifacts:
                logger.debug("Artifact: %s", artifact)
        return Build(build_file, repositories, artifacts)
