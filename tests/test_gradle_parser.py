"""Tests for the Gradle console report parser and artifact normalizer."""

import io

import pytest

from artifact.models import Artifact, ArtifactIdentifier, GradleArtifactType, RepositoryType
from builds.gradle import (
    filter_artifacts,
    filter_repositories,
    parse_artifacts,
    parse_repositories,
)
from builds.models import Repository
from builds.resolver import BuildResolveError

RULE = "-" * 60

CONSOLE_OUTPUT = f"""\
> Configure project :
Starting a Gradle Daemon

> Task :repositories
NORMAL:MavenRepo:https://repo.maven.apache.org/maven2/
NORMAL:local:file:/home/user/.m2/repository/
PLUGIN:Gradle Central Plugin Repository:https://plugins.gradle.org/m2

> Task :dependencies

{RULE}
Root project 'example'
{RULE}

annotationProcessor - Annotation processors and their dependencies for source set 'main'.
No dependencies

compileClasspath - Compile classpath for source set 'main'.
+--- com.google.guava:guava:30.1-jre
|    +--- com.google.guava:failureaccess:1.0.1
|    \\--- com.google.guava:listenablefuture:9999.0-empty-to-avoid-conflict-with-guava
\\--- org.apache.commons:commons-lang3:3.11 -> 3.12.0

implementation - Implementation only dependencies for source set 'main'. (n)
+--- com.google.guava:guava:30.1-jre (n)
\\--- org.apache.commons:commons-lang3 (n)

jacocoAgent - The Jacoco agent to use to get coverage data.
\\--- org.jacoco:org.jacoco.agent:0.8.7

testImplementation - Implementation only dependencies for source set 'test'. (n)
\\--- junit:junit:4.13.1 FAILED

A web-based, searchable dependency report is available by adding the --scan option.

BUILD SUCCESSFUL in 1s
"""

HEADER = f"> Task :dependencies\n\n{RULE}\nRoot project\n{RULE}\n\n"


def artifact(artifact_type, group_id, artifact_id, version=None):
    return Artifact(artifact_type, ArtifactIdentifier(group_id, artifact_id), version)


class TestParseRepositories:
    """Repository section of the console output."""

    def test_repositories_in_output_order(self):
        repositories = parse_repositories(CONSOLE_OUTPUT.splitlines())
        assert repositories == [
            Repository(RepositoryType.NORMAL, "MavenRepo", "https://repo.maven.apache.org/maven2/"),
            Repository(RepositoryType.NORMAL, "local", "file:/home/user/.m2/repository/"),
            Repository(RepositoryType.PLUGIN, "Gradle Central Plugin Repository", "https://plugins.gradle.org/m2"),
        ]

    def test_missing_section_yields_nothing(self):
        assert parse_repositories(["BUILD SUCCESSFUL in 1s"]) == []

    def test_section_stops_at_blank_line(self):
        lines = ["> Task :repositories", "NORMAL:a:https://a", "", "NORMAL:b:https://b"]
        assert [r.id for r in parse_repositories(lines)] == ["a"]

    def test_wrong_field_count(self):
        with pytest.raises(BuildResolveError, match='repository format'):
            parse_repositories(["> Task :repositories", "NORMAL:only-an-id"])

    def test_unknown_repository_type(self):
        with pytest.raises(BuildResolveError, match='repository type format'):
            parse_repositories(["> Task :repositories", "LOCAL:id:https://example.com"])

    def test_shared_stream_between_passes(self):
        """The artifact pass continues where the repository pass stopped."""
        stream = io.StringIO(CONSOLE_OUTPUT)
        repositories = parse_repositories(stream)
        artifacts = parse_artifacts(stream)
        assert len(repositories) == 3
        assert len(artifacts) == 5


class TestParseArtifacts:
    """Dependency report section of the console output."""

    def test_first_level_of_known_configurations(self):
        artifacts = parse_artifacts(CONSOLE_OUTPUT.splitlines())
        assert artifacts == [
            artifact(GradleArtifactType.COMPILE_CLASSPATH, "com.google.guava", "guava", "30.1-jre"),
            artifact(GradleArtifactType.COMPILE_CLASSPATH, "org.apache.commons", "commons-lang3", "3.11"),
            artifact(GradleArtifactType.IMPLEMENTATION, "com.google.guava", "guava", "30.1-jre"),
            artifact(GradleArtifactType.IMPLEMENTATION, "org.apache.commons", "commons-lang3"),
            artifact(GradleArtifactType.TEST_IMPLEMENTATION, "junit", "junit", "4.13.1"),
        ]

    def test_unknown_configuration_is_skipped(self):
        artifacts = parse_artifacts(CONSOLE_OUTPUT.splitlines())
        assert all(a.identifier.group_id != "org.jacoco" for a in artifacts)

    def test_resolved_version_when_none_declared(self):
        lines = (HEADER + "runtimeClasspath - Runtime classpath.\n+--- org.example:lib -> 2.0\n").splitlines()
        assert parse_artifacts(lines) == [
            artifact(GradleArtifactType.RUNTIME_CLASSPATH, "org.example", "lib", "2.0"),
        ]

    def test_declared_version_wins(self):
        lines = (HEADER + "runtimeClasspath - Runtime classpath.\n+--- org.example:lib:1.0 -> 2.0 (*)\n").splitlines()
        assert parse_artifacts(lines)[0].version == "1.0"

    def test_old_root_project_line(self):
        """Gradle up to 6.7 prints the root project line without a name."""
        lines = (HEADER + "api - API dependencies.\n\\--- org.example:lib:1.0\n").splitlines()
        assert parse_artifacts(lines) == [artifact(GradleArtifactType.API, "org.example", "lib", "1.0")]

    def test_missing_section_yields_nothing(self):
        assert parse_artifacts(["> Task :repositories", ""]) == []

    @pytest.mark.parametrize("header", [
        f"> Task :dependencies\n{RULE}\nRoot project\n{RULE}\n\n",
        f"> Task :dependencies\n\n{'-' * 59}\nRoot project\n{RULE}\n\n",
        f"> Task :dependencies\n\n{RULE}\nProject ':app'\n{RULE}\n\n",
        f"> Task :dependencies\n\n{RULE}\nRoot project\n{RULE}\nimplementation\n",
    ])
    def test_unexpected_header(self, header):
        with pytest.raises(BuildResolveError, match='header format'):
            parse_artifacts(header.splitlines())

    def test_truncated_header(self):
        with pytest.raises(BuildResolveError, match='header format'):
            parse_artifacts(["> Task :dependencies", ""])

    @pytest.mark.parametrize("line", [
        "org.example:lib:1.0",
        "+--- lib",
        "+--- org.example:lib:1.0:extra",
        "+--- org.example:lib:1.0 -> 2.0 -> 3.0",
    ])
    def test_unexpected_artifact_line(self, line):
        lines = (HEADER + "implementation - Implementation.\n" + line + "\n").splitlines()
        with pytest.raises(BuildResolveError, match='artifact format'):
            parse_artifacts(lines)

    def test_stops_at_footer(self):
        text = (
            HEADER
            + "api - API.\n+--- a:b:1\n\n"
            + "A web-based, searchable dependency report is available by adding the --scan option.\n"
            + "api - API.\n+--- c:d:1\n"
        )
        assert [str(a.identifier) for a in parse_artifacts(text.splitlines())] == ["a:b"]

    def test_line_terminators_are_ignored(self):
        lines = [line + "\r\n" for line in (HEADER + "api - API.\n+--- a:b:1\n").splitlines()]
        assert parse_artifacts(lines) == [artifact(GradleArtifactType.API, "a", "b", "1")]


class TestFilterArtifacts:
    """Collapse of classpath configurations."""

    def test_console_output(self):
        normalized = filter_artifacts(parse_artifacts(CONSOLE_OUTPUT.splitlines()))
        assert normalized == [
            artifact(GradleArtifactType.IMPLEMENTATION, "org.apache.commons", "commons-lang3", "3.11"),
            artifact(GradleArtifactType.IMPLEMENTATION, "com.google.guava", "guava", "30.1-jre"),
            artifact(GradleArtifactType.IMPLEMENTATION, "org.apache.commons", "commons-lang3"),
            artifact(GradleArtifactType.TEST_IMPLEMENTATION, "junit", "junit", "4.13.1"),
        ]

    def test_four_classpath_duplicates_collapse_to_one(self):
        artifacts = [
            artifact(GradleArtifactType.TEST_RUNTIME_CLASSPATH, "g", "a", "1"),
            artifact(GradleArtifactType.TEST_COMPILE_CLASSPATH, "g", "a", "1"),
            artifact(GradleArtifactType.RUNTIME_CLASSPATH, "g", "a", "1"),
            artifact(GradleArtifactType.COMPILE_CLASSPATH, "g", "a", "1"),
        ]
        assert filter_artifacts(artifacts) == [artifact(GradleArtifactType.IMPLEMENTATION, "g", "a", "1")]

    def test_classpath_duplicates_of_a_declaration_disappear(self):
        artifacts = [
            artifact(GradleArtifactType.COMPILE_CLASSPATH, "g", "a", "1"),
            artifact(GradleArtifactType.RUNTIME_CLASSPATH, "g", "a", "1"),
            artifact(GradleArtifactType.TEST_COMPILE_CLASSPATH, "g", "a", "1"),
            artifact(GradleArtifactType.TEST_RUNTIME_CLASSPATH, "g", "a", "1"),
            artifact(GradleArtifactType.API, "g", "a", "1"),
        ]
        assert filter_artifacts(artifacts) == [artifact(GradleArtifactType.API, "g", "a", "1")]

    @pytest.mark.parametrize("classpath_type, authored_type", [
        (GradleArtifactType.COMPILE_CLASSPATH, GradleArtifactType.IMPLEMENTATION),
        (GradleArtifactType.RUNTIME_CLASSPATH, GradleArtifactType.RUNTIME_ONLY),
        (GradleArtifactType.TEST_COMPILE_CLASSPATH, GradleArtifactType.TEST_IMPLEMENTATION),
        (GradleArtifactType.TEST_RUNTIME_CLASSPATH, GradleArtifactType.TEST_RUNTIME_ONLY),
    ])
    def test_rename(self, classpath_type, authored_type):
        assert filter_artifacts([artifact(classpath_type, "g", "a", "1")]) == [
            artifact(authored_type, "g", "a", "1"),
        ]

    def test_later_classpath_wins_over_nothing(self):
        artifacts = [
            artifact(GradleArtifactType.RUNTIME_CLASSPATH, "g", "a", "1"),
            artifact(GradleArtifactType.TEST_RUNTIME_CLASSPATH, "g", "a", "1"),
        ]
        assert filter_artifacts(artifacts) == [artifact(GradleArtifactType.RUNTIME_ONLY, "g", "a", "1")]

    def test_different_versions_are_not_duplicates(self):
        artifacts = [
            artifact(GradleArtifactType.COMPILE_CLASSPATH, "g", "a", "1"),
            artifact(GradleArtifactType.RUNTIME_CLASSPATH, "g", "a", "2"),
        ]
        assert filter_artifacts(artifacts) == [
            artifact(GradleArtifactType.IMPLEMENTATION, "g", "a", "1"),
            artifact(GradleArtifactType.RUNTIME_ONLY, "g", "a", "2"),
        ]

    def test_idempotent(self):
        once = filter_artifacts(parse_artifacts(CONSOLE_OUTPUT.splitlines()))
        assert filter_artifacts(once) == once

    def test_input_is_not_modified(self):
        artifacts = [artifact(GradleArtifactType.COMPILE_CLASSPATH, "g", "a", "1")]
        filter_artifacts(artifacts)
        assert artifacts[0].type is GradleArtifactType.COMPILE_CLASSPATH


def test_filter_repositories_drops_local_ones():
    repositories = filter_repositories(parse_repositories(CONSOLE_OUTPUT.splitlines()))
    assert [r.id for r in repositories] == ["MavenRepo", "Gradle Central Plugin Repository"]
