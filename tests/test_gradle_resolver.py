"""Tests for running Gradle and locating its executable."""

import subprocess
from pathlib import Path
from unittest.mock import patch

import pytest

from artifact.models import GradleArtifactType, RepositoryType
from builds.gradle import GradleBuildResolver, INIT_SCRIPT, find_gradle_command, find_gradle_home
from builds.models import BuildFile, BuildFileType
from builds.resolver import BuildResolveError
from constants import Constants

RULE = "-" * 60
STDOUT = f"""\
> Task :repositories
NORMAL:MavenRepo:https://repo.maven.apache.org/maven2/
NORMAL:flat:file:/tmp/libs

> Task :dependencies

{RULE}
Root project 'demo'
{RULE}

compileClasspath - Compile classpath for source set 'main'.
\\--- org.slf4j:slf4j-api:1.7.30

implementation - Implementation only dependencies for source set 'main'. (n)
\\--- org.slf4j:slf4j-api:1.7.30 (n)

A web-based, searchable dependency report is available by adding the --scan option.
"""


@pytest.fixture
def build_file(tmp_path):
    path = tmp_path / "build.gradle"
    path.write_text("plugins { id 'java' }\n", encoding="utf-8")
    return BuildFile(BuildFileType.GRADLE_GROOVY, path)


@pytest.fixture(autouse=True)
def gradle_command():
    saved = Constants.GRADLE_COMMAND
    Constants.GRADLE_COMMAND = None
    yield
    Constants.GRADLE_COMMAND = saved


def completed(returncode=0, stdout="", stderr=""):
    return subprocess.CompletedProcess(args=[], returncode=returncode, stdout=stdout, stderr=stderr)


class TestGradleBuildResolver:
    """Resolution of Gradle build files through the console report."""

    def test_file_types(self):
        assert GradleBuildResolver().file_types == {BuildFileType.GRADLE_GROOVY, BuildFileType.GRADLE_KOTLIN}

    def test_init_script_is_bundled(self):
        assert INIT_SCRIPT.is_file()

    @patch("builds.gradle.subprocess.run")
    def test_resolve(self, mock_run, build_file):
        mock_run.return_value = completed(stdout=STDOUT)
        build = GradleBuildResolver().resolve(build_file)

        assert build.file == build_file
        assert [(r.type, r.id) for r in build.repositories] == [(RepositoryType.NORMAL, "MavenRepo")]
        assert len(build.artifacts) == 1
        assert build.artifacts[0].type is GradleArtifactType.IMPLEMENTATION
        assert str(build.artifacts[0].identifier) == "org.slf4j:slf4j-api"

        command = mock_run.call_args[0][0]
        assert command[-2:] == ["repositories", "dependencies"]
        assert f"--init-script={INIT_SCRIPT}" in command
        assert mock_run.call_args[1]["cwd"] == str(build_file.file.parent)

    @patch("builds.gradle.subprocess.run")
    def test_failed_build(self, mock_run, build_file):
        mock_run.return_value = completed(returncode=1, stderr="FAILURE: Build failed with an exception.\n")
        with pytest.raises(BuildResolveError, match="Build failed with an exception"):
            GradleBuildResolver().resolve(build_file)

    @patch("builds.gradle.subprocess.run", side_effect=FileNotFoundError("gradle"))
    def test_missing_executable(self, _mock_run, build_file):
        with pytest.raises(BuildResolveError, match="executable not found"):
            GradleBuildResolver().resolve(build_file)

    @patch("builds.gradle.subprocess.run", side_effect=subprocess.TimeoutExpired("gradle", 1))
    def test_timeout(self, _mock_run, build_file):
        with pytest.raises(BuildResolveError, match="did not complete"):
            GradleBuildResolver().resolve(build_file)

    @patch("builds.gradle.subprocess.run")
    def test_malformed_output(self, mock_run, build_file):
        mock_run.return_value = completed(stdout="> Task :repositories\nBROKEN\n")
        with pytest.raises(BuildResolveError):
            GradleBuildResolver().resolve(build_file)

    def test_rejects_maven_build_files(self, tmp_path):
        with pytest.raises(ValueError):
            GradleBuildResolver().resolve(BuildFile(BuildFileType.MAVEN, tmp_path / "pom.xml"))


class TestFindGradle:
    """Gradle executable lookup."""

    def test_configured_command_first(self, tmp_path):
        (tmp_path / "gradlew").write_text("#!/bin/sh\n", encoding="utf-8")
        Constants.GRADLE_COMMAND = "/opt/gradle/bin/gradle"
        assert find_gradle_command(tmp_path) == "/opt/gradle/bin/gradle"

    def test_wrapper(self, tmp_path):
        (tmp_path / "gradlew").write_text("#!/bin/sh\n", encoding="utf-8")
        (tmp_path / "gradlew.bat").write_text("@echo off\n", encoding="utf-8")
        assert Path(find_gradle_command(tmp_path)).parent == tmp_path

    def test_gradle_home(self, tmp_path, monkeypatch):
        home = tmp_path / "gradle-7.6"
        (home / "bin").mkdir(parents=True)
        (home / "bin" / "gradle").write_text("", encoding="utf-8")
        (home / "bin" / "gradle.bat").write_text("", encoding="utf-8")
        monkeypatch.setenv("GRADLE_HOME", str(home))
        project = tmp_path / "project"
        project.mkdir()
        assert Path(find_gradle_command(project)).parent == home / "bin"

    def test_path_fallback(self, tmp_path, monkeypatch):
        monkeypatch.delenv("GRADLE_HOME", raising=False)
        monkeypatch.setenv("PATH", "")
        assert find_gradle_command(tmp_path) == "gradle"

    def test_home_from_environment(self, monkeypatch):
        monkeypatch.setenv("GRADLE_HOME", "/opt/gradle")
        assert find_gradle_home() == "/opt/gradle"

    def test_home_from_path(self, monkeypatch):
        monkeypatch.delenv("GRADLE_HOME", raising=False)
        monkeypatch.setenv("PATH", "/usr/bin:/opt/gradle-7.6.1/bin:/bin")
        assert find_gradle_home() == "/opt/gradle-7.6.1"

    def test_no_home(self, monkeypatch):
        monkeypatch.delenv("GRADLE_HOME", raising=False)
        monkeypatch.setenv("PATH", "/usr/bin:/bin")
        assert find_gradle_home() is None
