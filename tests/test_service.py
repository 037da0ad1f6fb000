"""Tests for update selection and the update checking service."""

import threading
import time
from pathlib import Path

import pytest

from artifact.models import (
    Artifact,
    ArtifactAvailableVersions,
    ArtifactIdentifier,
    ArtifactUpdate,
    MavenArtifactType,
    RepositoryType,
)
from builds.models import Build, BuildFile, BuildFileType, Repository
from builds.resolver import BuildResolver, BuildResolveError
from filters.artifact import ACCEPT_ALL, WildcardArtifactFilter
from filters.parser import ArtifactFilterParseError, parse
from service import Service, is_checked, select_update_version
from versioning.filters import default_version_filter_factory
from versioning.resolvers.base import ArtifactAvailableVersionsResolver, ArtifactAvailableVersionsResolveError

CENTRAL = Repository(RepositoryType.NORMAL, "central", "https://repo.maven.apache.org/maven2")


def artifact(version="1.0.0", group_id="foo-group", artifact_id="foo-artifact", inherited=False):
    return Artifact(
        MavenArtifactType.DEPENDENCY,
        ArtifactIdentifier(group_id, artifact_id),
        version,
        inherited,
    )


class FakeVersionsResolver(ArtifactAvailableVersionsResolver):
    """Serves versions from a dict keyed by ``group:artifact``."""

    def __init__(self, versions, delays=None):
        self.versions = versions
        self.delays = delays or {}
        self.calls = []
        self._lock = threading.Lock()

    def resolve(self, artifact, repositories):
        key = str(artifact.identifier)
        with self._lock:
            self.calls.append(key)
        time.sleep(self.delays.get(key, 0))
        if key not in self.versions:
            raise ArtifactAvailableVersionsResolveError(f"No versions for {key}")
        return ArtifactAvailableVersions(artifact, tuple(self.versions[key]))


class FakeBuildResolver(BuildResolver):
    def __init__(self, artifacts=()):
        self.artifacts = artifacts

    @property
    def file_types(self):
        return frozenset({BuildFileType.MAVEN})

    def resolve(self, build_file):
        return Build(build_file, [CENTRAL], self.artifacts)


@pytest.fixture
def build_file(tmp_path):
    path = tmp_path / "pom.xml"
    path.write_text("<project/>", encoding="utf-8")
    return BuildFile(BuildFileType.MAVEN, path)


def make_service(versions, **kwargs):
    return Service(
        build_resolvers=[FakeBuildResolver()],
        available_versions_resolver=FakeVersionsResolver(versions, kwargs.pop("delays", None)),
        user_artifact_filter=kwargs.pop("user_artifact_filter", ACCEPT_ALL),
        **kwargs,
    )


class TestSelectUpdateVersion:
    """Choice of the reported update version."""

    def select(self, declared, available, artifact_filter=ACCEPT_ALL):
        candidate = artifact(declared)
        return select_update_version(
            candidate,
            available,
            artifact_filter,
            default_version_filter_factory().create(declared),
        )

    def test_highest_acceptable_version(self):
        assert self.select("1.0.0", ["1.0.0", "1.1.0", "2.0.0-rc1", "2.0.0-SNAPSHOT"]) == "1.1.0"

    def test_no_update_when_declared_is_highest(self):
        assert self.select("2.0.0", ["1.0.0", "2.0.0"]) is None

    def test_no_versions(self):
        assert self.select("1.1.0", []) is None

    def test_nothing_acceptable(self):
        assert self.select("1.0.0", ["2.0.0-alpha", "3.0.0-beta"]) is None

    def test_lower_version_may_be_reported(self):
        """The pick is never compared with the declared version."""
        assert self.select("3.0.0", ["1.0.0", "2.0.0", "3.0.0-rc1"]) == "2.0.0"

    def test_artifact_filter_applies_to_candidates(self):
        rule = WildcardArtifactFilter("foo-group", "*", "1.*")
        assert self.select("1.0.0", ["1.0.0", "1.5.0", "2.0.0"], rule) == "1.5.0"

    def test_qualifier_flavor_is_kept(self):
        assert self.select("30.1-jre", ["30.1-jre", "31.0-android", "31.0-jre", "32.0-android"]) == "31.0-jre"


class TestIsChecked:
    """Artifacts skipped before any lookup."""

    def test_without_version(self):
        assert not is_checked(artifact(None), ACCEPT_ALL)

    def test_snapshots(self):
        assert is_checked(artifact("2.0.0-SNAPSHOT"), ACCEPT_ALL)
        assert not is_checked(artifact("2.0.0-SNAPSHOT"), ACCEPT_ALL, ignore_snapshots=True)

    def test_inherited(self):
        assert is_checked(artifact(inherited=True), ACCEPT_ALL)
        assert not is_checked(artifact(inherited=True), ACCEPT_ALL, ignore_inherited=True)

    def test_filter(self):
        assert not is_checked(artifact(), WildcardArtifactFilter("bar-group"))


class TestFindArtifactUpdates:
    """End-to-end update checking of one build."""

    def test_simple_update(self, build_file):
        service = make_service({"foo-group:foo-artifact": ["1.0.0", "2.0.0"]})
        build = Build(build_file, [CENTRAL], [artifact("1.0.0")])
        assert service.find_artifact_updates(build) == [ArtifactUpdate(artifact("1.0.0"), "2.0.0")]

    def test_ignored_snapshot_is_not_looked_up(self, build_file):
        service = make_service({"foo-group:foo-artifact": ["1.0.0", "2.0.0"]})
        build = Build(build_file, [CENTRAL], [artifact("2.0.0-SNAPSHOT")])
        assert service.find_artifact_updates(build, ignore_snapshots=True) == []
        assert service.available_versions_resolver.calls == []

    def test_no_available_versions(self, build_file):
        service = make_service({"foo-group:foo-artifact": []})
        build = Build(build_file, [CENTRAL], [artifact("1.1.0")])
        assert service.find_artifact_updates(build) == []

    def test_build_ignore_file(self, build_file):
        (build_file.file.parent / ".buildcheck-ignore").write_text("foo-group:*\n", encoding="utf-8")
        service = make_service({
            "foo-group:foo-artifact": ["1.0.0", "9.0.0"],
            "foo-group:other": ["1.0.0", "9.0.0"],
            "bar-group:bar-artifact": ["1.0.0", "9.0.0"],
        })
        build = Build(build_file, [CENTRAL], [
            artifact("1.0.0"),
            artifact("1.0.0", artifact_id="other"),
            artifact("1.0.0", "bar-group", "bar-artifact"),
        ])
        updates = service.find_artifact_updates(build)
        assert [str(u.artifact.identifier) for u in updates] == ["bar-group:bar-artifact"]

    def test_user_ignore_filter(self, build_file):
        service = make_service(
            {"foo-group:foo-artifact": ["1.0.0", "2.0.0"]},
            user_artifact_filter=parse("foo-group"),
        )
        build = Build(build_file, [CENTRAL], [artifact("1.0.0")])
        assert service.find_artifact_updates(build) == []

    def test_command_line_filters(self, build_file):
        service = make_service({
            "foo-group:foo-artifact": ["1.0.0", "1.5.0", "2.0.0"],
            "bar-group:bar-artifact": ["1.0.0", "2.0.0"],
        })
        build = Build(build_file, [CENTRAL], [
            artifact("1.0.0"),
            artifact("1.0.0", "bar-group", "bar-artifact"),
        ])
        updates = service.find_artifact_updates(build, filters=["foo-group:*:1.*", "baz"])
        assert updates == [ArtifactUpdate(artifact("1.0.0"), "1.5.0")]

    def test_malformed_command_line_filter(self, build_file):
        service = make_service({})
        build = Build(build_file, [CENTRAL], [artifact("1.0.0")])
        with pytest.raises(ArtifactFilterParseError):
            service.find_artifact_updates(build, filters=["a:b:c:d"])

    def test_malformed_build_ignore_file(self, build_file):
        ignore_file = build_file.file.parent / ".buildcheck-ignore"
        ignore_file.write_text(":oops\n", encoding="utf-8")
        service = make_service({})
        build = Build(build_file, [CENTRAL], [artifact("1.0.0")])
        with pytest.raises(ArtifactFilterParseError) as exc_info:
            service.find_artifact_updates(build)
        assert exc_info.value.file == ignore_file

    def test_resolve_error_propagates(self, build_file):
        service = make_service({})
        build = Build(build_file, [CENTRAL], [artifact("1.0.0")])
        with pytest.raises(ArtifactAvailableVersionsResolveError):
            service.find_artifact_updates(build)

    def test_declaration_order_is_kept(self, build_file):
        versions = {f"g{i}:a": ["1.0", "2.0"] for i in range(6)}
        delays = {f"g{i}:a": 0.01 * (6 - i) for i in range(6)}
        service = make_service(versions, delays=delays, max_workers=6)
        build = Build(build_file, [CENTRAL], [artifact("1.0", f"g{i}", "a") for i in range(6)])
        updates = service.find_artifact_updates(build)
        assert [u.artifact.identifier.group_id for u in updates] == [f"g{i}" for i in range(6)]

    def test_deterministic(self, build_file):
        service = make_service({"foo-group:foo-artifact": ["1.0.0", "1.2.0", "2.0.0-M1"]})
        build = Build(build_file, [CENTRAL], [artifact("1.0.0"), artifact(None)])
        assert service.find_artifact_updates(build) == service.find_artifact_updates(build)


class TestService:
    """Build files and builds."""

    def test_find_build(self, build_file):
        resolver = FakeBuildResolver([artifact("1.0.0")])
        service = Service(
            build_resolvers=[resolver],
            available_versions_resolver=FakeVersionsResolver({}),
            user_artifact_filter=ACCEPT_ALL,
        )
        build = service.find_build(build_file)
        assert build.artifacts == (artifact("1.0.0"),)

    def test_find_build_without_resolver(self, tmp_path):
        service = make_service({})
        with pytest.raises(ValueError):
            service.find_build(BuildFile(BuildFileType.GRADLE_KOTLIN, tmp_path / "build.gradle.kts"))

    def test_find_build_propagates_resolve_errors(self, build_file):
        class FailingResolver(FakeBuildResolver):
            def resolve(self, build_file):
                raise BuildResolveError("broken")

        service = Service(
            build_resolvers=[FailingResolver()],
            available_versions_resolver=FakeVersionsResolver({}),
            user_artifact_filter=ACCEPT_ALL,
        )
        with pytest.raises(BuildResolveError):
            service.find_build(build_file)

    def test_user_ignore_file(self, tmp_path):
        (tmp_path / ".buildcheck-ignore").write_text("foo-group\n", encoding="utf-8")
        user_filter = Service.create_user_artifact_filter(tmp_path)
        assert not user_filter.accept(artifact())
        assert Service.create_user_artifact_filter(tmp_path / "missing") is ACCEPT_ALL

    def test_malformed_user_ignore_file(self, tmp_path):
        (tmp_path / ".buildcheck-ignore").write_text("a:b:c:d\n", encoding="utf-8")
        with pytest.raises(ArtifactFilterParseError):
            Service.create_user_artifact_filter(tmp_path)

    def test_find_and_filter_build_files(self, tmp_path):
        (tmp_path / "pom.xml").write_text("<project/>", encoding="utf-8")
        (tmp_path / "target").mkdir()
        (tmp_path / "target" / "pom.xml").write_text("<project/>", encoding="utf-8")
        found = Service.find_build_files(tmp_path)
        assert len(found) == 2
        assert [b.file for b in Service.filter_build_files(found, tmp_path)] == [Path(tmp_path / "pom.xml")]
