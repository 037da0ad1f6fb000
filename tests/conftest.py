"""Shared test fixtures."""

import pytest

from constants import Constants


@pytest.fixture(autouse=True)
def no_maven_settings(monkeypatch, tmp_path_factory):
    """Keep the settings of the machine running the tests out of remote lookups."""
    missing = tmp_path_factory.mktemp("maven") / "missing-settings.xml"
    monkeypatch.setattr(Constants, "MAVEN_SETTINGS_FILE", str(missing))
    monkeypatch.setattr(Constants, "MAVEN_GLOBAL_SETTINGS_FILE", str(missing))
