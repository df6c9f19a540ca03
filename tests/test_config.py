"""Tests for environment configuration."""

from __future__ import annotations

import pytest

from fhirkit import config as config_module
from fhirkit.client import FhirClient
from fhirkit.config import FhirKitConfig, get_config

_VARIABLES = (
    "FHIRKIT_SERVER_URL",
    "FHIRKIT_PROFILES_DIR",
    "FHIRKIT_INCLUDE_SUBDIRS",
    "FHIRKIT_TIMEOUT",
    "FHIRKIT_LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    for name in _VARIABLES:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr(config_module, "_config", None)


def test_defaults():
    config = FhirKitConfig.from_env()
    assert config.server_url == "https://server.fire.ly/r4"
    assert config.timeout is None
    assert config.profiles_dir == "profiles"
    assert config.include_subdirectories is True
    assert config.log_level == "INFO"


def test_reads_environment(monkeypatch):
    monkeypatch.setenv("FHIRKIT_SERVER_URL", "http://localhost:8080/fhir")
    monkeypatch.setenv("FHIRKIT_PROFILES_DIR", "/srv/profiles")
    monkeypatch.setenv("FHIRKIT_INCLUDE_SUBDIRS", "no")
    monkeypatch.setenv("FHIRKIT_TIMEOUT", "12.5")
    monkeypatch.setenv("FHIRKIT_LOG_LEVEL", "debug")

    config = FhirKitConfig.from_env()

    assert config.server_url == "http://localhost:8080/fhir"
    assert config.profiles_dir == "/srv/profiles"
    assert config.include_subdirectories is False
    assert config.timeout == 12.5
    assert config.log_level == "DEBUG"


def test_get_config_is_cached(monkeypatch):
    first = get_config()
    monkeypatch.setenv("FHIRKIT_SERVER_URL", "http://elsewhere/fhir")
    assert get_config() is first


def test_client_from_config():
    config = FhirKitConfig(server_url="http://localhost:8080/fhir/", timeout=3)
    with FhirClient.from_config(config) as client:
        assert client.base_url == "http://localhost:8080/fhir"
