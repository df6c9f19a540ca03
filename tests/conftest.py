"""Shared fixtures: resolvers, validator, stub endpoint and client."""

from __future__ import annotations

import json
import zipfile
from pathlib import Path
from typing import Any, Callable

import pytest

from fhirkit.client import FhirClient
from fhirkit.demo import build_example_patient
from fhirkit.models.resource import Patient
from fhirkit.source import CachedResolver
from fhirkit.validation import ValidationSettings, Validator
from stub_server import BASE_URL, StubFhirServer


@pytest.fixture
def profiles_dir(tmp_path: Path) -> Path:
    directory = tmp_path / "profiles"
    directory.mkdir()
    return directory


@pytest.fixture
def make_archive(tmp_path: Path) -> Callable[..., Path]:
    """Factory writing definitions into a zip archive."""

    def _make(definitions: dict[str, dict[str, Any]], name: str = "definitions.zip") -> Path:
        path = tmp_path / name
        with zipfile.ZipFile(path, "w") as archive:
            for member, data in definitions.items():
                archive.writestr(member, json.dumps(data))
        return path

    return _make


@pytest.fixture
def resolver() -> CachedResolver:
    """Bundled baseline definitions only."""
    return CachedResolver.layered(None)


@pytest.fixture
def validator(resolver: CachedResolver) -> Validator:
    return Validator(ValidationSettings(resolver=resolver))


@pytest.fixture
def stub_server(validator: Validator) -> StubFhirServer:
    return StubFhirServer(validator=validator)


@pytest.fixture
def client(stub_server: StubFhirServer):
    with FhirClient(BASE_URL, transport=stub_server.transport()) as fhir_client:
        yield fhir_client


@pytest.fixture
def patient() -> Patient:
    return build_example_patient()
