"""Tests for the fhirkit-demo command."""

from __future__ import annotations

import httpx
import pytest

from fhirkit import config as config_module
from fhirkit import demo
from fhirkit.client import FhirClient
from stub_server import BASE_URL


@pytest.fixture(autouse=True)
def fresh_config(monkeypatch):
    monkeypatch.setattr(config_module, "_config", None)


@pytest.fixture
def stubbed_server(monkeypatch, stub_server):
    """Point the demo at the stub endpoint instead of a real server."""

    class StubbedClient(FhirClient):
        @classmethod
        def from_config(cls, config=None):
            return cls(BASE_URL, transport=stub_server.transport())

    monkeypatch.setattr(demo, "FhirClient", StubbedClient)
    return stub_server


def test_offline_validation(profiles_dir, capsys):
    assert demo.main(["--offline", "--profiles", str(profiles_dir)]) == 0
    assert "Success: True" in capsys.readouterr().out


def test_missing_profile_directory_falls_back_to_bundled(tmp_path, capsys):
    assert demo.main(["--offline", "--profiles", str(tmp_path / "absent")]) == 0
    assert "Success: True" in capsys.readouterr().out


def test_full_run(stubbed_server, profiles_dir, capsys):
    assert demo.main(["--profiles", str(profiles_dir), "--page-size", "2"]) == 0

    out = capsys.readouterr().out
    assert "capability: Name: StubFhirServer, Fhir Version: 4.0.1" in out
    assert "Id of patient: " in out
    assert "Complex search" in out
    assert "No further pages" in out
    assert len(stubbed_server.stored("Patient")) == 1


def test_failure_is_reported(stubbed_server, profiles_dir, capsys):
    stubbed_server.fail_next(httpx.ConnectError("connection refused"))

    assert demo.main(["--profiles", str(profiles_dir)]) == 1
    assert "Something has happened: " in capsys.readouterr().out


def test_example_patient_wire_form():
    data = demo.build_example_patient().to_fhir()
    assert data["gender"] == "unknown"
    assert data["name"] == [{"family": "Visser"}]
