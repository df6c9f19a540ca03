"""Builders for conformance resources used across tests."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any


def structure_definition(
    url: str,
    type_name: str,
    elements: list[dict[str, Any]],
    *,
    name: str | None = None,
    snapshot: bool = False,
    base: str | None = None,
) -> dict[str, Any]:
    """Build a StructureDefinition dict; differential-only unless *snapshot*."""
    data: dict[str, Any] = {
        "resourceType": "StructureDefinition",
        "url": url,
        "name": name or type_name,
        "status": "active",
        "kind": "resource",
        "type": type_name,
        "baseDefinition": base or f"http://hl7.org/fhir/StructureDefinition/{type_name}",
        "derivation": "specialization" if snapshot else "constraint",
    }
    key = "snapshot" if snapshot else "differential"
    data[key] = {"element": [{"path": type_name}, *elements]}
    return data


def write_json(path: Path, data: dict[str, Any]) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2), encoding="utf-8")
    return path
