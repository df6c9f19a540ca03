"""Conformance resources from a zip archive.

The package ships ``data/specification.zip`` with the baseline
definitions the validator needs for Patient, Organization, their
datatypes and the value sets they bind to.
"""

from __future__ import annotations

import json
import logging
import zipfile
from pathlib import Path
from typing import Any

from ..errors import ConfigurationError
from ..models.profile import strip_version
from .directory import CONFORMANCE_TYPES

logger = logging.getLogger(__name__)

_BUNDLED_ARCHIVE = Path(__file__).resolve().parents[1] / "data" / "specification.zip"


class ZipSource:
    """Definition store backed by the ``*.json`` members of a zip archive."""

    def __init__(self, path: str | Path):
        self._path = Path(path)
        self._index: dict[str, str] = {}
        try:
            with zipfile.ZipFile(self._path) as archive:
                self._build_index(archive)
        except (OSError, zipfile.BadZipFile) as e:
            raise ConfigurationError(f"Cannot open definition archive {self._path}: {e}") from e

    @classmethod
    def create_validation_source(cls) -> ZipSource:
        """Open the baseline definition archive bundled with fhirkit."""
        return cls(_BUNDLED_ARCHIVE)

    def _build_index(self, archive: zipfile.ZipFile) -> None:
        for member in sorted(archive.namelist()):
            if not member.endswith(".json"):
                continue
            try:
                data = json.loads(archive.read(member).decode("utf-8"))
            except ValueError:
                logger.warning("[SOURCE] Failed to parse %s in %s, skipping", member, self._path)
                continue
            if not isinstance(data, dict) or data.get("resourceType") not in CONFORMANCE_TYPES:
                continue
            if data.get("url"):
                self._index.setdefault(strip_version(data["url"]), member)
        logger.info("[SOURCE] Indexed %d definition(s) in %s", len(self._index), self._path)

    def list_urls(self) -> list[str]:
        return sorted(self._index)

    def find(self, url: str) -> dict[str, Any] | None:
        member = self._index.get(url)
        if member is None:
            return None
        try:
            with zipfile.ZipFile(self._path) as archive:
                return json.loads(archive.read(member).decode("utf-8"))
        except (OSError, KeyError, ValueError, zipfile.BadZipFile):
            logger.warning("[SOURCE] %s in %s changed or disappeared since indexing", member, self._path)
            return None
