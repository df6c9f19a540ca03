"""Conformance resources from a directory of JSON files."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from ..errors import ConfigurationError
from ..models.profile import strip_version

logger = logging.getLogger(__name__)

CONFORMANCE_TYPES = {"StructureDefinition", "ValueSet"}


class DirectorySource:
    """Definition store backed by ``*.json`` files under a directory.

    The directory is indexed once, when the source is constructed: every
    JSON file holding a StructureDefinition or ValueSet is mapped by its
    canonical ``url``. ``find`` re-reads the file; parsing and caching are
    left to CachedResolver.

    When two files declare the same url the first one in sorted path order
    wins.
    """

    def __init__(self, path: str | Path, include_subdirectories: bool = True):
        self._path = Path(path)
        self._include_subdirectories = include_subdirectories
        if not self._path.is_dir():
            raise ConfigurationError(f"Definition directory not found: {self._path}")
        self._index: dict[str, Path] = {}
        self._build_index()

    def _build_index(self) -> None:
        pattern = "**/*.json" if self._include_subdirectories else "*.json"
        for file_path in sorted(self._path.glob(pattern)):
            if not file_path.is_file():
                continue
            try:
                data = json.loads(file_path.read_text(encoding="utf-8"))
            except (OSError, ValueError):
                logger.warning("[SOURCE] Failed to read %s, skipping", file_path)
                continue
            if not isinstance(data, dict) or data.get("resourceType") not in CONFORMANCE_TYPES:
                continue
            url = data.get("url")
            if not url:
                logger.warning("[SOURCE] %s has no canonical url, skipping", file_path)
                continue
            self._index.setdefault(strip_version(url), file_path)
        logger.info("[SOURCE] Indexed %d definition(s) under %s", len(self._index), self._path)

    def list_urls(self) -> list[str]:
        return sorted(self._index)

    def find(self, url: str) -> dict[str, Any] | None:
        file_path = self._index.get(url)
        if file_path is None:
            return None
        logger.debug("[SOURCE] %s -> %s", url, file_path)
        try:
            return json.loads(file_path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            logger.warning("[SOURCE] %s changed or disappeared since indexing", file_path)
            return None
