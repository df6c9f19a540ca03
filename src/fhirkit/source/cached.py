"""Caching front for a definition source.

This is the resolver the validator talks to. It turns raw conformance
JSON into ProfileDefinition / ValueSetDefinition objects and keeps every
successfully parsed definition for the life of the process.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Any

from ..errors import NotFound
from ..models.profile import (
    ProfileDefinition,
    ValueSetDefinition,
    core_profile_url,
    strip_version,
)
from ..protocols import DefinitionSource
from .archive import ZipSource
from .directory import DirectorySource
from .multi import MultiResolver

logger = logging.getLogger(__name__)


def canonical_key(url_or_type: str) -> str:
    """Normalise a profile reference to the cache key.

    Bare type names (``Patient``) expand to the core profile URL and any
    ``|version`` suffix is dropped.
    """
    url = strip_version(url_or_type.strip())
    if "/" not in url and ":" not in url:
        return core_profile_url(url)
    return url


class CachedResolver:
    """Thread-safe cache in front of a DefinitionSource.

    Hits are kept forever; the backing source is consulted at most once per
    url that resolves. Misses are not remembered, so a later lookup asks the
    source again. The lock is re-entrant because expanding a differential
    profile resolves its base definition through this same resolver.
    """

    def __init__(self, source: DefinitionSource):
        self._source = source
        self._profiles: dict[str, ProfileDefinition] = {}
        self._value_sets: dict[str, ValueSetDefinition] = {}
        self._lock = threading.RLock()
        # Keys whose baseDefinition chain is being expanded right now
        self._resolving: set[str] = set()

    @classmethod
    def layered(
        cls,
        directory: str | Path | None = None,
        include_subdirectories: bool = True,
    ) -> CachedResolver:
        """Cache -> local directory -> bundled archive, first match wins.

        Without a directory only the bundled archive is used.
        """
        sources: list[DefinitionSource] = []
        if directory is not None:
            sources.append(DirectorySource(directory, include_subdirectories))
        sources.append(ZipSource.create_validation_source())
        return cls(MultiResolver(*sources))

    def resolve(self, url_or_type: str) -> ProfileDefinition:
        """Resolve a profile by canonical URL or bare type name.

        Raises:
            NotFound: If no source has a StructureDefinition for it.
        """
        key = canonical_key(url_or_type)
        with self._lock:
            cached = self._profiles.get(key)
            if cached is not None:
                return cached

            if key in self._resolving:
                raise NotFound(f"StructureDefinition {key} has a circular baseDefinition")

            data = self._find(key, "StructureDefinition")
            base = None
            if not (data.get("snapshot") or {}).get("element") and data.get("baseDefinition"):
                self._resolving.add(key)
                try:
                    base = self.resolve(data["baseDefinition"])
                finally:
                    self._resolving.discard(key)
            try:
                profile = ProfileDefinition.from_structure_definition(data, base=base)
            except (KeyError, TypeError, ValueError) as e:
                raise NotFound(f"StructureDefinition {key} could not be parsed: {e}") from e

            self._profiles[key] = profile
            logger.info("[RESOLVER] Loaded profile %s (%d elements)", key, len(profile.elements))
            return profile

    def resolve_value_set(self, url: str) -> ValueSetDefinition:
        """Resolve a value set by canonical URL.

        Raises:
            NotFound: If no source has a ValueSet for it.
        """
        key = strip_version(url.strip())
        with self._lock:
            cached = self._value_sets.get(key)
            if cached is not None:
                return cached

            data = self._find(key, "ValueSet")
            try:
                value_set = ValueSetDefinition.from_value_set(data)
            except (KeyError, TypeError, ValueError) as e:
                raise NotFound(f"ValueSet {key} could not be parsed: {e}") from e

            self._value_sets[key] = value_set
            logger.info("[RESOLVER] Loaded value set %s", key)
            return value_set

    def clear(self) -> None:
        """Drop all cached definitions."""
        with self._lock:
            self._profiles.clear()
            self._value_sets.clear()

    def _find(self, key: str, resource_type: str) -> dict[str, Any]:
        data = self._source.find(key)
        if data is None:
            logger.info("[RESOLVER] No definition for %s", key)
            raise NotFound(f"Unable to resolve reference to {resource_type} '{key}'")
        if data.get("resourceType") != resource_type:
            raise NotFound(f"{key} is a {data.get('resourceType')}, not a {resource_type}")
        return data
