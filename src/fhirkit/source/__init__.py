"""Profile resolution: directory and archive stores behind a cache.

Usage:
    from fhirkit.source import CachedResolver

    resolver = CachedResolver.layered("profiles", include_subdirectories=True)
    profile = resolver.resolve("Patient")
"""

from .archive import ZipSource
from .cached import CachedResolver, canonical_key
from .directory import DirectorySource
from .multi import MultiResolver

__all__ = [
    "CachedResolver",
    "DirectorySource",
    "MultiResolver",
    "ZipSource",
    "canonical_key",
]
