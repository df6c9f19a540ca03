"""Protocol definitions for fhirkit interfaces."""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class DefinitionSource(Protocol):
    """A lookup provider for conformance resources.

    Directory stores, archive stores and the chain that combines them all
    implement this interface, so they can be stacked and reordered freely
    behind a CachedResolver.
    """

    def find(self, url: str) -> dict[str, Any] | None:
        """Look up a conformance resource by canonical URL.

        Args:
            url: Canonical URL without a ``|version`` suffix.

        Returns:
            The raw StructureDefinition or ValueSet JSON, or None when this
            source does not have it.
        """
        ...
