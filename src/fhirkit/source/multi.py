"""Ordered chain of definition sources."""

from __future__ import annotations

import logging
from typing import Any

from ..errors import ConfigurationError
from ..protocols import DefinitionSource

logger = logging.getLogger(__name__)


class MultiResolver:
    """Ask each source in turn; the first one that has the url wins."""

    def __init__(self, *sources: DefinitionSource):
        if not sources:
            raise ConfigurationError("MultiResolver needs at least one definition source")
        self._sources = tuple(sources)

    def find(self, url: str) -> dict[str, Any] | None:
        for source in self._sources:
            data = source.find(url)
            if data is not None:
                logger.debug("[SOURCE] %s found by %s", url, type(source).__name__)
                return data
        return None
