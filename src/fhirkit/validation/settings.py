"""Validator settings."""

from __future__ import annotations

from dataclasses import dataclass

from ..models.outcome import IssueSeverity
from ..source.cached import CachedResolver


@dataclass
class ValidationSettings:
    """Configuration for a Validator."""

    resolver: CachedResolver
    # Descend into Identifier, HumanName, ... using their core profiles
    resolve_datatype_profiles: bool = True
    unknown_element_severity: IssueSeverity = IssueSeverity.ERROR
