"""Local validation of resources against resolved profiles."""

from .settings import ValidationSettings
from .validator import Validator, check_primitive, matches_pattern

__all__ = ["ValidationSettings", "Validator", "check_primitive", "matches_pattern"]
