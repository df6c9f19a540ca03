"""fhirkit - FHIR resource validation and a REST client for FHIR servers."""

__version__ = "0.1.0"


# Lazy imports so `fhirkit.errors` or the models can be used without httpx
def __getattr__(name: str):
    if name == "FhirClient":
        from .client import FhirClient
        return FhirClient
    elif name == "CachedResolver":
        from .source import CachedResolver
        return CachedResolver
    elif name in ("Validator", "ValidationSettings"):
        from . import validation
        return getattr(validation, name)
    elif name in ("Patient", "Resource", "ValidationOutcome", "SearchParams", "SearchResult"):
        from . import models
        return getattr(models, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    "CachedResolver",
    "FhirClient",
    "Patient",
    "Resource",
    "SearchParams",
    "SearchResult",
    "ValidationOutcome",
    "ValidationSettings",
    "Validator",
]
