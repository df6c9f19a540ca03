"""FHIR REST client.

Usage:
    from fhirkit.client import FhirClient

    with FhirClient("https://server.fire.ly/r4") as client:
        print(client.capability_statement().fhir_version)
"""

from .client import FhirClient
from .wire import FHIR_JSON, outcome_from_response, raise_for_status

__all__ = ["FhirClient", "FHIR_JSON", "outcome_from_response", "raise_for_status"]
