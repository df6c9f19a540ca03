"""Demo: validate an example patient locally, then exercise a FHIR server.

Usage:
    fhirkit-demo
    fhirkit-demo --server https://server.fire.ly/r4 --profiles profiles
    fhirkit-demo --offline          # local validation only

Environment Variables:
    FHIRKIT_SERVER_URL     - FHIR server base URL
    FHIRKIT_PROFILES_DIR   - Directory with local StructureDefinitions
    FHIRKIT_TIMEOUT        - Request timeout in seconds (default: none)
    FHIRKIT_LOG_LEVEL      - Logging level (default: INFO)
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from .client import FhirClient
from .config import FhirKitConfig, get_config
from .errors import FhirKitError
from .models.outcome import ValidationOutcome
from .models.resource import AdministrativeGender, HumanName, Identifier, Patient
from .models.search import SearchParams, SortOrder
from .source import CachedResolver
from .validation import ValidationSettings, Validator

logger = logging.getLogger(__name__)


def build_example_patient() -> Patient:
    """The patient the demo validates, creates and searches for."""
    return Patient(
        identifier=(Identifier(system="system", value="example"),),
        gender=AdministrativeGender.UNKNOWN,
        name=(HumanName(family="Visser"),),
        active=True,
        birth_date="2001-03-01",
    )


def dump(data: Any) -> str:
    """Pretty-print a model or wire dict as JSON."""
    if isinstance(data, ValidationOutcome):
        data = data.to_operation_outcome()
    elif hasattr(data, "to_bundle"):
        data = data.to_bundle()
    elif hasattr(data, "to_fhir"):
        data = data.to_fhir()
    return json.dumps(data, indent=2)


def build_resolver(config: FhirKitConfig) -> CachedResolver:
    """Local profile directory (if it exists) in front of the bundled archive."""
    directory = Path(config.profiles_dir)
    if not directory.is_dir():
        logger.info("Profile directory %s not found, using bundled definitions only", directory)
        return CachedResolver.layered(None)
    return CachedResolver.layered(directory, config.include_subdirectories)


def validate_locally(patient: Patient, config: FhirKitConfig) -> ValidationOutcome:
    validator = Validator(ValidationSettings(resolver=build_resolver(config)))
    outcome = validator.validate(patient)
    print(f"Success: {outcome.success} \n{dump(outcome)}")
    return outcome


def exercise_server(patient: Patient, config: FhirKitConfig, page_size: int) -> None:
    """Run the remote part of the demo. FhirKitErrors propagate to the caller."""
    with FhirClient.from_config(config) as client:
        capability = client.capability_statement()
        print(f"capability: Name: {capability.name}, Fhir Version: {capability.fhir_version} ")

        outcome = client.validate_resource(patient)
        print(dump(outcome))

        created = client.create(patient)
        print(f"Id of patient: {created.id}")

        from_server = client.read("Patient", created.id)
        print(f"Read patient from server with id : {created.id}\n{dump(from_server)}")

        results = client.search("Patient", ["family:exact=Visser"])
        print(f"Search patient with family name exact to 'Visser'\n{dump(results)}")

        results = client.search_by_id("Patient", created.id)
        print(f"Search patient by Id\n{dump(results)}")

        query = (
            SearchParams()
            .where("family:exact=Visser")
            .order_by("birthdate", SortOrder.DESCENDING)
            .summary_only()
            .include("Patient:organization")
            .limit_to(page_size)
        )
        results = client.search("Patient", query)
        print(f"Complex search\n{dump(results)}")

        next_page = client.continue_page(results)
        if next_page is None:
            print("Next page\nNo further pages")
        else:
            print(f"Next page\n{dump(next_page)}")


def main(argv: list[str] | None = None) -> int:
    load_dotenv()
    defaults = get_config()

    parser = argparse.ArgumentParser(
        description="Validate an example patient and exercise a FHIR server",
    )
    parser.add_argument("--server", default=defaults.server_url, help="FHIR server base URL")
    parser.add_argument("--profiles", default=defaults.profiles_dir, help="Local profile directory")
    parser.add_argument(
        "--no-subdirs",
        action="store_true",
        help="Do not search subdirectories of the profile directory",
    )
    parser.add_argument("--offline", action="store_true", help="Only validate locally")
    parser.add_argument("--page-size", type=int, default=5, help="Page size for the complex search")
    parser.add_argument("--timeout", type=float, default=defaults.timeout, help="Request timeout (seconds)")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, defaults.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config = FhirKitConfig(
        server_url=args.server,
        timeout=args.timeout,
        profiles_dir=args.profiles,
        include_subdirectories=not args.no_subdirs and defaults.include_subdirectories,
        log_level=defaults.log_level,
    )
    patient = build_example_patient()

    try:
        validate_locally(patient, config)
        if not args.offline:
            exercise_server(patient, config, args.page_size)
    except FhirKitError as e:
        print(f"Something has happened: {e.message}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
