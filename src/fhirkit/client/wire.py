"""HTTP response handling for the FHIR REST client.

Maps status codes onto the fhirkit error taxonomy and pulls
OperationOutcome details out of error bodies.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from ..errors import (
    ConflictError,
    FhirKitError,
    NotFound,
    RemoteOperationError,
    TransportError,
    ValidationError,
)
from ..models.outcome import ValidationOutcome

logger = logging.getLogger(__name__)

FHIR_JSON = "application/fhir+json"

_STATUS_ERRORS: dict[int, type[FhirKitError]] = {
    400: ValidationError,
    404: NotFound,
    409: ConflictError,
    410: NotFound,
    412: ConflictError,
    422: ValidationError,
    429: TransportError,
    502: TransportError,
    503: TransportError,
    504: TransportError,
}


def parse_json(response: httpx.Response) -> dict[str, Any]:
    """Decode a JSON object body.

    Raises:
        TransportError: If the body is not a JSON object.
    """
    try:
        data = response.json()
    except ValueError as e:
        raise TransportError(
            f"Server returned a non-JSON body (HTTP {response.status_code})",
            status_code=response.status_code,
        ) from e
    if not isinstance(data, dict):
        raise TransportError(
            f"Server returned JSON that is not a resource (HTTP {response.status_code})",
            status_code=response.status_code,
        )
    return data


def outcome_from_response(response: httpx.Response) -> ValidationOutcome | None:
    """Return the OperationOutcome in *response*, if it carries one."""
    if not response.content:
        return None
    try:
        data = response.json()
    except ValueError:
        return None
    if not isinstance(data, dict) or data.get("resourceType") != "OperationOutcome":
        return None
    try:
        return ValidationOutcome.from_operation_outcome(data)
    except ValueError:
        logger.warning("[CLIENT] Ignoring malformed OperationOutcome (HTTP %d)", response.status_code)
        return None


def _describe(response: httpx.Response, outcome: ValidationOutcome | None) -> str:
    request = response.request
    summary = f"{request.method} {request.url} failed with HTTP {response.status_code}"
    if outcome is not None and outcome.issues:
        summary += ": " + "; ".join(issue.message for issue in outcome.issues if issue.message)
    elif response.text:
        summary += f": {response.text[:200]}"
    return summary


def raise_for_status(response: httpx.Response) -> None:
    """Raise the fhirkit error matching a non-2xx response."""
    if response.is_success:
        return
    outcome = outcome_from_response(response)
    error_class = _STATUS_ERRORS.get(response.status_code, RemoteOperationError)
    raise error_class(
        _describe(response, outcome),
        status_code=response.status_code,
        outcome=outcome,
    )
