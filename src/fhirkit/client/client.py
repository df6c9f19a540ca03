"""Synchronous FHIR REST client.

Every operation blocks until the server answers. The client never
retries; each failed call raises exactly one fhirkit error and the caller
decides what to do with it (``error.retryable`` tells transport problems
apart from rejections).
"""

from __future__ import annotations

import logging
from typing import Any, Iterable

import httpx

from .. import __version__
from ..config import FhirKitConfig, get_config
from ..errors import TransportError
from ..models.outcome import ValidationOutcome
from ..models.resource import Resource, parse_resource
from ..models.search import PageDirection, SearchParams, SearchResult, ServerCapabilities
from .wire import FHIR_JSON, outcome_from_response, parse_json, raise_for_status

logger = logging.getLogger(__name__)

SearchCriteria = SearchParams | Iterable[str] | None


class FhirClient:
    """Client for a FHIR R4 server's REST API.

    Usage:
        with FhirClient("https://server.fire.ly/r4", timeout=30) as client:
            capabilities = client.capability_statement()
            created = client.create(patient)
            again = client.read("Patient", created.id)
            page = client.search("Patient", ["family:exact=Visser"])
            while page is not None:
                page = client.continue_page(page)
    """

    def __init__(
        self,
        base_url: str,
        timeout: float | None = None,
        headers: dict[str, str] | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            base_url: Service base URL, e.g. ``https://server.fire.ly/r4``.
            timeout: Seconds per request. None means no timeout; impose one
                here or at the transport.
            headers: Extra headers sent with every request (auth, tenancy).
            transport: Optional httpx transport, mainly for tests.
        """
        if not base_url:
            raise ValueError("FhirClient needs a base URL")
        self._base_url = base_url.rstrip("/")

        default_headers = {
            "Accept": FHIR_JSON,
            "User-Agent": f"fhirkit/{__version__}",
        }
        default_headers.update(headers or {})
        self._client = httpx.Client(
            timeout=timeout,
            headers=default_headers,
            transport=transport,
            follow_redirects=True,
        )

    @classmethod
    def from_config(cls, config: FhirKitConfig | None = None) -> FhirClient:
        config = config or get_config()
        return cls(config.server_url, timeout=config.timeout)

    @property
    def base_url(self) -> str:
        return self._base_url

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _url(self, path: str) -> str:
        if path.startswith(("http://", "https://")):
            return path
        return f"{self._base_url}/{path.lstrip('/')}"

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: list[tuple[str, str]] | None = None,
        json: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        """Send one request. Only transport problems raise here."""
        url = self._url(path)
        try:
            response = self._client.request(method, url, params=params, json=json, headers=headers)
        except httpx.TimeoutException as e:
            raise TransportError(f"{method} {url} timed out") from e
        except httpx.RequestError as e:
            raise TransportError(f"{method} {url} failed: {type(e).__name__}: {e}") from e
        logger.info("[CLIENT] %s %s -> %d", method, response.request.url, response.status_code)
        return response

    def _send(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        response = self._request(method, path, **kwargs)
        raise_for_status(response)
        return response

    @staticmethod
    def _to_resource(data: dict[str, Any], expected_type: str | None = None) -> Resource:
        resource_type = data.get("resourceType")
        if expected_type and resource_type != expected_type:
            raise TransportError(f"Expected a {expected_type} from the server, got {resource_type!r}")
        try:
            return parse_resource(data)
        except ValueError as e:
            raise TransportError(f"Server returned an unreadable {resource_type}: {e}") from e

    @staticmethod
    def _to_page(response: httpx.Response) -> SearchResult:
        data = parse_json(response)
        try:
            return SearchResult.from_bundle(data)
        except ValueError as e:
            raise TransportError(f"Server returned an unreadable search result: {e}") from e

    def _resource_from_write(self, response: httpx.Response, resource_type: str) -> Resource:
        """Resource returned by a create/update, reading it back if the body is empty."""
        if response.content:
            data = parse_json(response)
            if data.get("resourceType") == resource_type:
                return self._to_resource(data, resource_type)
        location = response.headers.get("Location") or response.headers.get("Content-Location")
        if not location:
            raise TransportError(
                f"Server answered {response.status_code} without a {resource_type} or a Location",
                status_code=response.status_code,
            )
        return self.read(location)

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def capability_statement(self) -> ServerCapabilities:
        """Fetch the server's CapabilityStatement (``GET metadata``)."""
        data = parse_json(self._send("GET", "metadata"))
        try:
            return ServerCapabilities.from_capability_statement(data)
        except ValueError as e:
            raise TransportError(str(e)) from e

    def validate_resource(self, resource: Resource, profile: str | None = None) -> ValidationOutcome:
        """Ask the server to validate *resource* (``$validate``).

        Whatever OperationOutcome the server sends back is the result, even
        on a 4xx. Failures to reach the server come back as an outcome with
        one fatal issue instead of an exception.
        """
        parameters: dict[str, Any] = {
            "resourceType": "Parameters",
            "parameter": [{"name": "resource", "resource": resource.to_fhir()}],
        }
        if profile:
            parameters["parameter"].append({"name": "profile", "valueUri": profile})

        try:
            response = self._request(
                "POST",
                f"{resource.resource_type}/$validate",
                json=parameters,
                headers={"Content-Type": FHIR_JSON},
            )
            outcome = outcome_from_response(response)
            if outcome is not None:
                return outcome
            raise_for_status(response)
        except TransportError as e:
            logger.warning("[CLIENT] Remote validation did not complete: %s", e)
            return ValidationOutcome.transport_failure(str(e))

        return ValidationOutcome.transport_failure(
            f"$validate answered {response.status_code} without an OperationOutcome"
        )

    def create(self, resource: Resource) -> Resource:
        """Create *resource*; the server assigns the id.

        Raises:
            ValidationError: The server rejected the content (400/422).
            ConflictError: The server refused because of existing state.
            TransportError: The server could not be reached or answered garbage.
        """
        payload = resource.to_fhir()
        payload.pop("id", None)
        response = self._send(
            "POST",
            resource.resource_type,
            json=payload,
            headers={"Content-Type": FHIR_JSON, "Prefer": "return=representation"},
        )
        created = self._resource_from_write(response, resource.resource_type)
        if not created.id:
            raise TransportError("Server created the resource but returned no id")
        logger.info("[CLIENT] Created %s", created.reference)
        return created

    def read(self, location: str, id: str | None = None) -> Resource:
        """Read a resource.

        Accepts ``read("Patient", "1")``, ``read("Patient/1")``,
        ``read("Patient/1/_history/2")`` or an absolute URL.

        Raises:
            NotFound: No resource exists at that location.
        """
        path = f"{location.rstrip('/')}/{id}" if id else location
        return self._to_resource(parse_json(self._send("GET", path)), _type_from_path(path))

    def update(self, resource: Resource, version_aware: bool = False) -> Resource:
        """Replace the stored resource with *resource* (``PUT``).

        With *version_aware* the write only succeeds if the server's current
        version is ``resource.meta.version_id``; otherwise ConflictError.
        """
        if not resource.id:
            raise ValueError("Cannot update a resource without an id")
        headers = {"Content-Type": FHIR_JSON, "Prefer": "return=representation"}
        if version_aware:
            if resource.meta is None or not resource.meta.version_id:
                raise ValueError("Version-aware update needs meta.versionId")
            headers["If-Match"] = f'W/"{resource.meta.version_id}"'
        response = self._send("PUT", resource.reference, json=resource.to_fhir(), headers=headers)
        return self._resource_from_write(response, resource.resource_type)

    def delete(self, resource_type: str, id: str) -> None:
        self._send("DELETE", f"{resource_type}/{id}")

    def search(self, resource_type: str, criteria: SearchCriteria = None) -> SearchResult:
        """Search *resource_type* and return the first page.

        Args:
            resource_type: e.g. ``"Patient"``.
            criteria: A SearchParams, or ``name=value`` strings such as
                ``["family:exact=Visser"]``.
        """
        params = _as_search_params(criteria)
        return self._to_page(self._send("GET", resource_type, params=params.to_query()))

    def search_by_id(self, resource_type: str, id: str, criteria: SearchCriteria = None) -> SearchResult:
        params = _as_search_params(criteria).add("_id", id)
        return self._to_page(self._send("GET", resource_type, params=params.to_query()))

    def continue_page(
        self,
        result: SearchResult,
        direction: PageDirection = PageDirection.NEXT,
    ) -> SearchResult | None:
        """Follow a page link of *result*.

        Returns:
            The new page, or None if *result* has no link in that direction.
        """
        url = result.link(direction.value)
        if url is None:
            logger.debug("[CLIENT] No %s link, search is complete", direction.value)
            return None
        return self._to_page(self._send("GET", url))

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def close(self) -> None:
        """Close HTTP client."""
        self._client.close()

    def __enter__(self) -> FhirClient:
        return self

    def __exit__(self, *args) -> None:
        self.close()


def _as_search_params(criteria: SearchCriteria) -> SearchParams:
    if criteria is None:
        return SearchParams()
    if isinstance(criteria, SearchParams):
        return criteria
    if isinstance(criteria, str):
        return SearchParams.from_criteria([criteria])
    return SearchParams.from_criteria(criteria)


def _type_from_path(path: str) -> str:
    """Resource type named by a read location (relative or absolute)."""
    segments = [s for s in path.split("?", 1)[0].split("/") if s]
    if "_history" in segments:
        index = segments.index("_history")
        segments = segments[:index]
    if len(segments) < 2:
        raise ValueError(f"Read location must look like Type/id, got {path!r}")
    return segments[-2]
