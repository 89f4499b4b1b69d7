"""
Store submission API client.

This module provides the REST transport the rest of the package is built on:
authenticated JSON requests, classification of failures into the package's
exception types, retry of transient failures, and pagination.
"""

import logging
import time
from typing import Any, Dict, List, Optional

import requests
from ratelimit import limits, sleep_and_retry

from .auth import Authenticator
from .config import StoreBrokerSettings
from .exceptions import (
    AuthenticationError,
    ConflictError,
    NotFoundError,
    PermissionError,
    RateLimitError,
    ServerError,
    StoreBrokerError,
)
from .models import EndpointType

logger = logging.getLogger(__name__)

CORRELATION_HEADER = "MS-CorrelationId"

# Calls per period allowed by the submission API for a single client
RATE_LIMIT_CALLS = 300
RATE_LIMIT_PERIOD = 60

_TRANSIENT_ERRORS = (ServerError, RateLimitError)


class StoreBrokerAPI:
    """
    Store submission API client.

    When ``settings.proxy_endpoint`` is set, requests go to the authenticating
    proxy instead of the service. The proxy holds the credentials, so no
    access token is acquired; the endpoint type and tenant travel as headers.

    Args:
        settings: Explicit configuration (endpoint, timeouts, retry policy)
        authenticator: Access token provider; built from ``settings`` when
            omitted and no proxy is configured
        sleep: Wait function used between retries (injectable for tests)
    """

    def __init__(
        self,
        settings: Optional[StoreBrokerSettings] = None,
        authenticator=None,
        sleep=time.sleep,
    ):
        """Initialize the Store submission API client."""
        self.settings = settings or StoreBrokerSettings()
        if authenticator is None and not self.settings.uses_proxy:
            authenticator = Authenticator(self.settings)
        self.authenticator = authenticator
        self._sleep = sleep

    def build_url(self, uri_fragment: str, api_version: str = "1.0") -> str:
        return (
            f"{self.settings.request_base_uri}/v{api_version}/my/"
            f"{uri_fragment.lstrip('/')}"
        )

    def _get_headers(self, force_refresh: bool = False) -> Dict[str, str]:
        """Get headers for API requests."""
        headers = {"Content-Type": "application/json; charset=UTF-8"}
        if self.authenticator is not None:
            token = self.authenticator.get_access_token(force_refresh=force_refresh)
            headers["Authorization"] = f"Bearer {token}"

        if self.settings.uses_proxy:
            # The proxy only checks that UseINT is present, not its value.
            if self.settings.endpoint_type is EndpointType.INT:
                headers["UseINT"] = "true"
            if self.settings.tenant_id:
                headers["TenantId"] = self.settings.tenant_id
            elif self.settings.tenant_name:
                headers["TenantName"] = self.settings.tenant_name
        return headers

    def _make_request_raw(
        self,
        method: str,
        url: str,
        params: Optional[Dict] = None,
        data: Optional[Any] = None,
        force_refresh: bool = False,
        operation: Optional[str] = None,
        identifiers: Optional[Dict[str, str]] = None,
    ) -> requests.Response:
        """Make a single request and classify any failure."""
        headers = self._get_headers(force_refresh)
        timeout = self.settings.request_timeout_seconds

        logger.info(f"_make_request: {method} {url}")
        if params:
            logger.info(f"_make_request: params={params}")

        try:
            response = requests.request(
                method=method,
                url=url,
                headers=headers,
                params=params,
                json=data,
                timeout=timeout,
            )
            logger.info(
                f"_make_request: Response received - status={response.status_code}"
            )
        except requests.exceptions.Timeout as e:
            logger.error(f"_make_request: Request timed out after {timeout}s: {e}")
            raise ServerError(
                f"Request timed out: {e}", operation=operation, identifiers=identifiers
            )
        except requests.exceptions.RequestException as e:
            logger.error(f"_make_request: Request failed: {e}")
            raise ServerError(
                f"Request failed: {e}", operation=operation, identifiers=identifiers
            )

        if response.status_code < 400:
            return response

        correlation_id = response.headers.get(CORRELATION_HEADER)
        try:
            error_data = response.json()
        except Exception:
            error_data = {}
        if not isinstance(error_data, dict):
            error_data = {}
        error_msg = error_data.get("message") or response.text or "No details returned"
        validation_errors = error_data.get("validationErrors")
        if validation_errors:
            error_msg = f"{error_msg} {validation_errors}"

        context = dict(
            status_code=response.status_code,
            error_payload=error_data,
            correlation_id=correlation_id,
            operation=operation,
            identifiers=identifiers,
        )

        # Handle different HTTP status codes
        if response.status_code == 401:
            raise AuthenticationError(
                f"Authentication failed - check credentials: {error_msg}", **context
            )
        elif response.status_code == 403:
            raise PermissionError(
                f"Insufficient permissions for this operation: {error_msg}", **context
            )
        elif response.status_code == 404:
            raise NotFoundError(f"Requested resource not found: {error_msg}", **context)
        elif response.status_code in (409, 412):
            raise ConflictError(f"Conflict: {error_msg}", **context)
        elif response.status_code == 429:
            raise RateLimitError(f"Rate limit exceeded: {error_msg}", **context)
        elif response.status_code >= 500:
            raise ServerError(f"Server error {response.status_code}: {error_msg}", **context)

        logger.error(f"API Error {response.status_code}: {error_msg}")
        raise StoreBrokerError(f"API Error {response.status_code}: {error_msg}", **context)

    @sleep_and_retry
    @limits(calls=RATE_LIMIT_CALLS, period=RATE_LIMIT_PERIOD)
    def _make_request(self, *args, **kwargs) -> requests.Response:
        """Rate-limited wrapper for _make_request_raw."""
        return self._make_request_raw(*args, **kwargs)

    def invoke(
        self,
        uri_fragment: str,
        method: str = "GET",
        body: Optional[Any] = None,
        params: Optional[Dict] = None,
        api_version: str = "1.0",
        operation: Optional[str] = None,
        identifiers: Optional[Dict[str, str]] = None,
    ) -> Optional[Any]:
        """
        Perform an API call and return its parsed JSON body.

        Transient failures (5xx, 429, timeouts) are retried a fixed number of
        times; a 401 is retried once with a freshly acquired token. Every
        other failure is raised immediately.

        Args:
            uri_fragment: Path below ``/v<api_version>/my/``
            method: HTTP verb
            body: JSON-serializable request body
            params: Query string parameters
            api_version: API version segment of the URL
            operation: Name of the operation, used in error messages
            identifiers: Product/flight/submission ids, used in error messages

        Returns:
            Parsed response body, or None when the service returned no content
        """
        url = self.build_url(uri_fragment, api_version)
        retries_left = self.settings.max_transient_retries
        force_refresh = False

        while True:
            try:
                response = self._make_request(
                    method,
                    url,
                    params=params,
                    data=body,
                    force_refresh=force_refresh,
                    operation=operation,
                    identifiers=identifiers,
                )
                break
            except AuthenticationError:
                if force_refresh or self.authenticator is None:
                    raise
                logger.warning(f"invoke: 401 from {method} {url}, refreshing token")
                force_refresh = True
            except _TRANSIENT_ERRORS as e:
                if retries_left <= 0:
                    raise
                retries_left -= 1
                delay = self.settings.transient_retry_delay_seconds
                logger.warning(
                    f"invoke: Transient failure on {method} {url} ({e}); "
                    f"retrying in {delay}s, {retries_left} retries left"
                )
                self._sleep(delay)

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise StoreBrokerError(
                f"Response was not valid JSON: {e}",
                status_code=response.status_code,
                correlation_id=response.headers.get(CORRELATION_HEADER),
                operation=operation,
                identifiers=identifiers,
            )

    def invoke_multiple_page(
        self,
        uri_fragment: str,
        max_results: int = 100,
        start_at: int = 0,
        get_all: bool = True,
        api_version: str = "1.0",
        operation: Optional[str] = None,
        identifiers: Optional[Dict[str, str]] = None,
    ) -> List[Dict[str, Any]]:
        """
        Fetch a paginated list endpoint.

        Args:
            uri_fragment: Path of the list endpoint
            max_results: Page size requested from the service
            start_at: Index of the first item to return
            get_all: Whether to follow ``@nextLink`` until the list is exhausted

        Returns:
            The concatenated ``value`` arrays of every page fetched
        """
        separator = "&" if "?" in uri_fragment else "?"
        next_fragment: Optional[str] = (
            f"{uri_fragment}{separator}skip={start_at}&top={max_results}"
        )
        items: List[Dict[str, Any]] = []

        while next_fragment:
            page = self.invoke(
                next_fragment,
                api_version=api_version,
                operation=operation,
                identifiers=identifiers,
            ) or {}
            items.extend(page.get("value", []))
            next_fragment = page.get("@nextLink") if get_all else None
            logger.info(
                f"invoke_multiple_page: {len(items)} of "
                f"{page.get('totalCount', 'unknown')} items retrieved"
            )

        return items
