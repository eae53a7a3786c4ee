# plugins/x/client.py
"""
X API Clients
=============

This module implements the two request dispatchers used by the X operations.

- XBearerClient: app-only access. Attaches the static bearer token as
  ``Authorization: Bearer <token>``. Used for read-capability operations.
- XDelegatedClient: user-context access. Signs every request with OAuth 1.0a
  (fresh timestamp and nonce per call). Used for delegated-capability
  operations. Supports GET/POST/PUT/DELETE with optional JSON bodies and a
  separate binary upload mode against the upload host.

Both clients share the same error mapping: any non-2xx response raises an
UpstreamError carrying the status code and the raw body. A 204 response is a
success with an empty result. Nothing is retried.
"""

import logging
from typing import Any, Dict, Mapping, Optional
from urllib.parse import quote

import httpx

from auth.credentials import CredentialSet
from auth.signing import SigningContext, authorization_header
from plugins.x.config import XSettings, get_x_settings

logger = logging.getLogger(__name__)


class UpstreamError(Exception):
    """
    Raised when the X API answers with a non-success status.

    Attributes:
        status_code (int): The HTTP status code
        body (str): The raw response body
    """

    def __init__(self, status_code: int, body: str):
        super().__init__(f"X API {status_code}: {body}")
        self.status_code = status_code
        self.body = body


def clean_params(params: Optional[Mapping[str, Any]]) -> Dict[str, str]:
    """Drop None values and stringify the rest, so signing and sending agree."""
    if not params:
        return {}
    cleaned = {}
    for key, value in params.items():
        if value is None:
            continue
        if isinstance(value, bool):
            value = "true" if value else "false"
        cleaned[key] = str(value)
    return cleaned


def escape_path(endpoint: str) -> str:
    """Percent-encode every path octet outside the unreserved set, keeping the slashes."""
    return quote(endpoint, safe="/")


def parse_response(response: httpx.Response) -> Any:
    """
    Map an upstream response to a result.

    Raises:
        UpstreamError: If the response status is not 2xx
    """
    if response.status_code == 204:
        return {}
    if not response.is_success:
        logger.warning(f"X API request {response.request.method} {response.request.url.path} failed with {response.status_code}")
        raise UpstreamError(response.status_code, response.text)
    if not response.content:
        return {}
    return response.json()


class XBearerClient:
    """
    App-only X API client.

    Attributes:
        http (httpx.AsyncClient): Underlying HTTP client
        base_url (str): Base URL of the v2 API
    """

    def __init__(
        self,
        bearer_token: str,
        http: httpx.AsyncClient,
        settings: Optional[XSettings] = None,
    ):
        settings = settings or get_x_settings()
        self._bearer_token = bearer_token
        self.http = http
        self.base_url = f"{settings.BASE_URL}/2"

    async def get(self, endpoint: str, params: Optional[Mapping[str, Any]] = None) -> Any:
        """
        Issue a GET against the v2 API with the bearer token.

        Args:
            endpoint (str): Path below /2, e.g. "/tweets/search/recent"
            params (Optional[Mapping[str, Any]]): Query parameters; None values are dropped

        Returns:
            Any: The decoded JSON response

        Raises:
            UpstreamError: If the API answers with a non-2xx status
        """
        logger.debug(f"Bearer GET {endpoint}")
        response = await self.http.get(
            f"{self.base_url}{escape_path(endpoint)}",
            params=clean_params(params),
            headers={"Authorization": f"Bearer {self._bearer_token}"},
        )
        return parse_response(response)


class XDelegatedClient:
    """
    OAuth 1.0a user-context X API client.

    Endpoints beginning with "/1.1/" are sent to the v1.1 API, everything
    else to the v2 API.

    Raises:
        SigningPreconditionError: On construction, if the credentials are not
            delegated-capable
    """

    def __init__(
        self,
        credentials: CredentialSet,
        http: httpx.AsyncClient,
        settings: Optional[XSettings] = None,
    ):
        settings = settings or get_x_settings()
        self._consumer = credentials.consumer
        self._token = credentials.token
        self.http = http
        self.base_url = settings.BASE_URL
        self.upload_url = settings.UPLOAD_URL

    def url_for(self, endpoint: str) -> str:
        """
        Build the request URL for an endpoint.

        The path is percent-encoded here, so the URL that is signed is
        byte-for-byte the URL httpx sends.
        """
        path = escape_path(endpoint)
        if path.startswith("/1.1/"):
            return f"{self.base_url}{path}"
        return f"{self.base_url}/2{path}"

    def _sign(self, method: str, url: str, params: Mapping[str, str]) -> str:
        context = SigningContext.create(method, url)
        return authorization_header(params, context, self._consumer, self._token)

    async def request(
        self,
        method: str,
        endpoint: str,
        params: Optional[Mapping[str, Any]] = None,
        json_body: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """
        Issue a signed request.

        Args:
            method (str): HTTP method (GET, POST, PUT, DELETE)
            endpoint (str): API path, e.g. "/users/me" or "/1.1/trends/place.json"
            params (Optional[Mapping[str, Any]]): Query parameters, included in the signature
            json_body (Optional[Dict[str, Any]]): JSON body for POST and PUT, never signed

        Returns:
            Any: The decoded JSON response, or {} for 204

        Raises:
            UpstreamError: If the API answers with a non-2xx status
        """
        method = method.upper()
        if method not in ("GET", "POST", "PUT", "DELETE"):
            raise ValueError(f"Unsupported HTTP method: {method}")

        url = self.url_for(endpoint)
        query = clean_params(params)
        headers = {"Authorization": self._sign(method, url, query)}
        kwargs: Dict[str, Any] = {"params": query, "headers": headers}
        if json_body is not None and method in ("POST", "PUT"):
            kwargs["json"] = json_body

        logger.debug(f"OAuth {method} {endpoint}")
        response = await self.http.request(method, url, **kwargs)
        return parse_response(response)

    async def upload(
        self,
        endpoint: str,
        files: Mapping[str, Any],
        params: Optional[Mapping[str, Any]] = None,
        data: Optional[Mapping[str, Any]] = None,
    ) -> Any:
        """
        Issue a signed multipart POST against the upload host.

        The multipart body is excluded from the signature; only the query
        parameters are signed.

        Args:
            endpoint (str): Upload path, e.g. "/1.1/media/upload.json"
            files (Mapping[str, Any]): Multipart file fields, as accepted by httpx
            params (Optional[Mapping[str, Any]]): Query parameters
            data (Optional[Mapping[str, Any]]): Extra multipart form fields

        Raises:
            UpstreamError: If the API answers with a non-2xx status
        """
        url = f"{self.upload_url}{escape_path(endpoint)}"
        query = clean_params(params)
        headers = {"Authorization": self._sign("POST", url, query)}

        logger.debug(f"OAuth upload {endpoint}")
        response = await self.http.post(
            url,
            params=query,
            headers=headers,
            files=files,
            data=clean_params(data),
        )
        return parse_response(response)
