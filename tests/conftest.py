"""
Shared pytest fixtures and configuration
"""

import json
import os
import socket
import sys
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import httpx
import pytest

# Add the project root to Python path to make imports work
sys.path.insert(0, str(Path(__file__).parent.parent))

# Keep a developer's real credentials out of the tests
for name in ("X_BEARER_TOKEN", "X_API_KEY", "X_API_SECRET", "X_ACCESS_TOKEN", "X_ACCESS_TOKEN_SECRET"):
    os.environ.pop(name, None)

from auth.credentials import CredentialSet


FULL_CREDENTIALS = {
    "consumer_key": "test-consumer-key",
    "consumer_secret": "test-consumer-secret",
    "access_token": "test-access-token",
    "access_token_secret": "test-access-token-secret",
    "bearer_token": "test-bearer-token",
}


@pytest.fixture
def full_credentials() -> CredentialSet:
    """
    Credentials with both the bearer token and a complete OAuth 1.0a user context.
    """
    return CredentialSet(**FULL_CREDENTIALS)


@pytest.fixture
def bearer_only_credentials() -> CredentialSet:
    """
    Credentials with only the bearer token.
    """
    return CredentialSet(bearer_token="test-bearer-token")


class FakeUpstream:
    """
    Scripted stand-in for the X API, served through httpx.MockTransport.

    Routes are keyed by (method, path). Unrouted requests get a 404. Every
    request is recorded in order.
    """

    def __init__(self):
        self.routes: Dict[tuple, Callable[[httpx.Request], httpx.Response]] = {}
        self.requests: List[httpx.Request] = []

    def add(self, method: str, path: str, status_code: int = 200, json_body: Any = None,
            text: Optional[str] = None, headers: Optional[Dict[str, str]] = None):
        def respond(request: httpx.Request) -> httpx.Response:
            if json_body is not None:
                return httpx.Response(status_code, json=json_body, headers=headers)
            return httpx.Response(status_code, text=text or "", headers=headers)
        self.routes[(method.upper(), path)] = respond

    def calls(self, method: str, path: str) -> List[httpx.Request]:
        return [r for r in self.requests if r.method == method.upper() and r.url.path == path]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get((request.method, request.url.path))
        if route is None:
            return httpx.Response(404, json={"title": "Not Found", "path": request.url.path})
        return route(request)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))


@pytest.fixture
def upstream() -> FakeUpstream:
    """
    A fresh scripted X API.
    """
    return FakeUpstream()


def request_json(request: httpx.Request) -> Any:
    return json.loads(request.content.decode("utf-8")) if request.content else None


def parse_oauth_header(header: str) -> Dict[str, str]:
    """
    Split an ``OAuth k="v", ...`` header into its (still encoded) parameters.
    """
    assert header.startswith("OAuth ")
    params = {}
    for part in header[len("OAuth "):].split(", "):
        key, _, value = part.partition("=")
        params[key] = value.strip('"')
    return params


def port_is_free(port: int) -> bool:
    """
    True if nothing is listening on 127.0.0.1:port.
    """
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
    try:
        sock.bind(("127.0.0.1", port))
        sock.listen(1)
        return True
    except OSError:
        return False
    finally:
        sock.close()
