# auth/signing.py
"""
OAuth 1.0a Request Signing
==========================

This module implements HMAC-SHA1 request signing for OAuth 1.0a (RFC 5849).

A SigningContext is created fresh for every outgoing request. It carries the
HTTP method, the request URL, the timestamp, a random nonce and any extra
protocol parameters (``oauth_callback`` and ``oauth_verifier`` during the
authorization flow). The context is then used to compute exactly one
signature and one Authorization header.

Only the protocol parameters and true query-string parameters participate in
the signature. JSON and multipart request bodies are never included.
"""

import base64
import hashlib
import hmac
import secrets
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

from auth.credentials import OAuthToken
from auth.encoding import (
    Params,
    build_parameter_string,
    normalize_base_url,
    percent_encode,
)

SIGNATURE_METHOD = "HMAC-SHA1"
OAUTH_VERSION = "1.0"


@dataclass(frozen=True)
class SigningContext:
    """
    Per-request signing inputs.

    Attributes:
        http_method (str): The HTTP method of the request
        base_url (str): The request URL; query and fragment are ignored
        timestamp (str): Seconds since the epoch when the request is made
        nonce (str): Random value unique to this request
        extra_params (Mapping[str, str]): Additional oauth_* protocol parameters
    """

    http_method: str
    base_url: str
    timestamp: str
    nonce: str
    extra_params: Mapping[str, str] = field(default_factory=dict)

    @classmethod
    def create(
        cls,
        http_method: str,
        url: str,
        extra_params: Optional[Mapping[str, str]] = None,
    ) -> "SigningContext":
        """Create a context stamped with the current time and a fresh 16-byte nonce."""
        return cls(
            http_method=http_method,
            base_url=url,
            timestamp=str(int(time.time())),
            nonce=secrets.token_hex(16),
            extra_params=dict(extra_params or {}),
        )


def protocol_parameters(
    context: SigningContext,
    consumer: OAuthToken,
    token: Optional[OAuthToken] = None,
) -> Dict[str, str]:
    """
    Collect the oauth_* protocol parameters for a request, without the signature.
    """
    params = {
        "oauth_consumer_key": consumer.key,
        "oauth_nonce": context.nonce,
        "oauth_signature_method": SIGNATURE_METHOD,
        "oauth_timestamp": context.timestamp,
        "oauth_version": OAUTH_VERSION,
    }
    if token is not None and token.key:
        params["oauth_token"] = token.key
    params.update(context.extra_params)
    return params


def signature_base_string(http_method: str, url: str, params: Params) -> str:
    """
    Build the signature base string.

    Args:
        http_method (str): The HTTP method
        url (str): The request URL
        params (Params): Protocol and query parameters combined

    Returns:
        str: ``METHOD&enc(base url)&enc(parameter string)``
    """
    return "&".join((
        http_method.upper(),
        percent_encode(normalize_base_url(url)),
        percent_encode(build_parameter_string(params)),
    ))


def signing_key(consumer_secret: str, token_secret: Optional[str] = None) -> str:
    return f"{percent_encode(consumer_secret)}&{percent_encode(token_secret or '')}"


def sign(
    query_params: Optional[Mapping[str, Any]],
    context: SigningContext,
    consumer: OAuthToken,
    token: Optional[OAuthToken] = None,
) -> str:
    """
    Compute the HMAC-SHA1 signature of a request.

    This is a pure function of its inputs: identical inputs always produce
    the same signature.

    Args:
        query_params (Optional[Mapping[str, Any]]): Query-string parameters of the request
        context (SigningContext): Method, URL, timestamp, nonce and extra protocol parameters
        consumer (OAuthToken): The consumer key and secret
        token (Optional[OAuthToken]): The temporary or access token, if any

    Returns:
        str: The base64-encoded signature
    """
    params = list(protocol_parameters(context, consumer, token).items())
    params.extend((query_params or {}).items())
    base_string = signature_base_string(context.http_method, context.base_url, params)
    key = signing_key(consumer.secret, token.secret if token is not None else None)
    digest = hmac.new(key.encode("utf-8"), base_string.encode("utf-8"), hashlib.sha1).digest()
    return base64.b64encode(digest).decode("ascii")


def authorization_header(
    query_params: Optional[Mapping[str, Any]],
    context: SigningContext,
    consumer: OAuthToken,
    token: Optional[OAuthToken] = None,
) -> str:
    """
    Build the ``Authorization: OAuth ...`` header value for a request.

    Every protocol parameter, including the computed ``oauth_signature``, is
    rendered as ``key="value"`` with the value percent-encoded, sorted by key
    and joined by ``", "``.
    """
    params = protocol_parameters(context, consumer, token)
    params["oauth_signature"] = sign(query_params, context, consumer, token)
    return "OAuth " + ", ".join(
        f'{percent_encode(key)}="{percent_encode(params[key])}"'
        for key in sorted(params)
    )
