# auth/encoding.py
"""
OAuth 1.0a Parameter Encoding
=============================

This module implements the canonicalization primitives used when signing
OAuth 1.0a requests (RFC 5849, section 3.4.1 and 3.6).

The signature base string is compared byte for byte by the X API, so the
encoding here is deliberately stricter than generic URL encoding: every octet
outside the unreserved set ``[A-Za-z0-9-._~]`` is percent-escaped, including
``!``, ``*``, ``'``, ``(`` and ``)``.

Functions:
- percent_encode: Encode a single value with the OAuth unreserved set
- build_parameter_string: Sort and join request parameters for signing
- normalize_base_url: Strip query, fragment and default ports from a URL
- parse_form_encoded: Decode a form-encoded token endpoint response
"""

from typing import Any, Dict, Iterable, List, Mapping, Tuple, Union
from urllib.parse import parse_qsl, quote, urlsplit, urlunsplit

Params = Union[Mapping[str, Any], Iterable[Tuple[str, Any]]]

_DEFAULT_PORTS = {"http": 80, "https": 443}


def percent_encode(value: Any) -> str:
    """
    Percent-encode a value using the OAuth 1.0a unreserved character set.

    Args:
        value (Any): The value to encode; non-strings are converted with str()

    Returns:
        str: The encoded value with uppercase hex escapes
    """
    # quote() never escapes ALPHA / DIGIT / "-._~"; safe="" drops "/" as well
    return quote(str(value), safe="")


def _pairs(params: Params) -> List[Tuple[str, Any]]:
    if isinstance(params, Mapping):
        return list(params.items())
    return list(params)


def build_parameter_string(params: Params) -> str:
    """
    Build the normalized parameter string for a signature base string.

    Each key and value is percent-encoded, the pairs are sorted by encoded key
    and then by encoded value, and the result is joined as ``k=v&k=v``.
    Duplicate keys are supported by passing an iterable of pairs.

    Args:
        params (Params): A mapping or an iterable of (key, value) pairs

    Returns:
        str: The normalized parameter string
    """
    encoded = sorted(
        (percent_encode(key), percent_encode(value))
        for key, value in _pairs(params)
    )
    return "&".join(f"{key}={value}" for key, value in encoded)


def normalize_base_url(url: str) -> str:
    """
    Normalize a request URL for use in the signature base string.

    The scheme and host are lowercased, default ports are dropped, and the
    query string and fragment are removed.

    Args:
        url (str): The request URL

    Returns:
        str: The base string URI
    """
    parts = urlsplit(url)
    scheme = parts.scheme.lower()
    host = (parts.hostname or "").lower()
    netloc = host
    if parts.port is not None and parts.port != _DEFAULT_PORTS.get(scheme):
        netloc = f"{host}:{parts.port}"
    path = parts.path or "/"
    return urlunsplit((scheme, netloc, path, "", ""))


def parse_form_encoded(body: str) -> Dict[str, str]:
    """Decode an application/x-www-form-urlencoded response body."""
    return dict(parse_qsl(body, keep_blank_values=True))
